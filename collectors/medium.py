from __future__ import annotations

import logging
import re
from urllib.parse import urlparse

from collectors.base import BaseCollector, CollectionContext
from collectors.extract import MEDIUM_ARCHIVE_PATTERNS, extract_with_patterns, strip_scripts
from core.models import HistoricalArticle, PlatformIndicators
from core.text import hostname, looks_like_article

log = logging.getLogger(__name__)

# Medium post slugs end in a hex post id: /@user/some-title-1a2b3c4d5e6f
_POST_ID_RE = re.compile(r"-[0-9a-f]{8,12}(?:[/?#]|$)")

VERIFY_MARKERS = [
    "medium.com", "Medium", "medium-com", "cdn-cgi/image/medium.com",
    "__APOLLO_STATE__", "medium-article", "medium-writer",
]


def is_medium_post(url: str) -> bool:
    return bool(_POST_ID_RE.search(url)) or looks_like_article(url)


def medium_username(url: str) -> str:
    parsed = urlparse(url)
    m = re.search(r"@([^/]+)", parsed.path)
    if m:
        return m.group(1)
    segments = [s for s in parsed.path.split("/") if s]
    if segments:
        return segments[0]
    host = parsed.hostname or ""
    return host.replace(".medium.com", "").replace("medium.com", "Medium") or "Medium"


def feed_url_for(url: str) -> str:
    """Medium exposes /feed/@user and /feed/<publication>; custom domains use /feed."""
    parsed = urlparse(url)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    path = parsed.path.rstrip("/")
    if path.startswith("/@") or parsed.hostname == "medium.com":
        return f"{origin}/feed{path}"
    return f"{origin}/feed"


class MediumCollector(BaseCollector):
    name = "Medium Agent"
    description = "Specialized agent for Medium publications and personal blogs"
    platform = "Medium"

    async def estimate_confidence(self, url: str) -> float:
        domain = hostname(url).lower()
        if domain == "medium.com" or domain.endswith(".medium.com"):
            return 0.95
        if "medium.com" in url:
            return 0.9
        return 0.1

    async def verify(self, url: str) -> bool:
        try:
            html = await self.fetch_html(url)
        except Exception as exc:
            log.debug("Medium verify failed for %s: %s", url, exc)
            return False
        return any(marker in html for marker in VERIFY_MARKERS)

    def get_platform_indicators(self) -> PlatformIndicators:
        return PlatformIndicators(
            url_patterns=["medium.com", ".medium.com"],
            html_indicators=["medium.com", "__APOLLO_STATE__", "medium-article"],
            api_endpoints=["/feed/@username", "/feed/publication"],
            confidence=0.9,
        )

    def methods(self):
        return [
            ("Medium RSS", self._from_feed),
            ("Archive", self._from_archive),
        ]

    async def _from_feed(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        feed_url = feed_url_for(ctx.url)
        found = await self.collect_feed(feed_url, author=None)
        for article in found:
            if article.author == hostname(feed_url):
                article.author = medium_username(feed_url)
        if found:
            ctx.methods_used.append(f"Medium RSS: {feed_url}")
        return found

    async def _from_archive(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        archive_url = f"{ctx.url}/archive"
        html = strip_scripts(await self.fetch_html(archive_url))
        candidates = extract_with_patterns(
            html, ctx.base_url, MEDIUM_ARCHIVE_PATTERNS, url_filter=is_medium_post
        )
        return [c.to_article(medium_username(c.url)) for c in candidates]
