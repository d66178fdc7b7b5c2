from __future__ import annotations

import logging
from typing import Any

from collectors.base import BaseCollector, CollectionContext, CollectionMethodError, build_article
from config.settings import settings
from core.fetch import FEED
from core.models import HistoricalArticle, PlatformIndicators
from core.text import hostname, origin

log = logging.getLogger(__name__)

PAGE_SIZE = 100
MAX_API_PAGES = 50
KNOWN_GHOST_SITES = ("blog.openai.com", "ghost.org")
API_PREFIXES = ("/ghost/api/v4/content", "/ghost/api/v3/content", "/ghost/api/content")

HTML_MARKERS = [
    'generator" content="Ghost', "/assets/built/", "/ghost/api/",
    "ghost-head", "ghost-foot", "data-ghost", "ghost.min.js",
]


def post_to_article(post: dict[str, Any], base_url: str) -> HistoricalArticle | None:
    title = post.get("title")
    url = post.get("url") or (f"{base_url}/{post['slug']}/" if post.get("slug") else None)
    if not title or not url:
        return None
    author = (post.get("primary_author") or {}).get("name")
    return build_article(
        title=title,
        url=url,
        published=post.get("published_at"),
        description=post.get("excerpt") or post.get("custom_excerpt"),
        author=author or hostname(base_url),
    )


class GhostCollector(BaseCollector):
    name = "Ghost CMS Agent"
    description = "Specialized agent for Ghost CMS blogs and publications"
    platform = "Ghost CMS"

    async def estimate_confidence(self, url: str) -> float:
        domain = hostname(url).lower()
        if "ghost." in url.lower() or "ghost" in domain:
            return 0.9
        if domain in KNOWN_GHOST_SITES:
            return 0.9
        if domain.startswith("blog.") or "/blog/" in url:
            return 0.5
        return 0.2

    async def verify(self, url: str) -> bool:
        base = origin(url)
        for prefix in API_PREFIXES[:2]:
            api_check = f"{base}{prefix}/posts/?key={settings.GHOST_CONTENT_API_KEY}&limit=1"
            try:
                body = await self.fetcher.fetch_text(api_check)
            except Exception as exc:
                log.debug("Ghost API check %s failed: %s", api_check, exc)
                continue
            if '"posts"' in body and '"meta"' in body:
                return True

        if await self.verify_by_indicators(url, HTML_MARKERS, minimum=2):
            return True

        try:
            sitemap = await self.fetcher.fetch_text(f"{base}/sitemap.xml", kind=FEED)
        except Exception as exc:
            log.debug("Ghost sitemap check failed for %s: %s", url, exc)
            return False
        return "sitemap-posts.xml" in sitemap or "sitemap-pages.xml" in sitemap

    def get_platform_indicators(self) -> PlatformIndicators:
        return PlatformIndicators(
            url_patterns=["ghost.io", "ghost."],
            html_indicators=["ghost-head", "/assets/built/", 'generator" content="Ghost'],
            api_endpoints=["/ghost/api/v4/content/posts/", "/rss/", "/sitemap-posts.xml"],
            confidence=0.9,
        )

    def methods(self):
        return [
            ("Ghost Content API", self._from_api),
            ("RSS", self._from_feeds),
            ("Sitemap", self._from_sitemaps),
        ]

    async def _from_api(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        def extract(data: Any) -> list[HistoricalArticle]:
            posts = data.get("posts") if isinstance(data, dict) else None
            if not isinstance(posts, list):
                return []
            articles = (post_to_article(p, ctx.base_url) for p in posts if isinstance(p, dict))
            return [a for a in articles if a]

        failures: list[str] = []
        for prefix in API_PREFIXES:
            def build_url(page: int, prefix: str = prefix) -> str:
                return (
                    f"{ctx.base_url}{prefix}/posts/?key={settings.GHOST_CONTENT_API_KEY}"
                    f"&limit={PAGE_SIZE}&page={page}&include=authors"
                )

            try:
                found = await self.paginate_json_api(
                    build_url, extract, page_size=PAGE_SIZE, max_pages=MAX_API_PAGES
                )
            except Exception as exc:
                log.debug("Ghost API %s failed: %s", prefix, exc)
                failures.append(f"{prefix} ({exc})")
                continue
            if found:
                ctx.methods_used.append(f"Ghost Content API: {prefix}")
                return found
        if len(failures) == len(API_PREFIXES):
            raise CollectionMethodError(f"all Content API versions failed, last: {failures[-1]}")
        return []

    async def _from_feeds(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        candidates = [f"{ctx.base_url}/rss/", f"{ctx.base_url}/feed/", f"{ctx.base_url}/atom.xml"]
        return await self.first_working_feed(ctx, candidates, patterns=("page", "p"))

    def feed_page_limit(self, ctx: CollectionContext, feed_url: str) -> int:
        return 10

    async def _from_sitemaps(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        candidates = [f"{ctx.base_url}/sitemap.xml", f"{ctx.base_url}/sitemap-posts.xml"]
        return await self.collect_sitemaps(ctx, candidates, first_only=False)
