from __future__ import annotations

import logging

from collectors.base import BaseCollector, CollectionContext
from collectors.extract import extract_posthaven_posts, strip_scripts
from core.models import HistoricalArticle, PlatformIndicators
from core.text import hostname

log = logging.getLogger(__name__)

MAX_PAGES = 20


class PosthavenCollector(BaseCollector):
    """Posthaven blogs: the home page paginates with ``?page=N``."""

    name = "Posthaven Agent"
    description = "Specialized agent for Posthaven blogs (like Sam Altman's blog.samaltman.com)"
    platform = "Posthaven"

    async def estimate_confidence(self, url: str) -> float:
        host = hostname(url).lower()
        lowered = url.lower()
        if "blog.samaltman.com" in host:
            return 0.95
        if "posthaven" in lowered or host.endswith(".posthaven.com"):
            return 0.8
        if host.startswith("blog.") and "ghost" not in lowered and "wordpress" not in lowered:
            return 0.4
        return 0.1

    async def verify(self, url: str) -> bool:
        try:
            html = await self.fetch_html(url)
        except Exception as exc:
            log.debug("Posthaven verify failed for %s: %s", url, exc)
            return False
        return any(
            marker in html
            for marker in ("posthaven", "Follow this Posthaven", "Subscribe by Email")
        )

    def get_platform_indicators(self) -> PlatformIndicators:
        return PlatformIndicators(
            url_patterns=["posthaven.com", "blog.samaltman.com"],
            html_indicators=["posthaven", "Follow this Posthaven", "Subscribe by Email"],
            api_endpoints=["/?page=N", "/posts.atom"],
            confidence=0.8,
        )

    def methods(self):
        return [
            ("Web Page Pagination", self._from_pages),
            ("Atom Feed", self._from_atom),
        ]

    async def _page(self, ctx: CollectionContext, page: int) -> list[HistoricalArticle]:
        page_url = ctx.base_url if page == 1 else f"{ctx.base_url}/?page={page}"
        html = strip_scripts(await self.fetch_html(page_url))
        return [c.to_article(ctx.domain) for c in extract_posthaven_posts(html, ctx.base_url)]

    async def _from_pages(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        return await self.policy(MAX_PAGES, start_page=1).run(
            lambda page: self._page(ctx, page)
        )

    async def _from_atom(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        return await self.collect_feed(f"{ctx.base_url}/posts.atom", author=ctx.domain)
