"""VCCircle financial news portal."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from collectors.base import BaseCollector, CollectionContext, CollectionMethodError
from collectors.extract import extract_news_page
from core.models import HistoricalArticle, PlatformIndicators
from core.text import hostname

log = logging.getLogger(__name__)

AUTHOR = "VCCircle Team"

ARCHIVE_PATHS = [
    "archive", "all", "articles", "content", "posts", "blog", "latest",
    "news", "all-stories", "all-news", "archives",
]

CATEGORIES = [
    "venture-capital", "private-equity", "ma", "startups", "finance",
    "consumer", "healthcare", "infrastructure", "tmt",
]

VERIFY_INDICATORS = [
    "vccircle", "venture capital", "private equity", "startup funding",
    "financial news", "Team VCC", "PRO Exclusives", "NewsMediaOrganization",
]

MAX_CATEGORY_PAGE = 15
DEEP_PAGINATION_MIN = 5


def date_archive_paths(year: int | None = None) -> list[str]:
    year = year or datetime.now(timezone.utc).year
    paths = [str(y) for y in range(year, year - 8, -1)]
    for prefix in ("archive", "news"):
        paths.extend(f"{prefix}/{y}" for y in range(year, year - 3, -1))
    return paths


class VCCircleCollector(BaseCollector):
    name = "VCCircle Agent"
    description = "Specialized agent for VCCircle financial news website"
    platform = "VCCircle Financial News"

    async def estimate_confidence(self, url: str) -> float:
        if hostname(url).lower() in ("vccircle.com", "www.vccircle.com"):
            return 0.95
        if "vccircle" in url.lower():
            return 0.8
        return 0.0

    async def verify(self, url: str) -> bool:
        return await self.verify_by_indicators(url, VERIFY_INDICATORS, minimum=2)

    def get_platform_indicators(self) -> PlatformIndicators:
        return PlatformIndicators(
            url_patterns=["vccircle.com"],
            html_indicators=[
                "VCCircle", "venture capital", "private equity", "Team VCC",
                "PRO Exclusives", "LP Corner", "Startups",
            ],
            api_endpoints=[],
            confidence=0.95,
        )

    def methods(self):
        return [
            ("Main page scraping", self._main_page),
            ("Archive pages", self._archives),
            ("Category pages", self._categories),
            ("Date archives", self._date_archives),
            ("Category pagination", self._deep_pagination),
        ]

    async def _scrape(self, page_url: str) -> list[HistoricalArticle]:
        html = await self.fetch_html(page_url)
        return [c.to_article(AUTHOR) for c in extract_news_page(html, page_url)]

    async def _scrape_each(
        self, ctx: CollectionContext, label: str, paths: list[str]
    ) -> list[HistoricalArticle]:
        found: list[HistoricalArticle] = []
        failures = 0
        for path in paths:
            try:
                articles = await self._scrape(f"{ctx.url}/{path}")
            except Exception as exc:
                log.debug("VCCircle %s %s failed: %s", label, path, exc)
                failures += 1
                continue
            if articles:
                found.extend(articles)
                ctx.methods_used.append(f"{label}: {path}")
        if paths and failures == len(paths):
            raise CollectionMethodError(f"all {len(paths)} {label.lower()} pages failed")
        return found

    async def _main_page(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        return await self._scrape(ctx.url)

    async def _archives(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        return await self._scrape_each(ctx, "Archive", ARCHIVE_PATHS)

    async def _categories(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        return await self._scrape_each(ctx, "Category", CATEGORIES)

    async def _date_archives(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        return await self._scrape_each(ctx, "Date archive", date_archive_paths())

    async def _deep_pagination(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        if ctx.unique_count <= DEEP_PAGINATION_MIN:
            return []
        found: list[HistoricalArticle] = []
        for category in CATEGORIES:
            # Stop this category at the first missing or empty page.
            policy = self.policy(MAX_CATEGORY_PAGE, max_consecutive_empty=1)
            articles = await policy.run(
                lambda page, category=category: self._scrape(f"{ctx.url}/{category}/page/{page}")
            )
            if articles:
                ctx.methods_used.append(f"{category} pages")
                found.extend(articles)
        return found
