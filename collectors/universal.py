"""Catch-all collector for sites no specialised collector recognises."""

from __future__ import annotations

import logging

from collectors.base import BaseCollector, CollectionContext
from collectors.extract import LISTING_PATTERNS, extract_with_patterns, is_valid_page_title, strip_scripts
from config.settings import settings
from core.feeds import discover_feed_links
from core.models import HistoricalArticle, PlatformIndicators

log = logging.getLogger(__name__)

PG_ESSAYS_FEED = "http://www.aaronsw.com/2002/feeds/pgessays.rss"

FEED_PATHS = [
    "/rss", "/feed", "/feed.xml", "/atom.xml", "/rss.xml", "/feeds/posts/default",
    "/blog/rss", "/blog/feed",
    # magazines
    "/essays/feed", "/articles/feed", "/content/feed", "/posts/feed",
    "/feeds/all.xml", "/feeds/content.xml", "/feeds/essays.xml", "/feeds/articles.xml",
    # per-category feeds
    "/philosophy/feed", "/science/feed", "/psychology/feed", "/society/feed", "/culture/feed",
]
PODCAST_FEED_PATHS = [
    "/podcast", "/podcast/feed", "/episodes/feed", "/feed/podcast", "/podcast.xml", "/itunes.xml",
]

SITEMAP_PATHS = [
    "/sitemap.xml", "/sitemap_index.xml", "/post-sitemap.xml", "/page-sitemap.xml",
    "/sitemap_posts.xml", "/sitemap-posts.xml", "/content-sitemap.xml",
    "/articles-sitemap.xml", "/essays-sitemap.xml", "/feeds/sitemap.xml",
    "/sitemaps/content.xml", "/sitemaps/posts.xml",
]

LISTING_PATHS = [
    "/essays", "/articles", "/content", "/posts", "/blog", "/archive", "/all", "/latest",
    "/episodes", "/podcast", "/shows",
]
NAVAL_LISTING_SUFFIXES = ["", "/?page=2", "/?page=3", "/?offset=20", "/feed?page=2"]


def feed_candidates(url: str, domain: str) -> list[str]:
    candidates = [url + path for path in FEED_PATHS]
    if domain in ("paulgraham.com", "www.paulgraham.com"):
        candidates.append(PG_ESSAYS_FEED)
    candidates.extend(url + path for path in PODCAST_FEED_PATHS)
    return candidates


def listing_candidates(url: str, domain: str) -> list[str]:
    candidates = [url + path for path in LISTING_PATHS]
    if domain == "nav.al":
        candidates.extend(url + suffix for suffix in NAVAL_LISTING_SUFFIXES)
    return candidates


class UniversalCollector(BaseCollector):
    name = "Universal Agent"
    description = "Fallback agent that tries feeds, sitemaps and listing pages on any website"
    platform = "Generic Website"
    is_fallback = True

    async def estimate_confidence(self, url: str) -> float:
        return 0.3

    async def verify(self, url: str) -> bool:
        return True

    def get_platform_indicators(self) -> PlatformIndicators:
        return PlatformIndicators(
            url_patterns=["*"],
            html_indicators=["<rss", "<feed", "sitemap"],
            api_endpoints=["/feed", "/rss", "/sitemap.xml"],
            confidence=0.3,
        )

    def confidence_for(self, articles: list[HistoricalArticle]) -> float:
        if not articles:
            return 0.1
        return 0.7 if len(articles) > 50 else 0.4

    def methods(self):
        return [
            ("RSS", self._from_feeds),
            ("Sitemap", self._from_sitemaps),
            ("Web scraping", self._from_listing_pages),
        ]

    def feed_page_limit(self, ctx: CollectionContext, feed_url: str) -> int:
        if ctx.domain == "nav.al" or "podcast" in feed_url:
            return 50
        return self.feed_max_pages

    async def _advertised_feeds(self, ctx: CollectionContext) -> list[str]:
        try:
            html = await self.fetch_html(ctx.url)
        except Exception as exc:
            log.debug("No home page for feed discovery on %s: %s", ctx.url, exc)
            return []
        return discover_feed_links(html, ctx.base_url)

    async def _from_feeds(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        candidates = await self._advertised_feeds(ctx)
        for guess in feed_candidates(ctx.url, ctx.domain):
            if guess not in candidates:
                candidates.append(guess)
        return await self.first_working_feed(ctx, candidates)

    async def _from_sitemaps(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        candidates = [ctx.url + path for path in SITEMAP_PATHS]
        return await self.collect_sitemaps(ctx, candidates, first_only=False)

    async def _from_listing_pages(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        if ctx.unique_count >= settings.UNIVERSAL_LISTING_THRESHOLD:
            return []
        for page_url in listing_candidates(ctx.url, ctx.domain):
            try:
                html = strip_scripts(await self.fetch_html(page_url))
            except Exception as exc:
                log.debug("Listing page %s failed: %s", page_url, exc)
                continue
            candidates = extract_with_patterns(
                html,
                page_url,
                LISTING_PATTERNS,
                limit=50,
                title_validator=is_valid_page_title,
            )
            if candidates:
                ctx.methods_used.append(f"Web scraping: {page_url}")
                return [c.to_article(ctx.domain) for c in candidates]
        return []
