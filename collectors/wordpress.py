from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any

from collectors.base import BaseCollector, CollectionContext, build_article
from collectors.extract import WORDPRESS_ARCHIVE_PATTERNS, extract_with_patterns, strip_scripts
from core.models import HistoricalArticle, PlatformIndicators
from core.text import hostname, looks_like_article, strip_html

log = logging.getLogger(__name__)

PER_PAGE = 100
MAX_API_PAGES = 50
YEARS_BACK = 15
MAX_ARCHIVE_ARTICLES = 1000

WP_URL_PATTERNS = [
    re.compile(r"/\d{4}/\d{2}/[^/]+/?$"),
    re.compile(r"/\d{4}/[^/]+\.html?$"),
    re.compile(r"/category/[^/]+/?$"),
    re.compile(r"/tag/[^/]+/?$"),
    re.compile(r"/author/[^/]+/?$"),
    re.compile(r"/page/\d+/?$"),
]
BLOG_PATTERNS = [re.compile(r"\.blog$"), re.compile(r"blog\."), re.compile(r"/blog")]

HTML_MARKERS = [
    "wp-content", "wp-includes", 'generator" content="WordPress',
    "/wp-json/", "wp-admin", "wp-login",
]


def feed_candidates(base_url: str) -> list[str]:
    return [
        f"{base_url}/feed/",
        f"{base_url}/rss/",
        f"{base_url}/?feed=rss2",
        f"{base_url}/wp-rss2.php",
    ]


def sitemap_candidates(base_url: str) -> list[str]:
    return [
        f"{base_url}/sitemap.xml",
        f"{base_url}/post-sitemap.xml",
        f"{base_url}/posts-sitemap.xml",
        f"{base_url}/sitemap_index.xml",
        f"{base_url}/sitemap-posts.xml",
        f"{base_url}/wp-sitemap.xml",
        f"{base_url}/wp-sitemap-posts-post-1.xml",
    ]


def archive_candidates(base_url: str) -> list[str]:
    return [
        f"{base_url}/archive",
        f"{base_url}/archives",
        f"{base_url}/all-posts",
        f"{base_url}/posts",
        f"{base_url}/blog",
    ]


def post_to_article(post: dict[str, Any], base_url: str) -> HistoricalArticle | None:
    title = strip_html((post.get("title") or {}).get("rendered")) or "Untitled"
    url = post.get("link") or (f"{base_url}/?p={post['id']}" if post.get("id") else None)
    if not url:
        return None
    excerpt = (post.get("excerpt") or {}).get("rendered")
    return build_article(
        title=title,
        url=url,
        published=post.get("date_gmt") or post.get("date"),
        description=excerpt[:400] if excerpt else None,
        author=post.get("author_name") or hostname(base_url),
    )


class WordPressCollector(BaseCollector):
    name = "WordPress Agent"
    description = "Specialized agent for WordPress blogs and sites"
    platform = "WordPress"

    async def estimate_confidence(self, url: str) -> float:
        domain = hostname(url).lower()
        lowered = url.lower()
        if domain.endswith(".wordpress.com"):
            return 0.95
        if "wordpress" in lowered:
            return 0.9
        if "/wp-" in lowered or "/wp/" in lowered:
            return 0.8
        if domain in ("waitbutwhy.com", "www.waitbutwhy.com"):
            return 0.8
        if any(p.search(url) for p in WP_URL_PATTERNS):
            return 0.6
        if any(p.search(url) or p.search(domain) for p in BLOG_PATTERNS):
            return 0.5
        return 0.2

    async def verify(self, url: str) -> bool:
        base = url.rstrip("/")
        try:
            index = await self.fetcher.fetch_json(f"{base}/wp-json/")
            if isinstance(index, dict) and "wp/v2" in (index.get("namespaces") or []):
                return True
        except Exception as exc:
            log.debug("WordPress REST index unavailable for %s: %s", url, exc)
        return await self.verify_by_indicators(url, HTML_MARKERS, minimum=2)

    def get_platform_indicators(self) -> PlatformIndicators:
        return PlatformIndicators(
            url_patterns=[".wordpress.com", "/wp-", "/wp-content/"],
            html_indicators=["wp-content", "wp-includes", "wordpress"],
            api_endpoints=["/wp-json/wp/v2/posts", "/feed/", "/?feed=rss2"],
            confidence=0.9,
        )

    def methods(self):
        return [
            ("WordPress REST API", self._from_api),
            ("RSS", self._from_feeds),
            ("Sitemap", self._from_sitemaps),
            ("Archive Pages", self._from_archives),
        ]

    async def _from_api(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        def build_url(page: int) -> str:
            return (
                f"{ctx.base_url}/wp-json/wp/v2/posts?per_page={PER_PAGE}&page={page}"
                "&status=publish&orderby=date&order=desc"
            )

        def extract(data: Any) -> list[HistoricalArticle]:
            if not isinstance(data, list):
                return []
            posts = (post_to_article(p, ctx.base_url) for p in data if isinstance(p, dict))
            return [p for p in posts if p]

        return await self.paginate_json_api(
            build_url, extract, page_size=PER_PAGE, max_pages=MAX_API_PAGES
        )

    async def _from_feeds(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        return await self.first_working_feed(
            ctx, feed_candidates(ctx.base_url), patterns=("paged",)
        )

    async def _from_sitemaps(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        return await self.collect_sitemaps(ctx, sitemap_candidates(ctx.base_url), first_only=True)

    def _archive_articles(self, html: str, ctx: CollectionContext) -> list[HistoricalArticle]:
        candidates = extract_with_patterns(
            strip_scripts(html),
            ctx.base_url,
            WORDPRESS_ARCHIVE_PATTERNS,
            limit=500,
            url_filter=looks_like_article,
        )
        description = f"Historical article from {ctx.domain}"
        for c in candidates:
            c.description = description
        return [c.to_article(ctx.domain) for c in candidates]

    async def _from_archives(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        for archive_url in archive_candidates(ctx.base_url):
            try:
                found = self._archive_articles(await self.fetch_html(archive_url), ctx)
            except Exception as exc:
                log.debug("WordPress archive %s failed: %s", archive_url, exc)
                continue
            if found:
                ctx.methods_used.append(f"Archive: {archive_url}")
                return found

        found: list[HistoricalArticle] = []
        year = datetime.now(timezone.utc).year
        for y in range(year, year - YEARS_BACK - 1, -1):
            if len(found) >= MAX_ARCHIVE_ARTICLES:
                break
            try:
                articles = self._archive_articles(await self.fetch_html(f"{ctx.base_url}/{y}/"), ctx)
            except Exception as exc:
                log.debug("WordPress year archive %d failed: %s", y, exc)
                continue
            if articles:
                ctx.methods_used.append(f"Year archive: {y}")
                found.extend(articles)
        return found
