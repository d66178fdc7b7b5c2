from __future__ import annotations

import logging
import re
from typing import Any

from collectors.base import BaseCollector, CollectionContext, CollectionMethodError, build_article
from collectors.extract import (
    SUBSTACK_ARCHIVE_PATTERNS,
    SUBSTACK_MAIN_PAGE_PATTERNS,
    extract_with_patterns,
    is_valid_listing_title,
    strip_scripts,
)
from collectors.sitemap import collect_sitemap
from core.fetch import FEED
from core.models import HistoricalArticle, PlatformIndicators
from core.text import hostname, origin

log = logging.getLogger(__name__)

ARCHIVE_PAGE_SIZE = 50
ARCHIVE_MAX_PAGES = 50
LARGE_ARCHIVE = 30

KNOWN_CUSTOM_DOMAINS = [
    "growthunhinged.com",
    "argmin.net",
    "stratechery.com",
    "morningbrew.com",
    "thehustle.co",
    "lennysnewsletter.com",
    "platformer.news",
    "casey.news",
    "kylepoyas.com",
    "noahpinion.blog",
    "astralcodexten.substack.com",
    "danluu.com",
    "birdsite.xavin.com",
    "newsletter.pragmaticengineer.com",
    "sethgodin.typepad.com",
]

SUPER_STRONG_MARKERS = [
    "substack.com", "substackcdn.com", "cdn.substack.com", "substack-post-embed",
    "substack-frontend", "substack-iframe", "_preload_substack", "substack-widget",
    "substack-embed",
]
STRONG_MARKERS = [
    "powered by substack", "substack reader", "substack profile", "subscribe via email",
    "give a gift subscription", "share this newsletter", "substack publication",
]
WEAK_MARKERS = [
    "share this post", "subscribe", "subscribers", "newsletter", "weekly",
    "monthly", "email list",
]
META_PATTERNS = [
    re.compile(r'<meta[^>]*property="og:site_name"[^>]*content="[^"]*substack[^"]*"', re.I),
    re.compile(r'<meta[^>]*name="generator"[^>]*content="[^"]*substack[^"]*"', re.I),
    re.compile(r'<link[^>]*rel="canonical"[^>]*href="[^"]*substack\.com[^"]*"', re.I),
]
STRUCTURE_PATTERNS = [re.compile(r"/p/[a-z0-9-]+"), re.compile(r"/subscribe"), re.compile(r"/archive")]

FEED_MARKERS = [
    re.compile(r"<link>.*substack\.com.*</link>", re.I),
    re.compile(r"<managingEditor>.*substack\.com.*</managingEditor>", re.I),
    re.compile(r"<generator>.*substack.*</generator>", re.I),
    re.compile(r"<atom:link.*substack.*>", re.I),
    re.compile(r"/p/[a-z0-9-]+"),
]

VERIFY_MARKERS = [
    "substack", "Substack", "_preload_substack", "substackcdn.com", "substack-post-embed",
    "substack-embed", "cdn.substack.com", "substack-frontend", "Subscribe via email",
    "Share this post", "Give a gift subscription", "Share this newsletter",
    "powered by Substack", "Substack Reader", "substack-iframe", "substack-widget",
]

_GENERIC_DOMAINS = [
    "google", "facebook", "twitter", "github", "youtube", "amazon", "microsoft",
    "apple", "reddit", "wikipedia", "stackoverflow", "linkedin", "instagram", "tiktok",
]
_NEWSLETTER_PATHS = ["/subscribe", "/newsletter", "/archive", "/posts", "/issues", "/p/"]


def html_confidence(html: str) -> float:
    """Score a page for Substack branding; 0.1 when nothing matches."""
    lowered = html.lower()
    confidence = 0.1
    if any(m in lowered for m in SUPER_STRONG_MARKERS):
        confidence = max(confidence, 0.95)
    if any(m in lowered for m in STRONG_MARKERS):
        confidence = max(confidence, 0.9)
    if any(p.search(html) for p in META_PATTERNS):
        confidence = max(confidence, 0.85)
    if sum(len(p.findall(html)) for p in STRUCTURE_PATTERNS) > 3:
        confidence = max(confidence, 0.85)
    if sum(1 for m in WEAK_MARKERS if m in lowered) >= 3:
        confidence = max(confidence, 0.7)
    if "substack" in lowered:
        confidence = max(confidence, 0.8)
    return confidence


def feed_confidence(xml: str) -> float:
    hits = sum(1 for p in FEED_MARKERS if p.search(xml))
    if hits >= 2:
        return 0.9
    if hits == 1:
        return 0.7
    return 0.1


def is_custom_domain_newsletter(domain: str, url: str) -> bool:
    parts = domain.split(".")
    if len(parts) != 2 or parts[1] not in ("com", "net", "org", "blog", "news"):
        return False
    if any(name in domain for name in _GENERIC_DOMAINS):
        return False
    return any(path in url for path in _NEWSLETTER_PATHS)


def feed_candidates(base_url: str) -> list[str]:
    return [
        f"{base_url}/feed",
        f"{base_url}/feed.xml",
        f"{base_url}/rss",
        f"{base_url}/rss.xml",
        f"{base_url}/newsletter/feed",
        f"{base_url}/posts/feed",
        f"{base_url}/index.xml",
        f"{base_url}/atom.xml",
        f"{base_url}/feed.rss",
        f"{base_url}/newsletters/feed",
    ]


def archive_candidates(base_url: str) -> list[str]:
    return [
        f"{base_url}/archive",
        f"{base_url}/archive?sort=new",
        f"{base_url}/archive?sort=old",
        f"{base_url}/posts",
        f"{base_url}/newsletter",
        f"{base_url}/newsletters",
        f"{base_url}/articles",
        f"{base_url}/issues",
        f"{base_url}/archive?page=1",
        f"{base_url}/archive?page=2",
        f"{base_url}/archive?page=3",
    ]


def _is_post_url(url: str) -> bool:
    return "/p/" in url


def _is_feed_post(article: HistoricalArticle) -> bool:
    return (
        _is_post_url(article.url) or "substack.com" in article.url
    ) and is_valid_listing_title(article.title)


def _post_title(url: str) -> str:
    slug = url.split("/p/", 1)[-1].split("?", 1)[0].strip("/")
    title = re.sub(r"\b\w", lambda m: m.group(0).upper(), slug.replace("-", " "))
    return title or "Untitled Article"


class SubstackCollector(BaseCollector):
    name = "Substack Agent"
    description = "Specialized agent for Substack newsletters"
    platform = "Substack"

    async def estimate_confidence(self, url: str) -> float:
        domain = hostname(url).lower()
        if domain.endswith(".substack.com"):
            return 0.95
        if "substack" in url.lower():
            return 0.8
        if "/p/" in url:
            return 0.9
        if any(d in domain or (domain and domain in d) for d in KNOWN_CUSTOM_DOMAINS):
            return 0.9

        content = await self._page_confidence(url)
        if content >= 0.85:
            return content
        feed = await self._feed_confidence(url)
        if feed >= 0.85:
            return feed

        if "newsletter" in url.lower():
            return 0.6
        if is_custom_domain_newsletter(domain, url):
            return 0.7
        return max(content, 0.1)

    async def _page_confidence(self, url: str) -> float:
        try:
            return html_confidence(await self.fetch_html(url))
        except Exception as exc:
            log.debug("Substack page check failed for %s: %s", url, exc)
            return 0.1

    async def _feed_confidence(self, url: str) -> float:
        for feed_url in feed_candidates(origin(url))[:4]:
            try:
                xml = await self.fetcher.fetch_text(feed_url, kind=FEED)
            except Exception:
                continue
            score = feed_confidence(xml)
            if score > 0.1:
                return score
        return 0.1

    async def verify(self, url: str) -> bool:
        try:
            html = await self.fetch_html(url)
        except Exception as exc:
            log.debug("Substack verify failed for %s: %s", url, exc)
            return False
        return any(marker in html for marker in VERIFY_MARKERS)

    def get_platform_indicators(self) -> PlatformIndicators:
        return PlatformIndicators(
            url_patterns=[".substack.com", "substack"],
            html_indicators=["substack", "substackcdn.com", "_preload_substack"],
            api_endpoints=["/api/v1/archive", "/feed", "/archive"],
            confidence=0.9,
        )

    def platform_label(self, ctx: CollectionContext) -> str:
        if ctx.domain.endswith(".substack.com"):
            return self.platform
        return f"{self.platform} (Custom Domain)"

    def methods(self):
        return [
            ("Archive API", self._from_archive_api),
            ("Substack RSS", self._from_feeds),
            ("Archive pages", self._from_archive_pages),
            ("Sitemap", self._from_sitemap),
            ("Main Page Scraping", self._from_main_page),
        ]

    def _author(self, ctx: CollectionContext) -> str:
        return ctx.domain.replace(".substack.com", "")

    async def _from_archive_api(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        def build_url(page: int) -> str:
            offset = (page - 1) * ARCHIVE_PAGE_SIZE
            return f"{ctx.base_url}/api/v1/archive?sort=new&offset={offset}&limit={ARCHIVE_PAGE_SIZE}"

        def extract(data: Any) -> list[HistoricalArticle]:
            if not isinstance(data, list):
                return []
            posts = []
            for item in data:
                if not isinstance(item, dict) or not item.get("title"):
                    continue
                url = item.get("canonical_url") or (
                    f"{ctx.base_url}/p/{item['slug']}" if item.get("slug") else None
                )
                if not url:
                    continue
                posts.append(
                    build_article(
                        title=item["title"],
                        url=url,
                        published=item.get("post_date"),
                        description=item.get("subtitle") or item.get("description"),
                        author=self._author(ctx),
                    )
                )
            return posts

        return await self.paginate_json_api(
            build_url, extract, page_size=ARCHIVE_PAGE_SIZE, max_pages=ARCHIVE_MAX_PAGES
        )

    async def _from_feeds(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        return await self.first_working_feed(
            ctx, feed_candidates(ctx.base_url), article_filter=_is_feed_post
        )

    async def _archive_page(self, ctx: CollectionContext, page_url: str) -> list[HistoricalArticle]:
        html = strip_scripts(await self.fetch_html(page_url))
        candidates = extract_with_patterns(
            html,
            ctx.base_url,
            SUBSTACK_ARCHIVE_PATTERNS,
            first_match_only=True,
            limit=50,
            title_validator=is_valid_listing_title,
        )
        author = self._author(ctx)
        for c in candidates:
            c.description = f"Newsletter post from {author}"
        return [c.to_article(author) for c in candidates]

    async def _from_archive_pages(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        pages = archive_candidates(ctx.base_url)
        found: list[HistoricalArticle] = []
        failures = 0
        for page_url in pages:
            try:
                articles = await self._archive_page(ctx, page_url)
            except Exception as exc:
                log.debug("Substack archive %s failed: %s", page_url, exc)
                failures += 1
                continue
            if articles:
                found.extend(articles)
                ctx.methods_used.append(f"Archive: {page_url}")
                if len(articles) > LARGE_ARCHIVE:
                    break
        if failures == len(pages):
            raise CollectionMethodError(f"all {len(pages)} archive pages failed")
        return found

    async def _from_sitemap(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        return await collect_sitemap(
            self.fetcher,
            f"{ctx.base_url}/sitemap.xml",
            url_filter=_is_post_url,
            title_fn=_post_title,
        )

    async def _from_main_page(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        if ctx.domain.endswith(".substack.com") or ctx.unique_count >= LARGE_ARCHIVE:
            return []
        html = await self.fetch_html(ctx.base_url)
        candidates = extract_with_patterns(
            html,
            ctx.base_url,
            SUBSTACK_MAIN_PAGE_PATTERNS,
            limit=20,
            title_validator=is_valid_listing_title,
            context_dates=False,
        )
        return [c.to_article(ctx.domain) for c in candidates]
