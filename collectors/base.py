from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable
from urllib.parse import urlparse

from collectors.sitemap import collect_sitemap
from config.settings import settings
from core.feeds import FeedEntry, parse_feed
from core.fetch import FEED, ContentFetcher, FetchError, HttpFetcher
from core.models import AgentResult, CollectionMetadata, HistoricalArticle, PlatformIndicators
from core.text import dedupe_and_sort, hostname, looks_like_article, parse_date, strip_html

log = logging.getLogger(__name__)

FEED_PAGINATION_PATTERNS = ("page", "paged", "offset", "p")


class CollectionMethodError(Exception):
    """Every candidate tried by a collection method failed."""


def build_article(
    title: str,
    url: str,
    published: str | None = None,
    description: str | None = None,
    author: str | None = None,
) -> HistoricalArticle:
    published_date, inferred = parse_date(published)
    return HistoricalArticle(
        title=title.strip(),
        url=url.strip(),
        published_date=published_date,
        description=strip_html(description) or None,
        author=author or hostname(url),
        date_inferred=inferred,
    )


def paginated_url(url: str, pattern: str, page: int, page_size: int = 10) -> str:
    separator = "&" if "?" in url else "?"
    if pattern == "offset":
        return f"{url}{separator}offset={(page - 1) * page_size}"
    return f"{url}{separator}{pattern}={page}"


@dataclass
class CollectionContext:
    """Per-call state handed to each collection method."""

    url: str
    base_url: str
    domain: str
    articles: list[HistoricalArticle] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    methods_used: list[str] = field(default_factory=list)

    @classmethod
    def for_url(cls, url: str) -> CollectionContext:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(f"Invalid URL: {url!r}")
        return cls(
            url=url.rstrip("/"),
            base_url=f"{parsed.scheme}://{parsed.netloc}",
            domain=parsed.hostname,
        )

    @property
    def unique_count(self) -> int:
        return len({a.url for a in self.articles})


@dataclass
class PaginationPolicy:
    """Bounded page-by-page retry loop.

    Pages ``start_page..max_pages`` are requested in order. A page that raises
    or returns nothing counts as empty; ``max_consecutive_empty`` empties in a
    row end the run.
    """

    max_pages: int
    max_consecutive_empty: int = 3
    delay: float = 1.0
    error_delay: float = 2.0
    start_page: int = 2

    async def run(self, fetch_page: Callable[[int], Awaitable[list[Any]]]) -> list[Any]:
        items: list[Any] = []
        empty = 0
        wait = 0.0
        for page in range(self.start_page, self.max_pages + 1):
            if empty >= self.max_consecutive_empty:
                break
            if wait:
                await asyncio.sleep(wait)
            try:
                batch = await fetch_page(page)
            except Exception as exc:
                log.debug("Page %d failed: %s", page, exc)
                empty += 1
                wait = self.error_delay
                continue
            wait = self.delay
            if batch:
                empty = 0
                items.extend(batch)
            else:
                empty += 1
        return items


Method = Callable[[CollectionContext], Awaitable[list[HistoricalArticle]]]
ArticleFilter = Callable[[HistoricalArticle], bool]


class BaseCollector(ABC):
    name: str
    description: str
    platform: str
    is_fallback = False
    result_confidence = 0.9
    feed_max_pages = 25

    def __init__(
        self,
        fetcher: ContentFetcher | None = None,
        delay: float | None = None,
        error_delay: float | None = None,
    ) -> None:
        self.fetcher = fetcher or HttpFetcher()
        self.delay = settings.PAGINATION_DELAY if delay is None else delay
        self.error_delay = (
            settings.PAGINATION_ERROR_DELAY if error_delay is None else error_delay
        )

    @abstractmethod
    async def estimate_confidence(self, url: str) -> float:
        """How likely this collector is the right one for ``url`` (0..1)."""
        ...

    @abstractmethod
    async def verify(self, url: str) -> bool:
        """Deeper platform check. Must return False instead of raising."""
        ...

    @abstractmethod
    def get_platform_indicators(self) -> PlatformIndicators: ...

    @abstractmethod
    def methods(self) -> list[tuple[str, Method]]:
        """Ordered (label, coroutine) acquisition methods run by collect()."""
        ...

    def policy(self, max_pages: int, **overrides) -> PaginationPolicy:
        opts = {
            "max_consecutive_empty": settings.MAX_CONSECUTIVE_EMPTY,
            "delay": self.delay,
            "error_delay": self.error_delay,
        }
        opts.update(overrides)
        return PaginationPolicy(max_pages=max_pages, **opts)

    def confidence_for(self, articles: list[HistoricalArticle]) -> float:
        return self.result_confidence if articles else 0.1

    def platform_label(self, ctx: CollectionContext) -> str:
        return self.platform

    async def collect(self, url: str) -> AgentResult:
        t0 = time.monotonic()
        try:
            ctx = CollectionContext.for_url(url)
        except ValueError as exc:
            return AgentResult(
                success=False,
                articles=[],
                strategy=self.name,
                confidence=0.1,
                errors=[f"Collection failed: {exc}"],
            )

        log.info("%s: starting collection for %s", self.name, ctx.url)
        for label, method in self.methods():
            before = len(ctx.methods_used)
            try:
                found = await method(ctx)
            except Exception as e:
                msg = f"{label}: {e}"
                log.warning("%s method failed: %s", self.name, msg)
                ctx.errors.append(msg)
                continue
            if found:
                ctx.articles.extend(found)
                if len(ctx.methods_used) == before:
                    ctx.methods_used.append(label)
                log.info("%s %s: %d articles", self.name, label, len(found))

        articles = dedupe_and_sort(ctx.articles)
        elapsed_ms = int((time.monotonic() - t0) * 1000)
        log.info(
            "%s: collected %d unique articles in %dms", self.name, len(articles), elapsed_ms
        )
        return AgentResult(
            success=bool(articles),
            articles=articles,
            strategy=self.name,
            confidence=self.confidence_for(articles),
            errors=ctx.errors,
            metadata=CollectionMetadata(
                platform_detected=self.platform_label(ctx),
                methods_used=ctx.methods_used,
                total_time_ms=elapsed_ms,
            ),
        )

    # ── shared acquisition helpers ─────────────────────────────────────────────

    async def fetch_html(self, url: str) -> str:
        return await self.fetcher.fetch_text(url)

    async def verify_by_indicators(
        self, url: str, indicators: list[str], minimum: int = 2
    ) -> bool:
        try:
            html = (await self.fetch_html(url)).lower()
        except Exception as exc:
            log.debug("%s verify fetch failed for %s: %s", self.name, url, exc)
            return False
        hits = sum(1 for marker in indicators if marker.lower() in html)
        return hits >= minimum

    def entry_to_article(self, entry: FeedEntry, author: str | None) -> HistoricalArticle:
        return build_article(
            title=entry.title,
            url=entry.link,
            published=entry.published,
            description=entry.description,
            author=entry.author or author,
        )

    async def collect_feed(
        self, feed_url: str, author: str | None = None, timeout: float | None = None
    ) -> list[HistoricalArticle]:
        resp = await self.fetcher.fetch(feed_url, kind=FEED, timeout=timeout)
        default_author = author or hostname(feed_url)
        return [self.entry_to_article(e, default_author) for e in parse_feed(resp.content)]

    async def collect_feed_with_pagination(
        self,
        feed_url: str,
        max_pages: int | None = None,
        patterns: tuple[str, ...] = FEED_PAGINATION_PATTERNS,
        timeout: float | None = None,
        article_filter: ArticleFilter | None = None,
    ) -> list[HistoricalArticle]:
        """Read a feed, then guess pagination parameters on top of it.

        A page only counts as non-empty when it adds URLs not seen before, so
        feeds that ignore the parameter stop after a few requests. Entries
        rejected by ``article_filter`` never count as found.
        """
        keep = article_filter or (lambda article: True)
        base = [a for a in await self.collect_feed(feed_url, timeout=timeout) if keep(a)]
        if not base:
            return []

        collected = list(base)
        seen = {a.url for a in base}
        limit = max_pages or self.feed_max_pages

        for pattern in patterns:
            async def fetch_page(page: int, pattern: str = pattern) -> list[HistoricalArticle]:
                batch = await self.collect_feed(
                    paginated_url(feed_url, pattern, page), timeout=timeout
                )
                fresh = [a for a in batch if a.url not in seen and keep(a)]
                seen.update(a.url for a in fresh)
                return fresh

            collected.extend(await self.policy(limit).run(fetch_page))
            if len(collected) > len(base):
                log.debug("%s: feed pagination via %r on %s", self.name, pattern, feed_url)
                break

        return dedupe_and_sort(collected)

    async def first_working_feed(
        self,
        ctx: CollectionContext,
        candidates: list[str],
        paginate: bool = True,
        patterns: tuple[str, ...] = FEED_PAGINATION_PATTERNS,
        timeout: float | None = None,
        article_filter: ArticleFilter | None = None,
    ) -> list[HistoricalArticle]:
        """Try feed URLs in order and keep the first one that yields articles."""
        failures: list[str] = []
        for feed_url in candidates:
            try:
                if paginate:
                    found = await self.collect_feed_with_pagination(
                        feed_url,
                        max_pages=self.feed_page_limit(ctx, feed_url),
                        patterns=patterns,
                        timeout=timeout,
                        article_filter=article_filter,
                    )
                else:
                    found = await self.collect_feed(feed_url, timeout=timeout)
                    if article_filter:
                        found = [a for a in found if article_filter(a)]
            except Exception as exc:
                log.debug("%s: feed %s failed: %s", self.name, feed_url, exc)
                failures.append(f"{feed_url} ({exc})")
                continue
            if found:
                ctx.methods_used.append(f"RSS: {feed_url}")
                return found
        if candidates and len(failures) == len(candidates):
            raise CollectionMethodError(
                f"all {len(candidates)} feeds failed, last: {failures[-1]}"
            )
        return []

    def feed_page_limit(self, ctx: CollectionContext, feed_url: str) -> int:
        return self.feed_max_pages

    async def collect_sitemaps(
        self,
        ctx: CollectionContext,
        candidates: list[str],
        first_only: bool = True,
        url_filter: Callable[[str], bool] = looks_like_article,
    ) -> list[HistoricalArticle]:
        found: list[HistoricalArticle] = []
        failures: list[str] = []
        for sitemap_url in candidates:
            try:
                articles = await collect_sitemap(self.fetcher, sitemap_url, url_filter=url_filter)
            except Exception as exc:
                log.debug("%s: sitemap %s failed: %s", self.name, sitemap_url, exc)
                failures.append(f"{sitemap_url} ({exc})")
                continue
            if articles:
                ctx.methods_used.append(f"Sitemap: {sitemap_url}")
                found.extend(articles)
                if first_only:
                    break
        if candidates and len(failures) == len(candidates):
            raise CollectionMethodError(
                f"all {len(candidates)} sitemaps failed, last: {failures[-1]}"
            )
        return found

    async def paginate_json_api(
        self,
        build_url: Callable[[int], str],
        extract: Callable[[Any], list[HistoricalArticle]],
        page_size: int,
        max_pages: int = 50,
    ) -> list[HistoricalArticle]:
        """Page-number pagination of a JSON content API.

        Stops on a short or empty page, HTTP 400 (past the last page) or the
        page cap. A failing first page propagates; transient errors on early
        pages are skipped.
        """
        items: list[HistoricalArticle] = []
        for page in range(1, max_pages + 1):
            try:
                data = await self.fetcher.fetch_json(build_url(page))
            except FetchError as exc:
                if page == 1:
                    raise
                if exc.status == 400:
                    break
                log.debug("%s: API page %d failed: %s", self.name, page, exc)
                if page < 5:
                    await asyncio.sleep(self.error_delay)
                    continue
                break

            batch = extract(data)
            if not batch:
                break
            items.extend(batch)
            if len(batch) < page_size:
                break
            await asyncio.sleep(self.delay)
        return items
