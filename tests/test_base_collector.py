"""Tests for collectors/base.py: method loop, pagination policy and shared helpers."""

from __future__ import annotations

import asyncio

import pytest
from conftest import FakeFetcher, rss, urlset

from collectors.base import (
    BaseCollector,
    CollectionContext,
    CollectionMethodError,
    PaginationPolicy,
    build_article,
    paginated_url,
)
from core.fetch import FetchError
from core.models import PlatformIndicators

BASE = "https://example.com"


def _articles(*slugs: str, day: int = 1):
    return [
        build_article(title=s, url=f"{BASE}/{s}", published=f"2023-01-{day:02d}")
        for s in slugs
    ]


class StubCollector(BaseCollector):
    name = "Stub Agent"
    description = "Test double"
    platform = "Stub"

    def __init__(self, steps=None, **kwargs):
        kwargs.setdefault("fetcher", FakeFetcher())
        kwargs.setdefault("delay", 0)
        kwargs.setdefault("error_delay", 0)
        super().__init__(**kwargs)
        self.steps = steps or []

    async def estimate_confidence(self, url):
        return 0.5

    async def verify(self, url):
        return True

    def get_platform_indicators(self):
        return PlatformIndicators([], [], [], 0.5)

    def methods(self):
        return self.steps


def _method(result):
    async def run(ctx):
        if isinstance(result, Exception):
            raise result
        return result
    return run


# ── collect() ──────────────────────────────────────────────────────────────────


class TestCollect:
    def test_failure_overlap_and_dedup(self):
        collector = StubCollector([
            ("Broken", _method(RuntimeError("boom"))),
            ("Second", _method(_articles("a", "b", "c", "d", "e"))),
            ("Third", _method(_articles("d", "e", "f", day=2))),
        ])
        result = asyncio.run(collector.collect(BASE))
        assert result.success
        assert result.articles_found == 6
        assert result.errors == ["Broken: boom"]
        assert result.metadata.methods_used == ["Second", "Third"]
        assert result.metadata.platform_detected == "Stub"
        assert result.confidence == 0.9

    def test_articles_sorted_newest_first(self):
        collector = StubCollector([
            ("Old", _method(_articles("old", day=1))),
            ("New", _method(_articles("new", day=9))),
        ])
        result = asyncio.run(collector.collect(BASE))
        assert [a.url for a in result.articles] == [f"{BASE}/new", f"{BASE}/old"]

    def test_nothing_found(self):
        collector = StubCollector([("Empty", _method([]))])
        result = asyncio.run(collector.collect(BASE))
        assert not result.success
        assert result.confidence == 0.1
        assert result.errors == []

    def test_invalid_url(self):
        result = asyncio.run(StubCollector().collect("ftp://nowhere"))
        assert not result.success
        assert result.errors[0].startswith("Collection failed:")

    def test_method_detail_label_kept(self):
        async def detailed(ctx):
            ctx.methods_used.append("RSS: somewhere")
            return _articles("x")

        result = asyncio.run(StubCollector([("RSS", detailed)]).collect(BASE))
        assert result.metadata.methods_used == ["RSS: somewhere"]


# ── PaginationPolicy ───────────────────────────────────────────────────────────


class TestPaginationPolicy:
    def test_stops_after_consecutive_empty(self):
        calls = []

        async def page(n):
            calls.append(n)
            return [n] if n < 4 else []

        items = asyncio.run(PaginationPolicy(max_pages=20, delay=0, error_delay=0).run(page))
        assert items == [2, 3]
        assert calls == [2, 3, 4, 5, 6]

    def test_errors_count_as_empty(self):
        async def page(n):
            if n == 3:
                raise FetchError("u", "boom", 500)
            return [n] if n < 6 else []

        items = asyncio.run(PaginationPolicy(max_pages=20, delay=0, error_delay=0).run(page))
        assert items == [2, 4, 5]

    def test_respects_max_pages(self):
        async def page(n):
            return [n]

        items = asyncio.run(PaginationPolicy(max_pages=5, delay=0, error_delay=0).run(page))
        assert items == [2, 3, 4, 5]


# ── Shared helpers ─────────────────────────────────────────────────────────────


class TestHelpers:
    def test_paginated_url(self):
        assert paginated_url(f"{BASE}/feed", "paged", 3) == f"{BASE}/feed?paged=3"
        assert paginated_url(f"{BASE}/feed?x=1", "offset", 3) == f"{BASE}/feed?x=1&offset=20"

    def test_context_rejects_bad_scheme(self):
        with pytest.raises(ValueError):
            CollectionContext.for_url("javascript:alert(1)")

    def test_context_fields(self):
        ctx = CollectionContext.for_url("https://Example.com/blog/")
        assert ctx.url == "https://Example.com/blog"
        assert ctx.base_url == "https://Example.com"
        assert ctx.domain == "example.com"

    def test_feed_pagination_counts_only_new_urls(self):
        page1 = rss([(f"P{i}", f"{BASE}/p{i}", "Mon, 01 May 2023 10:00:00 GMT") for i in range(3)])
        page2 = rss([(f"P{i}", f"{BASE}/p{i}", "Mon, 01 May 2023 10:00:00 GMT") for i in range(3, 5)])
        fetcher = FakeFetcher({
            f"{BASE}/feed": page1,
            f"{BASE}/feed?page=2": page2,
            f"{BASE}/feed?page=3": page1,
        })
        collector = StubCollector(fetcher=fetcher)
        found = asyncio.run(collector.collect_feed_with_pagination(f"{BASE}/feed", max_pages=10))
        assert len(found) == 5
        assert not any("paged=" in u for u in fetcher.urls())

    def test_first_working_feed_all_failing(self):
        collector = StubCollector()
        ctx = CollectionContext.for_url(BASE)
        with pytest.raises(CollectionMethodError):
            asyncio.run(collector.first_working_feed(ctx, [f"{BASE}/rss", f"{BASE}/feed"]))

    def test_first_working_feed_records_url(self):
        fetcher = FakeFetcher({f"{BASE}/feed": rss([("A", f"{BASE}/a", "2023-01-01")])})
        ctx = CollectionContext.for_url(BASE)
        found = asyncio.run(
            StubCollector(fetcher=fetcher).first_working_feed(
                ctx, [f"{BASE}/rss", f"{BASE}/feed"], paginate=False
            )
        )
        assert [a.url for a in found] == [f"{BASE}/a"]
        assert ctx.methods_used == [f"RSS: {BASE}/feed"]

    def test_first_working_feed_filter_applies_per_feed(self):
        fetcher = FakeFetcher({
            f"{BASE}/rss": rss([("Tag", f"{BASE}/tag/x", "2023-01-01")]),
            f"{BASE}/feed": rss([("A", f"{BASE}/posts/a", "2023-01-01")]),
        })
        ctx = CollectionContext.for_url(BASE)
        found = asyncio.run(
            StubCollector(fetcher=fetcher).first_working_feed(
                ctx,
                [f"{BASE}/rss", f"{BASE}/feed"],
                article_filter=lambda a: "/posts/" in a.url,
            )
        )
        assert [a.url for a in found] == [f"{BASE}/posts/a"]
        assert ctx.methods_used == [f"RSS: {BASE}/feed"]

    def test_collect_sitemaps_first_only(self):
        fetcher = FakeFetcher({
            f"{BASE}/one.xml": urlset([f"{BASE}/2023/01/a/"]),
            f"{BASE}/two.xml": urlset([f"{BASE}/2023/01/b/"]),
        })
        ctx = CollectionContext.for_url(BASE)
        found = asyncio.run(
            StubCollector(fetcher=fetcher).collect_sitemaps(ctx, [f"{BASE}/one.xml", f"{BASE}/two.xml"])
        )
        assert [a.url for a in found] == [f"{BASE}/2023/01/a/"]
        assert ctx.methods_used == [f"Sitemap: {BASE}/one.xml"]

    def test_json_api_stops_on_short_page(self):
        fetcher = FakeFetcher({
            f"{BASE}/api?page=1": [{"u": i} for i in range(3)],
            f"{BASE}/api?page=2": [{"u": 3}],
        })
        collector = StubCollector(fetcher=fetcher)
        items = asyncio.run(collector.paginate_json_api(
            lambda p: f"{BASE}/api?page={p}",
            lambda data: _articles(*(f"n{d['u']}" for d in data)),
            page_size=3,
        ))
        assert len(items) == 4
        assert fetcher.urls() == [f"{BASE}/api?page=1", f"{BASE}/api?page=2"]

    def test_json_api_first_page_failure_raises(self):
        collector = StubCollector()
        with pytest.raises(FetchError):
            asyncio.run(collector.paginate_json_api(lambda p: f"{BASE}/api?page={p}", list, page_size=10))
