"""Tests for collectors/sitemap.py: parsing and index traversal."""

from __future__ import annotations

import asyncio

import pytest
from conftest import FakeFetcher, sitemap_index, urlset

from collectors.sitemap import collect_sitemap, parse_sitemap
from core.fetch import FetchError

BASE = "https://example.com"


def _child(n: int) -> str:
    posts = [f"{BASE}/2023/05/post-{n}-{i}/" for i in range(10)]
    noise = [f"{BASE}/tag/t{n}{i}/" for i in range(3)] + [f"{BASE}/category/c{n}{i}/" for i in range(2)]
    return urlset(posts + noise)


class TestParseSitemap:
    def test_urlset(self):
        doc = parse_sitemap(urlset([f"{BASE}/a/", f"{BASE}/b/"], lastmod="2022-01-02"))
        assert [e.loc for e in doc.entries] == [f"{BASE}/a/", f"{BASE}/b/"]
        assert doc.entries[0].lastmod == "2022-01-02"
        assert doc.child_sitemaps == []

    def test_index(self):
        doc = parse_sitemap(sitemap_index([f"{BASE}/s1.xml", f"{BASE}/s2.xml"]))
        assert doc.child_sitemaps == [f"{BASE}/s1.xml", f"{BASE}/s2.xml"]
        assert doc.entries == []

    def test_without_namespace(self):
        doc = parse_sitemap("<urlset><url><loc> https://x.com/p/ </loc></url></urlset>")
        assert [e.loc for e in doc.entries] == ["https://x.com/p/"]

    def test_garbage(self):
        doc = parse_sitemap(b"this is not xml")
        assert doc.entries == [] and doc.child_sitemaps == []


class TestCollectSitemap:
    def test_index_with_three_children(self):
        fetcher = FakeFetcher({
            f"{BASE}/sitemap.xml": sitemap_index([f"{BASE}/s{n}.xml" for n in range(3)]),
            **{f"{BASE}/s{n}.xml": _child(n) for n in range(3)},
        })
        articles = asyncio.run(collect_sitemap(fetcher, f"{BASE}/sitemap.xml"))
        assert len(articles) == 30
        assert all("/tag/" not in a.url and "/category/" not in a.url for a in articles)
        assert articles[0].author == "example.com"
        assert not articles[0].date_inferred

    def test_broken_child_is_skipped(self):
        fetcher = FakeFetcher({
            f"{BASE}/sitemap.xml": sitemap_index([f"{BASE}/s0.xml", f"{BASE}/missing.xml"]),
            f"{BASE}/s0.xml": _child(0),
        })
        articles = asyncio.run(collect_sitemap(fetcher, f"{BASE}/sitemap.xml"))
        assert len(articles) == 10

    def test_self_reference_not_revisited(self):
        fetcher = FakeFetcher({
            f"{BASE}/sitemap.xml": sitemap_index([f"{BASE}/sitemap.xml", f"{BASE}/s0.xml"]),
            f"{BASE}/s0.xml": _child(0),
        })
        asyncio.run(collect_sitemap(fetcher, f"{BASE}/sitemap.xml"))
        assert fetcher.urls().count(f"{BASE}/sitemap.xml") == 1

    def test_missing_root_raises(self):
        with pytest.raises(FetchError):
            asyncio.run(collect_sitemap(FakeFetcher(), f"{BASE}/sitemap.xml"))

    def test_custom_filter_and_titles(self):
        fetcher = FakeFetcher({
            f"{BASE}/sitemap.xml": urlset([f"{BASE}/p/first-post", f"{BASE}/about"]),
        })
        articles = asyncio.run(collect_sitemap(
            fetcher,
            f"{BASE}/sitemap.xml",
            url_filter=lambda u: "/p/" in u,
            title_fn=lambda u: "T:" + u.rsplit("/", 1)[-1],
        ))
        assert [(a.title, a.url) for a in articles] == [("T:first-post", f"{BASE}/p/first-post")]
