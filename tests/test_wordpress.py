"""Tests for collectors/wordpress.py and the end-to-end WordPress path."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest
from conftest import FakeFetcher, rss

from collectors.orchestrator import CollectionOrchestrator, default_collectors
from collectors.wordpress import WordPressCollector, post_to_article

SITE = "https://myblog.wordpress.com"
API = f"{SITE}/wp-json/wp/v2/posts?per_page=100&page={{}}&status=publish&orderby=date&order=desc"


def _posts(start: int, count: int) -> list[dict]:
    return [
        {
            "id": i,
            "link": f"{SITE}/2023/01/post-{i}/",
            "title": {"rendered": f"Post &#8211; {i}"},
            "date_gmt": f"2023-01-{(i % 28) + 1:02d}T10:00:00",
            "excerpt": {"rendered": f"<p>Excerpt {i}</p>"},
        }
        for i in range(start, start + count)
    ]


def _collector(fetcher):
    return WordPressCollector(fetcher, delay=0, error_delay=0)


class TestConfidence:
    @pytest.mark.parametrize(
        "url, expected",
        [
            ("https://someone.wordpress.com", 0.95),
            ("https://example.com/wordpress-tips", 0.9),
            ("https://example.com/wp-content/x", 0.8),
            ("https://waitbutwhy.com", 0.8),
            ("https://example.com/2021/03/a-post/", 0.6),
            ("https://example.com/tag/python/", 0.6),
            ("https://blog.example.com", 0.5),
            ("https://example.com", 0.2),
        ],
    )
    def test_scores(self, url, expected):
        assert asyncio.run(_collector(FakeFetcher()).estimate_confidence(url)) == expected


class TestVerify:
    def test_rest_index(self):
        fetcher = FakeFetcher({f"{SITE}/wp-json/": {"namespaces": ["oembed/1.0", "wp/v2"]}})
        assert asyncio.run(_collector(fetcher).verify(SITE))

    def test_html_markers(self):
        html = '<link href="/wp-content/themes/x.css"><script src="/wp-includes/js/a.js"></script>'
        fetcher = FakeFetcher({SITE: html})
        assert asyncio.run(_collector(fetcher).verify(SITE))

    def test_single_marker_is_not_enough(self):
        fetcher = FakeFetcher({SITE: '<img src="/wp-content/a.png">'})
        assert not asyncio.run(_collector(fetcher).verify(SITE))


class TestCollect:
    def test_post_mapping(self):
        article = post_to_article(_posts(7, 1)[0], SITE)
        assert article.title == "Post – 7"
        assert article.description == "Excerpt 7"
        assert article.published_date == datetime(2023, 1, 8, 10, tzinfo=timezone.utc)

    def test_post_without_link_uses_id(self):
        article = post_to_article({"id": 42, "title": {"rendered": "X"}}, SITE)
        assert article.url == f"{SITE}/?p=42"
        assert article.date_inferred

    def test_feed_used_when_api_missing(self):
        fetcher = FakeFetcher({
            f"{SITE}/feed/": rss([("Hello", f"{SITE}/2022/02/hello/", "Tue, 01 Feb 2022 00:00:00 GMT")]),
        })
        result = asyncio.run(_collector(fetcher).collect(SITE))
        assert result.success
        assert [a.url for a in result.articles] == [f"{SITE}/2022/02/hello/"]
        assert f"RSS: {SITE}/feed/" in result.metadata.methods_used
        assert any(e.startswith("WordPress REST API:") for e in result.errors)
        assert any(f"{SITE}/feed/?paged=2" == u for u in fetcher.urls())

    def test_archive_page_fallback(self):
        archive = "".join(
            f'<li><a href="{SITE}/2020/0{m}/entry-{m}/">Entry number {m}</a> March {m}, 2020</li>'
            for m in range(1, 4)
        )
        fetcher = FakeFetcher({f"{SITE}/archives": archive})
        result = asyncio.run(_collector(fetcher).collect(SITE))
        assert result.articles_found == 3
        assert f"Archive: {SITE}/archives" in result.metadata.methods_used


class TestEndToEnd:
    def test_rest_api_across_page_boundary(self):
        fetcher = FakeFetcher({
            f"{SITE}/wp-json/": {"namespaces": ["wp/v2"]},
            API.format(1): _posts(0, 100),
            API.format(2): _posts(100, 20),
        })
        orch = CollectionOrchestrator(default_collectors(fetcher, delay=0, error_delay=0))
        result = asyncio.run(orch.collect(SITE))

        assert result.agent_used == "WordPress Agent"
        assert result.analysis_results.agents_analyzed[0].confidence >= 0.9
        assert result.success
        assert result.articles_found == 120
        assert len({a.url for a in result.articles}) == 120
        assert API.format(3) not in fetcher.urls()
        assert result.metadata.methods_used[0] == "WordPress REST API"
