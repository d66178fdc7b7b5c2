from __future__ import annotations

import json

import pytest

from core.fetch import ContentFetcher, FetchError, FetchResponse


class FakeFetcher(ContentFetcher):
    """Canned responses keyed by exact URL.

    Values may be bytes/str bodies, dict/list (served as JSON), a
    ``FetchResponse``, or an exception instance to raise. Unknown URLs
    answer 404.
    """

    def __init__(self, responses: dict | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[tuple[str, str]] = []

    def add(self, url: str, value) -> None:
        self.responses[url] = value

    def urls(self) -> list[str]:
        return [url for url, _ in self.calls]

    async def fetch(self, url, kind="page", timeout=None):
        self.calls.append((url, kind))
        if url not in self.responses:
            raise FetchError(url, "Not Found", 404)
        value = self.responses[url]
        if isinstance(value, Exception):
            raise value
        if isinstance(value, FetchResponse):
            return value
        if isinstance(value, (dict, list)):
            return FetchResponse(url, 200, json.dumps(value).encode("utf-8"), "application/json")
        if isinstance(value, str):
            value = value.encode("utf-8")
        return FetchResponse(url, 200, value, "text/html")


def rss(items: list[tuple[str, str, str]], title: str = "Feed") -> str:
    """Minimal RSS 2.0 document from (title, link, pubDate) triples."""
    body = "".join(
        f"<item><title>{t}</title><link>{link}</link><pubDate>{date}</pubDate>"
        f"<description>About {t}</description></item>"
        for t, link, date in items
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?><rss version="2.0"><channel>'
        f"<title>{title}</title><link>https://example.com</link>{body}</channel></rss>"
    )


def urlset(locs: list[str], lastmod: str = "2023-05-01") -> str:
    entries = "".join(f"<url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>" for loc in locs)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</urlset>'
    )


def sitemap_index(locs: list[str]) -> str:
    entries = "".join(f"<sitemap><loc>{loc}</loc></sitemap>" for loc in locs)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</sitemapindex>'
    )


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def no_delay():
    """Collector keyword arguments that disable pagination sleeps."""
    return {"delay": 0, "error_delay": 0}
