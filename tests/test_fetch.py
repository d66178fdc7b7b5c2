"""Tests for core/fetch.py: the httpx gateway and its stealth retry."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import httpx
import pytest

from core.fetch import FEED, JSON, FetchError, FetchResponse, HttpFetcher


def _transport(handler):
    return httpx.MockTransport(handler)


class TestHttpFetcher:
    def test_page_ok(self):
        seen = {}

        def handler(request):
            seen["ua"] = request.headers["user-agent"]
            return httpx.Response(200, content=b"<html>hi</html>", headers={"content-type": "text/html"})

        fetcher = HttpFetcher(transport=_transport(handler))
        resp = asyncio.run(fetcher.fetch("https://example.com/"))
        assert resp.status == 200
        assert resp.text == "<html>hi</html>"
        assert resp.content_type == "text/html"
        assert "Chrome" in seen["ua"]

    def test_feed_headers(self):
        seen = {}

        def handler(request):
            seen["accept"] = request.headers["accept"]
            return httpx.Response(200, content=b"<rss/>")

        asyncio.run(HttpFetcher(transport=_transport(handler)).fetch("https://example.com/feed", kind=FEED))
        assert "application/rss+xml" in seen["accept"]

    def test_not_found_raises(self):
        fetcher = HttpFetcher(transport=_transport(lambda r: httpx.Response(404)))
        with pytest.raises(FetchError) as info:
            asyncio.run(fetcher.fetch("https://example.com/missing"))
        assert info.value.status == 404
        assert str(info.value).startswith("HTTP 404")

    def test_timeout_raises_fetch_error(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        fetcher = HttpFetcher(transport=_transport(handler))
        with pytest.raises(FetchError) as info:
            asyncio.run(fetcher.fetch("https://example.com/"))
        assert info.value.status is None
        assert "timed out" in str(info.value)

    def test_invalid_json(self):
        fetcher = HttpFetcher(transport=_transport(lambda r: httpx.Response(200, content=b"<html>")))
        with pytest.raises(FetchError):
            asyncio.run(fetcher.fetch_json("https://example.com/api"))

    def test_non_utf8_is_replaced(self):
        fetcher = HttpFetcher(transport=_transport(lambda r: httpx.Response(200, content=b"caf\xe9")))
        assert asyncio.run(fetcher.fetch_text("https://example.com/")) == "caf�"


class TestStealthRetry:
    def test_blocked_page_retried(self):
        fetcher = HttpFetcher(stealth_fallback=True, transport=_transport(lambda r: httpx.Response(403)))
        rescued = FetchResponse("https://example.com/", 200, b"ok", "text/html")
        with patch.object(HttpFetcher, "_stealth_fetch", return_value=rescued) as stealth:
            resp = asyncio.run(fetcher.fetch("https://example.com/"))
        assert resp.content == b"ok"
        stealth.assert_called_once_with("https://example.com/")

    def test_disabled(self):
        fetcher = HttpFetcher(stealth_fallback=False, transport=_transport(lambda r: httpx.Response(429)))
        with patch.object(HttpFetcher, "_stealth_fetch") as stealth:
            with pytest.raises(FetchError):
                asyncio.run(fetcher.fetch("https://example.com/"))
        stealth.assert_not_called()

    def test_only_for_pages(self):
        fetcher = HttpFetcher(stealth_fallback=True, transport=_transport(lambda r: httpx.Response(503)))
        with patch.object(HttpFetcher, "_stealth_fetch") as stealth:
            with pytest.raises(FetchError):
                asyncio.run(fetcher.fetch("https://example.com/api", kind=JSON))
        stealth.assert_not_called()
