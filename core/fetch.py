"""Content fetch gateway used by every collector.

Collectors never talk to httpx directly: they ask a :class:`ContentFetcher`
for a URL and get back raw bytes plus a content type, or a :class:`FetchError`.
Tests substitute a fake fetcher with canned responses.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx
from scrapling.fetchers import Fetcher

from config.settings import settings

log = logging.getLogger(__name__)

PAGE = "page"
FEED = "feed"
JSON = "json"

_ACCEPT = {
    PAGE: "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    FEED: "application/rss+xml, application/atom+xml, application/xml, text/xml, */*",
    JSON: "application/json, text/plain, */*",
}

_BLOCKED_STATUSES = {403, 429, 503}


class FetchError(Exception):
    """Transport failure or non-success HTTP status."""

    def __init__(self, url: str, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status
        self.message = message

    def __str__(self) -> str:
        if self.status is not None:
            return f"HTTP {self.status}: {self.message}"
        return self.message


@dataclass
class FetchResponse:
    url: str
    status: int
    content: bytes
    content_type: str = ""

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.text)


class ContentFetcher(ABC):
    @abstractmethod
    async def fetch(
        self, url: str, kind: str = PAGE, timeout: float | None = None
    ) -> FetchResponse:
        """Fetch a URL, raising FetchError on transport failure or bad status."""
        ...

    async def fetch_text(
        self, url: str, kind: str = PAGE, timeout: float | None = None
    ) -> str:
        return (await self.fetch(url, kind=kind, timeout=timeout)).text

    async def fetch_json(self, url: str, timeout: float | None = None) -> Any:
        resp = await self.fetch(url, kind=JSON, timeout=timeout)
        try:
            return resp.json()
        except ValueError as exc:
            raise FetchError(url, f"invalid JSON: {exc}", resp.status) from exc


class HttpFetcher(ContentFetcher):
    """httpx-backed fetcher with a Scrapling retry for bot-blocked pages."""

    def __init__(
        self,
        stealth_fallback: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._stealth_fallback = (
            settings.STEALTH_FALLBACK if stealth_fallback is None else stealth_fallback
        )
        self._transport = transport

    def _headers(self, kind: str) -> dict[str, str]:
        agent = settings.FEED_USER_AGENT if kind == FEED else settings.USER_AGENT
        return {
            "User-Agent": agent,
            "Accept": _ACCEPT.get(kind, _ACCEPT[PAGE]),
            "Accept-Language": "en-US,en;q=0.9",
        }

    def _timeout(self, kind: str, timeout: float | None) -> float:
        if timeout is not None:
            return timeout
        return settings.FEED_TIMEOUT if kind == FEED else settings.PAGE_TIMEOUT

    async def fetch(
        self, url: str, kind: str = PAGE, timeout: float | None = None
    ) -> FetchResponse:
        try:
            async with httpx.AsyncClient(
                headers=self._headers(kind),
                follow_redirects=True,
                timeout=self._timeout(kind, timeout),
                transport=self._transport,
            ) as client:
                resp = await client.get(url)
        except httpx.TimeoutException as exc:
            raise FetchError(url, "request timed out") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise FetchError(url, str(exc) or exc.__class__.__name__) from exc

        if resp.status_code in _BLOCKED_STATUSES and kind == PAGE and self._stealth_fallback:
            log.debug("%s answered %d, retrying with stealth fetcher", url, resp.status_code)
            return await asyncio.to_thread(self._stealth_fetch, url)

        if resp.status_code >= 400:
            raise FetchError(url, resp.reason_phrase or "request failed", resp.status_code)

        return FetchResponse(
            url=str(resp.url),
            status=resp.status_code,
            content=resp.content,
            content_type=resp.headers.get("content-type", ""),
        )

    def _stealth_fetch(self, url: str) -> FetchResponse:
        fetcher = Fetcher()
        try:
            page = fetcher.get(url, stealthy_headers=True, follow_redirects=True)
        except Exception as exc:
            raise FetchError(url, f"stealth fetch failed: {exc}") from exc
        if page.status >= 400:
            raise FetchError(url, "blocked", page.status)

        body = page.body
        if isinstance(body, str):
            body = body.encode("utf-8")
        return FetchResponse(
            url=url,
            status=page.status,
            content=body,
            content_type=page.headers.get("content-type", "") if page.headers else "",
        )
