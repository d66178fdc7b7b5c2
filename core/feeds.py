"""RSS / Atom / RDF parsing and feed autodiscovery."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from urllib.parse import urljoin

import feedparser
from scrapling.parser import Selector

log = logging.getLogger(__name__)

_FEED_TYPES = (
    "application/rss+xml",
    "application/atom+xml",
    "application/rdf+xml",
    "application/feed+json",
)

_BLOCK_RE = re.compile(r"<(item|entry)\b[^>]*>(.*?)</\1>", re.IGNORECASE | re.DOTALL)
_CDATA_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)


@dataclass
class FeedEntry:
    title: str
    link: str
    published: str | None = None
    description: str | None = None
    author: str | None = None
    categories: list[str] = field(default_factory=list)
    enclosure: str | None = None


def looks_like_feed(text: str) -> bool:
    head = text[:2048].lower()
    return "<rss" in head or "<feed" in head or "<rdf:rdf" in head


def parse_feed(raw: bytes | str) -> list[FeedEntry]:
    """Parse a feed document into entries.

    Never raises: malformed or unrecognised input yields an empty list.
    """
    try:
        parsed = feedparser.parse(raw)
        entries = [e for e in (_from_feedparser(x) for x in parsed.entries) if e]
    except Exception as exc:
        log.debug("feedparser failed: %s", exc)
        entries = []

    if entries:
        return entries

    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    return _regex_entries(text)


def _from_feedparser(entry) -> FeedEntry | None:
    title = (entry.get("title") or "").strip()
    link = (entry.get("link") or "").strip()
    if not link:
        for candidate in entry.get("links", []):
            if candidate.get("href"):
                link = candidate["href"].strip()
                break
    if not title or not link:
        return None

    description = entry.get("summary") or entry.get("description")
    if not description and entry.get("content"):
        description = entry["content"][0].get("value")

    enclosure = None
    for enc in entry.get("enclosures", []):
        if enc.get("href"):
            enclosure = enc["href"]
            break

    return FeedEntry(
        title=title,
        link=link,
        published=entry.get("published") or entry.get("updated") or entry.get("dc_date"),
        description=description,
        author=entry.get("author") or None,
        categories=[t.get("term") for t in entry.get("tags", []) if t.get("term")],
        enclosure=enclosure,
    )


def _tag(block: str, *names: str) -> str | None:
    for name in names:
        m = re.search(
            rf"<{name}\b[^>]*>(.*?)</{name}>", block, re.IGNORECASE | re.DOTALL
        )
        if m:
            value = _CDATA_RE.sub(r"\1", m.group(1)).strip()
            if value:
                return value
    return None


def _regex_entries(text: str) -> list[FeedEntry]:
    # Lenient pass for feeds feedparser rejects (missing <channel>, bad encoding).
    entries: list[FeedEntry] = []
    for kind, block in _BLOCK_RE.findall(text):
        title = _tag(block, "title")
        link = _tag(block, "link")
        if not link:
            m = re.search(r"<link\b[^>]*href=[\"']([^\"']+)[\"']", block, re.IGNORECASE)
            link = m.group(1) if m else None
        if not title or not link:
            continue
        entries.append(
            FeedEntry(
                title=title,
                link=link.strip(),
                published=_tag(block, "pubDate", "published", "updated", "dc:date"),
                description=_tag(block, "description", "summary", "content:encoded", "content"),
                author=_tag(block, "dc:creator", "author"),
            )
        )
    return entries


def discover_feed_links(html: str, base_url: str) -> list[str]:
    """Feed URLs advertised via <link rel="alternate"> in a page head."""
    try:
        page = Selector(content=html, url=base_url)
    except Exception as exc:
        log.debug("Could not parse %s for feed links: %s", base_url, exc)
        return []

    links: list[str] = []
    for el in page.css('link[rel="alternate"]'):
        kind = (el.attrib.get("type") or "").lower()
        href = el.attrib.get("href")
        if href and kind in _FEED_TYPES:
            absolute = urljoin(base_url + "/", href)
            if absolute not in links:
                links.append(absolute)
    return links
