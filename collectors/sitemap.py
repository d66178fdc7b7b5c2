"""XML sitemap parsing and recursive sitemap-index traversal."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable
from urllib.parse import urljoin

from lxml import etree

from core.fetch import FEED, ContentFetcher
from core.models import HistoricalArticle
from core.text import hostname, looks_like_article, parse_date, title_from_slug

log = logging.getLogger(__name__)

MAX_DEPTH = 3

_BLOCK_RE = {
    "sitemap": re.compile(r"<sitemap\b[^>]*>(.*?)</sitemap>", re.IGNORECASE | re.DOTALL),
    "url": re.compile(r"<url\b[^>]*>(.*?)</url>", re.IGNORECASE | re.DOTALL),
}
_LOC_RE = re.compile(r"<loc>\s*(?:<!\[CDATA\[)?(.*?)(?:\]\]>)?\s*</loc>", re.IGNORECASE | re.DOTALL)
_LASTMOD_RE = re.compile(r"<lastmod>\s*(.*?)\s*</lastmod>", re.IGNORECASE | re.DOTALL)


@dataclass
class SitemapEntry:
    loc: str
    lastmod: str | None = None


@dataclass
class SitemapDocument:
    child_sitemaps: list[str] = field(default_factory=list)
    entries: list[SitemapEntry] = field(default_factory=list)


def _local(tag) -> str:
    if not isinstance(tag, str):
        return ""
    return etree.QName(tag).localname.lower()


def _child_text(el, name: str) -> str | None:
    for child in el:
        if _local(child.tag) == name and child.text:
            return child.text.strip()
    return None


def parse_sitemap(content: bytes | str) -> SitemapDocument:
    """Split a sitemap or sitemap index into child sitemap URLs and page entries."""
    raw = content.encode("utf-8") if isinstance(content, str) else content
    parser = etree.XMLParser(recover=True, resolve_entities=False, no_network=True, huge_tree=True)
    try:
        root = etree.fromstring(raw, parser)
    except etree.XMLSyntaxError:
        root = None

    if root is None:
        return _parse_with_regex(raw.decode("utf-8", errors="replace"))

    doc = SitemapDocument()
    for el in root:
        name = _local(el.tag)
        if name == "sitemap":
            loc = _child_text(el, "loc")
            if loc:
                doc.child_sitemaps.append(loc)
        elif name == "url":
            loc = _child_text(el, "loc")
            if loc:
                doc.entries.append(SitemapEntry(loc=loc, lastmod=_child_text(el, "lastmod")))
    return doc


def _parse_with_regex(text: str) -> SitemapDocument:
    doc = SitemapDocument()
    for block in _BLOCK_RE["sitemap"].findall(text):
        loc = _LOC_RE.search(block)
        if loc:
            doc.child_sitemaps.append(loc.group(1).strip())
    for block in _BLOCK_RE["url"].findall(text):
        loc = _LOC_RE.search(block)
        if not loc:
            continue
        lastmod = _LASTMOD_RE.search(block)
        doc.entries.append(
            SitemapEntry(loc=loc.group(1).strip(), lastmod=lastmod.group(1) if lastmod else None)
        )
    return doc


async def collect_sitemap(
    fetcher: ContentFetcher,
    sitemap_url: str,
    url_filter: Callable[[str], bool] = looks_like_article,
    title_fn: Callable[[str], str] = title_from_slug,
    max_depth: int = MAX_DEPTH,
) -> list[HistoricalArticle]:
    """Fetch a sitemap, expanding sitemap indexes, and turn its URLs into articles.

    Failure to fetch the top-level sitemap propagates; failures of child
    sitemaps inside an index are logged and skipped.
    """
    visited: set[str] = set()
    return await _walk(fetcher, sitemap_url, url_filter, title_fn, 0, max_depth, visited)


async def _walk(
    fetcher: ContentFetcher,
    sitemap_url: str,
    url_filter: Callable[[str], bool],
    title_fn: Callable[[str], str],
    depth: int,
    max_depth: int,
    visited: set[str],
) -> list[HistoricalArticle]:
    visited.add(sitemap_url)
    resp = await fetcher.fetch(sitemap_url, kind=FEED)
    doc = parse_sitemap(resp.content)
    author = hostname(sitemap_url)

    articles: list[HistoricalArticle] = []
    for entry in doc.entries:
        loc = urljoin(sitemap_url, entry.loc)
        if not url_filter(loc):
            continue
        published, inferred = parse_date(entry.lastmod)
        articles.append(
            HistoricalArticle(
                title=title_fn(loc),
                url=loc,
                published_date=published,
                author=author,
                date_inferred=inferred,
            )
        )

    for child in doc.child_sitemaps:
        child_url = urljoin(sitemap_url, child)
        if child_url in visited:
            continue
        if depth + 1 > max_depth:
            log.debug("Sitemap depth limit reached at %s", child_url)
            continue
        try:
            articles.extend(
                await _walk(fetcher, child_url, url_filter, title_fn, depth + 1, max_depth, visited)
            )
        except Exception as exc:
            log.warning("Child sitemap %s skipped: %s", child_url, exc)

    return articles
