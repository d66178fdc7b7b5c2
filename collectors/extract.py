"""Pure HTML extraction functions.

Every extractor takes ``(html, base_url)`` and returns a list of
:class:`ArticleCandidate`. Platform-specific regexes are kept as ordered
tables of :class:`ExtractionPattern`; collectors pick a table and a policy
(first matching pattern only, result limit, title validation).
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import urljoin

from scrapling.parser import Selector

from core.models import HistoricalArticle
from core.text import (
    clean_text,
    date_from_timestamp,
    hostname,
    origin,
    parse_date,
    strip_html,
    title_from_slug,
)

log = logging.getLogger(__name__)

_I = re.IGNORECASE
_IS = re.IGNORECASE | re.DOTALL

_MONTHS = "January|February|March|April|May|June|July|August|September|October|November|December"
_MON = "Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec"

_CONTEXT_DATE_PATTERNS = [
    re.compile(r"\d{4}-\d{2}-\d{2}"),
    re.compile(rf"\b\d{{1,2}}\s+(?:{_MON})[a-z]*\.?\s+\d{{4}}", _I),
    re.compile(rf"\b(?:{_MON})[a-z]*\.?\s+\d{{1,2}},?\s+\d{{4}}", _I),
]

_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", _I)
_STYLE_RE = re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", _I)
_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_HEADING_RE = re.compile(r"<h[1-6][^>]*>([^<]+)</h[1-6]>", _I)


@dataclass(frozen=True)
class ExtractionPattern:
    name: str
    regex: re.Pattern
    url_group: int = 1
    title_group: int | None = 2


@dataclass
class ArticleCandidate:
    title: str
    url: str
    published: str | None = None
    description: str | None = None
    author: str | None = None

    def to_article(self, default_author: str | None = None) -> HistoricalArticle:
        published_date, inferred = parse_date(self.published)
        return HistoricalArticle(
            title=self.title,
            url=self.url,
            published_date=published_date,
            description=self.description or None,
            author=self.author or default_author or hostname(self.url),
            date_inferred=inferred,
        )


# ── pattern tables ─────────────────────────────────────────────────────────────

SUBSTACK_ARCHIVE_PATTERNS = [
    ExtractionPattern(
        "Direct Title Links",
        re.compile(r'<h[1-6][^>]*>\s*<a[^>]*href="([^"]*/p/[^"]*)"[^>]*>([^<]+)</a>\s*</h[1-6]>', _I),
    ),
    ExtractionPattern(
        "Article Containers",
        re.compile(r'<article[^>]*>.*?<a[^>]*href="([^"]*/p/[^"]*)"[^>]*>.*?<h[1-6][^>]*>([^<]+)</h[1-6]>', _IS),
    ),
    ExtractionPattern(
        "Post Title Divs",
        re.compile(r'<div[^>]*class="[^"]*post-title[^"]*"[^>]*>.*?<a[^>]*href="([^"]*/p/[^"]*)"[^>]*>([^<]+)</a>', _IS),
    ),
    ExtractionPattern(
        "Post Preview Containers",
        re.compile(r'<div[^>]*class="[^"]*post-preview[^"]*"[^>]*>.*?<a[^>]*href="([^"]*/p/[^"]*)"[^>]*>.*?<h[1-6][^>]*>([^<]+)</h[1-6]>', _IS),
    ),
]

SUBSTACK_MAIN_PAGE_PATTERNS = [
    ExtractionPattern(
        "Post Links",
        re.compile(r'<a[^>]*href="([^"]*/p/[^"]*)"[^>]*>.*?<h[1-6][^>]*>([^<]+)</h[1-6]>', _IS),
    ),
    ExtractionPattern(
        "Heading Links",
        re.compile(r'<h[1-6][^>]*>\s*<a[^>]*href="([^"]*/p/[^"]*)"[^>]*>([^<]+)</a>\s*</h[1-6]>', _I),
    ),
    ExtractionPattern(
        "Generic Article Links",
        re.compile(r'<a[^>]*href="([^"]*(?:/article/|/post/|/\d{4}/)[^"]*)"[^>]*>\s*([^<]{20,100})<', _I),
    ),
]

WORDPRESS_ARCHIVE_PATTERNS = [
    ExtractionPattern(
        "Dated Post Links",
        re.compile(r'<a[^>]*href="([^"]*/\d{4}/\d{2}/[^"]*)"[^>]*>([^<]+)</a>', _I),
    ),
    ExtractionPattern(
        "Post Class Links",
        re.compile(r'<a[^>]*href="([^"]*)"[^>]*class="[^"]*(?:post|article|entry)[^"]*"[^>]*>([^<]+)</a>', _I),
    ),
    ExtractionPattern(
        "Archive List Items",
        re.compile(r'<li[^>]*>\s*<a[^>]*href="([^"]*)"[^>]*>([^<]+)</a>.*?(?:\d{4}|\w+\s+\d{1,2},?\s+\d{4})', _I),
    ),
    ExtractionPattern(
        "Heading Links",
        re.compile(r'<h\d[^>]*>\s*<a[^>]*href="([^"]*)"[^>]*>([^<]+)</a>\s*</h\d>', _I),
    ),
]

MEDIUM_ARCHIVE_PATTERNS = [
    ExtractionPattern(
        "Medium Links",
        re.compile(r'<a[^>]*href="([^"]*medium\.com[^"]*)"[^>]*>.*?<h[1-6][^>]*>([^<]+)</h[1-6]>', _IS),
    ),
    ExtractionPattern(
        "Heading Then Link",
        re.compile(r'<h[1-6][^>]*>([^<]+)</h[1-6]>.*?<a[^>]*href="([^"]*)"[^>]*>', _IS),
        url_group=2,
        title_group=1,
    ),
]

_NAVAL_TITLES = "Files|David Deutsch|Vitalik|Beginning of Infinity|Caveman"

LISTING_PATTERNS = [
    ExtractionPattern(
        "Episode Heading Links",
        re.compile(rf'<h[1-6][^>]*>\s*<a[^>]*href="([^"]*)"[^>]*>([^<]+(?:{_NAVAL_TITLES})[^<]*)</a>\s*</h[1-6]>', _I),
    ),
    ExtractionPattern(
        "Episode Linked Headings",
        re.compile(rf'<a[^>]*href="([^"]*)"[^>]*>\s*<h[1-6][^>]*>([^<]+(?:{_NAVAL_TITLES})[^<]*)</h[1-6]>\s*</a>', _I),
    ),
    ExtractionPattern(
        "Post Containers",
        re.compile(r'<div[^>]*class="[^"]*post[^"]*"[^>]*>.*?<a[^>]*href="([^"]*)"[^>]*>.*?<h[1-6][^>]*>([^<]+)</h[1-6]>', _IS),
    ),
    ExtractionPattern("Essay Links", re.compile(r'<a[^>]+href="([^"]*/essays/[^"]*)"[^>]*>', _I), title_group=None),
    ExtractionPattern("Article Links", re.compile(r'<a[^>]+href="([^"]*/articles/[^"]*)"[^>]*>', _I), title_group=None),
    ExtractionPattern("Content Links", re.compile(r'<a[^>]+href="([^"]*/content/[^"]*)"[^>]*>', _I), title_group=None),
    ExtractionPattern(
        "Dated Links",
        re.compile(r'<a[^>]+href="([^"]*(?:/\d{4}/|/\d{2}/|/article/|/post/|/essay/)[^"]*)"[^>]*>', _I),
        title_group=None,
    ),
    ExtractionPattern(
        "Relative Content Links",
        re.compile(r'<a[^>]+href="(/[^"]*(?:essay|article|post|content)[^"]*)"[^>]*>', _I),
        title_group=None,
    ),
    ExtractionPattern(
        "Episode Links",
        re.compile(r'<a[^>]+href="([^"]*(?:episode|podcast|audio)[^"]*)"[^>]*>', _I),
        title_group=None,
    ),
    ExtractionPattern(
        "Heading Links",
        re.compile(r'<h[1-6][^>]*>\s*<a[^>]*href="([^"]*)"[^>]*>([^<]{10,100})</a>\s*</h[1-6]>', _I),
    ),
]

_INVALID_TITLES = [
    re.compile(p, _I)
    for p in (
        r"^share$",
        r"^share this post$",
        r"^share this$",
        r"^like$",
        r"^comment$",
        r"^subscribe$",
        r"^read more$",
        r"^continue reading$",
        rf"^(?:{_MONTHS})$",
        r"^\d{4}$",
        r"^get \d+% off$",
        r"^upgrade to paid$",
    )
]

_LISTING_NOISE = ("subscribe", "archive", "twitter", "instagram")


def is_valid_listing_title(title: str) -> bool:
    """Reject UI strings (share buttons, month headers, bare years) posing as titles."""
    title = (title or "").strip()
    if len(title) < 3:
        return False
    return not any(p.search(title) for p in _INVALID_TITLES)


def is_valid_page_title(title: str) -> bool:
    """Looser check for generic listing pages: length bounds plus navigation noise."""
    lowered = title.lower()
    return (
        3 < len(title) < 200
        and "..." not in title
        and not any(word in lowered for word in _LISTING_NOISE)
    )


# ── helpers ────────────────────────────────────────────────────────────────────


def strip_scripts(html: str) -> str:
    html = _SCRIPT_RE.sub("", html)
    html = _STYLE_RE.sub("", html)
    return _COMMENT_RE.sub("", html)


def resolve_url(base_url: str, href: str) -> str | None:
    href = (href or "").strip()
    if not href or href.startswith(("#", "javascript:", "mailto:", "tel:")):
        return None
    return urljoin(base_url, href)


def find_context_date(html: str, start: int, end: int, window: int = 300) -> str | None:
    """First recognisable date within ``window`` characters around a match."""
    context = html[max(0, start - window):min(len(html), end + window)]
    for pattern in _CONTEXT_DATE_PATTERNS:
        m = pattern.search(context)
        if m:
            return m.group(0)
    return None


def _context_title(html: str, start: int, url: str) -> str:
    context = html[max(0, start - 200):start + 200]
    m = _HEADING_RE.search(context)
    if m and clean_text(m.group(1)):
        return clean_text(m.group(1))
    return title_from_slug(url)


def extract_with_patterns(
    html: str,
    base_url: str,
    patterns: list[ExtractionPattern],
    *,
    first_match_only: bool = False,
    limit: int | None = None,
    title_validator: Callable[[str], bool] | None = None,
    url_filter: Callable[[str], bool] | None = None,
    context_dates: bool = True,
) -> list[ArticleCandidate]:
    """Run a pattern table over ``html`` in priority order.

    With ``first_match_only`` the first pattern that yields any candidate wins
    and later patterns are skipped.
    """
    found: list[ArticleCandidate] = []
    for pattern in patterns:
        matched = 0
        for m in pattern.regex.finditer(html):
            if limit is not None and len(found) >= limit:
                break
            url = resolve_url(base_url, m.group(pattern.url_group))
            if not url:
                continue
            if pattern.title_group is not None:
                title = strip_html(m.group(pattern.title_group))
            else:
                title = _context_title(html, m.start(), url)
            if not title:
                continue
            if title_validator and not title_validator(title):
                continue
            if url_filter and not url_filter(url):
                continue
            found.append(
                ArticleCandidate(
                    title=title,
                    url=url,
                    published=find_context_date(html, m.start(), m.end()) if context_dates else None,
                )
            )
            matched += 1
        log.debug("pattern %s matched %d candidates", pattern.name, matched)
        if first_match_only and matched:
            break
    return found


# ── structured extractors ──────────────────────────────────────────────────────


def extract_posthaven_posts(html: str, base_url: str) -> list[ArticleCandidate]:
    """``<article class="post">`` containers: ``h2 > a`` title, body excerpt, unix date."""
    page = Selector(content=html, url=base_url)
    posts: list[ArticleCandidate] = []
    for el in page.css('article[class*="post"]'):
        links = el.css("h2 a")
        if not links:
            continue
        link = links[0]
        url = resolve_url(base_url, link.attrib.get("href", ""))
        title = clean_text(link.get_all_text(separator=" ", strip=True))
        if not url or not title:
            continue

        description = None
        body = el.css(".posthaven-post-body")
        if body:
            description = strip_html(body[0].get_all_text(separator=" ", strip=True), limit=200)

        published = None
        stamped = el.css("[data-unix-time]")
        if stamped:
            unix = stamped[0].attrib.get("data-unix-time", "")
            if unix.isdigit():
                published = date_from_timestamp(int(unix))[0].isoformat()

        posts.append(ArticleCandidate(title=title, url=url, published=published, description=description))
    return posts


_NEXT_DATA_RE = re.compile(r'<script id="__NEXT_DATA__" type="application/json">(.*?)</script>', re.DOTALL)
_JSON_LD_RE = re.compile(r'<script[^>]*type=["\']application/ld\+json["\'][^>]*>(.*?)</script>', _IS)
_LINK_RE = re.compile(r'<a[^>]*href=["\']([^"\']*)["\'][^>]*>([^<]*)</a>', _I)

_NEWS_URL_EXCLUDES = (
    "/pro/", "/events", "/subscription", "/about", "/contact", "/privacy",
    "/terms", "javascript:", "mailto:", "tel:", "#", "/search", "/tag/", "/category/",
)


def _dig(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def extract_next_data_articles(html: str, base_url: str) -> list[ArticleCandidate]:
    """Next.js ``__NEXT_DATA__`` payload: ``props.pageProps.data.latest_articles``."""
    m = _NEXT_DATA_RE.search(html)
    if not m:
        return []
    try:
        payload = json.loads(m.group(1))
    except ValueError as exc:
        log.debug("Unparseable __NEXT_DATA__ on %s: %s", base_url, exc)
        return []

    items = _dig(payload, "props", "pageProps", "data", "latest_articles") or []
    found: list[ArticleCandidate] = []
    for item in items:
        if not isinstance(item, dict) or not item.get("title") or not item.get("slug"):
            continue
        found.append(
            ArticleCandidate(
                title=strip_html(item["title"]),
                url=f"{origin(base_url)}/{item['slug'].lstrip('/')}",
                published=item.get("publish"),
                description=strip_html(item.get("summary")) or None,
            )
        )
    return found


def extract_json_ld_items(html: str, base_url: str) -> list[ArticleCandidate]:
    """``ItemList`` entries from JSON-LD blocks."""
    found: list[ArticleCandidate] = []
    for raw in _JSON_LD_RE.findall(html):
        try:
            data = json.loads(raw)
        except ValueError:
            continue
        for block in data if isinstance(data, list) else [data]:
            if not isinstance(block, dict) or block.get("@type") != "ItemList":
                continue
            for item in block.get("itemListElement") or []:
                if not isinstance(item, dict) or item.get("@type") != "ListItem":
                    continue
                if not item.get("url") or not item.get("name"):
                    continue
                found.append(
                    ArticleCandidate(
                        title=strip_html(item["name"]),
                        url=urljoin(base_url, item["url"]),
                        description=strip_html(item.get("description")) or None,
                    )
                )
    return found


def extract_article_blocks(html: str, base_url: str) -> list[ArticleCandidate]:
    """Generic ``<article>`` elements: first heading, first link, first paragraph."""
    page = Selector(content=html, url=base_url)
    found: list[ArticleCandidate] = []
    for el in page.css("article"):
        headings = el.css("h1, h2, h3, h4, h5, h6")
        links = el.css("a[href]")
        if not headings or not links:
            continue
        title = clean_text(headings[0].get_all_text(separator=" ", strip=True))
        url = resolve_url(base_url, links[0].attrib.get("href", ""))
        if not title or not url or "#" in url:
            continue
        paragraphs = el.css("p")
        description = clean_text(paragraphs[0].get_all_text(separator=" ", strip=True)) if paragraphs else None
        block_text = el.get_all_text(separator=" ", strip=True)
        found.append(
            ArticleCandidate(
                title=title,
                url=url,
                published=find_context_date(block_text, 0, len(block_text)),
                description=description or None,
            )
        )
    return found


def is_news_article_url(url: str, domain: str) -> bool:
    return (
        not any(marker in url for marker in _NEWS_URL_EXCLUDES)
        and domain in url
        and len(url) > 30
    )


def extract_news_links(html: str, base_url: str, limit: int = 20) -> list[ArticleCandidate]:
    """Last resort: plain anchors with a sentence-length label on the same site."""
    domain = hostname(base_url)
    found: list[ArticleCandidate] = []
    for href, label in _LINK_RE.findall(html)[:limit]:
        title = clean_text(label)
        url = resolve_url(base_url, href)
        if not url or len(title) <= 10 or not is_news_article_url(url, domain):
            continue
        found.append(ArticleCandidate(title=title, url=url))
    return found


def extract_news_page(html: str, base_url: str) -> list[ArticleCandidate]:
    """Financial-news listing page: embedded data first, then markup."""
    found = extract_next_data_articles(html, base_url) + extract_json_ld_items(html, base_url)
    if found:
        return found
    found = extract_article_blocks(html, base_url)
    if found:
        return found
    return extract_news_links(html, base_url)
