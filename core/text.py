"""Text, date and URL helpers shared by every collector."""

from __future__ import annotations

import html
import re
from datetime import datetime, timedelta, timezone
from urllib.parse import urlparse

from dateutil.parser import parse as _parse_date

from core.models import HistoricalArticle

# Common timezone abbreviations seen in feed dates
TZINFOS = {
    "EST": timezone(timedelta(hours=-5)),
    "EDT": timezone(timedelta(hours=-4)),
    "CST": timezone(timedelta(hours=-6)),
    "CDT": timezone(timedelta(hours=-5)),
    "MST": timezone(timedelta(hours=-7)),
    "MDT": timezone(timedelta(hours=-6)),
    "PST": timezone(timedelta(hours=-8)),
    "PDT": timezone(timedelta(hours=-7)),
    "GMT": timezone.utc,
    "UTC": timezone.utc,
    "BST": timezone(timedelta(hours=1)),
    "IST": timezone(timedelta(hours=5, minutes=30)),
}

_MONTH_YEAR_RE = re.compile(r"([A-Za-z]+)\s+(\d{4})")
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")
_YEAR_SEGMENT_RE = re.compile(r"/\d{4}/")
_TRAILING_SLUG_RE = re.compile(r"/[^/]+/$")

_ARTICLE_MARKERS = ("/post/", "/blog/", "/article/", "/essays/", "/writing/")

# Path segments that mark listing/navigation pages rather than content.
_NAV_SEGMENTS = frozenset({
    "tag", "tags", "category", "categories", "author", "authors", "page",
    "feed", "search", "wp-content", "wp-admin", "wp-includes", "cdn-cgi",
})
_NAV_LEAVES = frozenset({
    "about", "contact", "privacy", "terms", "subscribe", "login",
    "archive", "archives",
})


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_date(value: str | None) -> tuple[datetime, bool]:
    """Parse a loosely formatted date.

    Tries a full parse first, then a "Month Year" partial date (first of the
    month), and finally falls back to the current time.

    Returns ``(datetime, inferred)`` where ``inferred`` is True only when the
    value could not be parsed at all.
    """
    if not value or not str(value).strip():
        return now_utc(), True

    text = str(value).strip()
    default = datetime(now_utc().year, 1, 1)
    try:
        return _as_utc(_parse_date(text, tzinfos=TZINFOS, default=default)), False
    except (ValueError, OverflowError):
        pass

    match = _MONTH_YEAR_RE.search(text)
    if match:
        month, year = match.groups()
        try:
            return _as_utc(_parse_date(f"{month} 1, {year}")), False
        except (ValueError, OverflowError):
            pass

    return now_utc(), True


def date_from_timestamp(value: str | int | float | None) -> tuple[datetime, bool]:
    """Unix seconds to an aware datetime, with the same fallback as parse_date."""
    try:
        return datetime.fromtimestamp(float(value), tz=timezone.utc), False
    except (TypeError, ValueError, OverflowError, OSError):
        return now_utc(), True


def clean_text(text: str | None) -> str:
    if not text:
        return ""
    return _WS_RE.sub(" ", html.unescape(text)).strip()


def strip_html(text: str | None, limit: int | None = None) -> str:
    """Drop tags, decode entities and collapse whitespace."""
    if not text:
        return ""
    cleaned = clean_text(_TAG_RE.sub(" ", text))
    if limit is not None and len(cleaned) > limit:
        cleaned = cleaned[:limit].rstrip() + "..."
    return cleaned


def hostname(url: str) -> str:
    try:
        return urlparse(url).hostname or ""
    except ValueError:
        return ""


def origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def normalize_input_url(url: str) -> str:
    url = (url or "").strip()
    if url and "://" not in url:
        url = f"https://{url}"
    return url.rstrip("/")


def title_from_slug(url: str) -> str:
    path = urlparse(url).path
    parts = path.split("/")
    slug = parts[-1] or (parts[-2] if len(parts) > 1 else "")
    slug = re.sub(r"\.(html|php)$", "", slug)
    title = re.sub(r"[-_]", " ", slug).strip()
    title = re.sub(r"\b\w", lambda m: m.group(0).upper(), title)
    return title or "Untitled Article"


def looks_like_article(url: str) -> bool:
    """Heuristic: does this URL point at a content page rather than navigation?"""
    try:
        path = urlparse(url).path
    except ValueError:
        return False
    if not path or path == "/":
        return False

    segments = [s.lower() for s in path.split("/") if s]
    if any(s in _NAV_SEGMENTS for s in segments):
        return False
    if segments and segments[-1] in _NAV_LEAVES:
        return False

    if any(marker in path for marker in _ARTICLE_MARKERS):
        return True
    return bool(_YEAR_SEGMENT_RE.search(path) or _TRAILING_SLUG_RE.search(path))


def dedupe_and_sort(articles: list[HistoricalArticle]) -> list[HistoricalArticle]:
    """First occurrence per URL wins; newest first, ties keep input order."""
    seen: set[str] = set()
    unique: list[HistoricalArticle] = []
    for article in articles:
        if article.url in seen:
            continue
        seen.add(article.url)
        unique.append(article)
    unique.sort(key=lambda a: a.published_date, reverse=True)
    return unique
