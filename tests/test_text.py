"""Tests for core/text.py: dates, URL heuristics and deduplication."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from core.models import HistoricalArticle
from core.text import (
    dedupe_and_sort,
    looks_like_article,
    normalize_input_url,
    parse_date,
    strip_html,
    title_from_slug,
)


def _article(url: str, day: int) -> HistoricalArticle:
    return HistoricalArticle(
        title=url,
        url=url,
        published_date=datetime(2023, 1, day, tzinfo=timezone.utc),
    )


# ── Dates ──────────────────────────────────────────────────────────────────────


class TestParseDate:
    def test_rfc822_with_abbreviation(self):
        dt, inferred = parse_date("Mon, 01 May 2023 10:00:00 PST")
        assert not inferred
        assert dt == datetime(2023, 5, 1, 18, 0, tzinfo=timezone.utc)

    def test_iso_is_utc_aware(self):
        dt, _ = parse_date("2022-03-04T05:06:07+02:00")
        assert dt.tzinfo is not None
        assert dt.hour == 3

    def test_naive_date_assumed_utc(self):
        dt, _ = parse_date("2021-12-25")
        assert dt == datetime(2021, 12, 25, tzinfo=timezone.utc)

    def test_missing_value_is_inferred_now(self):
        before = datetime.now(timezone.utc)
        dt, inferred = parse_date(None)
        assert inferred
        assert dt - before < timedelta(seconds=5)

    def test_garbage_is_inferred(self):
        _, inferred = parse_date("not a date at all, sorry")
        assert inferred


# ── URLs ───────────────────────────────────────────────────────────────────────


class TestLooksLikeArticle:
    def test_dated_permalink(self):
        assert looks_like_article("https://example.com/2023/05/my-post/")

    def test_blog_marker(self):
        assert looks_like_article("https://example.com/blog/hello")

    def test_root_rejected(self):
        assert not looks_like_article("https://example.com/")

    def test_tag_page_rejected(self):
        assert not looks_like_article("https://example.com/tag/python/")

    def test_category_page_rejected(self):
        assert not looks_like_article("https://example.com/category/news/")

    def test_about_page_rejected(self):
        assert not looks_like_article("https://example.com/about/")


class TestUrlHelpers:
    def test_normalize_adds_scheme(self):
        assert normalize_input_url("example.com/") == "https://example.com"

    def test_normalize_keeps_scheme(self):
        assert normalize_input_url(" http://example.com/blog/ ") == "http://example.com/blog"

    def test_title_from_trailing_slash_slug(self):
        assert title_from_slug("https://example.com/2023/05/hello-big_world/") == "Hello Big World"

    def test_title_from_html_file(self):
        assert title_from_slug("https://paulgraham.com/startup-ideas.html") == "Startup Ideas"

    def test_untitled_for_root(self):
        assert title_from_slug("https://example.com/") == "Untitled Article"

    def test_strip_html_truncates(self):
        assert strip_html("<p>Hello &amp;   <b>world</b></p>", limit=7) == "Hello &..."


# ── Deduplication ──────────────────────────────────────────────────────────────


class TestDedupeAndSort:
    def test_first_occurrence_wins(self):
        first = _article("https://a.com/x", 1)
        dup = HistoricalArticle(title="other", url="https://a.com/x", published_date=first.published_date)
        result = dedupe_and_sort([first, dup])
        assert result == [first]

    def test_newest_first(self):
        result = dedupe_and_sort([_article("https://a.com/1", 1), _article("https://a.com/3", 3)])
        assert [a.url for a in result] == ["https://a.com/3", "https://a.com/1"]

    def test_idempotent(self):
        items = [_article(f"https://a.com/{i % 4}", i + 1) for i in range(10)]
        once = dedupe_and_sort(items)
        assert dedupe_and_sort(once) == once
        assert len({a.url for a in once}) == len(once) == 4
