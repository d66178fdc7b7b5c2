"""nav.al podcast collector."""

from __future__ import annotations

from collectors.base import BaseCollector, CollectionContext, build_article
from core.models import HistoricalArticle, PlatformIndicators
from core.text import hostname

NAVAL_HOST = "nav.al"

# Slug -> title for episodes the site's feeds have been known to omit.
KNOWN_EPISODES: list[tuple[str, str]] = [
    ("rich", "Rich"),
    ("deutsch-files-iv", "The Deutsch Files IV"),
    ("deutsch-files-iii", "The Deutsch Files III"),
    ("deutsch-files-ii", "The Deutsch Files II"),
    ("deutsch-files-i", "The Deutsch Files I"),
    ("david-deutsch-2", "David Deutsch: Knowledge Creation and The Human Race, Part 2"),
    ("david-deutsch-1", "David Deutsch: Knowledge Creation and The Human Race, Part 1"),
    ("vitalik-2", "Vitalik: Ethereum, Part 2"),
    ("vitalik-1", "Vitalik: Ethereum, Part 1"),
    ("beginning-of-infinity-2", "The Beginning of Infinity, Part 2"),
    ("beginning-of-infinity-1", "The Beginning of Infinity, Part 1"),
    ("caveman", "To a Caveman Very Few Things Are Resources"),
    ("wealth", "How to Create Wealth"),
    ("angel", "Angel Investing"),
    ("specific-knowledge", "Specific Knowledge"),
    ("accountability", "Accountability"),
    ("leverage", "Leverage"),
    ("judgment", "Judgment"),
    ("happiness", "Happiness"),
    ("meditation", "Meditation"),
    ("reading", "Reading"),
    ("decision-making", "Decision Making"),
    ("live-happily", "Live Happily"),
    ("naval-podcast", "Naval Podcast"),
    ("startups", "Startups"),
    ("crypto", "Crypto"),
    ("philosophy", "Philosophy"),
    ("joe-rogan", "Joe Rogan Experience"),
    ("tim-ferriss", "Tim Ferriss Show"),
    ("knowledge-project", "Knowledge Project"),
]

EXTERNAL_FEEDS = [
    "https://feeds.transistor.fm/naval",
    "https://anchor.fm/s/19b7ac00/podcast/rss",
]


def _is_naval(url: str) -> bool:
    host = hostname(url).lower()
    return host == NAVAL_HOST or host.endswith("." + NAVAL_HOST)


class NavalCollector(BaseCollector):
    name = "Naval Agent"
    description = "Specialized agent for nav.al podcast content with advanced extraction techniques"
    platform = "Naval Podcast (nav.al)"
    result_confidence = 0.95

    async def estimate_confidence(self, url: str) -> float:
        return 0.95 if _is_naval(url) else 0.1

    async def verify(self, url: str) -> bool:
        return _is_naval(url)

    def get_platform_indicators(self) -> PlatformIndicators:
        return PlatformIndicators(
            url_patterns=["nav.al"],
            html_indicators=["Naval", "podcast", "Deutsch Files"],
            api_endpoints=["/rss", "/feed"],
            confidence=0.95,
        )

    def methods(self):
        # Feed entries carry real dates, so they go first and win deduplication.
        return [
            ("RSS", self._from_feeds),
            ("Known Episode Patterns", self._known_episodes),
        ]

    async def _from_feeds(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        candidates = [f"{ctx.base_url}/rss", f"{ctx.base_url}/feed", *EXTERNAL_FEEDS]
        found = await self.first_working_feed(ctx, candidates, paginate=False)
        for article in found:
            article.author = "Naval"
        return found

    async def _known_episodes(self, ctx: CollectionContext) -> list[HistoricalArticle]:
        return [
            build_article(
                title=title,
                url=f"{ctx.base_url}/{slug}",
                description="Podcast episode from Naval Ravikant",
                author="Naval",
            )
            for slug, title in KNOWN_EPISODES
        ]
