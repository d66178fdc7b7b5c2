"""Picks the best collector for a URL and runs it.

Every registered collector scores the URL, the best one above the threshold
is verified against the live site, and the fallback collector steps in when
nothing matches, verification fails or the orchestration itself breaks.
"""

from __future__ import annotations

import asyncio
import logging
import time

from collectors.base import BaseCollector
from collectors.ghost import GhostCollector
from collectors.medium import MediumCollector
from collectors.naval import NavalCollector
from collectors.posthaven import PosthavenCollector
from collectors.substack import SubstackCollector
from collectors.universal import UniversalCollector
from collectors.vccircle import VCCircleCollector
from collectors.wordpress import WordPressCollector
from config.settings import settings
from core.fetch import ContentFetcher, HttpFetcher
from core.models import (
    AgentAnalysis,
    AnalysisReport,
    AnalysisResults,
    CollectorInfo,
    NeedsAttention,
    OrchestrationResult,
    Recommendation,
)
from core.text import hostname, normalize_input_url

log = logging.getLogger(__name__)

STRATEGY = "Collection Orchestrator"

UNKNOWN_PLATFORM_SUGGESTIONS = [
    "Consider creating a specialized agent for this platform",
    "Check if this is a known CMS that needs custom handling",
    "Analyze the platform's API documentation for better integration",
]

# hostname fragment -> platform name
_PLATFORM_HINTS = [
    ("wordpress", "WordPress"),
    ("medium", "Medium"),
    ("substack", "Substack"),
    ("ghost", "Ghost"),
    ("squarespace", "Squarespace"),
    ("wix", "Wix"),
    ("notion", "Notion"),
]


def default_collectors(fetcher: ContentFetcher | None = None, **options) -> list[BaseCollector]:
    """The standard registry, most specific first, fallback last."""
    fetcher = fetcher or HttpFetcher()
    return [
        NavalCollector(fetcher, **options),
        PosthavenCollector(fetcher, **options),
        VCCircleCollector(fetcher, **options),
        SubstackCollector(fetcher, **options),
        MediumCollector(fetcher, **options),
        WordPressCollector(fetcher, **options),
        GhostCollector(fetcher, **options),
        UniversalCollector(fetcher, **options),
    ]


def describe_platform(url: str) -> str:
    domain = hostname(url).lower()
    if not domain:
        return f"Platform analysis failed: no hostname in {url!r}"
    found = [name for fragment, name in _PLATFORM_HINTS if fragment in domain]
    if domain.startswith("blog."):
        found.append("Blog subdomain")
    if "/blog/" in url:
        found.append("Blog path")
    if found:
        return f"Potential platform indicators: {', '.join(found)}"
    return f"Custom domain ({domain}) - platform type unknown"


def selection_reason(collector: BaseCollector, confidence: float) -> str:
    reason = f"Highest confidence: {round(confidence * 100)}%"
    if collector.is_fallback:
        return reason + " (fallback agent)"
    if confidence > 0.8:
        return reason + " (high confidence match)"
    if confidence > 0.5:
        return reason + " (medium confidence match)"
    return reason + " (low confidence, may fallback)"


class CollectionOrchestrator:
    def __init__(
        self,
        collectors: list[BaseCollector] | None = None,
        fallback: BaseCollector | None = None,
        min_confidence: float | None = None,
        timeout: float | None = None,
    ) -> None:
        self.collectors = tuple(collectors if collectors is not None else default_collectors())
        self.fallback = fallback or next((c for c in self.collectors if c.is_fallback), None)
        if self.fallback is None:
            raise ValueError("CollectionOrchestrator needs a fallback collector")
        self.min_confidence = settings.MIN_CONFIDENCE if min_confidence is None else min_confidence
        self.timeout = timeout

    # ── analysis ───────────────────────────────────────────────────────────────

    async def analyze(self, url: str) -> list[tuple[BaseCollector, AgentAnalysis]]:
        """Score the URL with every collector, best first.

        Ties keep registry order. A collector whose scoring raises gets 0.
        """
        scored: list[tuple[BaseCollector, AgentAnalysis]] = []
        for collector in self.collectors:
            try:
                confidence = float(await collector.estimate_confidence(url))
            except Exception as e:
                log.warning("%s analysis failed: %s", collector.name, e)
                confidence = 0.0
            log.info("%s: %d%% confidence", collector.name, round(confidence * 100))
            scored.append(
                (
                    collector,
                    AgentAnalysis(
                        name=collector.name,
                        confidence=confidence,
                        can_handle=confidence > self.min_confidence,
                    ),
                )
            )
        scored.sort(key=lambda pair: pair[1].confidence, reverse=True)
        return scored

    def select(
        self, scored: list[tuple[BaseCollector, AgentAnalysis]]
    ) -> tuple[BaseCollector | None, str]:
        for collector, analysis in scored:
            if analysis.can_handle:
                reason = selection_reason(collector, analysis.confidence)
                log.info("Selected %s - %s", collector.name, reason)
                return collector, reason
        return None, "No agents can handle this URL"

    # ── collection ─────────────────────────────────────────────────────────────

    async def collect(self, url: str) -> OrchestrationResult:
        """Collect the archive behind ``url``. Never raises."""
        url = normalize_input_url(url)
        if self.timeout is None:
            return await self._collect_safely(url)
        try:
            return await asyncio.wait_for(self._collect_safely(url), timeout=self.timeout)
        except asyncio.TimeoutError:
            log.error("Collection for %s timed out after %.1fs", url, self.timeout)
            return self._terminal(
                "None (timed out)", [f"Collection timed out after {self.timeout:g}s"]
            )

    async def _collect_safely(self, url: str) -> OrchestrationResult:
        t0 = time.monotonic()
        try:
            result = await self._orchestrate(url)
        except Exception as e:
            log.error("Orchestrator failed for %s: %s", url, e)
            try:
                fallback_result = await self.fallback.collect(url)
            except Exception as fallback_error:
                log.error("Fallback failed for %s: %s", url, fallback_error)
                return self._terminal(
                    "None (total failure)",
                    [f"Orchestrator failed: {e}", f"Fallback failed: {fallback_error}"],
                )
            result = OrchestrationResult.from_agent_result(
                fallback_result,
                agent_used=f"{self.fallback.name} (emergency fallback)",
                extra_errors=[f"Orchestrator error: {e}"],
            )
        log.info(
            "Orchestration for %s finished in %dms: %s found %d articles",
            url, int((time.monotonic() - t0) * 1000), result.agent_used, result.articles_found,
        )
        return result

    async def _orchestrate(self, url: str) -> OrchestrationResult:
        scored = await self.analyze(url)
        analyses = [analysis for _, analysis in scored]
        selected, reason = self.select(scored)

        if selected is None:
            return await self._unknown_platform(url, analyses)

        if not selected.is_fallback and not await self._verified(selected, url):
            log.warning("%s verification failed for %s, using %s", selected.name, url, self.fallback.name)
            result = await self.fallback.collect(url)
            return OrchestrationResult.from_agent_result(
                result,
                agent_used=f"{selected.name} (failed) → {self.fallback.name}",
                analysis_results=AnalysisResults(
                    agents_analyzed=analyses,
                    selected_agent=selected.name,
                    selection_reason=f"{reason} (but verification failed, used fallback)",
                ),
            )

        result = await selected.collect(url)
        return OrchestrationResult.from_agent_result(
            result,
            agent_used=selected.name,
            analysis_results=AnalysisResults(
                agents_analyzed=analyses,
                selected_agent=selected.name,
                selection_reason=reason,
            ),
        )

    async def _verified(self, collector: BaseCollector, url: str) -> bool:
        try:
            return bool(await collector.verify(url))
        except Exception as e:
            log.warning("%s verification raised: %s", collector.name, e)
            return False

    async def _unknown_platform(
        self, url: str, analyses: list[AgentAnalysis]
    ) -> OrchestrationResult:
        log.warning("No specialised collector for %s, using %s", url, self.fallback.name)
        result = await self.fallback.collect(url)
        return OrchestrationResult.from_agent_result(
            result,
            agent_used=f"{self.fallback.name} (unknown platform)",
            analysis_results=AnalysisResults(
                agents_analyzed=analyses,
                selected_agent=self.fallback.name,
                selection_reason="No specialized agent available",
            ),
            needs_attention=NeedsAttention(
                reason="Unknown platform type detected",
                suggestions=list(UNKNOWN_PLATFORM_SUGGESTIONS),
                platform_analysis=describe_platform(url),
            ),
        )

    def _terminal(self, agent_used: str, errors: list[str]) -> OrchestrationResult:
        return OrchestrationResult(
            success=False,
            articles=[],
            strategy=STRATEGY,
            confidence=0.0,
            errors=errors,
            agent_used=agent_used,
        )

    # ── read-only views ────────────────────────────────────────────────────────

    async def analyze_only(self, url: str) -> AnalysisReport:
        url = normalize_input_url(url)
        scored = await self.analyze(url)
        selected, reason = self.select(scored)
        return AnalysisReport(
            url=url,
            analysis_results=[analysis for _, analysis in scored],
            recommendation=Recommendation(
                agent=selected.name if selected else "None",
                reason=reason,
                should_create_specialized_agent=selected is None or selected.is_fallback,
            ),
        )

    def list_collectors(self) -> list[CollectorInfo]:
        return [
            CollectorInfo(
                name=c.name,
                description=c.description,
                indicators=c.get_platform_indicators(),
            )
            for c in self.collectors
        ]
