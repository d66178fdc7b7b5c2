from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class HistoricalArticle:
    """A single archived post normalised from any platform."""

    title: str
    url: str  # identity
    published_date: datetime
    description: str | None = None
    author: str | None = None
    date_inferred: bool = False  # published_date defaulted to "now"

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "published_date": self.published_date.isoformat(),
            "description": self.description,
            "author": self.author,
            "date_inferred": self.date_inferred,
        }


@dataclass(frozen=True)
class CollectionMetadata:
    platform_detected: str
    methods_used: list[str] = field(default_factory=list)
    total_time_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform_detected": self.platform_detected,
            "methods_used": list(self.methods_used),
            "total_time_ms": self.total_time_ms,
        }


@dataclass(frozen=True)
class AgentResult:
    """Outcome of one collector's collect() run."""

    success: bool
    articles: list[HistoricalArticle]
    strategy: str
    confidence: float
    errors: list[str] = field(default_factory=list)
    metadata: CollectionMetadata | None = None

    @property
    def articles_found(self) -> int:
        return len(self.articles)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "articles_found": self.articles_found,
            "strategy": self.strategy,
            "confidence": self.confidence,
            "errors": list(self.errors),
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "articles": [a.to_dict() for a in self.articles],
        }


@dataclass(frozen=True)
class PlatformIndicators:
    url_patterns: list[str]
    html_indicators: list[str]
    api_endpoints: list[str]
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "url_patterns": list(self.url_patterns),
            "html_indicators": list(self.html_indicators),
            "api_endpoints": list(self.api_endpoints),
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class AgentAnalysis:
    name: str
    confidence: float
    can_handle: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "confidence": self.confidence,
            "can_handle": self.can_handle,
        }


@dataclass(frozen=True)
class AnalysisResults:
    agents_analyzed: list[AgentAnalysis]
    selected_agent: str
    selection_reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "agents_analyzed": [a.to_dict() for a in self.agents_analyzed],
            "selected_agent": self.selected_agent,
            "selection_reason": self.selection_reason,
        }


@dataclass(frozen=True)
class NeedsAttention:
    """Advisory block attached when no specialised collector recognised the site."""

    reason: str
    suggestions: list[str]
    platform_analysis: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "reason": self.reason,
            "suggestions": list(self.suggestions),
            "platform_analysis": self.platform_analysis,
        }


@dataclass(frozen=True)
class OrchestrationResult(AgentResult):
    agent_used: str = ""
    analysis_results: AnalysisResults | None = None
    needs_attention: NeedsAttention | None = None

    @classmethod
    def from_agent_result(
        cls,
        result: AgentResult,
        agent_used: str,
        analysis_results: AnalysisResults | None = None,
        needs_attention: NeedsAttention | None = None,
        extra_errors: list[str] | None = None,
    ) -> OrchestrationResult:
        return cls(
            success=result.success,
            articles=result.articles,
            strategy=result.strategy,
            confidence=result.confidence,
            errors=[*(extra_errors or []), *result.errors],
            metadata=result.metadata,
            agent_used=agent_used,
            analysis_results=analysis_results,
            needs_attention=needs_attention,
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["agent_used"] = self.agent_used
        data["analysis_results"] = (
            self.analysis_results.to_dict() if self.analysis_results else None
        )
        data["needs_attention"] = (
            self.needs_attention.to_dict() if self.needs_attention else None
        )
        return data


@dataclass(frozen=True)
class Recommendation:
    agent: str
    reason: str
    should_create_specialized_agent: bool


@dataclass(frozen=True)
class AnalysisReport:
    """Result of analysis-only mode: ranking plus a recommendation, no collection."""

    url: str
    analysis_results: list[AgentAnalysis]
    recommendation: Recommendation

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "analysis_results": [a.to_dict() for a in self.analysis_results],
            "recommendation": {
                "agent": self.recommendation.agent,
                "reason": self.recommendation.reason,
                "should_create_specialized_agent": self.recommendation.should_create_specialized_agent,
            },
        }


@dataclass(frozen=True)
class CollectorInfo:
    name: str
    description: str
    indicators: PlatformIndicators

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "indicators": self.indicators.to_dict(),
        }
