"""
Conflict insight ranking.

Computes per-conflict signals (client priority, revenue impact) and orders a
ConflictResult for display without touching the result itself.
"""

from dataclasses import dataclass, field
from typing import Literal, Optional

from conflict_engine.config import Settings, get_settings
from conflict_engine.integrations.base import ClientDirectory
from conflict_engine.models.conflicts import ConflictDetail, ConflictResult
from conflict_engine.models.events import Event

RankMode = Literal["priority", "timeline", "impact"]

RANK_MODES: tuple[str, ...] = ("priority", "timeline", "impact")


@dataclass
class RankingConfig:
    """Revenue rate table and client priority table used for ranking."""

    revenue_rates: dict[str, float] = field(default_factory=dict)
    default_revenue_rate: float = 75.0
    client_priorities: dict[str, int] = field(default_factory=dict)
    default_client_priority: int = 5
    high_value_client_threshold: int = 8
    revenue_insight_threshold: float = 200.0

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RankingConfig":
        settings = settings or get_settings()
        return cls(
            revenue_rates=dict(settings.revenue_rates),
            default_revenue_rate=settings.default_revenue_rate,
            client_priorities=dict(settings.client_priorities),
            default_client_priority=settings.default_client_priority,
            high_value_client_threshold=settings.high_value_client_threshold,
            revenue_insight_threshold=settings.revenue_insight_threshold,
        )


class InsightRanker:
    """
    Orders conflicts by priority, timeline or revenue impact.

    Sorting is stable, so ties keep the detector's input order.
    """

    def __init__(
        self,
        config: Optional[RankingConfig] = None,
        directory: Optional[ClientDirectory] = None,
    ):
        self.config = config or RankingConfig.from_settings()
        self.directory = directory

    def client_priority(self, client_name: Optional[str]) -> int:
        """Priority score for a client name, default mid-priority when absent."""
        if not client_name:
            return self.config.default_client_priority
        return self.config.client_priorities.get(client_name, self.config.default_client_priority)

    def event_client_priority(self, event: Event) -> int:
        """Client priority for an event, preferring the client directory tier."""
        if self.directory is not None and event.client_id:
            tier = self.directory.get_client_priority(event.client_id)
            if tier is not None:
                return tier
            name = event.client_name or self.directory.get_client_name(event.client_id)
            return self.client_priority(name)
        return self.client_priority(event.client_name)

    def rate(self, service_type: Optional[str]) -> float:
        if not service_type:
            return self.config.default_revenue_rate
        return self.config.revenue_rates.get(service_type, self.config.default_revenue_rate)

    def impact(self, detail: ConflictDetail) -> float:
        """
        Revenue estimate for a conflict.

        rate(service type) x duration in hours of the conflicting event
        (the proposal itself for business-rule conflicts).
        """
        event = detail.conflicting_event
        return self.rate(event.service_type) * max(0.0, event.duration_hours)

    def rank(self, result: ConflictResult, mode: RankMode = "priority") -> list[ConflictDetail]:
        """
        Return the result's conflicts in display order.

        Args:
            result: Detection result (not modified)
            mode: 'priority', 'timeline' or 'impact'

        Returns:
            New list of the same ConflictDetail objects

        Raises:
            ValueError: If mode is unknown
        """
        conflicts = list(result.conflicts)

        if mode == "priority":
            return sorted(
                conflicts,
                key=lambda c: (
                    -c.severity_rank,
                    -self.event_client_priority(c.conflicting_event),
                    -self.impact(c),
                ),
            )
        if mode == "timeline":
            return sorted(conflicts, key=lambda c: c.conflicting_event.start_time)
        if mode == "impact":
            return sorted(conflicts, key=lambda c: -self.impact(c))

        raise ValueError(f"Unknown rank mode: {mode!r} (expected one of {RANK_MODES})")

    def insight(self, detail: ConflictDetail) -> str:
        """Short reasons this conflict matters, joined with ' • '."""
        insights = []

        if self.event_client_priority(detail.conflicting_event) >= self.config.high_value_client_threshold:
            insights.append("High-value client")

        revenue = self.impact(detail)
        if revenue > self.config.revenue_insight_threshold:
            insights.append(f"${round(revenue)} revenue impact")

        if detail.severity == "critical":
            insights.append("Critical conflict")

        return " • ".join(insights)
