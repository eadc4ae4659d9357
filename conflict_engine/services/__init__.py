"""
Service layer for the scheduling-conflict engine.

Provides:
- Interval arithmetic
- Business rules and conflict detection
- Insight ranking
- Resolution persistence and orchestration
- Drag/resize time mapping
"""

from conflict_engine.services.intervals import (
    duration_minutes,
    overlap_ratio,
    overlaps,
    validate_interval,
)

from conflict_engine.services.rules import (
    BlackoutPeriodRule,
    BufferRule,
    BusinessRule,
    PriorityClientLimitRule,
    ProposalRule,
    ResourceRule,
    RuleViolation,
    WorkDaysRule,
    WorkHoursRule,
    default_rules,
)

from conflict_engine.services.detector import ConflictDetector, SeverityPolicy

from conflict_engine.services.ranking import (
    InsightRanker,
    RankingConfig,
    RankMode,
    RANK_MODES,
)

from conflict_engine.services.resolution_store import ResolutionStore

from conflict_engine.services.orchestrator import (
    ActionOutcome,
    BatchReport,
    DuplicateActionSuppressed,
    ResolutionAction,
    ResolutionOrchestrator,
    ResolutionSession,
    RESOLUTION_ACTIONS,
)

from conflict_engine.services.time_mapper import (
    DropSlot,
    TimeMapping,
    map_drag_drop,
    map_resize,
    snap_time_to_interval,
)

from conflict_engine.services.engine import SchedulingConflictEngine

__all__ = [
    # Intervals
    "duration_minutes",
    "overlap_ratio",
    "overlaps",
    "validate_interval",
    # Rules
    "BlackoutPeriodRule",
    "BufferRule",
    "BusinessRule",
    "PriorityClientLimitRule",
    "ProposalRule",
    "ResourceRule",
    "RuleViolation",
    "WorkDaysRule",
    "WorkHoursRule",
    "default_rules",
    # Detection
    "ConflictDetector",
    "SeverityPolicy",
    # Ranking
    "InsightRanker",
    "RankingConfig",
    "RankMode",
    "RANK_MODES",
    # Resolutions
    "ResolutionStore",
    "ActionOutcome",
    "BatchReport",
    "DuplicateActionSuppressed",
    "ResolutionAction",
    "ResolutionOrchestrator",
    "ResolutionSession",
    "RESOLUTION_ACTIONS",
    # Time mapping
    "DropSlot",
    "TimeMapping",
    "map_drag_drop",
    "map_resize",
    "snap_time_to_interval",
    # Facade
    "SchedulingConflictEngine",
]
