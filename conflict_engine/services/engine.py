"""
Scheduling conflict engine facade.

Single entry point for the scheduling UI: detection, ranking, resolution
and drag/resize mapping wired to one store and one event repository.
"""

import logging
from datetime import timedelta
from typing import Any, Optional, Sequence

from conflict_engine.config import Settings, get_settings
from conflict_engine.integrations.base import ClientDirectory, EventRepository
from conflict_engine.models.conflicts import ConflictDetail, ConflictResult
from conflict_engine.models.events import Event
from conflict_engine.services.detector import ALTERNATIVE_WINDOW_HOURS, ConflictDetector
from conflict_engine.services.orchestrator import (
    ActionOutcome,
    BatchReport,
    RescheduleHandler,
    ResolutionAction,
    ResolutionOrchestrator,
    ResolutionSession,
)
from conflict_engine.services.ranking import InsightRanker, RankingConfig, RankMode
from conflict_engine.services.resolution_store import ResolutionStore
from conflict_engine.services.rules import BusinessRule
from conflict_engine.services.time_mapper import (
    DropSlot,
    ResizeEdge,
    TimeMapping,
    map_drag_drop,
    map_resize,
)

logger = logging.getLogger(__name__)


class SchedulingConflictEngine:
    """
    Facade over detector, ranker, store and orchestrator.

    Stateless between calls apart from the Resolution Store; review state
    lives in the ResolutionSession objects it hands out.
    """

    def __init__(
        self,
        repository: EventRepository,
        store: Optional[ResolutionStore] = None,
        detector: Optional[ConflictDetector] = None,
        ranker: Optional[InsightRanker] = None,
        directory: Optional[ClientDirectory] = None,
        on_reschedule: Optional[RescheduleHandler] = None,
        settings: Optional[Settings] = None,
    ):
        self._settings = settings or get_settings()
        self.repository = repository
        self.store = store or ResolutionStore(settings=self._settings)
        self.detector = detector or ConflictDetector(settings=self._settings)
        self.ranker = ranker or InsightRanker(
            RankingConfig.from_settings(self._settings), directory=directory
        )
        self.orchestrator = ResolutionOrchestrator(
            self.store,
            repository,
            on_reschedule=on_reschedule,
            settings=self._settings,
        )

    async def load_candidates(self, proposed: Event) -> Sequence[Event]:
        """Events around the proposal, wide enough for alternative slots."""
        padding = timedelta(hours=ALTERNATIVE_WINDOW_HOURS)
        return await self.repository.list_events(
            proposed.start_time - padding,
            proposed.end_time + padding,
        )

    async def detect_conflicts(
        self,
        proposed: Event,
        candidates: Optional[Sequence[Event]] = None,
        rules: Optional[Sequence[BusinessRule]] = None,
    ) -> ConflictResult:
        """
        Detect unresolved conflicts for a proposal.

        Args:
            proposed: Event being checked
            candidates: Existing events (loaded from the repository if None)
            rules: Business rules (detector defaults if None)
        """
        if candidates is None:
            candidates = await self.load_candidates(proposed)
        return await self.detector.detect_with_resolutions(proposed, candidates, self.store, rules)

    def rank_conflicts(self, result: ConflictResult, mode: RankMode = "priority") -> list[ConflictDetail]:
        return self.ranker.rank(result, mode)

    async def open_session(
        self,
        proposed: Event,
        candidates: Optional[Sequence[Event]] = None,
        user_id: Optional[str] = None,
    ) -> ResolutionSession:
        """Detect and wrap the result in a fresh review session."""
        result = await self.detect_conflicts(proposed, candidates)
        return ResolutionSession(proposed, result, user_id=user_id)

    async def refresh(
        self,
        session: ResolutionSession,
        candidates: Optional[Sequence[Event]] = None,
        rules: Optional[Sequence[BusinessRule]] = None,
    ) -> ConflictResult:
        """Re-run detection after actions so the session reflects the new world."""
        result = await self.detect_conflicts(session.proposed, candidates, rules)
        session.replace_result(result)
        return result

    async def resolve_one(
        self,
        session: ResolutionSession,
        conflict_id: str,
        action: ResolutionAction,
        patch: Optional[dict[str, Any]] = None,
    ) -> ActionOutcome:
        return await self.orchestrator.resolve_one(session, conflict_id, action, patch)

    async def resolve_batch(
        self,
        session: ResolutionSession,
        conflict_ids: Sequence[str],
        action: ResolutionAction,
    ) -> BatchReport:
        return await self.orchestrator.resolve_batch(session, conflict_ids, action)

    def map_drag_drop(self, event: Event, from_slot: DropSlot, to_slot: DropSlot) -> TimeMapping:
        return map_drag_drop(event, from_slot, to_slot)

    def map_resize(self, event: Event, edge: ResizeEdge, new_time) -> TimeMapping:
        return map_resize(
            event,
            edge,
            new_time,
            snap_minutes=self._settings.resize_snap_minutes,
            min_duration_minutes=self._settings.min_event_duration_minutes,
        )

    async def preview_move(
        self,
        event: Event,
        mapping: TimeMapping,
        candidates: Optional[Sequence[Event]] = None,
    ) -> ConflictResult:
        """
        Conflict-check an event at its mapped time without persisting anything.

        Stored resolutions are not applied: they were recorded against the
        event's current interval and do not cover the new one.
        """
        moved = mapping.apply_to(event)
        if candidates is None:
            candidates = await self.load_candidates(moved)
        others = [c for c in candidates if c.id is None or c.id != event.id]
        return self.detector.detect(moved, others)

    async def commit_move(
        self,
        event: Event,
        mapping: TimeMapping,
        candidates: Optional[Sequence[Event]] = None,
    ) -> tuple[ConflictResult, Optional[Event]]:
        """
        Persist a move only if the re-check allows it.

        Before the event is updated, resolutions recorded for conflicts it
        takes part in are removed so they cannot hide conflicts at the new
        time.

        Returns:
            (conflict result, updated event or None when blocked)

        Raises:
            PersistenceUnavailable: If stale resolutions could not be removed;
                the event is not moved
        """
        result = await self.preview_move(event, mapping, candidates)
        if not result.can_proceed:
            logger.info(
                f"Move of event {event.id} blocked by "
                f"{len(result.critical_conflicts)} critical conflicts"
            )
            return result, None

        await self.store.remove_resolutions_for_event(str(event.id))
        updated = await self.repository.update_event(str(event.id), mapping.to_patch())
        return result, updated
