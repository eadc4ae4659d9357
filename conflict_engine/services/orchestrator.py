"""
Resolution orchestration.

Executes user decisions on detected conflicts:
- Single-conflict immediate actions (accept, override, delete, reschedule)
- Bulk actions over a selection, deduplicated by conflicting event id
- Staged (reversible, no-I/O) deletions committed on explicit save

Every action persists its resolution(s) first and then runs against the
event repository. Batches run sequentially, one event id at a time, and
tolerate per-event failures.
"""

import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Literal, Optional, Sequence

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from conflict_engine.config import Settings, get_settings
from conflict_engine.exceptions import ActionFailure, ConflictNotFound
from conflict_engine.integrations.base import EventRepository
from conflict_engine.models.conflicts import (
    TRANSIENT_PROPOSAL_ID,
    ConflictDetail,
    ConflictResult,
)
from conflict_engine.models.events import Event
from conflict_engine.models.resolutions import ResolutionData
from conflict_engine.services.resolution_store import ResolutionStore

logger = logging.getLogger(__name__)

ResolutionAction = Literal["accept", "override", "delete", "reschedule"]

RESOLUTION_ACTIONS: tuple[str, ...] = ("accept", "override", "delete", "reschedule")

RescheduleHandler = Callable[[ConflictDetail], Awaitable[None]]


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, ActionFailure) and error.retryable


@dataclass
class DuplicateActionSuppressed:
    """Several selected conflicts collapsed into one action on the same event."""

    event_id: str
    conflict_ids: list[str]

    @property
    def collapsed(self) -> int:
        """Actions that were not issued because of the collapse."""
        return len(self.conflict_ids) - 1


@dataclass
class ActionOutcome:
    """Result of one action against one event."""

    event_id: str
    action: ResolutionAction
    conflict_ids: list[str]
    succeeded: bool
    error: Optional[str] = None


@dataclass
class BatchReport:
    """
    Per-event report of a batch run.

    succeeded/failed hold conflicting event ids. A batch is not atomic:
    callers may only retry the failed subset.
    """

    action: ResolutionAction
    requested: int = 0
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)
    suppressed: list[DuplicateActionSuppressed] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    outcomes: list[ActionOutcome] = field(default_factory=list)

    @property
    def duplicates_suppressed(self) -> int:
        return sum(s.collapsed for s in self.suppressed)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    def failed_conflict_ids(self) -> list[str]:
        """Conflict ids to resubmit when retrying the failed subset."""
        return [
            cid
            for outcome in self.outcomes
            if not outcome.succeeded
            for cid in outcome.conflict_ids
        ]


class ResolutionSession:
    """
    Caller-owned state for one conflict review.

    Holds the detection result, the bulk selection and staged deletions.
    Nothing here performs I/O; the orchestrator reads and clears it.
    """

    def __init__(self, proposed: Event, result: ConflictResult, user_id: Optional[str] = None):
        self.proposed = proposed
        self.result = result
        self.user_id = user_id
        self._selected: dict[str, None] = {}
        self._staged: dict[str, None] = {}
        self.needs_redetection = False

    @property
    def proposed_id(self) -> str:
        return self.proposed.id or TRANSIENT_PROPOSAL_ID

    # Selection

    @property
    def selected(self) -> list[str]:
        return list(self._selected)

    def select(self, conflict_id: str) -> None:
        if self.result.get(conflict_id) is None:
            raise ConflictNotFound(f"Conflict {conflict_id} is not part of this session")
        self._selected[conflict_id] = None

    def deselect(self, conflict_id: str) -> None:
        self._selected.pop(conflict_id, None)

    def toggle_selection(self, conflict_id: str) -> bool:
        """Flip selection; returns True if now selected."""
        if conflict_id in self._selected:
            self.deselect(conflict_id)
            return False
        self.select(conflict_id)
        return True

    def select_all(self) -> None:
        """Select every conflict that has an external event to act on."""
        self._selected = {
            c.id: None for c in self.result.conflicts if not c.is_self_conflict
        }

    def clear_selection(self) -> None:
        self._selected.clear()

    # Staging

    @property
    def staged_deletions(self) -> list[str]:
        return list(self._staged)

    def is_staged(self, event_id: str) -> bool:
        return event_id in self._staged

    def stage_deletion(self, event_id: str) -> None:
        if event_id == self.proposed.id:
            raise ValueError("The proposed event cannot be staged for deletion")
        self._staged[event_id] = None

    def unstage(self, event_id: str) -> None:
        self._staged.pop(event_id, None)

    def toggle_staged(self, event_id: str) -> bool:
        """Flip staging; returns True if now staged."""
        if event_id in self._staged:
            self.unstage(event_id)
            return False
        self.stage_deletion(event_id)
        return True

    def cancel(self) -> None:
        """Discard staged deletions and selection. No side effects."""
        self._staged.clear()
        self._selected.clear()

    # Result

    def conflicts_for_event(self, event_id: str) -> list[ConflictDetail]:
        return [c for c in self.result.conflicts if c.conflicting_event.id == event_id]

    def replace_result(self, result: ConflictResult) -> None:
        """Adopt a fresh detection result, dropping stale selection entries."""
        self.result = result
        live = {c.id for c in result.conflicts}
        self._selected = {cid: None for cid in self._selected if cid in live}
        self.needs_redetection = False


class ResolutionOrchestrator:
    """
    Executes resolutions against the Resolution Store and event repository.

    Holds no per-review state; everything session-specific lives in the
    ResolutionSession passed to each call.
    """

    def __init__(
        self,
        store: ResolutionStore,
        repository: EventRepository,
        on_reschedule: Optional[RescheduleHandler] = None,
        settings: Optional[Settings] = None,
        retry_wait: Optional[wait_base] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Resolution Store for decisions
            repository: External event store
            on_reschedule: Called for reschedule requests without a time patch
            settings: Settings override (retry policy)
            retry_wait: Wait strategy between retries (exponential if None)
        """
        self.store = store
        self.repository = repository
        self.on_reschedule = on_reschedule
        self._settings = settings or get_settings()
        self._retry_wait = retry_wait or wait_exponential(
            multiplier=1,
            min=1,
            max=self._settings.action_retry_max_wait_seconds,
        )

    # ------------------------------------------------------------------
    # Single conflict
    # ------------------------------------------------------------------

    async def resolve_one(
        self,
        session: ResolutionSession,
        conflict_id: str,
        action: ResolutionAction,
        patch: Optional[dict[str, Any]] = None,
    ) -> ActionOutcome:
        """
        Resolve one conflict immediately, bypassing staging.

        The resolution is persisted before the action runs, so a failed
        action still leaves the user's intent in the audit trail.

        Args:
            session: Review session holding the conflict
            conflict_id: Conflict to resolve
            action: 'accept', 'override', 'delete' or 'reschedule'
            patch: Field updates for a reschedule (e.g. from map_drag_drop)

        Returns:
            ActionOutcome for the conflicting event

        Raises:
            ConflictNotFound: If the conflict is not in the session
            PersistenceUnavailable: If the resolution could not be saved
            ActionFailure: If the event repository rejected the action
        """
        self._check_action(action)
        conflict = session.result.get(conflict_id)
        if conflict is None:
            raise ConflictNotFound(f"Conflict {conflict_id} is not part of this session")
        if action == "delete" and conflict.is_self_conflict:
            raise ValueError(f"Conflict {conflict_id} has no external event to delete")

        event_id = self._event_key(session, conflict)
        await self.store.save_resolution(
            self._resolution_for(session, conflict, action, f"{action}_immediate")
        )
        session.needs_redetection = True

        try:
            await self._execute(action, [conflict], patch)
        except ActionFailure as e:
            logger.error(f"{action} failed for event {event_id} (conflict {conflict_id}): {e}")
            raise

        logger.info(f"Resolved conflict {conflict_id} with {action} on event {event_id}")
        return ActionOutcome(
            event_id=event_id,
            action=action,
            conflict_ids=[conflict_id],
            succeeded=True,
        )

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    async def resolve_batch(
        self,
        session: ResolutionSession,
        conflict_ids: Sequence[str],
        action: ResolutionAction,
        audit_action: Optional[str] = None,
    ) -> BatchReport:
        """
        Resolve many conflicts with one action per unique conflicting event.

        Conflicts referencing the same event are grouped; each gets its own
        resolution record, but the event action runs exactly once. Events are
        processed sequentially and one failure never aborts the rest.

        Args:
            session: Review session holding the conflicts
            conflict_ids: Selected conflict ids
            action: Action applied to every selected conflict
            audit_action: Label stored in resolution_data['action']

        Returns:
            BatchReport with per-event success/failure
        """
        self._check_action(action)
        report = BatchReport(action=action, requested=len(conflict_ids))
        audit_action = audit_action or f"bulk_{action}"

        groups: dict[str, list[ConflictDetail]] = {}
        for conflict_id in dict.fromkeys(conflict_ids):
            conflict = session.result.get(conflict_id)
            if conflict is None:
                logger.warning(f"Skipping unknown conflict {conflict_id}")
                report.skipped.append(conflict_id)
                continue
            if action == "delete" and conflict.is_self_conflict:
                logger.warning(f"Skipping delete of self-conflict {conflict_id}")
                report.skipped.append(conflict_id)
                continue
            groups.setdefault(self._event_key(session, conflict), []).append(conflict)

        for event_id, conflicts in groups.items():
            if len(conflicts) > 1:
                report.suppressed.append(
                    DuplicateActionSuppressed(event_id=event_id, conflict_ids=[c.id for c in conflicts])
                )

        logger.info(
            f"Bulk {action}: {len(conflict_ids)} conflicts selected, "
            f"{len(groups)} unique events, {report.duplicates_suppressed} duplicate actions suppressed"
        )

        for index, (event_id, conflicts) in enumerate(groups.items(), start=1):
            ids = [c.id for c in conflicts]
            try:
                for conflict in conflicts:
                    await self.store.save_resolution(
                        self._resolution_for(session, conflict, action, audit_action)
                    )
                await self._execute(action, conflicts, None)
            except Exception as e:
                logger.error(
                    f"Failed {action} {index}/{len(groups)} for event {event_id}: {e}",
                    exc_info=not isinstance(e, ActionFailure),
                )
                report.failed.append(event_id)
                report.failures[event_id] = str(e)
                report.outcomes.append(
                    ActionOutcome(event_id, action, ids, succeeded=False, error=str(e))
                )
                continue

            report.succeeded.append(event_id)
            report.outcomes.append(ActionOutcome(event_id, action, ids, succeeded=True))
            logger.debug(
                f"Completed {action} {index}/{len(groups)} for event {event_id} "
                f"(resolved {len(ids)} conflicts)"
            )

        session.clear_selection()
        session.needs_redetection = True
        for event_id in report.succeeded:
            session.unstage(event_id)

        logger.info(
            f"Bulk {action} finished: {len(report.succeeded)}/{report.total} events succeeded"
        )
        return report

    async def resolve_selected(
        self,
        session: ResolutionSession,
        action: ResolutionAction,
    ) -> BatchReport:
        """Run resolve_batch over the session's current selection."""
        return await self.resolve_batch(session, session.selected, action)

    async def execute_staged(
        self,
        session: ResolutionSession,
        on_save: Optional[Callable[[], Any]] = None,
    ) -> BatchReport:
        """
        Commit staged deletions, then run the caller's save action.

        Every conflict in the result that references a staged event is
        resolved as DELETE; each staged event is deleted once.

        Args:
            session: Review session with staged deletions
            on_save: Sync or async callable invoked after the deletions

        Returns:
            BatchReport for the staged deletions
        """
        staged = session.staged_deletions
        conflict_ids = [
            c.id
            for event_id in staged
            for c in session.conflicts_for_event(event_id)
            if not c.is_self_conflict
        ]
        orphaned = [e for e in staged if not session.conflicts_for_event(e)]
        if orphaned:
            logger.warning(f"Staged events without conflicts ignored: {orphaned}")

        report = await self.resolve_batch(
            session, conflict_ids, "delete", audit_action="staged_delete_event"
        )
        session.cancel()

        if on_save is not None:
            saved = on_save()
            if inspect.isawaitable(saved):
                await saved
        return report

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_action(action: str) -> None:
        if action not in RESOLUTION_ACTIONS:
            raise ValueError(f"Unknown resolution action: {action!r}")

    @staticmethod
    def _event_key(session: ResolutionSession, conflict: ConflictDetail) -> str:
        if conflict.is_self_conflict:
            return session.proposed_id
        return str(conflict.conflicting_event.id)

    def _resolution_for(
        self,
        session: ResolutionSession,
        conflict: ConflictDetail,
        action: ResolutionAction,
        audit_action: str,
    ) -> ResolutionData:
        event = conflict.conflicting_event
        if action == "delete":
            resolution_type = "DELETE"
        elif action == "reschedule":
            resolution_type = "RESCHEDULE"
        elif action == "override" or conflict.is_self_conflict:
            resolution_type = "OVERRIDE"
        else:
            resolution_type = "ACCEPT"

        payload: dict[str, Any] = {
            "action": audit_action,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "user_choice": action,
            "conflicting_event_title": event.title,
            "proposed_event_title": session.proposed.title,
        }
        if action == "delete":
            payload["deleted_event_id"] = event.id
            payload["deleted_event_title"] = event.title

        return ResolutionData(
            conflict_id=conflict.id,
            conflict_type=conflict.type,
            resolution_type=resolution_type,
            affected_event_ids=[self._event_key(session, conflict), session.proposed_id],
            user_id=session.user_id,
            resolution_data=payload,
            conflict_message=conflict.message,
        )

    async def _execute(
        self,
        action: ResolutionAction,
        conflicts: list[ConflictDetail],
        patch: Optional[dict[str, Any]],
    ) -> None:
        """Run the single event action for a group of conflicts."""
        if action in ("accept", "override"):
            # The persisted resolution is the whole action
            return

        conflict = conflicts[0]
        if action == "reschedule" and patch is None:
            if self.on_reschedule is not None:
                await self.on_reschedule(conflict)
            return

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.action_max_attempts),
            wait=self._retry_wait,
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await self._call_repository(action, str(conflict.conflicting_event.id), patch)

    async def _call_repository(
        self,
        action: ResolutionAction,
        event_id: str,
        patch: Optional[dict[str, Any]],
    ) -> None:
        try:
            if action == "delete":
                deleted = await self.repository.delete_event(event_id)
                if deleted is False:
                    raise ActionFailure(f"Event store refused to delete {event_id}", event_id=event_id)
            else:
                await self.repository.update_event(event_id, patch or {})
        except ActionFailure as e:
            if e.event_id is None:
                e.event_id = event_id
            raise
        except Exception as e:
            raise ActionFailure(
                f"{action} of event {event_id} failed: {e}",
                event_id=event_id,
                original_error=e,
            ) from e
