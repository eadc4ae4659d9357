"""
Resolution Store service.

Durable, idempotent record of user decisions keyed by conflict id.

Failure semantics:
- Reads fail open: a store outage returns empty/False so conflicts show again
- Writes raise PersistenceUnavailable so the caller can decide what to block
"""

import logging
from datetime import timedelta
from typing import Any, Optional, Sequence, TypeVar, Union

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from conflict_engine.config import Settings, get_settings
from conflict_engine.exceptions import PersistenceUnavailable
from conflict_engine.models.conflicts import ConflictDetail
from conflict_engine.models.resolutions import ConflictResolution, ResolutionData, utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=ConflictDetail)


class ResolutionStore:
    """
    Persisted conflict resolutions backed by SQLAlchemy.

    Every operation opens its own session from the factory, so the store
    holds no state between calls.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the store.

        Args:
            session_factory: Async session factory (configured database if None)
            settings: Settings override (default TTL, history limit)
        """
        if session_factory is None:
            from conflict_engine.database import get_session_factory
            session_factory = get_session_factory()
        self._session_factory = session_factory
        self._settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def save_resolution(
        self,
        data: Union[ResolutionData, dict[str, Any]],
    ) -> ConflictResolution:
        """
        Upsert the resolution for data.conflict_id.

        A second save for the same conflict id overwrites the first.

        Raises:
            PersistenceUnavailable: If the backend rejected the write
        """
        if not isinstance(data, ResolutionData):
            data = ResolutionData(**data)

        expires_at = data.expires_at
        if expires_at is None and self._settings.resolution_ttl_hours:
            expires_at = utcnow() + timedelta(hours=self._settings.resolution_ttl_hours)

        values = {
            "conflict_type": data.conflict_type,
            "user_id": data.user_id,
            "resolution_type": data.resolution_type,
            "affected_event_ids": list(data.affected_event_ids),
            "resolution_data": dict(data.resolution_data),
            "conflict_message": data.conflict_message,
            "resolved_at": utcnow(),
            "expires_at": expires_at,
        }

        try:
            try:
                resolution = await self._upsert(data.conflict_id, values)
            except IntegrityError:
                # Lost an insert race on the unique conflict_id; the row exists now
                logger.debug(f"Concurrent insert for {data.conflict_id}, retrying as update")
                resolution = await self._upsert(data.conflict_id, values)
        except SQLAlchemyError as e:
            logger.error(f"Failed to save resolution for conflict {data.conflict_id}: {e}")
            raise PersistenceUnavailable(
                f"Could not save resolution for conflict {data.conflict_id}",
                original_error=e,
            ) from e

        logger.info(
            f"Saved {resolution.resolution_type} resolution for conflict {data.conflict_id}"
        )
        return resolution

    async def _upsert(self, conflict_id: str, values: dict[str, Any]) -> ConflictResolution:
        async with self._session_factory() as session:
            existing = await session.scalar(
                select(ConflictResolution).where(ConflictResolution.conflict_id == conflict_id)
            )
            if existing is None:
                resolution = ConflictResolution(conflict_id=conflict_id, **values)
                session.add(resolution)
            else:
                resolution = existing
                for name, value in values.items():
                    setattr(resolution, name, value)
            await session.commit()
            return resolution

    async def remove_resolution(self, conflict_id: str) -> None:
        """
        Forget the decision for a conflict whose shape changed.

        Removing an absent resolution is a no-op.
        """
        await self.remove_resolutions([conflict_id])

    async def remove_resolutions(self, conflict_ids: Sequence[str]) -> int:
        """
        Forget decisions for several conflicts.

        Returns:
            Number of rows removed

        Raises:
            PersistenceUnavailable: If the backend rejected the delete
        """
        if not conflict_ids:
            return 0
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(ConflictResolution).where(
                        ConflictResolution.conflict_id.in_(list(conflict_ids))
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to remove {len(conflict_ids)} resolutions: {e}")
            raise PersistenceUnavailable("Could not remove resolutions", original_error=e) from e

        logger.info(f"Removed {result.rowcount} of {len(conflict_ids)} requested resolutions")
        return result.rowcount

    async def remove_resolutions_for_event(self, event_id: str) -> int:
        """
        Forget decisions on every conflict an event takes part in.

        Matches conflict ids where the event is the proposal or the
        conflicting event. DELETE records are kept as history.

        Args:
            event_id: Event whose interval changed

        Returns:
            Number of rows removed

        Raises:
            PersistenceUnavailable: If the backend rejected the delete
        """
        conflict_id = ConflictResolution.conflict_id
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(ConflictResolution).where(
                        or_(
                            conflict_id.startswith(f"{event_id}:", autoescape=True),
                            conflict_id.contains(f":{event_id}:", autoescape=True),
                        ),
                        ConflictResolution.resolution_type != "DELETE",
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to remove resolutions for event {event_id}: {e}")
            raise PersistenceUnavailable("Could not remove resolutions", original_error=e) from e

        logger.info(f"Removed {result.rowcount} resolutions involving event {event_id}")
        return result.rowcount

    async def cleanup_expired(self) -> int:
        """
        Batch sweep of expired resolutions.

        Returns:
            Number of rows purged

        Raises:
            PersistenceUnavailable: If the backend rejected the delete
        """
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(ConflictResolution).where(ConflictResolution.expires_at < utcnow())
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to clean up expired resolutions: {e}")
            raise PersistenceUnavailable(
                "Could not clean up expired resolutions", original_error=e
            ) from e

        logger.info(f"Cleaned up {result.rowcount} expired resolutions")
        return result.rowcount

    # ------------------------------------------------------------------
    # Reads (fail open)
    # ------------------------------------------------------------------

    async def is_resolved(self, conflict_id: str) -> bool:
        """
        True iff a non-expired resolution exists.

        An expired resolution found here is deleted on the spot.
        """
        try:
            async with self._session_factory() as session:
                resolution = await session.scalar(
                    select(ConflictResolution).where(ConflictResolution.conflict_id == conflict_id)
                )
                if resolution is None:
                    return False
                if resolution.is_expired():
                    await session.delete(resolution)
                    await session.commit()
                    logger.debug(f"Purged expired resolution for conflict {conflict_id}")
                    return False
                return True
        except SQLAlchemyError as e:
            logger.warning(f"Resolution store unavailable, treating {conflict_id} as unresolved: {e}")
            return False

    async def get_resolution(self, conflict_id: str) -> Optional[ConflictResolution]:
        resolutions = await self.get_resolutions([conflict_id])
        return resolutions[0] if resolutions else None

    async def get_resolutions(self, conflict_ids: Sequence[str]) -> list[ConflictResolution]:
        """
        Batch fetch of live resolutions in one round trip.

        Expired rows found in the batch are purged.
        """
        if not conflict_ids:
            return []
        try:
            async with self._session_factory() as session:
                rows = (
                    await session.scalars(
                        select(ConflictResolution).where(
                            ConflictResolution.conflict_id.in_(list(conflict_ids))
                        )
                    )
                ).all()

                now = utcnow()
                expired = [r for r in rows if r.is_expired(now)]
                if expired:
                    for resolution in expired:
                        await session.delete(resolution)
                    await session.commit()
                    logger.debug(f"Purged {len(expired)} expired resolutions during batch read")

                return [r for r in rows if not r.is_expired(now)]
        except SQLAlchemyError as e:
            logger.warning(f"Resolution store unavailable, returning no resolutions: {e}")
            return []

    async def filter_resolved(self, conflicts: Sequence[T]) -> list[T]:
        """
        Drop conflicts with a live ACCEPT/OVERRIDE/RESCHEDULE resolution.

        DELETE resolutions do not suppress: a deleted event no longer shows
        up as a candidate, and one whose delete failed should resurface.
        """
        if not conflicts:
            return list(conflicts)

        resolutions = await self.get_resolutions([c.id for c in conflicts])
        suppressed = {
            r.conflict_id for r in resolutions if r.resolution_type != "DELETE"
        }
        logger.debug(
            f"Filtering {len(conflicts)} conflicts, {len(suppressed)} already resolved"
        )
        return [c for c in conflicts if c.id not in suppressed]

    async def history(self, limit: Optional[int] = None) -> list[ConflictResolution]:
        """
        Audit trail ordered by resolved_at, newest first.

        Args:
            limit: Maximum rows (settings.history_limit if None)
        """
        limit = limit if limit is not None else self._settings.history_limit
        try:
            async with self._session_factory() as session:
                rows = await session.scalars(
                    select(ConflictResolution)
                    .order_by(ConflictResolution.resolved_at.desc())
                    .limit(limit)
                )
                return list(rows.all())
        except SQLAlchemyError as e:
            logger.warning(f"Resolution store unavailable, returning empty history: {e}")
            return []
