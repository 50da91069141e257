"""Optimistic and confirmed mutations on loaded collections."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from meal_sync.domain.errors import InvalidOperation, NotFound, SyncError
from meal_sync.domain.records import is_derived_id, raw_derived_id
from meal_sync.domain.state import CollectionState
from meal_sync.services.cache import RecordCache
from meal_sync.services.fetch import MealRepository

_logger = logging.getLogger(__name__)


@dataclass
class OptimisticMutationManager:
    """Applies mutations locally and reconciles them with the remote source."""

    repository: MealRepository
    cache: RecordCache
    _in_flight: set[tuple[str, int | str]] = field(
        default_factory=set, init=False, repr=False
    )

    def is_pending(self, owner_id: str, record_id: int | str) -> bool:
        return (owner_id, record_id) in self._in_flight

    async def toggle_favorite(
        self,
        state: CollectionState,
        record_id: int | str,
        on_change: Callable[[], object] | None = None,
    ) -> bool:
        """Flip a favorite flag optimistically.

        Returns False when the request was dropped: derived records do not
        support favorites and a toggle already in flight for the same id wins.
        On remote failure the captured value is restored and the error is
        stored on ``state`` and re-raised.
        """
        owner_id = state.key.owner_id
        if is_derived_id(record_id):
            _logger.debug("Ignoring favorite toggle for derived meal %s", record_id)
            return False
        guard = (owner_id, record_id)
        if guard in self._in_flight:
            _logger.debug("Favorite toggle already pending for %s", record_id)
            return False
        current = state.find(record_id)
        if current is None:
            raise NotFound(f"Meal {record_id} not found")

        previous = current.favorite
        self._in_flight.add(guard)
        state.replace_record(replace(current, favorite=not previous))
        _notify(on_change)
        try:
            await self.repository.set_favorite(owner_id, record_id, not previous)
        except SyncError as exc:
            latest = state.find(record_id)
            if latest is not None:
                state.replace_record(replace(latest, favorite=previous))
            state.error = exc
            _notify(on_change)
            _logger.warning("Favorite toggle for %s rolled back: %s", record_id, exc)
            raise
        finally:
            self._in_flight.discard(guard)

        await self._invalidate(owner_id, None)
        return True

    async def delete_for_date(self, state: CollectionState) -> None:
        """Delete the planned meals of a dated collection.

        Derived records live in their own table and stay in place.
        """
        date = state.key.date
        if date is None:
            raise InvalidOperation("Only dated collections can be cleared by date")
        await self.repository.delete_plan_entries(state.key.owner_id, date)
        await self._invalidate(state.key.owner_id, date)
        state.records = [record for record in state.records if record.is_derived]

    async def delete_derived(
        self, state: CollectionState, record_id: int | str
    ) -> None:
        """Delete a derived record remotely, then drop it locally."""
        if state.find(record_id) is None:
            raise NotFound(f"Meal {record_id} not found")
        if not is_derived_id(record_id):
            raise InvalidOperation("Only scanned meals can be deleted individually")
        await self.repository.delete_derived_meal(
            state.key.owner_id, raw_derived_id(str(record_id))
        )
        await self._invalidate(state.key.owner_id, state.key.date)
        state.records = [record for record in state.records if record.id != record_id]

    async def _invalidate(self, owner_id: str, date: str | None) -> None:
        try:
            if date is None:
                await self.cache.invalidate(owner_id)
            else:
                await self.cache.invalidate_key(owner_id, date)
        except Exception:
            _logger.warning("Cache invalidation failed for %s", owner_id, exc_info=True)


def _notify(callback: Callable[[], object] | None) -> None:
    if callback is not None:
        callback()
