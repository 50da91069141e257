"""Flat meal list: the "My Meals" view state."""

import logging
from dataclasses import dataclass, field

from meal_sync.domain.errors import SyncError
from meal_sync.domain.filters import FilterSpec
from meal_sync.domain.state import (
    CollectionKey,
    CollectionState,
    CollectionView,
    FetchMode,
)
from meal_sync.services.fetch import FetchOrchestrator
from meal_sync.services.filters import FilterEngine, validate_filters
from meal_sync.services.mutations import OptimisticMutationManager
from meal_sync.services.persistence import FilterPersistence
from meal_sync.services.session import SessionProvider

_logger = logging.getLogger(__name__)


@dataclass
class MealCollectionService:
    """Public operations for a paginated, filterable meal list.

    Remote failures are stored on the collection and returned in the view's
    ``error``. Session and precondition failures are raised.
    """

    session: SessionProvider
    orchestrator: FetchOrchestrator
    engine: FilterEngine
    mutations: OptimisticMutationManager
    persistence: FilterPersistence
    view_name: str = "MyMeals"
    _state: CollectionState | None = field(default=None, init=False, repr=False)

    async def load_collection(self) -> CollectionView:
        """Initial load: cache first when no server-side filter is active."""
        state = await self._current_state()
        await self._fetch(state, FetchMode.INITIAL)
        return self._publish(state)

    async def refresh(self) -> CollectionView:
        """Reload page 0 from the remote source."""
        state = await self._current_state()
        await self._fetch(state, FetchMode.REFRESH)
        return self._publish(state)

    async def load_more(self) -> CollectionView:
        """Request the next page; a no-op while loading or at the end."""
        state = await self._current_state()
        await self._fetch(state, FetchMode.LOAD_MORE)
        return self._publish(state)

    async def apply_filters(self, spec: FilterSpec) -> CollectionView:
        """Validate and activate a filter spec.

        Raises:
            FilterValidationError: if a numeric bound is malformed.
        """
        validate_filters(spec)
        state = await self._current_state()
        pages_invalid = spec.categorical() != state.filters.categorical()
        state.filters = spec
        self.persistence.save(self.view_name, state.key.owner_id, spec)
        if pages_invalid:
            await self._refetch(state)
        return self._publish(state)

    async def set_search_query(self, query: str) -> CollectionView:
        """Change the free-text query; evaluated locally."""
        state = await self._current_state()
        state.filters = state.filters.with_query(query)
        self.persistence.save(self.view_name, state.key.owner_id, state.filters)
        return self._publish(state)

    async def clear_filters(self) -> CollectionView:
        """Reset every filter and the search query."""
        state = await self._current_state()
        pages_invalid = state.filters.has_categorical
        state.filters = FilterSpec()
        self.persistence.clear(self.view_name, state.key.owner_id)
        if pages_invalid:
            await self._refetch(state)
        return self._publish(state)

    async def toggle_favorite(self, record_id: int | str) -> CollectionView:
        """Flip a meal's favorite flag with rollback on failure.

        Raises:
            NotFound: if the meal is not loaded.
        """
        state = await self._current_state()
        try:
            await self.mutations.toggle_favorite(
                state, record_id, on_change=lambda: self.engine.refresh_visible(state)
            )
        except SyncError as exc:
            if state.error is not exc:
                raise
        return self._publish(state)

    async def view(self) -> CollectionView:
        """Return the current snapshot without fetching."""
        state = await self._current_state()
        return CollectionView.of(state)

    async def wait_idle(self) -> None:
        """Wait for pending backfill and persistence work."""
        await self.engine.debouncer.drain()
        await self.persistence.drain()

    def release(self) -> None:
        """Discard the collection, e.g. when the view unmounts."""
        self.engine.debouncer.cancel()
        self._state = None

    async def _current_state(self) -> CollectionState:
        owner_id = await self.session.current_user_id()
        if self._state is None or self._state.key.owner_id != owner_id:
            self.release()
            filters = await self.persistence.restore(self.view_name, owner_id)
            self._state = CollectionState(key=CollectionKey(owner_id), filters=filters)
        return self._state

    async def _refetch(self, state: CollectionState) -> None:
        self.orchestrator.pagination.reset(state.cursor)
        await self._fetch(state, FetchMode.INITIAL, supersede=True)

    async def _fetch(
        self, state: CollectionState, mode: FetchMode, *, supersede: bool = False
    ) -> None:
        try:
            await self.orchestrator.fetch(state, mode, supersede=supersede)
        except SyncError as exc:
            _logger.info("Surfacing %s for %s", exc.tag, state.key)

    def _publish(self, state: CollectionState) -> CollectionView:
        if state is self._state:

            async def backfill() -> None:
                if state is self._state:
                    await self._fetch(state, FetchMode.LOAD_MORE)
                    self._publish(state)

            self.engine.refresh_visible(state, backfill=backfill)
        return CollectionView.of(state)
