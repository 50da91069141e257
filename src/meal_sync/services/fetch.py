"""Fetch orchestration: cache policy, pagination merge, retries."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from meal_sync.domain.errors import SyncError
from meal_sync.domain.filters import CategoricalFilters
from meal_sync.domain.records import MealRecord
from meal_sync.domain.state import (
    CollectionKey,
    CollectionState,
    FetchMode,
    FetchStatus,
)
from meal_sync.services.cache import RecordCache
from meal_sync.services.pagination import PaginationController
from meal_sync.services.retry import RetryPolicy

_logger = logging.getLogger(__name__)


class MealRepository(Protocol):
    """Remote record source scoped to an owner."""

    async def list_meals(
        self,
        owner_id: str,
        *,
        offset: int,
        limit: int,
        filters: CategoricalFilters,
    ) -> list[MealRecord]:
        """Return one page of meals ordered by favorite desc, id desc."""

    async def list_meals_for_date(self, owner_id: str, date: str) -> list[MealRecord]:
        """Return planned and derived meals for an ISO date."""

    async def set_favorite(
        self, owner_id: str, meal_id: int | str, favorite: bool
    ) -> None:
        """Update the favorite flag of a meal."""

    async def delete_plan_entries(self, owner_id: str, date: str) -> None:
        """Delete every plan entry for a date."""

    async def delete_derived_meal(self, owner_id: str, raw_id: str) -> None:
        """Delete a scanned meal by its table id."""


@dataclass
class FetchOrchestrator:
    """Decides cache versus remote and applies results to collection state."""

    repository: MealRepository
    cache: RecordCache
    pagination: PaginationController
    retry_policy: RetryPolicy

    async def fetch(
        self,
        state: CollectionState,
        mode: FetchMode,
        *,
        supersede: bool = False,
    ) -> list[MealRecord]:
        """Load records for ``state`` and return its record list.

        ``load_more`` is a no-op unless the pagination controller allows it.
        Other modes are dropped while a request is in flight unless they
        supersede it; superseded responses are discarded on arrival.
        """
        if mode is FetchMode.LOAD_MORE:
            if not self.pagination.can_load_more(state):
                _logger.debug("Ignoring load_more for %s", state.key)
                return state.records
            page = self.pagination.next_page(state.cursor)
        else:
            if state.is_loading and not (supersede or mode is FetchMode.REFRESH):
                _logger.debug("Fetch already in flight for %s", state.key)
                return state.records
            if mode is FetchMode.REFRESH:
                self.pagination.reset(state.cursor)
            state.error = None
            page = 0

        generation = state.begin(mode)
        try:
            batch, from_cache = await self._load(state, mode, page)
        except SyncError as exc:
            if not state.is_current(generation):
                _logger.info("Dropping stale %s failure for %s", mode, state.key)
                return state.records
            state.status = FetchStatus.ERROR
            state.error = exc
            _logger.warning(
                "Fetch %s failed for %s: %s (%s)", mode, state.key, exc.tag, exc
            )
            raise
        finally:
            state.finish(generation)

        if not state.is_current(generation):
            _logger.info("Dropping stale %s response for %s", mode, state.key)
            return state.records

        self._apply(state, mode, page, batch, from_cache)
        if not from_cache:
            await self._write_through(state)
        return state.records

    async def fetch_many(
        self, states: list[CollectionState], mode: FetchMode
    ) -> dict[CollectionKey, SyncError]:
        """Fetch several collections concurrently and return per-key failures."""
        results = await asyncio.gather(
            *(self.fetch(state, mode) for state in states),
            return_exceptions=True,
        )
        failures: dict[CollectionKey, SyncError] = {}
        for state, result in zip(states, results, strict=True):
            if isinstance(result, SyncError):
                failures[state.key] = result
            elif isinstance(result, BaseException):
                raise result
        return failures

    async def _load(
        self, state: CollectionState, mode: FetchMode, page: int
    ) -> tuple[list[MealRecord], bool]:
        key = state.key
        categorical = state.filters.categorical()
        if mode is FetchMode.INITIAL and not categorical.is_active:
            cached = await self._read_cache(key)
            if cached:
                _logger.info("Loaded %s meals for %s from cache", len(cached), key)
                return cached, True

        async def call() -> list[MealRecord]:
            if key.date is not None:
                return await self.repository.list_meals_for_date(key.owner_id, key.date)
            return await self.repository.list_meals(
                key.owner_id,
                offset=self.pagination.offset(page),
                limit=self.pagination.page_size,
                filters=categorical,
            )

        batch = await self.retry_policy.run(call, action=f"fetch {mode} {key}")
        _logger.info("Loaded %s meals for %s from remote", len(batch), key)
        return batch, False

    def _apply(
        self,
        state: CollectionState,
        mode: FetchMode,
        page: int,
        batch: list[MealRecord],
        from_cache: bool,
    ) -> None:
        if mode is FetchMode.LOAD_MORE:
            state.records = merge_records(state.records, batch)
        else:
            state.records = list(batch)
        if state.key.is_dated:
            state.cursor.page = 0
            state.cursor.has_more = False
        elif from_cache:
            self.pagination.record_cached(state.cursor, len(batch))
        else:
            self.pagination.record_page(state.cursor, page, len(batch))
        state.status = FetchStatus.LOADED
        state.error = None
        state.evaluated = False

    async def _read_cache(self, key: CollectionKey) -> list[MealRecord] | None:
        try:
            return await self.cache.get(key.owner_id, key.date)
        except Exception:
            _logger.warning("Cache read failed for %s", key, exc_info=True)
            return None

    async def _write_through(self, state: CollectionState) -> None:
        key = state.key
        if not key.is_dated and state.filters.has_categorical:
            return
        try:
            await self.cache.put(key.owner_id, key.date, state.records)
        except Exception:
            _logger.warning("Cache write failed for %s", key, exc_info=True)


def merge_records(
    existing: list[MealRecord], incoming: list[MealRecord]
) -> list[MealRecord]:
    """Append a page, replacing records whose id is already present."""
    by_id = {record.id: record for record in incoming}
    merged = [by_id.pop(record.id, record) for record in existing]
    merged.extend(record for record in incoming if record.id in by_id)
    return merged
