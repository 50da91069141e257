"""Date-bucketed meal plan: the calendar view state."""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Protocol

from pydantic import ValidationError

from meal_sync.domain.errors import (
    ErrorInfo,
    InvalidOperation,
    NotFound,
    RemoteError,
    SyncError,
)
from meal_sync.domain.records import MealRecord, NutritionTotals, sum_totals
from meal_sync.domain.scans import ScanNutrition, ScanResponse
from meal_sync.domain.state import (
    CollectionKey,
    CollectionState,
    FetchMode,
    FetchStatus,
)
from meal_sync.services.cache import RecordCache
from meal_sync.services.fetch import FetchOrchestrator
from meal_sync.services.mutations import OptimisticMutationManager
from meal_sync.services.session import SessionProvider

DAYS_PER_WEEK = 7

_logger = logging.getLogger(__name__)


class MealScannerClient(Protocol):
    """Image analysis service that stores a scanned meal server-side."""

    async def analyze(self, image_base64: str, target_date: str) -> dict[str, object]:
        """Return the raw analysis payload for an encoded image."""


@dataclass(frozen=True)
class DayView:
    """Meals and totals for one calendar date."""

    date: str
    records: list[MealRecord]
    totals: NutritionTotals
    status: FetchStatus
    error: ErrorInfo | None = None

    @classmethod
    def of(cls, state: CollectionState) -> "DayView":
        return cls(
            date=state.key.date or "",
            records=list(state.records),
            totals=sum_totals(state.records),
            status=state.status,
            error=ErrorInfo.from_error(state.error) if state.error else None,
        )


def week_start(day: date) -> date:
    """Return the Sunday that starts the week containing ``day``."""
    return day - timedelta(days=(day.weekday() + 1) % DAYS_PER_WEEK)


def week_dates(start: date, days: int = DAYS_PER_WEEK) -> list[str]:
    return [(start + timedelta(days=offset)).isoformat() for offset in range(days)]


@dataclass
class MealPlanService:
    """Public operations for the week-by-week meal plan."""

    session: SessionProvider
    orchestrator: FetchOrchestrator
    mutations: OptimisticMutationManager
    scanner: MealScannerClient
    cache: RecordCache
    _owner_id: str | None = field(default=None, init=False, repr=False)
    _states: dict[str, CollectionState] = field(
        default_factory=dict, init=False, repr=False
    )
    _first_day: date | None = field(default=None, init=False, repr=False)
    _days_shown: int = field(default=0, init=False, repr=False)

    async def load_week(
        self, start: date | None = None, *, refresh: bool = False
    ) -> list[DayView]:
        """Load seven dates concurrently, cache first unless refreshing."""
        owner_id = await self._owner()
        first_day = start or week_start(date.today())
        self._first_day = first_day
        self._days_shown = DAYS_PER_WEEK
        mode = FetchMode.REFRESH if refresh else FetchMode.INITIAL
        return await self._load_dates(owner_id, week_dates(first_day), mode)

    async def refresh_week(self) -> list[DayView]:
        """Reload every shown date from the remote source."""
        owner_id = await self._owner()
        if self._first_day is None:
            return await self.load_week(refresh=True)
        dates = week_dates(self._first_day, self._days_shown)
        return await self._load_dates(owner_id, dates, FetchMode.REFRESH)

    async def load_next_week(self) -> list[DayView]:
        """Extend the calendar by one week, fetching only unseen dates."""
        owner_id = await self._owner()
        if self._first_day is None:
            return await self.load_week()
        if any(state.is_loading for state in self._states.values()):
            _logger.debug("Week load already in flight, ignoring next week")
            shown = week_dates(self._first_day, self._days_shown)
            return [
                DayView.of(self._states[day]) for day in shown if day in self._states
            ]
        next_start = self._first_day + timedelta(days=self._days_shown)
        self._days_shown += DAYS_PER_WEEK
        dates = week_dates(next_start)
        unseen = [day for day in dates if day not in self._states]
        await self._load_dates(owner_id, unseen, FetchMode.INITIAL)
        return [DayView.of(self._states[day]) for day in dates]

    async def delete_records_for_date(self, day: str) -> DayView:
        """Delete the planned meals of a date once the remote confirms."""
        owner_id = await self._owner()
        state = self._state_for(owner_id, day)
        try:
            await self.mutations.delete_for_date(state)
        except SyncError as exc:
            state.error = exc
            _logger.warning("Deleting meals for %s failed: %s", day, exc)
        return DayView.of(state)

    async def delete_derived_record(self, record_id: int | str) -> DayView:
        """Delete a scanned meal from whichever loaded date holds it.

        Raises:
            NotFound: if no loaded date contains the meal.
            InvalidOperation: if the meal is not a scanned meal.
        """
        await self._owner()
        state = next(
            (s for s in self._states.values() if s.find(record_id) is not None),
            None,
        )
        if state is None:
            raise NotFound(f"Meal {record_id} not found")
        try:
            await self.mutations.delete_derived(state, record_id)
        except (NotFound, InvalidOperation):
            raise
        except SyncError as exc:
            state.error = exc
            _logger.warning("Deleting scanned meal %s failed: %s", record_id, exc)
        return DayView.of(state)

    async def scan_meal(
        self, image_base64: str, day: str
    ) -> tuple[ScanNutrition, DayView]:
        """Analyze a meal photo and refetch the date it was stored under.

        Raises:
            RemoteError: if the service reports an error or finds no nutrition.
        """
        owner_id = await self._owner()
        raw = await self.scanner.analyze(image_base64, day)
        try:
            response = ScanResponse.model_validate(raw)
        except ValidationError as exc:
            raise RemoteError(f"Unexpected analysis response: {exc}") from exc
        if response.error or response.nutrition is None:
            raise RemoteError(
                response.details or response.error or "Meal analysis failed"
            )
        if not response.nutrition.has_nutrition:
            raise RemoteError(
                "Could not detect valid nutrition information from this image."
            )

        try:
            await self.cache.invalidate_key(owner_id, day)
        except Exception:
            _logger.warning("Cache invalidation failed for %s", day, exc_info=True)
        state = self._state_for(owner_id, day)
        try:
            await self.orchestrator.fetch(state, FetchMode.REFRESH)
        except SyncError as exc:
            _logger.info("Refetch after scan failed for %s: %s", day, exc.tag)
        return response.nutrition, DayView.of(state)

    def day_totals(self, day: str) -> NutritionTotals:
        """Return summed macros for a loaded date."""
        state = self._states.get(day)
        return sum_totals(state.records if state else [])

    def days(self) -> list[DayView]:
        """Return every loaded date in calendar order."""
        return [DayView.of(self._states[day]) for day in sorted(self._states)]

    async def _load_dates(
        self, owner_id: str, dates: list[str], mode: FetchMode
    ) -> list[DayView]:
        states = [self._state_for(owner_id, day) for day in dates]
        failures = await self.orchestrator.fetch_many(states, mode)
        for key, error in failures.items():
            _logger.info("Meals for %s not refreshed: %s", key.date, error.tag)
        return [DayView.of(state) for state in states]

    async def _owner(self) -> str:
        owner_id = await self.session.current_user_id()
        if owner_id != self._owner_id:
            self._owner_id = owner_id
            self._states = {}
            self._first_day = None
            self._days_shown = 0
        return owner_id

    def _state_for(self, owner_id: str, day: str) -> CollectionState:
        if day not in self._states:
            self._states[day] = CollectionState(key=CollectionKey(owner_id, day))
        return self._states[day]
