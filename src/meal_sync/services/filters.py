"""Filter evaluation and backfill signalling."""

import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from meal_sync.domain.errors import FilterValidationError
from meal_sync.domain.filters import (
    NUTRIENT_ACCESSORS,
    AiFilter,
    CategoricalFilters,
    FilterSpec,
    NutrientField,
)
from meal_sync.domain.records import MealRecord
from meal_sync.domain.state import CollectionState
from meal_sync.services.debounce import Debouncer
from meal_sync.services.pagination import PaginationController

_logger = logging.getLogger(__name__)


def parse_bound(raw: str) -> float | None:
    """Parse a bound; blank or non-finite input means unset."""
    text = raw.strip()
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def validate_filters(spec: FilterSpec) -> None:
    """Reject malformed numeric bounds before they are applied."""
    for nutrient in NutrientField:
        bound = spec.bound_for(nutrient)
        inputs = (("greater than", bound.greater_than), ("less than", bound.less_than))
        for label, raw in inputs:
            if raw.strip() and parse_bound(raw) is None:
                raise FilterValidationError(
                    f"{nutrient.value} {label} must be a number, got {raw!r}"
                )


def matches_categorical(record: MealRecord, filters: CategoricalFilters) -> bool:
    """Apply the remote-side filters to a local record."""
    if filters.dietary_restriction and (
        record.dietary_restrictions != filters.dietary_restriction
    ):
        return False
    if filters.cuisine and record.cuisine != filters.cuisine:
        return False
    if filters.ai_filter is AiFilter.AI and not record.created_by_ai:
        return False
    if filters.ai_filter is AiFilter.NOT_AI and record.created_by_ai:
        return False
    return True


_Limits = list[tuple[Callable[[MealRecord], float | None], float | None, float | None]]


def _numeric_limits(spec: FilterSpec) -> _Limits:
    limits: _Limits = []
    for nutrient, accessor in NUTRIENT_ACCESSORS.items():
        bound = spec.bound_for(nutrient)
        low = parse_bound(bound.greater_than)
        high = parse_bound(bound.less_than)
        if low is not None or high is not None:
            limits.append((accessor, low, high))
    return limits


def _passes_bounds(record: MealRecord, limits: _Limits) -> bool:
    for accessor, low, high in limits:
        value = accessor(record)
        if value is None:
            continue
        if low is not None and value <= low:
            return False
        if high is not None and value >= high:
            return False
    return True


def _passes_query(record: MealRecord, query: str) -> bool:
    if not query:
        return True
    needle = query.lower()
    return needle in record.name.lower() or needle in record.description.lower()


def evaluate(records: list[MealRecord], spec: FilterSpec) -> list[MealRecord]:
    """Return the records matching ``spec`` in their original order."""
    categorical = spec.categorical()
    limits = _numeric_limits(spec)
    return [
        record
        for record in records
        if matches_categorical(record, categorical)
        and _passes_bounds(record, limits)
        and _passes_query(record, spec.query)
    ]


@dataclass
class FilterEngine:
    """Re-evaluates a collection and requests backfill when results are scarce."""

    pagination: PaginationController
    debouncer: Debouncer
    threshold: int = 10

    def refresh_visible(
        self,
        state: CollectionState,
        backfill: Callable[[], Awaitable[object]] | None = None,
    ) -> list[MealRecord]:
        """Recompute the visible subset and schedule a backfill if needed."""
        state.visible = evaluate(state.records, state.filters)
        if state.records or not state.is_loading:
            state.evaluated = True
        if backfill is not None and self.pagination.needs_backfill(
            state, len(state.visible), self.threshold
        ):
            _logger.debug(
                "Backfill for %s: %s visible of %s loaded",
                state.key,
                len(state.visible),
                len(state.records),
            )
            self.debouncer.schedule(backfill)
        return state.visible
