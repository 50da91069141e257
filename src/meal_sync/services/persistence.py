"""Persistence of filter state per view and user."""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from meal_sync.domain.errors import ParseError
from meal_sync.domain.filters import AiFilter, Bound, FilterSpec, NutrientField
from meal_sync.services.debounce import Debouncer

_logger = logging.getLogger(__name__)

_KEY_PREFIXES = (
    "filters",
    "searchQuery",
    "dietaryRestrictionFilter",
    "aiFilter",
    "cuisineFilter",
)


class KeyValueStorage(Protocol):
    """Durable string storage."""

    async def get(self, key: str) -> str | None:
        """Return the stored value or None."""

    async def set(self, key: str, value: str) -> None:
        """Store a value."""

    async def remove(self, key: str) -> None:
        """Delete a value if present."""


class PersistedBound(BaseModel):
    """Stored form of one numeric filter."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    type: NutrientField
    greater_than: str = Field(default="", alias="greaterThan")
    less_than: str = Field(default="", alias="lessThan")


_BOUNDS_ADAPTER = TypeAdapter(list[PersistedBound])


def storage_keys(view: str, user_id: str) -> list[str]:
    """Return the storage keys used for a view and user."""
    return [f"{prefix}_{view}_{user_id}" for prefix in _KEY_PREFIXES]


def encode_bounds(spec: FilterSpec) -> str:
    """Serialize numeric filters in their stored list form."""
    payload = [
        PersistedBound(
            type=nutrient,
            greater_than=spec.bound_for(nutrient).greater_than,
            less_than=spec.bound_for(nutrient).less_than,
        )
        for nutrient in NutrientField
    ]
    return json.dumps(
        [item.model_dump(mode="json", by_alias=True) for item in payload]
    )


def decode_bounds(raw: str) -> dict[NutrientField, Bound]:
    """Parse stored numeric filters.

    Raises:
        ParseError: if the payload is not a valid filter list.
    """
    try:
        items = _BOUNDS_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        message = f"Malformed stored filters: {exc.error_count()} errors"
        raise ParseError(message) from exc
    bounds = {nutrient: Bound() for nutrient in NutrientField}
    for item in items:
        bounds[item.type] = Bound(
            greater_than=item.greater_than, less_than=item.less_than
        )
    return bounds


@dataclass
class FilterPersistence:
    """Debounced writes and time-bounded restore of filter state."""

    storage: KeyValueStorage
    restore_timeout_seconds: float = 0.2
    save_delay_seconds: float = 0.3
    _debouncers: dict[tuple[str, str], Debouncer] = field(
        default_factory=dict, init=False, repr=False
    )

    async def restore(self, view: str, user_id: str) -> FilterSpec:
        """Load stored filters, falling back to defaults when storage is slow."""
        keys = storage_keys(view, user_id)
        try:
            values = await asyncio.wait_for(
                asyncio.gather(*(self.storage.get(key) for key in keys)),
                timeout=self.restore_timeout_seconds,
            )
        except TimeoutError:
            _logger.info("Filter restore for %s timed out, using defaults", view)
            return FilterSpec()
        except Exception:
            _logger.warning("Filter restore for %s failed", view, exc_info=True)
            return FilterSpec()

        raw_bounds, query, dietary, ai_filter, cuisine = values
        bounds = {nutrient: Bound() for nutrient in NutrientField}
        if raw_bounds:
            try:
                bounds = decode_bounds(raw_bounds)
            except ParseError as exc:
                _logger.warning("Discarding stored filters for %s: %s", view, exc)
        return FilterSpec(
            bounds=bounds,
            dietary_restriction=dietary or "",
            cuisine=cuisine or "",
            ai_filter=_parse_ai_filter(ai_filter),
            query=query or "",
        )

    def save(self, view: str, user_id: str, spec: FilterSpec) -> None:
        """Schedule a write of ``spec``; later calls replace pending writes."""
        keys = storage_keys(view, user_id)
        values = [
            encode_bounds(spec),
            spec.query,
            spec.dietary_restriction,
            spec.ai_filter.value,
            spec.cuisine,
        ]

        async def write() -> None:
            try:
                await asyncio.gather(
                    *(
                        self.storage.set(key, value)
                        for key, value in zip(keys, values, strict=True)
                    )
                )
            except Exception:
                _logger.warning(
                    "Failed to persist filters for %s", view, exc_info=True
                )

        self._debouncer(view, user_id).schedule(write)

    def clear(self, view: str, user_id: str) -> None:
        """Remove stored filters in the background, dropping pending writes."""
        keys = storage_keys(view, user_id)

        async def remove() -> None:
            try:
                await asyncio.gather(*(self.storage.remove(key) for key in keys))
            except Exception:
                _logger.warning("Failed to clear filters for %s", view, exc_info=True)

        self._debouncer(view, user_id).schedule(remove, delay_seconds=0)

    async def drain(self) -> None:
        """Wait for pending writes."""
        for debouncer in list(self._debouncers.values()):
            await debouncer.drain()

    def _debouncer(self, view: str, user_id: str) -> Debouncer:
        key = (view, user_id)
        if key not in self._debouncers:
            self._debouncers[key] = Debouncer(
                self.save_delay_seconds, name=f"filters:{view}"
            )
        return self._debouncers[key]


def _parse_ai_filter(raw: str | None) -> AiFilter:
    try:
        return AiFilter(raw or "")
    except ValueError:
        _logger.warning("Discarding unknown stored ai filter %r", raw)
        return AiFilter.ANY
