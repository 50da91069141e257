"""Local record cache abstractions."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol

from meal_sync.domain.records import MealRecord


class RecordCache(Protocol):
    """Cache of previously fetched record batches keyed by owner and date."""

    async def get(self, owner_id: str, date: str | None) -> list[MealRecord] | None:
        """Return cached records, or None on a miss."""

    async def put(
        self, owner_id: str, date: str | None, records: list[MealRecord]
    ) -> None:
        """Store records for an owner and optional date."""

    async def invalidate(self, owner_id: str) -> None:
        """Drop every entry for an owner."""

    async def invalidate_key(self, owner_id: str, date: str | None) -> None:
        """Drop a single entry."""


@dataclass
class _CacheEntry:
    records: list[MealRecord]
    expires_at: datetime


@dataclass
class InMemoryRecordCache(RecordCache):
    """In-memory TTL cache. Entries do not survive a restart."""

    ttl_seconds: int
    _entries: dict[tuple[str, str | None], _CacheEntry]

    def __init__(self, ttl_seconds: int = 300) -> None:
        self.ttl_seconds = ttl_seconds
        self._entries = {}

    async def get(self, owner_id: str, date: str | None) -> list[MealRecord] | None:
        """Return cached records if they haven't expired."""
        key = (owner_id, date)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if datetime.now(tz=UTC) >= entry.expires_at:
            self._entries.pop(key, None)
            return None
        return list(entry.records)

    async def put(
        self, owner_id: str, date: str | None, records: list[MealRecord]
    ) -> None:
        """Store records with the configured TTL."""
        expires_at = datetime.now(tz=UTC) + timedelta(seconds=self.ttl_seconds)
        self._entries[(owner_id, date)] = _CacheEntry(
            records=list(records), expires_at=expires_at
        )

    async def invalidate(self, owner_id: str) -> None:
        """Drop every entry belonging to an owner."""
        for key in [key for key in self._entries if key[0] == owner_id]:
            self._entries.pop(key, None)

    async def invalidate_key(self, owner_id: str, date: str | None) -> None:
        """Drop the entry for one owner and date."""
        self._entries.pop((owner_id, date), None)
