"""Supabase-backed durable key-value storage."""

from dataclasses import dataclass

from supabase import Client

from meal_sync.adapters.supabase_query import execute_query
from meal_sync.services.persistence import KeyValueStorage


@dataclass
class SupabaseKeyValueStorage(KeyValueStorage):
    """Stores string values in the ``client_state`` table."""

    client: Client
    table: str = "client_state"

    async def get(self, key: str) -> str | None:
        """Return the stored value for ``key``."""
        query = (
            self.client.table(self.table).select("value").eq("key", key).limit(1)
        )
        rows = await execute_query(query, action=f"read {key}")
        if not rows:
            return None
        value = rows[0].get("value")
        return None if value is None else str(value)

    async def set(self, key: str, value: str) -> None:
        """Insert or replace the value for ``key``."""
        query = self.client.table(self.table).upsert({"key": key, "value": value})
        await execute_query(query, action=f"write {key}")

    async def remove(self, key: str) -> None:
        """Delete ``key`` if present."""
        query = self.client.table(self.table).delete().eq("key", key)
        await execute_query(query, action=f"remove {key}")
