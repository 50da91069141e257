"""Supabase repository for meals, plan entries and scanned meals."""

import logging
from dataclasses import dataclass
from typing import Any

from supabase import Client

from meal_sync.adapters.supabase_query import execute_query
from meal_sync.domain.errors import SyncError
from meal_sync.domain.filters import AiFilter, CategoricalFilters
from meal_sync.domain.records import MealRecord, decode_picture, derived_id
from meal_sync.services.fetch import MealRepository

_logger = logging.getLogger(__name__)

_MEAL_COLUMNS = (
    "id, name, description, calories, protein, carbohydrates, fat, picture, "
    "instructions, recipeLink, created_at, created_by_ai, favorite, "
    "dietary_restrictions, servings, cuisine"
)


@dataclass
class SupabaseMealRepository(MealRepository):
    """Supabase implementation of the remote meal source."""

    client: Client

    async def list_meals(
        self,
        owner_id: str,
        *,
        offset: int,
        limit: int,
        filters: CategoricalFilters,
    ) -> list[MealRecord]:
        """Return one page of the owner's meals, favorites first."""
        query = self.client.table("meals").select("*").eq("user_id", owner_id)
        if filters.dietary_restriction:
            query = query.eq("dietary_restrictions", filters.dietary_restriction)
        if filters.ai_filter is AiFilter.AI:
            query = query.eq("created_by_ai", True)
        elif filters.ai_filter is AiFilter.NOT_AI:
            query = query.eq("created_by_ai", False)
        if filters.cuisine:
            query = query.eq("cuisine", filters.cuisine)
        query = (
            query.order("favorite", desc=True)
            .order("id", desc=True)
            .range(offset, offset + limit - 1)
        )
        rows = await execute_query(query, action="list meals")
        return [parse_meal_row(row) for row in rows]

    async def list_meals_for_date(self, owner_id: str, date: str) -> list[MealRecord]:
        """Return planned meals followed by meals scanned on ``date``.

        A failure reading scanned meals is logged and the planned meals are
        still returned.
        """
        plan_query = (
            self.client.table("meal_plan")
            .select(f"*, meals ({_MEAL_COLUMNS})")
            .eq("user_id", owner_id)
            .eq("date", date)
        )
        plan_rows = await execute_query(plan_query, action=f"list plan for {date}")

        scanned_query = (
            self.client.table("macro_meals")
            .select("*")
            .eq("user_id", owner_id)
            .gte("created_at", f"{date}T00:00:00.000Z")
            .lt("created_at", f"{date}T23:59:59.999Z")
        )
        try:
            scanned_rows = await execute_query(
                scanned_query, action=f"list scanned meals for {date}"
            )
        except SyncError as exc:
            _logger.warning("Scanned meals for %s unavailable: %s", date, exc)
            scanned_rows = []

        return [parse_plan_row(row) for row in plan_rows] + [
            parse_scanned_row(row) for row in scanned_rows
        ]

    async def set_favorite(
        self, owner_id: str, meal_id: int | str, favorite: bool
    ) -> None:
        """Update a meal's favorite flag."""
        query = (
            self.client.table("meals")
            .update({"favorite": favorite})
            .eq("id", meal_id)
            .eq("user_id", owner_id)
        )
        await execute_query(query, action=f"update favorite of meal {meal_id}")

    async def delete_plan_entries(self, owner_id: str, date: str) -> None:
        """Delete all plan entries of a date."""
        query = (
            self.client.table("meal_plan")
            .delete()
            .eq("user_id", owner_id)
            .eq("date", date)
        )
        await execute_query(query, action=f"delete plan for {date}")

    async def delete_derived_meal(self, owner_id: str, raw_id: str) -> None:
        """Delete a scanned meal row."""
        query = (
            self.client.table("macro_meals")
            .delete()
            .eq("id", raw_id)
            .eq("user_id", owner_id)
        )
        await execute_query(query, action=f"delete scanned meal {raw_id}")


def parse_meal_row(row: dict[str, Any]) -> MealRecord:
    return MealRecord(
        id=row["id"],
        name=str(row.get("name") or ""),
        description=str(row.get("description") or ""),
        calories=_optional_float(row.get("calories")),
        protein=_optional_float(row.get("protein")),
        carbohydrates=_optional_float(row.get("carbohydrates")),
        fat=_optional_float(row.get("fat")),
        favorite=bool(row.get("favorite")),
        created_by_ai=bool(row.get("created_by_ai")),
        cuisine=str(row.get("cuisine") or ""),
        dietary_restrictions=str(row.get("dietary_restrictions") or ""),
        picture=decode_picture(row.get("picture")),
        created_at=str(row.get("created_at") or ""),
        servings=int(row.get("servings") or 1),
        instructions=str(row.get("instructions") or ""),
        recipe_link=str(row.get("recipeLink") or ""),
    )


def parse_plan_row(row: dict[str, Any]) -> MealRecord:
    """Flatten a plan entry joined with its meal."""
    meal = row.get("meals") or {}
    return MealRecord(
        id=meal.get("id") or row["meal_id"],
        name=str(meal.get("name") or "Unknown Meal"),
        description=str(meal.get("description") or ""),
        calories=float(meal.get("calories") or 0.0),
        protein=float(meal.get("protein") or 0.0),
        carbohydrates=float(meal.get("carbohydrates") or 0.0),
        fat=float(meal.get("fat") or 0.0),
        favorite=bool(meal.get("favorite")),
        created_by_ai=bool(meal.get("created_by_ai")),
        cuisine=str(meal.get("cuisine") or ""),
        dietary_restrictions=str(meal.get("dietary_restrictions") or ""),
        picture=decode_picture(meal.get("picture")),
        created_at=str(meal.get("created_at") or ""),
        meal_type=str(row.get("meal_type") or "Other"),
        meal_plan_id=row.get("meal_plan_id"),
        servings=int(meal.get("servings") or 1),
        instructions=str(meal.get("instructions") or ""),
        recipe_link=str(meal.get("recipeLink") or ""),
    )


def parse_scanned_row(row: dict[str, Any]) -> MealRecord:
    """Map a macro_meals row to a derived record."""
    return MealRecord(
        id=derived_id(row["id"]),
        name=str(row.get("meal_name") or "Scanned Meal"),
        description="AI-analyzed meal nutrition",
        calories=float(row.get("calories") or 0.0),
        protein=float(row.get("protein") or 0.0),
        carbohydrates=float(row.get("carbs") or 0.0),
        fat=float(row.get("fat") or 0.0),
        created_by_ai=True,
        created_at=str(row.get("created_at") or ""),
        meal_type="Scanned",
    )


def _optional_float(value: object) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
