"""Filter specification models."""

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import StrEnum

from meal_sync.domain.records import MealRecord


class NutrientField(StrEnum):
    """Numeric fields a meal can be filtered on."""

    CALORIES = "calories"
    FAT = "fat"
    PROTEIN = "protein"
    CARBOHYDRATES = "carbohydrates"


NUTRIENT_ACCESSORS: dict[NutrientField, Callable[[MealRecord], float | None]] = {
    NutrientField.CALORIES: lambda record: record.calories,
    NutrientField.FAT: lambda record: record.fat,
    NutrientField.PROTEIN: lambda record: record.protein,
    NutrientField.CARBOHYDRATES: lambda record: record.carbohydrates,
}


class AiFilter(StrEnum):
    """Tri-state filter on the machine-generated flag."""

    ANY = ""
    AI = "ai"
    NOT_AI = "not_ai"


@dataclass(frozen=True)
class Bound:
    """Raw user input for an exclusive numeric range."""

    greater_than: str = ""
    less_than: str = ""

    @property
    def is_set(self) -> bool:
        return bool(self.greater_than.strip() or self.less_than.strip())


@dataclass(frozen=True)
class CategoricalFilters:
    """Filters evaluated by the remote source."""

    dietary_restriction: str = ""
    cuisine: str = ""
    ai_filter: AiFilter = AiFilter.ANY

    @property
    def is_active(self) -> bool:
        return bool(
            self.dietary_restriction
            or self.cuisine
            or self.ai_filter is not AiFilter.ANY
        )


def _default_bounds() -> dict[NutrientField, Bound]:
    return {nutrient: Bound() for nutrient in NutrientField}


@dataclass(frozen=True)
class FilterSpec:
    """Active predicate for a meal list."""

    bounds: dict[NutrientField, Bound] = field(default_factory=_default_bounds)
    dietary_restriction: str = ""
    cuisine: str = ""
    ai_filter: AiFilter = AiFilter.ANY
    query: str = ""

    def categorical(self) -> CategoricalFilters:
        """Return the portion of the spec pushed to the remote query."""
        return CategoricalFilters(
            dietary_restriction=self.dietary_restriction,
            cuisine=self.cuisine,
            ai_filter=self.ai_filter,
        )

    @property
    def has_categorical(self) -> bool:
        return self.categorical().is_active

    @property
    def is_active(self) -> bool:
        return self.has_categorical or any(
            bound.is_set for bound in self.bounds.values()
        )

    def bound_for(self, nutrient: NutrientField) -> Bound:
        return self.bounds.get(nutrient, Bound())

    def with_query(self, query: str) -> "FilterSpec":
        return replace(self, query=query)
