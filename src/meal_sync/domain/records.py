"""Domain models for meal records."""

from dataclasses import dataclass

DERIVED_ID_PREFIX = "macro_"


@dataclass(frozen=True)
class MealRecord:
    """A meal with nutrition and metadata fields.

    Nutrition values are ``None`` when the source row does not carry them.
    Derived records (scanned meals) use a ``macro_`` prefixed string id.
    """

    id: int | str
    name: str
    description: str = ""
    calories: float | None = None
    protein: float | None = None
    carbohydrates: float | None = None
    fat: float | None = None
    favorite: bool = False
    created_by_ai: bool = False
    cuisine: str = ""
    dietary_restrictions: str = ""
    picture: str | None = None
    created_at: str = ""
    meal_type: str | None = None
    meal_plan_id: int | str | None = None
    servings: int = 1
    instructions: str = ""
    recipe_link: str = ""

    @property
    def is_derived(self) -> bool:
        """Return True for records produced by image analysis."""
        return is_derived_id(self.id)


@dataclass(frozen=True)
class NutritionTotals:
    """Summed macros for a group of meals."""

    calories: float
    protein: float
    carbohydrates: float
    fat: float


def is_derived_id(record_id: int | str) -> bool:
    """Return True when the id belongs to a derived record."""
    return isinstance(record_id, str) and record_id.startswith(DERIVED_ID_PREFIX)


def derived_id(raw_id: int | str) -> str:
    """Namespace a macro_meals row id."""
    return f"{DERIVED_ID_PREFIX}{raw_id}"


def raw_derived_id(record_id: str) -> str:
    """Strip the derived namespace from an id."""
    return record_id.removeprefix(DERIVED_ID_PREFIX)


def sum_totals(records: list[MealRecord]) -> NutritionTotals:
    """Sum macros over records, counting absent values as zero."""
    total = NutritionTotals(0.0, 0.0, 0.0, 0.0)
    for record in records:
        total = NutritionTotals(
            calories=total.calories + (record.calories or 0.0),
            protein=total.protein + (record.protein or 0.0),
            carbohydrates=total.carbohydrates + (record.carbohydrates or 0.0),
            fat=total.fat + (record.fat or 0.0),
        )
    return total


def decode_picture(value: object) -> str | None:
    """Decode a bytea hex literal picture into its text form."""
    if not isinstance(value, str) or not value:
        return None
    if not value.startswith("\\x"):
        return value
    try:
        return bytes.fromhex(value[2:]).decode("latin-1")
    except ValueError:
        return value
