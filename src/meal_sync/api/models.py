"""Request and response models for the HTTP API."""

from pydantic import BaseModel, ConfigDict, Field

from meal_sync.domain.errors import ErrorInfo
from meal_sync.domain.filters import AiFilter, Bound, FilterSpec, NutrientField
from meal_sync.domain.records import NutritionTotals
from meal_sync.domain.state import CollectionView, FetchStatus
from meal_sync.services.planner import DayView


class ErrorModel(BaseModel):
    tag: str
    message: str
    retryable: bool

    @classmethod
    def from_info(cls, info: ErrorInfo | None) -> "ErrorModel | None":
        if info is None:
            return None
        return cls(tag=info.tag, message=info.message, retryable=info.retryable)


class MealRecordModel(BaseModel):
    """Serialized meal record."""

    model_config = ConfigDict(from_attributes=True)

    id: int | str
    name: str
    description: str
    calories: float | None
    protein: float | None
    carbohydrates: float | None
    fat: float | None
    favorite: bool
    created_by_ai: bool
    cuisine: str
    dietary_restrictions: str
    picture: str | None
    created_at: str
    meal_type: str | None
    meal_plan_id: int | str | None
    servings: int
    instructions: str
    recipe_link: str
    is_derived: bool


class BoundModel(BaseModel):
    greater_than: str = ""
    less_than: str = ""


class FiltersModel(BaseModel):
    """Filter state as sent and returned by the API."""

    bounds: dict[NutrientField, BoundModel] = Field(default_factory=dict)
    dietary_restriction: str = ""
    cuisine: str = ""
    ai_filter: AiFilter = AiFilter.ANY
    query: str = ""

    def to_spec(self) -> FilterSpec:
        bounds = {nutrient: Bound() for nutrient in NutrientField}
        for nutrient, bound in self.bounds.items():
            bounds[nutrient] = Bound(
                greater_than=bound.greater_than, less_than=bound.less_than
            )
        return FilterSpec(
            bounds=bounds,
            dietary_restriction=self.dietary_restriction,
            cuisine=self.cuisine,
            ai_filter=self.ai_filter,
            query=self.query,
        )

    @classmethod
    def from_spec(cls, spec: FilterSpec) -> "FiltersModel":
        return cls(
            bounds={
                nutrient: BoundModel(
                    greater_than=bound.greater_than, less_than=bound.less_than
                )
                for nutrient, bound in spec.bounds.items()
            },
            dietary_restriction=spec.dietary_restriction,
            cuisine=spec.cuisine,
            ai_filter=spec.ai_filter,
            query=spec.query,
        )


class SearchQuery(BaseModel):
    query: str = ""


class CollectionResponse(BaseModel):
    """Snapshot of the flat meal list."""

    records: list[MealRecordModel]
    visible: list[MealRecordModel]
    status: FetchStatus
    has_more: bool
    page: int
    filters: FiltersModel
    error: ErrorModel | None = None

    @classmethod
    def from_view(cls, view: CollectionView) -> "CollectionResponse":
        return cls(
            records=[MealRecordModel.model_validate(r) for r in view.records],
            visible=[MealRecordModel.model_validate(r) for r in view.visible],
            status=view.status,
            has_more=view.has_more,
            page=view.page,
            filters=FiltersModel.from_spec(view.filters),
            error=ErrorModel.from_info(view.error),
        )


class TotalsModel(BaseModel):
    calories: float
    protein: float
    carbohydrates: float
    fat: float

    @classmethod
    def from_totals(cls, totals: NutritionTotals) -> "TotalsModel":
        return cls(
            calories=totals.calories,
            protein=totals.protein,
            carbohydrates=totals.carbohydrates,
            fat=totals.fat,
        )


class DayResponse(BaseModel):
    """Meals and totals of one date."""

    date: str
    records: list[MealRecordModel]
    totals: TotalsModel
    status: FetchStatus
    error: ErrorModel | None = None

    @classmethod
    def from_view(cls, view: DayView) -> "DayResponse":
        return cls(
            date=view.date,
            records=[MealRecordModel.model_validate(r) for r in view.records],
            totals=TotalsModel.from_totals(view.totals),
            status=view.status,
            error=ErrorModel.from_info(view.error),
        )


class WeekResponse(BaseModel):
    days: list[DayResponse]


class ScanRequest(BaseModel):
    image_base64: str = Field(min_length=1)


class ScanResult(BaseModel):
    """Detected nutrition plus the refreshed date."""

    food_label: str
    calories: float
    protein: float
    carbohydrates: float
    fat: float
    day: DayResponse


class LoginRequest(BaseModel):
    email: str
    password: str
