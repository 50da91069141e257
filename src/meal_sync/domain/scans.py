"""Models for image-analysis results."""

from pydantic import BaseModel, ConfigDict, Field


class ScanNutrition(BaseModel):
    """Nutrition detected in a meal photo."""

    model_config = ConfigDict(populate_by_name=True)

    food_label: str = Field(default="Scanned Meal", alias="foodLabel")
    calories: float = Field(ge=0.0)
    protein: float = Field(default=0.0, ge=0.0)
    carbohydrates: float = Field(default=0.0, ge=0.0)
    fat: float = Field(default=0.0, ge=0.0)

    @property
    def has_nutrition(self) -> bool:
        return any(
            value > 0
            for value in (self.calories, self.protein, self.carbohydrates, self.fat)
        )


class ScanResponse(BaseModel):
    """Envelope returned by the analysis service."""

    nutrition: ScanNutrition | None = None
    error: str | None = None
    details: str | None = None
