"""AI component analysis payload.

Only the shape is checked: anything missing or mistyped falls back to an
empty string, an empty list or a "fair" rating.
"""

from typing import Any, List

from pydantic import BaseModel, Field, model_validator

from report_sync.schemas.report import (
    ConditionPoint,
    ConditionRating,
    normalize_points,
    normalize_rating,
)
from report_sync.utils.coercion import as_str


class AnalysisCondition(BaseModel):
    summary: str = ""
    points: List[ConditionPoint] = Field(default_factory=list)
    rating: ConditionRating = ConditionRating.FAIR

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            # Some analyses returned only a rating string
            return {"rating": normalize_rating(data)} if isinstance(data, str) else {}
        return {
            **data,
            "summary": as_str(data.get("summary")),
            "points": normalize_points(data.get("points")),
            "rating": normalize_rating(data.get("rating")),
        }


class ComponentAnalysis(BaseModel):
    description: str = ""
    condition: AnalysisCondition = Field(default_factory=AnalysisCondition)
    cleanliness: str = ""
    notes: str = ""

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return {}
        return {
            **data,
            "description": as_str(data.get("description")),
            "condition": data.get("condition") if data.get("condition") is not None else {},
            "cleanliness": as_str(data.get("cleanliness")),
            "notes": as_str(data.get("notes")),
        }

    @classmethod
    def from_payload(cls, payload: Any) -> "ComponentAnalysis":
        if isinstance(payload, ComponentAnalysis):
            return payload
        return cls.model_validate(payload if isinstance(payload, dict) else {})
