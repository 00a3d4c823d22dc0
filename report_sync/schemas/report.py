"""Domain models for reports, rooms, components and images.

Field names are snake_case in Python and camelCase in the persisted
report_info document; ``to_document`` produces the persisted form.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from report_sync.utils.coercion import (
    as_bool,
    as_list,
    as_optional_datetime,
    as_optional_int,
    as_str,
)

_CAMEL_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReportStatus(str, Enum):
    """Report lifecycle status."""

    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    PENDING_REVIEW = "pending_review"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class ConditionRating(str, Enum):
    """Condition rating of a component."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    NEEDS_REPLACEMENT = "needs_replacement"


# Older analyses rated badly damaged items "critical"
_RATING_ALIASES = {
    "critical": ConditionRating.NEEDS_REPLACEMENT,
    "needs replacement": ConditionRating.NEEDS_REPLACEMENT,
}


def normalize_rating(value: Any) -> ConditionRating:
    """Map any stored rating onto ConditionRating, defaulting to fair."""
    if isinstance(value, ConditionRating):
        return value
    key = as_str(value).strip().lower()
    if key in _RATING_ALIASES:
        return _RATING_ALIASES[key]
    try:
        return ConditionRating(key)
    except ValueError:
        return ConditionRating.FAIR


def normalize_status(value: Any) -> ReportStatus:
    try:
        return ReportStatus(as_str(value))
    except ValueError:
        return ReportStatus.DRAFT


def format_room_type(room_type: Optional[str]) -> str:
    """Human-readable room name for a room-type tag, e.g. living_room -> Living Room."""
    if not room_type:
        return "Room"
    return " ".join(part.capitalize() for part in room_type.split("_") if part)


def _pick(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


class ConditionPoint(BaseModel):
    """A single observation backing a condition rating.

    Legacy documents store points as bare strings; those become a point with
    only a label.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    label: str = ""
    category: Optional[str] = None
    severity: Optional[str] = None
    validation_status: Optional[str] = None
    supporting_image_count: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def _from_legacy(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"label": data}
        if isinstance(data, dict):
            data = dict(data)
            data["label"] = as_str(_pick(data, "label", "text"))
            data.pop("text", None)
            for key in ("category", "severity", "validationStatus", "validation_status"):
                if key in data and not isinstance(data[key], str):
                    data[key] = None
            for key in ("supportingImageCount", "supporting_image_count"):
                if key in data:
                    data[key] = as_optional_int(data[key])
        return data


def normalize_points(values: Any) -> List[ConditionPoint]:
    """Keep string and mapping points, drop anything else."""
    points = []
    for value in as_list(values):
        if isinstance(value, ConditionPoint):
            points.append(value)
        elif isinstance(value, (str, dict)):
            points.append(ConditionPoint.model_validate(value))
    return points


class RoomComponentImage(BaseModel):
    """Image attached to a component, stored inside report_info."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str = ""
    url: str = ""
    timestamp: Optional[datetime] = None
    ai_processed: bool = False
    ai_data: Optional[Any] = None

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        data["id"] = as_str(data.get("id"))
        data["url"] = as_str(data.get("url"))
        data["timestamp"] = as_optional_datetime(data.get("timestamp"))
        for key in ("aiProcessed", "ai_processed"):
            if key in data:
                data[key] = as_bool(data[key])
        return data


class RoomImage(RoomComponentImage):
    """Room-level image reconstituted from the image records store."""


class RoomComponent(BaseModel):
    """A component (door, window, flooring...) inspected inside a room."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    name: str = ""
    type: str = ""
    description: str = ""
    condition: ConditionRating = ConditionRating.FAIR
    condition_summary: str = ""
    condition_points: List[ConditionPoint] = Field(default_factory=list)
    cleanliness: str = ""
    notes: str = ""
    images: List[RoomComponentImage] = Field(default_factory=list)
    is_editing: bool = Field(default=False, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        # Older documents stored the whole analysis condition object here
        condition = data.get("condition")
        if isinstance(condition, dict):
            data.setdefault("conditionSummary", condition.get("summary"))
            data.setdefault("conditionPoints", condition.get("points"))
            data["condition"] = condition.get("rating")

        data["condition"] = normalize_rating(data.get("condition"))
        for key in ("name", "type", "description", "cleanliness", "notes"):
            data[key] = as_str(data.get(key))
        data["id"] = as_str(data.get("id"))

        summary_key = "condition_summary" if "condition_summary" in data else "conditionSummary"
        data[summary_key] = as_str(data.get(summary_key))
        points_key = "condition_points" if "condition_points" in data else "conditionPoints"
        data[points_key] = normalize_points(data.get(points_key))
        data["images"] = [
            image for image in as_list(data.get("images")) if isinstance(image, (dict, RoomComponentImage))
        ]
        return data

    def has_images(self) -> bool:
        return len(self.images) > 0

    def to_document(self) -> Dict[str, Any]:
        """Persisted form; the transient edit flag is never written."""
        return self.model_dump(mode="json", by_alias=True)


class Room(BaseModel):
    """A room of a report, either the main room or an additional room."""

    model_config = _CAMEL_CONFIG

    id: str
    name: str = ""
    type: str = "other"
    order: int = 0
    general_condition: str = ""
    sections: List[Any] = Field(default_factory=list)
    components: List[RoomComponent] = Field(default_factory=list)
    images: List[RoomImage] = Field(default_factory=list)

    @field_validator("sections", "components", "images", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> List[Any]:
        return as_list(value)

    def has_images(self) -> bool:
        """True when the room or any of its components carries an image."""
        return len(self.images) > 0 or any(c.has_images() for c in self.components)


class ReportInfo(BaseModel):
    """Report-level metadata kept in report_info."""

    model_config = _CAMEL_CONFIG

    report_date: Optional[str] = None
    clerk: str = ""
    inventory_type: str = ""
    tenant_present: bool = False
    tenant_name: str = ""
    file_url: str = ""
    report_type: str = ""
    additional_info: str = ""


class PropertySnapshot(BaseModel):
    """Property a report was written for."""

    id: str
    name: Optional[str] = None
    address: str = ""
    property_type: Optional[str] = None


class Report(BaseModel):
    """A fully loaded report with its ordered rooms."""

    model_config = _CAMEL_CONFIG

    id: str
    property_id: str = ""
    name: str = ""
    report_type: str = "inspection"
    status: ReportStatus = ReportStatus.DRAFT
    report_info: ReportInfo = Field(default_factory=ReportInfo)
    rooms: List[Room] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def has_images(self) -> bool:
        return any(room.has_images() for room in self.rooms)

    def get_room(self, room_id: str) -> Optional[Room]:
        return next((room for room in self.rooms if room.id == room_id), None)
