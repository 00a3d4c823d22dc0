"""Partial update payloads.

A field counts as supplied only when it was explicitly set on the model
(``model_fields_set``). An explicit None clears the field to its empty value,
except ``order`` and ``condition``, which have no empty value and stay as-is.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from report_sync.schemas.report import (
    ConditionPoint,
    ConditionRating,
    Room,
    RoomComponent,
    RoomComponentImage,
)

_COMPONENT_LIST_FIELDS = frozenset({"condition_points", "images"})


class RoomUpdate(BaseModel):
    """Set-if-present update of a room's persisted fields."""

    name: Optional[str] = None
    type: Optional[str] = None
    order: Optional[int] = None
    general_condition: Optional[str] = None
    components: Optional[List[RoomComponent]] = None
    sections: Optional[List[Any]] = None

    @classmethod
    def from_room(cls, room: Room) -> "RoomUpdate":
        """Full payload of an in-memory room; every field counts as supplied.

        An order below 1 means the room was never placed, so the stored (or
        synthesized) order is kept.
        """
        fields: Dict[str, Any] = {
            "name": room.name,
            "type": room.type,
            "general_condition": room.general_condition,
            "components": list(room.components),
            "sections": list(room.sections),
        }
        if room.order > 0:
            fields["order"] = room.order
        return cls(**fields)

    def provided(self) -> Dict[str, Any]:
        """Supplied fields in persisted (JSON-ready) form, keyed by field name.

        An explicit None clears a string field to "" and a list field to [];
        ``order=None`` leaves the order unset.
        """
        values: Dict[str, Any] = {}
        for field in self.model_fields_set:
            value = getattr(self, field)
            if field == "components":
                value = [component.to_document() for component in value or []]
            elif field == "sections":
                value = list(value or [])
            elif field == "order":
                if value is None:
                    continue
            elif value is None:
                value = ""
            values[field] = value
        return values

    def is_empty(self) -> bool:
        return not self.model_fields_set


class ComponentUpdate(BaseModel):
    """Set-if-present update of a single component."""

    name: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    condition: Optional[ConditionRating] = None
    condition_summary: Optional[str] = None
    condition_points: Optional[List[ConditionPoint]] = None
    cleanliness: Optional[str] = None
    notes: Optional[str] = None
    images: Optional[List[RoomComponentImage]] = None

    def apply_to(self, component: RoomComponent) -> RoomComponent:
        """Return a copy of component with the supplied fields replaced."""
        changes: Dict[str, Any] = {}
        for field in self.model_fields_set:
            value = getattr(self, field)
            if value is None:
                if field == "condition":
                    continue
                value = [] if field in _COMPONENT_LIST_FIELDS else ""
            changes[field] = value
        return component.model_copy(update=changes)
