"""Main-room versus additional-room classification and document merges.

The report row's ``room_id`` is the anchor: that room's fields live at the
top level of report_info. Every other room lives in ``additionalRooms``. All
room and component edits are routed through ``RoomClassifier`` so no caller
decides the location of a room on its own.
"""

from enum import Enum
from typing import Any, Callable, Dict, Optional

from report_sync.core.exceptions import ClassificationMiss, ValidationError
from report_sync.schemas.document import AdditionalRoomEntry, ReportDocument
from report_sync.schemas.report import RoomComponent, format_room_type
from report_sync.schemas.updates import ComponentUpdate, RoomUpdate
from report_sync.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Room update field -> top-level document field for the main room.
# type and order of the main room are not stored in the document.
MAIN_ROOM_FIELDS = {
    "name": "room_name",
    "general_condition": "general_condition",
    "components": "components",
    "sections": "sections",
}
ADDITIONAL_ROOM_FIELDS = {
    "name": "name",
    "type": "type",
    "order": "order",
    "general_condition": "general_condition",
    "components": "components",
    "sections": "sections",
}

# Position 1 belongs to the main room
FIRST_ADDITIONAL_ORDER = 2


class RoomKind(str, Enum):
    MAIN = "main"
    ADDITIONAL = "additional"


class RoomClassifier:
    """Classifies rooms of one report and merges updates into its document.

    Merges never mutate the document they are given.
    """

    def __init__(self, anchor_room_id: str):
        self.anchor_room_id = anchor_room_id

    @classmethod
    def for_inspection(cls, inspection: Any) -> "RoomClassifier":
        """Build a classifier from a report row (anything with ``room_id``)."""
        return cls(inspection.room_id)

    def classify(self, room_id: str) -> RoomKind:
        return RoomKind.MAIN if room_id == self.anchor_room_id else RoomKind.ADDITIONAL

    def is_main(self, room_id: str) -> bool:
        return self.classify(room_id) is RoomKind.MAIN

    def merge_room_update(
        self,
        document: ReportDocument,
        room_id: str,
        update: RoomUpdate,
        room_record: Optional[Any] = None,
    ) -> ReportDocument:
        """Apply a set-if-present room update to the right place in the document.

        Args:
            document: Current document
            room_id: Room being updated
            update: Partial room update
            room_record: Room record (with ``type``) used when an additional
                room has no entry yet

        Returns:
            ReportDocument: Updated copy of the document
        """
        merged = document.model_copy(deep=True)
        values = update.provided()

        if self.is_main(room_id):
            for field, target in MAIN_ROOM_FIELDS.items():
                if field in values:
                    setattr(merged, target, values[field])
            return merged

        try:
            entry = self._find_entry(merged, room_id)
        except ClassificationMiss as miss:
            LOGGER.info(f"{miss}; creating entry")
            entry = self._synthesize_entry(merged, room_id, room_record)
            merged.additional_rooms.append(entry)

        for field, target in ADDITIONAL_ROOM_FIELDS.items():
            if field in values:
                setattr(entry, target, values[field])
        return merged

    def remove_room(self, document: ReportDocument, room_id: str) -> ReportDocument:
        """Remove a room's data.

        The main room cannot be removed from the row, so its fields are
        cleared; an additional room is filtered out of the array.
        """
        result = document.model_copy(deep=True)
        if self.is_main(room_id):
            result.room_name = ""
            result.general_condition = ""
            result.components = []
            result.sections = []
        else:
            result.additional_rooms = [
                entry for entry in result.additional_rooms if entry.id != room_id
            ]
        return result

    def room_components(self, document: ReportDocument, room_id: str) -> list:
        """Raw component entries of a room; empty when the room has no entry."""
        if self.is_main(room_id):
            return document.components
        entry = document.find_additional_room(room_id)
        return entry.components if entry else []

    def transform_component(
        self,
        document: ReportDocument,
        room_id: str,
        component_id: str,
        transform: Callable[[RoomComponent], RoomComponent],
    ) -> ReportDocument:
        """Replace one component of a room with ``transform(component)``.

        Raises:
            ValidationError: If the room or component does not exist
        """
        result = document.model_copy(deep=True)
        components = self._components_of(result, room_id)

        for index, raw in enumerate(components):
            if isinstance(raw, dict) and raw.get("id") == component_id:
                component = RoomComponent.model_validate(raw)
                components[index] = transform(component).to_document()
                return result

        raise ValidationError(f"Component {component_id} not found in room {room_id}")

    def update_component(
        self,
        document: ReportDocument,
        room_id: str,
        component_id: str,
        update: ComponentUpdate,
    ) -> ReportDocument:
        return self.transform_component(document, room_id, component_id, update.apply_to)

    def remove_component(
        self, document: ReportDocument, room_id: str, component_id: str
    ) -> ReportDocument:
        result = document.model_copy(deep=True)
        components = self._components_of(result, room_id)
        remaining = [
            c for c in components if not (isinstance(c, dict) and c.get("id") == component_id)
        ]
        if len(remaining) == len(components):
            raise ValidationError(f"Component {component_id} not found in room {room_id}")
        components[:] = remaining
        return result

    def _components_of(self, document: ReportDocument, room_id: str) -> list:
        if self.is_main(room_id):
            return document.components
        try:
            return self._find_entry(document, room_id).components
        except ClassificationMiss as miss:
            raise ValidationError(str(miss), original_error=miss)

    @staticmethod
    def _find_entry(document: ReportDocument, room_id: str) -> AdditionalRoomEntry:
        entry = document.find_additional_room(room_id)
        if entry is None:
            raise ClassificationMiss(room_id)
        return entry

    @staticmethod
    def _synthesize_entry(
        document: ReportDocument, room_id: str, room_record: Optional[Any]
    ) -> AdditionalRoomEntry:
        room_type = getattr(room_record, "type", None) or ""
        return AdditionalRoomEntry(
            id=room_id,
            name=getattr(room_record, "name", None) or format_room_type(room_type or None),
            type=room_type,
            order=len(document.additional_rooms) + FIRST_ADDITIONAL_ORDER,
            general_condition="",
            components=[],
            sections=[],
        )


def merge_room_updates(
    classifier: RoomClassifier,
    document: ReportDocument,
    updates: Dict[str, RoomUpdate],
    room_records: Optional[Dict[str, Any]] = None,
) -> ReportDocument:
    """Fold several room updates into one working copy, in the given order."""
    room_records = room_records or {}
    for room_id, update in updates.items():
        document = classifier.merge_room_update(
            document, room_id, update, room_records.get(room_id)
        )
    return document
