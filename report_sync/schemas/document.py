"""Persisted report_info document.

Both models allow extra keys so fields written by newer clients survive a
parse/serialize round-trip untouched.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_DOCUMENT_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class AdditionalRoomEntry(BaseModel):
    """A non-main room stored inside additionalRooms[]."""

    model_config = _DOCUMENT_CONFIG

    id: str
    name: str = ""
    type: str = ""
    order: Optional[int] = None
    general_condition: str = ""
    components: List[Any] = Field(default_factory=list)
    sections: List[Any] = Field(default_factory=list)


class ReportDocument(BaseModel):
    """The whole room/component tree of a report.

    Main-room fields live at the top level; every other room is an entry of
    ``additional_rooms``.
    """

    model_config = _DOCUMENT_CONFIG

    room_name: str = ""
    general_condition: str = ""
    components: List[Any] = Field(default_factory=list)
    sections: List[Any] = Field(default_factory=list)
    additional_rooms: List[AdditionalRoomEntry] = Field(default_factory=list)

    clerk: str = ""
    inventory_type: str = ""
    tenant_present: bool = False
    tenant_name: str = ""
    file_url: str = ""
    report_type: str = ""

    def find_additional_room(self, room_id: str) -> Optional[AdditionalRoomEntry]:
        return next((entry for entry in self.additional_rooms if entry.id == room_id), None)
