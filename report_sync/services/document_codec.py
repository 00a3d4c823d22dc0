"""Parsing and serialization of the report_info document.

report_info has been written by several generations of clients: it may be
missing, a JSON string (sometimes encoded twice), an object with arrays
replaced by nulls, or additional rooms with missing keys. Every read of the
document goes through ``DocumentCodec.parse`` so the rest of the engine can
assume a fully populated ``ReportDocument``.
"""

import json
from collections.abc import Mapping
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from report_sync.core.exceptions import DocumentParseError
from report_sync.schemas.document import ReportDocument
from report_sync.utils.coercion import as_bool, as_list, as_optional_int, as_str
from report_sync.utils.logging import get_logger

LOGGER = get_logger(__name__)

DOCUMENT_STRING_FIELDS = (
    "roomName",
    "generalCondition",
    "clerk",
    "inventoryType",
    "tenantName",
    "fileUrl",
    "reportType",
)
DOCUMENT_BOOL_FIELDS = ("tenantPresent",)
DOCUMENT_LIST_FIELDS = ("components", "sections")
ROOM_STRING_FIELDS = ("name", "type", "generalCondition")

# A JSON string column holding a JSON string holding the document
_MAX_DECODE_DEPTH = 2


class DocumentCodec:
    """Converts between stored report_info values and ReportDocument."""

    def parse(self, raw: Any) -> ReportDocument:
        """Parse a stored value into a normalized document.

        Never raises: missing or malformed input yields the default document.

        Args:
            raw: None, a JSON string/bytes, or an already decoded mapping

        Returns:
            ReportDocument: Document with every list field present
        """
        try:
            data = self._decode(raw)
            return ReportDocument.model_validate(self.normalize(data))
        except DocumentParseError as e:
            LOGGER.warning(f"Falling back to default report document: {e}")
        except PydanticValidationError as e:
            LOGGER.error(
                f"Normalized report document failed validation: {e}",
                exc_info=True,
            )
        except RecursionError as e:
            LOGGER.warning(f"Report document nested too deeply: {e}")
        return self.default_document()

    def serialize(self, document: ReportDocument) -> Dict[str, Any]:
        """JSON-ready mapping with camelCase keys and unknown keys preserved."""
        return document.model_dump(mode="json", by_alias=True)

    def default_document(self, **metadata: Any) -> ReportDocument:
        """Empty document, optionally seeded with metadata fields."""
        return ReportDocument.model_validate(self.normalize(dict(metadata)))

    def normalize(self, data: Mapping) -> Dict[str, Any]:
        """Return a copy of a decoded document with recognized fields coerced.

        Unrecognized keys are copied through unchanged.
        """
        normalized = dict(data)
        for key in DOCUMENT_STRING_FIELDS:
            normalized[key] = as_str(self._lookup(data, key))
        for key in DOCUMENT_BOOL_FIELDS:
            normalized[key] = as_bool(self._lookup(data, key))
        for key in DOCUMENT_LIST_FIELDS:
            normalized[key] = as_list(data.get(key))

        rooms = []
        for index, entry in enumerate(as_list(self._lookup(data, "additionalRooms"))):
            room = self.normalize_room(entry)
            if room is None:
                LOGGER.warning(f"Dropping malformed additionalRooms entry at index {index}")
                continue
            rooms.append(room)
        normalized["additionalRooms"] = rooms

        # Keep only the camelCase spelling of recognized keys
        for key in ("room_name", "general_condition", "additional_rooms", "inventory_type",
                    "tenant_present", "tenant_name", "file_url", "report_type"):
            normalized.pop(key, None)
        return normalized

    def normalize_room(self, entry: Any) -> Optional[Dict[str, Any]]:
        """Normalize one additionalRooms entry; None when it cannot be addressed."""
        if not isinstance(entry, Mapping):
            return None
        room_id = as_str(entry.get("id"))
        if not room_id:
            return None

        room = dict(entry)
        room["id"] = room_id
        for key in ROOM_STRING_FIELDS:
            room[key] = as_str(self._lookup(entry, key))
        room["order"] = as_optional_int(entry.get("order"))
        for key in DOCUMENT_LIST_FIELDS:
            room[key] = as_list(entry.get(key))
        room.pop("general_condition", None)
        return room

    def _decode(self, raw: Any) -> Mapping:
        value = raw
        for _ in range(_MAX_DECODE_DEPTH):
            if isinstance(value, (bytes, bytearray)):
                value = value.decode("utf-8", errors="replace")
            if not isinstance(value, str):
                break
            if not value.strip():
                raise DocumentParseError("report_info is empty")
            try:
                value = json.loads(value)
            except (ValueError, RecursionError) as e:
                # JSONDecodeError, oversized integers and excessive nesting
                raise DocumentParseError(f"report_info is not valid JSON: {e}", original_error=e)

        if value is None:
            raise DocumentParseError("report_info is missing")
        if not isinstance(value, Mapping):
            raise DocumentParseError(
                f"report_info must be an object, got {type(value).__name__}"
            )
        return value

    @staticmethod
    def _lookup(data: Mapping, camel_key: str) -> Any:
        """Read a camelCase key, accepting the snake_case spelling as fallback."""
        if camel_key in data:
            return data[camel_key]
        snake_key = "".join("_" + c.lower() if c.isupper() else c for c in camel_key)
        return data.get(snake_key)
