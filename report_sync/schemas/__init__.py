"""Pydantic schemas for the report domain, persisted document and saves."""

from report_sync.schemas.analysis import AnalysisCondition, ComponentAnalysis
from report_sync.schemas.document import AdditionalRoomEntry, ReportDocument
from report_sync.schemas.report import (
    ConditionPoint,
    ConditionRating,
    PropertySnapshot,
    Report,
    ReportInfo,
    ReportStatus,
    Room,
    RoomComponent,
    RoomComponentImage,
    RoomImage,
)
from report_sync.schemas.save import SaveOptions, SaveProgress, SaveResult
from report_sync.schemas.updates import ComponentUpdate, RoomUpdate

__all__ = [
    "AdditionalRoomEntry",
    "AnalysisCondition",
    "ComponentAnalysis",
    "ComponentUpdate",
    "ConditionPoint",
    "ConditionRating",
    "PropertySnapshot",
    "Report",
    "ReportDocument",
    "ReportInfo",
    "ReportStatus",
    "Room",
    "RoomComponent",
    "RoomComponentImage",
    "RoomImage",
    "RoomUpdate",
    "SaveOptions",
    "SaveProgress",
    "SaveResult",
]
