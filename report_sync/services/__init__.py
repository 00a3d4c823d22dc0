"""Report persistence services."""

from report_sync.services.document_codec import DocumentCodec
from report_sync.services.report_assembler import LoadedReport, ReportAssembler
from report_sync.services.report_cache import CacheEntry, ReportCache
from report_sync.services.report_service import ReportService
from report_sync.services.room_classifier import RoomClassifier, RoomKind
from report_sync.services.save_guard import SaveGuard
from report_sync.services.save_pipeline import (
    BatchedSavePipeline,
    SavePipeline,
    SequentialSavePipeline,
    create_save_pipeline,
)

__all__ = [
    "BatchedSavePipeline",
    "CacheEntry",
    "DocumentCodec",
    "LoadedReport",
    "ReportAssembler",
    "ReportCache",
    "ReportService",
    "RoomClassifier",
    "RoomKind",
    "SaveGuard",
    "SavePipeline",
    "SequentialSavePipeline",
    "create_save_pipeline",
]
