"""Save pipeline options, progress and results."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from report_sync.core.exceptions import SavePipelineError
from report_sync.schemas.document import ReportDocument
from report_sync.schemas.report import ReportStatus


@dataclass(frozen=True)
class SaveOptions:
    """How a save should move the report's lifecycle status."""
    update_status: bool = True
    mark_completed: bool = False


@dataclass(frozen=True)
class SaveProgress:
    total: int
    completed: int
    current_operation: str

    @property
    def percent(self) -> float:
        return 100.0 * self.completed / self.total if self.total else 0.0


@dataclass
class SaveResult:
    """Outcome of a save; falsy whenever nothing was persisted."""

    success: bool
    report_id: str
    status: Optional[ReportStatus] = None
    error: Optional[SavePipelineError] = None
    guard_rejected: bool = False
    document: Optional[ReportDocument] = None
    anchor_room_id: Optional[str] = None
    saved_at: Optional[datetime] = None

    def __bool__(self) -> bool:
        return self.success

    @property
    def error_code(self) -> Optional[str]:
        if self.guard_rejected:
            return "GuardRejected"
        return self.error.code if self.error else None

    @classmethod
    def rejected(cls, report_id: str) -> "SaveResult":
        return cls(success=False, report_id=report_id, guard_rejected=True)

    @classmethod
    def failed(cls, report_id: str, error: SavePipelineError) -> "SaveResult":
        return cls(success=False, report_id=report_id, error=error)
