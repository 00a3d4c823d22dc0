"""Custom exception hierarchy."""

from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class DocumentParseError(AppError):
    """A report_info document could not be decoded.

    Always recovered inside the codec by falling back to the default document.
    """
    pass


class ClassificationMiss(AppError):
    """An additional-room update targeted an id absent from the document.

    Recovered by synthesizing a new additionalRooms entry.
    """

    def __init__(self, room_id: str):
        super().__init__(f"Room {room_id} not found in additionalRooms")
        self.room_id = room_id


class SavePipelineError(AppError):
    """Base exception for save pipeline failures."""

    code = "SaveFailed"

    def __init__(
        self,
        message: str,
        report_id: Optional[str] = None,
        original_error: Exception = None,
    ):
        super().__init__(message, original_error=original_error)
        self.report_id = report_id


class FetchFailedError(SavePipelineError):
    """The current row/document could not be read."""
    code = "FetchFailed"


class WriteFailedError(SavePipelineError):
    """The single row update failed."""
    code = "WriteFailed"


class InvalidResultError(SavePipelineError):
    """A merge step produced a document that cannot be persisted."""
    code = "InvalidResult"
