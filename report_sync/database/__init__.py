"""Database module for SQLAlchemy models."""

from report_sync.database.models import Inspection, InspectionImage, Property, Room

__all__ = [
    "Inspection",
    "InspectionImage",
    "Property",
    "Room",
]
