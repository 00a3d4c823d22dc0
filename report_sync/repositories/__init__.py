"""Repository layer modules."""

from report_sync.repositories.image_repository import ImageRepository
from report_sync.repositories.inspection_repository import InspectionRepository
from report_sync.repositories.property_repository import PropertyRepository
from report_sync.repositories.room_repository import RoomRepository

__all__ = [
    "ImageRepository",
    "InspectionRepository",
    "PropertyRepository",
    "RoomRepository",
]
