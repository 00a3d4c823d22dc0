"""SQLAlchemy models for the inspection report tables.

Column types are kept portable (generic JSON, string ids) so the same models
run on PostgreSQL in production and SQLite in tests.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from report_sync.core.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Property(Base):
    """A property that reports are written for."""

    __tablename__ = "properties"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    address: Mapped[str] = mapped_column(String, nullable=False, default="")
    property_type: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    rooms: Mapped[list["Room"]] = relationship(
        "Room", back_populates="property", cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Room(Base):
    """Room record. Only the type lives here; room content lives in report_info."""

    __tablename__ = "rooms"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    property_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=True
    )
    type: Mapped[str] = mapped_column(String, nullable=False, default="other")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    property: Mapped["Property | None"] = relationship("Property", back_populates="rooms")


class Inspection(Base):
    """The report row. room_id is the anchor (main) room."""

    __tablename__ = "inspections"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    room_id: Mapped[str] = mapped_column(String(36), ForeignKey("rooms.id"), nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default="draft"
    )  # draft | in_progress | pending_review | completed | archived
    report_info: Mapped[Any] = mapped_column(JSON, nullable=True)
    report_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    images: Mapped[list["InspectionImage"]] = relationship(
        "InspectionImage", back_populates="inspection", cascade="all, delete-orphan",
        passive_deletes=True,
    )


class InspectionImage(Base):
    """Image captured during an inspection, optionally carrying AI analysis."""

    __tablename__ = "inspection_images"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    inspection_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False
    )
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    analysis: Mapped[Any] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    inspection: Mapped["Inspection"] = relationship("Inspection", back_populates="images")
