"""Repository for inspection (report) rows."""

from typing import Any, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from report_sync.database.models import Inspection, Room
from report_sync.repositories.base_repository import BaseRepository
from report_sync.utils.logging import get_logger

LOGGER = get_logger(__name__)


class InspectionRepository(BaseRepository[Inspection]):
    """Reads and writes the report row that carries the report_info document."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Inspection)

    async def create_inspection(
        self,
        room_id: str,
        report_info: Any,
        status: str = "draft",
        inspection_id: Optional[str] = None,
    ) -> Inspection:
        """Insert a new report row anchored on its main room.

        Args:
            room_id: Anchor (main) room id
            report_info: Initial document
            status: Initial lifecycle status
            inspection_id: Optional explicit id

        Returns:
            Inspection: The created row
        """
        fields = {"room_id": room_id, "report_info": report_info, "status": status}
        if inspection_id:
            fields["id"] = inspection_id

        inspection = await self.create(**fields)
        LOGGER.info(
            f"Inspection created: inspection_id={inspection.id}, room_id={room_id}"
        )
        return inspection

    async def update_fields(self, inspection_id: str, **fields: Any) -> bool:
        """Update a partial set of columns in one statement.

        This is the single write used by the save pipeline; it either applies
        every supplied column or none of them.

        Args:
            inspection_id: Row to update
            **fields: Column names and new values

        Returns:
            True if a row was updated, False if the row does not exist
        """
        if not fields:
            return True

        try:
            stmt = (
                update(Inspection)
                .where(Inspection.id == inspection_id)
                .values(**fields)
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            LOGGER.error(
                f"Error updating inspection {inspection_id}: {str(e)}",
                exc_info=True,
                extra={"inspection_id": inspection_id, "fields": sorted(fields)},
            )
            raise

        return result.rowcount > 0

    async def list_recent(self, limit: int = 50) -> List[Inspection]:
        """Most recently created rows first."""
        try:
            query = select(Inspection).order_by(Inspection.created_at.desc()).limit(limit)
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            LOGGER.error(f"Error listing inspections: {str(e)}", exc_info=True)
            raise

    async def list_by_property(self, property_id: str) -> List[Inspection]:
        """Rows whose anchor room belongs to a property."""
        try:
            query = (
                select(Inspection)
                .join(Room, Room.id == Inspection.room_id)
                .where(Room.property_id == property_id)
                .order_by(Inspection.created_at.desc())
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            LOGGER.error(
                f"Error listing inspections for property {property_id}: {str(e)}",
                exc_info=True,
            )
            raise
