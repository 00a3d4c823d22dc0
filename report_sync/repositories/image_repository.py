"""Repository for inspection image records."""

from typing import Any, List

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from report_sync.database.models import InspectionImage
from report_sync.repositories.base_repository import BaseRepository
from report_sync.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ImageRepository(BaseRepository[InspectionImage]):
    """Image records are added elsewhere; the sync engine mostly reads them."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, InspectionImage)

    async def get_by_inspection(self, inspection_id: str) -> List[InspectionImage]:
        """All images of a report, oldest first."""
        try:
            query = (
                select(InspectionImage)
                .where(InspectionImage.inspection_id == inspection_id)
                .order_by(InspectionImage.created_at)
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            LOGGER.error(
                f"Error fetching images for inspection {inspection_id}: {str(e)}",
                exc_info=True,
            )
            raise

    async def attach_analysis(self, image_ids: List[str], analysis: Any) -> int:
        """Store an AI analysis payload on a set of images.

        Returns:
            Number of image records updated
        """
        if not image_ids:
            return 0

        try:
            result = await self.session.execute(
                update(InspectionImage)
                .where(InspectionImage.id.in_(image_ids))
                .values(analysis=analysis)
            )
            await self.session.commit()
            return result.rowcount
        except SQLAlchemyError as e:
            await self.session.rollback()
            LOGGER.error(f"Error attaching analysis to {image_ids}: {str(e)}", exc_info=True)
            raise

    async def delete_by_inspection(self, inspection_id: str) -> int:
        try:
            result = await self.session.execute(
                delete(InspectionImage).where(InspectionImage.inspection_id == inspection_id)
            )
            await self.session.commit()
            return result.rowcount
        except SQLAlchemyError as e:
            await self.session.rollback()
            LOGGER.error(
                f"Error deleting images for inspection {inspection_id}: {str(e)}",
                exc_info=True,
            )
            raise
