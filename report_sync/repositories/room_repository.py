"""Repository for room records."""

from typing import Dict, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from report_sync.database.models import Room
from report_sync.repositories.base_repository import BaseRepository
from report_sync.utils.logging import get_logger

LOGGER = get_logger(__name__)


class RoomRepository(BaseRepository[Room]):
    """Room records hold only identity, owning property and type."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Room)

    async def create_room(
        self, property_id: Optional[str], room_type: str, room_id: Optional[str] = None
    ) -> Room:
        fields = {"property_id": property_id, "type": room_type}
        if room_id:
            fields["id"] = room_id
        return await self.create(**fields)

    async def get_many(self, room_ids: Iterable[str]) -> Dict[str, Room]:
        """Fetch several rooms in one query, keyed by id."""
        ids = list(dict.fromkeys(room_ids))
        if not ids:
            return {}

        try:
            query = select(Room).where(Room.id.in_(ids)).execution_options(populate_existing=True)
            result = await self.session.execute(query)
            return {room.id: room for room in result.scalars().all()}
        except SQLAlchemyError as e:
            LOGGER.error(f"Error fetching rooms {ids}: {str(e)}", exc_info=True)
            raise

    async def update_type(self, room_id: str, room_type: str) -> bool:
        try:
            result = await self.session.execute(
                update(Room).where(Room.id == room_id).values(type=room_type)
            )
            await self.session.commit()
            return result.rowcount > 0
        except SQLAlchemyError as e:
            await self.session.rollback()
            LOGGER.error(f"Error updating room type {room_id}: {str(e)}", exc_info=True)
            raise
