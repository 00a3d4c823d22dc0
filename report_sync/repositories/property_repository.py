"""Repository for properties."""

from sqlalchemy.ext.asyncio import AsyncSession

from report_sync.database.models import Property
from report_sync.repositories.base_repository import BaseRepository


class PropertyRepository(BaseRepository[Property]):

    def __init__(self, session: AsyncSession):
        super().__init__(session, Property)
