"""Unit tests for report repositories with a mocked session."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from report_sync.repositories.image_repository import ImageRepository
from report_sync.repositories.inspection_repository import InspectionRepository
from report_sync.repositories.room_repository import RoomRepository


@pytest.fixture
def mock_session():
    session = AsyncMock()
    session.add = MagicMock()
    return session


def _rowcount(count: int) -> MagicMock:
    result = MagicMock()
    result.rowcount = count
    return result


class TestInspectionRepositoryUpdateFields:
    """The single-statement write used by saves."""

    @pytest.mark.asyncio
    async def test_one_statement_then_commit(self, mock_session):
        mock_session.execute.return_value = _rowcount(1)
        repo = InspectionRepository(mock_session)

        updated = await repo.update_fields("report-1", status="in_progress", report_info={})

        assert updated is True
        mock_session.execute.assert_awaited_once()
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_row_returns_false(self, mock_session):
        mock_session.execute.return_value = _rowcount(0)

        assert await InspectionRepository(mock_session).update_fields("gone", status="draft") is False

    @pytest.mark.asyncio
    async def test_error_rolls_back_and_raises(self, mock_session):
        mock_session.execute.side_effect = OperationalError("UPDATE", {}, Exception("locked"))

        with pytest.raises(OperationalError):
            await InspectionRepository(mock_session).update_fields("report-1", status="draft")

        mock_session.rollback.assert_awaited_once()
        mock_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_fields_is_noop(self, mock_session):
        assert await InspectionRepository(mock_session).update_fields("report-1") is True

        mock_session.execute.assert_not_awaited()


class TestRoomRepository:
    """Room record lookups."""

    @pytest.mark.asyncio
    async def test_get_many_with_no_ids_skips_query(self, mock_session):
        assert await RoomRepository(mock_session).get_many([]) == {}

        mock_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_many_keys_by_id(self, mock_session):
        rooms = [MagicMock(id="R1"), MagicMock(id="R2")]
        result = MagicMock()
        result.scalars.return_value.all.return_value = rooms
        mock_session.execute.return_value = result

        found = await RoomRepository(mock_session).get_many(["R1", "R2", "R1"])

        assert found == {"R1": rooms[0], "R2": rooms[1]}


class TestImageRepository:
    """Image record writes."""

    @pytest.mark.asyncio
    async def test_attach_analysis_without_ids_is_noop(self, mock_session):
        assert await ImageRepository(mock_session).attach_analysis([], {"notes": ""}) == 0

        mock_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_by_inspection_commits(self, mock_session):
        mock_session.execute.return_value = _rowcount(2)

        assert await ImageRepository(mock_session).delete_by_inspection("report-1") == 2
        mock_session.commit.assert_awaited_once()
