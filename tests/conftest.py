"""Pytest configuration and shared fixtures."""

import os

# Settings are read lazily; point them at SQLite before anything loads them
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio

from report_sync.core.config import DatabaseSettings
from report_sync.core.database import DatabaseClient, create_engine_from_settings, get_session_maker
from report_sync.database.models import Inspection, InspectionImage, Property, Room as RoomRecord
from report_sync.schemas.report import Report, ReportStatus, Room, RoomComponent, RoomComponentImage
from report_sync.services.report_cache import ReportCache
from report_sync.services.save_guard import SaveGuard

REPORT_ID = "report-1"
PROPERTY_ID = "property-1"
MAIN_ROOM_ID = "R1"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def report_cache(clock) -> ReportCache:
    """Cache with a 300 second TTL driven by the fake clock."""
    return ReportCache(ttl_seconds=300, max_entries=16, clock=clock)


@pytest.fixture
def save_guard() -> SaveGuard:
    return SaveGuard()


@pytest.fixture
def sample_component() -> RoomComponent:
    """Component without images.

    Returns:
        RoomComponent: A door in fair condition
    """
    return RoomComponent(id="C1", name="Door", type="door", condition="fair")


@pytest.fixture
def sample_image() -> RoomComponentImage:
    return RoomComponentImage(id="IMG1", url=f"inspections/{REPORT_ID}/{MAIN_ROOM_ID}/door.jpg")


@pytest.fixture
def sample_report(sample_component) -> Report:
    """Draft report with a main room and one additional room, no images.

    Returns:
        Report: Report anchored on R1
    """
    return Report(
        id=REPORT_ID,
        property_id=PROPERTY_ID,
        name="12 Elm Street Inspection",
        status=ReportStatus.DRAFT,
        rooms=[
            Room(id=MAIN_ROOM_ID, name="Living Room", type="living_room", order=1,
                 components=[sample_component]),
            Room(id="R2", name="Bedroom", type="bedroom", order=2),
        ],
    )


@pytest.fixture
def stored_document() -> dict:
    """report_info as stored for REPORT_ID, with an unrecognized key."""
    return {
        "roomName": "Living Room",
        "generalCondition": "",
        "components": [{"id": "C1", "name": "Door", "type": "door", "condition": "fair"}],
        "sections": [],
        "additionalRooms": [],
        "clerk": "Inspector",
        "reportType": "inspection",
        "reportDate": "2026-10-01",
    }


@pytest_asyncio.fixture
async def engine(tmp_path):
    """SQLite engine with the schema created.

    Yields:
        AsyncEngine: Engine bound to a per-test database file
    """
    settings = DatabaseSettings(DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'reports.db'}")
    engine = create_engine_from_settings(settings)
    client = DatabaseClient(engine)
    await client.create_tables()
    yield engine
    await client.drop_tables()
    await client.disconnect()


@pytest_asyncio.fixture
async def db_session(engine):
    async with get_session_maker(engine)() as session:
        yield session


@pytest_asyncio.fixture
async def seeded_report(db_session, stored_document):
    """Store a property, its main room R1 and a draft report anchored on R1.

    Returns:
        str: Id of the stored report
    """
    db_session.add(Property(id=PROPERTY_ID, name="12 Elm Street", address="12 Elm Street"))
    db_session.add(RoomRecord(id=MAIN_ROOM_ID, property_id=PROPERTY_ID, type="living_room"))
    db_session.add(RoomRecord(id="R2", property_id=PROPERTY_ID, type="bedroom"))
    db_session.add(
        Inspection(
            id=REPORT_ID,
            room_id=MAIN_ROOM_ID,
            status=ReportStatus.DRAFT.value,
            report_info=stored_document,
        )
    )
    await db_session.commit()
    return REPORT_ID


@pytest_asyncio.fixture
async def add_image(db_session):
    """Store an image record for a room of REPORT_ID."""

    async def _add(room_id: str, image_id: str = "IMG-DB-1") -> None:
        db_session.add(
            InspectionImage(
                id=image_id,
                inspection_id=REPORT_ID,
                image_url=f"inspections/{REPORT_ID}/{room_id}/photo.jpg",
            )
        )
        await db_session.commit()

    return _add
