"""Client-facing report operations.

Every call follows the same convention: failures are logged and surface as a
falsy return value (``False``, ``None`` or an empty list) rather than an
exception. Saves and edits of one report are mutually exclusive through the
shared SaveGuard; a rejected call returns falsy without touching storage.
"""

from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from report_sync.core.exceptions import ValidationError
from report_sync.repositories.image_repository import ImageRepository
from report_sync.repositories.inspection_repository import InspectionRepository
from report_sync.repositories.property_repository import PropertyRepository
from report_sync.repositories.room_repository import RoomRepository
from report_sync.schemas.analysis import ComponentAnalysis
from report_sync.schemas.report import PropertySnapshot, Report, Room
from report_sync.schemas.save import SaveOptions, SaveResult
from report_sync.schemas.updates import ComponentUpdate, RoomUpdate
from report_sync.services.base_service import BaseService
from report_sync.services.component_analysis import analysis_transform
from report_sync.services.document_codec import DocumentCodec
from report_sync.services.report_assembler import ReportAssembler, to_property_snapshot
from report_sync.services.report_cache import ReportCache
from report_sync.services.save_guard import SaveGuard
from report_sync.services.save_pipeline import (
    DocumentMutation,
    ProgressCallback,
    SavePipeline,
    SequentialSavePipeline,
)
from report_sync.utils.logging import get_logger

LOGGER = get_logger(__name__)

MAIN_ROOM_TYPE = "living_room"
DEFAULT_CLERK = "Inspector"


class ReportService(BaseService):
    """Facade over the assembler, the save pipeline and the cache."""

    ACTIONS = frozenset({
        "save_report",
        "complete_report",
        "update_room",
        "get_report",
        "create_report",
        "list_reports",
        "add_room",
        "delete_room",
        "update_component",
        "delete_component",
        "apply_component_analysis",
        "delete_report",
    })

    def __init__(
        self,
        session: AsyncSession,
        cache: ReportCache,
        save_guard: SaveGuard,
        pipeline: Optional[SavePipeline] = None,
        codec: Optional[DocumentCodec] = None,
    ):
        """Initialize the service.

        Args:
            session: Database session shared by all repositories
            cache: Report cache
            save_guard: Per-report in-flight latch, shared with the pipeline
            pipeline: Save pipeline; sequential when omitted
            codec: Document codec
        """
        super().__init__()
        self.session = session
        self.cache = cache
        self.save_guard = save_guard
        self.codec = codec or DocumentCodec()

        self.inspection_repo = InspectionRepository(session)
        self.room_repo = RoomRepository(session)
        self.image_repo = ImageRepository(session)
        self.property_repo = PropertyRepository(session)

        self.pipeline = pipeline or SequentialSavePipeline(
            session,
            cache,
            save_guard,
            codec=self.codec,
            inspection_repo=self.inspection_repo,
            room_repo=self.room_repo,
            image_repo=self.image_repo,
        )
        self.assembler = ReportAssembler(
            session,
            codec=self.codec,
            inspection_repo=self.inspection_repo,
            room_repo=self.room_repo,
            image_repo=self.image_repo,
            property_repo=self.property_repo,
        )

    def validate(self, action: str, **kwargs) -> None:
        super().validate(action, **kwargs)
        if "report_id" in kwargs and not kwargs["report_id"]:
            raise ValidationError(f"{action} requires a report_id")
        if action in ("save_report", "complete_report") and not isinstance(kwargs.get("report"), Report):
            raise ValidationError(f"{action} requires a Report")

    async def run(self, action: str, **kwargs) -> Any:
        """Route an action to its handler."""
        handler: Callable = getattr(self, action)
        return await handler(**kwargs)

    # ------------------------------------------------------------------
    # Saves
    # ------------------------------------------------------------------

    async def save_report(
        self,
        report: Report,
        update_status: bool = True,
        on_progress: Optional[ProgressCallback] = None,
    ) -> bool:
        """Persist every room of a report.

        Returns:
            True if the report was written
        """
        result = await self.pipeline.save(
            report, SaveOptions(update_status=update_status), on_progress
        )
        return bool(result)

    async def complete_report(
        self, report: Report, on_progress: Optional[ProgressCallback] = None
    ) -> bool:
        """Save the report and mark it completed."""
        result = await self.pipeline.save(
            report, SaveOptions(update_status=True, mark_completed=True), on_progress
        )
        if result:
            LOGGER.info(f"Report completed: report_id={report.id}")
        return bool(result)

    async def update_room(
        self, report_id: str, room_id: str, update: RoomUpdate
    ) -> Optional[Room]:
        """Apply a partial update to one room.

        Only fields explicitly set on ``update`` are written. A new ``type`` is
        also stored on the room record, which is where the main room keeps it.
        The record write and the room reload happen before the save guard is
        released.

        Returns:
            The room as stored after the update, or None on failure
        """
        room: Optional[Room] = None

        async def store_room(result: SaveResult) -> None:
            nonlocal room
            if "type" in update.model_fields_set and update.type:
                try:
                    await self.room_repo.update_type(room_id, update.type)
                except SQLAlchemyError as e:
                    LOGGER.warning(f"Room type not stored on record: room_id={room_id}, error={e}")
            room = await self._refresh_cached_room(report_id, room_id, result)

        result = await self.pipeline.apply_room_update(
            report_id, room_id, update, after_write=store_room
        )
        if not result:
            return None
        return room

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_report(self, report_id: str) -> Optional[Report]:
        """Cached report, or a full load from storage."""
        entry = self.cache.get(report_id)
        if entry is not None:
            LOGGER.debug(f"Report cache hit: report_id={report_id}")
            return entry.report.model_copy(deep=True)

        try:
            loaded = await self.assembler.load(report_id)
        except SQLAlchemyError as e:
            LOGGER.error(f"Failed to load report {report_id}: {str(e)}")
            return None

        if loaded is None:
            return None

        self.cache.set(report_id, loaded.report, loaded.property)
        return loaded.report

    async def list_reports(self, property_id: Optional[str] = None) -> List[Report]:
        """Report headers (without rooms), newest first."""
        try:
            if property_id:
                rows = await self.inspection_repo.list_by_property(property_id)
            else:
                rows = await self.inspection_repo.list_recent()

            room_records = await self.room_repo.get_many(row.room_id for row in rows)
            snapshots = await self._property_snapshots(
                record.property_id for record in room_records.values()
            )
        except SQLAlchemyError as e:
            LOGGER.error(f"Failed to list reports: {str(e)}")
            return []

        reports = []
        for row in rows:
            main_record = room_records.get(row.room_id)
            snapshot = snapshots.get(getattr(main_record, "property_id", None))
            reports.append(
                self.assembler.summarize(row, self.codec.parse(row.report_info), main_record, snapshot)
            )
        return reports

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_report(
        self,
        property_id: str,
        report_type: str = "inspection",
        clerk: str = DEFAULT_CLERK,
    ) -> Optional[Report]:
        """Create a draft report with its main room for a property."""
        try:
            property_record = await self.property_repo.get_by_id(property_id)
            if property_record is None:
                LOGGER.warning(f"Cannot create report, property not found: property_id={property_id}")
                return None

            main_room = await self.room_repo.create_room(property_id, MAIN_ROOM_TYPE)
            document = self.codec.default_document(
                reportType=report_type,
                clerk=clerk,
                reportDate=date.today().isoformat(),
            )
            inspection = await self.inspection_repo.create_inspection(
                main_room.id, self.codec.serialize(document)
            )
        except SQLAlchemyError as e:
            LOGGER.error(f"Failed to create report for property {property_id}: {str(e)}")
            return None

        LOGGER.info(
            f"Report created: report_id={inspection.id}, property_id={property_id}",
            extra={"report_type": report_type},
        )
        return await self.get_report(inspection.id)

    async def add_room(self, report_id: str, name: str, room_type: str) -> Optional[Room]:
        """Create a room record and append it to the report's additional rooms."""
        try:
            inspection = await self.inspection_repo.get_by_id(report_id)
            if inspection is None:
                LOGGER.warning(f"Cannot add room, report not found: report_id={report_id}")
                return None
            anchor = await self.room_repo.get_by_id(inspection.room_id)
            room = await self.room_repo.create_room(
                getattr(anchor, "property_id", None), room_type
            )
        except SQLAlchemyError as e:
            LOGGER.error(f"Failed to create room for report {report_id}: {str(e)}")
            return None

        added: Optional[Room] = None

        async def reload_room(result: SaveResult) -> None:
            nonlocal added
            added = await self._refresh_cached_room(report_id, room.id, result)

        result = await self.pipeline.apply_room_update(
            report_id, room.id, RoomUpdate(name=name, type=room_type), after_write=reload_room
        )
        if not result:
            await self._discard_room_record(room.id)
            return None

        LOGGER.info(f"Room added: report_id={report_id}, room_id={room.id}, type={room_type}")
        return added

    async def delete_room(self, report_id: str, room_id: str) -> bool:
        """Remove a room from the report.

        The main room's data is cleared but its record stays, since the row is
        anchored on it. An additional room's record is deleted as well.
        """
        result = await self.pipeline.mutate_document(
            report_id, lambda document, classifier: classifier.remove_room(document, room_id)
        )
        if not result:
            return False

        if result.anchor_room_id != room_id:
            await self._discard_room_record(room_id)

        self.cache.invalidate(report_id)
        LOGGER.info(f"Room deleted: report_id={report_id}, room_id={room_id}")
        return True

    async def delete_report(self, report_id: str) -> bool:
        """Delete a report row and its image records.

        Refused while a save of the report is in flight.
        """
        with self.save_guard.hold(report_id) as acquired:
            if not acquired:
                LOGGER.warning(f"Report is being saved, not deleting: report_id={report_id}")
                return False

            try:
                images = await self.image_repo.delete_by_inspection(report_id)
                deleted = await self.inspection_repo.delete(report_id)
            except SQLAlchemyError as e:
                LOGGER.error(f"Failed to delete report {report_id}: {str(e)}")
                return False
            finally:
                self.cache.invalidate(report_id)

        if deleted:
            LOGGER.info(f"Report deleted: report_id={report_id}, images={images}")
        return deleted

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    async def update_component(
        self, report_id: str, room_id: str, component_id: str, update: ComponentUpdate
    ) -> bool:
        return await self._mutate(
            report_id,
            lambda document, classifier: classifier.update_component(
                document, room_id, component_id, update
            ),
        )

    async def delete_component(self, report_id: str, room_id: str, component_id: str) -> bool:
        return await self._mutate(
            report_id,
            lambda document, classifier: classifier.remove_component(document, room_id, component_id),
        )

    async def apply_component_analysis(
        self,
        report_id: str,
        room_id: str,
        component_id: str,
        analysis: Any,
        image_ids: Optional[List[str]] = None,
    ) -> bool:
        """Fold an AI analysis into a component and store it on the image records.

        Args:
            report_id: Report holding the component
            room_id: Room holding the component
            component_id: Analysed component
            analysis: Analysis payload; missing fields fall back to defaults
            image_ids: Images the analysis was run on; all of the
                component's images when omitted
        """
        parsed = ComponentAnalysis.from_payload(analysis)
        transform = analysis_transform(parsed, image_ids)

        stored = await self._mutate(
            report_id,
            lambda document, classifier: classifier.transform_component(
                document, room_id, component_id, transform
            ),
        )
        if not stored:
            return False

        if image_ids:
            try:
                await self.image_repo.attach_analysis(image_ids, parsed.model_dump(mode="json"))
            except SQLAlchemyError as e:
                LOGGER.warning(
                    f"Analysis stored on component but not on image records: "
                    f"report_id={report_id}, error={e}"
                )
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _mutate(self, report_id: str, mutation: DocumentMutation) -> bool:
        result = await self.pipeline.mutate_document(report_id, mutation)
        if result:
            self.cache.invalidate(report_id)
        return bool(result)

    async def _refresh_cached_room(
        self, report_id: str, room_id: str, result: SaveResult
    ) -> Optional[Room]:
        """Rebuild a room from the written document and patch it into the cache."""
        try:
            room = await self.assembler.load_room(
                report_id, result.anchor_room_id, result.document, room_id
            )
        except SQLAlchemyError as e:
            LOGGER.error(f"Room written but could not be reloaded: room_id={room_id}, error={e}")
            self.cache.invalidate(report_id)
            return None

        entry = self.cache.get(report_id)
        if entry is not None and room is not None:
            rooms = [r for r in entry.report.rooms if r.id != room_id] + [room]
            rooms.sort(key=lambda r: r.order)
            self.cache.update(report_id, {"rooms": rooms, "updated_at": result.saved_at})
        return room

    async def _discard_room_record(self, room_id: str) -> None:
        try:
            await self.room_repo.delete(room_id)
        except SQLAlchemyError as e:
            LOGGER.warning(f"Room record left behind: room_id={room_id}, error={e}")

    async def _property_snapshots(
        self, property_ids: Iterable[Optional[str]]
    ) -> Dict[str, PropertySnapshot]:
        snapshots = {}
        for property_id in set(pid for pid in property_ids if pid):
            snapshot = to_property_snapshot(await self.property_repo.get_by_id(property_id))
            if snapshot is not None:
                snapshots[property_id] = snapshot
        return snapshots
