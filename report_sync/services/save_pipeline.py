"""Report save pipeline.

A save is built from several calls (read the row, read image records, look up
room records) but persists with exactly one row update, so a failure can
never leave some rooms written and others not:

    1. fold the stored image records into the in-memory rooms and compute the
       target status
    2. build one full-payload RoomUpdate per room
    3. read the current report_info once
    4. classify and merge every room into one working copy
    5. validate, then write status, timestamps and report_info in one update
    6. update the cache on success, invalidate it on any failure

The sequential and batched variants differ only in how step 4 prepares the
rooms; the write in step 5 is always a single call.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from report_sync.core.exceptions import (
    AppError,
    ConfigurationError,
    FetchFailedError,
    InvalidResultError,
    SavePipelineError,
    WriteFailedError,
)
from report_sync.repositories.image_repository import ImageRepository
from report_sync.repositories.inspection_repository import InspectionRepository
from report_sync.repositories.room_repository import RoomRepository
from report_sync.schemas.document import ReportDocument
from report_sync.schemas.report import Report, normalize_status
from report_sync.schemas.save import SaveOptions, SaveProgress, SaveResult
from report_sync.schemas.updates import RoomUpdate
from report_sync.services.document_codec import DocumentCodec
from report_sync.services.report_assembler import fold_images
from report_sync.services.report_cache import ReportCache
from report_sync.services.report_status import furthest_status, target_status_for
from report_sync.services.room_classifier import RoomClassifier, RoomKind
from report_sync.services.save_guard import SaveGuard
from report_sync.utils.logging import get_logger

LOGGER = get_logger(__name__)

ProgressCallback = Callable[[SaveProgress], None]
DocumentMutation = Callable[[ReportDocument, RoomClassifier], ReportDocument]
AfterWrite = Callable[[SaveResult], Awaitable[None]]

PROGRESS_TOTAL = 100
PROGRESS_START = 0
PROGRESS_PREPARED = 30
PROGRESS_WRITTEN = 90
PROGRESS_DONE = 100

DEFAULT_BATCH_SIZE = 3


@dataclass
class PreparedRoomUpdate:
    """A room update ready to merge, with the room record when one was needed."""
    room_id: str
    update: RoomUpdate
    room_record: Optional[Any] = None


class SavePipeline(ABC):
    """Guarded read-merge-write of a report's document."""

    def __init__(
        self,
        session: AsyncSession,
        cache: ReportCache,
        save_guard: SaveGuard,
        codec: Optional[DocumentCodec] = None,
        inspection_repo: Optional[InspectionRepository] = None,
        room_repo: Optional[RoomRepository] = None,
        image_repo: Optional[ImageRepository] = None,
    ):
        """Initialize the pipeline.

        Args:
            session: Database session shared by the repositories
            cache: Report cache kept coherent with successful writes
            save_guard: Per-report in-flight latch
            codec: Document codec
            inspection_repo: Repository for the report row
            room_repo: Repository for room records
            image_repo: Repository for image records
        """
        self.session = session
        self.cache = cache
        self.save_guard = save_guard
        self.codec = codec or DocumentCodec()
        self.inspection_repo = inspection_repo or InspectionRepository(session)
        self.room_repo = room_repo or RoomRepository(session)
        self.image_repo = image_repo or ImageRepository(session)
        self.logger = LOGGER

    async def save(
        self,
        report: Report,
        options: Optional[SaveOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SaveResult:
        """Persist every room of a report and its lifecycle status.

        Args:
            report: In-memory report to persist
            options: Status handling for this save
            on_progress: Called at start, after preparation, after the write
                and when finished

        Returns:
            SaveResult: Truthy on success; on failure carries the error, or
            ``guard_rejected`` when another save for the report was running
        """
        options = options or SaveOptions()
        report_id = report.id

        if not self.save_guard.begin_save(report_id):
            return SaveResult.rejected(report_id)

        try:
            self._progress(on_progress, PROGRESS_START, "Starting save...")
            started = datetime.now(timezone.utc)

            inspection = await self._fetch_row(report_id)
            classifier = RoomClassifier.for_inspection(inspection)
            image_records = await self._fetch_images(report_id)

            # Step 1: status depends on the stored images, not the client's copy
            rooms = fold_images(report.rooms, image_records, classifier)
            current = furthest_status(report.status, normalize_status(inspection.status))
            prepared_report = report.model_copy(update={"rooms": rooms, "status": current})
            status = target_status_for(prepared_report, options)

            # Steps 2-4
            updates = {room.id: RoomUpdate.from_room(room) for room in rooms}
            document = self.codec.parse(inspection.report_info)
            prepared = await self._prepare_room_updates(
                report_id, updates, classifier, document, on_progress
            )
            document = self._merge(classifier, document, prepared)
            serialized = self._validate(report_id, document)

            self._progress(on_progress, PROGRESS_PREPARED, "Writing report...")

            # Step 5
            saved_at = datetime.now(timezone.utc)
            fields: Dict[str, Any] = {
                "status": status.value,
                "updated_at": saved_at,
                "report_info": serialized,
            }
            if options.mark_completed:
                fields["completed_at"] = saved_at
            await self._write(report_id, fields)

            self._progress(on_progress, PROGRESS_WRITTEN, "Updating cache...")

            # Step 6
            changes: Dict[str, Any] = {"status": status, "updated_at": saved_at, "rooms": rooms}
            if options.mark_completed:
                changes["completed_at"] = saved_at
            self.cache.update(report_id, changes)

            elapsed_ms = (datetime.now(timezone.utc) - started).total_seconds() * 1000
            self.logger.info(
                f"Report saved: report_id={report_id}, status={status.value}, "
                f"rooms={len(rooms)}, elapsed_ms={elapsed_ms:.0f}",
                extra={"pipeline": self.__class__.__name__},
            )
            self._progress(on_progress, PROGRESS_DONE, "Save completed")

            return SaveResult(
                success=True,
                report_id=report_id,
                status=status,
                document=document,
                anchor_room_id=inspection.room_id,
                saved_at=saved_at,
            )

        except SavePipelineError as e:
            return self._fail(report_id, e)
        except Exception as e:
            return self._fail(
                report_id,
                SavePipelineError(f"Save failed: {str(e)}", report_id=report_id, original_error=e),
            )
        finally:
            self.save_guard.end_save(report_id)

    async def apply_room_update(
        self,
        report_id: str,
        room_id: str,
        update: RoomUpdate,
        after_write: Optional[AfterWrite] = None,
    ) -> SaveResult:
        """Merge a partial update of one room into the stored document.

        The document is re-read inside the guard, so fields not present in
        ``update`` keep whatever a previous write stored. ``after_write`` runs
        after a successful write and before the guard is released, so follow-up
        reads cannot interleave with another save of the report.
        """

        async def prepare(classifier: RoomClassifier, document: ReportDocument) -> ReportDocument:
            prepared = await self._prepare_room_updates(
                report_id, {room_id: update}, classifier, document, None
            )
            return self._merge(classifier, document, prepared)

        return await self._commit_document(report_id, prepare, after_write)

    async def mutate_document(
        self, report_id: str, mutation: DocumentMutation
    ) -> SaveResult:
        """Apply a synchronous document mutation under the save guard.

        A mutation that raises (for instance because the component it targets
        does not exist) is reported as ``InvalidResult``.
        """

        async def prepare(classifier: RoomClassifier, document: ReportDocument) -> ReportDocument:
            try:
                return mutation(document, classifier)
            except (AppError, TypeError, ValueError) as e:
                raise InvalidResultError(str(e), report_id=report_id, original_error=e)

        return await self._commit_document(report_id, prepare)

    async def _commit_document(
        self, report_id: str, prepare, after_write: Optional[AfterWrite] = None
    ) -> SaveResult:
        if not self.save_guard.begin_save(report_id):
            return SaveResult.rejected(report_id)

        try:
            result = await self._write_document(report_id, prepare)
            if result and after_write is not None:
                await after_write(result)
            return result
        finally:
            self.save_guard.end_save(report_id)

    async def _write_document(self, report_id: str, prepare) -> SaveResult:
        try:
            inspection = await self._fetch_row(report_id)
            classifier = RoomClassifier.for_inspection(inspection)
            document = self.codec.parse(inspection.report_info)

            document = await prepare(classifier, document)
            serialized = self._validate(report_id, document)

            saved_at = datetime.now(timezone.utc)
            await self._write(report_id, {"report_info": serialized, "updated_at": saved_at})

            return SaveResult(
                success=True,
                report_id=report_id,
                status=normalize_status(inspection.status),
                document=document,
                anchor_room_id=inspection.room_id,
                saved_at=saved_at,
            )

        except SavePipelineError as e:
            return self._fail(report_id, e)
        except Exception as e:
            return self._fail(
                report_id,
                SavePipelineError(f"Update failed: {str(e)}", report_id=report_id, original_error=e),
            )

    @abstractmethod
    async def _prepare_room_updates(
        self,
        report_id: str,
        updates: Dict[str, RoomUpdate],
        classifier: RoomClassifier,
        document: ReportDocument,
        on_progress: Optional[ProgressCallback],
    ) -> List[PreparedRoomUpdate]:
        """Resolve everything the merge needs, returned in the order of ``updates``."""

    def _needs_room_record(
        self, room_id: str, classifier: RoomClassifier, document: ReportDocument
    ) -> bool:
        """Only additional rooms without an entry need their record for synthesis."""
        return (
            classifier.classify(room_id) is RoomKind.ADDITIONAL
            and document.find_additional_room(room_id) is None
        )

    def _merge(
        self,
        classifier: RoomClassifier,
        document: ReportDocument,
        prepared: List[PreparedRoomUpdate],
    ) -> ReportDocument:
        for item in prepared:
            document = classifier.merge_room_update(
                document, item.room_id, item.update, item.room_record
            )
        return document

    async def _fetch_row(self, report_id: str):
        try:
            inspection = await self.inspection_repo.get_by_id(report_id)
        except SQLAlchemyError as e:
            raise FetchFailedError(
                f"Could not read report {report_id}: {str(e)}", report_id=report_id, original_error=e
            )
        if inspection is None:
            raise FetchFailedError(f"Report {report_id} does not exist", report_id=report_id)
        return inspection

    async def _fetch_images(self, report_id: str) -> List[Any]:
        try:
            return await self.image_repo.get_by_inspection(report_id)
        except SQLAlchemyError as e:
            raise FetchFailedError(
                f"Could not read images of report {report_id}: {str(e)}",
                report_id=report_id,
                original_error=e,
            )

    async def _fetch_room_record(self, report_id: str, room_id: str) -> Optional[Any]:
        try:
            return await self.room_repo.get_by_id(room_id)
        except SQLAlchemyError as e:
            raise FetchFailedError(
                f"Could not read room {room_id}: {str(e)}", report_id=report_id, original_error=e
            )

    def _validate(self, report_id: str, document: ReportDocument) -> Dict[str, Any]:
        """Serialize the merged document and check it is a JSON object."""
        if not isinstance(document, ReportDocument):
            raise InvalidResultError(
                f"Merge produced {type(document).__name__}, expected ReportDocument",
                report_id=report_id,
            )
        try:
            serialized = self.codec.serialize(document)
            json.dumps(serialized)
        except (TypeError, ValueError) as e:
            raise InvalidResultError(
                f"Merged document is not serializable: {str(e)}",
                report_id=report_id,
                original_error=e,
            )
        if not isinstance(serialized, dict):
            raise InvalidResultError("Merged document is not a JSON object", report_id=report_id)
        return serialized

    async def _write(self, report_id: str, fields: Dict[str, Any]) -> None:
        try:
            updated = await self.inspection_repo.update_fields(report_id, **fields)
        except SQLAlchemyError as e:
            raise WriteFailedError(
                f"Could not write report {report_id}: {str(e)}", report_id=report_id, original_error=e
            )
        if not updated:
            raise WriteFailedError(
                f"Report {report_id} disappeared before the write", report_id=report_id
            )

    def _fail(self, report_id: str, error: SavePipelineError) -> SaveResult:
        # The cached copy may now disagree with storage; force a reload
        self.cache.invalidate(report_id)
        self.logger.error(
            f"Save failed: report_id={report_id}, code={error.code}, error={error}",
            exc_info=error.original_error is not None,
            extra={"report_id": report_id, "error_code": error.code},
        )
        return SaveResult.failed(report_id, error)

    @staticmethod
    def _progress(on_progress: Optional[ProgressCallback], completed: int, operation: str) -> None:
        if on_progress is not None:
            on_progress(SaveProgress(total=PROGRESS_TOTAL, completed=completed, current_operation=operation))


class SequentialSavePipeline(SavePipeline):
    """Prepares rooms one after another."""

    async def _prepare_room_updates(
        self,
        report_id: str,
        updates: Dict[str, RoomUpdate],
        classifier: RoomClassifier,
        document: ReportDocument,
        on_progress: Optional[ProgressCallback],
    ) -> List[PreparedRoomUpdate]:
        prepared = []
        for room_id, update in updates.items():
            record = None
            if self._needs_room_record(room_id, classifier, document):
                record = await self._fetch_room_record(report_id, room_id)
            prepared.append(
                PreparedRoomUpdate(
                    room_id=room_id,
                    update=update,
                    room_record=record,
                )
            )
        return prepared


class BatchedSavePipeline(SavePipeline):
    """Prepares rooms in fixed-size batches.

    Each batch looks up its missing room records with one query instead of one
    query per room, and reports progress when the batch is done. Queries run
    one at a time since the AsyncSession cannot be shared between coroutines.
    """

    def __init__(self, *args, batch_size: int = DEFAULT_BATCH_SIZE, **kwargs):
        super().__init__(*args, **kwargs)
        if batch_size <= 0:
            raise ConfigurationError(f"Save batch size must be positive, got {batch_size}")
        self.batch_size = batch_size

    async def _prepare_room_updates(
        self,
        report_id: str,
        updates: Dict[str, RoomUpdate],
        classifier: RoomClassifier,
        document: ReportDocument,
        on_progress: Optional[ProgressCallback],
    ) -> List[PreparedRoomUpdate]:
        items = list(updates.items())
        batches = [items[i:i + self.batch_size] for i in range(0, len(items), self.batch_size)]

        prepared: List[PreparedRoomUpdate] = []
        for index, batch in enumerate(batches, start=1):
            missing = [
                room_id for room_id, _ in batch
                if self._needs_room_record(room_id, classifier, document)
            ]
            records = await self._fetch_room_records(report_id, missing)

            prepared.extend(
                PreparedRoomUpdate(room_id=room_id, update=update, room_record=records.get(room_id))
                for room_id, update in batch
            )

            self.logger.debug(
                f"Prepared batch {index}/{len(batches)} for report {report_id} "
                f"({len(prepared)}/{len(items)} rooms)"
            )
            if len(batches) > 1:
                done = PROGRESS_START + (PROGRESS_PREPARED - PROGRESS_START) * len(prepared) // len(items)
                self._progress(on_progress, done, f"Prepared {len(prepared)}/{len(items)} rooms...")

        return prepared

    async def _fetch_room_records(self, report_id: str, room_ids: List[str]) -> Dict[str, Any]:
        if not room_ids:
            return {}
        try:
            return await self.room_repo.get_many(room_ids)
        except SQLAlchemyError as e:
            raise FetchFailedError(
                f"Could not read rooms {room_ids}: {str(e)}", report_id=report_id, original_error=e
            )


def create_save_pipeline(
    variant: str,
    session: AsyncSession,
    cache: ReportCache,
    save_guard: SaveGuard,
    batch_size: int = DEFAULT_BATCH_SIZE,
    **kwargs,
) -> SavePipeline:
    """Build the configured pipeline variant ("sequential" or "batched")."""
    if variant == "sequential":
        return SequentialSavePipeline(session, cache, save_guard, **kwargs)
    if variant == "batched":
        return BatchedSavePipeline(session, cache, save_guard, batch_size=batch_size, **kwargs)
    raise ConfigurationError(f"Unknown save pipeline variant: {variant}")
