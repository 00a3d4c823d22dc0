"""Rebuilding in-memory reports from their stored pieces.

A report is spread over the inspections row (status, anchor, report_info),
room records (type, owning property), the properties table, and image
records. The assembler reads all of them and produces a ``Report`` whose rooms
are ordered with the main room first.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from report_sync.repositories.image_repository import ImageRepository
from report_sync.repositories.inspection_repository import InspectionRepository
from report_sync.repositories.property_repository import PropertyRepository
from report_sync.repositories.room_repository import RoomRepository
from report_sync.schemas.document import ReportDocument
from report_sync.schemas.report import (
    PropertySnapshot,
    Report,
    ReportInfo,
    Room,
    RoomComponent,
    RoomImage,
    format_room_type,
    normalize_status,
)
from report_sync.services.document_codec import DocumentCodec
from report_sync.services.room_classifier import FIRST_ADDITIONAL_ORDER, RoomClassifier
from report_sync.utils.coercion import as_str
from report_sync.utils.logging import get_logger

LOGGER = get_logger(__name__)

MAIN_ROOM_ORDER = 1


@dataclass
class LoadedReport:
    report: Report
    property: Optional[PropertySnapshot]


def image_belongs_to_room(url: str, room_id: str, is_main: bool) -> bool:
    """Storage paths embed the room id; bare file names belong to the main room."""
    if f"/{room_id}/" in url:
        return True
    return is_main and "/" not in url


def to_room_image(record: Any) -> RoomImage:
    return RoomImage(
        id=str(record.id),
        url=record.image_url,
        timestamp=record.created_at,
        ai_processed=record.analysis is not None,
        ai_data=record.analysis,
    )


def images_for_room(image_records: Iterable[Any], room_id: str, is_main: bool) -> List[RoomImage]:
    return [
        to_room_image(record)
        for record in image_records
        if image_belongs_to_room(record.image_url or "", room_id, is_main)
    ]


def fold_images(
    rooms: Iterable[Room], image_records: List[Any], classifier: RoomClassifier
) -> List[Room]:
    """Copies of rooms with their image lists replaced by the stored records."""
    return [
        room.model_copy(
            update={"images": images_for_room(image_records, room.id, classifier.is_main(room.id))}
        )
        for room in rooms
    ]


def build_components(raw_components: Iterable[Any], room_id: str) -> List[RoomComponent]:
    components = []
    for raw in raw_components:
        if not isinstance(raw, dict):
            LOGGER.warning(f"Skipping non-object component in room {room_id}")
            continue
        try:
            components.append(RoomComponent.model_validate(raw))
        except PydanticValidationError as e:
            LOGGER.warning(f"Skipping invalid component in room {room_id}: {e}")
    return components


def to_property_snapshot(record: Any) -> Optional[PropertySnapshot]:
    if record is None:
        return None
    return PropertySnapshot(
        id=str(record.id),
        name=record.name,
        address=record.address or "",
        property_type=record.property_type,
    )


class ReportAssembler:
    """Loads reports and rooms from storage."""

    def __init__(
        self,
        session: AsyncSession,
        codec: Optional[DocumentCodec] = None,
        inspection_repo: Optional[InspectionRepository] = None,
        room_repo: Optional[RoomRepository] = None,
        image_repo: Optional[ImageRepository] = None,
        property_repo: Optional[PropertyRepository] = None,
    ):
        self.session = session
        self.codec = codec or DocumentCodec()
        self.inspection_repo = inspection_repo or InspectionRepository(session)
        self.room_repo = room_repo or RoomRepository(session)
        self.image_repo = image_repo or ImageRepository(session)
        self.property_repo = property_repo or PropertyRepository(session)

    async def load(self, report_id: str) -> Optional[LoadedReport]:
        """Load a full report with rooms, components and images.

        Returns:
            LoadedReport, or None when the row does not exist
        """
        inspection = await self.inspection_repo.get_by_id(report_id)
        if inspection is None:
            LOGGER.warning(f"Inspection not found: report_id={report_id}")
            return None

        document = self.codec.parse(inspection.report_info)
        room_ids = [inspection.room_id] + [entry.id for entry in document.additional_rooms]
        room_records = await self.room_repo.get_many(room_ids)

        main_record = room_records.get(inspection.room_id)
        property_record = None
        if main_record is not None and main_record.property_id:
            property_record = await self.property_repo.get_by_id(main_record.property_id)
        elif main_record is None:
            LOGGER.warning(
                f"Anchor room record missing: report_id={report_id}, room_id={inspection.room_id}"
            )

        image_records = await self.image_repo.get_by_inspection(report_id)
        property_snapshot = to_property_snapshot(property_record)

        report = self.build_report(
            inspection, document, room_records, image_records, property_snapshot
        )
        LOGGER.info(f"Report loaded: report_id={report_id}, rooms={len(report.rooms)}")
        return LoadedReport(report=report, property=property_snapshot)

    async def load_room(
        self, report_id: str, anchor_room_id: str, document: ReportDocument, room_id: str
    ) -> Optional[Room]:
        """Rebuild a single room from a document that was just written."""
        classifier = RoomClassifier(anchor_room_id)
        room_record = await self.room_repo.get_by_id(room_id)
        image_records = await self.image_repo.get_by_inspection(report_id)
        return self.build_room(document, classifier, room_id, room_record, image_records)

    def build_report(
        self,
        inspection: Any,
        document: ReportDocument,
        room_records: Dict[str, Any],
        image_records: List[Any],
        property_snapshot: Optional[PropertySnapshot],
    ) -> Report:
        classifier = RoomClassifier.for_inspection(inspection)
        rooms = [
            self.build_room(
                document,
                classifier,
                inspection.room_id,
                room_records.get(inspection.room_id),
                image_records,
            )
        ]
        for entry in document.additional_rooms:
            rooms.append(
                self.build_room(
                    document, classifier, entry.id, room_records.get(entry.id), image_records
                )
            )

        report = self.summarize(inspection, document, room_records.get(inspection.room_id), property_snapshot)
        # sorted() is stable, so rooms sharing an order keep document order
        report.rooms = sorted((room for room in rooms if room is not None), key=lambda r: r.order)
        return report

    def build_room(
        self,
        document: ReportDocument,
        classifier: RoomClassifier,
        room_id: str,
        room_record: Optional[Any],
        image_records: List[Any],
    ) -> Optional[Room]:
        """Build one room from its document location; None if it has no entry."""
        record_type = getattr(room_record, "type", None)
        is_main = classifier.is_main(room_id)

        if is_main:
            room_type = record_type or "other"
            return Room(
                id=room_id,
                name=document.room_name or format_room_type(room_type),
                type=room_type,
                order=MAIN_ROOM_ORDER,
                general_condition=document.general_condition,
                sections=list(document.sections),
                components=build_components(document.components, room_id),
                images=images_for_room(image_records, room_id, True),
            )

        entry = document.find_additional_room(room_id)
        if entry is None:
            return None

        index = document.additional_rooms.index(entry)
        room_type = entry.type or record_type or "other"
        return Room(
            id=room_id,
            name=entry.name or format_room_type(room_type),
            type=room_type,
            order=entry.order if entry.order is not None else index + FIRST_ADDITIONAL_ORDER,
            general_condition=entry.general_condition,
            sections=list(entry.sections),
            components=build_components(entry.components, room_id),
            images=images_for_room(image_records, room_id, False),
        )

    def summarize(
        self,
        inspection: Any,
        document: ReportDocument,
        main_record: Optional[Any],
        property_snapshot: Optional[PropertySnapshot],
    ) -> Report:
        """Report header without rooms, as used in listings."""
        extras = document.model_extra or {}
        property_name = property_snapshot.name if property_snapshot else None
        return Report(
            id=str(inspection.id),
            property_id=str(getattr(main_record, "property_id", None) or ""),
            name=as_str(extras.get("name")) or (f"{property_name} Inspection" if property_name else ""),
            report_type=document.report_type or "inspection",
            status=normalize_status(inspection.status),
            report_info=ReportInfo(
                report_date=as_str(extras.get("reportDate")) or None,
                clerk=document.clerk,
                inventory_type=document.inventory_type,
                tenant_present=document.tenant_present,
                tenant_name=document.tenant_name,
                file_url=document.file_url,
                report_type=document.report_type,
                additional_info=inspection.report_url or "",
            ),
            rooms=[],
            created_at=inspection.created_at,
            updated_at=inspection.updated_at,
            completed_at=inspection.completed_at,
        )
