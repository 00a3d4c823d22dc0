"""Unit tests for lifecycle status escalation."""

import pytest

from report_sync.schemas.report import ReportStatus, Room, RoomImage
from report_sync.schemas.save import SaveOptions
from report_sync.services.report_status import (
    build_target_status,
    furthest_status,
    target_status_for,
)

STATUS_ORDER = [
    ReportStatus.DRAFT,
    ReportStatus.IN_PROGRESS,
    ReportStatus.PENDING_REVIEW,
    ReportStatus.COMPLETED,
]


class TestBuildTargetStatus:
    """Status only moves forward."""

    def test_draft_becomes_in_progress(self):
        assert build_target_status(ReportStatus.DRAFT, False, SaveOptions()) == ReportStatus.IN_PROGRESS

    def test_in_progress_with_images_becomes_pending_review(self):
        status = build_target_status(ReportStatus.IN_PROGRESS, True, SaveOptions())

        assert status == ReportStatus.PENDING_REVIEW

    def test_draft_with_images_skips_to_pending_review(self):
        assert build_target_status(ReportStatus.DRAFT, True, SaveOptions()) == ReportStatus.PENDING_REVIEW

    def test_in_progress_without_images_stays(self):
        status = build_target_status(ReportStatus.IN_PROGRESS, False, SaveOptions())

        assert status == ReportStatus.IN_PROGRESS

    def test_update_status_disabled_keeps_current(self):
        options = SaveOptions(update_status=False)

        assert build_target_status(ReportStatus.DRAFT, True, options) == ReportStatus.DRAFT

    def test_mark_completed_wins(self):
        options = SaveOptions(update_status=False, mark_completed=True)

        assert build_target_status(ReportStatus.DRAFT, False, options) == ReportStatus.COMPLETED

    @pytest.mark.parametrize("current", STATUS_ORDER)
    @pytest.mark.parametrize("has_images", [False, True])
    def test_never_regresses(self, current, has_images):
        status = build_target_status(current, has_images, SaveOptions())

        assert STATUS_ORDER.index(status) >= STATUS_ORDER.index(current)

    def test_archived_is_left_alone(self):
        assert build_target_status(ReportStatus.ARCHIVED, True, SaveOptions()) == ReportStatus.ARCHIVED


class TestTargetStatusFor:
    """Image detection across rooms and components."""

    def test_component_image_counts(self, sample_report, sample_image):
        sample_report.rooms[0].components[0].images.append(sample_image)
        sample_report.status = ReportStatus.IN_PROGRESS

        assert target_status_for(sample_report, SaveOptions()) == ReportStatus.PENDING_REVIEW

    def test_room_image_counts(self, sample_report):
        sample_report.rooms[1] = Room(id="R2", images=[RoomImage(id="I", url="x/R2/a.jpg")])
        sample_report.status = ReportStatus.IN_PROGRESS

        assert target_status_for(sample_report, SaveOptions()) == ReportStatus.PENDING_REVIEW


class TestFurthestStatus:
    """Stored and in-memory status reconciliation."""

    def test_picks_most_advanced(self):
        assert furthest_status(ReportStatus.DRAFT, ReportStatus.COMPLETED) == ReportStatus.COMPLETED
        assert furthest_status(ReportStatus.PENDING_REVIEW, ReportStatus.IN_PROGRESS) == ReportStatus.PENDING_REVIEW

    def test_archived_is_terminal(self):
        assert furthest_status(ReportStatus.ARCHIVED, ReportStatus.COMPLETED) == ReportStatus.ARCHIVED
