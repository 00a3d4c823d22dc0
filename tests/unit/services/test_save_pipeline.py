"""Unit tests for the save pipeline variants."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from report_sync.core.exceptions import ConfigurationError, ValidationError
from report_sync.schemas.report import Report, ReportStatus, Room, RoomComponent
from report_sync.schemas.save import SaveOptions
from report_sync.schemas.updates import RoomUpdate
from report_sync.services.report_cache import ReportCache
from report_sync.services.save_guard import SaveGuard
from report_sync.services.save_pipeline import (
    BatchedSavePipeline,
    SequentialSavePipeline,
    create_save_pipeline,
)

REPORT_ID = "report-1"


def _make_repos(document, status="draft", image_records=None):
    inspection_repo = AsyncMock()
    inspection_repo.get_by_id.return_value = SimpleNamespace(
        id=REPORT_ID, room_id="R1", status=status, report_info=document
    )
    inspection_repo.update_fields.return_value = True

    room_repo = AsyncMock()
    room_repo.get_by_id.side_effect = lambda room_id: SimpleNamespace(id=room_id, type="bedroom")
    room_repo.get_many.side_effect = lambda room_ids: {
        room_id: SimpleNamespace(id=room_id, type="bedroom") for room_id in room_ids
    }

    image_repo = AsyncMock()
    image_repo.get_by_inspection.return_value = image_records or []
    return inspection_repo, room_repo, image_repo


def _build(variant, cache, guard, repos, **kwargs):
    inspection_repo, room_repo, image_repo = repos
    return create_save_pipeline(
        variant,
        AsyncMock(),
        cache,
        guard,
        inspection_repo=inspection_repo,
        room_repo=room_repo,
        image_repo=image_repo,
        **kwargs,
    )


def _written(inspection_repo) -> dict:
    inspection_repo.update_fields.assert_awaited_once()
    args, kwargs = inspection_repo.update_fields.call_args
    assert args == (REPORT_ID,)
    return kwargs


@pytest.fixture
def repos(stored_document):
    return _make_repos(stored_document)


@pytest.fixture(params=["sequential", "batched"])
def pipeline(request, report_cache, save_guard, repos):
    return _build(request.param, report_cache, save_guard, repos)


class TestSaveSuccess:
    """A successful save writes once and updates the cache."""

    @pytest.mark.asyncio
    async def test_single_write_with_every_room(self, pipeline, repos, sample_report):
        result = await pipeline.save(sample_report)

        assert result
        fields = _written(repos[0])
        assert fields["status"] == "in_progress"
        assert fields["report_info"]["roomName"] == "Living Room"
        assert [e["id"] for e in fields["report_info"]["additionalRooms"]] == ["R2"]
        assert fields["report_info"]["additionalRooms"][0]["order"] == 2
        assert "completed_at" not in fields

    @pytest.mark.asyncio
    async def test_unknown_document_keys_survive(self, pipeline, repos, sample_report):
        await pipeline.save(sample_report)

        assert _written(repos[0])["report_info"]["reportDate"] == "2026-10-01"

    @pytest.mark.asyncio
    async def test_cache_is_updated(self, pipeline, report_cache, sample_report):
        report_cache.set(REPORT_ID, sample_report)

        result = await pipeline.save(sample_report)

        cached = report_cache.get(REPORT_ID).report
        assert cached.status == ReportStatus.IN_PROGRESS
        assert cached.updated_at == result.saved_at

    @pytest.mark.asyncio
    async def test_progress_is_reported(self, pipeline, sample_report):
        seen = []

        await pipeline.save(sample_report, on_progress=seen.append)

        completed = [progress.completed for progress in seen]
        assert completed[0] == 0
        assert completed[-1] == 100
        assert 30 in completed and 90 in completed
        assert completed == sorted(completed)
        assert seen[-1].percent == 100.0

    @pytest.mark.asyncio
    async def test_mark_completed_sets_timestamp(self, pipeline, repos, sample_report):
        result = await pipeline.save(sample_report, SaveOptions(mark_completed=True))

        fields = _written(repos[0])
        assert fields["status"] == "completed"
        assert fields["completed_at"] == result.saved_at

    @pytest.mark.asyncio
    async def test_stored_images_drive_status(self, report_cache, save_guard, stored_document, sample_report):
        image = SimpleNamespace(
            id="I1", image_url=f"inspections/{REPORT_ID}/R2/a.jpg", created_at=None, analysis=None
        )
        repos = _make_repos(stored_document, image_records=[image])
        sample_report.status = ReportStatus.IN_PROGRESS

        await _build("sequential", report_cache, save_guard, repos).save(sample_report)

        assert _written(repos[0])["status"] == "pending_review"

    @pytest.mark.asyncio
    async def test_stale_client_status_does_not_regress(self, report_cache, save_guard, stored_document, sample_report):
        repos = _make_repos(stored_document, status="completed")

        await _build("batched", report_cache, save_guard, repos).save(sample_report)

        assert _written(repos[0])["status"] == "completed"

    @pytest.mark.asyncio
    async def test_guard_is_released(self, pipeline, save_guard, sample_report):
        await pipeline.save(sample_report)

        assert not save_guard.is_saving(REPORT_ID)


class TestSaveFailure:
    """Failures are reported, never half-written, and clear the cache."""

    @pytest.mark.asyncio
    async def test_write_failure_invalidates_cache(self, pipeline, repos, report_cache, save_guard, sample_report):
        repos[0].update_fields.side_effect = OperationalError("UPDATE", {}, Exception("disk I/O"))
        report_cache.set(REPORT_ID, sample_report)

        result = await pipeline.save(sample_report)

        assert not result
        assert result.error_code == "WriteFailed"
        assert REPORT_ID not in report_cache
        assert not save_guard.is_saving(REPORT_ID)

    @pytest.mark.asyncio
    async def test_vanished_row_is_write_failure(self, pipeline, repos, sample_report):
        repos[0].update_fields.return_value = False

        result = await pipeline.save(sample_report)

        assert result.error_code == "WriteFailed"

    @pytest.mark.asyncio
    async def test_missing_row_is_fetch_failure(self, pipeline, repos, sample_report):
        repos[0].get_by_id.return_value = None

        result = await pipeline.save(sample_report)

        assert result.error_code == "FetchFailed"
        repos[0].update_fields.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_image_read_failure_is_fetch_failure(self, pipeline, repos, sample_report):
        repos[2].get_by_inspection.side_effect = OperationalError("SELECT", {}, Exception("gone"))

        result = await pipeline.save(sample_report)

        assert result.error_code == "FetchFailed"
        repos[0].update_fields.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_guard_rejection_has_no_side_effects(self, pipeline, repos, save_guard, report_cache, sample_report):
        report_cache.set(REPORT_ID, sample_report)
        save_guard.begin_save(REPORT_ID)

        result = await pipeline.save(sample_report)

        assert not result
        assert result.guard_rejected
        assert result.error_code == "GuardRejected"
        repos[0].get_by_id.assert_not_awaited()
        repos[0].update_fields.assert_not_awaited()
        assert REPORT_ID in report_cache
        assert save_guard.is_saving(REPORT_ID)


class TestVariants:
    """Sequential and batched pipelines are interchangeable."""

    @staticmethod
    def _many_rooms_report(count: int) -> Report:
        rooms = [Room(id="R1", name="Living Room", order=1)]
        rooms += [
            Room(id=f"A{i}", name=f"Room {i}", components=[RoomComponent(id=f"C{i}")])
            for i in range(count)
        ]
        return Report(id=REPORT_ID, rooms=rooms)

    @pytest.mark.asyncio
    async def test_batched_matches_sequential(self, stored_document):
        report = self._many_rooms_report(7)
        written = []
        for variant in ("sequential", "batched"):
            repos = _make_repos(stored_document)
            result = await _build(variant, ReportCache(), SaveGuard(), repos).save(report)
            assert result
            written.append(_written(repos[0])["report_info"])

        assert written[0] == written[1]
        assert [e["order"] for e in written[0]["additionalRooms"]] == list(range(2, 9))

    @pytest.mark.asyncio
    async def test_batched_reads_rooms_once_per_batch(self, stored_document):
        repos = _make_repos(stored_document)
        pipeline = _build("batched", ReportCache(), SaveGuard(), repos, batch_size=3)
        seen = []

        await pipeline.save(self._many_rooms_report(7), on_progress=seen.append)

        # 8 rooms in batches of 3; the main room needs no record
        assert repos[1].get_many.await_count == 3
        repos[1].get_by_id.assert_not_awaited()
        assert any(0 < progress.completed < 30 for progress in seen)
        repos[0].update_fields.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_sequential_reads_each_missing_room(self, stored_document):
        repos = _make_repos(stored_document)
        pipeline = _build("sequential", ReportCache(), SaveGuard(), repos)

        await pipeline.save(self._many_rooms_report(7))

        assert repos[1].get_by_id.await_count == 7
        repos[1].get_many.assert_not_awaited()

    def test_factory_builds_variants(self, report_cache, save_guard, repos):
        assert isinstance(_build("sequential", report_cache, save_guard, repos), SequentialSavePipeline)
        batched = _build("batched", report_cache, save_guard, repos, batch_size=4)
        assert isinstance(batched, BatchedSavePipeline)
        assert batched.batch_size == 4

    def test_factory_rejects_unknown_variant(self, report_cache, save_guard, repos):
        with pytest.raises(ConfigurationError):
            _build("parallel", report_cache, save_guard, repos)

    def test_batch_size_must_be_positive(self, report_cache, save_guard, repos):
        with pytest.raises(ConfigurationError):
            _build("batched", report_cache, save_guard, repos, batch_size=0)


class TestPartialUpdates:
    """Single-room and document edits reuse the guarded write."""

    @pytest.mark.asyncio
    async def test_room_update_writes_document_only(self, pipeline, repos):
        result = await pipeline.apply_room_update(REPORT_ID, "R1", RoomUpdate(general_condition="Good"))

        assert result
        fields = _written(repos[0])
        assert set(fields) == {"report_info", "updated_at"}
        assert fields["report_info"]["generalCondition"] == "Good"
        assert fields["report_info"]["additionalRooms"] == []
        assert result.anchor_room_id == "R1"

    @pytest.mark.asyncio
    async def test_room_update_keeps_unsupplied_fields(self, pipeline, repos):
        await pipeline.apply_room_update(REPORT_ID, "R1", RoomUpdate(general_condition="Good"))

        written = _written(repos[0])["report_info"]
        assert written["roomName"] == "Living Room"
        assert written["components"][0]["id"] == "C1"

    @pytest.mark.asyncio
    async def test_failing_mutation_is_invalid_result(self, pipeline, repos, save_guard):
        def mutation(document, classifier):
            raise ValidationError("Component C404 not found in room R1")

        result = await pipeline.mutate_document(REPORT_ID, mutation)

        assert result.error_code == "InvalidResult"
        repos[0].update_fields.assert_not_awaited()
        assert not save_guard.is_saving(REPORT_ID)

    @pytest.mark.asyncio
    async def test_room_update_rejected_while_saving(self, pipeline, repos, save_guard):
        save_guard.begin_save(REPORT_ID)

        result = await pipeline.apply_room_update(REPORT_ID, "R1", RoomUpdate(name="Hall"))

        assert result.guard_rejected
        repos[0].update_fields.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_after_write_runs_while_guard_is_held(self, pipeline, save_guard):
        held = []

        async def after_write(result):
            held.append(save_guard.is_saving(REPORT_ID))

        result = await pipeline.apply_room_update(
            REPORT_ID, "R1", RoomUpdate(name="Hall"), after_write=after_write
        )

        assert result
        assert held == [True]
        assert not save_guard.is_saving(REPORT_ID)

    @pytest.mark.asyncio
    async def test_after_write_skipped_when_write_fails(self, pipeline, repos, save_guard):
        repos[0].update_fields.return_value = False
        after_write = AsyncMock()

        result = await pipeline.apply_room_update(
            REPORT_ID, "R1", RoomUpdate(name="Hall"), after_write=after_write
        )

        assert result.error_code == "WriteFailed"
        after_write.assert_not_awaited()
        assert not save_guard.is_saving(REPORT_ID)
