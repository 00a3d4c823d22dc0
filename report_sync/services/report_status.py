"""Lifecycle status rules applied when a report is saved."""

from report_sync.schemas.report import Report, ReportStatus
from report_sync.schemas.save import SaveOptions


def build_target_status(
    current: ReportStatus, has_images: bool, options: SaveOptions
) -> ReportStatus:
    """Status a save should write.

    The rule only ever moves a report forward: draft becomes in_progress, and
    in_progress becomes pending_review once any room or component has an
    image. ``mark_completed`` forces completed regardless of the current state.
    """
    if options.mark_completed:
        return ReportStatus.COMPLETED
    if not options.update_status:
        return current

    status = current
    if status == ReportStatus.DRAFT:
        status = ReportStatus.IN_PROGRESS
    if has_images and status == ReportStatus.IN_PROGRESS:
        status = ReportStatus.PENDING_REVIEW
    return status


def target_status_for(report: Report, options: SaveOptions) -> ReportStatus:
    return build_target_status(report.status, report.has_images(), options)


# archived is terminal
_STATUS_RANK = {
    ReportStatus.DRAFT: 0,
    ReportStatus.IN_PROGRESS: 1,
    ReportStatus.PENDING_REVIEW: 2,
    ReportStatus.COMPLETED: 3,
    ReportStatus.ARCHIVED: 4,
}


def furthest_status(*statuses: ReportStatus) -> ReportStatus:
    """The most advanced of several statuses, e.g. stored versus in-memory."""
    return max(statuses, key=_STATUS_RANK.__getitem__)
