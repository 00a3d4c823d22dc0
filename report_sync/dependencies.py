"""Factory functions for wiring report services.

The cache and the save guard are process-wide: every ReportService built here
shares them, so mutual exclusion and cache coherence hold across sessions.
"""

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from report_sync.core.config import Settings, get_settings
from report_sync.core.database import get_session_maker
from report_sync.services.document_codec import DocumentCodec
from report_sync.services.report_cache import ReportCache
from report_sync.services.report_service import ReportService
from report_sync.services.save_guard import SaveGuard
from report_sync.services.save_pipeline import SavePipeline, create_save_pipeline
from report_sync.utils.logging import set_log_level


@lru_cache()
def get_report_cache() -> ReportCache:
    """Get the shared report cache.

    Returns:
        ReportCache: Cache sized and timed from settings
    """
    settings = get_settings()
    return ReportCache(
        ttl_seconds=settings.cache.ttl_seconds,
        max_entries=settings.cache.max_entries,
    )


@lru_cache()
def get_save_guard() -> SaveGuard:
    """Get the shared save guard."""
    return SaveGuard()


def get_save_pipeline(
    db_session: AsyncSession,
    settings: Optional[Settings] = None,
    codec: Optional[DocumentCodec] = None,
) -> SavePipeline:
    """Get the configured save pipeline variant for a session.

    Args:
        db_session: Database session
        settings: Settings; the cached settings when omitted
        codec: Document codec shared with the service

    Returns:
        SavePipeline: Sequential or batched pipeline
    """
    settings = settings or get_settings()
    return create_save_pipeline(
        settings.save.pipeline_variant,
        db_session,
        get_report_cache(),
        get_save_guard(),
        batch_size=settings.save.batch_size,
        codec=codec,
    )


def create_report_service(
    db_session: AsyncSession, settings: Optional[Settings] = None
) -> ReportService:
    """Get a report service bound to a session.

    Args:
        db_session: Database session

    Returns:
        ReportService: Service using the shared cache and save guard
    """
    settings = settings or get_settings()
    set_log_level(settings.log_level)

    codec = DocumentCodec()
    return ReportService(
        db_session,
        get_report_cache(),
        get_save_guard(),
        pipeline=get_save_pipeline(db_session, settings, codec),
        codec=codec,
    )


@asynccontextmanager
async def report_service_scope() -> AsyncIterator[ReportService]:
    """Open a session and yield a report service bound to it."""
    async with get_session_maker()() as session:
        yield create_report_service(session)
