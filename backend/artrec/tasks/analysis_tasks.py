"""Analysis tasks: artwork features, user preference profiles, snapshot rebuild."""

import asyncio
import logging

from artrec.tasks.celery_app import celery_app
from artrec.config import get_settings
from artrec.models.base import task_session_factory
import artrec.models  # noqa: F401
from artrec.services.analysis_service import AnalysisService
from artrec.services.feature_store import SqlFeatureStore
from artrec.services.snapshot_builder import build_snapshot

logger = logging.getLogger(__name__)


async def _analyze(operation: str) -> dict:
    async with task_session_factory() as session_factory:
        store = SqlFeatureStore(session_factory, get_settings().store_max_concurrency)
        return await getattr(AnalysisService(store, session_factory), operation)()


async def _rebuild_snapshot(path: str) -> dict:
    async with task_session_factory() as session_factory:
        document = await build_snapshot(session_factory, path)
    return document.metadata.model_dump(mode="json")


@celery_app.task(name="artrec.tasks.analysis_tasks.analyze_artworks")
def analyze_artworks():
    """Analyze artworks whose content changed since the last run."""
    try:
        return asyncio.run(_analyze("process_all_artworks"))
    except Exception:
        logger.exception("Artwork analysis failed")
        raise


@celery_app.task(name="artrec.tasks.analysis_tasks.analyze_users")
def analyze_users():
    """Recompute every active user's preference profile."""
    try:
        return asyncio.run(_analyze("process_all_users"))
    except Exception:
        logger.exception("User analysis failed")
        raise


@celery_app.task(name="artrec.tasks.analysis_tasks.rebuild_snapshot")
def rebuild_snapshot(path: str | None = None):
    """Regenerate the analysis snapshot file.

    API processes pick the new file up on their next snapshot reload.
    """
    path = path or get_settings().snapshot_path
    try:
        metadata = asyncio.run(_rebuild_snapshot(path))
        logger.info("Rebuilt analysis snapshot at %s", path)
        return metadata
    except Exception:
        logger.exception("Snapshot rebuild failed")
        raise
