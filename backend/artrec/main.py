"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import redis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.gzip import GZipMiddleware
from sqlalchemy import func, select

from artrec.config import get_settings
from artrec.models.base import engine, AsyncSessionLocal, Base
import artrec.models  # noqa: F401
from artrec.models.precomputed_recommendation import PrecomputedRecommendation
from artrec.api.v1 import router as api_v1_router
from artrec.dependencies.services import get_snapshot_loader
from artrec.exceptions import InvalidRecommendationRequest, SnapshotUnavailable

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info("Starting %s...", settings.app_name)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables verified")

    loader = get_snapshot_loader()
    try:
        loader.reload()
    except SnapshotUnavailable as e:
        logger.warning("Starting without analysis snapshot: %s", e)

    yield
    logger.info("Shutting down...")
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Artwork and artist recommendations for the creator marketplace",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(GZipMiddleware, minimum_size=500)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_v1_router)


@app.exception_handler(InvalidRecommendationRequest)
async def invalid_request_handler(request: Request, exc: InvalidRecommendationRequest):
    return JSONResponse(status_code=400, content={"detail": exc.message, "field": exc.field})


@app.exception_handler(SnapshotUnavailable)
async def snapshot_unavailable_handler(request: Request, exc: SnapshotUnavailable):
    return JSONResponse(status_code=503, content={"detail": "Analysis snapshot unavailable"})


@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.app_name}


async def _database_check() -> dict:
    now = datetime.now(timezone.utc)
    async with AsyncSessionLocal() as session:
        live = await session.scalar(
            select(func.count(PrecomputedRecommendation.id)).where(PrecomputedRecommendation.valid_until > now)
        )
    return {"ok": True, "live_precomputed": live or 0}


def _broker_check() -> dict:
    client = redis.from_url(settings.redis_url, socket_timeout=5)
    return {"ok": bool(client.ping())}


def _snapshot_check() -> dict:
    loader = get_snapshot_loader()
    if not loader.loaded:
        return {"ok": False, "message": f"not loaded from {loader.path}"}
    metadata = loader.current.document.metadata
    age = datetime.now(timezone.utc) - metadata.generated_at
    return {
        "ok": True,
        "artworks": metadata.artwork_count,
        "age_hours": round(age.total_seconds() / 3600, 1),
    }


def _worker_check() -> dict:
    from artrec.tasks.celery_app import celery_app

    registered = celery_app.control.inspect(timeout=5).registered() or {}
    scheduled = {entry["task"] for entry in celery_app.conf.beat_schedule.values()}
    missing = sorted(scheduled - {name for names in registered.values() for name in names})
    return {"ok": bool(registered) and not missing, "workers": sorted(registered), "missing_tasks": missing}


@app.get("/health/detailed")
async def detailed_health_check():
    checks = {}
    try:
        checks["database"] = await _database_check()
    except Exception as e:
        checks["database"] = {"ok": False, "message": str(e)}

    for name, check in (("redis", _broker_check), ("snapshot", _snapshot_check), ("celery_workers", _worker_check)):
        try:
            checks[name] = check()
        except Exception as e:
            checks[name] = {"ok": False, "message": str(e)}

    all_ok = all(check.get("ok", False) for check in checks.values())
    return {
        "status": "healthy" if all_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
