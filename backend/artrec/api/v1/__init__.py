"""API v1 router aggregation."""

from fastapi import APIRouter

from artrec.api.v1.recommendations import router as recommendations_router
from artrec.api.v1.snapshot import router as snapshot_router
from artrec.api.v1.batch import router as batch_router

router = APIRouter(prefix="/api/v1")

router.include_router(recommendations_router)
router.include_router(snapshot_router)
router.include_router(batch_router)
