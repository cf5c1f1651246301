"""Analysis snapshot endpoints."""

import logging

from fastapi import APIRouter, Depends

from artrec.dependencies.services import get_snapshot_loader
from artrec.schemas.snapshot import SnapshotMetadata
from artrec.services.snapshot_loader import SnapshotLoader

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/snapshot", tags=["snapshot"])


@router.get("", response_model=SnapshotMetadata)
def get_snapshot_metadata(loader: SnapshotLoader = Depends(get_snapshot_loader)):
    """Metadata of the snapshot currently served."""
    return loader.current.document.metadata


@router.post("/reload", response_model=SnapshotMetadata)
def reload_snapshot(loader: SnapshotLoader = Depends(get_snapshot_loader)):
    """Re-read the snapshot file; the previous snapshot stays if the new one is unusable."""
    snapshot = loader.reload()
    logger.info("Analysis snapshot reloaded from %s", loader.path)
    return snapshot.document.metadata
