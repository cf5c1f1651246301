"""Generate the analysis snapshot file from the database.

Reads published artworks and like/save events, builds the user-item matrix,
the item similarity matrix and global stats, and writes them as camelCase
JSON. Running API processes pick the file up via POST /api/v1/snapshot/reload.

Usage:
    docker compose exec backend python -m scripts.generate_snapshot
    docker compose exec backend python -m scripts.generate_snapshot --output /tmp/analysis_data.json
"""

import argparse
import asyncio
import logging

from artrec.config import get_settings
from artrec.models.base import task_session_factory
import artrec.models  # noqa: F401
from artrec.services.snapshot_builder import build_snapshot

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


async def main(output: str) -> None:
    async with task_session_factory() as session_factory:
        document = await build_snapshot(session_factory, output)

    meta = document.metadata
    logger.info("Artworks:      %d", meta.artwork_count)
    logger.info("Users:         %d", meta.user_count)
    logger.info("Behavior logs: %d", meta.behavior_log_count)
    logger.info("Likes:         %d", meta.like_count)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate the analysis snapshot")
    parser.add_argument("--output", default=get_settings().snapshot_path, help="Snapshot file path")
    args = parser.parse_args()
    asyncio.run(main(args.output))
