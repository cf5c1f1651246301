"""Analysis snapshot loading.

A snapshot is read wholesale from JSON into an immutable ``AnalysisSnapshot``.
``SnapshotLoader.reload`` builds a fresh snapshot and swaps the reference, so
a request that captured the old snapshot keeps reading a consistent view.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from artrec.config import get_settings
from artrec.exceptions import SnapshotUnavailable
from artrec.schemas.records import ArtworkRecord
from artrec.schemas.snapshot import SnapshotArtwork, SnapshotDocument, SnapshotUserProfile
from artrec.services.similarity import cosine_similarity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisSnapshot:
    document: SnapshotDocument
    artworks_by_id: dict[str, SnapshotArtwork] = field(default_factory=dict)
    profiles_by_user: dict[str, SnapshotUserProfile] = field(default_factory=dict)

    @classmethod
    def from_document(cls, document: SnapshotDocument) -> "AnalysisSnapshot":
        return cls(
            document=document,
            artworks_by_id={a.id: a for a in document.artworks},
            profiles_by_user={p.user_id: p for p in document.user_profiles},
        )

    @property
    def artworks(self) -> list[SnapshotArtwork]:
        return self.document.artworks

    @property
    def user_item_matrix(self) -> dict[str, dict[str, float]]:
        return self.document.user_item_matrix

    @property
    def item_similarity_matrix(self) -> dict[str, dict[str, float]]:
        return self.document.item_similarity_matrix

    def get_artwork(self, artwork_id: str) -> SnapshotArtwork | None:
        return self.artworks_by_id.get(artwork_id)

    def get_user_profile(self, user_id: str) -> SnapshotUserProfile | None:
        return self.profiles_by_user.get(user_id)

    def find_similar_users(self, user_id: str, limit: int = 10) -> list[tuple[str, float]]:
        """Users with positive cosine similarity over the user-item matrix, best first."""
        target = self.user_item_matrix.get(user_id)
        if not target:
            return []

        similar = []
        for other_id, items in self.user_item_matrix.items():
            if other_id == user_id:
                continue
            similarity = cosine_similarity(target, items)
            if similarity > 0:
                similar.append((other_id, similarity))

        similar.sort(key=lambda s: s[1], reverse=True)
        return similar[:limit]

    def find_similar_artworks(self, artwork_id: str, limit: int = 10) -> list[tuple[str, float]]:
        row = self.item_similarity_matrix.get(artwork_id)
        if not row:
            return []
        similar = [(aid, score) for aid, score in row.items() if score > 0]
        similar.sort(key=lambda s: s[1], reverse=True)
        return similar[:limit]

    def popular_artworks(self, category: str | None = None, limit: int | None = None) -> list[SnapshotArtwork]:
        artworks = [a for a in self.artworks if category is None or a.category == category]
        artworks.sort(key=lambda a: a.likes_count, reverse=True)
        return artworks if limit is None else artworks[:limit]

    def artwork_records(self) -> list[ArtworkRecord]:
        """Snapshot artworks in the feature-store record shape."""
        return [
            ArtworkRecord(
                id=a.id,
                title=a.title,
                description=a.description,
                category=a.category,
                style=a.style,
                tags=a.tags,
                artist_id=a.artist_id,
                popularity_score=a.likes_count,
                created_at=a.created_at,
            )
            for a in self.artworks
        ]


def load_snapshot(path: str | Path) -> AnalysisSnapshot:
    path = Path(path)
    if not path.is_file():
        raise SnapshotUnavailable(f"Analysis snapshot not found: {path}")

    try:
        document = SnapshotDocument.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        raise SnapshotUnavailable(f"Analysis snapshot is invalid: {path}") from e

    logger.info(
        "Loaded analysis snapshot: %d artworks, %d users",
        document.metadata.artwork_count, document.metadata.user_count,
    )
    return AnalysisSnapshot.from_document(document)


class SnapshotLoader:
    """Holds the current snapshot; loads lazily and swaps on reload."""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path or get_settings().snapshot_path)
        self._snapshot: AnalysisSnapshot | None = None

    @property
    def loaded(self) -> bool:
        return self._snapshot is not None

    @property
    def current(self) -> AnalysisSnapshot:
        if self._snapshot is None:
            self._snapshot = load_snapshot(self.path)
        return self._snapshot

    def reload(self) -> AnalysisSnapshot:
        """Load the file again; the previous snapshot stays in place if loading fails."""
        snapshot = load_snapshot(self.path)
        self._snapshot = snapshot
        return snapshot
