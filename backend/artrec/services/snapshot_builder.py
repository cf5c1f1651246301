"""Builds the analysis snapshot file from the database.

The snapshot is a denormalized, read-only view used by the snapshot
recommenders: artworks with light features, per-user like profiles, a
user-item matrix and a full item-item similarity matrix.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from artrec.models.artwork import Artwork
from artrec.models.user import User
from artrec.models.user_behavior_log import UserBehaviorLog
from artrec.schemas.snapshot import (
    ArtworkFeatures,
    CategoryCount,
    GlobalStats,
    SnapshotArtwork,
    SnapshotDocument,
    SnapshotMetadata,
    SnapshotPreferences,
    SnapshotUserProfile,
    StyleCount,
    TagCount,
    TopArtist,
)

logger = logging.getLogger(__name__)

LIKE_ACTIONS = ["like", "save"]
BEHAVIOR_LOG_WINDOW = 1000
RECENCY_DAYS = 365

CATEGORY_SCORES = {
    "character_design": 1.0,
    "concept_art": 0.9,
    "illustration": 0.8,
    "portrait": 0.8,
    "mascot": 0.8,
    "logo": 0.7,
    "ui_design": 0.7,
    "background": 0.6,
}

STYLE_SCORES = {
    "anime": 1.0,
    "realistic": 0.9,
    "cartoon": 0.8,
    "watercolor": 0.8,
    "pixel_art": 0.7,
    "minimalist": 0.7,
    "retro": 0.6,
}

# Fixed tag vocabulary for the tag vector; a tag hits a slot when it contains the word
COMMON_TAGS = ["character", "fantasy", "scifi", "cute", "cool", "dark", "pop", "retro"]


@dataclass
class SourceArtwork:
    id: str
    title: str
    description: str | None
    category: str | None
    style: list[str]
    tags: list[str]
    artist_id: str | None
    artist_name: str
    created_at: datetime | None


@dataclass
class SourceLike:
    user_id: str
    artwork_id: str
    user_type: str | None = None


def tag_vector(tags: list[str]) -> list[float]:
    vector = [0.0] * len(COMMON_TAGS)
    for tag in tags:
        lowered = tag.lower()
        for index, common in enumerate(COMMON_TAGS):
            if common in lowered:
                vector[index] = 1.0
                break
    return vector


def recency_score(created_at: datetime | None, now: datetime) -> float:
    """1.0 for brand new, decaying linearly to 0 after a year."""
    if created_at is None:
        return 0.0
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    days = (now - created_at).total_seconds() / 86400
    return max(0.0, min(1.0, 1 - days / RECENCY_DAYS))


def pair_similarity(a: SnapshotArtwork, b: SnapshotArtwork) -> float:
    """Category 0.3, primary style 0.3, tag overlap 0.4."""
    similarity = 0.0
    if a.category == b.category:
        similarity += 0.3
    if a.style and b.style and a.style == b.style:
        similarity += 0.3
    common = set(a.tags) & set(b.tags)
    similarity += len(common) / max(len(a.tags), len(b.tags), 1) * 0.4
    return round(similarity, 4)


def build_snapshot_document(
    artworks: list[SourceArtwork],
    likes: list[SourceLike],
    behavior_log_count: int = 0,
    now: datetime | None = None,
) -> SnapshotDocument:
    now = now or datetime.now(timezone.utc)

    # Count each (user, artwork) like once
    unique_likes: dict[tuple[str, str], SourceLike] = {}
    for like in likes:
        unique_likes.setdefault((like.user_id, like.artwork_id), like)
    likes_per_artwork = Counter(artwork_id for _, artwork_id in unique_likes)

    snapshot_artworks = [
        SnapshotArtwork(
            id=a.id,
            title=a.title,
            description=a.description,
            category=a.category,
            style=a.style,
            tags=a.tags,
            artist_id=a.artist_id,
            artist_name=a.artist_name,
            likes_count=likes_per_artwork.get(a.id, 0),
            created_at=a.created_at,
            features=ArtworkFeatures(
                category_score=CATEGORY_SCORES.get((a.category or "").lower(), 0.5),
                style_score=STYLE_SCORES.get(a.style[0].lower(), 0.5) if a.style else 0.5,
                tag_vector=tag_vector(a.tags),
                popularity_score=likes_per_artwork.get(a.id, 0),
                recency_score=round(recency_score(a.created_at, now), 4),
            ),
        )
        for a in artworks
    ]
    by_id = {a.id: a for a in snapshot_artworks}

    profiles: dict[str, SnapshotUserProfile] = {}
    for (user_id, artwork_id), like in unique_likes.items():
        artwork = by_id.get(artwork_id)
        if artwork is None:
            continue
        profile = profiles.setdefault(
            user_id, SnapshotUserProfile(user_id=user_id, user_type=like.user_type)
        )
        profile.liked_artworks.append(artwork_id)
        prefs = profile.preferences
        if artwork.category:
            prefs.categories[artwork.category] = prefs.categories.get(artwork.category, 0) + 1
        if artwork.style:
            prefs.styles[artwork.style] = prefs.styles.get(artwork.style, 0) + 1
        for tag in artwork.tags:
            prefs.tags[tag] = prefs.tags.get(tag, 0) + 1
        if artwork.artist_id:
            prefs.artists[artwork.artist_id] = prefs.artists.get(artwork.artist_id, 0) + 1

    user_item_matrix = {
        user_id: {artwork_id: 1.0 for artwork_id in profile.liked_artworks}
        for user_id, profile in profiles.items()
    }

    item_similarity_matrix = {
        a.id: {b.id: pair_similarity(a, b) for b in snapshot_artworks if b.id != a.id}
        for a in snapshot_artworks
    }

    return SnapshotDocument(
        metadata=SnapshotMetadata(
            generated_at=now,
            artwork_count=len(snapshot_artworks),
            user_count=len(profiles),
            behavior_log_count=behavior_log_count,
            like_count=len(unique_likes),
        ),
        artworks=snapshot_artworks,
        user_profiles=list(profiles.values()),
        user_item_matrix=user_item_matrix,
        item_similarity_matrix=item_similarity_matrix,
        global_stats=global_stats(snapshot_artworks),
    )


def global_stats(artworks: list[SnapshotArtwork]) -> GlobalStats:
    categories = Counter(a.category for a in artworks)
    styles = Counter(a.style for a in artworks if a.style)
    tags = Counter(tag for a in artworks for tag in a.tags)

    artists: dict[str | None, TopArtist] = {}
    for a in artworks:
        artist = artists.setdefault(a.artist_id, TopArtist(id=a.artist_id, name=a.artist_name))
        artist.artwork_count += 1
        artist.total_likes += a.likes_count

    return GlobalStats(
        popular_categories=[CategoryCount(category=c, count=n) for c, n in categories.most_common(5)],
        popular_styles=[StyleCount(style=s, count=n) for s, n in styles.most_common(5)],
        popular_tags=[TagCount(tag=t, count=n) for t, n in tags.most_common(10)],
        top_artists=sorted(artists.values(), key=lambda x: x.total_likes, reverse=True)[:10],
    )


async def collect_snapshot(session_factory: async_sessionmaker[AsyncSession]) -> SnapshotDocument:
    """Read published artworks and like events, then build the document."""
    async with session_factory() as session:
        artwork_rows = await session.execute(
            select(Artwork, User.display_name)
            .join(User, Artwork.artist_id == User.id, isouter=True)
            .where(Artwork.is_published == True)  # noqa: E712
            .order_by(Artwork.created_at.desc(), Artwork.id)
        )
        artworks = [
            SourceArtwork(
                id=artwork.id,
                title=artwork.title,
                description=artwork.description,
                category=artwork.category,
                style=list(artwork.style or []),
                tags=list(artwork.tags or []),
                artist_id=artwork.artist_id,
                artist_name=display_name or "Unknown",
                created_at=artwork.created_at,
            )
            for artwork, display_name in artwork_rows.all()
        ]

        like_rows = await session.execute(
            select(UserBehaviorLog.user_id, UserBehaviorLog.artwork_id, User.role)
            .join(User, UserBehaviorLog.user_id == User.id)
            .where(func.lower(UserBehaviorLog.action).in_(LIKE_ACTIONS))
            .order_by(UserBehaviorLog.created_at.desc())
        )
        likes = [SourceLike(user_id=u, artwork_id=a, user_type=role) for u, a, role in like_rows.all()]

        log_count = await session.execute(select(func.count(UserBehaviorLog.id)))
        behavior_log_count = min(log_count.scalar() or 0, BEHAVIOR_LOG_WINDOW)

    return build_snapshot_document(artworks, likes, behavior_log_count)


def write_snapshot(document: SnapshotDocument, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(document.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    logger.info(
        "Wrote analysis snapshot to %s (%d artworks, %d users, %d likes)",
        path, document.metadata.artwork_count, document.metadata.user_count, document.metadata.like_count,
    )
    return path


async def build_snapshot(session_factory: async_sessionmaker[AsyncSession], path: str | Path) -> SnapshotDocument:
    document = await collect_snapshot(session_factory)
    write_snapshot(document, path)
    return document
