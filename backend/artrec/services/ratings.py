"""Behavior-to-rating mapping shared by every engine and batch job."""

from collections.abc import Iterable
from typing import Final

from artrec.schemas.records import Interaction

# Implicit rating per behavior action
ACTION_RATINGS: Final[dict[str, float]] = {
    "like": 1.0,
    "save": 1.0,
    "share": 0.8,
    "view": 0.3,
}

DEFAULT_RATING: Final[float] = 0.5


def rating_for_action(action: str | None) -> float:
    """Map a raw behavior action to a rating in [0, 1]. Unknown actions rate 0.5."""
    if not action:
        return DEFAULT_RATING
    return ACTION_RATINGS.get(action.strip().lower(), DEFAULT_RATING)


def latest_ratings(interactions: Iterable[Interaction], key: str = "artwork_id") -> dict[str, float]:
    """Collapse repeated events to the most recent rating per ``key`` value."""
    ratings: dict[str, float] = {}
    for interaction in sorted(interactions, key=lambda i: i.timestamp, reverse=True):
        ratings.setdefault(getattr(interaction, key), interaction.rating)
    return ratings
