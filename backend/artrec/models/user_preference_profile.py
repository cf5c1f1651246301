"""User preference profile model: recomputed wholesale by the analysis batch."""

from sqlalchemy import Column, Integer, Float, DateTime, String, ForeignKey
from sqlalchemy.orm import relationship

from artrec.models.base import Base, JSONType, TimestampMixin, UUIDMixin


class UserPreferenceProfile(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "user_preference_profiles"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    preference_vector = Column(JSONType, nullable=False, default=list)  # 128 floats
    # Dimension weights: style / category -> float [0.0, 1.0]
    preferred_styles = Column(JSONType, nullable=False, default=dict)
    preferred_categories = Column(JSONType, nullable=False, default=dict)
    profile_confidence = Column(Float, default=0.0, nullable=False)

    total_interactions = Column(Integer, default=0, nullable=False)
    last_updated = Column(DateTime(timezone=True))

    # Relationships
    user = relationship("User", back_populates="preference_profile")
