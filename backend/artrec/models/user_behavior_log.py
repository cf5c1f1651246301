"""User behavior log model: raw user-artwork events."""

from sqlalchemy import Column, String, DateTime, ForeignKey, Index, func
from sqlalchemy.orm import relationship

from artrec.models.base import Base, UUIDMixin


class UserBehaviorLog(UUIDMixin, Base):
    __tablename__ = "user_behavior_logs"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    artwork_id = Column(String(36), ForeignKey("artworks.id", ondelete="CASCADE"), nullable=False)
    action = Column(String(20), nullable=False)  # view, like, save, share
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    user = relationship("User", back_populates="behavior_logs")
    artwork = relationship("Artwork")

    __table_args__ = (
        Index("idx_behavior_user_created", "user_id", "created_at"),
        Index("idx_behavior_artwork", "artwork_id"),
    )
