"""Precomputed recommendation rows written by the batch recompute."""

from sqlalchemy import Column, String, Float, DateTime, ForeignKey, Index

from artrec.models.base import Base, UUIDMixin


class PrecomputedRecommendation(UUIDMixin, Base):
    __tablename__ = "precomputed_recommendations"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    artwork_id = Column(String(36), ForeignKey("artworks.id", ondelete="CASCADE"), nullable=False)
    score = Column(Float, nullable=False)
    algorithm = Column(String(50), nullable=False)
    computed_at = Column(DateTime(timezone=True), nullable=False)
    valid_until = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_precomputed_user_valid", "user_id", "valid_until"),
        Index("idx_precomputed_valid_until", "valid_until"),
    )
