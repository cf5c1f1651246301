"""Artwork listing model."""

from sqlalchemy import Column, String, Text, Float, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship

from artrec.models.base import Base, JSONType, TimestampMixin, UUIDMixin


class Artwork(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "artworks"

    artist_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    category = Column(String(50))
    style = Column(JSONType, nullable=False, default=list)  # list of style slugs
    tags = Column(JSONType, nullable=False, default=list)
    price_min = Column(Float)
    price_max = Column(Float)
    popularity_score = Column(Float, default=0.0, nullable=False)
    is_published = Column(Boolean, default=True, nullable=False)

    # Relationships
    analysis = relationship("ArtworkAnalysis", back_populates="artwork", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_artworks_category", "category"),
        Index("idx_artworks_artist", "artist_id"),
    )
