"""Marketplace user model."""

from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship

from artrec.models.base import Base, TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "users"

    display_name = Column(String(100), nullable=False)
    role = Column(String(20), default="client", nullable=False)  # client, creator
    is_active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime(timezone=True))

    # Relationships
    behavior_logs = relationship("UserBehaviorLog", back_populates="user", cascade="all, delete-orphan")
    preference_profile = relationship(
        "UserPreferenceProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
