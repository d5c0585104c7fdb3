"""Shared fixed-window rate limit counter ORM model."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sidecar.models.base import Base, IdMixin


class RateLimitCounter(Base, IdMixin):
    """Request count for one actor and feature within one time window."""

    __tablename__ = "rate_limit_counters"
    __table_args__ = (
        UniqueConstraint("actor_id", "feature", "window_start", name="uq_rate_limit_counters_window"),
    )

    actor_id: Mapped[int] = mapped_column(Integer, nullable=False)
    feature: Mapped[str] = mapped_column(String(64), nullable=False)
    window_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True, nullable=False)
