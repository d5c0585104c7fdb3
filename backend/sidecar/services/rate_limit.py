"""Shared fixed-window rate limiting backed by database counters."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sidecar.models.rate_limit_counter import RateLimitCounter

logger = logging.getLogger(__name__)

ENTITY_PROCESSING_FEATURE = "entity_processing"


@dataclass(slots=True)
class RateLimitStatus:
    """Counter state after one consumption attempt."""

    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime


class RateLimitExceededError(RuntimeError):
    """Raised when an actor has used up the current window."""

    def __init__(self, status: RateLimitStatus) -> None:
        super().__init__(f"Rate limit of {status.limit} requests exceeded; resets at {status.reset_at.isoformat()}")
        self.status = status


def window_start_for(now: datetime, window_seconds: int) -> datetime:
    """Floor a timestamp to the start of its fixed window."""

    epoch_seconds = int(now.timestamp())
    return datetime.fromtimestamp(epoch_seconds - epoch_seconds % window_seconds, tz=timezone.utc)


def consume_rate_limit(
    db: Session,
    actor_id: int,
    feature: str,
    *,
    limit: int,
    window_seconds: int,
    now: datetime | None = None,
) -> RateLimitStatus:
    """Atomically count one request against the actor's current window."""

    current = now or datetime.now(timezone.utc)
    window_start = window_start_for(current, window_seconds)
    expires_at = window_start + timedelta(seconds=window_seconds)
    window_filter = (
        RateLimitCounter.actor_id == actor_id,
        RateLimitCounter.feature == feature,
        RateLimitCounter.window_start == window_start,
    )

    if db.scalar(select(RateLimitCounter.id).where(*window_filter)) is None:
        db.execute(
            delete(RateLimitCounter)
            .where(
                RateLimitCounter.actor_id == actor_id,
                RateLimitCounter.feature == feature,
                RateLimitCounter.expires_at <= current,
            )
            .execution_options(synchronize_session=False)
        )
        db.add(
            RateLimitCounter(
                actor_id=actor_id,
                feature=feature,
                window_start=window_start,
                count=0,
                expires_at=expires_at,
            )
        )
        try:
            db.commit()
        except IntegrityError:
            # Another instance opened the same window first.
            db.rollback()

    result = db.execute(
        update(RateLimitCounter)
        .where(*window_filter, RateLimitCounter.count < limit)
        .values(count=RateLimitCounter.count + 1)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    used = db.scalar(select(RateLimitCounter.count).where(*window_filter)) or 0
    status = RateLimitStatus(
        allowed=result.rowcount == 1,
        limit=limit,
        remaining=max(limit - used, 0),
        reset_at=expires_at,
    )
    if not status.allowed:
        logger.warning("rate_limit.exceeded actor_id=%s feature=%s limit=%d", actor_id, feature, limit)
    return status


def enforce_rate_limit(
    db: Session,
    actor_id: int,
    feature: str,
    *,
    limit: int,
    window_seconds: int,
    now: datetime | None = None,
) -> RateLimitStatus:
    """Consume one request or raise ``RateLimitExceededError``."""

    status = consume_rate_limit(db, actor_id, feature, limit=limit, window_seconds=window_seconds, now=now)
    if not status.allowed:
        raise RateLimitExceededError(status)
    return status


def purge_expired_counters(db: Session, *, now: datetime | None = None) -> int:
    """Delete counters whose window has ended."""

    result = db.execute(
        delete(RateLimitCounter)
        .where(RateLimitCounter.expires_at <= (now or datetime.now(timezone.utc)))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount or 0
