"""Service-level tests for shared rate limit counters."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import unittest

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from sidecar.models.base import Base
from sidecar.models.rate_limit_counter import RateLimitCounter
from sidecar.services.rate_limit import (
    RateLimitExceededError,
    consume_rate_limit,
    enforce_rate_limit,
    purge_expired_counters,
    window_start_for,
)

FEATURE = "entity_processing"
NOW = datetime(2026, 10, 17, 9, 15, 30, tzinfo=timezone.utc)


class RateLimitTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autoflush=False, autocommit=False, future=True)
        Base.metadata.create_all(cls.engine)

    @classmethod
    def tearDownClass(cls) -> None:
        Base.metadata.drop_all(cls.engine)
        cls.engine.dispose()

    def setUp(self) -> None:
        self.db: Session = self.SessionLocal()
        self._reset_tables()

    def tearDown(self) -> None:
        self.db.close()

    def test_window_start_floors_to_window(self) -> None:
        self.assertEqual(window_start_for(NOW, 3600), datetime(2026, 10, 17, 9, 0, tzinfo=timezone.utc))
        self.assertEqual(window_start_for(NOW, 60), datetime(2026, 10, 17, 9, 15, tzinfo=timezone.utc))

    def test_requests_are_counted_until_limit(self) -> None:
        statuses = [
            consume_rate_limit(self.db, 1, FEATURE, limit=3, window_seconds=3600, now=NOW + timedelta(seconds=i))
            for i in range(4)
        ]

        self.assertEqual([status.allowed for status in statuses], [True, True, True, False])
        self.assertEqual([status.remaining for status in statuses], [2, 1, 0, 0])
        self.assertEqual(statuses[0].reset_at, datetime(2026, 10, 17, 10, 0, tzinfo=timezone.utc))
        self.assertEqual(self.db.scalar(select(RateLimitCounter.count)), 3)

    def test_counters_are_scoped_per_actor_and_window(self) -> None:
        consume_rate_limit(self.db, 1, FEATURE, limit=1, window_seconds=3600, now=NOW)

        other_actor = consume_rate_limit(self.db, 2, FEATURE, limit=1, window_seconds=3600, now=NOW)
        other_feature = consume_rate_limit(self.db, 1, "thought_capture", limit=1, window_seconds=3600, now=NOW)
        next_window = consume_rate_limit(
            self.db,
            1,
            FEATURE,
            limit=1,
            window_seconds=3600,
            now=NOW + timedelta(hours=1),
        )

        self.assertTrue(other_actor.allowed)
        self.assertTrue(other_feature.allowed)
        self.assertTrue(next_window.allowed)
        self.assertEqual(self.db.scalar(select(func.count(RateLimitCounter.id))), 3)

    def test_counter_is_shared_across_sessions(self) -> None:
        other_db = self.SessionLocal()
        try:
            consume_rate_limit(self.db, 1, FEATURE, limit=2, window_seconds=3600, now=NOW)
            consume_rate_limit(other_db, 1, FEATURE, limit=2, window_seconds=3600, now=NOW)
            status = consume_rate_limit(self.db, 1, FEATURE, limit=2, window_seconds=3600, now=NOW)
        finally:
            other_db.close()

        self.assertFalse(status.allowed)

    def test_enforce_raises_when_exhausted(self) -> None:
        enforce_rate_limit(self.db, 1, FEATURE, limit=1, window_seconds=3600, now=NOW)

        with self.assertLogs("sidecar.services.rate_limit", level="WARNING"):
            with self.assertRaises(RateLimitExceededError) as ctx:
                enforce_rate_limit(self.db, 1, FEATURE, limit=1, window_seconds=3600, now=NOW)

        self.assertEqual(ctx.exception.status.remaining, 0)
        self.assertEqual(ctx.exception.status.limit, 1)

    def test_purge_removes_only_expired_counters(self) -> None:
        consume_rate_limit(self.db, 1, FEATURE, limit=5, window_seconds=3600, now=NOW - timedelta(hours=2))
        consume_rate_limit(self.db, 2, FEATURE, limit=5, window_seconds=3600, now=NOW)

        removed = purge_expired_counters(self.db, now=NOW)

        self.assertEqual(removed, 1)
        remaining = self.db.scalars(select(RateLimitCounter)).all()
        self.assertEqual(len(remaining), 1)
        self.assertEqual(remaining[0].count, 1)

    def test_opening_a_window_drops_the_actors_expired_counters(self) -> None:
        consume_rate_limit(self.db, 1, FEATURE, limit=5, window_seconds=3600, now=NOW - timedelta(hours=2))
        consume_rate_limit(self.db, 2, FEATURE, limit=5, window_seconds=3600, now=NOW - timedelta(hours=2))

        consume_rate_limit(self.db, 1, FEATURE, limit=5, window_seconds=3600, now=NOW)

        actors = sorted(self.db.scalars(select(RateLimitCounter.actor_id)).all())
        self.assertEqual(actors, [1, 2])
        self.assertEqual(self.db.scalar(select(func.count(RateLimitCounter.id))), 2)

    def _reset_tables(self) -> None:
        for table in reversed(Base.metadata.sorted_tables):
            self.db.execute(delete(table))
        self.db.commit()


if __name__ == "__main__":
    unittest.main()
