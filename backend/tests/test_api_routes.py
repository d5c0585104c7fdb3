"""HTTP-level tests for the workflow API."""

from __future__ import annotations

import unittest
from unittest import mock

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sidecar.config import Settings
from sidecar.db.dependencies import get_db
from sidecar.main import app
from sidecar.models.base import Base
from sidecar.services.notifications import LoggingNotifier, NotificationDispatcher, get_default_dispatcher

PROJECT_ID = 41


class WorkflowApiTests(unittest.TestCase):
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

        def _get_test_db():
            db = cls.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _get_test_db
        app.dependency_overrides[get_default_dispatcher] = lambda: NotificationDispatcher(LoggingNotifier())
        cls.client = TestClient(app)

    @classmethod
    def tearDownClass(cls) -> None:
        app.dependency_overrides.clear()
        Base.metadata.drop_all(cls.engine)
        cls.engine.dispose()

    def setUp(self) -> None:
        with self.SessionLocal() as db:
            for table in reversed(Base.metadata.sorted_tables):
                db.execute(delete(table))
            db.commit()

    def test_health(self) -> None:
        response = self.client.get("/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_process_then_review_flow(self) -> None:
        lead_id = self._create_role("lead", 4)
        junior_id = self._create_role("junior", 2, reports_to=lead_id)
        self._assign(1, lead_id)
        self._assign(2, junior_id)
        response = self.client.put(
            f"/roles/{lead_id}/permissions/Risk",
            json={"entity_type": "ignored", "can_create": True, "auto_create_enabled": True},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["entity_type"], "risk")

        lead_batch = self._process(
            1,
            [{"entity_type": "risk", "title": "Vendor outage", "confidence": 0.85, "citations": ["vendor is down"]}],
        )
        self.assertEqual(lead_batch["summary"]["auto_created"], 1)
        node_id = lead_batch["results"][0]["entity_id"]

        node = self.client.get(f"/graph/nodes/{node_id}").json()["data"]
        self.assertEqual(node["type"], "risk")
        self.assertEqual(node["evidence"][0]["quote_text"], "vendor is down")

        listed = self.client.get(f"/projects/{PROJECT_ID}/graph/nodes", params={"entity_type": "Risk"})
        self.assertEqual([row["id"] for row in listed.json()["data"]], [node_id])

        junior_batch = self._process(2, [{"entity_type": "decision", "title": "Use gRPC", "confidence": 0.9}])
        self.assertEqual(junior_batch["results"][0]["requires_approval_from"], "Lead")
        proposal_id = junior_batch["results"][0]["proposal_id"]

        pending = self.client.get(f"/projects/{PROJECT_ID}/proposals/pending", params={"role_id": lead_id})
        self.assertEqual([row["id"] for row in pending.json()["data"]], [proposal_id])

        approved = self.client.post(f"/proposals/{proposal_id}/approve", json={"reviewer_id": 1, "notes": "ok"})
        self.assertEqual(approved.status_code, 200)
        self.assertEqual(approved.json()["data"]["status"], "approved")

        conflict = self.client.post(f"/proposals/{proposal_id}/reject", json={"reviewer_id": 1})
        self.assertEqual(conflict.status_code, 409)
        missing = self.client.post("/proposals/9999/approve", json={"reviewer_id": 1})
        self.assertEqual(missing.status_code, 404)

        stats = self.client.get(f"/projects/{PROJECT_ID}/proposals/stats").json()["data"]
        self.assertEqual((stats["approved"], stats["pending"], stats["total"]), (1, 0, 1))

    def test_role_routes_report_validation_errors(self) -> None:
        manager_id = self._create_role("manager", 4)
        self._create_role("lead", 3, reports_to=manager_id)

        duplicate = self.client.post(
            f"/projects/{PROJECT_ID}/roles",
            json={"role_name": "Lead again", "role_code": "lead", "authority_level": 3},
        )
        self.assertEqual(duplicate.status_code, 400)

        out_of_range = self.client.post(
            f"/projects/{PROJECT_ID}/roles",
            json={"role_name": "Overlord", "role_code": "overlord", "authority_level": 9},
        )
        self.assertEqual(out_of_range.status_code, 422)

        hierarchy = self.client.get(f"/projects/{PROJECT_ID}/roles/hierarchy").json()["data"]
        self.assertEqual(hierarchy[0]["role_code"], "manager")
        self.assertEqual(hierarchy[0]["children"][0]["role_code"], "lead")

        self.assertEqual(self.client.patch("/roles/9999", json={"role_name": "x"}).status_code, 404)

    def test_process_is_rate_limited_per_actor(self) -> None:
        lead_id = self._create_role("lead", 4)
        self._assign(1, lead_id)
        limited = Settings(rate_limit_per_hour=1, rate_limit_window_seconds=3600)

        with mock.patch("sidecar.routers.workflow.get_settings", return_value=limited):
            first = self.client.post(
                f"/projects/{PROJECT_ID}/entities/process",
                json={"user_id": 1, "entities": []},
            )
            second = self.client.post(
                f"/projects/{PROJECT_ID}/entities/process",
                json={"user_id": 1, "entities": []},
            )

        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.json()["data"]["processed"], 0)
        self.assertEqual(second.status_code, 429)

    def _create_role(self, code: str, authority: int, *, reports_to: int | None = None) -> int:
        response = self.client.post(
            f"/projects/{PROJECT_ID}/roles",
            json={
                "role_name": code.title(),
                "role_code": code,
                "authority_level": authority,
                "reports_to_role_id": reports_to,
            },
        )
        self.assertEqual(response.status_code, 201)
        return response.json()["data"]["id"]

    def _assign(self, user_id: int, role_id: int) -> None:
        response = self.client.post(
            f"/projects/{PROJECT_ID}/role-assignments",
            json={"user_id": user_id, "role_id": role_id},
        )
        self.assertEqual(response.status_code, 201)

    def _process(self, user_id: int, entities: list[dict[str, object]]) -> dict:
        response = self.client.post(
            f"/projects/{PROJECT_ID}/entities/process",
            json={"user_id": user_id, "entities": entities, "source": {"type": "chat_message", "id": "m-1"}},
        )
        self.assertEqual(response.status_code, 200)
        return response.json()["data"]
