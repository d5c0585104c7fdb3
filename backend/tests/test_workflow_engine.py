"""Service-level tests for routing extracted candidates through the workflow engine."""

from __future__ import annotations

import unittest
from unittest import mock

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from sidecar.config import Settings
from sidecar.models.base import Base
from sidecar.models.evidence import ENTITY_REF_GRAPH_NODE, Evidence
from sidecar.models.graph_node import KnowledgeGraphNode
from sidecar.models.proposal import Proposal
from sidecar.models.role import Role
from sidecar.schemas.roles import RoleAssignmentCreate, RoleCreate, RolePermissionUpdate
from sidecar.schemas.workflow import ProjectSettingsUpdate
from sidecar.services.evidence import create_evidence, list_evidence_for_node
from sidecar.services.notifications import (
    ENTITY_AUTO_CREATED,
    PROPOSAL_CREATED,
    LoggingNotifier,
    NotificationDispatcher,
    NotificationError,
    NotificationEvent,
    NotifierInterface,
)
from sidecar.services.project_settings import upsert_project_settings
from sidecar.services.roles import assign_role, create_role, seed_default_roles, set_permission
from sidecar.services.workflow import NO_ROLE_REASON, WorkflowEngine, process_extracted_entities
from sidecar.workflow.decision import Action, Decision
from sidecar.workflow.types import CandidateEntity, SourceDescriptor

PROJECT_ID = 21
LEAD_USER = 1
JUNIOR_USER = 2
SOLO_USER = 3
SEEDED_PROJECT_ID = 22
SEEDED_USER = 7


class _RecordingNotifier(NotifierInterface):
    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    def notify(self, event: NotificationEvent) -> None:
        self.events.append(event)


class _FailingNotifier(NotifierInterface):
    def notify(self, event: NotificationEvent) -> None:
        raise NotificationError("webhook unreachable")


class WorkflowEngineTests(unittest.TestCase):
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
        self.notifier = _RecordingNotifier()
        self.settings = Settings(default_auto_create_threshold=0.8, default_approver_label="Project Lead")
        self.workflow = WorkflowEngine(
            self.db,
            dispatcher=NotificationDispatcher(self.notifier),
            settings=self.settings,
        )

        self.manager = self._role("manager", 5)
        self.lead = self._role("lead", 4, reports_to=self.manager.id)
        self.junior = self._role("junior", 2, reports_to=self.lead.id)
        set_permission(
            self.db,
            self.lead.id,
            RolePermissionUpdate(
                entity_type="risk",
                can_create=True,
                auto_create_enabled=True,
                auto_create_threshold=0.8,
            ),
        )
        set_permission(
            self.db,
            self.lead.id,
            RolePermissionUpdate(
                entity_type="decision",
                can_create=True,
                auto_create_enabled=False,
                auto_create_threshold=0.9,
                requires_approval=True,
                approval_from_role_id=self.manager.id,
            ),
        )
        assign_role(self.db, PROJECT_ID, RoleAssignmentCreate(user_id=LEAD_USER, role_id=self.lead.id))
        assign_role(self.db, PROJECT_ID, RoleAssignmentCreate(user_id=JUNIOR_USER, role_id=self.junior.id))

    def tearDown(self) -> None:
        self.db.close()

    def test_high_confidence_candidate_creates_node_and_evidence(self) -> None:
        source = SourceDescriptor(type="meeting_transcript", id="mtg-42", metadata={"chunk": 3})
        candidate = CandidateEntity(
            entity_type="Risk",
            title="Vendor API rate limits",
            description="Vendor caps calls at 100 per minute",
            confidence=0.85,
            impact="High",
            tags=["vendor"],
            citations=["They cap us at 100 rpm", "We hit the cap twice last week"],
            reasoning="Explicitly called out as a blocker",
        )

        result = self.workflow.process_extracted_entities(
            [candidate],
            user_id=LEAD_USER,
            project_id=PROJECT_ID,
            source=source,
        )

        self.assertEqual(result.processed, 1)
        self.assertEqual(result.summary.auto_created, 1)
        outcome = result.results[0]
        self.assertEqual(outcome.action, "auto_created")
        self.assertEqual(outcome.rule, 3)
        self.assertEqual(outcome.entity, {"type": "Risk", "title": "Vendor API rate limits"})

        node = self.db.get(KnowledgeGraphNode, outcome.entity_id)
        self.assertEqual(node.type, "risk")
        self.assertEqual(node.project_id, PROJECT_ID)
        self.assertTrue(node.created_by_ai)
        self.assertEqual(node.created_by, LEAD_USER)
        self.assertEqual(node.attrs["title"], "Vendor API rate limits")
        self.assertEqual(node.attrs["status"], "open")
        self.assertEqual(node.attrs["impact"], "high")

        evidence = list_evidence_for_node(self.db, node.id)
        self.assertEqual(len(evidence), 1)
        self.assertEqual(evidence[0].id, outcome.evidence_id)
        self.assertEqual(evidence[0].entity_ref_kind, ENTITY_REF_GRAPH_NODE)
        self.assertIsNone(evidence[0].entity_id)
        self.assertEqual(evidence[0].quote_text, "They cap us at 100 rpm | We hit the cap twice last week")
        self.assertNotIn(node.id, evidence[0].quote_text)
        self.assertEqual(evidence[0].source_type, "meeting_transcript")
        self.assertEqual(evidence[0].source_id, "mtg-42")
        self.assertEqual(evidence[0].confidence, "Medium")
        self.assertEqual(evidence[0].context["source_metadata"], {"chunk": 3})

        self.assertEqual([event.event for event in self.notifier.events], [ENTITY_AUTO_CREATED])
        self.assertEqual(self.notifier.events[0].node_id, node.id)

    def test_low_authority_candidate_becomes_proposal_for_reporting_parent(self) -> None:
        result = self.workflow.process_extracted_entities(
            [{"entity_type": "risk", "title": "Scope creep", "confidence": 0.95, "impact": "high"}],
            user_id=JUNIOR_USER,
            project_id=PROJECT_ID,
            source={"type": "chat_message", "id": 77},
        )

        outcome = result.results[0]
        self.assertEqual(outcome.action, "proposal_created")
        self.assertEqual(outcome.rule, 2)
        self.assertEqual(outcome.requires_approval_from, "Lead")
        self.assertEqual(outcome.requires_approval_from_role_id, self.lead.id)
        self.assertEqual(result.summary.proposals, 1)

        proposal = self.db.get(Proposal, outcome.proposal_id)
        self.assertEqual(proposal.status, "pending")
        self.assertEqual(proposal.proposed_by, JUNIOR_USER)
        self.assertEqual(proposal.source_type, "chat_message")
        self.assertEqual(proposal.source_id, "77")
        self.assertEqual(proposal.proposed_data["title"], "Scope creep")
        self.assertEqual(self.db.scalar(select(func.count(KnowledgeGraphNode.id))), 0)

        self.assertEqual(self.notifier.events[0].event, PROPOSAL_CREATED)
        self.assertEqual(self.notifier.events[0].approver_role_id, self.lead.id)

    def test_permission_approver_takes_precedence_over_reporting_line(self) -> None:
        result = self.workflow.process_extracted_entities(
            [CandidateEntity(entity_type="decision", title="Adopt Postgres", confidence=0.99, impact="critical")],
            user_id=LEAD_USER,
            project_id=PROJECT_ID,
        )

        outcome = result.results[0]
        self.assertEqual(outcome.action, "proposal_created")
        self.assertEqual(outcome.rule, 1)
        self.assertEqual(outcome.requires_approval_from_role_id, self.manager.id)
        self.assertEqual(outcome.requires_approval_from, "Manager")

    def test_unresolved_approver_uses_default_label(self) -> None:
        solo = self._role("solo", 2, project_id=PROJECT_ID + 1)
        assign_role(self.db, PROJECT_ID + 1, RoleAssignmentCreate(user_id=SOLO_USER, role_id=solo.id))

        result = self.workflow.process_extracted_entities(
            [CandidateEntity(entity_type="task", title="Write runbook", confidence=0.6)],
            user_id=SOLO_USER,
            project_id=PROJECT_ID + 1,
        )

        outcome = result.results[0]
        self.assertEqual(outcome.action, "proposal_created")
        self.assertEqual(outcome.requires_approval_from, "Project Lead")
        self.assertIsNone(outcome.requires_approval_from_role_id)

    def test_user_without_role_is_skipped(self) -> None:
        result = process_extracted_entities(
            self.db,
            [CandidateEntity(entity_type="risk", title="Unknown", confidence=0.99)],
            404,
            PROJECT_ID,
        )

        self.assertEqual(result.summary.skipped, 1)
        self.assertEqual(result.summary.errors, 0)
        self.assertEqual(result.results[0].action, "skipped")
        self.assertEqual(result.results[0].reason, NO_ROLE_REASON)

    def test_discard_decision_is_reported_as_skipped(self) -> None:
        class _DiscardingEngine(WorkflowEngine):
            def determine_action(self, candidate, role, permission, threshold) -> Decision:
                return Decision(action=Action.DISCARD, rule=7, reason="Duplicate of an existing node")

        workflow = _DiscardingEngine(self.db, dispatcher=NotificationDispatcher(self.notifier), settings=self.settings)
        result = workflow.process_extracted_entities(
            [CandidateEntity(entity_type="risk", title="Churn", confidence=0.92)],
            user_id=LEAD_USER,
            project_id=PROJECT_ID,
        )

        outcome = result.results[0]
        self.assertEqual((outcome.action, outcome.rule), ("skipped", 7))
        self.assertEqual(outcome.reason, "Duplicate of an existing node")
        self.assertEqual(result.summary.skipped, 1)
        self.assertEqual(self.db.scalar(select(func.count(KnowledgeGraphNode.id))), 0)
        self.assertEqual(self.notifier.events, [])

    def test_module_entry_point_notifies_through_default_dispatcher(self) -> None:
        with mock.patch(
            "sidecar.services.workflow.get_default_dispatcher",
            return_value=NotificationDispatcher(LoggingNotifier()),
        ):
            with self.assertLogs("sidecar.services.notifications", level="INFO") as logs:
                result = process_extracted_entities(
                    self.db,
                    [
                        CandidateEntity(entity_type="risk", title="Churn", confidence=0.92),
                        CandidateEntity(entity_type="risk", title="Scope creep", confidence=0.95),
                    ],
                    LEAD_USER,
                    PROJECT_ID,
                )

        self.assertEqual(result.summary.auto_created, 2)
        delivered = [line for line in logs.output if "workflow.notification event=entity_auto_created" in line]
        self.assertEqual(len(delivered), 2)
        self.assertEqual(self.notifier.events, [])

    def test_storage_failure_marks_only_that_candidate_as_error(self) -> None:
        calls = {"count": 0}

        def flaky_create_evidence(*args, **kwargs):
            calls["count"] += 1
            if calls["count"] == 2:
                raise SQLAlchemyError("evidence insert failed")
            return create_evidence(*args, **kwargs)

        candidates = [
            CandidateEntity(entity_type="risk", title=f"Risk {index}", confidence=0.9, impact="medium")
            for index in range(3)
        ]
        with mock.patch("sidecar.services.workflow.create_evidence", side_effect=flaky_create_evidence):
            with self.assertLogs("sidecar.services.workflow", level="ERROR"):
                result = self.workflow.process_extracted_entities(
                    candidates,
                    user_id=LEAD_USER,
                    project_id=PROJECT_ID,
                )

        self.assertEqual(result.processed, 3)
        self.assertEqual([outcome.action for outcome in result.results], ["auto_created", "error", "auto_created"])
        self.assertIn("evidence insert failed", result.results[1].error)
        self.assertEqual(result.summary.auto_created, 2)
        self.assertEqual(result.summary.errors, 1)
        self.assertEqual(result.summary.skipped, 1)
        self.assertEqual(self.db.scalar(select(func.count(KnowledgeGraphNode.id))), 2)
        self.assertEqual(self.db.scalar(select(func.count(Evidence.id))), 2)

    def test_notification_failure_does_not_affect_outcome(self) -> None:
        workflow = WorkflowEngine(
            self.db,
            dispatcher=NotificationDispatcher(_FailingNotifier()),
            settings=self.settings,
        )

        with self.assertLogs("sidecar.services.notifications", level="ERROR"):
            result = workflow.process_extracted_entities(
                [CandidateEntity(entity_type="risk", title="Churn", confidence=0.92)],
                user_id=LEAD_USER,
                project_id=PROJECT_ID,
            )

        self.assertEqual(result.results[0].action, "auto_created")
        self.assertEqual(self.db.scalar(select(func.count(KnowledgeGraphNode.id))), 1)

    def test_threshold_uses_configured_default_unless_project_overrides(self) -> None:
        # The lead's decision permission stores 0.9; only the project setting or the default apply.
        decision = CandidateEntity(entity_type="decision", title="Ship Friday", confidence=0.85, impact="high")
        task = CandidateEntity(entity_type="task", title="Update docs", confidence=0.85, impact="low")

        result = self.workflow.process_extracted_entities([decision, task], user_id=LEAD_USER, project_id=PROJECT_ID)
        self.assertEqual([outcome.action for outcome in result.results], ["auto_created", "auto_created"])
        self.assertEqual([outcome.rule for outcome in result.results], [3, 3])

        strict = WorkflowEngine(
            self.db,
            dispatcher=NotificationDispatcher(self.notifier),
            settings=Settings(default_auto_create_threshold=0.88),
        )
        result = strict.process_extracted_entities([decision], user_id=LEAD_USER, project_id=PROJECT_ID)
        self.assertEqual((result.results[0].action, result.results[0].rule), ("proposal_created", 6))

        upsert_project_settings(self.db, PROJECT_ID, ProjectSettingsUpdate(auto_create_threshold=0.95))
        result = self.workflow.process_extracted_entities([decision, task], user_id=LEAD_USER, project_id=PROJECT_ID)
        self.assertEqual([outcome.rule for outcome in result.results], [6, 6])
        self.assertEqual(result.summary.proposals, 2)

        upsert_project_settings(self.db, PROJECT_ID, ProjectSettingsUpdate(auto_create_threshold=0.8))
        result = strict.process_extracted_entities([decision], user_id=LEAD_USER, project_id=PROJECT_ID)
        self.assertEqual(result.results[0].action, "auto_created")

    def test_seeded_tech_lead_auto_creates_high_impact_decision_at_default_threshold(self) -> None:
        roles = {role.role_code: role for role in seed_default_roles(self.db, SEEDED_PROJECT_ID)}
        assign_role(
            self.db,
            SEEDED_PROJECT_ID,
            RoleAssignmentCreate(user_id=SEEDED_USER, role_id=roles["tech_lead"].id, is_primary=True),
        )

        result = self.workflow.process_extracted_entities(
            [CandidateEntity(entity_type="decision", title="Adopt Postgres 17", confidence=0.85, impact="high")],
            user_id=SEEDED_USER,
            project_id=SEEDED_PROJECT_ID,
        )

        self.assertEqual((result.results[0].action, result.results[0].rule), ("auto_created", 3))

    def test_project_detection_settings_filter_candidates(self) -> None:
        upsert_project_settings(self.db, PROJECT_ID, ProjectSettingsUpdate(detection_types=["Risk"]))

        result = self.workflow.process_extracted_entities(
            [
                CandidateEntity(entity_type="risk", title="Budget overrun", confidence=0.9),
                CandidateEntity(entity_type="Action Item", title="Book venue", confidence=0.9),
            ],
            user_id=LEAD_USER,
            project_id=PROJECT_ID,
        )
        self.assertEqual([outcome.action for outcome in result.results], ["auto_created", "skipped"])
        self.assertIn("action_item", result.results[1].reason)

        upsert_project_settings(self.db, PROJECT_ID, ProjectSettingsUpdate(enabled=False))
        result = self.workflow.process_extracted_entities(
            [CandidateEntity(entity_type="risk", title="Budget overrun", confidence=0.9)],
            user_id=LEAD_USER,
            project_id=PROJECT_ID,
        )
        self.assertEqual(result.summary.skipped, 1)

    def test_reprocessing_creates_new_nodes(self) -> None:
        candidate = CandidateEntity(entity_type="risk", title="Same risk", confidence=0.9)

        first = self.workflow.process_extracted_entities([candidate], user_id=LEAD_USER, project_id=PROJECT_ID)
        second = self.workflow.process_extracted_entities([candidate], user_id=LEAD_USER, project_id=PROJECT_ID)

        self.assertNotEqual(first.results[0].entity_id, second.results[0].entity_id)
        self.assertEqual(self.db.scalar(select(func.count(KnowledgeGraphNode.id))), 2)

    def _role(self, code: str, authority: int, *, reports_to: int | None = None, project_id: int = PROJECT_ID) -> Role:
        return create_role(
            self.db,
            project_id,
            RoleCreate(
                role_name=code.title(),
                role_code=code,
                authority_level=authority,
                reports_to_role_id=reports_to,
            ),
        )

    def _reset_tables(self) -> None:
        for table in reversed(Base.metadata.sorted_tables):
            self.db.execute(delete(table))
        self.db.commit()


if __name__ == "__main__":
    unittest.main()
