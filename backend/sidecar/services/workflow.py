"""Workflow engine routing inference candidates to the graph or to review."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import logging
from time import perf_counter
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sidecar.config import Settings, get_settings
from sidecar.models.role import Role
from sidecar.schemas.workflow import BatchProcessingResult, BatchSummary, EntityOutcome
from sidecar.services.evidence import GraphNodeRef, create_evidence
from sidecar.services.graph import build_node_attrs, create_graph_node
from sidecar.services.notifications import (
    ENTITY_AUTO_CREATED,
    PROPOSAL_CREATED,
    NotificationDispatcher,
    NotificationEvent,
    get_default_dispatcher,
)
from sidecar.services.project_settings import get_project_settings, is_detection_enabled, resolve_threshold
from sidecar.services.proposals import create_proposal
from sidecar.services.roles import get_approver_role, get_effective_role, get_permission, get_role
from sidecar.workflow.approver import DEFAULT_APPROVER_STRATEGIES, ApproverStrategy
from sidecar.workflow.decision import Action, Decision, PermissionPolicy, decide
from sidecar.workflow.types import (
    CandidateEntity,
    SourceDescriptor,
    candidate_from_payload,
    normalize_entity_type,
    source_from_payload,
)

logger = logging.getLogger(__name__)

NO_ROLE_REASON = "User has no role in this project"
WORKFLOW_DISABLED_REASON = "AI workflow is disabled for this project"


class WorkflowEngine:
    """Routes candidates for one database session."""

    def __init__(
        self,
        db: Session,
        *,
        dispatcher: NotificationDispatcher | None = None,
        settings: Settings | None = None,
        approver_strategies: Sequence[ApproverStrategy] = DEFAULT_APPROVER_STRATEGIES,
    ) -> None:
        self.db = db
        self.dispatcher = dispatcher if dispatcher is not None else get_default_dispatcher()
        self.settings = settings or get_settings()
        self.approver_strategies = tuple(approver_strategies)

    def process_extracted_entities(
        self,
        entities: Sequence[CandidateEntity | Mapping[str, Any]],
        *,
        user_id: int,
        project_id: int,
        source: SourceDescriptor | Mapping[str, Any] | None = None,
    ) -> BatchProcessingResult:
        """Route every candidate; one failing candidate never aborts the batch."""

        total_started = perf_counter()
        descriptor = source if isinstance(source, SourceDescriptor) else source_from_payload(dict(source or {}))
        summary = BatchSummary()
        results: list[EntityOutcome] = []

        for raw in entities:
            candidate = raw if isinstance(raw, CandidateEntity) else candidate_from_payload(dict(raw))
            try:
                outcome = self.process_entity(
                    candidate,
                    user_id=user_id,
                    project_id=project_id,
                    source=descriptor,
                )
            except Exception as exc:
                self.db.rollback()
                logger.exception(
                    "workflow.entity_failed project_id=%s user_id=%s entity_type=%s",
                    project_id,
                    user_id,
                    candidate.entity_type,
                )
                outcome = EntityOutcome(entity=candidate.summary(), action="error", error=str(exc))

            if outcome.action == "auto_created":
                summary.auto_created += 1
            elif outcome.action == "proposal_created":
                summary.proposals += 1
            else:
                summary.skipped += 1
                if outcome.action == "error":
                    summary.errors += 1
            results.append(outcome)

        logger.info(
            (
                "workflow.batch_timing project_id=%s user_id=%s source_type=%s processed=%d "
                "auto_created=%d proposals=%d skipped=%d errors=%d total_ms=%.2f"
            ),
            project_id,
            user_id,
            descriptor.type,
            len(results),
            summary.auto_created,
            summary.proposals,
            summary.skipped,
            summary.errors,
            (perf_counter() - total_started) * 1000.0,
        )
        return BatchProcessingResult(processed=len(results), results=results, summary=summary)

    def process_entity(
        self,
        candidate: CandidateEntity,
        *,
        user_id: int,
        project_id: int,
        source: SourceDescriptor,
    ) -> EntityOutcome:
        """Route one candidate."""

        role = get_effective_role(self.db, user_id, project_id)
        if role is None:
            return EntityOutcome(entity=candidate.summary(), action="skipped", reason=NO_ROLE_REASON)

        project_settings = get_project_settings(self.db, project_id)
        if project_settings is not None and not project_settings.enabled:
            return EntityOutcome(entity=candidate.summary(), action="skipped", reason=WORKFLOW_DISABLED_REASON)
        if not is_detection_enabled(project_settings, candidate.entity_type):
            return EntityOutcome(
                entity=candidate.summary(),
                action="skipped",
                reason=f"Detection of {normalize_entity_type(candidate.entity_type)} is disabled for this project",
            )

        permission = get_permission(self.db, role.id, candidate.entity_type)
        threshold = resolve_threshold(project_settings, self.settings)
        decision = self.determine_action(candidate, role, permission, threshold)

        if decision.action is Action.AUTO_CREATE:
            return self.auto_create_entity(candidate, decision, user_id=user_id, project_id=project_id, source=source)
        if decision.action is Action.PROPOSE:
            return self.propose_entity(
                candidate,
                decision,
                role,
                user_id=user_id,
                project_id=project_id,
                source=source,
            )
        return EntityOutcome(
            entity=candidate.summary(),
            action="skipped",
            rule=decision.rule,
            reason=decision.reason,
        )

    def determine_action(
        self,
        candidate: CandidateEntity,
        role: Role,
        permission: PermissionPolicy,
        threshold: float,
    ) -> Decision:
        return decide(
            authority=role.authority_level,
            confidence=candidate.confidence,
            impact=candidate.impact_level,
            permission=permission,
            threshold=threshold,
        )

    def auto_create_entity(
        self,
        candidate: CandidateEntity,
        decision: Decision,
        *,
        user_id: int,
        project_id: int,
        source: SourceDescriptor,
    ) -> EntityOutcome:
        """Write node and evidence atomically, then notify."""

        entity_type = normalize_entity_type(candidate.entity_type)
        try:
            node = create_graph_node(
                self.db,
                project_id=project_id,
                entity_type=entity_type,
                attrs=build_node_attrs(candidate),
                created_by=user_id,
                ai_confidence=candidate.confidence,
            )
            evidence = create_evidence(
                self.db,
                entity_ref=GraphNodeRef(node.id),
                entity_type=entity_type,
                source=source,
                citations=candidate.citations,
                created_by=user_id,
                confidence=candidate.confidence,
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception(
                "workflow.auto_create_failed project_id=%s user_id=%s entity_type=%s",
                project_id,
                user_id,
                entity_type,
            )
            return EntityOutcome(
                entity=candidate.summary(),
                action="error",
                rule=decision.rule,
                reason=decision.reason,
                error=str(exc),
            )

        self._notify(
            NotificationEvent(
                event=ENTITY_AUTO_CREATED,
                project_id=project_id,
                entity_type=entity_type,
                title=candidate.title,
                actor_id=user_id,
                node_id=node.id,
                reason=decision.reason,
            )
        )
        return EntityOutcome(
            entity=candidate.summary(),
            action="auto_created",
            rule=decision.rule,
            reason=decision.reason,
            entity_id=node.id,
            evidence_id=evidence.id,
        )

    def propose_entity(
        self,
        candidate: CandidateEntity,
        decision: Decision,
        role: Role,
        *,
        user_id: int,
        project_id: int,
        source: SourceDescriptor,
    ) -> EntityOutcome:
        """Store a pending proposal addressed to the resolved approver role."""

        approver = self.resolve_proposal_approver(role, decision)
        try:
            proposal = create_proposal(
                self.db,
                candidate=candidate,
                project_id=project_id,
                proposed_by=user_id,
                approver_role_id=approver.id if approver is not None else None,
                source=source,
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception(
                "workflow.proposal_failed project_id=%s user_id=%s entity_type=%s",
                project_id,
                user_id,
                candidate.entity_type,
            )
            return EntityOutcome(
                entity=candidate.summary(),
                action="error",
                rule=decision.rule,
                reason=decision.reason,
                error=str(exc),
            )

        approver_name = approver.role_name if approver is not None else self.settings.default_approver_label
        self._notify(
            NotificationEvent(
                event=PROPOSAL_CREATED,
                project_id=project_id,
                entity_type=proposal.entity_type,
                title=candidate.title,
                actor_id=user_id,
                proposal_id=proposal.id,
                approver_role_id=proposal.requires_approval_from,
                approver_role_name=approver_name,
                reason=decision.reason,
            )
        )
        return EntityOutcome(
            entity=candidate.summary(),
            action="proposal_created",
            rule=decision.rule,
            reason=decision.reason,
            proposal_id=proposal.id,
            requires_approval_from=approver_name,
            requires_approval_from_role_id=proposal.requires_approval_from,
        )

    def resolve_proposal_approver(self, role: Role, decision: Decision) -> Role | None:
        """Prefer the permission's explicit approver role, then the strategy chain."""

        if decision.approver_role_id is not None:
            approver = get_role(self.db, decision.approver_role_id)
            if approver is not None and approver.is_active:
                return approver
        return get_approver_role(self.db, role, self.approver_strategies)

    def _notify(self, event: NotificationEvent) -> None:
        self.dispatcher.dispatch(event)


def process_extracted_entities(
    db: Session,
    entities: Sequence[CandidateEntity | Mapping[str, Any]],
    user_id: int,
    project_id: int,
    source: SourceDescriptor | Mapping[str, Any] | None = None,
    *,
    dispatcher: NotificationDispatcher | None = None,
) -> BatchProcessingResult:
    """Route a batch of candidates with a default-configured engine."""

    engine = WorkflowEngine(db, dispatcher=dispatcher)
    return engine.process_extracted_entities(entities, user_id=user_id, project_id=project_id, source=source)
