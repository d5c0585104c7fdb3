"""Proposal store: pending entities awaiting human review."""

from __future__ import annotations

from datetime import datetime, timezone
import logging

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sidecar.models.proposal import PROPOSAL_APPROVED, PROPOSAL_PENDING, PROPOSAL_REJECTED, Proposal
from sidecar.schemas.proposals import ProposalApprovalResult, ProposalRejectionResult, ProposalStats
from sidecar.services.evidence import GraphNodeRef, create_evidence
from sidecar.services.graph import DEFAULT_NODE_STATUS, create_graph_node
from sidecar.services.notifications import (
    PROPOSAL_APPROVED as PROPOSAL_APPROVED_EVENT,
    PROPOSAL_REJECTED as PROPOSAL_REJECTED_EVENT,
    NotificationDispatcher,
    NotificationEvent,
    get_default_dispatcher,
)
from sidecar.workflow.types import CandidateEntity, SourceDescriptor, normalize_entity_type

logger = logging.getLogger(__name__)


class ProposalNotFoundError(LookupError):
    """Raised when a proposal id does not exist."""


class ProposalStateConflictError(RuntimeError):
    """Raised when a proposal is no longer pending."""


def create_proposal(
    db: Session,
    *,
    candidate: CandidateEntity,
    project_id: int,
    proposed_by: int,
    approver_role_id: int | None,
    source: SourceDescriptor,
) -> Proposal:
    """Persist a pending proposal for one candidate."""

    proposal = Proposal(
        project_id=project_id,
        proposed_by=proposed_by,
        entity_type=normalize_entity_type(candidate.entity_type),
        proposed_data=_proposed_data(candidate),
        ai_analysis={
            "confidence": candidate.confidence,
            "reasoning": candidate.reasoning,
            "citations": list(candidate.citations),
            "mentioned_users": list(candidate.mentioned_users),
            "related_entity_ids": list(candidate.related_entity_ids),
        },
        confidence=candidate.confidence,
        source_type=source.type,
        source_id=source.id,
        source_metadata=dict(source.metadata),
        status=PROPOSAL_PENDING,
        requires_approval_from=approver_role_id,
    )
    db.add(proposal)
    db.commit()
    db.refresh(proposal)
    return proposal


def get_proposal(db: Session, proposal_id: int) -> Proposal | None:
    return db.scalar(select(Proposal).where(Proposal.id == proposal_id))


def list_pending_proposals(db: Session, project_id: int, role_id: int | None = None) -> list[Proposal]:
    """List pending proposals, newest first.

    With ``role_id``, only proposals addressed to that role or to no role are returned.
    """

    stmt = select(Proposal).where(
        Proposal.project_id == project_id,
        Proposal.status == PROPOSAL_PENDING,
    )
    if role_id is not None:
        stmt = stmt.where(
            or_(Proposal.requires_approval_from == role_id, Proposal.requires_approval_from.is_(None))
        )
    stmt = stmt.order_by(Proposal.created_at.desc(), Proposal.id.desc())
    return list(db.scalars(stmt).all())


def get_proposal_stats(db: Session, project_id: int) -> ProposalStats:
    """Count proposals by status for a project."""

    row = db.execute(
        select(
            func.sum(case((Proposal.status == PROPOSAL_PENDING, 1), else_=0)),
            func.sum(case((Proposal.status == PROPOSAL_APPROVED, 1), else_=0)),
            func.sum(case((Proposal.status == PROPOSAL_REJECTED, 1), else_=0)),
            func.count(Proposal.id),
            func.avg(Proposal.confidence),
        ).where(Proposal.project_id == project_id)
    ).one()
    pending, approved, rejected, total, avg_confidence = row
    return ProposalStats(
        pending=int(pending or 0),
        approved=int(approved or 0),
        rejected=int(rejected or 0),
        total=int(total or 0),
        avg_confidence=float(avg_confidence) if avg_confidence is not None else None,
    )


def approve_proposal(
    db: Session,
    proposal_id: int,
    reviewer_id: int,
    notes: str | None = None,
    *,
    dispatcher: NotificationDispatcher | None = None,
) -> ProposalApprovalResult:
    """Approve a pending proposal and materialize it as a graph node with evidence.

    The status guard and the node/evidence inserts share one transaction, so a
    proposal is materialized at most once even under concurrent reviewers.
    """

    reviewed_at = datetime.now(timezone.utc)
    try:
        _claim_pending(db, proposal_id, PROPOSAL_APPROVED, reviewer_id, reviewed_at, notes)
        proposal = db.scalar(
            select(Proposal).where(Proposal.id == proposal_id).execution_options(populate_existing=True)
        )
        attrs = dict(proposal.proposed_data or {})
        attrs.setdefault("status", DEFAULT_NODE_STATUS)
        attrs.update(
            {
                "ai_extracted": True,
                "ai_confidence": proposal.confidence,
                "ai_reasoning": (proposal.ai_analysis or {}).get("reasoning"),
                "approved_by": reviewer_id,
                "approved_at": reviewed_at.isoformat(),
            }
        )
        node = create_graph_node(
            db,
            project_id=proposal.project_id,
            entity_type=proposal.entity_type,
            attrs=attrs,
            created_by=reviewer_id,
            ai_confidence=proposal.confidence,
        )
        evidence = create_evidence(
            db,
            entity_ref=GraphNodeRef(node.id),
            entity_type=proposal.entity_type,
            source=SourceDescriptor(
                type=proposal.source_type,
                id=proposal.source_id,
                metadata=dict(proposal.source_metadata or {}),
            ),
            citations=[str(item) for item in (proposal.ai_analysis or {}).get("citations") or []],
            created_by=reviewer_id,
            confidence=proposal.confidence,
            approved_by=reviewer_id,
            approved_at=reviewed_at,
        )
        proposal.created_node_id = node.id
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("proposals.approve_failed proposal_id=%s reviewer_id=%s", proposal_id, reviewer_id)
        raise

    logger.info(
        "proposals.approved proposal_id=%s reviewer_id=%s node_id=%s evidence_id=%s",
        proposal_id,
        reviewer_id,
        node.id,
        evidence.id,
    )
    (dispatcher or get_default_dispatcher()).dispatch(
        NotificationEvent(
            event=PROPOSAL_APPROVED_EVENT,
            project_id=proposal.project_id,
            entity_type=proposal.entity_type,
            title=str(attrs.get("title") or ""),
            actor_id=reviewer_id,
            node_id=node.id,
            proposal_id=proposal_id,
        )
    )
    return ProposalApprovalResult(proposal_id=proposal_id, entity_id=node.id, evidence_id=evidence.id)


def reject_proposal(
    db: Session,
    proposal_id: int,
    reviewer_id: int,
    notes: str | None = None,
    *,
    dispatcher: NotificationDispatcher | None = None,
) -> ProposalRejectionResult:
    """Reject a pending proposal; nothing is written to the graph."""

    _claim_pending(db, proposal_id, PROPOSAL_REJECTED, reviewer_id, datetime.now(timezone.utc), notes)
    db.commit()
    proposal = db.scalar(
        select(Proposal).where(Proposal.id == proposal_id).execution_options(populate_existing=True)
    )
    logger.info("proposals.rejected proposal_id=%s reviewer_id=%s", proposal_id, reviewer_id)
    (dispatcher or get_default_dispatcher()).dispatch(
        NotificationEvent(
            event=PROPOSAL_REJECTED_EVENT,
            project_id=proposal.project_id,
            entity_type=proposal.entity_type,
            title=str((proposal.proposed_data or {}).get("title") or ""),
            actor_id=reviewer_id,
            proposal_id=proposal_id,
            reason=notes,
        )
    )
    return ProposalRejectionResult(proposal_id=proposal_id)


def _claim_pending(
    db: Session,
    proposal_id: int,
    status: str,
    reviewer_id: int,
    reviewed_at: datetime,
    notes: str | None,
) -> None:
    result = db.execute(
        update(Proposal)
        .where(Proposal.id == proposal_id, Proposal.status == PROPOSAL_PENDING)
        .values(status=status, reviewed_by=reviewer_id, reviewed_at=reviewed_at, review_notes=notes)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return

    db.rollback()
    current = db.scalar(select(Proposal.status).where(Proposal.id == proposal_id))
    if current is None:
        raise ProposalNotFoundError(f"Proposal {proposal_id} not found")
    raise ProposalStateConflictError(f"Proposal {proposal_id} is already {current}")


def _proposed_data(candidate: CandidateEntity) -> dict[str, object]:
    data: dict[str, object] = {
        "title": candidate.title,
        "description": candidate.description,
        "priority": candidate.priority or candidate.impact_level,
        "impact": candidate.impact_level,
        "tags": list(candidate.tags),
    }
    if candidate.deadline:
        data["deadline"] = candidate.deadline
    if candidate.owner:
        data["owner"] = candidate.owner
    return data
