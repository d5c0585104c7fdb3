"""Knowledge-graph node store."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from sidecar.models.graph_node import KnowledgeGraphNode
from sidecar.workflow.types import CandidateEntity, normalize_entity_type

DEFAULT_NODE_STATUS = "open"


def build_node_attrs(candidate: CandidateEntity) -> dict[str, object]:
    """Map candidate fields onto graph node attributes."""

    attrs: dict[str, object] = {
        "title": candidate.title,
        "description": candidate.description,
        "status": DEFAULT_NODE_STATUS,
        "priority": candidate.priority or candidate.impact_level,
        "impact": candidate.impact_level,
        "tags": list(candidate.tags),
        "ai_extracted": True,
        "ai_confidence": candidate.confidence,
        "ai_reasoning": candidate.reasoning,
    }
    if candidate.deadline:
        attrs["deadline"] = candidate.deadline
    if candidate.owner:
        attrs["owner"] = candidate.owner
    if candidate.mentioned_users:
        attrs["mentioned_users"] = list(candidate.mentioned_users)
    if candidate.related_entity_ids:
        attrs["related_entity_ids"] = list(candidate.related_entity_ids)
    return attrs


def create_graph_node(
    db: Session,
    *,
    project_id: int,
    entity_type: str,
    attrs: dict[str, object],
    created_by: int | None,
    ai_confidence: float | None = None,
    created_by_ai: bool = True,
) -> KnowledgeGraphNode:
    """Stage a new node in the current transaction; the caller commits."""

    node = KnowledgeGraphNode(
        id=str(uuid4()),
        project_id=project_id,
        type=normalize_entity_type(entity_type),
        attrs=dict(attrs),
        created_by_ai=created_by_ai,
        ai_confidence=ai_confidence,
        created_by=created_by,
    )
    db.add(node)
    db.flush()
    return node


def get_graph_node(db: Session, node_id: str) -> KnowledgeGraphNode | None:
    return db.scalar(select(KnowledgeGraphNode).where(KnowledgeGraphNode.id == node_id))


def list_graph_nodes(
    db: Session,
    project_id: int,
    *,
    entity_type: str | None = None,
    limit: int = 100,
) -> list[KnowledgeGraphNode]:
    """List project nodes, newest first, optionally filtered by type."""

    stmt = select(KnowledgeGraphNode).where(KnowledgeGraphNode.project_id == project_id)
    if entity_type:
        stmt = stmt.where(KnowledgeGraphNode.type == normalize_entity_type(entity_type))
    stmt = stmt.order_by(KnowledgeGraphNode.created_at.desc(), KnowledgeGraphNode.id.asc()).limit(limit)
    return list(db.scalars(stmt).all())
