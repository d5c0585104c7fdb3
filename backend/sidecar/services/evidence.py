"""Evidence linker recording why an entity exists and where it came from."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from sidecar.models.evidence import ENTITY_REF_GRAPH_NODE, ENTITY_REF_RECORD, Evidence
from sidecar.workflow.types import SourceDescriptor, normalize_entity_type

AI_EXTRACTION_EVIDENCE = "ai_extraction"
LLM_EXTRACTION_METHOD = "llm_analysis"
QUOTE_SEPARATOR = " | "
HIGH_CONFIDENCE_FLOOR = 0.9
MEDIUM_CONFIDENCE_FLOOR = 0.7


@dataclass(frozen=True, slots=True)
class RecordRef:
    """Reference to a row in a typed entity table."""

    entity_id: int


@dataclass(frozen=True, slots=True)
class GraphNodeRef:
    """Reference to a knowledge-graph node."""

    node_id: str


EntityRef = RecordRef | GraphNodeRef


def confidence_label(confidence: float | None) -> str:
    """Bucket a numeric confidence into High, Medium or Low."""

    if confidence is None or confidence >= HIGH_CONFIDENCE_FLOOR:
        return "High"
    if confidence >= MEDIUM_CONFIDENCE_FLOOR:
        return "Medium"
    return "Low"


def create_evidence(
    db: Session,
    *,
    entity_ref: EntityRef,
    entity_type: str,
    source: SourceDescriptor,
    citations: list[str],
    created_by: int | None,
    confidence: float | None = None,
    approved_by: int | None = None,
    approved_at: datetime | None = None,
) -> Evidence:
    """Stage one evidence row for a committed entity; the caller commits."""

    if isinstance(entity_ref, GraphNodeRef):
        kind, entity_id, node_id = ENTITY_REF_GRAPH_NODE, None, entity_ref.node_id
    elif isinstance(entity_ref, RecordRef):
        kind, entity_id, node_id = ENTITY_REF_RECORD, entity_ref.entity_id, None
    else:
        raise TypeError(f"Unsupported entity reference: {entity_ref!r}")

    context: dict[str, object] = {
        "source_type": source.type,
        "source_metadata": dict(source.metadata),
        "citations": list(citations),
        "extracted_at": datetime.now(timezone.utc).isoformat(),
    }
    if approved_by is not None:
        context["approved_by"] = approved_by
    if approved_at is not None:
        context["approved_at"] = approved_at.isoformat()

    evidence = Evidence(
        entity_ref_kind=kind,
        entity_id=entity_id,
        graph_node_id=node_id,
        entity_type=normalize_entity_type(entity_type),
        evidence_type=AI_EXTRACTION_EVIDENCE,
        source_type=source.type,
        source_id=source.id,
        quote_text=QUOTE_SEPARATOR.join(citations),
        context=context,
        confidence=confidence_label(confidence),
        extraction_method=LLM_EXTRACTION_METHOD,
        created_by=created_by,
    )
    db.add(evidence)
    db.flush()
    return evidence


def list_evidence_for_node(db: Session, node_id: str) -> list[Evidence]:
    stmt = (
        select(Evidence)
        .where(Evidence.entity_ref_kind == ENTITY_REF_GRAPH_NODE, Evidence.graph_node_id == node_id)
        .order_by(Evidence.id.asc())
    )
    return list(db.scalars(stmt).all())


def list_evidence_for_record(db: Session, entity_type: str, entity_id: int) -> list[Evidence]:
    stmt = (
        select(Evidence)
        .where(
            Evidence.entity_ref_kind == ENTITY_REF_RECORD,
            Evidence.entity_type == normalize_entity_type(entity_type),
            Evidence.entity_id == entity_id,
        )
        .order_by(Evidence.id.asc())
    )
    return list(db.scalars(stmt).all())
