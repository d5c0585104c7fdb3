"""Knowledge-graph node and evidence schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class EvidenceRead(BaseModel):
    """Serialized evidence row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    entity_ref_kind: str
    entity_id: int | None
    graph_node_id: str | None
    entity_type: str
    evidence_type: str
    source_type: str
    source_id: str | None
    quote_text: str
    context: dict[str, object]
    confidence: str
    extraction_method: str
    created_by: int | None
    created_at: datetime


class GraphNodeRead(BaseModel):
    """Serialized knowledge-graph node."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: int
    type: str
    attrs: dict[str, object]
    created_by_ai: bool
    ai_confidence: float | None
    created_by: int | None
    created_at: datetime


class GraphNodeDetail(GraphNodeRead):
    """Node with its supporting evidence."""

    evidence: list[EvidenceRead] = Field(default_factory=list)
