"""Evidence ORM model linking committed entities to their sources."""

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sidecar.models.base import Base, CreatedAtMixin, IdMixin
from sidecar.models.graph_node import NODE_ID_LENGTH

ENTITY_REF_RECORD = "record"
ENTITY_REF_GRAPH_NODE = "graph_node"


class Evidence(Base, IdMixin, CreatedAtMixin):
    """Provenance row; the entity reference is either a record id or a graph node id."""

    __tablename__ = "evidence"
    __table_args__ = (
        CheckConstraint(
            "(entity_ref_kind = 'record' AND entity_id IS NOT NULL AND graph_node_id IS NULL)"
            " OR (entity_ref_kind = 'graph_node' AND graph_node_id IS NOT NULL AND entity_id IS NULL)",
            name="ck_evidence_entity_ref",
        ),
    )

    entity_ref_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    entity_id: Mapped[int | None] = mapped_column(Integer, index=True, nullable=True)
    graph_node_id: Mapped[str | None] = mapped_column(
        String(NODE_ID_LENGTH),
        ForeignKey("graph_nodes.id", ondelete="CASCADE"),
        index=True,
        nullable=True,
    )
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    evidence_type: Mapped[str] = mapped_column(String(50), default="ai_extraction", nullable=False)
    source_type: Mapped[str] = mapped_column(String(50), default="unknown", nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    quote_text: Mapped[str] = mapped_column(Text, default="", nullable=False)
    context: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
    confidence: Mapped[str] = mapped_column(String(16), default="High", nullable=False)
    extraction_method: Mapped[str] = mapped_column(String(50), default="llm_analysis", nullable=False)
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
