"""Entity proposal ORM model for human review."""

from datetime import datetime

from sqlalchemy import JSON, CheckConstraint, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sidecar.models.base import Base, IdMixin, TimestampMixin
from sidecar.models.graph_node import NODE_ID_LENGTH

PROPOSAL_PENDING = "pending"
PROPOSAL_APPROVED = "approved"
PROPOSAL_REJECTED = "rejected"


class Proposal(Base, IdMixin, TimestampMixin):
    """AI-extracted entity awaiting approval by a role."""

    __tablename__ = "entity_proposals"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_entity_proposals_status",
        ),
    )

    project_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    proposed_by: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    proposed_data: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
    ai_analysis: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    source_type: Mapped[str] = mapped_column(String(50), default="unknown", nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    source_metadata: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
    status: Mapped[str] = mapped_column(String(32), default=PROPOSAL_PENDING, index=True, nullable=False)
    requires_approval_from: Mapped[int | None] = mapped_column(
        ForeignKey("custom_roles.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    reviewed_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_node_id: Mapped[str | None] = mapped_column(
        String(NODE_ID_LENGTH),
        ForeignKey("graph_nodes.id", ondelete="SET NULL"),
        nullable=True,
    )
