"""Knowledge-graph node ORM model."""

from sqlalchemy import JSON, Boolean, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from sidecar.models.base import Base, CreatedAtMixin

NODE_ID_LENGTH = 36


class KnowledgeGraphNode(Base, CreatedAtMixin):
    """Committed project entity in the knowledge graph."""

    __tablename__ = "graph_nodes"

    id: Mapped[str] = mapped_column(String(NODE_ID_LENGTH), primary_key=True)
    project_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    type: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    source_table: Mapped[str | None] = mapped_column(String(50), nullable=True)
    source_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    attrs: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
    created_by_ai: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    ai_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
