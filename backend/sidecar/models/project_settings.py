"""Per-project workflow configuration ORM model."""

from sqlalchemy import JSON, Boolean, Float, Integer
from sqlalchemy.orm import Mapped, mapped_column

from sidecar.models.base import Base, IdMixin, TimestampMixin


class ProjectWorkflowSettings(Base, IdMixin, TimestampMixin):
    """Detection and notification settings for one project."""

    __tablename__ = "project_workflow_settings"

    project_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    auto_create_threshold: Mapped[float | None] = mapped_column(Float, nullable=True)
    detection_types: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    notify_chat_platform: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notify_email: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
