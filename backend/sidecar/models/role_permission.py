"""Per-role, per-entity-type permission ORM model."""

from sqlalchemy import Boolean, CheckConstraint, Float, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sidecar.models.base import Base, CreatedAtMixin, IdMixin

DEFAULT_PERMISSION_THRESHOLD = 0.9


class RolePermission(Base, IdMixin, CreatedAtMixin):
    """CRUD flags and auto-creation rules for one role and entity type."""

    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "entity_type", name="uq_role_permissions_role_entity"),
        CheckConstraint(
            "auto_create_threshold BETWEEN 0 AND 1",
            name="ck_role_permissions_threshold",
        ),
    )

    role_id: Mapped[int] = mapped_column(
        ForeignKey("custom_roles.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    entity_type: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    can_create: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_read: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    can_update: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_delete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    auto_create_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    auto_create_threshold: Mapped[float] = mapped_column(
        Float,
        default=DEFAULT_PERMISSION_THRESHOLD,
        nullable=False,
    )
    requires_approval: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    approval_from_role_id: Mapped[int | None] = mapped_column(
        ForeignKey("custom_roles.id", ondelete="SET NULL"),
        nullable=True,
    )
    notify_on_create: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_capture_thoughts: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    can_record_meetings: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
