"""Project-scoped custom role ORM model."""

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sidecar.models.base import Base, IdMixin, TimestampMixin

MIN_AUTHORITY_LEVEL = 1
MAX_AUTHORITY_LEVEL = 5


class Role(Base, IdMixin, TimestampMixin):
    """Custom role with an authority level and an optional reporting parent."""

    __tablename__ = "custom_roles"
    __table_args__ = (
        UniqueConstraint("project_id", "role_code", name="uq_custom_roles_project_code"),
        CheckConstraint(
            f"authority_level BETWEEN {MIN_AUTHORITY_LEVEL} AND {MAX_AUTHORITY_LEVEL}",
            name="ck_custom_roles_authority_level",
        ),
    )

    project_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    role_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role_code: Mapped[str] = mapped_column(String(50), nullable=False)
    role_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    role_category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    authority_level: Mapped[int] = mapped_column(Integer, default=MIN_AUTHORITY_LEVEL, nullable=False)
    reports_to_role_id: Mapped[int | None] = mapped_column(
        ForeignKey("custom_roles.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_system_role: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
