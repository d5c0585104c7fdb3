"""Role, permission and assignment schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

RoleCategory = Literal["leadership", "contributor", "specialist", "viewer"]
PermissionAction = Literal["create", "read", "update", "delete", "capture_thoughts", "record_meetings"]


class RolePermissionUpdate(BaseModel):
    """Full permission record for one entity type."""

    entity_type: str = Field(min_length=1, max_length=50)
    can_create: bool = False
    can_read: bool = True
    can_update: bool = False
    can_delete: bool = False
    auto_create_enabled: bool = False
    auto_create_threshold: float = Field(default=0.9, ge=0.0, le=1.0)
    requires_approval: bool = False
    approval_from_role_id: int | None = Field(default=None, ge=1)
    notify_on_create: bool = False
    can_capture_thoughts: bool = True
    can_record_meetings: bool = False


class RoleCreate(BaseModel):
    """Fields accepted when creating a custom role."""

    role_name: str = Field(min_length=1, max_length=100)
    role_code: str = Field(min_length=1, max_length=50)
    role_description: str | None = None
    role_category: RoleCategory | None = None
    authority_level: int = Field(default=1, ge=1, le=5)
    reports_to_role_id: int | None = Field(default=None, ge=1)
    permissions: list[RolePermissionUpdate] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    """Allowed mutable fields for a role."""

    role_name: str | None = Field(default=None, min_length=1, max_length=100)
    role_code: str | None = Field(default=None, min_length=1, max_length=50)
    role_description: str | None = None
    role_category: RoleCategory | None = None
    authority_level: int | None = Field(default=None, ge=1, le=5)
    reports_to_role_id: int | None = Field(default=None, ge=1)
    clear_reports_to: bool = False

    @model_validator(mode="after")
    def validate_non_empty_update(self) -> "RoleUpdate":
        if not self.clear_reports_to and all(
            value is None
            for value in (
                self.role_name,
                self.role_code,
                self.role_description,
                self.role_category,
                self.authority_level,
                self.reports_to_role_id,
            )
        ):
            raise ValueError("At least one field must be provided.")
        return self


class RoleRead(BaseModel):
    """Serialized role."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    role_name: str
    role_code: str
    role_description: str | None
    role_category: str | None
    authority_level: int
    reports_to_role_id: int | None
    is_active: bool
    is_system_role: bool


class RoleHierarchyNode(RoleRead):
    """Role with its direct reports nested."""

    children: list[RoleHierarchyNode] = Field(default_factory=list)


class RolePermissionRead(BaseModel):
    """Serialized permission row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    role_id: int
    entity_type: str
    can_create: bool
    can_read: bool
    can_update: bool
    can_delete: bool
    auto_create_enabled: bool
    auto_create_threshold: float
    requires_approval: bool
    approval_from_role_id: int | None
    notify_on_create: bool
    can_capture_thoughts: bool
    can_record_meetings: bool


class RoleAssignmentCreate(BaseModel):
    """Assign a role to a user within a project."""

    user_id: int = Field(ge=1)
    role_id: int = Field(ge=1)
    assigned_by: int | None = Field(default=None, ge=1)
    is_primary: bool = False
    valid_from: date | None = None
    valid_to: date | None = None

    @model_validator(mode="after")
    def validate_window(self) -> "RoleAssignmentCreate":
        if self.valid_from and self.valid_to and self.valid_to < self.valid_from:
            raise ValueError("valid_to must not precede valid_from.")
        return self


class RoleAssignmentRead(BaseModel):
    """Serialized role assignment."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    project_id: int
    role_id: int
    assigned_by: int | None
    assigned_at: datetime
    valid_from: date
    valid_to: date | None
    is_primary: bool


class RoleDeleteResult(BaseModel):
    """Outcome of removing a role."""

    id: int
    deleted: bool
    deactivated: bool
