"""Role and permission directory services."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
import logging

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sidecar.models.role import MAX_AUTHORITY_LEVEL, MIN_AUTHORITY_LEVEL, Role
from sidecar.models.role_assignment import RoleAssignment
from sidecar.models.role_permission import RolePermission
from sidecar.schemas.roles import (
    PermissionAction,
    RoleAssignmentCreate,
    RoleCreate,
    RoleDeleteResult,
    RoleHierarchyNode,
    RolePermissionUpdate,
    RoleRead,
    RoleUpdate,
)
from sidecar.workflow.approver import DEFAULT_APPROVER_STRATEGIES, ApproverStrategy, resolve_approver
from sidecar.workflow.decision import PermissionPolicy
from sidecar.workflow.types import normalize_entity_type

logger = logging.getLogger(__name__)


class RoleValidationError(ValueError):
    """Raised when a role mutation violates directory rules."""


class RoleHierarchyError(RoleValidationError):
    """Raised when a reporting line would form a cycle or cross projects."""


def get_role(db: Session, role_id: int) -> Role | None:
    """Return one role by ID."""

    return db.scalar(select(Role).where(Role.id == role_id))


def list_project_roles(db: Session, project_id: int) -> list[Role]:
    """List active roles for a project, highest authority first."""

    stmt = (
        select(Role)
        .where(Role.project_id == project_id, Role.is_active.is_(True))
        .order_by(Role.authority_level.desc(), Role.role_name.asc(), Role.id.asc())
    )
    return list(db.scalars(stmt).all())


def list_role_permissions(db: Session, role_id: int) -> list[RolePermission]:
    """List permission rows for a role."""

    stmt = (
        select(RolePermission)
        .where(RolePermission.role_id == role_id)
        .order_by(RolePermission.entity_type.asc())
    )
    return list(db.scalars(stmt).all())


def build_role_hierarchy(roles: Sequence[Role]) -> list[RoleHierarchyNode]:
    """Nest roles under their reporting parent; roles without a listed parent are roots."""

    nodes = {role.id: RoleHierarchyNode(**RoleRead.model_validate(role).model_dump()) for role in roles}
    roots: list[RoleHierarchyNode] = []
    for role in roles:
        node = nodes[role.id]
        parent = nodes.get(role.reports_to_role_id) if role.reports_to_role_id is not None else None
        if parent is None:
            roots.append(node)
        else:
            parent.children.append(node)
    return roots


def create_role(
    db: Session,
    project_id: int,
    payload: RoleCreate,
    *,
    is_system_role: bool = False,
) -> Role:
    """Create a role and its initial permission rows."""

    role_code = payload.role_code.strip()
    if not role_code:
        raise RoleValidationError("Role code is required")
    _check_authority_level(payload.authority_level)
    if payload.reports_to_role_id is not None:
        _check_reporting_parent(db, project_id, payload.reports_to_role_id, role_id=None)

    role = Role(
        project_id=project_id,
        role_name=payload.role_name.strip(),
        role_code=role_code,
        role_description=payload.role_description,
        role_category=payload.role_category,
        authority_level=payload.authority_level,
        reports_to_role_id=payload.reports_to_role_id,
        is_active=True,
        is_system_role=is_system_role,
    )
    db.add(role)
    try:
        db.flush()
        for permission in payload.permissions:
            db.add(_permission_row(role.id, permission))
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise RoleValidationError(
            f"Role code '{role_code}' already exists in project {project_id}"
        ) from exc
    db.commit()
    db.refresh(role)
    logger.info(
        "roles.created project_id=%s role_id=%s role_code=%s authority_level=%d",
        project_id,
        role.id,
        role.role_code,
        role.authority_level,
    )
    return role


def update_role(db: Session, role_id: int, payload: RoleUpdate) -> Role | None:
    """Update editable fields for one role."""

    role = get_role(db, role_id)
    if role is None:
        return None
    if payload.role_code is not None and role.is_system_role and payload.role_code.strip() != role.role_code:
        raise RoleValidationError("Cannot change role code for system roles")
    if payload.authority_level is not None:
        _check_authority_level(payload.authority_level)
    if payload.reports_to_role_id is not None:
        _check_reporting_parent(db, role.project_id, payload.reports_to_role_id, role_id=role.id)

    if payload.role_name is not None:
        role.role_name = payload.role_name.strip()
    if payload.role_code is not None:
        role.role_code = payload.role_code.strip()
    if payload.role_description is not None:
        role.role_description = payload.role_description.strip() or None
    if payload.role_category is not None:
        role.role_category = payload.role_category
    if payload.authority_level is not None:
        role.authority_level = payload.authority_level
    if payload.clear_reports_to:
        role.reports_to_role_id = None
    elif payload.reports_to_role_id is not None:
        role.reports_to_role_id = payload.reports_to_role_id

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise RoleValidationError(f"Role code '{payload.role_code}' already exists") from exc
    db.refresh(role)
    return role


def deactivate_role(db: Session, role_id: int) -> RoleDeleteResult | None:
    """Remove a role: soft delete when it has assignments, hard delete otherwise."""

    role = get_role(db, role_id)
    if role is None:
        return None
    if role.is_system_role:
        raise RoleValidationError("Cannot delete system roles")

    has_assignments = (
        db.scalar(select(RoleAssignment.id).where(RoleAssignment.role_id == role_id).limit(1)) is not None
    )
    if has_assignments:
        role.is_active = False
        db.commit()
        return RoleDeleteResult(id=role_id, deleted=False, deactivated=True)

    db.execute(update(Role).where(Role.reports_to_role_id == role_id).values(reports_to_role_id=None))
    db.execute(
        update(RolePermission)
        .where(RolePermission.approval_from_role_id == role_id)
        .values(approval_from_role_id=None)
    )
    db.execute(delete(RolePermission).where(RolePermission.role_id == role_id))
    db.delete(role)
    db.commit()
    return RoleDeleteResult(id=role_id, deleted=True, deactivated=False)


def set_permission(db: Session, role_id: int, payload: RolePermissionUpdate) -> RolePermission | None:
    """Create or replace the permission row for one role and entity type."""

    role = get_role(db, role_id)
    if role is None:
        return None
    if payload.approval_from_role_id is not None:
        approver = get_role(db, payload.approval_from_role_id)
        if approver is None or approver.project_id != role.project_id:
            raise RoleValidationError("Approval role must exist in the same project")

    entity_type = normalize_entity_type(payload.entity_type)
    row = db.scalar(
        select(RolePermission).where(
            RolePermission.role_id == role_id,
            RolePermission.entity_type == entity_type,
        )
    )
    if row is None:
        row = _permission_row(role_id, payload)
        db.add(row)
    else:
        for field_name, value in payload.model_dump(exclude={"entity_type"}).items():
            setattr(row, field_name, value)
    db.commit()
    db.refresh(row)
    return row


def assign_role(db: Session, project_id: int, payload: RoleAssignmentCreate) -> RoleAssignment:
    """Assign a role to a user; a new primary assignment demotes the others."""

    role = get_role(db, payload.role_id)
    if role is None or role.project_id != project_id:
        raise RoleValidationError(f"Role {payload.role_id} does not belong to project {project_id}")
    if not role.is_active:
        raise RoleValidationError(f"Role {payload.role_id} is inactive")

    valid_from = payload.valid_from or date.today()
    if payload.is_primary:
        db.execute(
            update(RoleAssignment)
            .where(RoleAssignment.user_id == payload.user_id, RoleAssignment.project_id == project_id)
            .values(is_primary=False)
        )

    assignment = db.scalar(
        select(RoleAssignment).where(
            RoleAssignment.user_id == payload.user_id,
            RoleAssignment.project_id == project_id,
            RoleAssignment.role_id == payload.role_id,
            RoleAssignment.valid_from == valid_from,
        )
    )
    if assignment is None:
        assignment = RoleAssignment(
            user_id=payload.user_id,
            project_id=project_id,
            role_id=payload.role_id,
            valid_from=valid_from,
        )
        db.add(assignment)
    assignment.assigned_by = payload.assigned_by
    assignment.is_primary = payload.is_primary
    assignment.valid_to = payload.valid_to
    db.commit()
    db.refresh(assignment)
    return assignment


def remove_role_assignment(db: Session, user_id: int, project_id: int, role_id: int) -> bool:
    """Delete every assignment of one role to one user in a project."""

    rows = list(
        db.scalars(
            select(RoleAssignment).where(
                RoleAssignment.user_id == user_id,
                RoleAssignment.project_id == project_id,
                RoleAssignment.role_id == role_id,
            )
        ).all()
    )
    if not rows:
        return False
    for row in rows:
        db.delete(row)
    db.commit()
    return True


def get_effective_role(
    db: Session,
    user_id: int,
    project_id: int,
    *,
    as_of: date | None = None,
) -> Role | None:
    """Resolve the single role that governs a user's decisions in a project.

    Only active roles with an assignment window covering ``as_of`` count. The
    highest authority level wins; ties prefer the primary assignment and then
    the earliest assignment. ``None`` means the user has no access.
    """

    day = as_of or date.today()
    stmt = (
        select(Role)
        .join(RoleAssignment, RoleAssignment.role_id == Role.id)
        .where(
            RoleAssignment.user_id == user_id,
            RoleAssignment.project_id == project_id,
            Role.is_active.is_(True),
            RoleAssignment.valid_from <= day,
            or_(RoleAssignment.valid_to.is_(None), RoleAssignment.valid_to >= day),
        )
        .order_by(
            Role.authority_level.desc(),
            RoleAssignment.is_primary.desc(),
            RoleAssignment.id.asc(),
        )
        .limit(1)
    )
    return db.scalar(stmt)


def get_permission(db: Session, role_id: int, entity_type: str) -> PermissionPolicy:
    """Return the permission policy for a role and entity type, failing closed."""

    normalized = normalize_entity_type(entity_type)
    row = db.scalar(
        select(RolePermission).where(
            RolePermission.role_id == role_id,
            RolePermission.entity_type == normalized,
        )
    )
    if row is None:
        return PermissionPolicy.fail_closed(normalized)
    return PermissionPolicy(
        entity_type=row.entity_type,
        can_create=row.can_create,
        can_read=row.can_read,
        can_update=row.can_update,
        can_delete=row.can_delete,
        auto_create_enabled=row.auto_create_enabled,
        auto_create_threshold=row.auto_create_threshold,
        requires_approval=row.requires_approval,
        approval_from_role_id=row.approval_from_role_id,
        can_capture_thoughts=row.can_capture_thoughts,
        can_record_meetings=row.can_record_meetings,
    )


def get_approver_role(
    db: Session,
    role: Role,
    strategies: Sequence[ApproverStrategy] = DEFAULT_APPROVER_STRATEGIES,
) -> Role | None:
    """Return the role that reviews proposals raised under ``role``."""

    return resolve_approver(db, role, strategies)


def has_permission(
    db: Session,
    user_id: int,
    project_id: int,
    entity_type: str,
    action: PermissionAction,
) -> bool:
    """Check one permission flag for the user's effective role."""

    role = get_effective_role(db, user_id, project_id)
    if role is None:
        return False
    permission = get_permission(db, role.id, entity_type)
    return bool(getattr(permission, f"can_{action}", False))


_DEFAULT_ROLES: tuple[tuple[str, str, str, int, str | None], ...] = (
    ("Admin", "admin", "leadership", 5, None),
    ("Project Manager", "manager", "leadership", 4, None),
    ("Tech Lead", "tech_lead", "leadership", 3, "manager"),
    ("Developer", "developer", "contributor", 1, "tech_lead"),
    ("QA/Tester", "qa", "contributor", 1, "tech_lead"),
    ("Business Analyst", "ba", "specialist", 2, "manager"),
    ("DevOps Engineer", "devops", "specialist", 2, "tech_lead"),
    ("Designer", "designer", "specialist", 2, "manager"),
    ("Viewer", "viewer", "viewer", 1, None),
)

# role_code -> entity_type -> (create, update, delete, auto_create, approval_from_role_code)
_DEFAULT_PERMISSIONS: dict[str, dict[str, tuple[bool, bool, bool, bool, str | None]]] = {
    "admin": {
        "decision": (True, True, True, True, None),
        "risk": (True, True, True, True, None),
        "task": (True, True, True, True, None),
    },
    "manager": {
        "decision": (True, True, True, True, None),
        "risk": (True, True, True, True, None),
        "task": (True, True, True, True, None),
    },
    "tech_lead": {
        "decision": (True, True, False, False, "manager"),
        "risk": (True, True, False, True, None),
        "task": (True, True, True, True, None),
    },
    "developer": {
        "decision": (True, False, False, False, "tech_lead"),
        "risk": (True, False, False, False, "tech_lead"),
        "task": (True, True, False, True, None),
    },
    "qa": {
        "decision": (True, False, False, False, "tech_lead"),
        "risk": (True, False, False, True, None),
        "task": (True, True, False, True, None),
    },
    "ba": {
        "decision": (True, False, False, False, "manager"),
        "risk": (True, False, False, False, "manager"),
        "task": (True, True, False, True, None),
    },
    "devops": {
        "decision": (True, False, False, False, "tech_lead"),
        "risk": (True, False, False, True, None),
        "task": (True, True, False, True, None),
    },
    "designer": {
        "decision": (True, False, False, False, "manager"),
        "risk": (True, False, False, False, "manager"),
        "task": (True, True, False, True, None),
    },
    "viewer": {
        "decision": (False, False, False, False, None),
        "risk": (False, False, False, False, None),
        "task": (False, False, False, False, None),
    },
}

_RECORDING_ROLE_CODES = frozenset({"admin", "manager", "tech_lead"})


def seed_default_roles(db: Session, project_id: int) -> list[Role]:
    """Create the default software-project role set and its permissions."""

    roles_by_code: dict[str, Role] = {}
    for role_name, role_code, category, authority_level, reports_to_code in _DEFAULT_ROLES:
        role = Role(
            project_id=project_id,
            role_name=role_name,
            role_code=role_code,
            role_category=category,
            authority_level=authority_level,
            reports_to_role_id=roles_by_code[reports_to_code].id if reports_to_code else None,
            is_active=True,
            is_system_role=True,
        )
        db.add(role)
        db.flush()
        roles_by_code[role_code] = role

    for role_code, permissions in _DEFAULT_PERMISSIONS.items():
        for entity_type, (can_create, can_update, can_delete, auto_create, approver_code) in permissions.items():
            db.add(
                RolePermission(
                    role_id=roles_by_code[role_code].id,
                    entity_type=entity_type,
                    can_create=can_create,
                    can_read=True,
                    can_update=can_update,
                    can_delete=can_delete,
                    auto_create_enabled=auto_create,
                    requires_approval=approver_code is not None,
                    approval_from_role_id=roles_by_code[approver_code].id if approver_code else None,
                    can_capture_thoughts=True,
                    can_record_meetings=role_code in _RECORDING_ROLE_CODES,
                )
            )
    db.commit()
    logger.info("roles.seeded_defaults project_id=%s roles=%d", project_id, len(roles_by_code))
    return list(roles_by_code.values())


def _permission_row(role_id: int, payload: RolePermissionUpdate) -> RolePermission:
    return RolePermission(
        role_id=role_id,
        entity_type=normalize_entity_type(payload.entity_type),
        **payload.model_dump(exclude={"entity_type"}),
    )


def _check_authority_level(authority_level: int) -> None:
    if not MIN_AUTHORITY_LEVEL <= authority_level <= MAX_AUTHORITY_LEVEL:
        raise RoleValidationError(
            f"Authority level must be between {MIN_AUTHORITY_LEVEL} and {MAX_AUTHORITY_LEVEL}"
        )


def _check_reporting_parent(db: Session, project_id: int, parent_id: int, *, role_id: int | None) -> None:
    parent = get_role(db, parent_id)
    if parent is None:
        raise RoleValidationError(f"Reporting role {parent_id} not found")
    if parent.project_id != project_id:
        raise RoleHierarchyError("Reporting role must belong to the same project")
    if role_id is None:
        return

    seen: set[int] = set()
    current: Role | None = parent
    while current is not None:
        if current.id == role_id:
            raise RoleHierarchyError(f"Role {role_id} cannot report to {parent_id}: reporting cycle")
        if current.id in seen or current.reports_to_role_id is None:
            return
        seen.add(current.id)
        current = get_role(db, current.reports_to_role_id)
