"""Approver role resolution strategies.

A strategy maps a role to the role that should review its proposals, or
``None`` when it has no answer. Strategies are tried in order until one
returns a role.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from sidecar.models.role import Role

ApproverStrategy = Callable[[Session, Role], Role | None]


def resolve_reports_to(db: Session, role: Role) -> Role | None:
    """Return the active role this role reports to (one step up the tree)."""

    if role.reports_to_role_id is None:
        return None
    return db.scalar(
        select(Role).where(Role.id == role.reports_to_role_id, Role.is_active.is_(True))
    )


def resolve_nearest_superior(db: Session, role: Role) -> Role | None:
    """Return the lowest-authority active project role ranked above this role."""

    return db.scalar(
        select(Role)
        .where(
            Role.project_id == role.project_id,
            Role.authority_level > role.authority_level,
            Role.is_active.is_(True),
        )
        .order_by(Role.authority_level.asc(), Role.id.asc())
        .limit(1)
    )


DEFAULT_APPROVER_STRATEGIES: tuple[ApproverStrategy, ...] = (
    resolve_reports_to,
    resolve_nearest_superior,
)


def resolve_approver(
    db: Session,
    role: Role,
    strategies: Sequence[ApproverStrategy] = DEFAULT_APPROVER_STRATEGIES,
) -> Role | None:
    """Run the strategy chain and return the first resolved approver."""

    for strategy in strategies:
        approver = strategy(db, role)
        if approver is not None:
            return approver
    return None
