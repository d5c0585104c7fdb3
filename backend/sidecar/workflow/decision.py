"""Ordered routing rules deciding auto-create versus human review.

The procedure is a pure function of authority, impact, confidence, the
permission policy and the threshold. Rules are evaluated in a fixed order and
the first match wins:

1. critical impact below authority 5 is always proposed
2. authority below 3 is always proposed
3. confidence at or above the threshold auto-creates
4. confidence of at least 0.7 auto-creates when the permission enables it
5. confidence below 0.7 is proposed
6. anything left is proposed
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from sidecar.models.role_permission import DEFAULT_PERMISSION_THRESHOLD

CRITICAL_IMPACT = "critical"
TOP_AUTHORITY_LEVEL = 5
MIN_AUTO_CREATE_AUTHORITY = 3
MEDIUM_CONFIDENCE_FLOOR = 0.7


class Action(str, Enum):
    """Route chosen for one candidate.

    The ordered rules only ever auto-create or propose. ``DISCARD`` is the route
    for a rule that drops a candidate outright; the engine reports it as skipped.
    """

    AUTO_CREATE = "auto_create"
    PROPOSE = "create_proposal"
    DISCARD = "skip"


@dataclass(frozen=True, slots=True)
class PermissionPolicy:
    """Read-only view of a role permission used by the decision rules."""

    entity_type: str
    can_create: bool = False
    can_read: bool = True
    can_update: bool = False
    can_delete: bool = False
    auto_create_enabled: bool = False
    auto_create_threshold: float = DEFAULT_PERMISSION_THRESHOLD
    requires_approval: bool = True
    approval_from_role_id: int | None = None
    can_capture_thoughts: bool = True
    can_record_meetings: bool = False
    is_default: bool = False

    @property
    def effective_requires_approval(self) -> bool:
        return self.requires_approval or not self.auto_create_enabled

    @classmethod
    def fail_closed(cls, entity_type: str) -> "PermissionPolicy":
        """Policy used when no permission row exists: read-only, approval required."""

        return cls(entity_type=entity_type, is_default=True)


@dataclass(frozen=True, slots=True)
class Decision:
    """Outcome of the routing rules."""

    action: Action
    rule: int
    reason: str
    approver_role_id: int | None = None


def decide(
    *,
    authority: int,
    confidence: float,
    impact: str,
    permission: PermissionPolicy,
    threshold: float,
) -> Decision:
    """Apply the ordered routing rules to one candidate."""

    impact = (impact or "").strip().lower()
    approver_role_id = permission.approval_from_role_id

    if impact == CRITICAL_IMPACT and authority < TOP_AUTHORITY_LEVEL:
        return Decision(
            action=Action.PROPOSE,
            rule=1,
            reason=f"Critical impact requires review by authority level {TOP_AUTHORITY_LEVEL}",
            approver_role_id=approver_role_id,
        )

    if authority < MIN_AUTO_CREATE_AUTHORITY:
        return Decision(
            action=Action.PROPOSE,
            rule=2,
            reason=f"Insufficient authority ({authority}), requires level {MIN_AUTO_CREATE_AUTHORITY}+",
            approver_role_id=approver_role_id,
        )

    if confidence >= threshold and authority >= MIN_AUTO_CREATE_AUTHORITY:
        return Decision(
            action=Action.AUTO_CREATE,
            rule=3,
            reason=f"High confidence ({confidence}) and sufficient authority ({authority})",
        )

    if (
        confidence >= MEDIUM_CONFIDENCE_FLOOR
        and permission.auto_create_enabled
        and impact != CRITICAL_IMPACT
    ):
        return Decision(
            action=Action.AUTO_CREATE,
            rule=4,
            reason="Permission-based auto-create enabled for medium confidence",
        )

    if confidence < MEDIUM_CONFIDENCE_FLOOR:
        return Decision(
            action=Action.PROPOSE,
            rule=5,
            reason=f"Low confidence ({confidence})",
            approver_role_id=approver_role_id,
        )

    return Decision(
        action=Action.PROPOSE,
        rule=6,
        reason="Default to proposal for safety",
        approver_role_id=approver_role_id,
    )
