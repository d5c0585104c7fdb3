"""Routing rules and inference candidate types for the entity workflow."""

from sidecar.workflow.approver import (
    DEFAULT_APPROVER_STRATEGIES,
    resolve_approver,
    resolve_nearest_superior,
    resolve_reports_to,
)
from sidecar.workflow.decision import Action, Decision, PermissionPolicy, decide
from sidecar.workflow.types import (
    CandidateEntity,
    SourceDescriptor,
    candidate_from_payload,
    normalize_entity_type,
    source_from_payload,
)

__all__ = [
    "Action",
    "CandidateEntity",
    "DEFAULT_APPROVER_STRATEGIES",
    "Decision",
    "PermissionPolicy",
    "SourceDescriptor",
    "candidate_from_payload",
    "decide",
    "normalize_entity_type",
    "resolve_approver",
    "resolve_nearest_superior",
    "resolve_reports_to",
    "source_from_payload",
]
