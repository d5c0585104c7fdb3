"""SQLAlchemy metadata registry import for Alembic."""

from sidecar.models import (
    Evidence,
    KnowledgeGraphNode,
    ProjectWorkflowSettings,
    Proposal,
    RateLimitCounter,
    Role,
    RoleAssignment,
    RolePermission,
)
from sidecar.models.base import Base

__all__ = [
    "Base",
    "Role",
    "RolePermission",
    "RoleAssignment",
    "KnowledgeGraphNode",
    "Evidence",
    "Proposal",
    "ProjectWorkflowSettings",
    "RateLimitCounter",
]
