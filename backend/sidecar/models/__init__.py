"""ORM models package exports."""

from sidecar.models.evidence import Evidence
from sidecar.models.graph_node import KnowledgeGraphNode
from sidecar.models.project_settings import ProjectWorkflowSettings
from sidecar.models.proposal import Proposal
from sidecar.models.rate_limit_counter import RateLimitCounter
from sidecar.models.role import Role
from sidecar.models.role_assignment import RoleAssignment
from sidecar.models.role_permission import RolePermission

__all__ = [
    "Role",
    "RolePermission",
    "RoleAssignment",
    "KnowledgeGraphNode",
    "Evidence",
    "Proposal",
    "ProjectWorkflowSettings",
    "RateLimitCounter",
]
