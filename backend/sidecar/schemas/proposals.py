"""Entity proposal schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ProposalRead(BaseModel):
    """Serialized proposal."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    proposed_by: int
    entity_type: str
    proposed_data: dict[str, object]
    ai_analysis: dict[str, object]
    confidence: float | None
    source_type: str
    source_id: str | None
    source_metadata: dict[str, object]
    status: str
    requires_approval_from: int | None
    reviewed_by: int | None
    reviewed_at: datetime | None
    review_notes: str | None
    created_node_id: str | None
    created_at: datetime
    updated_at: datetime


class ProposalReviewRequest(BaseModel):
    """Reviewer decision payload."""

    reviewer_id: int = Field(ge=1)
    notes: str | None = None


class ProposalApprovalResult(BaseModel):
    """Outcome of approving a proposal."""

    proposal_id: int
    entity_id: str
    evidence_id: int
    status: str = "approved"


class ProposalRejectionResult(BaseModel):
    """Outcome of rejecting a proposal."""

    proposal_id: int
    status: str = "rejected"


class ProposalStats(BaseModel):
    """Proposal counts for one project."""

    pending: int = 0
    approved: int = 0
    rejected: int = 0
    total: int = 0
    avg_confidence: float | None = None
