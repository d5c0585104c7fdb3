"""Entity workflow request/response schemas."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

OutcomeAction = Literal["auto_created", "proposal_created", "skipped", "error"]


class CandidateEntityIn(BaseModel):
    """One candidate entity emitted by the inference step."""

    entity_type: str = Field(min_length=1, max_length=50)
    title: str = Field(min_length=1)
    description: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    impact: str | None = None
    priority: str | None = None
    tags: list[str] = Field(default_factory=list)
    citations: list[str] = Field(default_factory=list)
    mentioned_users: list[str] = Field(default_factory=list)
    related_entity_ids: list[str] = Field(default_factory=list)
    deadline: str | None = None
    owner: str | None = None
    reasoning: str | None = None


class SourceIn(BaseModel):
    """Origin of the processed text."""

    type: str = "unknown"
    id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ProcessEntitiesRequest(BaseModel):
    """Batch of candidates to route for one acting user."""

    user_id: int = Field(ge=1)
    entities: list[CandidateEntityIn] = Field(default_factory=list)
    source: SourceIn = Field(default_factory=SourceIn)


class EntityOutcome(BaseModel):
    """Routing outcome for one candidate."""

    entity: dict[str, str]
    action: OutcomeAction
    rule: int | None = None
    reason: str | None = None
    entity_id: str | None = None
    evidence_id: int | None = None
    proposal_id: int | None = None
    requires_approval_from: str | None = None
    requires_approval_from_role_id: int | None = None
    error: str | None = None


class BatchSummary(BaseModel):
    """Aggregated counts for one batch; errors are also counted as skipped."""

    auto_created: int = 0
    proposals: int = 0
    skipped: int = 0
    errors: int = 0


class BatchProcessingResult(BaseModel):
    """Batch routing result."""

    processed: int
    results: list[EntityOutcome] = Field(default_factory=list)
    summary: BatchSummary = Field(default_factory=BatchSummary)


class ProjectSettingsUpdate(BaseModel):
    """Mutable per-project workflow settings."""

    enabled: bool = True
    auto_create_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    detection_types: list[str] | None = None
    notify_chat_platform: bool = True
    notify_email: bool = False


class ProjectSettingsRead(ProjectSettingsUpdate):
    """Serialized per-project workflow settings."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
