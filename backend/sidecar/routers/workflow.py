"""Entity workflow routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.orm import Session

from sidecar.config import get_settings
from sidecar.db.dependencies import get_db
from sidecar.schemas.common import ApiResponse
from sidecar.schemas.workflow import (
    BatchProcessingResult,
    ProcessEntitiesRequest,
    ProjectSettingsRead,
    ProjectSettingsUpdate,
)
from sidecar.services.notifications import NotificationDispatcher, get_default_dispatcher
from sidecar.services.project_settings import get_project_settings, upsert_project_settings
from sidecar.services.rate_limit import ENTITY_PROCESSING_FEATURE, RateLimitExceededError, enforce_rate_limit
from sidecar.services.workflow import WorkflowEngine
from sidecar.workflow.types import SourceDescriptor, candidate_from_payload


router = APIRouter(prefix="/projects/{project_id}")


@router.post("/entities/process", response_model=ApiResponse[BatchProcessingResult])
def process_entities(
    payload: ProcessEntitiesRequest,
    project_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_default_dispatcher),
) -> ApiResponse[BatchProcessingResult]:
    """Route extracted candidates to auto-create, proposal or skip."""

    settings = get_settings()
    try:
        enforce_rate_limit(
            db,
            payload.user_id,
            ENTITY_PROCESSING_FEATURE,
            limit=settings.rate_limit_per_hour,
            window_seconds=settings.rate_limit_window_seconds,
        )
    except RateLimitExceededError as exc:
        raise HTTPException(
            status_code=429,
            detail=str(exc),
            headers={"Retry-After": str(_seconds_until(exc.status.reset_at))},
        ) from exc

    engine = WorkflowEngine(db, dispatcher=dispatcher, settings=settings)
    result = engine.process_extracted_entities(
        [candidate_from_payload(item.model_dump()) for item in payload.entities],
        user_id=payload.user_id,
        project_id=project_id,
        source=SourceDescriptor(
            type=payload.source.type,
            id=payload.source.id,
            metadata=dict(payload.source.metadata),
        ),
    )
    return ApiResponse(data=result)


@router.get("/workflow-settings", response_model=ApiResponse[ProjectSettingsRead])
def get_workflow_settings(
    project_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[ProjectSettingsRead]:
    """Return the project's workflow settings."""

    row = get_project_settings(db, project_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Workflow settings not found")
    return ApiResponse(data=ProjectSettingsRead.model_validate(row))


@router.put("/workflow-settings", response_model=ApiResponse[ProjectSettingsRead])
def put_workflow_settings(
    payload: ProjectSettingsUpdate,
    project_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[ProjectSettingsRead]:
    """Create or replace the project's workflow settings."""

    return ApiResponse(data=ProjectSettingsRead.model_validate(upsert_project_settings(db, project_id, payload)))


def _seconds_until(moment: datetime) -> int:
    return max(int((moment - datetime.now(timezone.utc)).total_seconds()), 0)
