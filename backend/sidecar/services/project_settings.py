"""Per-project workflow settings."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from sidecar.config import Settings, get_settings
from sidecar.models.project_settings import ProjectWorkflowSettings
from sidecar.schemas.workflow import ProjectSettingsUpdate
from sidecar.workflow.types import normalize_entity_type


def get_project_settings(db: Session, project_id: int) -> ProjectWorkflowSettings | None:
    return db.scalar(
        select(ProjectWorkflowSettings).where(ProjectWorkflowSettings.project_id == project_id)
    )


def upsert_project_settings(
    db: Session,
    project_id: int,
    payload: ProjectSettingsUpdate,
) -> ProjectWorkflowSettings:
    """Create or replace the workflow settings of a project."""

    values = payload.model_dump()
    if values["detection_types"] is not None:
        values["detection_types"] = sorted({normalize_entity_type(item) for item in values["detection_types"]})

    row = get_project_settings(db, project_id)
    if row is None:
        row = ProjectWorkflowSettings(project_id=project_id, **values)
        db.add(row)
    else:
        for key, value in values.items():
            setattr(row, key, value)
    db.commit()
    db.refresh(row)
    return row


def resolve_threshold(
    project_settings: ProjectWorkflowSettings | None,
    settings: Settings | None = None,
) -> float:
    """Pick the auto-create threshold: the project setting, else the configured default."""

    if project_settings is not None and project_settings.auto_create_threshold is not None:
        return project_settings.auto_create_threshold
    return (settings or get_settings()).default_auto_create_threshold


def is_detection_enabled(project_settings: ProjectWorkflowSettings | None, entity_type: str) -> bool:
    """Return whether candidates of this type should be processed for the project."""

    if project_settings is None or not project_settings.detection_types:
        return True
    return normalize_entity_type(entity_type) in project_settings.detection_types
