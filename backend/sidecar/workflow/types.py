"""Typed inference candidates and source descriptors independent of persistence."""

from __future__ import annotations

from dataclasses import dataclass, field
import math
from typing import Any

DEFAULT_IMPACT = "medium"
UNKNOWN_SOURCE_TYPE = "unknown"

_ENTITY_TYPE_ALIASES: dict[str, str] = {
    "decision": "decision",
    "risk": "risk",
    "action item": "action_item",
    "action_item": "action_item",
    "task": "task",
    "issue": "issue",
    "feature": "feature",
    "bug": "bug",
}


@dataclass(slots=True)
class CandidateEntity:
    """Entity proposed by inference and not yet committed."""

    entity_type: str
    title: str
    description: str | None = None
    confidence: float = 0.0
    impact: str | None = None
    priority: str | None = None
    tags: list[str] = field(default_factory=list)
    citations: list[str] = field(default_factory=list)
    mentioned_users: list[str] = field(default_factory=list)
    related_entity_ids: list[str] = field(default_factory=list)
    deadline: str | None = None
    owner: str | None = None
    reasoning: str | None = None

    @property
    def impact_level(self) -> str:
        """Lower-cased impact, falling back to priority and then to medium."""

        raw = self.impact or self.priority or DEFAULT_IMPACT
        return str(raw).strip().lower() or DEFAULT_IMPACT

    def summary(self) -> dict[str, str]:
        return {"type": self.entity_type, "title": self.title}


@dataclass(slots=True)
class SourceDescriptor:
    """Origin of the text a candidate was extracted from."""

    type: str = UNKNOWN_SOURCE_TYPE
    id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


def normalize_entity_type(raw_type: str | None) -> str:
    """Normalize a free-form entity type label to its graph storage form."""

    cleaned = " ".join(str(raw_type or "").strip().split())
    if not cleaned:
        return "other"
    mapped = _ENTITY_TYPE_ALIASES.get(cleaned.lower())
    if mapped:
        return mapped
    return cleaned.lower().replace(" ", "_")


def candidate_from_payload(payload: dict[str, Any]) -> CandidateEntity:
    """Build a candidate from one raw inference output item."""

    return CandidateEntity(
        entity_type=str(payload.get("entity_type") or "").strip(),
        title=str(payload.get("title") or "").strip(),
        description=_optional_str(payload.get("description")),
        confidence=_coerce_confidence(payload.get("confidence")),
        impact=_optional_str(payload.get("impact")),
        priority=_optional_str(payload.get("priority")),
        tags=_coerce_str_list(payload.get("tags")),
        citations=_coerce_str_list(payload.get("citations")),
        mentioned_users=_coerce_str_list(payload.get("mentioned_users")),
        related_entity_ids=_coerce_str_list(payload.get("related_entity_ids")),
        deadline=_optional_str(payload.get("deadline")),
        owner=_optional_str(payload.get("owner")),
        reasoning=_optional_str(payload.get("reasoning")),
    )


def source_from_payload(payload: dict[str, Any] | None) -> SourceDescriptor:
    """Build a source descriptor from a raw request payload."""

    if not payload:
        return SourceDescriptor()
    metadata = payload.get("metadata")
    raw_id = payload.get("id")
    return SourceDescriptor(
        type=str(payload.get("type") or UNKNOWN_SOURCE_TYPE).strip() or UNKNOWN_SOURCE_TYPE,
        id=str(raw_id) if raw_id is not None else None,
        metadata=dict(metadata) if isinstance(metadata, dict) else {},
    )


def _coerce_confidence(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return min(max(number, 0.0), 1.0)


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coerce_str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    cleaned: list[str] = []
    for item in value:
        if item is None:
            continue
        text = str(item).strip()
        if not text:
            continue
        cleaned.append(text)
    return cleaned
