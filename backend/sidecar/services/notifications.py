"""Best-effort notifications for workflow events."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import asdict, dataclass
from functools import lru_cache
from urllib import error as urllib_error
from urllib import request as urllib_request

from sidecar.config import get_settings

logger = logging.getLogger(__name__)

ENTITY_AUTO_CREATED = "entity_auto_created"
PROPOSAL_CREATED = "proposal_created"
PROPOSAL_APPROVED = "proposal_approved"
PROPOSAL_REJECTED = "proposal_rejected"


class NotificationError(RuntimeError):
    """Raised when a notifier cannot deliver an event."""


@dataclass(slots=True)
class NotificationEvent:
    """One workflow event addressed to project members or an approver role."""

    event: str
    project_id: int
    entity_type: str
    title: str
    actor_id: int | None = None
    node_id: str | None = None
    proposal_id: int | None = None
    approver_role_id: int | None = None
    approver_role_name: str | None = None
    reason: str | None = None

    def to_payload(self) -> dict[str, object]:
        return asdict(self)


class NotifierInterface(ABC):
    """Abstract delivery channel."""

    @abstractmethod
    def notify(self, event: NotificationEvent) -> None:
        """Deliver one event or raise ``NotificationError``."""


class LoggingNotifier(NotifierInterface):
    """Notifier that records events in the application log."""

    def notify(self, event: NotificationEvent) -> None:
        logger.info(
            "workflow.notification event=%s project_id=%s entity_type=%s node_id=%s proposal_id=%s approver_role_id=%s",
            event.event,
            event.project_id,
            event.entity_type,
            event.node_id,
            event.proposal_id,
            event.approver_role_id,
        )


@dataclass(slots=True)
class WebhookNotifier(NotifierInterface):
    """Posts events as JSON to a chat-platform webhook."""

    url: str
    timeout_seconds: int = 10

    def notify(self, event: NotificationEvent) -> None:
        req = urllib_request.Request(
            url=self.url,
            data=json.dumps(event.to_payload()).encode("utf-8"),
            method="POST",
            headers={"Content-Type": "application/json"},
        )
        try:
            with urllib_request.urlopen(req, timeout=self.timeout_seconds) as resp:
                resp.read()
        except urllib_error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise NotificationError(f"Webhook HTTP {exc.code}: {detail}") from exc
        except urllib_error.URLError as exc:
            raise NotificationError(f"Webhook request failed: {exc.reason}") from exc


class NotificationDispatcher:
    """Hands events to a notifier without letting failures reach the caller.

    With an executor, delivery runs in the background; without one it runs
    inline, which keeps tests deterministic.
    """

    def __init__(self, notifier: NotifierInterface, executor: Executor | None = None) -> None:
        self.notifier = notifier
        self.executor = executor

    def dispatch(self, event: NotificationEvent) -> None:
        if self.executor is None:
            self._deliver(event)
            return
        try:
            self.executor.submit(self._deliver, event)
        except RuntimeError:
            logger.exception("workflow.notification_submit_failed event=%s", event.event)

    def shutdown(self, wait: bool = True) -> None:
        if self.executor is not None:
            self.executor.shutdown(wait=wait)

    def _deliver(self, event: NotificationEvent) -> None:
        try:
            self.notifier.notify(event)
        except Exception:
            logger.exception(
                "workflow.notification_failed event=%s project_id=%s proposal_id=%s node_id=%s",
                event.event,
                event.project_id,
                event.proposal_id,
                event.node_id,
            )


@lru_cache
def get_default_dispatcher() -> NotificationDispatcher:
    """Return the process-wide dispatcher built from settings."""

    settings = get_settings()
    notifier: NotifierInterface
    if settings.notification_webhook_url:
        notifier = WebhookNotifier(
            url=settings.notification_webhook_url,
            timeout_seconds=settings.notification_timeout_seconds,
        )
    else:
        notifier = LoggingNotifier()
    executor = ThreadPoolExecutor(
        max_workers=settings.notification_max_workers,
        thread_name_prefix="sidecar-notify",
    )
    return NotificationDispatcher(notifier, executor)
