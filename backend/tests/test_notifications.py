"""Unit tests for workflow notification delivery."""

from concurrent.futures import ThreadPoolExecutor
import json
import unittest
from unittest import mock
from urllib import error as urllib_error

from sidecar.services.notifications import (
    ENTITY_AUTO_CREATED,
    LoggingNotifier,
    NotificationDispatcher,
    NotificationError,
    NotificationEvent,
    NotifierInterface,
    WebhookNotifier,
)


def _event() -> NotificationEvent:
    return NotificationEvent(
        event=ENTITY_AUTO_CREATED,
        project_id=5,
        entity_type="risk",
        title="Vendor lock-in",
        actor_id=2,
        node_id="node-1",
    )


class _Recorder(NotifierInterface):
    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    def notify(self, event: NotificationEvent) -> None:
        self.events.append(event)


class _Exploding(NotifierInterface):
    def notify(self, event: NotificationEvent) -> None:
        raise RuntimeError("boom")


class NotificationTests(unittest.TestCase):
    def test_webhook_posts_json_payload(self) -> None:
        response = mock.MagicMock()
        response.__enter__.return_value = response
        notifier = WebhookNotifier(url="https://chat.example.test/hook", timeout_seconds=3)

        with mock.patch("sidecar.services.notifications.urllib_request.urlopen", return_value=response) as urlopen:
            notifier.notify(_event())

        request = urlopen.call_args.args[0]
        self.assertEqual(request.full_url, "https://chat.example.test/hook")
        self.assertEqual(request.get_method(), "POST")
        self.assertEqual(urlopen.call_args.kwargs["timeout"], 3)
        payload = json.loads(request.data.decode("utf-8"))
        self.assertEqual(payload["event"], ENTITY_AUTO_CREATED)
        self.assertEqual(payload["node_id"], "node-1")

    def test_webhook_wraps_transport_errors(self) -> None:
        notifier = WebhookNotifier(url="https://chat.example.test/hook")

        with mock.patch(
            "sidecar.services.notifications.urllib_request.urlopen",
            side_effect=urllib_error.URLError("connection refused"),
        ):
            with self.assertRaises(NotificationError):
                notifier.notify(_event())

    def test_dispatcher_swallows_and_logs_failures(self) -> None:
        dispatcher = NotificationDispatcher(_Exploding())

        with self.assertLogs("sidecar.services.notifications", level="ERROR") as logs:
            dispatcher.dispatch(_event())

        self.assertIn("workflow.notification_failed", logs.output[0])

    def test_dispatcher_delivers_on_executor(self) -> None:
        recorder = _Recorder()
        dispatcher = NotificationDispatcher(recorder, ThreadPoolExecutor(max_workers=1))

        dispatcher.dispatch(_event())
        dispatcher.shutdown(wait=True)

        self.assertEqual(len(recorder.events), 1)

    def test_dispatch_after_shutdown_is_logged(self) -> None:
        dispatcher = NotificationDispatcher(_Recorder(), ThreadPoolExecutor(max_workers=1))
        dispatcher.shutdown(wait=True)

        with self.assertLogs("sidecar.services.notifications", level="ERROR"):
            dispatcher.dispatch(_event())

    def test_logging_notifier_records_event(self) -> None:
        with self.assertLogs("sidecar.services.notifications", level="INFO") as logs:
            LoggingNotifier().notify(_event())

        self.assertIn("event=entity_auto_created", logs.output[0])


if __name__ == "__main__":
    unittest.main()
