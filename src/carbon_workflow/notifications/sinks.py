"""Notification sinks for workflow transition events.

Sinks are best-effort. The engine logs their failures and reports them as
warnings; retrying is the sink's business, and none of these retry.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Sequence
from pathlib import Path

import requests

from carbon_workflow.config import WorkflowSettings
from carbon_workflow.storage.jsonfile import exclusive_lock, write_json_atomic
from carbon_workflow.workflow.collaborators import NotificationSink
from carbon_workflow.workflow.events import TransitionEvent

logger = logging.getLogger(__name__)


class NotificationDeliveryError(RuntimeError):
    pass


class LoggingNotificationSink:
    def emit(self, event: TransitionEvent) -> None:
        logger.info("Project status changed", extra=event.to_json())


class TimelineNotificationSink:
    """Append events to a JSON list file, oldest first."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()

    def list(self) -> list[dict[str, object]]:
        with self._lock:
            return self._load_unlocked()

    def _load_unlocked(self) -> list[dict[str, object]]:
        if not self._path.exists():
            return []
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return []
        if not isinstance(raw, list):
            return []
        return [item for item in raw if isinstance(item, dict)]

    def emit(self, event: TransitionEvent) -> None:
        with self._lock, exclusive_lock(self._path):
            events = self._load_unlocked()
            events.append(event.to_json())
            write_json_atomic(self._path, events)


class WebhookNotificationSink:
    """POST each event as JSON to a configured URL."""

    def __init__(
        self,
        *,
        url: str,
        timeout_seconds: float = 10.0,
        token: str = "",
        session: requests.Session | None = None,
    ) -> None:
        if not url.strip():
            raise ValueError("Webhook URL is required")
        self._url = url.strip()
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Content-Type": "application/json",
                "User-Agent": "carbon-verification-workflow",
            }
        )
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    def emit(self, event: TransitionEvent) -> None:
        try:
            resp = self._session.post(self._url, json=event.to_json(), timeout=self._timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise NotificationDeliveryError(f"Webhook {self._url} failed: {e}") from e

    def close(self) -> None:
        self._session.close()


class FanoutNotificationSink:
    """Emit to every sink; raise once afterwards if any of them failed."""

    def __init__(self, sinks: Sequence[NotificationSink]) -> None:
        self._sinks = list(sinks)

    def emit(self, event: TransitionEvent) -> None:
        failures: list[str] = []
        for sink in self._sinks:
            try:
                sink.emit(event)
            except Exception as e:
                failures.append(f"{type(sink).__name__}: {e}")
        if failures:
            raise NotificationDeliveryError("; ".join(failures))

    def close(self) -> None:
        for sink in self._sinks:
            close = getattr(sink, "close", None)
            if close is not None:
                close()


def build_notification_sink(settings: WorkflowSettings) -> FanoutNotificationSink:
    sinks: list[NotificationSink] = [LoggingNotificationSink()]
    if settings.timeline_enabled:
        sinks.append(TimelineNotificationSink(settings.timeline_state_file))
    if settings.webhook_url.strip():
        sinks.append(
            WebhookNotificationSink(
                url=settings.webhook_url,
                timeout_seconds=settings.webhook_timeout_seconds,
                token=settings.webhook_token,
            )
        )
    return FanoutNotificationSink(sinks)
