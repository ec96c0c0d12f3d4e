from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from fxlab.api.models import Severity

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Notification:
    text: str
    severity: Severity
    ts: datetime

    @staticmethod
    def now(*, text: str, severity: Severity) -> "Notification":
        return Notification(text=text, severity=severity, ts=datetime.now(timezone.utc))

    def as_payload(self) -> dict[str, str]:
        return {"text": self.text, "type": self.severity.value, "ts": self.ts.isoformat()}


Subscriber = Callable[[Notification], None]


class NotificationBus:
    """Fan-out of lifecycle notifications to the live activity display.

    Subscribers are plain callables invoked synchronously, in subscription order.
    A bounded history is kept so late joiners can render recent activity.
    """

    def __init__(self, *, history_size: int = 200) -> None:
        self._subscribers: list[Subscriber] = []
        self._history: deque[Notification] = deque(maxlen=history_size)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def emit(self, text: str, severity: Severity = Severity.info) -> Notification:
        note = Notification.now(text=text, severity=severity)
        self._history.append(note)
        logger.debug("notify [%s] %s", severity.value, text)
        for callback in list(self._subscribers):
            try:
                callback(note)
            except Exception:
                # A broken display must never take the dispatcher down with it.
                logger.exception("notification subscriber failed: %r", callback)
        return note

    def info(self, text: str) -> Notification:
        return self.emit(text, Severity.info)

    def success(self, text: str) -> Notification:
        return self.emit(text, Severity.success)

    def warning(self, text: str) -> Notification:
        return self.emit(text, Severity.warning)

    def muted(self, text: str) -> Notification:
        return self.emit(text, Severity.muted)

    def history(self, limit: int | None = None) -> list[Notification]:
        items = list(self._history)
        if limit is not None:
            items = items[-limit:] if limit > 0 else []
        return items
