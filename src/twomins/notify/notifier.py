# src/twomins/notify/notifier.py

"""
Challenge notifications.

Two kinds of notifications: a reminder two minutes ahead of a scheduled
challenge and a "start now" when the clock hits zero. Permission follows the
usual default / granted / denied model; the console is the output sink.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

NotificationSink = Callable[["Notification"], None]


class Permission(StrEnum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


@dataclass(slots=True, frozen=True)
class Notification:
    title: str
    body: str | None = None
    tag: str | None = None
    require_interaction: bool = False
    data: dict[str, Any] = field(default_factory=dict)


def _print_sink(notification: Notification) -> None:
    ts = datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")
    body = f" {notification.body}" if notification.body else ""
    # \a rings the terminal bell; requireInteraction has no console equivalent.
    print(f"\a[{ts}] {notification.title}{body}", flush=True)


class ConsoleNotifier:
    """
    Notifier that writes to the terminal.

    - `enabled=False` behaves like a user who denied notifications:
      request_permission() returns "denied" and show() returns None.
    - `sink` is injectable so tests and other front-ends can capture notifications.
    """

    def __init__(self, *, enabled: bool = True, sink: NotificationSink | None = None) -> None:
        self._enabled = enabled
        self._permission = Permission.DEFAULT if enabled else Permission.DENIED
        self._sink = sink or _print_sink

    @property
    def permission(self) -> Permission:
        return self._permission

    @property
    def is_granted(self) -> bool:
        return self._permission == Permission.GRANTED

    def request_permission(self) -> str:
        if not self._enabled:
            logger.info("Notifications are disabled in settings.")
            self._permission = Permission.DENIED
        elif self._permission != Permission.GRANTED:
            self._permission = Permission.GRANTED
            logger.debug("Notification permission granted.")
        return self._permission.value

    def show(
        self,
        title: str,
        *,
        body: str | None = None,
        tag: str | None = None,
        require_interaction: bool = False,
        data: dict[str, Any] | None = None,
    ) -> Notification | None:
        if self._permission != Permission.GRANTED:
            logger.warning("Notification permission not granted; dropping %r", title)
            return None

        notification = Notification(
            title=title,
            body=body,
            tag=tag,
            require_interaction=require_interaction,
            data=dict(data or {}),
        )
        try:
            self._sink(notification)
        except Exception:
            logger.exception("Error showing notification tag=%s", tag)
            return None
        return notification

    def show_challenge_reminder(self, challenge_title: str, scheduled_challenge_id: str) -> Notification | None:
        return self.show(
            "⏰ Challenge in 2 Minutes!",
            body=f"Get ready: {challenge_title}",
            tag=f"challenge-{scheduled_challenge_id}",
            require_interaction=True,
            data={"scheduledChallengeId": scheduled_challenge_id, "type": "challenge-reminder"},
        )

    def show_challenge_start(self, challenge_title: str, scheduled_challenge_id: str) -> Notification | None:
        return self.show(
            "🎯 Challenge Time!",
            body=f"Start now: {challenge_title}",
            tag=f"challenge-start-{scheduled_challenge_id}",
            require_interaction=True,
            data={"scheduledChallengeId": scheduled_challenge_id, "type": "challenge-start"},
        )
