# src/twomins/core/ports.py

"""
Ports (interfaces) used by the scheduler and alarm monitor.

The state machines depend on Protocols instead of concrete implementations.
This keeps the HTTP client and the notification sink swappable and makes testing easier.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Protocol

from .models import Challenge, ScheduledChallenge

Clock = Callable[[], datetime]
# Returns an aware UTC "now"; injected so tests can move time by hand.


class SchedulerApi(Protocol):
    """The slice of the 2Mins REST API the challenge scheduler talks to."""

    async def get_next_scheduled(self) -> ScheduledChallenge | None: ...
    async def cancel_scheduled(self, scheduled_id: str) -> None: ...
    async def postpone_scheduled(self, scheduled_id: str) -> Any: ...
    async def complete_scheduled(self, scheduled_id: str, *, time_spent: int, status: str) -> Any: ...


class AlarmApi(Protocol):
    """The slice of the 2Mins REST API the alarm monitor talks to."""

    async def list_scheduled(self) -> list[ScheduledChallenge]: ...
    async def get_challenge(self, challenge_id: str) -> Challenge: ...
    async def create_scheduled(self, challenge_id: str, scheduled_time: datetime) -> Any: ...
    async def update_scheduled(self, scheduled_id: str, **fields: Any) -> Any: ...


class Notifier(Protocol):
    """
    Where reminder/start notifications go.

    The scheduler decides *when* to notify; the notifier decides *how* (console bell,
    desktop popup, ...). `is_granted` is true once the user allowed notifications.
    """

    @property
    def is_granted(self) -> bool: ...

    def request_permission(self) -> str: ...
    def show_challenge_reminder(self, challenge_title: str, scheduled_challenge_id: str) -> Any: ...
    def show_challenge_start(self, challenge_title: str, scheduled_challenge_id: str) -> Any: ...
