# src/twomins/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the API client, notifier, scheduler and alarm monitor into AppState.
"""

from __future__ import annotations

import logging

from ..api.client import TwoMinsApiClient
from ..config import get_settings
from ..core.state import AppState
from ..notify.notifier import ConsoleNotifier, NotificationSink
from ..scheduler.alarm_monitor import AlarmListener, AlarmMonitor
from ..scheduler.challenge_scheduler import ChallengeScheduler, SnapshotListener

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)


def create_initial_state(
    *,
    settings=None,
    on_change: SnapshotListener | None = None,
    on_alarm: AlarmListener | None = None,
    notification_sink: NotificationSink | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    api = TwoMinsApiClient(settings)
    notifier = ConsoleNotifier(enabled=settings.notifications_enabled, sink=notification_sink)

    scheduler = ChallengeScheduler(
        api,
        notifier,
        poll_interval_seconds=settings.poll_interval_seconds,
        tick_interval_seconds=settings.tick_interval_seconds,
        notification_advance_seconds=settings.notification_advance_seconds,
        challenge_duration_seconds=settings.challenge_duration_seconds,
        on_change=on_change,
    )
    alarms = AlarmMonitor(
        api,
        poll_interval_seconds=settings.alarm_poll_interval_seconds,
        check_interval_seconds=settings.alarm_check_interval_seconds,
        snooze_minutes=settings.snooze_minutes,
        on_alarm=on_alarm,
    )

    logger.debug("State wired api=%s notifications=%s", settings.api_base_url, settings.notifications_enabled)
    return AppState(
        settings=settings,
        api=api,
        notifier=notifier,
        scheduler=scheduler,
        alarms=alarms,
    )
