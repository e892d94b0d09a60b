# src/twomins/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..api.client import TwoMinsApiClient
from ..notify.notifier import ConsoleNotifier
from ..scheduler.alarm_monitor import AlarmMonitor
from ..scheduler.challenge_scheduler import ChallengeScheduler

if TYPE_CHECKING:
    from ..connectors.background import BackgroundRunner


@dataclass
class AppState:
    """
    Process-wide application state shared by the console thread and the background loop.

    The api client, scheduler and alarm monitor belong to the background event loop;
    the console only reads snapshots and submits coroutines (see connectors.background.run_sync).
    """

    settings: Any
    api: TwoMinsApiClient
    notifier: ConsoleNotifier
    scheduler: ChallengeScheduler
    alarms: AlarmMonitor

    runner: BackgroundRunner | None = None
    lock: threading.Lock = field(default_factory=threading.Lock)
