# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from twomins.core.state import AppState
from twomins.scheduler.alarm_monitor import AlarmMonitor
from twomins.scheduler.challenge_scheduler import ChallengeScheduler

from .fakes import FakeApi, FakeClock, recording_notifier


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the API client.

    A SimpleNamespace keeps unit tests away from the real environment.
    """
    return SimpleNamespace(
        app_name="2Mins",
        api_base_url="http://twomins.test",
        session_cookie="connect.sid=abc",
        http_connect_timeout_seconds=1.0,
        http_read_timeout_seconds=1.0,
        notifications_enabled=True,
        snooze_minutes=2.0,
        data_dir=tmp_path / "data",
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture()
def state(settings: SimpleNamespace, api: FakeApi, clock: FakeClock) -> AppState:
    """AppState wired with fakes and no background runner (commands run on a private loop)."""
    notifier, _ = recording_notifier()
    return AppState(
        settings=settings,
        api=api,  # type: ignore[arg-type]
        notifier=notifier,
        scheduler=ChallengeScheduler(api, notifier, clock=clock),
        alarms=AlarmMonitor(api, clock=clock),
    )
