# tests/test_config.py

from __future__ import annotations

from pathlib import Path

from twomins.config import Settings


def test_defaults(monkeypatch) -> None:
    for key in (
        "TWOMINS_API_BASE_URL",
        "TWOMINS_SESSION_COOKIE",
        "TWOMINS_POLL_INTERVAL_SECONDS",
        "TWOMINS_CHALLENGE_DURATION_SECONDS",
        "TWOMINS_DATA_DIR",
    ):
        monkeypatch.delenv(key, raising=False)

    s = Settings.from_env()

    assert s.api_base_url == "http://localhost:5000"
    assert s.session_cookie is None
    assert s.poll_interval_seconds == 30.0
    assert s.notification_advance_seconds == 120.0
    assert s.challenge_duration_seconds == 120.0
    assert s.data_dir == Path(".local/twomins")


def test_env_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TWOMINS_API_BASE_URL", "https://2mins.example/")
    monkeypatch.setenv("TWOMINS_SESSION_COOKIE", "connect.sid=xyz")
    monkeypatch.setenv("TWOMINS_CONSOLE_ENABLED", "off")
    monkeypatch.setenv("TWOMINS_SNOOZE_MINUTES", "5")
    monkeypatch.setenv("TWOMINS_TICK_INTERVAL_SECONDS", "not-a-number")
    monkeypatch.setenv("TWOMINS_DATA_DIR", str(tmp_path))

    s = Settings.from_env()

    assert s.api_base_url == "https://2mins.example"
    assert s.session_cookie == "connect.sid=xyz"
    assert s.console_enabled is False
    assert s.snooze_minutes == 5.0
    assert s.tick_interval_seconds == 0.1
    assert s.data_dir == tmp_path
