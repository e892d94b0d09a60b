# src/twomins/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Timer constants live here so tests and front-ends can shorten them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

ENV_PREFIX = "TWOMINS"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Front-end ----
    console_enabled: bool
    notifications_enabled: bool

    # ---- 2Mins API ----
    api_base_url: str
    session_cookie: Optional[str]
    http_connect_timeout_seconds: float
    http_read_timeout_seconds: float

    # ---- Challenge scheduler ----
    poll_interval_seconds: float
    tick_interval_seconds: float
    notification_advance_seconds: float
    challenge_duration_seconds: float

    # ---- Alarm monitor ----
    alarm_poll_interval_seconds: float
    alarm_check_interval_seconds: float
    snooze_minutes: float

    # ---- Local data paths (ignored by git) ----
    data_dir: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "2Mins")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        notifications_enabled = _env_bool(_k("NOTIFICATIONS_ENABLED"), True)

        api_base_url = (_env(_k("API_BASE_URL"), "http://localhost:5000") or "").strip().rstrip("/")
        session_cookie = _first_env(_k("SESSION_COOKIE"), default=None)

        http_connect_timeout_seconds = _env_float(_k("HTTP_CONNECT_TIMEOUT_SECONDS"), 5.0)
        http_read_timeout_seconds = _env_float(_k("HTTP_READ_TIMEOUT_SECONDS"), 15.0)

        poll_interval_seconds = _env_float(_k("POLL_INTERVAL_SECONDS"), 30.0)
        tick_interval_seconds = _env_float(_k("TICK_INTERVAL_SECONDS"), 0.1)
        notification_advance_seconds = _env_float(_k("NOTIFICATION_ADVANCE_SECONDS"), 120.0)
        challenge_duration_seconds = _env_float(_k("CHALLENGE_DURATION_SECONDS"), 120.0)

        alarm_poll_interval_seconds = _env_float(_k("ALARM_POLL_INTERVAL_SECONDS"), 2.0)
        alarm_check_interval_seconds = _env_float(_k("ALARM_CHECK_INTERVAL_SECONDS"), 1.0)
        snooze_minutes = _env_float(_k("SNOOZE_MINUTES"), 2.0)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/twomins"))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            notifications_enabled=notifications_enabled,
            api_base_url=api_base_url,
            session_cookie=session_cookie,
            http_connect_timeout_seconds=http_connect_timeout_seconds,
            http_read_timeout_seconds=http_read_timeout_seconds,
            poll_interval_seconds=poll_interval_seconds,
            tick_interval_seconds=tick_interval_seconds,
            notification_advance_seconds=notification_advance_seconds,
            challenge_duration_seconds=challenge_duration_seconds,
            alarm_poll_interval_seconds=alarm_poll_interval_seconds,
            alarm_check_interval_seconds=alarm_check_interval_seconds,
            snooze_minutes=snooze_minutes,
            data_dir=data_dir,
        )


SETTINGS = Settings.from_env()

# ---- Optional local overrides (never committed) ----
# Prefer .env for secrets; use config_local.py only for safe overrides.
try:
    import config_local as _config_local  # type: ignore

    if hasattr(_config_local, "CONSOLE_ENABLED"):
        object.__setattr__(SETTINGS, "console_enabled", bool(_config_local.CONSOLE_ENABLED))  # type: ignore[misc]
    if hasattr(_config_local, "NOTIFICATIONS_ENABLED"):
        object.__setattr__(SETTINGS, "notifications_enabled", bool(_config_local.NOTIFICATIONS_ENABLED))  # type: ignore[misc]
    if hasattr(_config_local, "API_BASE_URL"):
        object.__setattr__(SETTINGS, "api_base_url", str(_config_local.API_BASE_URL).rstrip("/"))  # type: ignore[misc]
except Exception:
    pass


def get_settings() -> Settings:
    return SETTINGS
