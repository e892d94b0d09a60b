# src/twomins/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..cli.commands import format_clock
from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..scheduler.alarm_monitor import ActiveAlarm
from ..scheduler.challenge_scheduler import SchedulerSnapshot, SchedulerState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except Exception:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def describe_snapshot(snap: SchedulerSnapshot) -> str:
    if snap.state == SchedulerState.ACTIVE and snap.active_challenge is not None:
        active = snap.active_challenge
        return f"[CHALLENGE] {active.title} is on: {format_clock(active.time_remaining)} left. /done or /fail"
    if snap.state == SchedulerState.COUNTDOWN and snap.next_challenge is not None:
        return (
            f"[CHALLENGE] {snap.next_challenge.title} starts in {format_clock(snap.countdown_seconds)}. "
            "/start, /postpone or /cancel"
        )
    if snap.next_challenge is not None:
        local = snap.next_challenge.scheduled_time.astimezone().strftime("%H:%M")
        return f"[CHALLENGE] Next up: {snap.next_challenge.title} at {local}."
    return "[CHALLENGE] Nothing scheduled."


def print_snapshot(snap: SchedulerSnapshot) -> None:
    """Scheduler listener: called from the background loop on state changes."""
    _print_ts(describe_snapshot(snap))


def print_alarm(alarm: ActiveAlarm) -> None:
    c = alarm.challenge
    _print_ts(f"\a[ALARM] {c.title} is due. /alarm start | /alarm snooze | /alarm cancel")


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (api=%s).", getattr(state.settings, "api_base_url", "?"))
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    lock = getattr(state, "lock", None)

    def emit(text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            user_input = input(">>> ").strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            if lock:
                with lock:
                    response = command_registry.handle(state, user_input, emit=emit)
            else:
                response = command_registry.handle(state, user_input, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        if response is None:
            response = "Commands start with '/'. Use /help to list them."

        _print_ts(response)

    logger.info("Console connector finished.")
