# src/twomins/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts:
- the scheduler and alarm monitor in a background thread,
- the console REPL in the main thread (optional).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.background import start_background
from ..connectors.console_connector import print_alarm, print_snapshot, run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/twomins")
    log_file = setup_logging(log_dir=log_dir, console_level=console_level)

    logger.info("Starting %s (log file: %s)...", getattr(settings, "app_name", "2Mins"), log_file)

    state = create_initial_state(settings=settings, on_change=print_snapshot, on_alarm=print_alarm)
    state.runner = start_background(state)
    if state.runner is None:
        logger.error("Scheduler did not start; commands will talk to the server directly.")

    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        signal.signal(signal.SIGTERM, _handle_signal)
        if not settings.console_enabled:
            signal.signal(signal.SIGINT, _handle_signal)
    except Exception:
        # Not every platform has SIGTERM.
        pass

    try:
        if settings.console_enabled:
            run_console_loop(state)
            stop_main.set()
        else:
            logger.info("Console disabled. Running scheduler only. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        if state.runner is not None:
            state.runner.stop()
            state.runner.join(timeout=10.0)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
