# src/twomins/connectors/background.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

from ..core.state import AppState

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _run_services(state: AppState, stop_event: asyncio.Event) -> None:
    """Scheduler + alarm monitor on one loop; the API client is closed on the same loop."""
    tasks = [
        asyncio.create_task(state.scheduler.run(stop_event), name="challenge-scheduler"),
        asyncio.create_task(state.alarms.run(stop_event), name="alarm-monitor"),
    ]
    logger.info("Background services started.")
    try:
        await stop_event.wait()
    except asyncio.CancelledError:
        logger.info("Background services cancelled.")
    finally:
        for t in tasks:
            t.cancel()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for t, res in zip(tasks, results):
            if isinstance(res, Exception):
                logger.error("Background task %s crashed: %r", t.get_name(), res)

        with contextlib.suppress(Exception):
            await state.api.aclose()

        logger.info("Background services stopped.")


@dataclass
class BackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except Exception:
            logger.debug("Failed to signal background stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_background(state: AppState) -> BackgroundRunner | None:
    """
    Start the scheduler and alarm monitor in a background thread.

    Why a thread:
    - console REPL is blocking (input()).
    - the state machines are async and want their own event loop.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_run_services(state, stop_event))
        finally:
            with contextlib.suppress(Exception):
                loop.stop()
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="twomins-background", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Background thread did not initialize properly.")
        return None

    logger.info("Background thread started.")
    return BackgroundRunner(thread=t, loop=loop, stop_event=stop_event)


def run_sync(state: AppState, coro: Coroutine[Any, Any, T], timeout: float = 30.0) -> T:
    """
    Run a coroutine from the console thread.

    With a background runner the coroutine executes on its loop (where the httpx client
    lives); without one (tests, one-shot scripts) it gets a private loop.
    """
    runner = state.runner
    if runner is None:
        return asyncio.run(coro)
    fut = asyncio.run_coroutine_threadsafe(coro, runner.loop)
    return fut.result(timeout=timeout)
