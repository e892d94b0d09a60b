# src/twomins/scheduler/challenge_scheduler.py

"""
Challenge scheduler.

A small client-side state machine that:
- polls the server for the next scheduled challenge,
- switches to a countdown (and shows a reminder) once the challenge is within the
  notification window,
- runs the two-minute challenge clock once the countdown reaches zero,
- reports success/failure back to the server and returns to idle.

    idle -> countdown -> active -> idle      (complete / cancel / postpone)
    idle -> active                           (scheduled time already passed)

The server is the source of truth for *what* is next; the local clock only predicts
*when* to flip states between polls.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum

from ..api.client import MAX_TIME_SPENT_SECONDS
from ..core.models import ActiveChallenge, ChallengeHistory, CompletionStatus, ScheduledChallenge
from ..core.ports import Clock, Notifier, SchedulerApi

logger = logging.getLogger(__name__)

# Auto-complete fires once the remaining time drops to this many seconds.
AUTO_COMPLETE_THRESHOLD_SECONDS = 0.1


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SchedulerState(str, Enum):
    IDLE = "idle"
    COUNTDOWN = "countdown"
    ACTIVE = "active"


@dataclass(slots=True, frozen=True)
class SchedulerSnapshot:
    """Read-only view for front-ends (safe to hand to another thread)."""

    state: SchedulerState
    next_challenge: ScheduledChallenge | None
    active_challenge: ActiveChallenge | None
    countdown_seconds: int
    is_loading: bool


SnapshotListener = Callable[[SchedulerSnapshot], None]


class ChallengeScheduler:
    def __init__(
        self,
        api: SchedulerApi,
        notifier: Notifier,
        *,
        clock: Clock = utc_now,
        poll_interval_seconds: float = 30.0,
        tick_interval_seconds: float = 0.1,
        notification_advance_seconds: float = 120.0,
        challenge_duration_seconds: float = 120.0,
        on_change: SnapshotListener | None = None,
    ) -> None:
        self._api = api
        self._notifier = notifier
        self._clock = clock
        self._poll_s = float(poll_interval_seconds)
        self._tick_s = float(tick_interval_seconds)
        self._advance_s = float(notification_advance_seconds)
        self._duration_s = min(float(challenge_duration_seconds), float(MAX_TIME_SPENT_SECONDS))
        if self._duration_s < float(challenge_duration_seconds):
            logger.warning(
                "Challenge duration %ss exceeds the server limit; using %ss",
                challenge_duration_seconds,
                self._duration_s,
            )
        self._on_change = on_change

        self.state = SchedulerState.IDLE
        self.next_challenge: ScheduledChallenge | None = None
        self.active_challenge: ActiveChallenge | None = None
        self.countdown_seconds = 0
        self.is_loading = True

        self._notified_id: str | None = None
        # Guard against duplicate completion submissions (manual + auto on the same tick).
        self._completing = False
        # Scheduled id whose auto-complete already failed; never retried automatically.
        self._auto_complete_failed_id: str | None = None

    # ---- views ----

    @property
    def challenge_duration_seconds(self) -> float:
        return self._duration_s

    @property
    def is_completing(self) -> bool:
        return self._completing

    def snapshot(self) -> SchedulerSnapshot:
        active = replace(self.active_challenge) if self.active_challenge else None
        return SchedulerSnapshot(
            state=self.state,
            next_challenge=self.next_challenge,
            active_challenge=active,
            countdown_seconds=self.countdown_seconds,
            is_loading=self.is_loading,
        )

    def elapsed_seconds(self) -> int:
        """Whole seconds since the active challenge started, capped at the challenge duration."""
        if self.active_challenge is None:
            return 0
        elapsed = (self._clock() - self.active_challenge.start_time).total_seconds()
        return int(max(0.0, min(self._duration_s, math.floor(elapsed))))

    def _emit(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self.snapshot())
        except Exception:
            logger.exception("Scheduler listener failed")

    # ---- polling ----

    async def refresh(self) -> ScheduledChallenge | None:
        """Fetch the next scheduled challenge and re-evaluate. Fetch errors keep the previous value."""
        try:
            nxt = await self._api.get_next_scheduled()
        except Exception:
            logger.exception("get_next_scheduled failed")
            self.is_loading = False
            return self.next_challenge

        prev_id = self.next_challenge.id if self.next_challenge else None
        new_id = nxt.id if nxt else None
        self.next_challenge = nxt
        self.is_loading = False

        # The countdown target was replaced or disappeared (cancelled elsewhere, completed on
        # another device); the new head of the queue gets its own evaluation below.
        if self.state == SchedulerState.COUNTDOWN and new_id != self._notified_id:
            logger.info("Countdown target changed (%s -> %s); back to idle", self._notified_id, new_id)
            self.state = SchedulerState.IDLE
            self.countdown_seconds = 0
            self._notified_id = None

        self.evaluate()

        if new_id != prev_id:
            logger.debug("Next scheduled challenge: %s", new_id)
            self._emit()
        return nxt

    def evaluate(self) -> None:
        """Decide whether the polled challenge needs a countdown or starts right away."""
        nxt = self.next_challenge
        if nxt is None or self.active_challenge is not None:
            return

        until = (nxt.scheduled_time - self._clock()).total_seconds()

        if 0 < until <= self._advance_s and self._notified_id != nxt.id:
            self.state = SchedulerState.COUNTDOWN
            self._notified_id = nxt.id
            self.countdown_seconds = max(0, math.ceil(until))
            logger.info("Countdown started for %s (%ss)", nxt.id, self.countdown_seconds)

            if self._notifier.is_granted:
                self._notifier.show_challenge_reminder(nxt.title, nxt.id)
            self._emit()

        # Opened the app after the scheduled time: skip the countdown.
        if until <= 0:
            self._notified_id = nxt.id
            self._activate()

    # ---- clocks ----

    async def tick(self) -> None:
        """One countdown/active clock step (run every tick interval)."""
        nxt = self.next_challenge
        if self.state == SchedulerState.COUNTDOWN and nxt is not None and self.active_challenge is None:
            seconds_remaining = math.ceil((nxt.scheduled_time - self._clock()).total_seconds())
            self.countdown_seconds = max(0, seconds_remaining)
            if seconds_remaining <= 0:
                self._activate()

        active = self.active_challenge
        if active is None or self._completing:
            return

        elapsed = (self._clock() - active.start_time).total_seconds()
        remaining = max(0.0, self._duration_s - elapsed)
        active.time_remaining = remaining

        if remaining <= AUTO_COMPLETE_THRESHOLD_SECONDS and self._auto_complete_failed_id != active.scheduled_challenge_id:
            logger.info("Time is up for %s; completing as failed", active.scheduled_challenge_id)
            try:
                await self.complete_challenge(int(self._duration_s), CompletionStatus.FAILED)
            except Exception:
                # Leave it to the user to complete/cancel by hand instead of retrying every tick.
                logger.exception("Auto-complete failed for %s", active.scheduled_challenge_id)
                self._auto_complete_failed_id = active.scheduled_challenge_id

    def _activate(self) -> None:
        nxt = self.next_challenge
        if nxt is None:
            return

        self.state = SchedulerState.ACTIVE
        self.active_challenge = ActiveChallenge(
            scheduled_challenge_id=nxt.id,
            challenge=nxt.challenge,
            start_time=self._clock(),
            time_remaining=self._duration_s,
        )
        logger.info("Challenge %s is active", nxt.id)

        if self._notifier.is_granted:
            self._notifier.show_challenge_start(nxt.title, nxt.id)
        self._emit()

    def _reset_to_idle(self) -> None:
        self.active_challenge = None
        self.state = SchedulerState.IDLE
        self._notified_id = None
        self.countdown_seconds = 0
        self._emit()

    def _target_id(self) -> str | None:
        if self.active_challenge is not None:
            return self.active_challenge.scheduled_challenge_id
        if self.next_challenge is not None:
            return self.next_challenge.id
        return None

    # ---- user actions ----

    def start_challenge(self) -> None:
        """Start now instead of waiting for the countdown."""
        if self.next_challenge is None or self.active_challenge is not None:
            return
        self.countdown_seconds = 0
        self._activate()

    async def cancel_challenge(self) -> None:
        target = self._target_id()
        if not target:
            return
        try:
            await self._api.cancel_scheduled(target)
        except Exception:
            logger.exception("Error cancelling challenge %s", target)
            raise
        logger.info("Challenge %s cancelled", target)
        self._reset_to_idle()
        await self.refresh()

    async def postpone_challenge(self) -> None:
        target = self._target_id()
        if not target:
            return
        try:
            await self._api.postpone_scheduled(target)
        except Exception:
            logger.exception("Error postponing challenge %s", target)
            raise
        logger.info("Challenge %s postponed", target)
        self._reset_to_idle()
        await self.refresh()

    async def complete_challenge(
        self, time_spent: int, status: CompletionStatus | str
    ) -> ChallengeHistory | None:
        active = self.active_challenge
        if active is None or self._completing:
            return None

        status_value = CompletionStatus(status).value
        self._completing = True
        try:
            history = await self._api.complete_scheduled(
                active.scheduled_challenge_id,
                time_spent=int(time_spent),
                status=status_value,
            )
        except Exception:
            logger.exception("Error completing challenge %s", active.scheduled_challenge_id)
            self._completing = False
            raise

        logger.info("Challenge %s completed status=%s time_spent=%s", active.scheduled_challenge_id, status_value, time_spent)
        self._reset_to_idle()
        self._completing = False
        await self.refresh()
        return history

    # ---- loop ----

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """
        Drive the state machine until cancelled or `stop_event` is set.

        - polls every poll interval, but not while a challenge is active
        - ticks every tick interval
        """
        poll_s = max(0.05, self._poll_s)
        tick_s = max(0.01, self._tick_s)

        if not self._notifier.is_granted:
            try:
                self._notifier.request_permission()
            except Exception:
                logger.exception("request_permission failed")

        await self.refresh()
        next_poll = time.monotonic() + poll_s

        while stop_event is None or not stop_event.is_set():
            if self.active_challenge is None and time.monotonic() >= next_poll:
                await self.refresh()
                next_poll = time.monotonic() + poll_s

            try:
                await self.tick()
            except Exception:
                logger.exception("Scheduler tick failed")

            await asyncio.sleep(tick_s)
