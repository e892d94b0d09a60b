# src/twomins/scheduler/alarm_monitor.py

"""
Alarm monitor.

Polls the user's scheduled challenges and raises a single "alarm" when one of
them is due. The front-end then answers the alarm with start / snooze / cancel,
each of which is a PATCH on the scheduled challenge.

Two loops share one coroutine:
- refresh every poll interval (list of scheduled challenges),
- check every check interval (is anything due?).
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..api.client import ApiError
from ..core.models import Challenge, ScheduledChallenge, ScheduleStatus
from ..core.ports import AlarmApi, Clock
from .challenge_scheduler import utc_now

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ActiveAlarm:
    challenge: Challenge
    scheduled_challenge_id: str


AlarmListener = Callable[[ActiveAlarm], None]


def is_due(scheduled: ScheduledChallenge, now: datetime) -> bool:
    """
    A scheduled challenge rings when:
    - it is pending and its time has come (or a snooze it carries has expired), or
    - it is snoozed and the snooze has expired.
    """
    snooze_over = scheduled.snoozed_until is not None and scheduled.snoozed_until <= now
    if scheduled.status == ScheduleStatus.PENDING:
        return scheduled.scheduled_time <= now or snooze_over
    if scheduled.status == ScheduleStatus.SNOOZED:
        return snooze_over
    return False


class AlarmMonitor:
    def __init__(
        self,
        api: AlarmApi,
        *,
        clock: Clock = utc_now,
        poll_interval_seconds: float = 2.0,
        check_interval_seconds: float = 1.0,
        snooze_minutes: float = 2.0,
        on_alarm: AlarmListener | None = None,
    ) -> None:
        self._api = api
        self._clock = clock
        self._poll_s = float(poll_interval_seconds)
        self._check_s = float(check_interval_seconds)
        self._snooze = timedelta(minutes=float(snooze_minutes))
        self._on_alarm = on_alarm

        self.scheduled: list[ScheduledChallenge] = []
        self.active_alarm: ActiveAlarm | None = None
        # Alarms answered with "start" whose PATCH failed; keep them from ringing again.
        self._dismissed: set[str] = set()

    # ---- polling ----

    async def refresh(self) -> list[ScheduledChallenge]:
        try:
            self.scheduled = await self._api.list_scheduled()
        except ApiError as e:
            if e.status_code == 401:
                # Logged out: nothing to ring for.
                self.scheduled = []
            else:
                logger.exception("Failed to load scheduled challenges")
        except Exception:
            logger.exception("Failed to load scheduled challenges")
        return self.scheduled

    def pending_notifications(self) -> list[ScheduledChallenge]:
        return [s for s in self.scheduled if s.status == ScheduleStatus.PENDING]

    def find_due(self) -> ScheduledChallenge | None:
        now = self._clock()
        for scheduled in self.scheduled:
            if scheduled.id in self._dismissed:
                continue
            if is_due(scheduled, now):
                return scheduled
        return None

    async def check(self) -> ActiveAlarm | None:
        """Raise an alarm for the first due challenge. Only one alarm is shown at a time."""
        if self.active_alarm is not None:
            return None
        due = self.find_due()
        if due is None:
            return None
        return await self._raise_alarm(due)

    async def _raise_alarm(self, scheduled: ScheduledChallenge) -> ActiveAlarm | None:
        try:
            challenge = await self._api.get_challenge(scheduled.challenge_id)
        except Exception:
            logger.exception("Error fetching challenge %s for alarm", scheduled.challenge_id)
            return None

        # An answer may have landed while the fetch was in flight.
        if self.active_alarm is not None:
            return None

        alarm = ActiveAlarm(challenge=challenge, scheduled_challenge_id=scheduled.id)
        self.active_alarm = alarm
        logger.info("Alarm: %s (%s)", challenge.title, scheduled.id)

        if self._on_alarm is not None:
            try:
                self._on_alarm(alarm)
            except Exception:
                logger.exception("Alarm listener failed")
        return alarm

    # ---- answers ----

    async def start(self) -> str | None:
        """
        Mark the alarm's challenge as notified and dismiss the alarm.

        Returns the challenge id so the front-end can open it. Marking is best-effort:
        a failed PATCH is logged, the alarm is still dismissed.
        """
        alarm = self.active_alarm
        if alarm is None:
            return None

        try:
            await self._api.update_scheduled(alarm.scheduled_challenge_id, status=ScheduleStatus.NOTIFIED)
        except Exception:
            logger.exception("Failed to mark %s as notified", alarm.scheduled_challenge_id)
            self._dismissed.add(alarm.scheduled_challenge_id)
        else:
            await self.refresh()
        finally:
            self.active_alarm = None
        return alarm.challenge.id

    async def snooze(self) -> None:
        alarm = self.active_alarm
        if alarm is None:
            return
        snoozed_until = self._clock() + self._snooze
        await self._api.update_scheduled(
            alarm.scheduled_challenge_id,
            status=ScheduleStatus.SNOOZED,
            snoozedUntil=snoozed_until,
        )
        logger.info("Alarm %s snoozed until %s", alarm.scheduled_challenge_id, snoozed_until.isoformat())
        await self.refresh()
        self.active_alarm = None

    async def cancel(self) -> None:
        alarm = self.active_alarm
        if alarm is None:
            return
        await self._api.update_scheduled(alarm.scheduled_challenge_id, status=ScheduleStatus.CANCELLED)
        logger.info("Alarm %s cancelled", alarm.scheduled_challenge_id)
        await self.refresh()
        self.active_alarm = None

    async def schedule_challenge(self, challenge_id: str, scheduled_time: datetime) -> None:
        try:
            await self._api.create_scheduled(challenge_id, scheduled_time)
        except Exception:
            logger.exception("Error scheduling challenge %s", challenge_id)
            raise
        logger.info("Scheduled challenge %s at %s", challenge_id, scheduled_time.isoformat())
        await self.refresh()

    # ---- loop ----

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        poll_s = max(0.05, self._poll_s)
        check_s = max(0.01, self._check_s)

        await self.refresh()
        next_poll = time.monotonic() + poll_s

        while stop_event is None or not stop_event.is_set():
            if time.monotonic() >= next_poll:
                await self.refresh()
                next_poll = time.monotonic() + poll_s

            try:
                await self.check()
            except Exception:
                logger.exception("Alarm check failed")

            await asyncio.sleep(check_s)
