# src/twomins/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
import re
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import cast

from ..api.client import friendly_api_error_message
from ..connectors.background import run_sync
from ..core.models import ChallengeCategory, CompletionStatus, ScheduledChallenge
from ..core.state import AppState
from ..scheduler.challenge_scheduler import SchedulerState

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

_RELATIVE_RE = re.compile(r"^\+(\d+)m?$")
_CLOCK_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /start, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- formatting helpers ----


def format_clock(seconds: float) -> str:
    """Seconds -> "m:ss" (floored, never negative)."""
    s = max(0.0, float(seconds))
    return f"{int(s // 60)}:{int(s % 60):02d}"


def _local_hm(dt: datetime) -> str:
    return dt.astimezone().strftime("%H:%M")


def _describe_scheduled(sc: ScheduledChallenge, now: datetime) -> str:
    until = (sc.scheduled_time - now).total_seconds()
    when = f"in {format_clock(until)}" if until > 0 else "now"
    return f"{sc.title} at {_local_hm(sc.scheduled_time)} ({when})"


def parse_when(text: str, now: datetime) -> datetime:
    """
    Parse a schedule time typed by the user.

    - "+15" / "+15m" -> 15 minutes from now
    - "18:30"        -> today at 18:30 local time, or tomorrow if that already passed

    `now` must be timezone-aware; the result is UTC.
    """
    s = (text or "").strip()

    m = _RELATIVE_RE.match(s)
    if m:
        minutes = int(m.group(1))
        if minutes <= 0:
            raise ValueError("Relative time must be at least +1 minute.")
        return (now + timedelta(minutes=minutes)).astimezone(timezone.utc)

    m = _CLOCK_RE.match(s)
    if m:
        local_now = now.astimezone()
        at = local_now.replace(hour=int(m.group(1)), minute=int(m.group(2)), second=0, microsecond=0)
        if at <= local_now:
            at += timedelta(days=1)
        return at.astimezone(timezone.utc)

    raise ValueError(f"Cannot parse time {text!r}. Use HH:MM or +minutes.")


def _fail(e: Exception) -> str:
    logger.debug("Command failed.", exc_info=True)
    return friendly_api_error_message(e)


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    snap = state.scheduler.snapshot()
    now = datetime.now(timezone.utc)

    lines = [
        "Status:",
        f"  Server: {getattr(state.settings, 'api_base_url', '?')}",
        f"  Notifications: {state.notifier.permission.value}",
        f"  Scheduler: {snap.state.value}",
    ]

    if snap.active_challenge is not None:
        lines.append(
            f"  Active: {snap.active_challenge.title} ({format_clock(snap.active_challenge.time_remaining)} left)"
        )
    elif snap.state == SchedulerState.COUNTDOWN:
        lines.append(f"  Starting in: {format_clock(snap.countdown_seconds)}")

    if snap.next_challenge is not None:
        lines.append(f"  Next: {_describe_scheduled(snap.next_challenge, now)}")
    elif snap.is_loading:
        lines.append("  Next: loading...")
    else:
        lines.append("  Next: nothing scheduled")

    alarm = state.alarms.active_alarm
    if alarm is not None:
        lines.append(f"  Alarm: {alarm.challenge.title} (/alarm start | snooze | cancel)")

    lines.append(f"  Pending reminders: {len(state.alarms.pending_notifications())}")
    return "\n".join(lines)


def cmd_next(state: AppState, args: list[str]) -> str:
    try:
        nxt = run_sync(state, state.scheduler.refresh())
    except Exception as e:
        return _fail(e)
    if nxt is None:
        return "Nothing scheduled. Use /schedule <challenge_id> <HH:MM|+minutes>."
    return f"Next: {_describe_scheduled(nxt, datetime.now(timezone.utc))}"


def cmd_start(state: AppState, args: list[str]) -> str:
    scheduler = state.scheduler
    snap = scheduler.snapshot()
    if snap.active_challenge is not None:
        return f"Already running: {snap.active_challenge.title}."
    if snap.next_challenge is None:
        return "No scheduled challenge to start."

    async def _start() -> None:
        scheduler.start_challenge()

    run_sync(state, _start())
    active = scheduler.snapshot().active_challenge
    title = active.title if active else snap.next_challenge.title
    return (
        f"Started: {title}. {format_clock(scheduler.challenge_duration_seconds)} on the clock. "
        "Use /done or /fail when finished."
    )


def _complete(state: AppState, status: CompletionStatus) -> str:
    scheduler = state.scheduler
    if scheduler.snapshot().active_challenge is None:
        return "No active challenge."
    if scheduler.is_completing:
        return "A completion is already being submitted."

    async def _do():
        # Checked on the loop: the auto-complete may have won since the snapshot above.
        if scheduler.active_challenge is None or scheduler.is_completing:
            return False, None
        return True, await scheduler.complete_challenge(scheduler.elapsed_seconds(), status)

    try:
        submitted, history = run_sync(state, _do())
    except Exception as e:
        return _fail(e)

    if not submitted:
        return "Already submitted: the challenge was completed before your answer arrived."
    if status == CompletionStatus.SUCCESS:
        points = f" +{history.points_earned} points." if history is not None else ""
        return f"Well done!{points}"
    return "Marked as failed. Streak reset; try the next one."


def cmd_done(state: AppState, args: list[str]) -> str:
    return _complete(state, CompletionStatus.SUCCESS)


def cmd_fail(state: AppState, args: list[str]) -> str:
    return _complete(state, CompletionStatus.FAILED)


def cmd_cancel(state: AppState, args: list[str]) -> str:
    snap = state.scheduler.snapshot()
    if snap.active_challenge is None and snap.next_challenge is None:
        return "Nothing to cancel."
    try:
        run_sync(state, state.scheduler.cancel_challenge())
    except Exception as e:
        return _fail(e)
    return "Challenge cancelled."


def cmd_postpone(state: AppState, args: list[str]) -> str:
    snap = state.scheduler.snapshot()
    if snap.active_challenge is None and snap.next_challenge is None:
        return "Nothing to postpone."
    try:
        run_sync(state, state.scheduler.postpone_challenge())
    except Exception as e:
        return _fail(e)
    return "Challenge postponed by 2 minutes."


def cmd_alarm(state: AppState, args: list[str]) -> str:
    """
    /alarm          -> show the ringing alarm
    /alarm start    -> start it now
    /alarm snooze   -> remind again later
    /alarm cancel   -> drop it
    """
    alarms = state.alarms
    alarm = alarms.active_alarm
    if alarm is None:
        return "No alarm is ringing."

    if not args:
        c = alarm.challenge
        return (
            f"Alarm: {c.title} [{c.category}/{c.difficulty}, +{c.points}]\n"
            f"  {c.instructions}\n"
            "Use /alarm start | /alarm snooze | /alarm cancel."
        )

    sub = args[0].lower()
    try:
        if sub == "start":
            run_sync(state, alarms.start())
            return f"Go! {alarm.challenge.title}\n  {alarm.challenge.instructions}"
        if sub == "snooze":
            run_sync(state, alarms.snooze())
            minutes = getattr(state.settings, "snooze_minutes", 2)
            return f"Snoozed for {minutes:g} minutes."
        if sub == "cancel":
            run_sync(state, alarms.cancel())
            return "Alarm cancelled."
    except Exception as e:
        return _fail(e)

    return "Usage: /alarm [start|snooze|cancel]."


def cmd_schedule(state: AppState, args: list[str]) -> str:
    if len(args) != 2:
        return "Usage: /schedule <challenge_id> <HH:MM|+minutes>."
    challenge_id, raw_when = args
    try:
        when = parse_when(raw_when, datetime.now().astimezone())
        run_sync(state, state.alarms.schedule_challenge(challenge_id, when))
    except Exception as e:
        return _fail(e)
    return f"Scheduled {challenge_id} at {_local_hm(when)}."


def cmd_challenges(state: AppState, args: list[str]) -> str:
    category = args[0].lower() if args else None
    if category is not None and category not in {c.value for c in ChallengeCategory}:
        valid = ", ".join(c.value for c in ChallengeCategory)
        return f"Unknown category {category!r}. Choose one of: {valid}."
    try:
        challenges = run_sync(state, state.api.list_challenges(category))
    except Exception as e:
        return _fail(e)
    if not challenges:
        return "No challenges found."
    lines = [f"Challenges ({len(challenges)}):"]
    for c in challenges:
        lines.append(f"  [{c.category}/{c.difficulty}] {c.title} (+{c.points}) id={c.id}")
    return "\n".join(lines)


def cmd_random(state: AppState, args: list[str]) -> str:
    try:
        c = run_sync(state, state.api.get_random_challenge())
    except Exception as e:
        return _fail(e)
    return (
        f"{c.title} [{c.category}/{c.difficulty}, +{c.points}] id={c.id}\n"
        f"  {c.description}\n"
        f"  {c.instructions}"
    )


def cmd_progress(state: AppState, args: list[str]) -> str:
    try:
        p = run_sync(state, state.api.get_progress())
    except Exception as e:
        return _fail(e)
    return (
        "Progress:\n"
        f"  Completed: {p.total_challenges_completed}\n"
        f"  Current streak: {p.current_streak} day(s)\n"
        f"  Longest streak: {p.longest_streak} day(s)\n"
        f"  Points: {p.total_points}\n"
        f"  Last completed: {p.last_completed_date or '-'}"
    )


def cmd_history(state: AppState, args: list[str]) -> str:
    limit = 10
    if args:
        try:
            limit = max(1, int(args[0]))
        except ValueError:
            return "Usage: /history [count]."
    try:
        rows = run_sync(state, state.api.get_history())
    except Exception as e:
        return _fail(e)
    if not rows:
        return "No completed challenges yet."
    lines = [f"History (latest {min(limit, len(rows))} of {len(rows)}):"]
    for row in rows[:limit]:
        when = row.completed_at.astimezone().strftime("%Y-%m-%d %H:%M") if row.completed_at else "?"
        spent = f"{row.time_spent}s" if row.time_spent is not None else "-"
        pts = row.points_earned if row.points_earned is not None else 0
        lines.append(f"  {when}  {row.challenge.title}  {spent}  +{pts}")
    return "\n".join(lines)


def cmd_achievements(state: AppState, args: list[str]) -> str:
    try:
        items = run_sync(state, state.api.get_user_achievements())
    except Exception as e:
        return _fail(e)
    if not items:
        return "No achievements available."
    unlocked = sum(1 for a in items if a.unlocked)
    lines = [f"Achievements ({unlocked}/{len(items)} unlocked):"]
    for a in items:
        mark = "x" if a.unlocked else " "
        ach = a.achievement
        lines.append(
            f"  [{mark}] {ach.name} - {ach.description} "
            f"({a.progress}/{ach.requirement_value}, {a.progress_percent}%)"
        )
    return "\n".join(lines)


def cmd_stats(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    days = 7
    if args:
        try:
            days = max(1, min(365, int(args[0])))
        except ValueError:
            return "Usage: /stats [days]."

    if emit:
        with contextlib.suppress(Exception):
            emit(f"Loading analytics for the last {days} day(s)...")

    try:
        daily = run_sync(state, state.api.get_daily_stats(days))
        categories = run_sync(state, state.api.get_category_distribution())
    except Exception as e:
        return _fail(e)

    total = sum(d.count for d in daily)
    points = sum(d.points for d in daily)
    lines = [f"Last {days} day(s): {total} challenge(s), {points} point(s)"]
    for d in daily:
        lines.append(f"  {d.date}  {'#' * d.count}{' ' if d.count else ''}{d.count}")
    if categories:
        lines.append("By category:")
        for c in sorted(categories, key=lambda x: x.count, reverse=True):
            lines.append(f"  {c.category}: {c.count} ({c.percentage}%)")
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show scheduler state, next challenge and alarm.")
registry.register("next", cmd_next, help_text="Ask the server for the next scheduled challenge.")
registry.register("start", cmd_start, help_text="Start the next scheduled challenge now.")
registry.register("done", cmd_done, help_text="Complete the active challenge.", aliases=["complete"])
registry.register("fail", cmd_fail, help_text="Give up on the active challenge.")
registry.register("cancel", cmd_cancel, help_text="Cancel the active or next scheduled challenge.")
registry.register("postpone", cmd_postpone, help_text="Postpone the active or next challenge by 2 minutes.")
registry.register("alarm", cmd_alarm, help_text="Answer the ringing alarm: /alarm start | snooze | cancel.")
registry.register("schedule", cmd_schedule, help_text="Schedule a challenge: /schedule <id> <HH:MM|+minutes>.")
registry.register("challenges", cmd_challenges, help_text="List challenges: /challenges [category].", aliases=["ls"])
registry.register("random", cmd_random, help_text="Show a random challenge.")
registry.register("progress", cmd_progress, help_text="Show streaks and points.")
registry.register("history", cmd_history, help_text="Show completed challenges: /history [count].")
registry.register("achievements", cmd_achievements, help_text="Show achievement progress.")
registry.register("stats", cmd_stats, help_text="Show daily and category analytics: /stats [days].")
