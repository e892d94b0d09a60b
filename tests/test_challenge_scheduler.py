# tests/test_challenge_scheduler.py

from __future__ import annotations

import asyncio
import json
from datetime import timedelta

import httpx
import pytest

from twomins.api.client import MAX_TIME_SPENT_SECONDS, ApiError, TwoMinsApiClient
from twomins.core.models import CompletionStatus, format_datetime
from twomins.scheduler.challenge_scheduler import ChallengeScheduler, SchedulerSnapshot, SchedulerState

from .fakes import FakeApi, FakeClock, make_scheduled, recording_notifier


def _scheduler(api: FakeApi, clock: FakeClock, **kw):
    notifier, shown = recording_notifier()
    return ChallengeScheduler(api, notifier, clock=clock, **kw), shown


@pytest.mark.asyncio
async def test_countdown_starts_inside_window_with_one_reminder(api: FakeApi, clock: FakeClock) -> None:
    api.next_scheduled = make_scheduled(at=clock.now + timedelta(seconds=90.4))
    sched, shown = _scheduler(api, clock)

    await sched.refresh()
    await sched.refresh()

    assert sched.state == SchedulerState.COUNTDOWN
    assert sched.countdown_seconds == 91
    assert sched.is_loading is False
    assert [n.title for n in shown] == ["⏰ Challenge in 2 Minutes!"]
    assert shown[0].tag == "challenge-s1"
    assert shown[0].data["type"] == "challenge-reminder"


@pytest.mark.asyncio
async def test_far_future_challenge_stays_idle(api: FakeApi, clock: FakeClock) -> None:
    api.next_scheduled = make_scheduled(at=clock.now + timedelta(seconds=300))
    sched, shown = _scheduler(api, clock)

    await sched.refresh()

    assert sched.state == SchedulerState.IDLE
    assert sched.next_challenge is not None
    assert shown == []


@pytest.mark.asyncio
async def test_overdue_challenge_starts_immediately(api: FakeApi, clock: FakeClock) -> None:
    api.next_scheduled = make_scheduled(at=clock.now - timedelta(seconds=5))
    sched, shown = _scheduler(api, clock)

    await sched.refresh()

    assert sched.state == SchedulerState.ACTIVE
    assert sched.active_challenge is not None
    assert sched.active_challenge.scheduled_challenge_id == "s1"
    assert sched.active_challenge.time_remaining == 120.0
    assert sched.active_challenge.start_time == clock.now
    assert [n.tag for n in shown] == ["challenge-start-s1"]


@pytest.mark.asyncio
async def test_countdown_becomes_active_when_it_reaches_zero(api: FakeApi, clock: FakeClock) -> None:
    api.next_scheduled = make_scheduled(at=clock.now + timedelta(seconds=10))
    sched, _ = _scheduler(api, clock)
    await sched.refresh()

    clock.advance(4.5)
    await sched.tick()
    assert sched.state == SchedulerState.COUNTDOWN
    assert sched.countdown_seconds == 6

    clock.advance(5.5)
    await sched.tick()
    assert sched.state == SchedulerState.ACTIVE
    assert sched.countdown_seconds == 0


@pytest.mark.asyncio
async def test_time_up_completes_as_failed_exactly_once(api: FakeApi, clock: FakeClock) -> None:
    api.next_scheduled = make_scheduled(at=clock.now)
    sched, _ = _scheduler(api, clock)
    await sched.refresh()
    assert sched.state == SchedulerState.ACTIVE

    clock.advance(60)
    await sched.tick()
    assert sched.active_challenge is not None
    assert sched.active_challenge.time_remaining == pytest.approx(60.0)
    assert api.count("complete_scheduled") == 0

    clock.advance(59.95)
    await sched.tick()
    await sched.tick()

    assert api.count("complete_scheduled") == 1
    args, kwargs = api.last("complete_scheduled")
    assert args == ("s1",)
    assert kwargs == {"time_spent": 120, "status": "failed"}
    assert sched.state == SchedulerState.IDLE
    assert sched.active_challenge is None


@pytest.mark.asyncio
async def test_failed_auto_complete_is_not_retried(api: FakeApi, clock: FakeClock) -> None:
    api.next_scheduled = make_scheduled(at=clock.now)
    api.fail["complete_scheduled"] = ApiError(500, "boom")
    sched, _ = _scheduler(api, clock)
    await sched.refresh()

    clock.advance(120)
    for _ in range(5):
        await sched.tick()

    assert api.count("complete_scheduled") == 1
    assert sched.state == SchedulerState.ACTIVE
    assert sched.is_completing is False

    # The user can still finish it by hand.
    del api.fail["complete_scheduled"]
    history = await sched.complete_challenge(120, CompletionStatus.FAILED)
    assert history is not None
    assert sched.state == SchedulerState.IDLE


@pytest.mark.asyncio
async def test_duplicate_completion_is_ignored_while_in_flight(api: FakeApi, clock: FakeClock) -> None:
    api.next_scheduled = make_scheduled(at=clock.now)
    api.gate = asyncio.Event()
    sched, _ = _scheduler(api, clock)
    await sched.refresh()

    first = asyncio.create_task(sched.complete_challenge(30, CompletionStatus.SUCCESS))
    await asyncio.sleep(0)
    assert sched.is_completing is True

    assert await sched.complete_challenge(30, CompletionStatus.SUCCESS) is None
    clock.advance(200)
    await sched.tick()

    api.gate.set()
    history = await first

    assert history is not None
    assert history.status == CompletionStatus.SUCCESS
    assert api.count("complete_scheduled") == 1


@pytest.mark.asyncio
async def test_manual_completion_reports_elapsed_seconds_and_refreshes(api: FakeApi, clock: FakeClock) -> None:
    api.next_scheduled = make_scheduled(at=clock.now + timedelta(seconds=600))
    sched, _ = _scheduler(api, clock)
    await sched.refresh()

    sched.start_challenge()
    assert sched.state == SchedulerState.ACTIVE
    polls_before = api.count("get_next_scheduled")

    clock.advance(45.7)
    history = await sched.complete_challenge(sched.elapsed_seconds(), CompletionStatus.SUCCESS)

    assert history is not None
    assert history.points_earned == 10
    _, kwargs = api.last("complete_scheduled")
    assert kwargs["time_spent"] == 45
    assert sched.state == SchedulerState.IDLE
    assert api.count("get_next_scheduled") == polls_before + 1


@pytest.mark.asyncio
async def test_complete_without_active_challenge_is_a_noop(api: FakeApi, clock: FakeClock) -> None:
    sched, _ = _scheduler(api, clock)
    assert await sched.complete_challenge(10, CompletionStatus.SUCCESS) is None
    assert api.count("complete_scheduled") == 0


@pytest.mark.asyncio
async def test_start_challenge_is_ignored_when_already_active(api: FakeApi, clock: FakeClock) -> None:
    api.next_scheduled = make_scheduled(at=clock.now)
    sched, shown = _scheduler(api, clock)
    await sched.refresh()
    started = sched.active_challenge

    clock.advance(30)
    sched.start_challenge()

    assert sched.active_challenge is started
    assert len([n for n in shown if n.tag == "challenge-start-s1"]) == 1


@pytest.mark.asyncio
async def test_cancel_targets_next_challenge_and_returns_to_idle(api: FakeApi, clock: FakeClock) -> None:
    api.next_scheduled = make_scheduled(at=clock.now + timedelta(seconds=60))
    sched, _ = _scheduler(api, clock)
    await sched.refresh()
    assert sched.state == SchedulerState.COUNTDOWN

    await sched.cancel_challenge()

    assert api.last("cancel_scheduled")[0] == ("s1",)
    assert sched.state == SchedulerState.IDLE
    assert sched.next_challenge is None
    assert sched.countdown_seconds == 0


@pytest.mark.asyncio
async def test_postpone_targets_active_challenge(api: FakeApi, clock: FakeClock) -> None:
    api.next_scheduled = make_scheduled(at=clock.now)
    sched, _ = _scheduler(api, clock)
    await sched.refresh()

    await sched.postpone_challenge()

    assert api.last("postpone_scheduled")[0] == ("s1",)
    assert sched.active_challenge is None
    # Pushed two minutes out: back inside the reminder window.
    assert sched.state == SchedulerState.COUNTDOWN


@pytest.mark.asyncio
async def test_cancel_failure_propagates_and_keeps_state(api: FakeApi, clock: FakeClock) -> None:
    api.next_scheduled = make_scheduled(at=clock.now)
    api.fail["cancel_scheduled"] = ApiError(404, "Scheduled challenge not found")
    sched, _ = _scheduler(api, clock)
    await sched.refresh()

    with pytest.raises(ApiError):
        await sched.cancel_challenge()

    assert sched.state == SchedulerState.ACTIVE
    assert sched.active_challenge is not None


@pytest.mark.asyncio
async def test_cancel_without_target_does_nothing(api: FakeApi, clock: FakeClock) -> None:
    sched, _ = _scheduler(api, clock)
    await sched.cancel_challenge()
    await sched.postpone_challenge()
    assert api.count("cancel_scheduled") == 0
    assert api.count("postpone_scheduled") == 0


@pytest.mark.asyncio
async def test_refresh_error_keeps_previous_challenge(api: FakeApi, clock: FakeClock) -> None:
    api.next_scheduled = make_scheduled(at=clock.now + timedelta(seconds=600))
    sched, _ = _scheduler(api, clock)
    await sched.refresh()

    api.fail["get_next_scheduled"] = ApiError(None, "Connection failed")
    result = await sched.refresh()

    assert result is not None and result.id == "s1"
    assert sched.next_challenge is not None
    assert sched.is_loading is False


@pytest.mark.asyncio
async def test_countdown_resets_when_server_reports_another_challenge(api: FakeApi, clock: FakeClock) -> None:
    api.next_scheduled = make_scheduled(at=clock.now + timedelta(seconds=60))
    sched, _ = _scheduler(api, clock)
    await sched.refresh()
    assert sched.state == SchedulerState.COUNTDOWN

    api.next_scheduled = make_scheduled("s2", at=clock.now + timedelta(seconds=900))
    await sched.refresh()

    assert sched.state == SchedulerState.IDLE
    assert sched.countdown_seconds == 0
    assert sched.next_challenge is not None and sched.next_challenge.id == "s2"


@pytest.mark.asyncio
async def test_listener_receives_snapshots_on_transitions(api: FakeApi, clock: FakeClock) -> None:
    seen: list[SchedulerSnapshot] = []
    api.next_scheduled = make_scheduled(at=clock.now + timedelta(seconds=5))
    sched, _ = _scheduler(api, clock, on_change=seen.append)

    await sched.refresh()
    clock.advance(5)
    await sched.tick()

    states = [s.state for s in seen]
    assert SchedulerState.COUNTDOWN in states
    assert states[-1] == SchedulerState.ACTIVE
    assert seen[-1].active_challenge is not None


@pytest.mark.asyncio
async def test_no_notifications_without_permission(api: FakeApi, clock: FakeClock) -> None:
    notifier, shown = recording_notifier(granted=False)
    api.next_scheduled = make_scheduled(at=clock.now + timedelta(seconds=30))
    sched = ChallengeScheduler(api, notifier, clock=clock)

    await sched.refresh()

    assert sched.state == SchedulerState.COUNTDOWN
    assert shown == []


@pytest.mark.asyncio
async def test_run_loop_polls_requests_permission_and_stops(api: FakeApi, clock: FakeClock) -> None:
    notifier, _ = recording_notifier(granted=False)
    sched = ChallengeScheduler(
        api,
        notifier,
        clock=clock,
        poll_interval_seconds=0.05,
        tick_interval_seconds=0.01,
    )
    stop = asyncio.Event()
    runner = asyncio.create_task(sched.run(stop))

    await asyncio.sleep(0.2)
    stop.set()
    await asyncio.wait_for(runner, timeout=1.0)

    assert notifier.is_granted
    assert api.count("get_next_scheduled") >= 2


@pytest.mark.asyncio
async def test_invalid_status_does_not_leave_completion_guard_set(api: FakeApi, clock: FakeClock) -> None:
    api.next_scheduled = make_scheduled(at=clock.now)
    sched, _ = _scheduler(api, clock)
    await sched.refresh()

    with pytest.raises(ValueError):
        await sched.complete_challenge(10, "done")

    assert sched.is_completing is False
    assert api.count("complete_scheduled") == 0

    history = await sched.complete_challenge(10, CompletionStatus.SUCCESS)
    assert history is not None
    assert api.count("complete_scheduled") == 1
    assert sched.state == SchedulerState.IDLE


@pytest.mark.asyncio
async def test_duration_longer_than_server_limit_is_capped(settings, clock: FakeClock) -> None:
    served_next = {"done": False}
    posted: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/challenges/scheduled/next":
            if served_next["done"]:
                return httpx.Response(200, json=None)
            return httpx.Response(
                200,
                json={"id": "s1", "challengeId": "c1", "scheduledTime": format_datetime(clock.now)},
            )
        if request.url.path == "/api/challenges/scheduled/s1/complete":
            posted.append(json.loads(request.content))
            served_next["done"] = True
            return httpx.Response(200, json={"id": "h1", "challengeId": "c1", "timeSpent": 120, "status": "failed"})
        return httpx.Response(404, json={"error": "unexpected"})

    notifier, _ = recording_notifier()
    async with TwoMinsApiClient(settings, transport=httpx.MockTransport(handler)) as client:
        sched = ChallengeScheduler(client, notifier, clock=clock, challenge_duration_seconds=180)
        assert sched.challenge_duration_seconds == MAX_TIME_SPENT_SECONDS

        await sched.refresh()
        assert sched.state == SchedulerState.ACTIVE

        clock.advance(180)
        assert sched.elapsed_seconds() == MAX_TIME_SPENT_SECONDS
        await sched.tick()

    assert posted == [{"timeSpent": 120, "status": "failed"}]
    assert sched.state == SchedulerState.IDLE


@pytest.mark.asyncio
async def test_run_loop_does_not_poll_while_challenge_is_active(api: FakeApi, clock: FakeClock) -> None:
    api.next_scheduled = make_scheduled(at=clock.now)
    notifier, _ = recording_notifier()
    sched = ChallengeScheduler(
        api,
        notifier,
        clock=clock,
        poll_interval_seconds=0.02,
        tick_interval_seconds=0.01,
    )
    stop = asyncio.Event()
    runner = asyncio.create_task(sched.run(stop))

    await asyncio.sleep(0.05)
    assert sched.state == SchedulerState.ACTIVE
    polls = api.count("get_next_scheduled")

    # Several poll intervals pass; the fake clock stays put so nothing auto-completes.
    await asyncio.sleep(0.15)
    assert api.count("get_next_scheduled") == polls == 1

    await sched.cancel_challenge()
    after_cancel = api.count("get_next_scheduled")
    await asyncio.sleep(0.15)
    stop.set()
    await asyncio.wait_for(runner, timeout=1.0)

    assert api.count("get_next_scheduled") > after_cancel
