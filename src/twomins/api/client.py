# src/twomins/api/client.py

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any

import httpx

from ..core.models import (
    AchievementShare,
    AchievementWithProgress,
    Achievement,
    CategoryStat,
    Challenge,
    ChallengeDraft,
    ChallengeHistory,
    ChallengeWithDetails,
    CompletionResult,
    CompletionStatus,
    DailyStat,
    ScheduledChallenge,
    ScheduleStatus,
    TrendStat,
    User,
    UserProgress,
    format_datetime,
)

logger = logging.getLogger(__name__)

MAX_TIME_SPENT_SECONDS = 120

_SCHEDULE_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class ApiError(Exception):
    """Non-2xx reply from the 2Mins server."""

    def __init__(self, status_code: int | None, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.status_code}: {self.message}"


class ApiConnectionError(ApiError):
    """The server could not be reached (DNS, refused connection, timeout)."""

    def __init__(self, message: str) -> None:
        super().__init__(None, message)


def friendly_api_error_message(exc: BaseException) -> str:
    """Short one-line text for the console."""
    if isinstance(exc, ApiConnectionError):
        return "Cannot reach the 2Mins server. Check TWOMINS_API_BASE_URL and your connection."
    if isinstance(exc, ApiError):
        if exc.status_code == 401:
            return "Not signed in (session expired?). Set TWOMINS_SESSION_COOKIE and restart."
        if exc.status_code == 404:
            return f"Not found: {exc.message}"
        if exc.status_code is not None and exc.status_code >= 500:
            return f"Server error: {exc.message}"
        return exc.message
    if isinstance(exc, ValueError):
        return str(exc)
    return "Unexpected error. See the log file for details."


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return "Request failed"
    if isinstance(body, dict):
        msg = body.get("error") or body.get("message")
        if msg:
            return str(msg)
    return "Request failed"


def validate_time_spent(time_spent: int) -> int:
    if isinstance(time_spent, bool) or not isinstance(time_spent, int):
        raise ValueError("time_spent must be an integer number of seconds")
    if time_spent < 0 or time_spent > MAX_TIME_SPENT_SECONDS:
        raise ValueError(f"time_spent must be between 0 and {MAX_TIME_SPENT_SECONDS} seconds")
    return time_spent


def validate_schedule_times(times: list[str]) -> list[str]:
    clean: list[str] = []
    for t in times:
        s = (t or "").strip()
        if not _SCHEDULE_TIME_RE.match(s):
            raise ValueError(f"Invalid schedule time {t!r}; expected HH:MM")
        clean.append(s)
    return clean


class TwoMinsApiClient:
    """
    Async client for the 2Mins REST API.

    - one lazily created httpx.AsyncClient per instance (must be used from one event loop)
    - session cookie from settings is sent on every request; Set-Cookie updates land in
      the client's cookie jar
    - no retries: callers decide what a failure means
    """

    def __init__(
        self,
        settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = str(getattr(settings, "api_base_url", "") or "").rstrip("/")
        self._session_cookie = getattr(settings, "session_cookie", None)
        self._timeout = httpx.Timeout(
            connect=float(getattr(settings, "http_connect_timeout_seconds", 5.0)),
            read=float(getattr(settings, "http_read_timeout_seconds", 15.0)),
            write=10.0,
            pool=float(getattr(settings, "http_connect_timeout_seconds", 5.0)),
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> TwoMinsApiClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        if not self._base_url:
            raise ApiConnectionError("2Mins API base URL is not configured (TWOMINS_API_BASE_URL).")

        headers = {"Accept": "application/json"}
        if self._session_cookie:
            headers["Cookie"] = self._session_cookie

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=self._timeout,
            transport=self._transport,
        )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        client = self._get_client()
        try:
            response = await client.request(method, path, json=json, params=params)
        except httpx.TimeoutException as e:
            logger.debug("%s %s timed out", method, path, exc_info=True)
            raise ApiConnectionError(f"Request timed out: {method} {path}") from e
        except httpx.TransportError as e:
            logger.debug("%s %s transport error", method, path, exc_info=True)
            raise ApiConnectionError(f"Connection failed: {method} {path}") from e

        if response.is_error:
            message = _error_message(response)
            logger.debug("%s %s -> %s %s", method, path, response.status_code, message)
            raise ApiError(response.status_code, message)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(response.status_code, "Server returned invalid JSON") from e

    # ---- challenges ----

    async def list_challenges(self, category: str | None = None) -> list[Challenge]:
        params = {"category": category} if category else None
        data = await self._request("GET", "/api/challenges", params=params)
        return [Challenge.from_api(c) for c in data or []]

    async def get_challenge(self, challenge_id: str) -> Challenge:
        data = await self._request("GET", f"/api/challenges/{challenge_id}")
        return Challenge.from_api(data)

    async def get_random_challenge(self) -> Challenge:
        data = await self._request("GET", "/api/challenges/random")
        return Challenge.from_api(data)

    async def get_challenges_by_category(self, category: str) -> list[Challenge]:
        data = await self._request("GET", f"/api/challenges/category/{category}")
        return [Challenge.from_api(c) for c in data or []]

    async def get_personalized_challenges(self) -> list[Challenge]:
        data = await self._request("GET", "/api/challenges/personalized")
        return [Challenge.from_api(c) for c in data or []]

    async def list_my_challenges(self) -> list[Challenge]:
        data = await self._request("GET", "/api/challenges/user/my-challenges")
        return [Challenge.from_api(c) for c in data or []]

    async def create_challenge(self, draft: ChallengeDraft) -> Challenge:
        data = await self._request("POST", "/api/challenges", json=draft.to_api())
        return Challenge.from_api(data)

    async def update_challenge(self, challenge_id: str, draft: ChallengeDraft) -> Challenge:
        data = await self._request("PATCH", f"/api/challenges/{challenge_id}", json=draft.to_api())
        return Challenge.from_api(data)

    async def delete_challenge(self, challenge_id: str) -> None:
        await self._request("DELETE", f"/api/challenges/{challenge_id}")

    async def complete_challenge(self, challenge_id: str, time_spent: int) -> CompletionResult:
        """Record an unscheduled completion (challenge detail page flow)."""
        body = {"timeSpent": validate_time_spent(time_spent)}
        data = await self._request("POST", f"/api/challenges/{challenge_id}/complete", json=body)
        return CompletionResult.from_api(data or {})

    # ---- scheduled challenges ----

    async def get_next_scheduled(self) -> ScheduledChallenge | None:
        data = await self._request("GET", "/api/challenges/scheduled/next")
        if not data:
            return None
        return ScheduledChallenge.from_api(data)

    async def cancel_scheduled(self, scheduled_id: str) -> None:
        await self._request("POST", f"/api/challenges/scheduled/{scheduled_id}/cancel")

    async def postpone_scheduled(self, scheduled_id: str) -> ScheduledChallenge | None:
        data = await self._request("POST", f"/api/challenges/scheduled/{scheduled_id}/postpone")
        return ScheduledChallenge.from_api(data) if isinstance(data, dict) and data.get("id") else None

    async def complete_scheduled(
        self, scheduled_id: str, *, time_spent: int, status: str
    ) -> ChallengeHistory | None:
        body = {
            "timeSpent": validate_time_spent(time_spent),
            "status": CompletionStatus(status).value,
        }
        data = await self._request("POST", f"/api/challenges/scheduled/{scheduled_id}/complete", json=body)
        return ChallengeHistory.from_api(data) if isinstance(data, dict) and data.get("id") else None

    async def list_scheduled(self) -> list[ScheduledChallenge]:
        data = await self._request("GET", "/api/scheduled-challenges")
        return [ScheduledChallenge.from_api(s) for s in data or []]

    async def create_scheduled(self, challenge_id: str, scheduled_time: datetime) -> ScheduledChallenge | None:
        body = {
            "challengeId": challenge_id,
            "scheduledTime": format_datetime(scheduled_time),
            "status": ScheduleStatus.PENDING.value,
        }
        data = await self._request("POST", "/api/scheduled-challenges", json=body)
        return ScheduledChallenge.from_api(data) if isinstance(data, dict) and data.get("id") else None

    async def update_scheduled(self, scheduled_id: str, **fields: Any) -> Any:
        """
        PATCH a scheduled challenge. Keyword names are sent as-is, so callers use
        the server's camelCase names (status=..., snoozedUntil=...).
        """
        body: dict[str, Any] = {}
        for key, value in fields.items():
            if isinstance(value, datetime):
                value = format_datetime(value)
            elif isinstance(value, ScheduleStatus):
                value = value.value
            body[key] = value
        return await self._request("PATCH", f"/api/scheduled-challenges/{scheduled_id}", json=body)

    # ---- progress / history ----

    async def get_progress(self) -> UserProgress:
        data = await self._request("GET", "/api/progress")
        return UserProgress.from_api(data or {})

    async def get_history(self) -> list[ChallengeWithDetails]:
        data = await self._request("GET", "/api/history")
        return [ChallengeWithDetails.from_api(h) for h in data or []]

    # ---- achievements ----

    async def list_achievements(self) -> list[Achievement]:
        data = await self._request("GET", "/api/achievements")
        return [Achievement.from_api(a) for a in data or []]

    async def get_user_achievements(self) -> list[AchievementWithProgress]:
        data = await self._request("GET", "/api/achievements/user")
        return [AchievementWithProgress.from_api(a) for a in data or []]

    async def get_achievement_share(self, user_achievement_id: str) -> AchievementShare:
        data = await self._request("GET", f"/api/achievements/share/{user_achievement_id}")
        return AchievementShare.from_api(data or {})

    # ---- analytics ----

    async def get_daily_stats(self, days: int = 30) -> list[DailyStat]:
        data = await self._request("GET", "/api/analytics/daily", params={"days": max(1, int(days))})
        return [DailyStat.from_api(d) for d in data or []]

    async def get_category_distribution(self) -> list[CategoryStat]:
        data = await self._request("GET", "/api/analytics/category")
        return [CategoryStat.from_api(d) for d in data or []]

    async def get_weekly_trend(self) -> list[TrendStat]:
        data = await self._request("GET", "/api/analytics/weekly")
        return [TrendStat.from_api(d) for d in data or []]

    async def get_monthly_trend(self) -> list[TrendStat]:
        data = await self._request("GET", "/api/analytics/monthly")
        return [TrendStat.from_api(d) for d in data or []]

    # ---- user / settings ----

    async def get_current_user(self) -> User:
        data = await self._request("GET", "/api/auth/user")
        return User.from_api(data or {})

    async def get_settings(self) -> dict[str, Any]:
        data = await self._request("GET", "/api/settings")
        return data if isinstance(data, dict) else {}

    async def update_schedule_settings(
        self, *, enable_notifications: bool, schedule_times: list[str]
    ) -> dict[str, Any]:
        body = {
            "enableNotifications": bool(enable_notifications),
            "challengeScheduleTimes": validate_schedule_times(schedule_times),
        }
        data = await self._request("PUT", "/api/settings/schedule", json=body)
        return data if isinstance(data, dict) else {}
