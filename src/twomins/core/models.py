# src/twomins/core/models.py

"""
Client-side data model.

The server speaks camelCase JSON; every entity has a `from_api` constructor that
normalises it into a dataclass with snake_case fields and timezone-aware datetimes.
Only the shapes the client sends back have a `to_api` counterpart.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any


class ChallengeCategory(StrEnum):
    PHYSICAL = "physical"
    MENTAL = "mental"
    LEARNING = "learning"
    FINANCE = "finance"
    RELATIONSHIPS = "relationships"


class ChallengeDifficulty(StrEnum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class CompletionStatus(StrEnum):
    SUCCESS = "success"
    FAILED = "failed"

    @classmethod
    def from_api(cls, raw: str | None) -> CompletionStatus:
        if not raw:
            return cls.SUCCESS
        try:
            return cls(raw)
        except ValueError:
            return cls.SUCCESS


class ScheduleStatus(StrEnum):
    """Lifecycle of a scheduled challenge as stored by the server."""

    PENDING = "pending"
    NOTIFIED = "notified"
    SNOOZED = "snoozed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @classmethod
    def from_api(cls, raw: str | None) -> ScheduleStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING


class FriendshipStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"

    @classmethod
    def from_api(cls, raw: str | None) -> FriendshipStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING


class RequirementType(StrEnum):
    CHALLENGES_COMPLETED = "challenges_completed"
    STREAK_DAYS = "streak_days"
    TOTAL_POINTS = "total_points"
    CATEGORY_CHALLENGES = "category_challenges"
    ALL_CATEGORIES = "all_categories"


# ---- parsing helpers ----


def parse_datetime(raw: Any) -> datetime | None:
    """ISO-8601 (with optional trailing Z) -> aware UTC datetime. Naive values are UTC."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        dt = raw
    else:
        s = str(raw).strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_datetime(dt: datetime) -> str:
    """Aware datetime -> ISO string with millisecond precision and a Z suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _require(data: dict[str, Any], key: str, entity: str) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise ValueError(f"{entity} payload is missing '{key}'")
    return value


def _pick(data: dict[str, Any], *keys: str) -> Any:
    """First non-None value among `keys` (camelCase first, snake_case fallback)."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _opt_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# ---- entities ----


@dataclass(slots=True)
class User:
    id: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    profile_image_url: str | None = None
    preferred_categories: list[str] = field(default_factory=list)
    preferred_days: list[str] = field(default_factory=list)
    challenge_schedule_times: list[str] = field(default_factory=list)
    enable_notifications: bool = True
    onboarding_completed: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def display_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        if parts:
            return " ".join(parts)
        return self.email or self.id

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> User:
        return cls(
            id=str(_require(data, "id", "User")),
            email=_opt_str(data.get("email")),
            first_name=_opt_str(data.get("firstName")),
            last_name=_opt_str(data.get("lastName")),
            profile_image_url=_opt_str(data.get("profileImageUrl")),
            preferred_categories=list(data.get("preferredCategories") or []),
            preferred_days=list(data.get("preferredDays") or []),
            challenge_schedule_times=list(data.get("challengeScheduleTimes") or []),
            enable_notifications=bool(data.get("enableNotifications", True)),
            onboarding_completed=bool(data.get("onboardingCompleted", False)),
            created_at=parse_datetime(data.get("createdAt")),
            updated_at=parse_datetime(data.get("updatedAt")),
        )


@dataclass(slots=True)
class Challenge:
    id: str
    title: str
    description: str
    category: str
    difficulty: str
    instructions: str
    points: int = 10
    subcategory: str | None = None
    created_by: str | None = None  # None = system challenge
    created_at: datetime | None = None

    @property
    def is_system(self) -> bool:
        return self.created_by is None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Challenge:
        return cls(
            id=str(_require(data, "id", "Challenge")),
            title=str(_require(data, "title", "Challenge")),
            description=str(data.get("description") or ""),
            category=str(data.get("category") or ""),
            difficulty=str(data.get("difficulty") or ChallengeDifficulty.EASY.value),
            instructions=str(data.get("instructions") or ""),
            points=_int(data.get("points"), 10),
            subcategory=_opt_str(data.get("subcategory")),
            created_by=_opt_str(_pick(data, "createdBy", "created_by")),
            created_at=parse_datetime(_pick(data, "createdAt", "created_at")),
        )


@dataclass(slots=True)
class ChallengeDraft:
    """Fields a user sends when creating or editing their own challenge."""

    title: str
    description: str
    category: ChallengeCategory
    difficulty: ChallengeDifficulty
    instructions: str
    points: int = 10
    subcategory: str | None = None

    def to_api(self) -> dict[str, Any]:
        if not self.title.strip():
            raise ValueError("title is required")
        if not self.instructions.strip():
            raise ValueError("instructions are required")
        return {
            "title": self.title.strip(),
            "description": self.description.strip(),
            "category": ChallengeCategory(self.category).value,
            "subcategory": self.subcategory,
            "difficulty": ChallengeDifficulty(self.difficulty).value,
            "points": int(self.points),
            "instructions": self.instructions.strip(),
        }


@dataclass(slots=True)
class UserProgress:
    total_challenges_completed: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    total_points: int = 0
    last_completed_date: str | None = None
    id: str | None = None
    user_id: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> UserProgress:
        return cls(
            total_challenges_completed=_int(data.get("totalChallengesCompleted")),
            current_streak=_int(data.get("currentStreak")),
            longest_streak=_int(data.get("longestStreak")),
            total_points=_int(data.get("totalPoints")),
            last_completed_date=_opt_str(data.get("lastCompletedDate")),
            id=_opt_str(data.get("id")),
            user_id=_opt_str(data.get("userId")),
        )


@dataclass(slots=True)
class ChallengeHistory:
    id: str
    challenge_id: str
    completed_at: datetime | None
    time_spent: int
    points_earned: int
    status: CompletionStatus = CompletionStatus.SUCCESS
    postponed_count: int = 0
    scheduled_time: datetime | None = None
    user_id: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ChallengeHistory:
        return cls(
            id=str(_require(data, "id", "ChallengeHistory")),
            challenge_id=str(data.get("challengeId") or ""),
            completed_at=parse_datetime(data.get("completedAt")),
            time_spent=_int(data.get("timeSpent")),
            points_earned=_int(data.get("pointsEarned")),
            status=CompletionStatus.from_api(data.get("status")),
            postponed_count=_int(data.get("postponedCount")),
            scheduled_time=parse_datetime(data.get("scheduledTime")),
            user_id=_opt_str(data.get("userId")),
        )


@dataclass(slots=True)
class CompletionResult:
    """Reply to a direct (unscheduled) challenge completion."""

    success: bool
    points_earned: int
    history_entry: ChallengeHistory | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> CompletionResult:
        entry = data.get("historyEntry")
        return cls(
            success=bool(data.get("success", True)),
            points_earned=_int(data.get("pointsEarned")),
            history_entry=ChallengeHistory.from_api(entry) if isinstance(entry, dict) else None,
        )


@dataclass(slots=True)
class ChallengeWithDetails:
    """History listing row: the challenge plus how it went."""

    challenge: Challenge
    completed_at: datetime | None = None
    time_spent: int | None = None
    points_earned: int | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ChallengeWithDetails:
        ts = data.get("timeSpent")
        pts = data.get("pointsEarned")
        return cls(
            challenge=Challenge.from_api(data),
            completed_at=parse_datetime(data.get("completedAt")),
            time_spent=None if ts is None else _int(ts),
            points_earned=None if pts is None else _int(pts),
        )


@dataclass(slots=True)
class Achievement:
    id: str
    name: str
    description: str
    requirement_type: str
    requirement_value: int
    icon: str | None = None
    category: str | None = None
    requirement_meta: dict[str, Any] = field(default_factory=dict)
    tier: str | None = None
    sort_order: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Achievement:
        meta = data.get("requirementMeta")
        return cls(
            id=str(_require(data, "id", "Achievement")),
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            requirement_type=str(data.get("requirementType") or ""),
            requirement_value=_int(data.get("requirementValue"), 1),
            icon=_opt_str(data.get("icon")),
            category=_opt_str(data.get("category")),
            requirement_meta=meta if isinstance(meta, dict) else {},
            tier=_opt_str(data.get("tier")),
            sort_order=_int(data.get("sortOrder")),
        )


@dataclass(slots=True)
class UserAchievement:
    id: str
    user_id: str
    achievement_id: str
    unlocked_at: datetime | None = None
    progress: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> UserAchievement:
        return cls(
            id=str(_require(data, "id", "UserAchievement")),
            user_id=str(data.get("userId") or ""),
            achievement_id=str(data.get("achievementId") or ""),
            unlocked_at=parse_datetime(data.get("unlockedAt")),
            progress=_int(data.get("progress")),
        )


@dataclass(slots=True)
class AchievementWithProgress:
    """Achievement plus the per-user progress the server computed."""

    achievement: Achievement
    unlocked: bool = False
    unlocked_at: datetime | None = None
    progress: int = 0
    progress_percent: int = 0
    user_achievement_id: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> AchievementWithProgress:
        return cls(
            achievement=Achievement.from_api(data),
            unlocked=bool(data.get("unlocked", False)),
            unlocked_at=parse_datetime(data.get("unlockedAt")),
            progress=_int(data.get("progress")),
            progress_percent=max(0, min(100, _int(data.get("progressPercent")))),
            user_achievement_id=_opt_str(data.get("userAchievementId")),
        )


@dataclass(slots=True)
class AchievementShare:
    achievement: Achievement
    first_name: str | None
    last_name: str | None
    profile_image_url: str | None
    unlocked_at: datetime | None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> AchievementShare:
        user = data.get("user") or {}
        return cls(
            achievement=Achievement.from_api(_require(data, "achievement", "AchievementShare")),
            first_name=_opt_str(user.get("firstName")),
            last_name=_opt_str(user.get("lastName")),
            profile_image_url=_opt_str(user.get("profileImageUrl")),
            unlocked_at=parse_datetime(data.get("unlockedAt")),
        )


@dataclass(slots=True)
class Friendship:
    id: str
    requester_id: str
    receiver_id: str
    status: FriendshipStatus
    created_at: datetime | None = None
    responded_at: datetime | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Friendship:
        return cls(
            id=str(_require(data, "id", "Friendship")),
            requester_id=str(data.get("requesterId") or ""),
            receiver_id=str(data.get("receiverId") or ""),
            status=FriendshipStatus.from_api(data.get("status")),
            created_at=parse_datetime(data.get("createdAt")),
            responded_at=parse_datetime(data.get("respondedAt")),
        )


@dataclass(slots=True)
class ScheduledChallenge:
    id: str
    challenge_id: str
    scheduled_time: datetime
    status: ScheduleStatus = ScheduleStatus.PENDING
    snoozed_until: datetime | None = None
    created_at: datetime | None = None
    user_id: str | None = None
    challenge: Challenge | None = None

    @property
    def title(self) -> str:
        return self.challenge.title if self.challenge else self.challenge_id

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ScheduledChallenge:
        # The next-challenge endpoint is mapped to camelCase and embeds `challenge`;
        # the list endpoint returns raw snake_case rows with a joined `challenges`.
        embedded = data.get("challenge") or data.get("challenges")
        raw_time = _pick(data, "scheduledTime", "scheduled_time")
        if raw_time is None or raw_time == "":
            raise ValueError("ScheduledChallenge payload is missing 'scheduledTime'")
        scheduled_time = parse_datetime(raw_time)
        if scheduled_time is None:
            raise ValueError("ScheduledChallenge payload has an empty 'scheduledTime'")
        return cls(
            id=str(_require(data, "id", "ScheduledChallenge")),
            challenge_id=str(_pick(data, "challengeId", "challenge_id") or (embedded or {}).get("id") or ""),
            scheduled_time=scheduled_time,
            status=ScheduleStatus.from_api(data.get("status")),
            snoozed_until=parse_datetime(_pick(data, "snoozedUntil", "snoozed_until")),
            created_at=parse_datetime(_pick(data, "createdAt", "created_at")),
            user_id=_opt_str(_pick(data, "userId", "user_id")),
            challenge=Challenge.from_api(embedded) if isinstance(embedded, dict) else None,
        )


@dataclass(slots=True)
class ActiveChallenge:
    scheduled_challenge_id: str
    challenge: Challenge | None
    start_time: datetime
    time_remaining: float

    @property
    def title(self) -> str:
        return self.challenge.title if self.challenge else self.scheduled_challenge_id


# ---- analytics rows ----


@dataclass(slots=True, frozen=True)
class DailyStat:
    date: str
    count: int
    points: int

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> DailyStat:
        return cls(date=str(data.get("date") or ""), count=_int(data.get("count")), points=_int(data.get("points")))


@dataclass(slots=True, frozen=True)
class CategoryStat:
    category: str
    count: int
    percentage: int

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> CategoryStat:
        return cls(
            category=str(data.get("category") or ""),
            count=_int(data.get("count")),
            percentage=_int(data.get("percentage")),
        )


@dataclass(slots=True, frozen=True)
class TrendStat:
    period: str  # week start (YYYY-MM-DD) or month (YYYY-MM)
    count: int
    points: int

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> TrendStat:
        period = data.get("week") or data.get("month") or data.get("period") or ""
        return cls(period=str(period), count=_int(data.get("count")), points=_int(data.get("points")))
