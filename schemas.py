"""Pydantic schemas for session records, evaluator results and badge data."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, model_validator

__all__ = [
    "CredentialLevelName",
    "InvalidSessionReason",
    "SessionRecord",
    "SessionValidationResult",
    "IntentEligibility",
    "WindowEligibility",
    "CredentialTierState",
    "CredentialFormatResult",
    "TimelineEntry",
    "CredentialStats",
    "CredentialData",
    "VerificationResult",
    "UserStats",
    "SessionsCriterion",
    "TimeCriterion",
    "StreakCriterion",
    "QuizScoreCriterion",
    "CredentialsCriterion",
    "ConsistencyCriterion",
    "BadgeCriterion",
    "BadgeDefinition",
    "EarnedBadge",
    "BadgeTier",
    "SessionHistory",
]

CredentialLevelName = Literal["Intent", "Practice", "Performance"]
InvalidSessionReason = Literal["too short", "too long", "cooldown violation"]
TierName = Literal["Bronze", "Silver", "Gold", "Platinum", "Diamond", "Challenger"]
Rarity = Literal["Common", "Uncommon", "Rare", "Epic", "Legendary"]
Operator = Literal[">=", ">", "=", "<", "<="]
Timeframe = Literal["day", "week", "month", "all_time"]

# Seconds of slack tolerated between ``end_time - start_time`` and ``duration``.
_DURATION_TOLERANCE_SECONDS = 1.0

_DATETIME = TypeAdapter(datetime)


class SessionRecord(BaseModel):
    """One timed learning attempt on a track."""

    model_config = {"frozen": True}

    id: str = Field(description="Opaque session identifier.")
    track_id: str = Field(description="Identifier of the track the session belongs to.")
    start_time: datetime
    end_time: datetime
    duration: float = Field(gt=0, description="Session length in minutes.")
    is_valid: bool | None = Field(
        default=None,
        description="Set once by the session validator; None while unvalidated.",
    )
    quiz_score: float | None = Field(default=None, ge=0.0, le=100.0)
    avg_response_time: float | None = Field(
        default=None,
        ge=0.0,
        description="Average per-question response time in seconds.",
    )
    questions_correct: int | None = Field(default=None, ge=0)
    questions_total: int | None = Field(default=None, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _derive_timing(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        start = data.get("start_time")
        end = data.get("end_time")
        duration = data.get("duration")
        if start is None:
            return data
        if end is None and duration is None:
            raise ValueError("either end_time or duration is required")
        data = dict(data)
        if duration is None:
            elapsed = _DATETIME.validate_python(end) - _DATETIME.validate_python(start)
            data["duration"] = elapsed.total_seconds() / 60.0
        elif end is None:
            data["end_time"] = _DATETIME.validate_python(start) + timedelta(minutes=float(duration))
        return data

    @model_validator(mode="after")
    def _check_consistency(self) -> "SessionRecord":
        elapsed = (self.end_time - self.start_time).total_seconds()
        if elapsed <= 0:
            raise ValueError("end_time must be after start_time")
        if abs(elapsed - self.duration * 60.0) > _DURATION_TOLERANCE_SECONDS:
            raise ValueError(
                f"duration {self.duration} min does not match end_time - start_time ({elapsed / 60.0:.2f} min)"
            )
        if (
            self.questions_correct is not None
            and self.questions_total is not None
            and self.questions_correct > self.questions_total
        ):
            raise ValueError("questions_correct cannot exceed questions_total")
        return self

    @property
    def has_quiz(self) -> bool:
        return self.quiz_score is not None


class SessionValidationResult(BaseModel):
    is_valid: bool
    reason: InvalidSessionReason | None = Field(
        default=None,
        description="Stable rejection code; safe for logging and tests, not for display.",
    )
    message: str | None = Field(default=None, description="Human-readable rejection text.")
    quality_score: float | None = Field(default=None, ge=0.3, le=1.0)


class IntentEligibility(BaseModel):
    eligible: bool
    current_streak: int
    required_streak: int
    quality_score: float


class WindowEligibility(BaseModel):
    eligible: bool
    active_days: int
    required_days: int
    window_days: int
    quality_score: float


class CredentialTierState(BaseModel):
    """Progress snapshot for one credential level, recomputed on every query."""

    tier: CredentialLevelName
    eligible: bool
    current: int = Field(description="Current streak (Intent) or active days in window.")
    required: int
    window_days: int | None = None
    quality_score: float
    quality_floor: float | None = None


class CredentialFormatResult(BaseModel):
    is_valid: bool
    reason: str | None = None


class TimelineEntry(BaseModel):
    week: str = Field(description="ISO date of the first day of the 7-day bucket.")
    active: bool


class CredentialStats(BaseModel):
    total_days: int = 0
    total_hours: float = 0.0
    longest_streak: int = 0
    average_session: float = Field(default=0.0, description="Mean session length in minutes.")


class CredentialData(BaseModel):
    """An issued credential; immutable once created."""

    model_config = {"frozen": True}

    id: str
    track_id: str
    track_title: str
    level: CredentialLevelName
    learner_name: str
    earned_date: date
    valid_until: date
    stats: CredentialStats = Field(default_factory=CredentialStats)
    timeline: list[TimelineEntry] = Field(default_factory=list)

    def is_active(self, now: datetime | date | None = None) -> bool:
        """Return True while ``now`` has not passed ``valid_until``."""

        if now is None:
            today = date.today()
        elif isinstance(now, datetime):
            today = now.date()
        else:
            today = now
        return self.earned_date <= today <= self.valid_until


class VerificationResult(BaseModel):
    is_valid: bool
    reason: str | None = None
    credential: CredentialData | None = None
    is_active: bool = False


class UserStats(BaseModel):
    """Aggregate statistics snapshot consumed by the badge rule engine."""

    total_sessions: int = 0
    total_hours: float = 0.0
    longest_streak: int = 0
    current_streak: int = 0
    average_quiz_score: float = 0.0
    total_credentials: int = 0
    credentials_by_track: Dict[str, int] = Field(default_factory=dict)
    recent_quiz_scores: List[float] = Field(default_factory=list)
    sessions_this_month: int = 0
    hours_this_month: float = 0.0


class _CriterionBase(BaseModel):
    model_config = {"frozen": True}

    value: float
    operator: Operator = ">="
    timeframe: Timeframe | None = None


class SessionsCriterion(_CriterionBase):
    type: Literal["sessions"] = "sessions"


class TimeCriterion(_CriterionBase):
    """Threshold is expressed in minutes."""

    type: Literal["time"] = "time"


class StreakCriterion(_CriterionBase):
    type: Literal["streak"] = "streak"


class QuizScoreCriterion(_CriterionBase):
    type: Literal["quiz_score"] = "quiz_score"


class CredentialsCriterion(_CriterionBase):
    type: Literal["credentials"] = "credentials"


class ConsistencyCriterion(_CriterionBase):
    """Compound rule: current streak >= value and a minimum quiz average."""

    type: Literal["consistency"] = "consistency"


BadgeCriterion = Annotated[
    Union[
        SessionsCriterion,
        TimeCriterion,
        StreakCriterion,
        QuizScoreCriterion,
        CredentialsCriterion,
        ConsistencyCriterion,
    ],
    Field(discriminator="type"),
]


class BadgeDefinition(BaseModel):
    model_config = {"frozen": True}

    id: str
    title: str
    description: str = ""
    tier: TierName
    points: int = Field(ge=0)
    rarity: Rarity
    category: str
    criteria: BadgeCriterion


class EarnedBadge(BadgeDefinition):
    earned_at: datetime


class BadgeTier(BaseModel):
    model_config = {"frozen": True}

    name: TierName
    color: str = ""
    min_points: int = Field(ge=0)
    benefits: list[str] = Field(default_factory=list)


class SessionHistory(BaseModel):
    """Input envelope used by the command-line reports."""

    track_id: str | None = None
    learner_name: str | None = None
    sessions: list[SessionRecord] = Field(default_factory=list)
    credentials: list[CredentialData] = Field(default_factory=list)
    earned_badges: list[EarnedBadge] = Field(default_factory=list)
    now: datetime | None = None
