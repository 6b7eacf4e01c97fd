"""Badge rule engine and point-tier ladder.

Badge criteria are a discriminated union (see ``schemas.BadgeCriterion``).
Simple variants map to one statistic compared with the criterion operator;
compound variants own their full rule. Every variant must be registered in
exactly one of the two tables below, which is checked at import time.
"""

from __future__ import annotations

import logging
import operator
from collections import Counter
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, get_args

from badge_catalog import BADGE_CATALOG, BadgeCatalog
from engines.streaks import current_streak, longest_streak, resolve_now, sessions_in_window, to_local
from schemas import (
    BadgeCriterion,
    BadgeDefinition,
    BadgeTier,
    ConsistencyCriterion,
    CredentialData,
    CredentialsCriterion,
    EarnedBadge,
    QuizScoreCriterion,
    SessionRecord,
    SessionsCriterion,
    StreakCriterion,
    TimeCriterion,
    UserStats,
)

_LOGGER = logging.getLogger(__name__)

CONSISTENCY_MIN_QUIZ_SCORE = 85.0
MONTH_WINDOW_DAYS = 30
RECENT_QUIZ_COUNT = 5

_OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    ">=": operator.ge,
    ">": operator.gt,
    "=": operator.eq,
    "<": operator.lt,
    "<=": operator.le,
}


def _sessions_metric(criterion: SessionsCriterion, stats: UserStats) -> float:
    return stats.sessions_this_month if criterion.timeframe == "month" else stats.total_sessions


def _time_metric(criterion: TimeCriterion, stats: UserStats) -> float:
    hours = stats.hours_this_month if criterion.timeframe == "month" else stats.total_hours
    return hours * 60


def _streak_metric(criterion: StreakCriterion, stats: UserStats) -> float:
    return stats.longest_streak


def _quiz_score_metric(criterion: QuizScoreCriterion, stats: UserStats) -> float:
    return stats.average_quiz_score


def _credentials_metric(criterion: CredentialsCriterion, stats: UserStats) -> float:
    return stats.total_credentials


def _consistency_rule(criterion: ConsistencyCriterion, stats: UserStats) -> bool:
    return (
        stats.current_streak >= criterion.value
        and stats.average_quiz_score >= CONSISTENCY_MIN_QUIZ_SCORE
    )


_METRICS: Dict[type, Callable[[Any, UserStats], float]] = {
    SessionsCriterion: _sessions_metric,
    TimeCriterion: _time_metric,
    StreakCriterion: _streak_metric,
    QuizScoreCriterion: _quiz_score_metric,
    CredentialsCriterion: _credentials_metric,
}

_COMPOUND_RULES: Dict[type, Callable[[Any, UserStats], bool]] = {
    ConsistencyCriterion: _consistency_rule,
}


def _check_exhaustive() -> None:
    variants = set(get_args(get_args(BadgeCriterion)[0]))
    handled = set(_METRICS) | set(_COMPOUND_RULES)
    if variants != handled or set(_METRICS) & set(_COMPOUND_RULES):
        missing = ", ".join(sorted(cls.__name__ for cls in variants ^ handled))
        raise TypeError(f"Badge criterion handlers out of sync with BadgeCriterion: {missing}")


_check_exhaustive()


def compare(value: float, op: str, threshold: float) -> bool:
    return _OPERATORS[op](value, threshold)


def criterion_satisfied(criterion: BadgeCriterion, stats: UserStats) -> bool:
    rule = _COMPOUND_RULES.get(type(criterion))
    if rule is not None:
        return rule(criterion, stats)
    value = _METRICS[type(criterion)](criterion, stats)
    return compare(value, criterion.operator, criterion.value)


def check_badge_eligibility(badge: BadgeDefinition, stats: UserStats) -> bool:
    """Return True when ``stats`` satisfies the badge's single criterion."""

    return criterion_satisfied(badge.criteria, stats)


def calculate_total_points(earned_badges: Iterable[BadgeDefinition]) -> int:
    return sum(badge.points for badge in earned_badges)


def get_current_tier(points: float, catalog: Optional[BadgeCatalog] = None) -> BadgeTier:
    """Highest tier whose threshold is <= ``points``; the lowest tier otherwise."""

    tiers = (catalog or BADGE_CATALOG).tiers
    for tier in reversed(tiers):
        if points >= tier.min_points:
            return tier
    return tiers[0]


def get_next_tier(points: float, catalog: Optional[BadgeCatalog] = None) -> Optional[BadgeTier]:
    tiers = (catalog or BADGE_CATALOG).tiers
    current = get_current_tier(points, catalog)
    index = [tier.name for tier in tiers].index(current.name)
    return tiers[index + 1] if index < len(tiers) - 1 else None


def tier_progress(points: float, catalog: Optional[BadgeCatalog] = None) -> Dict[str, Any]:
    """Summarise the position of ``points`` between the current and next tier."""

    current = get_current_tier(points, catalog)
    upcoming = get_next_tier(points, catalog)
    if upcoming is None:
        return {"current": current.name, "next": None, "points_to_next": 0, "progress": 1.0}
    span = upcoming.min_points - current.min_points
    return {
        "current": current.name,
        "next": upcoming.name,
        "points_to_next": upcoming.min_points - points,
        "progress": round((points - current.min_points) / span, 3),
    }


def award_badge(
    badge_id: str,
    user_id: str,
    *,
    now: Optional[datetime] = None,
    catalog: Optional[BadgeCatalog] = None,
) -> Optional[EarnedBadge]:
    """Create the earned instance of ``badge_id``; None for unknown ids."""

    badge = (catalog or BADGE_CATALOG).get_badge(badge_id)
    if badge is None:
        return None
    earned = EarnedBadge.model_validate({**badge.model_dump(), "earned_at": resolve_now(now)})
    _LOGGER.info("Badge awarded: %s to user %s", earned.title, user_id)
    return earned


def evaluate_badges(
    stats: UserStats,
    earned: Iterable[BadgeDefinition] = (),
    *,
    user_id: str = "",
    now: Optional[datetime] = None,
    catalog: Optional[BadgeCatalog] = None,
) -> List[EarnedBadge]:
    """Return badges newly satisfied by ``stats``.

    Badges already in ``earned`` are skipped, never re-checked, so nothing
    is ever revoked.
    """

    catalog = catalog or BADGE_CATALOG
    owned = {badge.id for badge in earned}
    awarded: List[EarnedBadge] = []
    for badge in catalog:
        if badge.id in owned or not check_badge_eligibility(badge, stats):
            continue
        instance = award_badge(badge.id, user_id, now=now, catalog=catalog)
        if instance is not None:
            awarded.append(instance)
    return awarded


def aggregate_user_stats(
    sessions: Iterable[SessionRecord],
    credentials: Iterable[CredentialData] = (),
    *,
    now: Optional[datetime] = None,
) -> UserStats:
    """Build the badge statistics snapshot from valid sessions across all tracks."""

    moment = resolve_now(now)
    valid = [session for session in sessions if session.is_valid is True]
    graded = sorted(
        (session for session in valid if session.has_quiz),
        key=lambda session: to_local(session.start_time),
    )
    month = sessions_in_window(valid, MONTH_WINDOW_DAYS, moment)
    by_track = Counter(credential.track_id for credential in credentials)

    average_quiz = 0.0
    if graded:
        average_quiz = round(sum(session.quiz_score for session in graded) / len(graded), 2)

    return UserStats(
        total_sessions=len(valid),
        total_hours=round(sum(session.duration for session in valid) / 60.0, 2),
        longest_streak=longest_streak(valid),
        current_streak=current_streak(valid, moment),
        average_quiz_score=average_quiz,
        total_credentials=sum(by_track.values()),
        credentials_by_track=dict(by_track),
        recent_quiz_scores=[session.quiz_score for session in graded[-RECENT_QUIZ_COUNT:]],
        sessions_this_month=len(month),
        hours_this_month=round(sum(session.duration for session in month) / 60.0, 2),
    )
