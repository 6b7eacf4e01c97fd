"""Credential eligibility evaluation for the Intent, Practice and Performance levels.

Each check is recomputed from the full session history of a single track.
Only sessions the validator accepted (``is_valid is True``) count. The
results expose the raw progress numbers next to the eligibility flag so
callers can render progress without re-deriving anything.

Quality averages only consider sessions that carry quiz data. For the
windowed levels a window without any graded session averages to 0.0, so the
quality floor cannot be met without evidence. The Intent check reports an
informational average that falls back to 0.5 when no session was graded.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Union

from credential_levels import CREDENTIAL_LEVELS, CredentialLevel, CredentialLevelRegistry
from engines.credential_ids import generate_credential_id, generate_timeline_data
from engines.session_validator import session_quality
from engines.streaks import (
    current_streak,
    longest_streak,
    resolve_now,
    sessions_in_window,
    unique_days,
)
from engines.validation import ensure_same_track
from schemas import (
    CredentialData,
    CredentialStats,
    CredentialTierState,
    IntentEligibility,
    SessionRecord,
    WindowEligibility,
)

_LOGGER = logging.getLogger(__name__)

# Response-time weight assumed for graded sessions without timing data.
AGGREGATE_MISSING_RESPONSE = 0.2
NO_QUIZ_AGGREGATE_DEFAULT = 0.5
QUALITY_PRECISION = 4
# Slack for float noise when comparing an unrounded average with a floor.
QUALITY_FLOOR_TOLERANCE = 1e-9

Eligibility = Union[IntentEligibility, WindowEligibility]


def valid_sessions(sessions: Iterable[SessionRecord]) -> List[SessionRecord]:
    return [session for session in sessions if session.is_valid is True]


def _mean_quality(sessions: Iterable[SessionRecord], no_quiz_default: float) -> float:
    sessions = list(sessions)
    if not sessions:
        return 0.0
    graded = [session for session in sessions if session.has_quiz]
    if not graded:
        return no_quiz_default
    total = sum(
        session_quality(
            session.quiz_score,
            session.avg_response_time,
            missing_response_component=AGGREGATE_MISSING_RESPONSE,
        )
        for session in graded
    )
    return total / len(graded)


def average_quality(
    sessions: Iterable[SessionRecord],
    *,
    no_quiz_default: float = NO_QUIZ_AGGREGATE_DEFAULT,
) -> float:
    """Mean quality over graded sessions, rounded to four decimals for display.

    An empty history averages to 0.0; a history without any graded session
    averages to ``no_quiz_default``. Floor checks use the unrounded mean.
    """

    return round(_mean_quality(sessions, no_quiz_default), QUALITY_PRECISION)


def _meets_floor(quality: float, level: CredentialLevel) -> bool:
    if level.quality_floor is None:
        return True
    return quality >= level.quality_floor - QUALITY_FLOOR_TOLERANCE


def _check_streak_level(
    level: CredentialLevel,
    sessions: Iterable[SessionRecord],
    now: Optional[datetime],
) -> IntentEligibility:
    valid = valid_sessions(sessions)
    streak = current_streak(valid, resolve_now(now))
    raw_quality = _mean_quality(valid, NO_QUIZ_AGGREGATE_DEFAULT)
    quality = round(raw_quality, QUALITY_PRECISION)
    eligible = streak >= level.required_days and _meets_floor(raw_quality, level)
    _LOGGER.debug("%s check: streak=%d/%d quality=%.4f", level.id, streak, level.required_days, quality)
    return IntentEligibility(
        eligible=eligible,
        current_streak=streak,
        required_streak=level.required_days,
        quality_score=quality,
    )


def _check_window_level(
    level: CredentialLevel,
    sessions: Iterable[SessionRecord],
    now: Optional[datetime],
) -> WindowEligibility:
    recent = sessions_in_window(valid_sessions(sessions), level.window_days, now)
    active_days = len(unique_days(recent))
    raw_quality = _mean_quality(recent, 0.0)
    quality = round(raw_quality, QUALITY_PRECISION)
    eligible = active_days >= level.required_days and _meets_floor(raw_quality, level)
    _LOGGER.debug(
        "%s check: active_days=%d/%d window=%d quality=%.4f",
        level.id,
        active_days,
        level.required_days,
        level.window_days,
        quality,
    )
    return WindowEligibility(
        eligible=eligible,
        active_days=active_days,
        required_days=level.required_days,
        window_days=level.window_days,
        quality_score=quality,
    )


def check_eligibility(
    level_id: str,
    sessions: Iterable[SessionRecord],
    *,
    now: Optional[datetime] = None,
    levels: Optional[CredentialLevelRegistry] = None,
) -> Eligibility:
    """Evaluate one level by id; raises ``ValueError`` for unknown ids."""

    level = (levels or CREDENTIAL_LEVELS).get(level_id)
    if level.mode == "streak":
        return _check_streak_level(level, sessions, now)
    return _check_window_level(level, sessions, now)


def check_intent_eligibility(
    sessions: Iterable[SessionRecord],
    *,
    now: Optional[datetime] = None,
    levels: Optional[CredentialLevelRegistry] = None,
) -> IntentEligibility:
    return check_eligibility("Intent", sessions, now=now, levels=levels)


def check_practice_eligibility(
    sessions: Iterable[SessionRecord],
    *,
    now: Optional[datetime] = None,
    levels: Optional[CredentialLevelRegistry] = None,
) -> WindowEligibility:
    return check_eligibility("Practice", sessions, now=now, levels=levels)


def check_performance_eligibility(
    sessions: Iterable[SessionRecord],
    *,
    now: Optional[datetime] = None,
    levels: Optional[CredentialLevelRegistry] = None,
) -> WindowEligibility:
    return check_eligibility("Performance", sessions, now=now, levels=levels)


def evaluate_all_levels(
    sessions: Iterable[SessionRecord],
    *,
    now: Optional[datetime] = None,
    levels: Optional[CredentialLevelRegistry] = None,
) -> List[CredentialTierState]:
    """Return a progress snapshot for every configured level, easiest first."""

    registry = levels or CREDENTIAL_LEVELS
    history = list(sessions)
    states: List[CredentialTierState] = []
    for level in registry:
        result = check_eligibility(level.id, history, now=now, levels=registry)
        if isinstance(result, IntentEligibility):
            current, required = result.current_streak, result.required_streak
        else:
            current, required = result.active_days, result.required_days
        states.append(
            CredentialTierState(
                tier=level.id,
                eligible=result.eligible,
                current=current,
                required=required,
                window_days=level.window_days,
                quality_score=result.quality_score,
                quality_floor=level.quality_floor,
            )
        )
    return states


def highest_eligible_level(
    sessions: Iterable[SessionRecord],
    *,
    now: Optional[datetime] = None,
    levels: Optional[CredentialLevelRegistry] = None,
) -> Optional[str]:
    eligible = [state.tier for state in evaluate_all_levels(sessions, now=now, levels=levels) if state.eligible]
    return eligible[-1] if eligible else None


def compute_credential_stats(sessions: Iterable[SessionRecord]) -> CredentialStats:
    """Snapshot of the valid history frozen into an issued credential."""

    valid = valid_sessions(sessions)
    if not valid:
        return CredentialStats()
    total_minutes = sum(session.duration for session in valid)
    return CredentialStats(
        total_days=len(unique_days(valid)),
        total_hours=round(total_minutes / 60.0, 2),
        longest_streak=longest_streak(valid),
        average_session=round(total_minutes / len(valid), 1),
    )


def issue_credential(
    track_id: str,
    track_title: str,
    level_id: str,
    sessions: Iterable[SessionRecord],
    learner_name: str,
    *,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
    levels: Optional[CredentialLevelRegistry] = None,
) -> Optional[CredentialData]:
    """Issue a credential when ``level_id`` is currently earned, else return None."""

    registry = levels or CREDENTIAL_LEVELS
    level = registry.get(level_id)
    history = list(sessions)
    ensure_same_track(history, track_id)

    result = check_eligibility(level.id, history, now=now, levels=registry)
    if not result.eligible:
        _LOGGER.debug("Not issuing %s credential on %s: requirements not met", level.id, track_id)
        return None

    moment = resolve_now(now)
    earned = moment.date()
    credential = CredentialData(
        id=generate_credential_id(track_id, level.id, now=moment, rng=rng),
        track_id=track_id,
        track_title=track_title,
        level=level.id,
        learner_name=learner_name,
        earned_date=earned,
        valid_until=earned + timedelta(days=level.valid_for_days),
        stats=compute_credential_stats(history),
        timeline=generate_timeline_data(valid_sessions(history), earned, now=moment),
    )
    _LOGGER.info("Issued %s credential %s on track %s", level.id, credential.id, track_id)
    return credential
