"""Integrity checks and quality scoring for new learning sessions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, List, Optional, Tuple

from engines.streaks import to_local
from engines.validation import ensure_unvalidated
from schemas import SessionRecord, SessionValidationResult

_LOGGER = logging.getLogger(__name__)

QUIZ_WEIGHT = 0.6
RESPONSE_WEIGHT = 0.4
MIN_RESPONSE_WEIGHT = 0.1
OPTIMAL_RESPONSE_SECONDS = 10.0
RESPONSE_FALLOFF_SECONDS = 30.0
QUALITY_MIN = 0.3
QUALITY_MAX = 1.0
NO_QUIZ_QUALITY = 1.0


@dataclass(frozen=True)
class SessionRules:
    """Duration bounds (minutes) and cooldown between sessions on a track."""

    min_duration: float = 15.0
    max_duration: float = 180.0
    cooldown: timedelta = timedelta(hours=4)


DEFAULT_RULES = SessionRules()


def clamp_quality(value: float) -> float:
    return max(QUALITY_MIN, min(QUALITY_MAX, value))


def response_time_component(
    avg_response_time: Optional[float],
    missing_default: float = RESPONSE_WEIGHT,
) -> float:
    """Score the answer pace; peaks at 10s and decays linearly to a 0.1 floor."""

    if avg_response_time is None:
        return missing_default
    deviation = abs(avg_response_time - OPTIMAL_RESPONSE_SECONDS)
    return max(MIN_RESPONSE_WEIGHT, RESPONSE_WEIGHT - deviation / RESPONSE_FALLOFF_SECONDS)


def session_quality(
    quiz_score: Optional[float],
    avg_response_time: Optional[float] = None,
    *,
    no_quiz_quality: float = NO_QUIZ_QUALITY,
    missing_response_component: float = RESPONSE_WEIGHT,
) -> float:
    """Return the clamped quality score in [0.3, 1.0] for one session."""

    if quiz_score is None:
        return clamp_quality(no_quiz_quality)
    quality = QUIZ_WEIGHT * (quiz_score / 100.0)
    quality += response_time_component(avg_response_time, missing_response_component)
    return clamp_quality(quality)


def find_cooldown_conflict(
    candidate: SessionRecord,
    prior_sessions: Iterable[SessionRecord],
    cooldown: timedelta,
) -> Optional[SessionRecord]:
    """Return the first prior session on the same track ending inside the cooldown."""

    start = to_local(candidate.start_time)
    for prior in prior_sessions:
        if prior.id == candidate.id or prior.track_id != candidate.track_id:
            continue
        if start - to_local(prior.end_time) < cooldown:
            return prior
    return None


def validate_session(
    candidate: SessionRecord,
    prior_sessions: Iterable[SessionRecord],
    rules: Optional[SessionRules] = None,
) -> SessionValidationResult:
    """Check ``candidate`` against duration bounds and the cooldown window.

    Business rejections are returned, never raised. The function is pure:
    recording the outcome on the session is left to ``apply_validation``.
    """

    rules = rules or DEFAULT_RULES

    if candidate.duration < rules.min_duration:
        return SessionValidationResult(
            is_valid=False,
            reason="too short",
            message=f"Session must be at least {rules.min_duration:g} minutes",
        )

    if candidate.duration > rules.max_duration:
        return SessionValidationResult(
            is_valid=False,
            reason="too long",
            message=f"Session cannot exceed {rules.max_duration:g} minutes",
        )

    conflict = find_cooldown_conflict(candidate, prior_sessions, rules.cooldown)
    if conflict is not None:
        _LOGGER.debug("Session %s conflicts with %s inside cooldown", candidate.id, conflict.id)
        hours = rules.cooldown.total_seconds() / 3600.0
        return SessionValidationResult(
            is_valid=False,
            reason="cooldown violation",
            message=f"Please wait at least {hours:g} hours between sessions",
        )

    quality = session_quality(candidate.quiz_score, candidate.avg_response_time)
    return SessionValidationResult(is_valid=True, quality_score=quality)


def apply_validation(candidate: SessionRecord, result: SessionValidationResult) -> SessionRecord:
    """Return a copy of ``candidate`` with ``is_valid`` set; allowed exactly once."""

    ensure_unvalidated(candidate)
    return candidate.model_copy(update={"is_valid": result.is_valid})


def process_session(
    candidate: SessionRecord,
    prior_sessions: Iterable[SessionRecord],
    rules: Optional[SessionRules] = None,
) -> Tuple[SessionRecord, SessionValidationResult]:
    """Validate ``candidate`` and return it stamped with the outcome."""

    ensure_unvalidated(candidate)
    result = validate_session(candidate, prior_sessions, rules)
    if not result.is_valid:
        _LOGGER.info("Rejected session %s on %s: %s", candidate.id, candidate.track_id, result.reason)
    return apply_validation(candidate, result), result


def validate_history(
    sessions: Iterable[SessionRecord],
    rules: Optional[SessionRules] = None,
) -> List[SessionRecord]:
    """Replay a history in start order, validating every unvalidated record.

    Each record is checked against all records that started before it,
    rejected ones included. Records that already carry a flag are kept as-is.
    """

    processed: List[SessionRecord] = []
    for session in sorted(sessions, key=lambda s: to_local(s.start_time)):
        if session.is_valid is None:
            session, _ = process_session(session, processed, rules)
        processed.append(session)
    return processed
