import json
import random
import re
import unittest
from datetime import date

import pytest

from credential_levels import CredentialLevelRegistry
from engines.credentials import (
    average_quality,
    check_eligibility,
    check_intent_eligibility,
    check_performance_eligibility,
    check_practice_eligibility,
    compute_credential_stats,
    evaluate_all_levels,
    highest_eligible_level,
    issue_credential,
)
from engines.validation import SessionRecordError


class IntentEligibilityTests(unittest.TestCase):
    @pytest.fixture(autouse=True)
    def _inject(self, daily_sessions, now):
        self.daily = daily_sessions
        self.now = now

    def test_seven_consecutive_days_are_eligible(self):
        result = check_intent_eligibility(self.daily(range(7)), now=self.now)
        self.assertTrue(result.eligible)
        self.assertEqual(result.current_streak, 7)
        self.assertEqual(result.required_streak, 7)

    def test_six_consecutive_days_are_not_eligible(self):
        result = check_intent_eligibility(self.daily(range(6)), now=self.now)
        self.assertFalse(result.eligible)
        self.assertEqual(result.current_streak, 6)

    def test_gap_three_days_back_reports_streak_of_three(self):
        result = check_intent_eligibility(self.daily([0, 1, 2, 4, 5, 6, 7]), now=self.now)
        self.assertEqual(result.current_streak, 3)
        self.assertFalse(result.eligible)

    def test_invalid_sessions_do_not_extend_the_streak(self):
        sessions = self.daily(range(6)) + self.daily([6], is_valid=False)
        result = check_intent_eligibility(sessions, now=self.now)
        self.assertEqual(result.current_streak, 6)

    def test_unvalidated_sessions_are_ignored(self):
        result = check_intent_eligibility(self.daily(range(7), is_valid=None), now=self.now)
        self.assertEqual(result.current_streak, 0)

    def test_quality_without_quiz_data_reports_default(self):
        result = check_intent_eligibility(self.daily(range(7)), now=self.now)
        self.assertAlmostEqual(result.quality_score, 0.5)

    def test_empty_history_is_zero_state(self):
        result = check_intent_eligibility([], now=self.now)
        self.assertFalse(result.eligible)
        self.assertEqual(result.current_streak, 0)
        self.assertEqual(result.quality_score, 0.0)


def test_practice_eligible_at_exact_quality_floor(daily_sessions, now):
    sessions = daily_sessions(range(90), quiz_score=75, avg_response_time=13)
    result = check_practice_eligibility(sessions, now=now)
    assert result.eligible
    assert result.active_days == 90
    assert result.required_days == 90
    assert result.window_days == 120
    assert result.quality_score == pytest.approx(0.75)


def test_practice_rejected_just_below_quality_floor(daily_sessions, now):
    sessions = daily_sessions(range(90), quiz_score=75, avg_response_time=13.3)
    result = check_practice_eligibility(sessions, now=now)
    assert not result.eligible
    assert result.active_days == 90
    assert result.quality_score == pytest.approx(0.74)


def test_practice_floor_compares_unrounded_average(daily_sessions, now):
    sessions = daily_sessions(range(90), quiz_score=74.992, avg_response_time=13)
    result = check_practice_eligibility(sessions, now=now)
    assert result.quality_score == pytest.approx(0.75)
    assert not result.eligible


def test_practice_needs_ninety_days_inside_window(daily_sessions, now):
    sessions = daily_sessions(list(range(89)) + [130, 131], quiz_score=100, avg_response_time=10)
    result = check_practice_eligibility(sessions, now=now)
    assert result.active_days == 89
    assert not result.eligible


def test_practice_fails_closed_without_graded_sessions(daily_sessions, now):
    result = check_practice_eligibility(daily_sessions(range(100)), now=now)
    assert result.active_days == 100
    assert result.quality_score == 0.0
    assert not result.eligible


def test_practice_quality_ignores_ungraded_sessions(daily_sessions, now):
    graded = daily_sessions(range(45), quiz_score=100, avg_response_time=10)
    ungraded = daily_sessions(range(45, 90))
    result = check_practice_eligibility(graded + ungraded, now=now)
    assert result.quality_score == pytest.approx(1.0)
    assert result.eligible


def test_performance_requires_365_days_in_400(daily_sessions, now):
    sessions = daily_sessions(range(365), quiz_score=100, avg_response_time=10)
    result = check_performance_eligibility(sessions, now=now)
    assert result.eligible
    assert result.window_days == 400

    short = check_performance_eligibility(sessions[:-1], now=now)
    assert short.active_days == 364
    assert not short.eligible


def test_performance_quality_floor_is_080(daily_sessions, now):
    sessions = daily_sessions(range(365), quiz_score=100)
    result = check_performance_eligibility(sessions, now=now)
    assert result.quality_score == pytest.approx(0.8)
    assert result.eligible


def test_average_quality_uses_aggregate_response_default(make_session):
    graded = [make_session(0, quiz_score=50), make_session(1, quiz_score=100, avg_response_time=10)]
    assert average_quality(graded) == pytest.approx((0.5 + 1.0) / 2)
    assert average_quality([]) == 0.0
    assert average_quality([make_session(0)]) == 0.5
    assert average_quality([make_session(0)], no_quiz_default=0.0) == 0.0


def test_eligibility_is_idempotent(daily_sessions, now):
    sessions = daily_sessions(range(95), quiz_score=82, avg_response_time=11)
    assert check_practice_eligibility(sessions, now=now) == check_practice_eligibility(sessions, now=now)
    assert evaluate_all_levels(sessions, now=now) == evaluate_all_levels(sessions, now=now)


def test_evaluate_all_levels_reports_progress(daily_sessions, now):
    states = evaluate_all_levels(daily_sessions(range(10), quiz_score=90, avg_response_time=10), now=now)
    assert [state.tier for state in states] == ["Intent", "Practice", "Performance"]
    intent, practice, performance = states
    assert intent.eligible and intent.current == 10 and intent.window_days is None
    assert not practice.eligible and practice.current == 10 and practice.required == 90
    assert practice.quality_floor == pytest.approx(0.75)
    assert performance.window_days == 400
    assert highest_eligible_level(daily_sessions(range(10)), now=now) == "Intent"
    assert highest_eligible_level([], now=now) is None


def test_unknown_level_raises(daily_sessions, now):
    with pytest.raises(ValueError):
        check_eligibility("Mastery", daily_sessions([0]), now=now)


def test_injected_registry_changes_requirements(tmp_path, daily_sessions, now):
    levels = json.loads((CredentialLevelRegistry().path).read_text(encoding="utf-8"))
    levels[0]["required_days"] = 3
    path = tmp_path / "levels.json"
    path.write_text(json.dumps(levels), encoding="utf-8")

    registry = CredentialLevelRegistry(path)
    result = check_intent_eligibility(daily_sessions(range(3)), now=now, levels=registry)
    assert result.eligible
    assert result.required_streak == 3


def test_compute_credential_stats(daily_sessions, make_session):
    sessions = daily_sessions([0, 1, 2, 5], duration=45) + [make_session(3, is_valid=False)]
    stats = compute_credential_stats(sessions)
    assert stats.total_days == 4
    assert stats.total_hours == pytest.approx(3.0)
    assert stats.longest_streak == 3
    assert stats.average_session == pytest.approx(45.0)


def test_issue_credential_when_eligible(daily_sessions, now):
    sessions = daily_sessions(range(7))
    credential = issue_credential(
        "data-analysis",
        "Data Analysis Fundamentals",
        "Intent",
        sessions,
        "Alex Johnson",
        now=now,
        rng=random.Random(3),
    )
    assert credential is not None
    assert re.match(r"^DA-INT-2024-[A-Z0-9]{6}$", credential.id)
    assert credential.earned_date == date(2024, 6, 15)
    assert credential.valid_until == date(2025, 6, 15)
    assert credential.stats.total_days == 7
    assert credential.stats.longest_streak == 7
    assert credential.stats.total_hours == pytest.approx(3.5)
    assert [entry.active for entry in credential.timeline] == [True]
    assert credential.is_active(now)


def test_issue_credential_returns_none_when_not_eligible(daily_sessions, now):
    assert issue_credential("data-analysis", "Data", "Intent", daily_sessions(range(3)), "Alex", now=now) is None


def test_issue_credential_rejects_mixed_tracks(daily_sessions, now):
    sessions = daily_sessions(range(7)) + daily_sessions([8], track_id="leadership")
    with pytest.raises(SessionRecordError):
        issue_credential("data-analysis", "Data", "Intent", sessions, "Alex", now=now)
