import itertools
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from schemas import SessionRecord

NOW = datetime(2024, 6, 15, 12, 0, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_session():
    """Factory for sessions ``days_ago`` calendar days before ``NOW``."""

    counter = itertools.count(1)

    def _make(
        days_ago=0,
        *,
        hour=9,
        minute=0,
        duration=30.0,
        quiz_score=None,
        avg_response_time=None,
        track_id="data-analysis",
        is_valid=True,
        session_id=None,
    ):
        start = NOW.replace(hour=hour, minute=minute) - timedelta(days=days_ago)
        return SessionRecord(
            id=session_id or f"s{next(counter)}",
            track_id=track_id,
            start_time=start,
            duration=duration,
            is_valid=is_valid,
            quiz_score=quiz_score,
            avg_response_time=avg_response_time,
        )

    return _make


@pytest.fixture
def daily_sessions(make_session):
    def _daily(days_ago, **kwargs):
        return [make_session(offset, **kwargs) for offset in days_ago]

    return _daily


@pytest.fixture
def clean_env(monkeypatch):
    for var in (
        "CREDENTIAL_ISSUER",
        "CREDENTIAL_VERIFY_URL",
        "LOG_LEVEL",
        "CREDENTIAL_LEVELS_PATH",
        "BADGE_CATALOG_PATH",
        "REPORT_PRETTY",
    ):
        # setenv first so teardown also removes defaults written during the test
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    return monkeypatch
