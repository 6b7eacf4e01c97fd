"""Validation errors and integrity helpers for session records."""

from typing import Any, Iterable, Optional


class ValidationError(Exception):
    """Base class for validation errors."""
    pass


class SessionRecordError(ValidationError):
    """Raised when a session record is structurally unusable or misused."""
    pass


def ensure_unvalidated(session: Any) -> None:
    """Guard the set-once contract of ``SessionRecord.is_valid``."""
    if session.is_valid is not None:
        raise SessionRecordError(
            f"Session {session.id} was already validated (is_valid={session.is_valid})"
        )


def ensure_same_track(sessions: Iterable[Any], track_id: Optional[str] = None) -> Optional[str]:
    """Return the shared track id of ``sessions`` or raise on a mix.

    ``track_id`` pins the expected value; otherwise the first record decides.
    """
    expected = track_id
    for session in sessions:
        if expected is None:
            expected = session.track_id
            continue
        if session.track_id != expected:
            raise SessionRecordError(
                f"Session {session.id} belongs to track {session.track_id!r}, expected {expected!r}"
            )
    return expected
