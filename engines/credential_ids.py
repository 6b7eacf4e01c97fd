"""Credential identifiers, format checks, verification and display timelines."""

from __future__ import annotations

import logging
import random
import re
import secrets
import string
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Union
from urllib.parse import urlencode

from engines.base import CredentialVerifier
from engines.streaks import resolve_now, resolve_today, unique_days, week_buckets
from env_validation import DEFAULT_ISSUER, DEFAULT_VERIFY_URL, Settings
from schemas import (
    CredentialData,
    CredentialFormatResult,
    SessionRecord,
    TimelineEntry,
    VerificationResult,
)

_LOGGER = logging.getLogger(__name__)

CREDENTIAL_ID_PATTERN = re.compile(r"^[A-Z]{2}-[A-Z]{3}-\d{4}-[A-Z0-9]{6}$")
_TRACK_CODE = re.compile(r"[A-Za-z]{2}")
_LEVEL_CODE = re.compile(r"[A-Za-z]{3}")
SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
SUFFIX_LENGTH = 6

INVALID_FORMAT = "invalid credential format"
NOT_FOUND = "credential not found"


def generate_credential_id(
    track_id: str,
    level: str,
    *,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """Build ``{TRACK}-{LEVEL}-{YEAR}-{SUFFIX}``, e.g. ``DA-INT-2024-789ABC``.

    ``rng`` makes the suffix reproducible; by default it comes from the
    system CSPRNG.
    """

    if not _TRACK_CODE.match(track_id):
        raise ValueError(f"track_id must start with two ASCII letters: {track_id!r}")
    if not _LEVEL_CODE.match(level):
        raise ValueError(f"level must start with three ASCII letters: {level!r}")
    chooser = rng or secrets.SystemRandom()
    suffix = "".join(chooser.choice(SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{track_id[:2].upper()}-{level[:3].upper()}-{resolve_now(now).year:04d}-{suffix}"


def validate_credential_format(credential_id: str) -> CredentialFormatResult:
    """Structural check only; authenticity needs a ``CredentialVerifier``."""

    if not CREDENTIAL_ID_PATTERN.match(credential_id):
        return CredentialFormatResult(is_valid=False, reason=INVALID_FORMAT)
    return CredentialFormatResult(is_valid=True)


def _as_date(value: Union[date, datetime, str]) -> date:
    if isinstance(value, datetime):
        return resolve_today(value)
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def generate_timeline_data(
    sessions: Iterable[SessionRecord],
    earned_date: Union[date, datetime, str],
    now: Optional[datetime] = None,
) -> List[TimelineEntry]:
    """One entry per 7-day bucket from ``earned_date`` to today.

    A bucket is active when at least one session started on one of its
    seven calendar days. The result is for display only.
    """

    days = unique_days(sessions)
    start = _as_date(earned_date)
    timeline = []
    for bucket_start in week_buckets(start, resolve_today(now)):
        bucket_end = bucket_start + timedelta(days=6)
        timeline.append(
            TimelineEntry(
                week=bucket_start.isoformat(),
                active=any(bucket_start <= day <= bucket_end for day in days),
            )
        )
    return timeline


class InMemoryCredentialVerifier(CredentialVerifier):
    """Dictionary-backed verifier, useful for tests and offline tooling."""

    def __init__(self, credentials: Iterable[CredentialData] = ()) -> None:
        self._by_id: Dict[str, CredentialData] = {}
        for credential in credentials:
            self.register(credential)

    def register(self, credential: CredentialData) -> None:
        self._by_id[credential.id] = credential

    def lookup(self, credential_id: str) -> Optional[CredentialData]:
        return self._by_id.get(credential_id)


def verify_credential(
    credential_id: str,
    verifier: Optional[CredentialVerifier] = None,
    *,
    now: Optional[datetime] = None,
) -> VerificationResult:
    """Check the format and, when a verifier is supplied, authenticity."""

    fmt = validate_credential_format(credential_id)
    if not fmt.is_valid:
        return VerificationResult(is_valid=False, reason=fmt.reason)
    if verifier is None:
        return VerificationResult(is_valid=True)

    credential = verifier.lookup(credential_id)
    if credential is None:
        _LOGGER.info("Verification lookup missed for %s", credential_id)
        return VerificationResult(is_valid=False, reason=NOT_FOUND)
    return VerificationResult(
        is_valid=True,
        credential=credential,
        is_active=credential.is_active(resolve_now(now)),
    )


def build_verification_page(
    credential_id: str,
    verifier: CredentialVerifier,
    sessions: Iterable[SessionRecord],
    *,
    now: Optional[datetime] = None,
) -> Optional[CredentialData]:
    """Return the public credential with a timeline refreshed up to ``now``."""

    result = verify_credential(credential_id, verifier, now=now)
    if result.credential is None:
        return None
    credential = result.credential
    timeline = generate_timeline_data(sessions, credential.earned_date, now=now)
    return credential.model_copy(update={"timeline": timeline})


def generate_linkedin_url(credential: CredentialData, settings: Optional[Settings] = None) -> str:
    """Return the LinkedIn "add certification" URL for ``credential``."""

    issuer = settings.issuer_name if settings else DEFAULT_ISSUER
    verify_base = settings.verify_base_url if settings else DEFAULT_VERIFY_URL
    params = {
        "startTask": "CERTIFICATION_NAME",
        "name": f"{issuer} {credential.level} - {credential.track_title}",
        "organizationName": issuer,
        "issueYear": str(credential.earned_date.year),
        "issueMonth": str(credential.earned_date.month),
        "certUrl": f"{verify_base}/{credential.id}",
    }
    return f"https://www.linkedin.com/profile/add?{urlencode(params)}"
