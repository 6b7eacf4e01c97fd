"""Report credential eligibility for one track from a session history file."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Sequence

from pydantic import ValidationError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from credential_levels import CredentialLevelRegistry
from engines.credentials import evaluate_all_levels, highest_eligible_level
from engines.session_validator import validate_history
from env_validation import EnvironmentError, get_env_bool, load_settings
from schemas import SessionHistory, SessionRecord

logger = logging.getLogger(__name__)


def build_report(
    sessions: Sequence[SessionRecord],
    *,
    track_id: Optional[str] = None,
    now: Optional[datetime] = None,
    levels: Optional[CredentialLevelRegistry] = None,
) -> Dict[str, object]:
    """Validate pending sessions and evaluate every credential level."""

    history = validate_history(sessions)
    if track_id is not None:
        history = [session for session in history if session.track_id == track_id]
    states = evaluate_all_levels(history, now=now, levels=levels)
    return {
        "track_id": track_id,
        "sessions": len(history),
        "valid_sessions": sum(1 for session in history if session.is_valid),
        "levels": [state.model_dump(mode="json") for state in states],
        "highest_level": highest_eligible_level(history, now=now, levels=levels),
    }


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("input", type=str, help="Path to a JSON session history document.")
    parser.add_argument(
        "--track",
        type=str,
        default=None,
        help="Track to evaluate (default: the document's track_id).",
    )
    parser.add_argument(
        "--now",
        type=datetime.fromisoformat,
        default=None,
        help="ISO-8601 evaluation time; overrides the document and the clock.",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Optional path to write the JSON report in addition to stdout.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        settings = load_settings()
    except EnvironmentError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    logging.basicConfig(level=settings.log_level)

    path = Path(args.input)
    if not path.exists():
        print(f"Session history not found: {path}", file=sys.stderr)
        return 2
    try:
        document = SessionHistory.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as exc:
        print(f"Invalid session history {path}: {exc}", file=sys.stderr)
        return 2

    now = args.now or document.now
    levels = CredentialLevelRegistry(settings.credential_levels_path)
    report = build_report(
        document.sessions,
        track_id=args.track or document.track_id,
        now=now,
        levels=levels,
    )
    indent = 2 if get_env_bool("REPORT_PRETTY", True) else None
    payload = json.dumps(report, indent=indent, ensure_ascii=False)

    if args.output:
        Path(args.output).write_text(payload + "\n", encoding="utf-8")
    print(payload)
    logger.debug("Credential report written for %s", report["track_id"])
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
