"""Aggregate badge statistics and list newly earned badges for a learner."""
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

from badge_catalog import BadgeCatalog
from engines.badges import aggregate_user_stats, calculate_total_points, evaluate_badges, tier_progress
from engines.session_validator import validate_history
from env_validation import EnvironmentError, get_env_bool, load_settings
from schemas import SessionHistory

logger = logging.getLogger(__name__)


def build_report(
    document: SessionHistory,
    *,
    user_id: str = "",
    now: Optional[datetime] = None,
    catalog: Optional[BadgeCatalog] = None,
) -> Dict[str, object]:
    history = validate_history(document.sessions)
    stats = aggregate_user_stats(history, document.credentials, now=now)
    new_badges = evaluate_badges(
        stats,
        document.earned_badges,
        user_id=user_id,
        now=now,
        catalog=catalog,
    )
    points = calculate_total_points([*document.earned_badges, *new_badges])
    return {
        "stats": stats.model_dump(mode="json"),
        "new_badges": [badge.id for badge in new_badges],
        "total_points": points,
        "tier": tier_progress(points, catalog),
    }


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("input", type=str, help="Path to a JSON session history document.")
    parser.add_argument("--user", type=str, default=None, help="User id recorded on awards.")
    parser.add_argument(
        "--now",
        type=datetime.fromisoformat,
        default=None,
        help="ISO-8601 evaluation time; overrides the document and the clock.",
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
    catalog = BadgeCatalog(settings.badge_catalog_path)
    report = build_report(
        document,
        user_id=args.user or document.learner_name or "",
        now=now,
        catalog=catalog,
    )
    indent = 2 if get_env_bool("REPORT_PRETTY", True) else None
    print(json.dumps(report, indent=indent, ensure_ascii=False))
    logger.debug("Badge report produced %d new badge(s)", len(report["new_badges"]))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
