"""Credential level configuration loader."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

_KNOWN_LEVELS = ("Intent", "Practice", "Performance")
_MODES = ("streak", "window")


class CredentialLevelConfigError(ValueError):
    """Raised when ``credential_levels.json`` contains invalid data."""


@dataclass(frozen=True)
class CredentialLevel:
    """Immutable requirements for one credential level."""

    id: str
    label: str
    description: str
    mode: str
    required_days: int
    window_days: Optional[int]
    quality_floor: Optional[float]
    valid_for_days: int

    @property
    def code(self) -> str:
        """Three-letter code used inside credential identifiers."""

        return self.id[:3].upper()


def _optional_number(entry: dict, key: str, level_id: str, cast):
    raw = entry.get(key)
    if raw is None or raw == "":
        return None
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise CredentialLevelConfigError(f"Entry {level_id} has non-numeric {key}") from exc


class CredentialLevelRegistry:
    """Load credential levels from ``credential_levels.json``."""

    def __init__(self, path: str | Path | None = None) -> None:
        base_path = Path(__file__).resolve().parent
        if path is None:
            path = os.getenv("CREDENTIAL_LEVELS_PATH") or base_path / "credential_levels.json"
        self.path = Path(path)
        self._levels: List[CredentialLevel] = []
        self.reload()

    # ------------------------------------------------------------------
    def reload(self) -> None:
        """Reload the level definitions from disk and validate them."""

        if not self.path.exists():
            raise FileNotFoundError(f"Credential levels file not found: {self.path}")

        with self.path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)

        if not isinstance(raw, list):
            raise CredentialLevelConfigError("Credential levels file must contain a JSON list")

        levels: List[CredentialLevel] = []
        seen: set[str] = set()
        for idx, entry in enumerate(raw, start=1):
            if not isinstance(entry, dict):
                raise CredentialLevelConfigError(f"Entry #{idx} must be a JSON object")

            level_id = str(entry.get("id", "")).strip()
            if level_id not in _KNOWN_LEVELS:
                raise CredentialLevelConfigError(
                    f"Entry #{idx} has unknown level id {level_id!r}; expected one of {', '.join(_KNOWN_LEVELS)}"
                )
            if level_id in seen:
                raise CredentialLevelConfigError(f"Duplicate credential level id detected: {level_id}")
            seen.add(level_id)

            mode = str(entry.get("mode", "")).strip()
            if mode not in _MODES:
                raise CredentialLevelConfigError(f"Entry {level_id} mode must be 'streak' or 'window'")

            required_days = _optional_number(entry, "required_days", level_id, int)
            if required_days is None or required_days <= 0:
                raise CredentialLevelConfigError(f"Entry {level_id} needs a positive required_days")

            window_days = _optional_number(entry, "window_days", level_id, int)
            if mode == "window":
                if window_days is None or window_days < required_days:
                    raise CredentialLevelConfigError(
                        f"Entry {level_id} window_days must be >= required_days"
                    )

            quality_floor = _optional_number(entry, "quality_floor", level_id, float)
            if quality_floor is not None and not 0.0 <= quality_floor <= 1.0:
                raise CredentialLevelConfigError(f"Entry {level_id} quality_floor must be within [0, 1]")

            valid_for_days = _optional_number(entry, "valid_for_days", level_id, int) or 365

            levels.append(
                CredentialLevel(
                    id=level_id,
                    label=str(entry.get("label") or level_id).strip(),
                    description=str(entry.get("description", "")).strip(),
                    mode=mode,
                    required_days=required_days,
                    window_days=window_days,
                    quality_floor=quality_floor,
                    valid_for_days=valid_for_days,
                )
            )

        missing = [level for level in _KNOWN_LEVELS if level not in seen]
        if missing:
            raise CredentialLevelConfigError(f"Missing credential levels: {', '.join(missing)}")

        levels.sort(key=lambda lvl: _KNOWN_LEVELS.index(lvl.id))
        self._levels = levels

    # ------------------------------------------------------------------
    @property
    def levels(self) -> List[CredentialLevel]:
        """Return a shallow copy of the known levels."""

        return list(self._levels)

    def sequence(self) -> Sequence[str]:
        """Return the level identifiers from easiest to hardest."""

        return tuple(level.id for level in self._levels)

    def index(self, level_id: str) -> int:
        for idx, level in enumerate(self._levels):
            if level.id == level_id:
                return idx
        raise ValueError(f"Unknown credential level: {level_id}")

    def get(self, level_id: str) -> CredentialLevel:
        """Fetch a level definition, raising ``ValueError`` when unknown."""

        return self._levels[self.index(level_id)]

    # ------------------------------------------------------------------
    def __iter__(self) -> Iterable[CredentialLevel]:
        return iter(self._levels)


CREDENTIAL_LEVELS = CredentialLevelRegistry()
"""Default registry; evaluators accept an explicit one for injection."""
