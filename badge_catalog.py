"""Badge catalog and point-tier ladder loader."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Iterable, List, Optional

from pydantic import ValidationError

from schemas import BadgeDefinition, BadgeTier


class BadgeCatalogError(ValueError):
    """Raised when ``badge_catalog.json`` contains invalid data."""


class BadgeCatalog:
    """Static badge definitions plus the Bronze..Challenger point ladder."""

    def __init__(self, path: str | Path | None = None) -> None:
        base_path = Path(__file__).resolve().parent
        if path is None:
            path = os.getenv("BADGE_CATALOG_PATH") or base_path / "badge_catalog.json"
        self.path = Path(path)
        self._tiers: List[BadgeTier] = []
        self._badges: List[BadgeDefinition] = []
        self.reload()

    # ------------------------------------------------------------------
    def reload(self) -> None:
        """Reload tiers and badges from disk and validate them."""

        if not self.path.exists():
            raise FileNotFoundError(f"Badge catalog file not found: {self.path}")

        with self.path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)

        if not isinstance(raw, dict):
            raise BadgeCatalogError("Badge catalog file must contain a JSON object")

        try:
            tiers = [BadgeTier.model_validate(entry) for entry in raw.get("tiers") or []]
            badges = [BadgeDefinition.model_validate(entry) for entry in raw.get("badges") or []]
        except ValidationError as exc:
            raise BadgeCatalogError(f"Invalid badge catalog entry: {exc}") from exc

        if not tiers:
            raise BadgeCatalogError("Badge catalog must define at least one tier")
        if tiers[0].min_points != 0:
            raise BadgeCatalogError("The lowest tier must start at 0 points")
        for lower, upper in zip(tiers, tiers[1:]):
            if upper.min_points <= lower.min_points:
                raise BadgeCatalogError(
                    f"Tier thresholds must be strictly increasing ({lower.name} -> {upper.name})"
                )

        tier_names = {tier.name for tier in tiers}
        seen: set[str] = set()
        for badge in badges:
            if badge.id in seen:
                raise BadgeCatalogError(f"Duplicate badge id detected: {badge.id}")
            seen.add(badge.id)
            if badge.tier not in tier_names:
                raise BadgeCatalogError(f"Badge {badge.id} references unknown tier {badge.tier}")

        self._tiers = tiers
        self._badges = badges

    # ------------------------------------------------------------------
    @property
    def tiers(self) -> List[BadgeTier]:
        """Return the tiers ordered by ascending ``min_points``."""

        return list(self._tiers)

    @property
    def badges(self) -> List[BadgeDefinition]:
        return list(self._badges)

    def get_badge(self, badge_id: str) -> Optional[BadgeDefinition]:
        for badge in self._badges:
            if badge.id == badge_id:
                return badge
        return None

    def get_tier(self, name: str) -> Optional[BadgeTier]:
        for tier in self._tiers:
            if tier.name == name:
                return tier
        return None

    def by_category(self, category: str) -> List[BadgeDefinition]:
        return [badge for badge in self._badges if badge.category == category]

    def by_tier(self, tier: str) -> List[BadgeDefinition]:
        return [badge for badge in self._badges if badge.tier == tier]

    def by_rarity(self, rarity: str) -> List[BadgeDefinition]:
        return [badge for badge in self._badges if badge.rarity == rarity]

    # ------------------------------------------------------------------
    def __iter__(self) -> Iterable[BadgeDefinition]:
        return iter(self._badges)


BADGE_CATALOG = BadgeCatalog()
"""Default catalog; the rule engine accepts an explicit one for injection."""
