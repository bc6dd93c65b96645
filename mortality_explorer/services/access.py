from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

EXTENDED_TIME_PERIODS = "EXTENDED_TIME_PERIODS"

TIERS: Dict[str, int] = {"public": 0, "registered": 1, "pro": 2}

# Minimum tier per feature; unknown features are denied
FEATURE_TIERS: Dict[str, int] = {
    EXTENDED_TIME_PERIODS: TIERS["registered"],
}


@dataclass(frozen=True)
class FeatureAccess:
    """Answers whether the current caller may use a gated feature."""
    tier: str = "public"

    def __post_init__(self):
        if self.tier not in TIERS:
            raise ValueError(f"Unknown access tier '{self.tier}'")

    def can(self, feature: str) -> bool:
        required = FEATURE_TIERS.get(feature)
        if required is None:
            return False
        return TIERS[self.tier] >= required

    @property
    def has_extended_access(self) -> bool:
        return self.can(EXTENDED_TIME_PERIODS)
