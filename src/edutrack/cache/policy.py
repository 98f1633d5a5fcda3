from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Volatility(str, Enum):
    """How quickly an endpoint's data changes."""

    REALTIME = "REALTIME"
    MODERATE = "MODERATE"
    SLOW = "SLOW"
    STATIC = "STATIC"


@dataclass(frozen=True)
class CacheTier:
    name: str
    ttl_seconds: int
    stale_seconds: int

    @property
    def max_age_seconds(self) -> int:
        """Oldest an entry may be and still be served."""
        return self.ttl_seconds + self.stale_seconds


TIERS: dict[Volatility, CacheTier] = {
    Volatility.REALTIME: CacheTier("REALTIME", ttl_seconds=30, stale_seconds=60),
    Volatility.MODERATE: CacheTier("MODERATE", ttl_seconds=120, stale_seconds=180),
    Volatility.SLOW: CacheTier("SLOW", ttl_seconds=300, stale_seconds=600),
    Volatility.STATIC: CacheTier("STATIC", ttl_seconds=600, stale_seconds=1200),
}


def select_tier(volatility: Volatility | str) -> CacheTier:
    return TIERS[Volatility(volatility)]


def tier_by_name(name: str) -> CacheTier:
    return select_tier(name)


def cache_control(tier: CacheTier) -> str:
    return f"private, max-age={tier.ttl_seconds}, stale-while-revalidate={tier.stale_seconds}"
