"""
Result types for domain availability resolution.
"""

from dataclasses import dataclass, field
from enum import Enum


class Availability(Enum):
    """Tri-state availability of a single domain."""

    AVAILABLE = "available"  # RDAP 404 / registrar Available="true"
    TAKEN = "taken"  # RDAP 200 / registrar Available="false"
    UNKNOWN = "unknown"  # timeout, rate_limit, unsupported TLD, etc.

    def to_json(self) -> bool | None:
        """Wire value: True = available, False = taken, None = unknown."""
        if self is Availability.AVAILABLE:
            return True
        if self is Availability.TAKEN:
            return False
        return None


class Source(Enum):
    """Which path produced a resolution response."""

    PRIMARY = "primary"  # registrar batch API
    SECONDARY = "secondary"  # per-domain RDAP fallback


@dataclass
class LookupResult:
    """Outcome of one RDAP lookup, with the reason when it is inconclusive."""

    domain: str
    availability: Availability
    error_type: str | None = None
    error_message: str | None = None


@dataclass
class ResolutionResponse:
    """Final answer for a batch: per-domain availability plus provenance."""

    results: dict[str, Availability]
    source: Source
    premium_prices: dict[str, float] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = {
            "results": {d: a.to_json() for d, a in self.results.items()},
            "premiumPrices": dict(self.premium_prices),
            "source": self.source.value,
        }
        if self.errors:
            data["errors"] = dict(self.errors)
        return data
