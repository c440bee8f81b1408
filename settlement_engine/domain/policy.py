"""Versioned policy tables.

A PolicyTables value is immutable and is passed explicitly to every
calculation, so a report can always be reproduced with the version it was
computed under. Changing policy means building a new version with
`with_changes`, never editing one in place.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from settlement_engine.domain.exceptions import ConfigurationError
from settlement_engine.domain.models import CommissionTier


class ProcessingFeeMode(str, Enum):
    PER_DISBURSEMENT = "per_disbursement"
    PER_BOOKING = "per_booking"


# Cancellation policy names
FLEXIBLE = "flexible"
MODERATE = "moderate"
STRICT = "strict"
SUPER_STRICT = "super_strict"

DEFAULT_COMMISSION_TIERS: Tuple[CommissionTier, ...] = (
    CommissionTier("Standard", 1, 9, Decimal("0.25")),
    CommissionTier("Gold", 10, 49, Decimal("0.20")),
    CommissionTier("Platinum", 50, 99, Decimal("0.15")),
    CommissionTier("Diamond", 100, None, Decimal("0.10")),
)

# Full-refund cutoff in hours before trip start; None = never refundable
DEFAULT_CANCELLATION_CUTOFFS: Mapping[str, Optional[int]] = MappingProxyType(
    {
        FLEXIBLE: 24,
        MODERATE: 48,
        STRICT: 168,
        SUPER_STRICT: None,
    }
)


def validate_tiers(tiers: Tuple[CommissionTier, ...]) -> None:
    """
    Check the tier table is usable: ascending, contiguous, non-overlapping,
    with exactly one unbounded top tier and rates within [0, 1].

    Raises ConfigurationError on the first problem found.
    """
    if not tiers:
        raise ConfigurationError("Commission tier table is empty")

    ordered = sorted(tiers, key=lambda t: t.min_vehicles)
    if list(ordered) != list(tiers):
        raise ConfigurationError("Commission tiers must be listed in ascending min_vehicles order")

    if ordered[0].min_vehicles > 1:
        raise ConfigurationError(
            f"Lowest tier {ordered[0].name!r} starts at {ordered[0].min_vehicles}; "
            "fleet sizes from 1 would have no tier"
        )

    for tier in ordered:
        if not Decimal("0") <= tier.rate <= Decimal("1"):
            raise ConfigurationError(f"Tier {tier.name!r} rate {tier.rate} outside [0, 1]")
        if tier.max_vehicles is not None and tier.max_vehicles < tier.min_vehicles:
            raise ConfigurationError(f"Tier {tier.name!r} has max_vehicles below min_vehicles")

    for lower, upper in zip(ordered, ordered[1:]):
        if lower.max_vehicles is None:
            raise ConfigurationError(
                f"Tier {lower.name!r} is unbounded but tier {upper.name!r} follows it"
            )
        if upper.min_vehicles <= lower.max_vehicles:
            raise ConfigurationError(f"Tiers {lower.name!r} and {upper.name!r} overlap")
        if upper.min_vehicles != lower.max_vehicles + 1:
            raise ConfigurationError(
                f"Gap between tiers {lower.name!r} and {upper.name!r} "
                f"({lower.max_vehicles} -> {upper.min_vehicles})"
            )

    if ordered[-1].max_vehicles is not None:
        raise ConfigurationError(
            f"Top tier {ordered[-1].name!r} must be unbounded (max_vehicles=None)"
        )


def _require_fraction(name: str, value: Decimal) -> None:
    if value is None:
        raise ConfigurationError(f"Missing policy constant {name}")
    if not Decimal("0") <= value <= Decimal("1"):
        raise ConfigurationError(f"{name}={value} must be within [0, 1]")


def _require_non_negative(name: str, value: int) -> None:
    if value is None:
        raise ConfigurationError(f"Missing policy constant {name}")
    if value < 0:
        raise ConfigurationError(f"{name}={value} must not be negative")


@dataclass(frozen=True)
class PolicyTables:
    """Every constant the calculators depend on, under one version label"""

    version: str = "2025.1"
    effective_from: date = date(2025, 1, 1)
    commission_tiers: Tuple[CommissionTier, ...] = DEFAULT_COMMISSION_TIERS
    cancellation_cutoffs: Mapping[str, Optional[int]] = field(
        default_factory=lambda: DEFAULT_CANCELLATION_CUTOFFS
    )
    service_fee_rate: Decimal = Decimal("0.15")
    insurance_platform_share: Decimal = Decimal("0.30")
    processing_fee_cents: int = 150
    processing_fee_mode: ProcessingFeeMode = ProcessingFeeMode.PER_DISBURSEMENT
    standard_hold_days: int = 3
    new_host_hold_days: int = 7
    new_host_trip_threshold: int = 3
    welcome_commission_rate: Decimal = Decimal("0.10")
    reporting_threshold_cents: int = 2_000_000
    reporting_threshold_transactions: int = 200
    state_tax_rate: Decimal = Decimal("0.056")
    city_tax_rate: Decimal = Decimal("0.028")

    def __post_init__(self) -> None:
        if not self.version:
            raise ConfigurationError("Policy tables need a version label")

        object.__setattr__(self, "commission_tiers", tuple(self.commission_tiers))
        validate_tiers(self.commission_tiers)

        if not self.cancellation_cutoffs:
            raise ConfigurationError("No cancellation policies configured")
        for policy, cutoff in self.cancellation_cutoffs.items():
            if cutoff is not None and cutoff < 0:
                raise ConfigurationError(f"Cancellation cutoff for {policy!r} is negative")
        object.__setattr__(
            self, "cancellation_cutoffs", MappingProxyType(dict(self.cancellation_cutoffs))
        )

        for name in (
            "service_fee_rate",
            "insurance_platform_share",
            "welcome_commission_rate",
            "state_tax_rate",
            "city_tax_rate",
        ):
            _require_fraction(name, getattr(self, name))

        for name in (
            "processing_fee_cents",
            "standard_hold_days",
            "new_host_hold_days",
            "new_host_trip_threshold",
            "reporting_threshold_cents",
            "reporting_threshold_transactions",
        ):
            _require_non_negative(name, getattr(self, name))

        object.__setattr__(self, "processing_fee_mode", ProcessingFeeMode(self.processing_fee_mode))

    @property
    def tax_rate(self) -> Decimal:
        """Combined flat state + city privilege tax rate"""
        return self.state_tax_rate + self.city_tax_rate

    def cutoff_hours(self, policy: str) -> Optional[int]:
        """Full-refund cutoff for a policy name. Unknown names are a configuration error."""
        try:
            return self.cancellation_cutoffs[policy]
        except KeyError:
            raise ConfigurationError(f"Unknown cancellation policy {policy!r}") from None

    def with_changes(self, **changes) -> "PolicyTables":
        """Build a new, validated version. A new `version` label is required."""
        if "version" not in changes or changes["version"] == self.version:
            raise ConfigurationError("A policy change must carry a new version label")
        return replace(self, **changes)


DEFAULT_POLICY_TABLES = PolicyTables()
