"""Unit tests for versioned policy tables"""

import pytest
from decimal import Decimal

from settlement_engine.domain.exceptions import ConfigurationError
from settlement_engine.domain.models import CommissionTier
from settlement_engine.domain.policy import (
    DEFAULT_COMMISSION_TIERS,
    PolicyTables,
    ProcessingFeeMode,
    validate_tiers,
)


def test_default_tables_are_valid(tables):
    """Default tables carry the published constants"""
    assert tables.version == "2025.1"
    assert tables.service_fee_rate == Decimal("0.15")
    assert tables.insurance_platform_share == Decimal("0.30")
    assert tables.processing_fee_cents == 150
    assert tables.tax_rate == Decimal("0.084")
    assert tables.cutoff_hours("strict") == 168
    assert tables.cutoff_hours("super_strict") is None


def test_unknown_cancellation_policy_is_configuration_error(tables):
    with pytest.raises(ConfigurationError):
        tables.cutoff_hours("lenient")


def test_cutoffs_cannot_be_mutated(tables):
    with pytest.raises(TypeError):
        tables.cancellation_cutoffs["flexible"] = 1


def test_with_changes_requires_new_version(tables):
    """Policy changes produce a new version; the old one is untouched"""
    with pytest.raises(ConfigurationError):
        tables.with_changes(service_fee_rate=Decimal("0.12"))

    with pytest.raises(ConfigurationError):
        tables.with_changes(version=tables.version, service_fee_rate=Decimal("0.12"))

    updated = tables.with_changes(version="2025.2", service_fee_rate=Decimal("0.12"))

    assert updated.version == "2025.2"
    assert updated.service_fee_rate == Decimal("0.12")
    assert tables.service_fee_rate == Decimal("0.15")


def test_processing_fee_mode_accepts_string():
    tables = PolicyTables(version="per-booking", processing_fee_mode="per_booking")

    assert tables.processing_fee_mode == ProcessingFeeMode.PER_BOOKING


@pytest.mark.parametrize(
    "changes",
    [
        {"service_fee_rate": Decimal("1.5")},
        {"insurance_platform_share": Decimal("-0.1")},
        {"processing_fee_cents": -1},
        {"standard_hold_days": -3},
        {"cancellation_cutoffs": {}},
        {"cancellation_cutoffs": {"flexible": -24}},
        {"version": ""},
    ],
)
def test_invalid_constants_rejected(changes):
    with pytest.raises(ConfigurationError):
        PolicyTables(**changes)


def test_validate_tiers_accepts_defaults():
    validate_tiers(DEFAULT_COMMISSION_TIERS)


@pytest.mark.parametrize(
    "tiers",
    [
        (),
        # gap between 9 and 11
        (
            CommissionTier("A", 1, 9, Decimal("0.25")),
            CommissionTier("B", 11, None, Decimal("0.20")),
        ),
        # overlap at 9
        (
            CommissionTier("A", 1, 9, Decimal("0.25")),
            CommissionTier("B", 9, None, Decimal("0.20")),
        ),
        # top tier bounded
        (
            CommissionTier("A", 1, 9, Decimal("0.25")),
            CommissionTier("B", 10, 49, Decimal("0.20")),
        ),
        # lowest tier starts above 1
        (CommissionTier("A", 5, None, Decimal("0.25")),),
        # rate out of range
        (CommissionTier("A", 1, None, Decimal("1.25")),),
        # out of order
        (
            CommissionTier("B", 10, None, Decimal("0.20")),
            CommissionTier("A", 1, 9, Decimal("0.25")),
        ),
    ],
)
def test_validate_tiers_rejects_broken_tables(tiers):
    with pytest.raises(ConfigurationError):
        validate_tiers(tiers)


def test_policy_tables_rejects_broken_tier_table():
    with pytest.raises(ConfigurationError):
        PolicyTables(
            version="broken",
            commission_tiers=(CommissionTier("A", 1, 9, Decimal("0.25")),),
        )
