"""Unit tests for host payout netting and hold periods"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from settlement_engine.domain.exceptions import ConfigurationError, InvalidRecordError
from settlement_engine.domain.models import FlagKind, Host, PayoutStatus
from settlement_engine.domain.payouts import (
    hold_days_for,
    is_new_host,
    net_payout,
    processing_fee_for,
    welcome_rate_override,
)
from settlement_engine.domain.policy import ProcessingFeeMode


def test_standard_tier_net_payout(tables, hosts, make_booking):
    """$500 gross on the Standard tier: $125.00 platform fee, $373.50 net"""
    booking = make_booking(subtotal_cents=45000, delivery_fee_cents=5000, service_fee_cents=6750)

    payout = net_payout(booking, hosts["host_standard"], tables)

    assert payout.gross_earnings_cents == 50000
    assert payout.tier_name == "Standard"
    assert payout.commission_rate == Decimal("0.25")
    assert payout.platform_fee_cents == 12500
    assert payout.processing_fee_cents == 150
    assert payout.net_payout_cents == 37350
    assert payout.rate_overridden is False
    assert payout.flags == ()


def test_service_fee_is_not_host_money(tables, hosts, make_booking):
    cheap = make_booking(service_fee_cents=0)
    pricey = make_booking(service_fee_cents=9999, total_cents=None)

    assert (
        net_payout(cheap, hosts["host_standard"], tables).net_payout_cents
        == net_payout(pricey, hosts["host_standard"], tables).net_payout_cents
    )


def test_gold_tier_rate(tables, hosts, make_booking):
    booking = make_booking(host_id="host_gold", subtotal_cents=123457)

    payout = net_payout(booking, hosts["host_gold"], tables)

    assert payout.platform_fee_cents == 24691  # 24691.4 rounded half-up
    assert payout.net_payout_cents == 123457 - 24691 - 150


def test_net_payout_never_decreases_with_gross(tables, hosts, make_booking):
    """More gross at the same rate never yields less net"""
    host = hosts["host_gold"]
    previous = None
    for subtotal in range(0, 5000, 37):
        net = net_payout(
            make_booking(host_id="host_gold", subtotal_cents=subtotal), host, tables
        ).net_payout_cents
        if previous is not None:
            assert net >= previous
        previous = net


def test_fees_plus_net_equal_gross(tables, hosts, make_booking):
    for subtotal in (1, 99, 1001, 77777):
        payout = net_payout(make_booking(subtotal_cents=subtotal), hosts["host_standard"], tables)
        assert (
            payout.platform_fee_cents + payout.processing_fee_cents + payout.net_payout_cents
            == payout.gross_earnings_cents
        )


def test_negative_net_is_flagged_not_clamped(tables, hosts, make_booking):
    """A $1.00 booking cannot cover the flat processing fee"""
    booking = make_booking(booking_id="bk_tiny", subtotal_cents=100)

    payout = net_payout(booking, hosts["host_standard"], tables)

    assert payout.net_payout_cents == 100 - 25 - 150
    assert [f.code for f in payout.flags] == ["negative_net_payout"]
    assert payout.flags[0].kind == FlagKind.DATA_INTEGRITY
    assert payout.flags[0].record_id == "bk_tiny"


def test_welcome_rate_for_recruited_host_first_booking(tables, hosts, make_booking):
    host = hosts["host_recruited"]
    booking = make_booking(host_id=host.host_id, subtotal_cents=50000)

    override = welcome_rate_override(host, tables)
    payout = net_payout(booking, host, tables, rate_override=override)

    assert override == Decimal("0.10")
    assert payout.rate_overridden is True
    assert payout.tier_name == "Standard"
    assert payout.platform_fee_cents == 5000
    assert payout.net_payout_cents == 50000 - 5000 - 150


def test_no_welcome_rate_after_first_trip(tables):
    assert welcome_rate_override(Host("h", 2, completed_trips=1, recruited=True), tables) is None
    assert welcome_rate_override(Host("h", 2, completed_trips=0, recruited=False), tables) is None


def test_override_does_not_touch_tier_table(tables, hosts, make_booking):
    host = hosts["host_standard"]
    booking = make_booking()

    net_payout(booking, host, tables, rate_override=Decimal("0.05"))
    payout = net_payout(booking, host, tables)

    assert payout.commission_rate == Decimal("0.25")


def test_override_out_of_range_raises(tables, hosts, make_booking):
    with pytest.raises(ConfigurationError):
        net_payout(make_booking(), hosts["host_standard"], tables, rate_override=Decimal("1.2"))


def test_host_mismatch_raises(tables, hosts, make_booking):
    with pytest.raises(InvalidRecordError):
        net_payout(make_booking(host_id="host_gold"), hosts["host_standard"], tables)


def test_hold_days(tables, hosts, make_booking):
    """New hosts (fewer than 3 completed trips) wait 7 days; others wait 3"""
    assert is_new_host(hosts["host_new"], tables) is True
    assert hold_days_for(hosts["host_new"], tables) == 7
    assert hold_days_for(Host("h", 1, completed_trips=3), tables) == 3

    booking = make_booking(host_id="host_new")
    payout = net_payout(booking, hosts["host_new"], tables)

    assert payout.new_host is True
    assert payout.hold_days == 7
    assert payout.eligible_at == booking.end_at + timedelta(days=7)


def test_days_until_eligible_and_status(tables, hosts, make_booking):
    booking = make_booking()
    payout = net_payout(booking, hosts["host_standard"], tables)

    assert payout.eligible_at == booking.end_at + timedelta(days=3)
    assert payout.days_until_eligible(booking.end_at) == 3
    assert payout.days_until_eligible(booking.end_at + timedelta(hours=1)) == 3
    assert payout.status(booking.end_at) == PayoutStatus.PENDING
    assert payout.days_until_eligible(payout.eligible_at) == 0
    assert payout.status(payout.eligible_at + timedelta(days=30)) == PayoutStatus.READY


def test_processing_fee_modes(tables):
    assert processing_fee_for(1, tables) == 150
    assert processing_fee_for(3, tables) == 450

    per_booking = tables.with_changes(
        version="per-booking", processing_fee_mode=ProcessingFeeMode.PER_BOOKING
    )
    assert processing_fee_for(3, per_booking) == 150

    with pytest.raises(InvalidRecordError):
        processing_fee_for(0, tables)


def test_split_disbursement_pays_fee_twice(tables, hosts, make_booking):
    payout = net_payout(make_booking(subtotal_cents=50000), hosts["host_standard"], tables, disbursements=2)

    assert payout.processing_fee_cents == 300
    assert payout.net_payout_cents == 50000 - 12500 - 300


def test_payout_eligibility_is_computed_not_stored(tables, hosts, make_booking):
    payout = net_payout(make_booking(), hosts["host_standard"], tables)
    now = datetime(2025, 6, 14, 10, 0)

    assert payout.days_until_eligible(now) == 2
