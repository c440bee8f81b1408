"""Host payout netting and release eligibility"""

from decimal import Decimal
from typing import Optional

from settlement_engine.domain.commission import resolve_tier
from settlement_engine.domain.exceptions import ConfigurationError, InvalidRecordError
from settlement_engine.domain.models import Booking, Flag, FlagKind, Host, PendingPayout
from settlement_engine.domain.policy import PolicyTables, ProcessingFeeMode
from settlement_engine.utils.date_utils import add_days
from settlement_engine.utils.money import apply_rate


def welcome_rate_override(host: Host, tables: PolicyTables) -> Optional[Decimal]:
    """
    Discounted commission for a recruited host's first booking, else None.

    The result is meant to be passed explicitly as `rate_override` to
    net_payout; the tier table itself is never changed.
    """
    if host.recruited and host.completed_trips == 0:
        return tables.welcome_commission_rate
    return None


def is_new_host(host: Host, tables: PolicyTables) -> bool:
    return host.completed_trips < tables.new_host_trip_threshold


def hold_days_for(host: Host, tables: PolicyTables) -> int:
    """New hosts wait longer before their payouts can be released"""
    if is_new_host(host, tables):
        return tables.new_host_hold_days
    return tables.standard_hold_days


def processing_fee_for(disbursements: int, tables: PolicyTables) -> int:
    """Flat processing fee, charged per disbursement event or once per booking"""
    if disbursements < 1:
        raise InvalidRecordError(f"A payout needs at least one disbursement, got {disbursements}")
    if tables.processing_fee_mode == ProcessingFeeMode.PER_BOOKING:
        return tables.processing_fee_cents
    return tables.processing_fee_cents * disbursements


def net_payout(
    booking: Booking,
    host: Host,
    tables: PolicyTables,
    rate_override: Optional[Decimal] = None,
    disbursements: int = 1,
) -> PendingPayout:
    """
    Net a completed trip's host earnings and work out when they can be released.

    gross = subtotal + delivery fee (the guest service fee is never host money)
    platform fee = gross x commission rate
    net = gross - platform fee - processing fee

    A negative net (tiny booking, flat processing fee) is kept as-is and
    flagged; clamping it to zero would hide a real shortfall.

    Example:
        $500 gross, Standard tier (25%), $1.50 processing -> $125.00 fee, $373.50 net
    """
    if booking.host_id != host.host_id:
        raise InvalidRecordError(
            f"Booking {booking.booking_id} belongs to host {booking.host_id}, not {host.host_id}"
        )

    resolution = resolve_tier(host.fleet_size, tables, host_id=host.host_id)
    flags = list(resolution.flags)

    if rate_override is not None:
        if not Decimal("0") <= rate_override <= Decimal("1"):
            raise ConfigurationError(f"Commission rate override {rate_override} outside [0, 1]")
        rate = rate_override
    else:
        rate = resolution.tier.rate

    gross = booking.subtotal_cents + booking.delivery_fee_cents
    platform_fee = apply_rate(gross, rate)
    processing_fee = processing_fee_for(disbursements, tables)
    net = gross - platform_fee - processing_fee

    if net < 0:
        flags.append(
            Flag(
                kind=FlagKind.DATA_INTEGRITY,
                record_id=booking.booking_id,
                code="negative_net_payout",
                message=f"Net payout is {net} cents (gross {gross}, fees {platform_fee + processing_fee})",
            )
        )

    hold_days = hold_days_for(host, tables)

    return PendingPayout(
        booking_id=booking.booking_id,
        host_id=host.host_id,
        gross_earnings_cents=gross,
        commission_rate=rate,
        tier_name=resolution.tier.name,
        rate_overridden=rate_override is not None,
        platform_fee_cents=platform_fee,
        processing_fee_cents=processing_fee,
        net_payout_cents=net,
        trip_end=booking.end_at,
        eligible_at=add_days(booking.end_at, hold_days),
        hold_days=hold_days,
        new_host=is_new_host(host, tables),
        disbursements=disbursements,
        flags=tuple(flags),
    )
