"""Cancellation settlement - splits a cancelled booking's charge into guest refund and platform retention.

Refunds follow a binary cutoff per policy:
- flexible: full refund of the subtotal when cancelled 24h+ before start
- moderate: full refund when cancelled 48h+ before start
- strict: full refund when cancelled 7 days (168h)+ before start
- super_strict: never refundable
Below the cutoff nothing is refunded. The guest service fee is always
retained by the platform; it is not part of the refundable subtotal.
"""

from collections import Counter
from datetime import datetime
from typing import Iterable, Optional

from settlement_engine.domain.models import (
    Booking,
    BookingStatus,
    CancellationSettlement,
    CancellationSummary,
    Flag,
    FlagKind,
)
from settlement_engine.domain.exceptions import InvalidRecordError
from settlement_engine.domain.policy import PolicyTables
from settlement_engine.utils.date_utils import hours_between
from settlement_engine.utils.money import HUNDRED, apply_rate


def refund_percent(policy: str, hours_before_start: float, tables: PolicyTables) -> int:
    """Refund percentage (0 or 100) for a policy at a given lead time"""
    cutoff = tables.cutoff_hours(policy)  # unknown policy raises ConfigurationError

    if hours_before_start < 0:
        # Cancelled after the trip started: never refundable
        return 0
    if cutoff is None:
        return 0
    return 100 if hours_before_start >= cutoff else 0


def settle(
    subtotal_cents: int,
    service_fee_cents: int,
    policy: str,
    hours_before_start: float,
    tables: PolicyTables,
    booking_id: Optional[str] = None,
) -> CancellationSettlement:
    """
    Compute refund and retention amounts for one cancellation.

    refund_amount + total_retained always equals subtotal + service_fee:
    the non-refunded subtotal is derived by subtraction, not by a second
    rate application, so no cent can be lost to rounding.

    Example:
        $400 subtotal, $60 service fee, moderate, 30h before start
        -> 0% refund, $0 refunded, $460 retained
    """
    if subtotal_cents < 0 or service_fee_cents < 0:
        raise InvalidRecordError(
            f"Negative amounts cannot be settled (subtotal={subtotal_cents}, "
            f"service_fee={service_fee_cents})"
        )

    flags = []
    if hours_before_start < 0:
        flags.append(
            Flag(
                kind=FlagKind.INPUT_RANGE,
                record_id=booking_id or "",
                code="cancelled_after_start",
                message=f"Cancelled {abs(hours_before_start):.1f}h after trip start; no refund",
            )
        )

    percent = refund_percent(policy, hours_before_start, tables)
    refund_amount = apply_rate(subtotal_cents, percent / HUNDRED)
    non_refunded_subtotal = subtotal_cents - refund_amount

    return CancellationSettlement(
        booking_id=booking_id,
        subtotal_cents=subtotal_cents,
        service_fee_cents=service_fee_cents,
        policy=policy,
        hours_before_start=hours_before_start,
        refund_percent=percent,
        refund_amount_cents=refund_amount,
        service_fee_retained_cents=service_fee_cents,
        non_refunded_subtotal_cents=non_refunded_subtotal,
        total_retained_cents=service_fee_cents + non_refunded_subtotal,
        total_refunded_cents=refund_amount,
        flags=tuple(flags),
    )


def hours_before_start(cancelled_at: datetime, start_at: datetime) -> float:
    """Lead time of a cancellation in hours; negative when cancelled after start"""
    return hours_between(cancelled_at, start_at)


def settle_booking(booking: Booking, tables: PolicyTables) -> CancellationSettlement:
    """
    Settle a cancelled or no-show booking from its own record.

    A no-show is treated as a cancellation at the trip start time.
    """
    if booking.status == BookingStatus.NO_SHOW:
        cancelled_at = booking.cancelled_at or booking.start_at
    elif booking.cancelled_at is None:
        raise InvalidRecordError(f"Booking {booking.booking_id} is cancelled but has no cancelled_at")
    else:
        cancelled_at = booking.cancelled_at

    return settle(
        subtotal_cents=booking.subtotal_cents,
        service_fee_cents=booking.service_fee_cents,
        policy=booking.cancellation_policy,
        hours_before_start=hours_before_start(cancelled_at, booking.start_at),
        tables=tables,
        booking_id=booking.booking_id,
    )


def summarize_cancellations(settlements: Iterable[CancellationSettlement]) -> CancellationSummary:
    """Count, per-policy histogram, and refunded/retained totals for a set of settlements"""
    count = 0
    by_policy: Counter = Counter()
    refunded = 0
    retained = 0
    for settlement in settlements:
        count += 1
        by_policy[settlement.policy] += 1
        refunded += settlement.total_refunded_cents
        retained += settlement.total_retained_cents

    return CancellationSummary(
        count=count,
        by_policy=by_policy,
        refunded_cents=refunded,
        retained_cents=retained,
    )


def describe_policy(policy: str, tables: PolicyTables) -> str:
    """Human-readable description of a cancellation policy under the given tables"""
    cutoff = tables.cutoff_hours(policy)
    if cutoff is None:
        return "Non-refundable. The rental subtotal and service fee are kept on any cancellation."
    if cutoff % 24 == 0 and cutoff >= 48:
        lead = f"{cutoff // 24} days"
    else:
        lead = f"{cutoff} hours"
    return (
        f"Full refund of the rental subtotal when cancelled at least {lead} before pickup. "
        "No refund after that. The service fee is non-refundable."
    )
