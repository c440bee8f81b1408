"""Guest-side pricing and booking total integrity checks"""

from typing import Optional

from settlement_engine.domain.models import Booking, BookingCharges, Flag, FlagKind
from settlement_engine.domain.policy import PolicyTables
from settlement_engine.utils.money import apply_rate, format_cents


def quote_booking(
    subtotal_cents: int,
    tables: PolicyTables,
    delivery_fee_cents: int = 0,
    insurance_fee_cents: int = 0,
) -> BookingCharges:
    """
    Price a booking the way the guest is charged.

    - Service fee: fixed rate of the rental subtotal
    - Taxes: flat state + city privilege tax on subtotal, delivery and service fee
      (insurance is not taxed)
    """
    service_fee = apply_rate(subtotal_cents, tables.service_fee_rate)
    taxable = subtotal_cents + delivery_fee_cents + service_fee
    taxes = apply_rate(taxable, tables.tax_rate)
    total = subtotal_cents + delivery_fee_cents + insurance_fee_cents + service_fee + taxes

    return BookingCharges(
        subtotal_cents=subtotal_cents,
        delivery_fee_cents=delivery_fee_cents,
        insurance_fee_cents=insurance_fee_cents,
        service_fee_cents=service_fee,
        taxes_cents=taxes,
        total_cents=total,
        tax_rate=tables.tax_rate,
    )


def check_booking_total(booking: Booking) -> Optional[Flag]:
    """Flag a booking whose stored total is not the sum of its components"""
    expected = booking.components_total_cents
    if booking.total_cents == expected:
        return None
    return Flag(
        kind=FlagKind.DATA_INTEGRITY,
        record_id=booking.booking_id,
        code="total_mismatch",
        message=(
            f"Stored total {format_cents(booking.total_cents)} does not match "
            f"components {format_cents(expected)}"
        ),
    )


def check_service_fee(booking: Booking, tables: PolicyTables) -> Optional[Flag]:
    """Flag a booking whose service fee differs from the configured rate by more than a cent"""
    expected = apply_rate(booking.subtotal_cents, tables.service_fee_rate)
    if abs(booking.service_fee_cents - expected) <= 1:
        return None
    return Flag(
        kind=FlagKind.DATA_INTEGRITY,
        record_id=booking.booking_id,
        code="service_fee_mismatch",
        message=(
            f"Service fee {format_cents(booking.service_fee_cents)} differs from "
            f"{format_cents(expected)} at rate {tables.service_fee_rate}"
        ),
    )
