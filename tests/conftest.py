"""Pytest fixtures for testing"""

import pytest
from datetime import datetime, timedelta
from typing import Callable

from settlement_engine.domain.models import Booking, BookingStatus, Host, PaymentStatus
from settlement_engine.domain.policy import DEFAULT_POLICY_TABLES, PolicyTables
from settlement_engine.engine import SettlementEngine


TRIP_START = datetime(2025, 6, 10, 10, 0)
TRIP_END = datetime(2025, 6, 13, 10, 0)


@pytest.fixture
def tables() -> PolicyTables:
    """Default policy tables"""
    return DEFAULT_POLICY_TABLES


@pytest.fixture
def engine(tables: PolicyTables) -> SettlementEngine:
    return SettlementEngine(tables)


@pytest.fixture
def hosts() -> dict[str, Host]:
    """Host directory covering every commission tier"""
    return {
        "host_standard": Host(host_id="host_standard", fleet_size=3, completed_trips=40),
        "host_gold": Host(host_id="host_gold", fleet_size=12, completed_trips=200),
        "host_platinum": Host(host_id="host_platinum", fleet_size=60, completed_trips=900),
        "host_new": Host(host_id="host_new", fleet_size=1, completed_trips=1),
        "host_recruited": Host(
            host_id="host_recruited", fleet_size=2, completed_trips=0, recruited=True
        ),
    }


@pytest.fixture
def make_booking() -> Callable[..., Booking]:
    """
    Booking factory. Service fee and taxes default to zero and the total is
    derived from the components unless given explicitly.
    """

    def _make(
        booking_id: str = "bk_1",
        host_id: str = "host_standard",
        subtotal_cents: int = 40000,
        service_fee_cents: int = 0,
        insurance_fee_cents: int = 0,
        taxes_cents: int = 0,
        delivery_fee_cents: int = 0,
        total_cents: int | None = None,
        status: BookingStatus = BookingStatus.COMPLETED,
        payment_status: PaymentStatus = PaymentStatus.PAID,
        cancellation_policy: str = "moderate",
        start_at: datetime = TRIP_START,
        end_at: datetime = TRIP_END,
        cancelled_at: datetime | None = None,
    ) -> Booking:
        if total_cents is None:
            total_cents = (
                subtotal_cents
                + service_fee_cents
                + insurance_fee_cents
                + taxes_cents
                + delivery_fee_cents
            )
        return Booking(
            booking_id=booking_id,
            host_id=host_id,
            subtotal_cents=subtotal_cents,
            service_fee_cents=service_fee_cents,
            insurance_fee_cents=insurance_fee_cents,
            taxes_cents=taxes_cents,
            delivery_fee_cents=delivery_fee_cents,
            total_cents=total_cents,
            status=status,
            payment_status=payment_status,
            cancellation_policy=cancellation_policy,
            start_at=start_at,
            end_at=end_at,
            cancelled_at=cancelled_at,
        )

    return _make


@pytest.fixture
def period_bookings(make_booking) -> list[Booking]:
    """A small closed period mixing completed trips, cancellations and unpaid bookings"""
    return [
        make_booking(
            booking_id="bk_completed",
            host_id="host_standard",
            subtotal_cents=40000,
            service_fee_cents=6000,
            insurance_fee_cents=2500,
            taxes_cents=3898,
            delivery_fee_cents=1000,
        ),
        make_booking(
            booking_id="bk_gold",
            host_id="host_gold",
            subtotal_cents=123457,
            service_fee_cents=18519,
            insurance_fee_cents=999,
            taxes_cents=11927,
            status=BookingStatus.ACTIVE,
        ),
        make_booking(
            booking_id="bk_cancel_late",
            host_id="host_standard",
            subtotal_cents=40000,
            service_fee_cents=6000,
            insurance_fee_cents=1500,
            taxes_cents=3864,
            status=BookingStatus.CANCELLED,
            payment_status=PaymentStatus.PARTIAL_REFUND,
            cancelled_at=TRIP_START - timedelta(hours=30),
        ),
        make_booking(
            booking_id="bk_cancel_early",
            host_id="host_platinum",
            subtotal_cents=25001,
            service_fee_cents=3750,
            cancellation_policy="flexible",
            status=BookingStatus.CANCELLED,
            payment_status=PaymentStatus.REFUNDED,
            cancelled_at=TRIP_START - timedelta(hours=30),
        ),
        make_booking(
            booking_id="bk_no_show",
            host_id="host_gold",
            subtotal_cents=9999,
            service_fee_cents=1500,
            cancellation_policy="strict",
            status=BookingStatus.NO_SHOW,
        ),
        make_booking(
            booking_id="bk_unpaid",
            host_id="host_gold",
            subtotal_cents=50000,
            status=BookingStatus.CONFIRMED,
            payment_status=PaymentStatus.PENDING,
        ),
    ]
