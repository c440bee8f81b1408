"""Pydantic schemas for validating raw records from the booking source and host directory.

Raw rows carry dollar amounts (decimal strings or numbers) and camelCase keys;
validated records are converted to the cent-based domain dataclasses.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from settlement_engine.domain.models import (
    Booking,
    BookingStatus,
    Charge,
    ChargeKind,
    Host,
    PaymentStatus,
)
from settlement_engine.utils.date_utils import to_naive_utc
from settlement_engine.utils.money import dollars_to_cents


class SourceRecord(BaseModel):
    """Accepts both snake_case and camelCase keys"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class BookingRecord(SourceRecord):
    """One row from the booking/payment source"""

    id: str = Field(..., min_length=1, description="Booking identifier")
    host_id: str = Field(..., min_length=1)
    subtotal: Decimal = Field(..., ge=0, description="Rental charge before fees, in dollars")
    service_fee: Decimal = Field(Decimal("0"), ge=0)
    insurance_fee: Decimal = Field(Decimal("0"), ge=0)
    taxes: Decimal = Field(Decimal("0"), ge=0)
    delivery_fee: Decimal = Field(Decimal("0"), ge=0)
    total_amount: Decimal = Field(..., ge=0)
    status: BookingStatus
    payment_status: PaymentStatus
    cancellation_policy: str = Field("moderate", min_length=1)
    start_date: datetime
    end_date: datetime
    cancelled_at: Optional[datetime] = None

    @field_validator("start_date", "end_date", "cancelled_at")
    @classmethod
    def normalize_to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Sources mix offset-aware and naive timestamps; compare them all as naive UTC"""
        return None if value is None else to_naive_utc(value)

    def to_domain(self) -> Booking:
        return Booking(
            booking_id=self.id,
            host_id=self.host_id,
            subtotal_cents=dollars_to_cents(self.subtotal),
            service_fee_cents=dollars_to_cents(self.service_fee),
            insurance_fee_cents=dollars_to_cents(self.insurance_fee),
            taxes_cents=dollars_to_cents(self.taxes),
            delivery_fee_cents=dollars_to_cents(self.delivery_fee),
            total_cents=dollars_to_cents(self.total_amount),
            status=self.status,
            payment_status=self.payment_status,
            cancellation_policy=self.cancellation_policy.lower(),
            start_at=self.start_date,
            end_at=self.end_date,
            cancelled_at=self.cancelled_at,
        )


class HostRecord(SourceRecord):
    """One row from the host directory"""

    id: str = Field(..., min_length=1)
    fleet_size: int = Field(..., description="Active vehicles; zero or less is normalized downstream")
    completed_trips: int = Field(0, ge=0)
    recruited: bool = False

    def to_domain(self) -> Host:
        return Host(
            host_id=self.id,
            fleet_size=self.fleet_size,
            completed_trips=self.completed_trips,
            recruited=self.recruited,
        )


class ChargeRecord(SourceRecord):
    """Standalone insurance or tax charge"""

    id: str = Field(..., min_length=1)
    booking_id: str = Field(..., min_length=1)
    kind: ChargeKind
    amount: Decimal = Field(..., ge=0)

    def to_domain(self) -> Charge:
        return Charge(
            charge_id=self.id,
            booking_id=self.booking_id,
            kind=self.kind,
            amount_cents=dollars_to_cents(self.amount),
        )
