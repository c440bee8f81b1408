"""Domain models - frozen dataclasses for booking records and derived settlement reports.

All money fields are integer cents. Reports are read-only projections and are
never used to mutate the records they were derived from.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from settlement_engine.domain.exceptions import ConfigurationError
from settlement_engine.utils.date_utils import ceil_days_until


class BookingStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    PENDING = "PENDING"
    DISPUTE_REVIEW = "DISPUTE_REVIEW"
    NO_SHOW = "NO_SHOW"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    PARTIAL_REFUND = "PARTIAL_REFUND"
    REFUNDED = "REFUNDED"
    FAILED = "FAILED"


# Payment statuses meaning the guest's money was actually captured
CAPTURED_PAYMENT_STATUSES = frozenset(
    {PaymentStatus.PAID, PaymentStatus.PARTIAL_REFUND, PaymentStatus.REFUNDED}
)

# Booking statuses whose collected money is earned revenue
EARNING_STATUSES = frozenset(
    {
        BookingStatus.CONFIRMED,
        BookingStatus.ACTIVE,
        BookingStatus.COMPLETED,
        BookingStatus.DISPUTE_REVIEW,
    }
)

# Booking statuses settled through the cancellation policy
CANCELLATION_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.NO_SHOW})


class ChargeKind(str, Enum):
    INSURANCE = "INSURANCE"
    TAX = "TAX"


class FlagKind(str, Enum):
    DATA_INTEGRITY = "DATA_INTEGRITY"  # needs human review, never clamped away
    INPUT_RANGE = "INPUT_RANGE"  # expected edge case, normalized


class PayoutStatus(str, Enum):
    PENDING = "PENDING"
    READY = "READY"


@dataclass(frozen=True)
class Flag:
    """A non-fatal problem found while processing one record"""

    kind: FlagKind
    record_id: str
    code: str
    message: str


@dataclass(frozen=True)
class Booking:
    """Booking/payment record from the booking source"""

    booking_id: str
    host_id: str
    subtotal_cents: int
    service_fee_cents: int
    insurance_fee_cents: int
    taxes_cents: int
    delivery_fee_cents: int
    total_cents: int
    status: BookingStatus
    payment_status: PaymentStatus
    cancellation_policy: str
    start_at: datetime
    end_at: datetime
    cancelled_at: Optional[datetime] = None

    @property
    def components_total_cents(self) -> int:
        return (
            self.subtotal_cents
            + self.delivery_fee_cents
            + self.insurance_fee_cents
            + self.service_fee_cents
            + self.taxes_cents
        )

    @property
    def is_captured(self) -> bool:
        return self.payment_status in CAPTURED_PAYMENT_STATUSES


@dataclass(frozen=True)
class Host:
    """Host directory entry"""

    host_id: str
    fleet_size: int
    completed_trips: int
    recruited: bool = False


@dataclass(frozen=True)
class Charge:
    """Insurance or tax charge collected outside a booking's own fee fields"""

    charge_id: str
    booking_id: str
    kind: ChargeKind
    amount_cents: int


@dataclass(frozen=True)
class BookingCharges:
    """Guest-facing price breakdown for a new booking"""

    subtotal_cents: int
    delivery_fee_cents: int
    insurance_fee_cents: int
    service_fee_cents: int
    taxes_cents: int
    total_cents: int
    tax_rate: Decimal


@dataclass(frozen=True)
class CommissionTier:
    """Fleet-size bracket mapped to a host commission rate"""

    name: str
    min_vehicles: int
    max_vehicles: Optional[int]
    rate: Decimal

    @property
    def host_keeps(self) -> Decimal:
        return Decimal("1") - self.rate

    def matches(self, fleet_size: int) -> bool:
        return fleet_size >= self.min_vehicles and (
            self.max_vehicles is None or fleet_size <= self.max_vehicles
        )


@dataclass(frozen=True)
class TierResolution:
    """Outcome of resolving a fleet size against the tier table"""

    tier: CommissionTier
    fallback: bool = False
    flags: Tuple[Flag, ...] = ()


@dataclass(frozen=True)
class CancellationSettlement:
    """Refund/retention split for one cancelled booking"""

    booking_id: Optional[str]
    subtotal_cents: int
    service_fee_cents: int
    policy: str
    hours_before_start: float
    refund_percent: int
    refund_amount_cents: int
    service_fee_retained_cents: int
    non_refunded_subtotal_cents: int
    total_retained_cents: int
    total_refunded_cents: int
    flags: Tuple[Flag, ...] = ()


@dataclass(frozen=True)
class CancellationSummary:
    """Aggregate over many settlements, with a per-policy histogram"""

    count: int = 0
    by_policy: Counter = field(default_factory=Counter)
    refunded_cents: int = 0
    retained_cents: int = 0

    def __add__(self, other: "CancellationSummary") -> "CancellationSummary":
        return CancellationSummary(
            count=self.count + other.count,
            by_policy=self.by_policy + other.by_policy,
            refunded_cents=self.refunded_cents + other.refunded_cents,
            retained_cents=self.retained_cents + other.retained_cents,
        )


@dataclass(frozen=True)
class PendingPayout:
    """Net host payout for one booking and when it becomes releasable"""

    booking_id: str
    host_id: str
    gross_earnings_cents: int
    commission_rate: Decimal
    tier_name: str
    rate_overridden: bool
    platform_fee_cents: int
    processing_fee_cents: int
    net_payout_cents: int
    trip_end: datetime
    eligible_at: datetime
    hold_days: int
    new_host: bool
    disbursements: int = 1
    flags: Tuple[Flag, ...] = ()

    def days_until_eligible(self, now: datetime) -> int:
        return ceil_days_until(self.eligible_at, now)

    def status(self, now: datetime) -> PayoutStatus:
        """READY means releasable, not released; disbursement happens elsewhere"""
        if self.days_until_eligible(now) == 0:
            return PayoutStatus.READY
        return PayoutStatus.PENDING


@dataclass(frozen=True)
class PlatformRevenue:
    guest_service_fees_cents: int = 0
    host_commissions_cents: int = 0
    insurance_platform_share_cents: int = 0
    processing_fees_cents: int = 0
    cancellation_revenue_cents: int = 0

    @property
    def total_cents(self) -> int:
        return (
            self.guest_service_fees_cents
            + self.host_commissions_cents
            + self.insurance_platform_share_cents
            + self.processing_fees_cents
            + self.cancellation_revenue_cents
        )

    def __add__(self, other: "PlatformRevenue") -> "PlatformRevenue":
        return PlatformRevenue(
            guest_service_fees_cents=self.guest_service_fees_cents + other.guest_service_fees_cents,
            host_commissions_cents=self.host_commissions_cents + other.host_commissions_cents,
            insurance_platform_share_cents=self.insurance_platform_share_cents
            + other.insurance_platform_share_cents,
            processing_fees_cents=self.processing_fees_cents + other.processing_fees_cents,
            cancellation_revenue_cents=self.cancellation_revenue_cents
            + other.cancellation_revenue_cents,
        )


@dataclass(frozen=True)
class PassthroughMoney:
    insurance_provider_share_cents: int = 0
    taxes_collected_cents: int = 0
    host_payable_cents: int = 0

    @property
    def total_cents(self) -> int:
        return (
            self.insurance_provider_share_cents
            + self.taxes_collected_cents
            + self.host_payable_cents
        )

    def __add__(self, other: "PassthroughMoney") -> "PassthroughMoney":
        return PassthroughMoney(
            insurance_provider_share_cents=self.insurance_provider_share_cents
            + other.insurance_provider_share_cents,
            taxes_collected_cents=self.taxes_collected_cents + other.taxes_collected_cents,
            host_payable_cents=self.host_payable_cents + other.host_payable_cents,
        )


@dataclass(frozen=True)
class RevenueClassification:
    """Period report partitioning collected money into revenue, passthrough and refunds"""

    policy_version: str
    platform_revenue: PlatformRevenue = field(default_factory=PlatformRevenue)
    passthrough: PassthroughMoney = field(default_factory=PassthroughMoney)
    total_refunded_cents: int = 0
    gross_collected_cents: int = 0
    cancellations: CancellationSummary = field(default_factory=CancellationSummary)
    booking_count: int = 0
    charge_count: int = 0
    skipped_count: int = 0
    excluded_count: int = 0
    excluded_total_cents: int = 0
    flags: Tuple[Flag, ...] = ()

    @property
    def accounted_cents(self) -> int:
        return (
            self.platform_revenue.total_cents
            + self.passthrough.total_cents
            + self.total_refunded_cents
        )

    @property
    def is_balanced(self) -> bool:
        return self.accounted_cents == self.gross_collected_cents

    @property
    def flagged_count(self) -> int:
        return len({(f.record_id, f.code) for f in self.flags})

    def __add__(self, other: "RevenueClassification") -> "RevenueClassification":
        if other.policy_version != self.policy_version:
            raise ConfigurationError(
                f"Cannot merge classifications computed under policy versions "
                f"{self.policy_version!r} and {other.policy_version!r}"
            )
        return RevenueClassification(
            policy_version=self.policy_version,
            platform_revenue=self.platform_revenue + other.platform_revenue,
            passthrough=self.passthrough + other.passthrough,
            total_refunded_cents=self.total_refunded_cents + other.total_refunded_cents,
            gross_collected_cents=self.gross_collected_cents + other.gross_collected_cents,
            cancellations=self.cancellations + other.cancellations,
            booking_count=self.booking_count + other.booking_count,
            charge_count=self.charge_count + other.charge_count,
            skipped_count=self.skipped_count + other.skipped_count,
            excluded_count=self.excluded_count + other.excluded_count,
            excluded_total_cents=self.excluded_total_cents + other.excluded_total_cents,
            flags=self.flags + other.flags,
        )


@dataclass(frozen=True)
class HostYearTotals:
    """Yearly totals for one host, as provided by the caller"""

    host_id: str
    tax_year: int
    gross_receipts_cents: int
    transaction_count: int
    platform_fees_cents: int = 0
    processing_fees_cents: int = 0
    net_payouts_cents: int = 0


@dataclass(frozen=True)
class Host1099Aggregate:
    host_id: str
    tax_year: int
    gross_receipts_cents: int
    transaction_count: int
    platform_fees_cents: int
    processing_fees_cents: int
    net_payouts_cents: int
    reporting_required: bool
    finalized: bool = False


@dataclass(frozen=True)
class FilingTimeline:
    tax_year: int
    year_end: date
    recipient_copy_due: date
    irs_efile_due: date
