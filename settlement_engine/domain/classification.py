"""Revenue classification - partitions a period's collected money into platform revenue,
passthrough liabilities and guest refunds.

For any closed period the report satisfies

    platform_revenue.total + passthrough.total + total_refunded == gross_collected

exactly, because every bucket contribution of a booking is derived from that
booking's own components and every split is done by subtraction.
"""

from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from settlement_engine.domain.cancellation import settle_booking
from settlement_engine.domain.commission import resolve_tier
from settlement_engine.domain.models import (
    CANCELLATION_STATUSES,
    EARNING_STATUSES,
    Booking,
    BookingStatus,
    CancellationSummary,
    Charge,
    ChargeKind,
    Flag,
    FlagKind,
    Host,
    PassthroughMoney,
    PaymentStatus,
    PendingPayout,
    PlatformRevenue,
    RevenueClassification,
)
from settlement_engine.domain.policy import PolicyTables
from settlement_engine.domain.pricing import check_booking_total
from settlement_engine.utils.money import apply_rate, split


@dataclass
class _Ledger:
    """Mutable running totals for one classification pass"""

    guest_service_fees: int = 0
    host_commissions: int = 0
    insurance_platform_share: int = 0
    processing_fees: int = 0
    cancellation_revenue: int = 0
    insurance_provider_share: int = 0
    taxes_collected: int = 0
    host_payable: int = 0
    total_refunded: int = 0
    gross_collected: int = 0
    booking_count: int = 0
    charge_count: int = 0
    skipped_count: int = 0
    excluded_count: int = 0
    excluded_total: int = 0
    cancellation_count: int = 0
    by_policy: Counter = field(default_factory=Counter)
    cancellation_refunded: int = 0
    cancellation_retained: int = 0
    flags: List[Flag] = field(default_factory=list)

    def add_insurance(self, amount_cents: int, tables: PolicyTables) -> None:
        platform_share, provider_share = split(amount_cents, tables.insurance_platform_share)
        self.insurance_platform_share += platform_share
        self.insurance_provider_share += provider_share

    def exclude(self, booking: Booking, flag: Flag) -> None:
        self.flags.append(flag)
        self.excluded_count += 1
        self.excluded_total += booking.total_cents

    def to_report(self, tables: PolicyTables) -> RevenueClassification:
        return RevenueClassification(
            policy_version=tables.version,
            platform_revenue=PlatformRevenue(
                guest_service_fees_cents=self.guest_service_fees,
                host_commissions_cents=self.host_commissions,
                insurance_platform_share_cents=self.insurance_platform_share,
                processing_fees_cents=self.processing_fees,
                cancellation_revenue_cents=self.cancellation_revenue,
            ),
            passthrough=PassthroughMoney(
                insurance_provider_share_cents=self.insurance_provider_share,
                taxes_collected_cents=self.taxes_collected,
                host_payable_cents=self.host_payable,
            ),
            total_refunded_cents=self.total_refunded,
            gross_collected_cents=self.gross_collected,
            cancellations=CancellationSummary(
                count=self.cancellation_count,
                by_policy=self.by_policy,
                refunded_cents=self.cancellation_refunded,
                retained_cents=self.cancellation_retained,
            ),
            booking_count=self.booking_count,
            charge_count=self.charge_count,
            skipped_count=self.skipped_count,
            excluded_count=self.excluded_count,
            excluded_total_cents=self.excluded_total,
            flags=tuple(self.flags),
        )


def _integrity_flag(record_id: str, code: str, message: str) -> Flag:
    return Flag(kind=FlagKind.DATA_INTEGRITY, record_id=record_id, code=code, message=message)


def _index_payouts(payouts: Iterable[PendingPayout], ledger: _Ledger) -> Dict[str, PendingPayout]:
    """One payout per booking; extra payout rows for the same booking are flagged and ignored"""
    by_booking: Dict[str, PendingPayout] = {}
    for payout in payouts:
        if payout.booking_id in by_booking:
            ledger.flags.append(
                _integrity_flag(
                    payout.booking_id,
                    "duplicate_payout",
                    "More than one payout supplied for booking; only the first is counted",
                )
            )
            continue
        by_booking[payout.booking_id] = payout
    return by_booking


def _classify_earning(
    booking: Booking,
    host: Host,
    payout: Optional[PendingPayout],
    tables: PolicyTables,
    ledger: _Ledger,
) -> None:
    host_gross = booking.subtotal_cents + booking.delivery_fee_cents

    if payout is not None:
        # Netting already decided the rate (override included) and the processing fee
        rate = payout.commission_rate
        processing_fee = payout.processing_fee_cents
        if payout.gross_earnings_cents != host_gross:
            ledger.flags.append(
                _integrity_flag(
                    booking.booking_id,
                    "payout_gross_mismatch",
                    f"Payout gross {payout.gross_earnings_cents} differs from booking "
                    f"subtotal + delivery {host_gross}",
                )
            )
    else:
        resolution = resolve_tier(host.fleet_size, tables, host_id=host.host_id)
        ledger.flags.extend(resolution.flags)
        rate = resolution.tier.rate
        processing_fee = 0

    commission = apply_rate(booking.subtotal_cents, rate)
    host_payable = host_gross - commission - processing_fee

    if host_payable < 0:
        ledger.flags.append(
            _integrity_flag(
                booking.booking_id,
                "negative_host_payable",
                f"Host payable is {host_payable} cents after commission and processing fee",
            )
        )

    ledger.guest_service_fees += booking.service_fee_cents
    ledger.host_commissions += commission
    ledger.processing_fees += processing_fee
    ledger.add_insurance(booking.insurance_fee_cents, tables)
    ledger.taxes_collected += booking.taxes_cents
    ledger.host_payable += host_payable


def _classify_cancellation(booking: Booking, tables: PolicyTables, ledger: _Ledger) -> None:
    settlement = settle_booking(booking, tables)
    ledger.flags.extend(settlement.flags)

    ledger.cancellation_revenue += settlement.total_retained_cents
    # Delivery, insurance and taxes of a trip that never ran go back to the guest
    ancillaries = booking.delivery_fee_cents + booking.insurance_fee_cents + booking.taxes_cents
    ledger.total_refunded += settlement.total_refunded_cents + ancillaries

    ledger.cancellation_count += 1
    ledger.by_policy[settlement.policy] += 1
    ledger.cancellation_refunded += settlement.total_refunded_cents
    ledger.cancellation_retained += settlement.total_retained_cents


def _classify_booking(
    booking: Booking,
    hosts: Mapping[str, Host],
    payouts: Mapping[str, PendingPayout],
    tables: PolicyTables,
    ledger: _Ledger,
) -> None:
    settling = booking.status in EARNING_STATUSES or booking.status in CANCELLATION_STATUSES

    if not booking.is_captured:
        ledger.skipped_count += 1
        return

    if not settling:
        ledger.exclude(
            booking,
            _integrity_flag(
                booking.booking_id,
                "captured_without_settlement",
                f"Payment captured on a {booking.status.value} booking",
            ),
        )
        return

    mismatch = check_booking_total(booking)
    if mismatch is not None:
        ledger.exclude(booking, mismatch)
        return

    if booking.status in CANCELLATION_STATUSES:
        if booking.status == BookingStatus.CANCELLED and booking.cancelled_at is None:
            ledger.exclude(
                booking,
                _integrity_flag(
                    booking.booking_id,
                    "missing_cancelled_at",
                    "Cancelled booking has no cancellation timestamp",
                ),
            )
            return
        _classify_cancellation(booking, tables, ledger)
    else:
        if booking.payment_status != PaymentStatus.PAID:
            # Money went back to the guest on a trip still marked as earning
            ledger.exclude(
                booking,
                _integrity_flag(
                    booking.booking_id,
                    "refunded_earning_booking",
                    f"{booking.status.value} booking has payment status "
                    f"{booking.payment_status.value}",
                ),
            )
            return
        host = hosts.get(booking.host_id)
        if host is None:
            ledger.exclude(
                booking,
                _integrity_flag(
                    booking.booking_id,
                    "unknown_host",
                    f"Host {booking.host_id} not found in host directory",
                ),
            )
            return
        _classify_earning(booking, host, payouts.get(booking.booking_id), tables, ledger)

    ledger.booking_count += 1
    ledger.gross_collected += booking.total_cents


def _classify_charge(charge: Charge, tables: PolicyTables, ledger: _Ledger) -> None:
    if charge.kind == ChargeKind.INSURANCE:
        ledger.add_insurance(charge.amount_cents, tables)
    else:
        ledger.taxes_collected += charge.amount_cents
    ledger.charge_count += 1
    ledger.gross_collected += charge.amount_cents


def _dedupe(records: Iterable, key: str, ledger: _Ledger, code: str) -> list:
    seen = set()
    unique = []
    for record in records:
        record_id = getattr(record, key)
        if record_id in seen:
            ledger.flags.append(
                _integrity_flag(record_id, code, f"Record {record_id} appears more than once; counted once")
            )
            continue
        seen.add(record_id)
        unique.append(record)
    return unique


def classify(
    bookings: Iterable[Booking],
    hosts: Mapping[str, Host],
    tables: PolicyTables,
    payouts: Iterable[PendingPayout] = (),
    insurance_charges: Iterable[Charge] = (),
    tax_charges: Iterable[Charge] = (),
) -> RevenueClassification:
    """
    Classify one closed period.

    Bookings with uncaptured payment are skipped (no money in the period).
    Bookings that fail an integrity check are excluded from the totals but
    counted in excluded_count / excluded_total and carried as flags.

    Raises ConfigurationError (unknown cancellation policy, broken tier table);
    that aborts the whole period rather than producing a wrong number.
    """
    ledger = _Ledger()

    payouts_by_booking = _index_payouts(payouts, ledger)

    for booking in _dedupe(bookings, "booking_id", ledger, "duplicate_booking"):
        _classify_booking(booking, hosts, payouts_by_booking, tables, ledger)

    charges = _dedupe(
        list(insurance_charges) + list(tax_charges), "charge_id", ledger, "duplicate_charge"
    )
    for charge in charges:
        _classify_charge(charge, tables, ledger)

    return ledger.to_report(tables)


def merge_classifications(
    reports: Sequence[RevenueClassification], tables: PolicyTables
) -> RevenueClassification:
    """Sum partition reports; order does not matter"""
    total = RevenueClassification(policy_version=tables.version)
    for report in reports:
        total = total + report
    return total


def classify_partitioned(
    bookings: Iterable[Booking],
    hosts: Mapping[str, Host],
    tables: PolicyTables,
    payouts: Iterable[PendingPayout] = (),
    insurance_charges: Iterable[Charge] = (),
    tax_charges: Iterable[Charge] = (),
    max_workers: Optional[int] = None,
) -> RevenueClassification:
    """
    Classify a large batch by partitioning on host id and merging by summation.

    Duplicates are removed before partitioning so that each record lands in
    exactly one partition. Charges follow their booking's host; charges for
    bookings outside the batch form their own partition.
    """
    ledger = _Ledger()
    unique_bookings = _dedupe(bookings, "booking_id", ledger, "duplicate_booking")
    payouts_by_booking = _index_payouts(payouts, ledger)
    charges = _dedupe(
        list(insurance_charges) + list(tax_charges), "charge_id", ledger, "duplicate_charge"
    )

    host_of_booking = {b.booking_id: b.host_id for b in unique_bookings}
    partitions: Dict[Optional[str], dict] = {}

    def partition(host_id: Optional[str]) -> dict:
        return partitions.setdefault(host_id, {"bookings": [], "payouts": [], "charges": []})

    for booking in unique_bookings:
        part = partition(booking.host_id)
        part["bookings"].append(booking)
        payout = payouts_by_booking.get(booking.booking_id)
        if payout is not None:
            part["payouts"].append(payout)
    for charge in charges:
        partition(host_of_booking.get(charge.booking_id))["charges"].append(charge)

    def run(part: dict) -> RevenueClassification:
        return classify(
            part["bookings"],
            hosts,
            tables,
            payouts=part["payouts"],
            insurance_charges=[c for c in part["charges"] if c.kind == ChargeKind.INSURANCE],
            tax_charges=[c for c in part["charges"] if c.kind == ChargeKind.TAX],
        )

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        reports = list(executor.map(run, partitions.values()))

    reports.append(ledger.to_report(tables))
    return merge_classifications(reports, tables)
