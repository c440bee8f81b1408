"""SettlementEngine - single entry point binding one policy version to every calculation.

Callers (dashboards, payout simulator, tax export) go through this facade
instead of re-deriving fee arithmetic themselves.
"""

import logging
import time
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from settlement_engine.domain import cancellation, classification, payouts, pricing, tax_reporting
from settlement_engine.domain.commission import resolve_tier
from settlement_engine.domain.models import (
    Booking,
    BookingStatus,
    BookingCharges,
    CancellationSettlement,
    CancellationSummary,
    Charge,
    FilingTimeline,
    Flag,
    Host,
    Host1099Aggregate,
    HostYearTotals,
    PendingPayout,
    RevenueClassification,
    TierResolution,
)
from settlement_engine.domain.policy import DEFAULT_POLICY_TABLES, PolicyTables
from settlement_engine.infrastructure.observability.logging import (
    log_classification,
    log_flags,
    log_payout,
)
from settlement_engine.infrastructure.observability.metrics import (
    classification_duration_histogram,
    record_1099,
    record_flags,
    record_payout,
    record_settlement,
    unbalanced_report_counter,
)

logger = logging.getLogger(__name__)


class SettlementEngine:
    """Pure calculations under one immutable PolicyTables version"""

    def __init__(self, tables: PolicyTables = DEFAULT_POLICY_TABLES, max_workers: Optional[int] = None):
        self.tables = tables
        self.max_workers = max_workers

    @classmethod
    def from_settings(cls, settings) -> "SettlementEngine":
        return cls(settings.policy_tables(), max_workers=settings.classification_workers)

    # Commission tiers

    def resolve_tier(self, fleet_size: int, host_id: str = "") -> TierResolution:
        resolution = resolve_tier(fleet_size, self.tables, host_id=host_id)
        record_flags(resolution.flags)
        return resolution

    # Cancellations

    def settle(
        self,
        subtotal_cents: int,
        service_fee_cents: int,
        policy: str,
        hours_before_start: float,
        booking_id: Optional[str] = None,
    ) -> CancellationSettlement:
        result = cancellation.settle(
            subtotal_cents, service_fee_cents, policy, hours_before_start, self.tables, booking_id
        )
        record_settlement(result.policy, result.refund_percent)
        record_flags(result.flags)
        return result

    def settle_booking(self, booking: Booking) -> CancellationSettlement:
        result = cancellation.settle_booking(booking, self.tables)
        record_settlement(result.policy, result.refund_percent)
        record_flags(result.flags)
        return result

    def summarize_cancellations(self, bookings: Iterable[Booking]) -> CancellationSummary:
        return cancellation.summarize_cancellations(self.settle_booking(b) for b in bookings)

    def describe_policy(self, policy: str) -> str:
        return cancellation.describe_policy(policy, self.tables)

    # Revenue classification

    def classify(
        self,
        bookings: Iterable[Booking],
        hosts: Mapping[str, Host],
        payouts: Iterable[PendingPayout] = (),
        insurance_charges: Iterable[Charge] = (),
        tax_charges: Iterable[Charge] = (),
        partitioned: bool = False,
    ) -> RevenueClassification:
        """
        Classify one closed period and log/measure the outcome.

        An unbalanced report is logged at ERROR and counted; it is still
        returned so the discrepancy can be reviewed rather than hidden.
        """
        run_id = str(uuid.uuid4())
        start_time = time.time()

        run = classification.classify_partitioned if partitioned else classification.classify
        kwargs = {"max_workers": self.max_workers} if partitioned else {}
        with classification_duration_histogram.time():
            report = run(
                bookings,
                hosts,
                self.tables,
                payouts=payouts,
                insurance_charges=insurance_charges,
                tax_charges=tax_charges,
                **kwargs,
            )

        if not report.is_balanced:
            unbalanced_report_counter.inc()

        duration_ms = (time.time() - start_time) * 1000
        record_flags(report.flags)
        log_flags(run_id, report.flags)
        log_classification(run_id, report, duration_ms)
        return report

    # Payouts

    def net_payout(
        self,
        booking: Booking,
        host: Host,
        rate_override: Optional[Decimal] = None,
        disbursements: int = 1,
    ) -> PendingPayout:
        payout = payouts.net_payout(
            booking, host, self.tables, rate_override=rate_override, disbursements=disbursements
        )
        record_payout(payout)
        record_flags(payout.flags)
        log_payout(payout)
        return payout

    def welcome_rate_override(self, host: Host) -> Optional[Decimal]:
        return payouts.welcome_rate_override(host, self.tables)

    def pending_payouts(
        self, bookings: Iterable[Booking], hosts: Mapping[str, Host], now: datetime
    ) -> List[PendingPayout]:
        """Net every completed booking whose payout has not yet become releasable, soonest first"""
        results = []
        for booking in bookings:
            if booking.status != BookingStatus.COMPLETED:
                continue
            host = hosts.get(booking.host_id)
            if host is None:
                logger.warning("Skipping payout for unknown host", extra={"booking_id": booking.booking_id})
                continue
            payout = payouts.net_payout(booking, host, self.tables)
            if payout.days_until_eligible(now) > 0:
                results.append(payout)

        # Only returned payouts are counted
        for payout in results:
            record_payout(payout)
            record_flags(payout.flags)
        return sorted(results, key=lambda p: p.eligible_at)

    # 1099-K

    def aggregate_1099(self, totals: HostYearTotals) -> Host1099Aggregate:
        result = tax_reporting.aggregate(totals, self.tables)
        record_1099(result)
        return result

    def aggregate_1099_from_payouts(
        self, payout_list: Iterable[PendingPayout], tax_year: int
    ) -> Dict[str, Host1099Aggregate]:
        results = tax_reporting.aggregate_payouts(payout_list, tax_year, self.tables)
        for result in results.values():
            record_1099(result)
        return results

    def filing_timeline(self, tax_year: int) -> FilingTimeline:
        return tax_reporting.filing_timeline(tax_year)

    # Pricing and audits

    def quote_booking(
        self, subtotal_cents: int, delivery_fee_cents: int = 0, insurance_fee_cents: int = 0
    ) -> BookingCharges:
        return pricing.quote_booking(
            subtotal_cents, self.tables, delivery_fee_cents, insurance_fee_cents
        )

    def audit_bookings(self, bookings: Iterable[Booking]) -> List[Flag]:
        """Recompute each booking's derived fields and report the ones that drifted"""
        flags = []
        for booking in bookings:
            for flag in (
                pricing.check_booking_total(booking),
                pricing.check_service_fee(booking, self.tables),
            ):
                if flag is not None:
                    flags.append(flag)
        record_flags(flags)
        return flags
