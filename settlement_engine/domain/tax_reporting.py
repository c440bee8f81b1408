"""1099-K reporting threshold aggregation per host and tax year.

Reporting is required only when BOTH thresholds are met:
- gross receipts >= $20,000
- transaction count >= 200
A host with $50,000 over 50 trips is not reportable under this rule.
"""

from dataclasses import replace
from datetime import date, datetime
from typing import Dict, Iterable, Optional, Union

from settlement_engine.domain.exceptions import AggregateFinalizedError, InvalidRecordError
from settlement_engine.domain.models import (
    FilingTimeline,
    Host1099Aggregate,
    HostYearTotals,
    PendingPayout,
)
from settlement_engine.domain.policy import PolicyTables


def reporting_required(gross_receipts_cents: int, transaction_count: int, tables: PolicyTables) -> bool:
    return (
        gross_receipts_cents >= tables.reporting_threshold_cents
        and transaction_count >= tables.reporting_threshold_transactions
    )


def aggregate(totals: HostYearTotals, tables: PolicyTables) -> Host1099Aggregate:
    """Build the 1099-K aggregate for one host and tax year from yearly totals"""
    return Host1099Aggregate(
        host_id=totals.host_id,
        tax_year=totals.tax_year,
        gross_receipts_cents=totals.gross_receipts_cents,
        transaction_count=totals.transaction_count,
        platform_fees_cents=totals.platform_fees_cents,
        processing_fees_cents=totals.processing_fees_cents,
        net_payouts_cents=totals.net_payouts_cents,
        reporting_required=reporting_required(
            totals.gross_receipts_cents, totals.transaction_count, tables
        ),
    )


def empty_aggregate(host_id: str, tax_year: int) -> Host1099Aggregate:
    return Host1099Aggregate(
        host_id=host_id,
        tax_year=tax_year,
        gross_receipts_cents=0,
        transaction_count=0,
        platform_fees_cents=0,
        processing_fees_cents=0,
        net_payouts_cents=0,
        reporting_required=False,
    )


def accumulate(
    current: Host1099Aggregate,
    payout: PendingPayout,
    tables: PolicyTables,
    as_of: Optional[Union[date, datetime]] = None,
) -> Host1099Aggregate:
    """
    Post one payout to a running aggregate and return the updated aggregate.

    The payout counts as one transaction; gross receipts are the host's gross
    earnings (1099-K reports gross, before platform and processing fees).
    When `as_of` is given, an aggregate past its IRS filing deadline is
    treated as finalized.
    """
    if current.finalized or (as_of is not None and is_locked(current, as_of)):
        raise AggregateFinalizedError(
            f"1099 aggregate for host {current.host_id} / {current.tax_year} "
            "is finalized or past its filing deadline"
        )
    if payout.host_id != current.host_id:
        raise InvalidRecordError(
            f"Payout for host {payout.host_id} posted to aggregate of host {current.host_id}"
        )

    gross = current.gross_receipts_cents + payout.gross_earnings_cents
    count = current.transaction_count + 1
    return replace(
        current,
        gross_receipts_cents=gross,
        transaction_count=count,
        platform_fees_cents=current.platform_fees_cents + payout.platform_fee_cents,
        processing_fees_cents=current.processing_fees_cents + payout.processing_fee_cents,
        net_payouts_cents=current.net_payouts_cents + payout.net_payout_cents,
        reporting_required=reporting_required(gross, count, tables),
    )


def aggregate_payouts(
    payouts: Iterable[PendingPayout], tax_year: int, tables: PolicyTables
) -> Dict[str, Host1099Aggregate]:
    """Group a year's payouts by host. A payout belongs to the year it becomes eligible."""
    results: Dict[str, Host1099Aggregate] = {}
    for payout in payouts:
        if payout.eligible_at.year != tax_year:
            continue
        current = results.get(payout.host_id) or empty_aggregate(payout.host_id, tax_year)
        results[payout.host_id] = accumulate(current, payout, tables)
    return results


def finalize(current: Host1099Aggregate) -> Host1099Aggregate:
    return replace(current, finalized=True)


def filing_timeline(tax_year: int) -> FilingTimeline:
    """Year end, recipient copy deadline and electronic IRS filing deadline"""
    return FilingTimeline(
        tax_year=tax_year,
        year_end=date(tax_year, 12, 31),
        recipient_copy_due=date(tax_year + 1, 1, 31),
        irs_efile_due=date(tax_year + 1, 3, 31),
    )


def is_locked(current: Host1099Aggregate, as_of: Union[date, datetime]) -> bool:
    """Aggregates are immutable once the IRS filing deadline has passed"""
    if isinstance(as_of, datetime):
        as_of = as_of.date()
    return as_of > filing_timeline(current.tax_year).irs_efile_due
