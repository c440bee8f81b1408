"""Prometheus metrics for settlement runs, payouts and 1099 reporting"""

from typing import Iterable

from prometheus_client import Counter, Histogram

from settlement_engine.domain.models import Flag, Host1099Aggregate, PendingPayout

# Cancellation metrics
settlement_counter = Counter(
    "settlement_cancellations_total",
    "Cancellation settlements computed",
    ["policy", "refund"],  # refund: full | none
)

# Classification metrics
classification_duration_histogram = Histogram(
    "settlement_classification_duration_seconds",
    "Time spent classifying a period",
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0],
)

flagged_record_counter = Counter(
    "settlement_flagged_records_total",
    "Records flagged during settlement",
    ["kind", "code"],
)

unbalanced_report_counter = Counter(
    "settlement_unbalanced_reports_total",
    "Classification reports whose buckets do not add up to gross collected",
)

# Payout metrics
payout_counter = Counter(
    "settlement_payouts_netted_total",
    "Host payouts netted",
    ["tier", "override"],  # override: yes | no
)

negative_payout_counter = Counter(
    "settlement_negative_payouts_total",
    "Payouts whose net amount came out negative",
)

# 1099 metrics
reporting_outcome_counter = Counter(
    "settlement_1099_aggregates_total",
    "1099-K aggregates computed",
    ["reporting_required"],  # yes | no
)


def record_settlement(policy: str, refund_percent: int) -> None:
    settlement_counter.labels(policy=policy, refund="full" if refund_percent == 100 else "none").inc()


def record_flags(flags: Iterable[Flag]) -> None:
    for flag in flags:
        flagged_record_counter.labels(kind=flag.kind.value, code=flag.code).inc()


def record_payout(payout: PendingPayout) -> None:
    """Record payout metrics for tier distribution and negative-net monitoring"""
    payout_counter.labels(
        tier=payout.tier_name, override="yes" if payout.rate_overridden else "no"
    ).inc()
    if payout.net_payout_cents < 0:
        negative_payout_counter.inc()


def record_1099(result: Host1099Aggregate) -> None:
    reporting_outcome_counter.labels(
        reporting_required="yes" if result.reporting_required else "no"
    ).inc()
