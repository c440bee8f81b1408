"""Unit tests for settings and logging setup"""

import json
import logging
import pytest
from decimal import Decimal

from settlement_engine.config import Settings
from settlement_engine.domain.exceptions import ConfigurationError
from settlement_engine.domain.policy import DEFAULT_POLICY_TABLES, ProcessingFeeMode
from settlement_engine.infrastructure.observability.logging import (
    CustomJsonFormatter,
    setup_logging,
)


def test_default_settings_match_default_tables():
    tables = Settings().policy_tables()

    assert tables.commission_tiers == DEFAULT_POLICY_TABLES.commission_tiers
    assert dict(tables.cancellation_cutoffs) == dict(DEFAULT_POLICY_TABLES.cancellation_cutoffs)
    assert tables.tax_rate == DEFAULT_POLICY_TABLES.tax_rate
    assert tables.reporting_threshold_cents == 2_000_000


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("SETTLEMENT_POLICY_VERSION", "2025.7")
    monkeypatch.setenv("SETTLEMENT_SERVICE_FEE_RATE", "0.12")
    monkeypatch.setenv("SETTLEMENT_TIER1_VEHICLE_THRESHOLD", "8")
    monkeypatch.setenv("SETTLEMENT_PROCESSING_FEE_MODE", "per_booking")

    tables = Settings().policy_tables()

    assert tables.version == "2025.7"
    assert tables.service_fee_rate == Decimal("0.12")
    assert tables.commission_tiers[0].max_vehicles == 7
    assert tables.commission_tiers[1].min_vehicles == 8
    assert tables.processing_fee_mode == ProcessingFeeMode.PER_BOOKING


def test_inconsistent_settings_fail_fast():
    """Thresholds that leave a tier empty are rejected when tables are built"""
    settings = Settings(tier1_vehicle_threshold=60, tier2_vehicle_threshold=50)

    with pytest.raises(ConfigurationError):
        settings.policy_tables()


def test_json_formatter_adds_service_fields():
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s", service_name="svc")
    record = logging.LogRecord("settlement_engine", logging.WARNING, __file__, 1, "hello", None, None)
    record.run_id = "run-1"

    payload = json.loads(formatter.format(record))

    assert payload["message"] == "hello"
    assert payload["level"] == "WARNING"
    assert payload["service"] == "svc"
    assert payload["run_id"] == "run-1"
    assert "timestamp" in payload


def test_setup_logging_installs_json_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging("DEBUG", service_name="svc")

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, CustomJsonFormatter)
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
