"""Configuration management using Pydantic Settings"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from settlement_engine.domain.models import CommissionTier
from settlement_engine.domain.policy import (
    FLEXIBLE,
    MODERATE,
    STRICT,
    SUPER_STRICT,
    PolicyTables,
    ProcessingFeeMode,
)


class Settings(BaseSettings):
    """Engine configuration loaded from environment variables (prefix SETTLEMENT_)"""

    model_config = SettingsConfigDict(
        env_prefix="SETTLEMENT_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Service
    service_name: str = "settlement-engine"
    log_level: str = "INFO"

    # Policy version
    policy_version: str = "2025.1"
    policy_effective_from: date = date(2025, 1, 1)

    # Commission tiers (fleet-size thresholds and rates)
    standard_commission_rate: Decimal = Decimal("0.25")
    tier1_vehicle_threshold: int = 10
    tier1_commission_rate: Decimal = Decimal("0.20")
    tier2_vehicle_threshold: int = 50
    tier2_commission_rate: Decimal = Decimal("0.15")
    tier3_vehicle_threshold: int = 100
    tier3_commission_rate: Decimal = Decimal("0.10")
    welcome_commission_rate: Decimal = Decimal("0.10")

    # Cancellation cutoffs in hours (super_strict is never refundable)
    flexible_cutoff_hours: int = 24
    moderate_cutoff_hours: int = 48
    strict_cutoff_hours: int = 168

    # Fees and splits
    service_fee_rate: Decimal = Decimal("0.15")
    insurance_platform_share: Decimal = Decimal("0.30")
    processing_fee_cents: int = 150
    processing_fee_mode: ProcessingFeeMode = ProcessingFeeMode.PER_DISBURSEMENT

    # Payout holds
    standard_hold_days: int = 3
    new_host_hold_days: int = 7
    new_host_trip_threshold: int = 3

    # 1099-K thresholds (both must be met)
    reporting_threshold_cents: int = 2_000_000
    reporting_threshold_transactions: int = 200

    # Flat privilege tax
    state_tax_rate: Decimal = Decimal("0.056")
    city_tax_rate: Decimal = Decimal("0.028")

    # Batch classification
    classification_workers: Optional[int] = None

    def policy_tables(self) -> PolicyTables:
        """Build a validated, immutable PolicyTables version from these settings"""
        tiers = (
            CommissionTier("Standard", 1, self.tier1_vehicle_threshold - 1, self.standard_commission_rate),
            CommissionTier(
                "Gold",
                self.tier1_vehicle_threshold,
                self.tier2_vehicle_threshold - 1,
                self.tier1_commission_rate,
            ),
            CommissionTier(
                "Platinum",
                self.tier2_vehicle_threshold,
                self.tier3_vehicle_threshold - 1,
                self.tier2_commission_rate,
            ),
            CommissionTier("Diamond", self.tier3_vehicle_threshold, None, self.tier3_commission_rate),
        )
        return PolicyTables(
            version=self.policy_version,
            effective_from=self.policy_effective_from,
            commission_tiers=tiers,
            cancellation_cutoffs={
                FLEXIBLE: self.flexible_cutoff_hours,
                MODERATE: self.moderate_cutoff_hours,
                STRICT: self.strict_cutoff_hours,
                SUPER_STRICT: None,
            },
            service_fee_rate=self.service_fee_rate,
            insurance_platform_share=self.insurance_platform_share,
            processing_fee_cents=self.processing_fee_cents,
            processing_fee_mode=self.processing_fee_mode,
            standard_hold_days=self.standard_hold_days,
            new_host_hold_days=self.new_host_hold_days,
            new_host_trip_threshold=self.new_host_trip_threshold,
            welcome_commission_rate=self.welcome_commission_rate,
            reporting_threshold_cents=self.reporting_threshold_cents,
            reporting_threshold_transactions=self.reporting_threshold_transactions,
            state_tax_rate=self.state_tax_rate,
            city_tax_rate=self.city_tax_rate,
        )


settings = Settings()
