"""Commission tier resolution - maps a host's active fleet size to a commission rate"""

from settlement_engine.domain.models import CommissionTier, Flag, FlagKind, TierResolution
from settlement_engine.domain.policy import PolicyTables, validate_tiers


def resolve_tier(fleet_size: int, tables: PolicyTables, host_id: str = "") -> TierResolution:
    """
    Find the commission tier for a fleet size.

    Tiers are scanned in ascending min_vehicles order and the first match
    wins; the table is validated as contiguous and non-overlapping, so the
    first match is the only match.

    A fleet size of zero or less is an expected edge case (a host whose last
    car was just delisted): it is flagged and falls through to the fallback
    tier. The fallback is the tier most favourable to the platform, i.e. the
    highest commission rate, never an arbitrary pick.
    """
    tiers = tables.commission_tiers
    validate_tiers(tiers)

    flags = []
    if fleet_size < 1:
        flags.append(
            Flag(
                kind=FlagKind.INPUT_RANGE,
                record_id=host_id,
                code="fleet_size_not_positive",
                message=f"Fleet size {fleet_size} is below 1",
            )
        )

    for tier in tiers:
        if tier.matches(fleet_size):
            return TierResolution(tier=tier, fallback=False, flags=tuple(flags))

    fallback = _fallback_tier(tiers)
    flags.append(
        Flag(
            kind=FlagKind.INPUT_RANGE,
            record_id=host_id,
            code="tier_fallback",
            message=f"No tier matches fleet size {fleet_size}; using {fallback.name!r}",
        )
    )
    return TierResolution(tier=fallback, fallback=True, flags=tuple(flags))


def _fallback_tier(tiers: tuple[CommissionTier, ...]) -> CommissionTier:
    # Highest rate; ties resolved toward the smallest fleet bracket
    return max(tiers, key=lambda t: (t.rate, -t.min_vehicles))
