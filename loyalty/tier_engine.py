"""
Tier Engine: places a lifetime-points value on the tier table

Deterministic, no I/O. The tier table is validated once (at startup) by
validate_tiers() / TierEngine; assess_tier() trusts the table it is given.

Inputs are expected to be clamped by the caller: lifetime_points and
annual_spend are non-negative finite numbers (see coerce_non_negative).
"""
import math
from typing import Any, Dict, Optional, Sequence

from .errors import InvalidConfiguration
from .models import TierAssessment, TierDefinition


def validate_tiers(tiers: Sequence[TierDefinition]) -> None:
    """
    Check the tier table invariants.

    Raises:
        InvalidConfiguration: table empty, a threshold negative, thresholds
            not strictly increasing (which also rules out duplicates), or a
            legacy circle tier anywhere but last
    """
    if not tiers:
        raise InvalidConfiguration("Tier table is empty")

    previous = None
    for index, tier in enumerate(tiers):
        if tier.threshold < 0:
            raise InvalidConfiguration(
                f"Tier '{tier.name}' has negative threshold {tier.threshold}"
            )
        if previous is not None and tier.threshold <= previous.threshold:
            raise InvalidConfiguration(
                f"Tier thresholds must be strictly increasing: "
                f"'{tier.name}' ({tier.threshold}) at position {index} "
                f"follows '{previous.name}' ({previous.threshold})"
            )
        if tier.is_legacy_circle_tier and index != len(tiers) - 1:
            raise InvalidConfiguration(
                f"Only the last tier may be the legacy circle tier; "
                f"'{tier.name}' is at position {index}"
            )
        previous = tier


def assess_tier(
    lifetime_points: float,
    annual_spend: float,
    tiers: Sequence[TierDefinition],
) -> TierAssessment:
    """
    Compute the tier assessment for a points value.

    The current tier is the highest tier whose threshold is <= lifetime_points.
    annual_spend is used only for the rewards-currency figure; callers decide
    what to pass (a tracked annual figure or lifetime points as a proxy).
    """
    current_index = None
    for index, tier in enumerate(tiers):
        if lifetime_points >= tier.threshold:
            current_index = index

    # Pre-first-tier: only reachable when the lowest threshold is above zero
    if current_index is None:
        first_tier = tiers[0]
        return TierAssessment(
            lifetime_points=lifetime_points,
            current_tier=None,
            next_tier=first_tier,
            progress_percentage=0.0,
            points_to_next_tier=_points_remaining(first_tier.threshold, lifetime_points),
            is_circle=False,
            rewards_currency_earned=0,
            redeemable_per_stay=0,
            current_level=None,
            next_level=1,
        )

    current_tier = tiers[current_index]
    next_tier = tiers[current_index + 1] if current_index + 1 < len(tiers) else None

    if next_tier is None:
        progress_percentage = 100.0
        points_to_next_tier = 0
    else:
        tier_range = next_tier.threshold - current_tier.threshold
        progressed = lifetime_points - current_tier.threshold
        progress_percentage = min(max(progressed / tier_range * 100, 0.0), 100.0)
        points_to_next_tier = _points_remaining(next_tier.threshold, lifetime_points)

    earned = math.floor(annual_spend * current_tier.earn_back_percent / 100)

    return TierAssessment(
        lifetime_points=lifetime_points,
        current_tier=current_tier,
        next_tier=next_tier,
        progress_percentage=progress_percentage,
        points_to_next_tier=points_to_next_tier,
        is_circle=current_tier.is_legacy_circle_tier,
        rewards_currency_earned=earned,
        redeemable_per_stay=min(earned, current_tier.max_credit_per_stay),
        current_level=current_index + 1,
        next_level=current_index + 2 if next_tier else None,
    )


def _points_remaining(threshold: int, lifetime_points: float) -> int:
    return max(math.ceil(threshold - lifetime_points), 0)


class TierEngine:
    """
    Tier table validated once, assessed many times.

    Holds no mutable state; a single instance is shared across requests.
    """

    def __init__(self, tiers: Sequence[TierDefinition], version: str = ""):
        validate_tiers(tiers)
        self.tiers = tuple(tiers)
        self.version = version

    def assess(self, lifetime_points: float, annual_spend: float) -> TierAssessment:
        return assess_tier(lifetime_points, annual_spend, self.tiers)

    def tier_table(self) -> list:
        """Tier table as served to clients, with 1-based levels"""
        return [tier.to_dict(level=index + 1) for index, tier in enumerate(self.tiers)]


def build_tier_info(assessment: TierAssessment, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Response payload for an assessment, optionally merged with caller fields"""
    payload = assessment.to_dict()
    if extra:
        payload.update(extra)
    return payload
