"""
Tier Engine Tests

Tests that tier placement, progress and rewards follow the tier table for
any points value, and that bad tables are rejected up front.

Run with: pytest tests/test_tier_engine.py -v
"""
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from config.tier_config import create_tier_engine
from loyalty import (
    InvalidConfiguration,
    TierDefinition,
    TierEngine,
    assess_tier,
    build_tier_info,
    validate_tiers,
)
from tests.scenarios import TIER_SCENARIOS


# =============================================================================
# FIXTURES
# =============================================================================

def make_tier(name: str, threshold: int, earn_back_percent: int = 1,
              max_credit_per_stay: int = 1000, **kwargs) -> TierDefinition:
    return TierDefinition(
        name=name,
        threshold=threshold,
        earn_back_percent=earn_back_percent,
        max_credit_per_stay=max_credit_per_stay,
        **kwargs,
    )


@pytest.fixture
def three_tiers():
    """Small table: A at 0, B at 40000, C at 100000"""
    return [
        make_tier("A", 0, 1, 2500),
        make_tier("B", 40000, 2, 5000),
        make_tier("C", 100000, 3, 7500, is_legacy_circle_tier=True),
    ]


@pytest.fixture
def engine():
    """Engine over the built-in tier table"""
    return create_tier_engine()


# =============================================================================
# TIER PLACEMENT
# =============================================================================

class TestTierPlacement:
    """Tests that points land on the right tier"""

    def test_mid_range_progress(self, three_tiers):
        """65000 points sits 25000 into a 60000-point band"""
        assessment = assess_tier(65000, 65000, three_tiers)

        assert assessment.current_tier.name == "B"
        assert assessment.next_tier.name == "C"
        assert assessment.progress_percentage == pytest.approx(41.6667, rel=1e-4)
        assert assessment.points_to_next_tier == 35000

    def test_zero_points_is_lowest_tier(self, three_tiers):
        assessment = assess_tier(0, 0, three_tiers)

        assert assessment.current_tier.name == "A"
        assert assessment.progress_percentage == 0
        assert assessment.points_to_next_tier == 40000

    def test_threshold_resets_progress(self, three_tiers):
        """Reaching a threshold exactly enters the tier at 0% toward the next"""
        assessment = assess_tier(40000, 40000, three_tiers)

        assert assessment.current_tier.name == "B"
        assert assessment.progress_percentage == 0
        assert assessment.points_to_next_tier == 60000

    def test_terminal_tier(self, three_tiers):
        assessment = assess_tier(250000, 250000, three_tiers)

        assert assessment.current_tier.name == "C"
        assert assessment.next_tier is None
        assert assessment.progress_percentage == 100
        assert assessment.points_to_next_tier == 0
        assert assessment.is_circle is True

    def test_fractional_points_round_remaining_up(self, three_tiers):
        assessment = assess_tier(39999.5, 0, three_tiers)

        assert assessment.current_tier.name == "A"
        assert assessment.points_to_next_tier == 1

    def test_levels_are_one_based(self, three_tiers):
        assessment = assess_tier(65000, 0, three_tiers)

        assert assessment.current_level == 2
        assert assessment.next_level == 3

    @pytest.mark.parametrize(
        "scenario", TIER_SCENARIOS, ids=lambda s: str(s.lifetime_points)
    )
    def test_default_table_scenarios(self, engine, scenario):
        assessment = engine.assess(scenario.lifetime_points, scenario.lifetime_points)

        assert assessment.current_tier.name == scenario.current_tier
        next_name = assessment.next_tier.name if assessment.next_tier else None
        assert next_name == scenario.next_tier
        assert assessment.points_to_next_tier == scenario.points_to_next_tier
        assert assessment.is_circle is scenario.is_circle


class TestPreFirstTier:
    """Tests for tables whose lowest threshold is above zero"""

    @pytest.fixture
    def raised_tiers(self):
        return [make_tier("Silver", 1000, 2, 500), make_tier("Gold", 5000, 4, 900)]

    def test_below_first_threshold_has_no_tier(self, raised_tiers):
        assessment = assess_tier(400, 10000, raised_tiers)

        assert assessment.current_tier is None
        assert assessment.next_tier.name == "Silver"
        assert assessment.progress_percentage == 0
        assert assessment.points_to_next_tier == 600
        assert assessment.is_circle is False
        assert assessment.rewards_currency_earned == 0
        assert assessment.redeemable_per_stay == 0
        assert assessment.next_level == 1

    def test_to_dict_has_null_current_tier(self, raised_tiers):
        data = assess_tier(0, 0, raised_tiers).to_dict()

        assert data["current_tier"] is None
        assert data["next_tier"]["name"] == "Silver"
        assert data["next_tier"]["level"] == 1


# =============================================================================
# INVARIANTS
# =============================================================================

class TestInvariants:
    """Tests that hold for every points value"""

    @pytest.mark.parametrize("points", [0, 1, 39999, 40000, 65000, 99999.99, 100000, 10**9])
    def test_progress_is_bounded(self, three_tiers, points):
        assessment = assess_tier(points, points, three_tiers)
        assert 0 <= assessment.progress_percentage <= 100
        assert assessment.points_to_next_tier >= 0

    def test_progress_is_monotonic_within_a_tier(self, three_tiers):
        values = [40000, 40001, 52000, 65000, 80000, 99999]
        progress = [assess_tier(p, 0, three_tiers).progress_percentage for p in values]

        assert progress == sorted(progress)

    def test_assessment_is_idempotent(self, three_tiers):
        first = assess_tier(65000, 12000, three_tiers)
        second = assess_tier(65000, 12000, three_tiers)

        assert first == second

    def test_current_tier_threshold_not_above_points(self, engine):
        for points in (0, 12345, 99999, 250000, 777777):
            assessment = engine.assess(points, 0)
            assert assessment.current_tier.threshold <= points
            if assessment.next_tier:
                assert assessment.next_tier.threshold > points


# =============================================================================
# REWARDS CURRENCY
# =============================================================================

class TestRewardsCurrency:
    """Tests for earn-back and the per-stay cap"""

    def test_rewards_are_floored(self, three_tiers):
        """2% of 12345 is 246.9, earned as 246"""
        assessment = assess_tier(65000, 12345, three_tiers)
        assert assessment.rewards_currency_earned == 246

    def test_redeemable_capped_per_stay(self, engine):
        """Circle earns 5% of 500000 = 25000 but redeems at most 15000 per stay"""
        assessment = engine.assess(500000, 500000)

        assert assessment.rewards_currency_earned == 25000
        assert assessment.redeemable_per_stay == 15000

    def test_redeemable_below_cap(self, engine):
        assessment = engine.assess(65000, 65000)

        assert assessment.rewards_currency_earned == 1300
        assert assessment.redeemable_per_stay == 1300

    def test_annual_spend_independent_of_points(self, three_tiers):
        assessment = assess_tier(100000, 0, three_tiers)
        assert assessment.rewards_currency_earned == 0


# =============================================================================
# TABLE VALIDATION
# =============================================================================

class TestValidation:
    """Tests that invalid tier tables never reach assessment"""

    def test_empty_table_rejected(self):
        with pytest.raises(InvalidConfiguration):
            validate_tiers([])

    def test_duplicate_threshold_rejected(self):
        with pytest.raises(InvalidConfiguration):
            validate_tiers([make_tier("A", 0), make_tier("B", 0)])

    def test_unsorted_table_rejected(self):
        with pytest.raises(InvalidConfiguration):
            TierEngine([make_tier("A", 0), make_tier("C", 100), make_tier("B", 50)])

    def test_negative_threshold_rejected(self):
        with pytest.raises(InvalidConfiguration):
            TierEngine([make_tier("A", -1)])

    def test_legacy_tier_before_last_rejected(self):
        with pytest.raises(InvalidConfiguration, match="legacy"):
            TierEngine([
                make_tier("A", 0),
                make_tier("B", 100, is_legacy_circle_tier=True),
                make_tier("C", 200),
            ])

    def test_legacy_last_tier_accepted(self):
        validate_tiers([make_tier("A", 0), make_tier("B", 100, is_legacy_circle_tier=True)])

    def test_single_tier_table(self):
        engine = TierEngine([make_tier("Only", 0, 3, 100)])
        assessment = engine.assess(5000, 5000)

        assert assessment.current_tier.name == "Only"
        assert assessment.next_tier is None
        assert assessment.progress_percentage == 100
        assert assessment.redeemable_per_stay == 100


# =============================================================================
# PAYLOADS
# =============================================================================

class TestPayloads:
    """Tests for the serialized assessment and tier table"""

    def test_tier_info_fields(self, engine):
        info = build_tier_info(engine.assess(65000, 65000))

        assert info["current_tier"]["name"] == "Explorer"
        assert info["current_tier"]["level"] == 2
        assert info["next_tier"]["name"] == "Voyager"
        assert info["voyage_points"] == 65000
        assert info["is_circle"] is False
        assert info["rewards_currency_earned"] == 1300

    def test_tier_info_merges_extra_fields(self, engine):
        info = build_tier_info(engine.assess(0, 0), extra={"source": "test"})
        assert info["source"] == "test"

    def test_tier_table_levels(self, engine):
        table = engine.tier_table()

        assert [tier["level"] for tier in table] == [1, 2, 3, 4, 5]
        assert table[-1]["is_legacy"] is True
        assert "circle_access" in table[-1]
        assert "circle_access" not in table[0]
