# tests/test_tiers.py

import pytest

from app.analysis.tiers import BONUS_THRESHOLDS, TIER_TABLE, compute_tier, tier_for_threshold


@pytest.mark.parametrize("revenue, tier, amount", [
    (2400, 'tier_5', 180),
    (2399.99, 'tier_4', 135),
    (2100, 'tier_4', 135),
    (1800, 'tier_3', 95),
    (1500, 'tier_2', 60),
    (1200, 'tier_1', 35),
    (1199.99, 'none', 0),
    (0, 'none', 0),
    (-250, 'none', 0),
    (None, 'none', 0),
])
def test_compute_tier_boundaries(revenue, tier, amount):
    result = compute_tier(revenue)
    assert result.tier == tier
    assert result.bonus_amount == amount


def test_bonus_never_decreases_with_revenue():
    amounts = [compute_tier(revenue).bonus_amount for revenue in range(0, 3000, 25)]
    assert amounts == sorted(amounts)


def test_thresholds_come_from_the_tier_table():
    assert BONUS_THRESHOLDS == (1200, 1500, 1800, 2100, 2400)
    assert tier_for_threshold(1800).tier == 'tier_3'
    assert tier_for_threshold(1000) is None
    assert TIER_TABLE[-1].min_revenue == 0
