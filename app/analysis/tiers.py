# ==============================================================================
# app/analysis/tiers.py
# ------------------------------------------------------------------------------
# The weekly bonus tier table. This module is the single source of truth for
# the thresholds: the bonus run, the reconciliation, the fraud detector and the
# recommendation engine all read it from here.
# ==============================================================================

from collections import namedtuple

BonusTier = namedtuple('BonusTier', ['tier', 'min_revenue', 'bonus_amount'])

# Evaluated top-down, first match wins.
TIER_TABLE = (
    BonusTier('tier_5', 2400, 180),
    BonusTier('tier_4', 2100, 135),
    BonusTier('tier_3', 1800, 95),
    BonusTier('tier_2', 1500, 60),
    BonusTier('tier_1', 1200, 35),
    BonusTier('none', 0, 0),
)

NO_TIER = TIER_TABLE[-1]

# Revenue cutoffs that pay a bonus, ascending.
BONUS_THRESHOLDS = tuple(sorted(t.min_revenue for t in TIER_TABLE if t.bonus_amount > 0))


def compute_tier(weekly_revenue):
    """
    Maps a weekly revenue figure to its bonus tier.

    Args:
        weekly_revenue (float): The employee's revenue for the week.

    Returns:
        BonusTier: The first tier whose minimum the revenue reaches. Revenue
        below every paying threshold (including negative figures) gets `none`.
    """
    revenue = float(weekly_revenue or 0)
    for tier in TIER_TABLE:
        if revenue >= tier.min_revenue:
            return tier
    return NO_TIER


def tier_for_threshold(threshold):
    """Returns the tier that starts exactly at `threshold`, or None."""
    for tier in TIER_TABLE:
        if tier.min_revenue == threshold:
            return tier
    return None
