# ==============================================================================
# app/analysis/bonus.py
# ------------------------------------------------------------------------------
# The weekly bonus run: sums each employee's revenue over a week of the month
# and records a draft WeeklyBonus with one BonusDetail per employee.
# ==============================================================================

import logging
from collections import OrderedDict

from app.analysis.errors import BonusAlreadyCalculatedError
from app.analysis.periods import week_range
from app.analysis.store import RevenueStore
from app.analysis.tiers import compute_tier


def build_bonus_details(weekly_revenues):
    """
    Turns {employee_id: weekly revenue} into BonusDetail field dicts.

    Args:
        weekly_revenues (dict): Weekly revenue per employee id.

    Returns:
        list: One dict per employee, in the order given.
    """
    details = []
    for employee_id, revenue in weekly_revenues.items():
        tier = compute_tier(revenue)
        details.append({
            'employee_id': employee_id,
            'weekly_revenue': round(float(revenue), 2),
            'bonus_amount': float(tier.bonus_amount),
            'bonus_tier': tier.tier,
            'is_eligible': tier.bonus_amount > 0,
        })
    return details


def calculate_weekly_bonus(branch_id, week_number, month, year, store=None):
    """
    Creates the draft weekly bonus for one week of a branch.

    Raises:
        BonusAlreadyCalculatedError: The week already has a bonus record.
    """
    store = store or RevenueStore()
    if store.weekly_bonus(branch_id, week_number, month, year) is not None:
        raise BonusAlreadyCalculatedError(branch_id, week_number, month, year)

    week_start, week_end = week_range(week_number, month, year)
    logging.info(f"Calculating weekly bonus for branch {branch_id}, week {week_number} "
                 f"({week_start} to {week_end})")

    weekly_revenues = OrderedDict()
    for row in store.employee_revenues(branch_id, week_start, week_end):
        weekly_revenues[row.employee_id] = weekly_revenues.get(row.employee_id, 0.0) + row.total

    details = build_bonus_details(weekly_revenues)
    for d in details:
        logging.debug(f"  Employee {d['employee_id']}: revenue {d['weekly_revenue']:,.2f} -> "
                      f"{d['bonus_tier']} ({d['bonus_amount']:,.0f})")

    bonus_id = store.create_weekly_bonus(branch_id, week_number, month, year, week_start, week_end, details)
    logging.info(f"Weekly bonus {bonus_id} created with {len(details)} employees, "
                 f"total {sum(d['bonus_amount'] for d in details):,.2f}")
    return bonus_id
