# ==============================================================================
# app/analysis/reconciliation.py
# ------------------------------------------------------------------------------
# Proves that the per-employee revenue entries add up to the branch daily
# totals, and that recorded weekly bonuses match a recomputation from the
# tier table.
# ==============================================================================

import logging
from dataclasses import dataclass, field
from typing import List

from app.analysis.periods import as_date, month_range, weeks_in_month
from app.analysis.store import RevenueStore
from app.analysis.tiers import compute_tier

# Differences at or below this amount are rounding noise, not discrepancies.
TOLERANCE = 0.01

# A month is critical when either limit is exceeded; they are not combined.
CRITICAL_DIFFERENCE = 1000
CRITICAL_DISCREPANCY_COUNT = 10


@dataclass
class Discrepancy:
    type: str  # 'mismatch' | 'orphan' | 'missing'
    entity: str
    entity_id: int
    expected: float
    actual: float
    difference: float
    details: str


@dataclass
class ReconciliationSummary:
    total_checked: int = 0
    matched: int = 0
    mismatched: int = 0
    total_difference: float = 0.0
    orphaned: int = 0


@dataclass
class ReconciliationResult:
    is_reconciled: bool
    discrepancies: List[Discrepancy] = field(default_factory=list)
    summary: ReconciliationSummary = field(default_factory=ReconciliationSummary)


@dataclass
class WeekReconciliation:
    week: int
    result: ReconciliationResult


@dataclass
class MonthReconciliation:
    revenue_reconciliation: ReconciliationResult
    bonus_reconciliations: List[WeekReconciliation]
    overall_status: str  # 'reconciled' | 'has_issues' | 'critical'
    total_revenue_days: int
    total_bonus_weeks: int
    total_discrepancies: int
    total_difference: float


def reconcile_branch_revenues(branch_id, start_date, end_date, store=None):
    """
    Compares each branch day's reported total with the sum of its employee entries.

    Args:
        branch_id (int): The branch to check.
        start_date (date): First day of the range (inclusive).
        end_date (date): Last day of the range (inclusive).
        store (RevenueStore): Optional data-access object.

    Returns:
        ReconciliationResult: `mismatch` discrepancies for days whose totals differ
        by more than TOLERANCE and `orphan` discrepancies for days with employee
        revenue but no branch total.
    """
    store = store or RevenueStore()
    start, end = as_date(start_date), as_date(end_date)
    logging.info(f"Reconciling revenues for branch {branch_id} from {start} to {end}")

    days = store.daily_revenues(branch_id, start, end)
    employee_totals = {row.daily_revenue_id: row.total for row in store.employee_totals_by_day(branch_id, start, end)}

    discrepancies = []
    summary = ReconciliationSummary(total_checked=len(days))

    for day in days:
        branch_total = float(day.total or 0)
        employees_total = employee_totals.get(day.id, 0.0)
        difference = abs(branch_total - employees_total)

        if difference > TOLERANCE:
            discrepancies.append(Discrepancy(
                type='mismatch', entity='daily_revenue', entity_id=day.id,
                expected=branch_total, actual=employees_total, difference=difference,
                details=f"Date: {day.date.isoformat()} - branch: {branch_total:,.2f} - employees: {employees_total:,.2f}",
            ))
            summary.mismatched += 1
            summary.total_difference += difference
            logging.debug(f"  Day {day.date}: branch {branch_total:,.2f} != employees {employees_total:,.2f}")
        else:
            summary.matched += 1

    for orphan in store.employee_totals_without_branch_total(branch_id, start, end):
        discrepancies.append(Discrepancy(
            type='orphan', entity='employee_revenue', entity_id=orphan.daily_revenue_id,
            expected=0.0, actual=orphan.total, difference=orphan.total,
            details="Employee revenue recorded without a branch daily total",
        ))
        summary.orphaned += 1

    if discrepancies:
        logging.warning(f"Branch {branch_id}: {len(discrepancies)} revenue discrepancies "
                        f"({summary.total_difference:,.2f} total difference)")

    return ReconciliationResult(is_reconciled=not discrepancies, discrepancies=discrepancies, summary=summary)


def reconcile_bonus_calculations(branch_id, week_number, month, year, store=None):
    """
    Recomputes every bonus detail of a week from its weekly revenue and checks
    the stored tier/amount, then checks the stored weekly total against the
    sum of the recomputed amounts.
    """
    store = store or RevenueStore()
    bonus = store.weekly_bonus(branch_id, week_number, month, year)

    if bonus is None:
        logging.warning(f"No weekly bonus for branch {branch_id}, week {week_number} of {year}-{month}")
        return ReconciliationResult(
            is_reconciled=False,
            discrepancies=[Discrepancy(
                type='missing', entity='weekly_bonus', entity_id=0,
                expected=1, actual=0, difference=1,
                details=f"No weekly bonus record for week {week_number} of {year}-{month:02d}",
            )],
            summary=ReconciliationSummary(total_checked=0, matched=0, mismatched=1, total_difference=0.0),
        )

    details = store.bonus_details(bonus.id)
    discrepancies = []
    calculated_total = 0.0
    matched = 0

    for detail in details:
        expected = compute_tier(detail.weekly_revenue)
        calculated_total += expected.bonus_amount

        if abs(detail.bonus_amount - expected.bonus_amount) > TOLERANCE or detail.bonus_tier != expected.tier:
            discrepancies.append(Discrepancy(
                type='mismatch', entity='bonus_detail', entity_id=detail.employee_id,
                expected=float(expected.bonus_amount), actual=detail.bonus_amount,
                difference=abs(expected.bonus_amount - detail.bonus_amount),
                details=(f"Revenue: {detail.weekly_revenue:,.2f} - expected: {expected.bonus_amount} ({expected.tier})"
                         f" - recorded: {detail.bonus_amount} ({detail.bonus_tier})"),
            ))
        else:
            matched += 1

    if abs(bonus.total_amount - calculated_total) > TOLERANCE:
        discrepancies.append(Discrepancy(
            type='mismatch', entity='weekly_bonus_total', entity_id=bonus.id,
            expected=calculated_total, actual=bonus.total_amount,
            difference=abs(calculated_total - bonus.total_amount),
            details=f"Recorded total: {bonus.total_amount:,.2f} - calculated: {calculated_total:,.2f}",
        ))

    if discrepancies:
        logging.warning(f"Weekly bonus {bonus.id}: {len(discrepancies)} calculation discrepancies")

    return ReconciliationResult(
        is_reconciled=not discrepancies,
        discrepancies=discrepancies,
        summary=ReconciliationSummary(
            total_checked=len(details),
            matched=matched,
            mismatched=sum(1 for d in discrepancies if d.entity == 'bonus_detail'),
            total_difference=sum(d.difference for d in discrepancies),
        ),
    )


def classify_month(total_discrepancies, total_difference):
    if total_difference > CRITICAL_DIFFERENCE or total_discrepancies > CRITICAL_DISCREPANCY_COUNT:
        return 'critical'
    if total_discrepancies > 0:
        return 'has_issues'
    return 'reconciled'


def reconcile_month(branch_id, month, year, store=None):
    """Runs the revenue reconciliation for the whole month and the bonus reconciliation for each week."""
    store = store or RevenueStore()
    logging.info("=" * 80)
    logging.info(f"MONTH RECONCILIATION: branch {branch_id}, {year}-{month:02d}")
    logging.info("=" * 80)

    start, end = month_range(month, year)
    revenue = reconcile_branch_revenues(branch_id, start, end, store=store)

    weeks = []
    for week in range(1, weeks_in_month(month, year) + 1):
        weeks.append(WeekReconciliation(week=week, result=reconcile_bonus_calculations(
            branch_id, week, month, year, store=store)))

    total_discrepancies = len(revenue.discrepancies) + sum(len(w.result.discrepancies) for w in weeks)
    total_difference = revenue.summary.total_difference + sum(w.result.summary.total_difference for w in weeks)
    status = classify_month(total_discrepancies, total_difference)

    logging.info(f"--- Month {year}-{month:02d}: {status} ({total_discrepancies} discrepancies, "
                 f"{total_difference:,.2f} difference) ---")

    return MonthReconciliation(
        revenue_reconciliation=revenue,
        bonus_reconciliations=weeks,
        overall_status=status,
        total_revenue_days=revenue.summary.total_checked,
        total_bonus_weeks=len(weeks),
        total_discrepancies=total_discrepancies,
        total_difference=total_difference,
    )
