# tests/test_reconciliation.py

from datetime import date, timedelta

from conftest import make_day, make_employee, make_weekly_bonus

from app.analysis.reconciliation import (classify_month, reconcile_bonus_calculations, reconcile_branch_revenues,
                                         reconcile_month)


def test_matching_week_is_reconciled(branch):
    ali = make_employee(branch, 'Ali')
    sara = make_employee(branch, 'Sara')
    start = date(2025, 3, 1)
    for offset in range(7):
        make_day(branch, start + timedelta(days=offset), 1000, [(ali, 600), (sara, 400)])

    result = reconcile_branch_revenues(branch.id, start, start + timedelta(days=6))

    assert result.is_reconciled
    assert result.summary.total_checked == 7
    assert result.summary.matched == 7
    assert result.summary.mismatched == 0
    assert result.discrepancies == []


def test_mismatch_reports_absolute_difference(branch):
    ali = make_employee(branch, 'Ali')
    make_day(branch, date(2025, 3, 1), 1000, [(ali, 900)])
    make_day(branch, date(2025, 3, 2), 500, [(ali, 500.004)])

    result = reconcile_branch_revenues(branch.id, date(2025, 3, 1), date(2025, 3, 2))

    assert not result.is_reconciled
    assert result.summary.matched == 1
    assert result.summary.mismatched == 1
    [discrepancy] = result.discrepancies
    assert discrepancy.type == 'mismatch'
    assert discrepancy.expected == 1000
    assert discrepancy.actual == 900
    assert discrepancy.difference == 100
    assert result.summary.total_difference == 100


def test_employee_revenue_without_branch_total_is_an_orphan(branch):
    ali = make_employee(branch, 'Ali')
    make_day(branch, date(2025, 3, 1), None, [(ali, 300)])

    result = reconcile_branch_revenues(branch.id, date(2025, 3, 1), date(2025, 3, 1))

    types = sorted(d.type for d in result.discrepancies)
    assert types == ['mismatch', 'orphan']
    assert result.summary.orphaned == 1
    assert result.summary.mismatched == 1


def test_weekly_total_mismatch_against_recomputed_amounts(branch):
    ali = make_employee(branch, 'Ali')
    sara = make_employee(branch, 'Sara')
    omar = make_employee(branch, 'Omar')
    make_weekly_bonus(branch, 1, 3, 2025, details=[
        (ali, 2500, 180, 'tier_5'),
        (sara, 2200, 135, 'tier_4'),
        (omar, 2150, 135, 'tier_4'),
    ], total_amount=500)

    result = reconcile_bonus_calculations(branch.id, 1, 3, 2025)

    assert not result.is_reconciled
    [discrepancy] = result.discrepancies
    assert discrepancy.entity == 'weekly_bonus_total'
    assert discrepancy.expected == 450
    assert discrepancy.actual == 500
    assert discrepancy.difference == 50
    assert result.summary.matched == 3


def test_detail_with_wrong_tier_is_a_mismatch(branch):
    ali = make_employee(branch, 'Ali')
    make_weekly_bonus(branch, 2, 3, 2025, details=[(ali, 1300, 60, 'tier_2')])

    result = reconcile_bonus_calculations(branch.id, 2, 3, 2025)

    entities = [d.entity for d in result.discrepancies]
    assert entities == ['bonus_detail', 'weekly_bonus_total']
    assert result.discrepancies[0].expected == 35
    assert result.discrepancies[0].difference == 25
    assert result.summary.mismatched == 1


def test_missing_week_is_reported(branch):
    result = reconcile_bonus_calculations(branch.id, 3, 3, 2025)

    assert not result.is_reconciled
    assert result.discrepancies[0].type == 'missing'
    assert result.summary.total_checked == 0


def test_month_with_missing_weeks_has_issues(branch):
    ali = make_employee(branch, 'Ali')
    make_day(branch, date(2025, 2, 3), 1000, [(ali, 1000)])

    result = reconcile_month(branch.id, 2, 2025)

    assert result.total_bonus_weeks == 4
    assert result.total_revenue_days == 1
    assert result.total_discrepancies == 4
    assert result.overall_status == 'has_issues'


def test_fully_consistent_month_is_reconciled(branch):
    ali = make_employee(branch, 'Ali')
    for week in range(1, 5):
        make_weekly_bonus(branch, week, 2, 2025, details=[(ali, 1250, 35, 'tier_1')])

    result = reconcile_month(branch.id, 2, 2025)

    assert result.overall_status == 'reconciled'
    assert result.total_discrepancies == 0


def test_month_classification_limits():
    assert classify_month(0, 0) == 'reconciled'
    assert classify_month(3, 10) == 'has_issues'
    assert classify_month(11, 10) == 'critical'
    assert classify_month(1, 1000.5) == 'critical'
    assert classify_month(10, 1000) == 'has_issues'
