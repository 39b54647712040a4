# tests/test_performance.py

from datetime import date, timedelta

import pytest

from conftest import make_branch, make_day, make_employee, make_weekly_bonus

from app.analysis.errors import EntityNotFoundError
from app.analysis.performance import (PatternMetrics, analyze_branch_performance, analyze_employee_performance,
                                      classify_pattern, detect_performance_patterns, trend_percent)


@pytest.mark.parametrize("metrics, pattern", [
    # matches consistent_high too, but declining_star is checked first
    (PatternMetrics(avg_revenue=300, trend=-20, volatility=0.1, bonus_rate=0.7), 'declining_star'),
    (PatternMetrics(avg_revenue=300, trend=25, volatility=0.1, bonus_rate=0.7), 'rising_talent'),
    (PatternMetrics(avg_revenue=300, trend=5, volatility=0.1, bonus_rate=0.7), 'consistent_high'),
    (PatternMetrics(avg_revenue=300, trend=0, volatility=0.1, bonus_rate=0.1), 'consistent_low'),
    (PatternMetrics(avg_revenue=300, trend=0, volatility=0.5, bonus_rate=0.1), 'erratic'),
    (PatternMetrics(avg_revenue=300, trend=0, volatility=0.3, bonus_rate=0.5), 'plateau'),
])
def test_first_matching_rule_wins(metrics, pattern):
    assert classify_pattern(metrics).pattern == pattern


def test_trend_percent_compares_halves():
    assert trend_percent([100, 100, 150, 150]) == 50
    assert trend_percent([0, 0, 100, 100]) == 0
    assert trend_percent([100]) == 0


def test_patterns_need_fourteen_days(branch):
    ali = make_employee(branch, 'Ali')
    sara = make_employee(branch, 'Sara')
    start = date(2025, 3, 1)
    for offset in range(14):
        rows = [(ali, 100)] + ([(sara, 100)] if offset < 10 else [])
        make_day(branch, start + timedelta(days=offset), 100 + (100 if offset < 10 else 0), rows)

    report = detect_performance_patterns(branch.id, start + timedelta(days=13))

    [pattern] = report.patterns
    assert pattern.employee_id == ali.id
    assert pattern.pattern == 'consistent_low'
    assert pattern.urgency == 'high'
    assert report.summary['consistent_low'] == 1
    assert sum(report.summary.values()) == 1


def test_employee_performance_summary(branch):
    ali = make_employee(branch, 'Ali')
    sara = make_employee(branch, 'Sara')
    make_day(branch, date(2025, 3, 2), 700, [(ali, 400), (sara, 300)])
    make_day(branch, date(2025, 3, 20), 1500, [(ali, 800), (sara, 700)])
    make_weekly_bonus(branch, 1, 3, 2025, details=[(ali, 1250, 35, 'tier_1'), (sara, 900, 0, 'none')])

    result = analyze_employee_performance(ali.id, date(2025, 3, 1), date(2025, 3, 31))

    assert result['metrics']['total_revenue'] == 1200
    assert result['metrics']['working_days'] == 2
    assert result['metrics']['bonus_eligible_weeks'] == 1
    assert result['tier_distribution'] == {'tier_1': 1}
    assert result['trend']['direction'] == 'up'
    assert result['ranking'] == {'in_branch': 1, 'total_in_branch': 2}


def test_unknown_employee_is_rejected(app_with_db):
    with pytest.raises(EntityNotFoundError):
        analyze_employee_performance(404, date(2025, 3, 1), date(2025, 3, 31))


def test_branches_are_ranked_by_revenue(branch):
    north = make_branch('North Branch')
    make_employee(branch, 'Ali')
    make_employee(north, 'Yousef')
    make_day(branch, date(2025, 3, 1), 1000)
    make_day(north, date(2025, 3, 1), 3000)

    results = analyze_branch_performance(date(2025, 3, 1), date(2025, 3, 31))

    assert [r['branch_id'] for r in results] == [north.id, branch.id]
    assert results[0]['ranking'] == 1
    assert results[0]['branch_name'] == 'North Branch'
    assert results[0]['metrics']['avg_revenue_per_employee'] == 3000
