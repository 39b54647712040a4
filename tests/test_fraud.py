# tests/test_fraud.py

from datetime import date, timedelta

from conftest import make_day, make_employee, make_weekly_bonus

from app.analysis.fraud import (detect_fraud_patterns, exact_repetition_patterns, risk_level_for,
                                round_number_pattern, threshold_gaming_pattern)


def test_weekly_totals_just_above_a_threshold_are_flagged():
    pattern = threshold_gaming_pattern(1, 'Ali', [1210, 1205, 1220, 1215])

    assert pattern.pattern_type == 'threshold_gaming'
    assert pattern.confidence == 'high'
    assert pattern.risk_points == 40


def test_threshold_gaming_needs_four_weeks():
    assert threshold_gaming_pattern(1, 'Ali', [1210, 1205, 1220]) is None
    assert threshold_gaming_pattern(1, 'Ali', [1210, 1350, 1420, 1000]) is None


def test_round_number_ratio_levels():
    medium = round_number_pattern(1, 'Ali', [100, 150, 200, 250, 300, 101, 102, 103, 104, 105])
    high = round_number_pattern(1, 'Ali', [100, 150, 200, 250, 300, 350, 400, 103, 104, 105])

    assert medium.risk_points == 15 and medium.risk_level == 'medium'
    assert high.risk_points == 30 and high.risk_level == 'high'
    assert round_number_pattern(1, 'Ali', [100, 150, 200]) is None


def test_exact_repetition_flags_each_recurring_value():
    values = [437.5] * 5 + [101, 102, 103, 104, 105, 106]

    [pattern] = exact_repetition_patterns(1, 'Ali', values)

    assert pattern.pattern_type == 'exact_repetition'
    assert pattern.risk_points == 25
    assert exact_repetition_patterns(1, 'Ali', [437.5] * 4 + [1, 2, 3, 4, 5, 6]) == []


def test_risk_levels():
    assert risk_level_for(0) == 'low'
    assert risk_level_for(29) == 'low'
    assert risk_level_for(30) == 'medium'
    assert risk_level_for(59) == 'medium'
    assert risk_level_for(60) == 'high'


def test_co_occurring_patterns_stack(branch):
    ali = make_employee(branch, 'Ali')
    for week, revenue in enumerate([1210, 1205, 1220, 1215], start=1):
        make_weekly_bonus(branch, week, 3, 2025, details=[(ali, revenue, 35, 'tier_1')])
    daily = [100, 150, 200, 250, 300, 101, 102, 103, 104, 105]
    for offset, amount in enumerate(daily):
        make_day(branch, date(2025, 3, 1) + timedelta(days=offset), amount, [(ali, amount)])

    report = detect_fraud_patterns(branch.id, date(2025, 3, 1), date(2025, 3, 31))

    assert sorted(p.pattern_type for p in report.patterns) == ['round_numbers', 'threshold_gaming']
    assert report.risk_score == 55
    assert report.risk_level == 'medium'


def test_clean_branch_scores_zero(branch):
    ali = make_employee(branch, 'Ali')
    make_day(branch, date(2025, 3, 1), 1234.5, [(ali, 1234.5)])

    report = detect_fraud_patterns(branch.id, '2025-03-01', '2025-03-31')

    assert report.risk_score == 0
    assert report.risk_level == 'low'
    assert report.patterns == []


def _enter_daily(branch, employee, amounts):
    for offset, amount in enumerate(amounts):
        make_day(branch, date(2025, 3, 1) + timedelta(days=offset), amount, [(employee, amount)])


REPEATED_ROUND_AMOUNTS = [100] * 5 + [150, 200, 250, 103, 104, 105]


def test_round_numbers_and_repetition_add_up(branch):
    ali = make_employee(branch, 'Ali')
    # 8 of 11 entries are round (73%) and 100 alone is 5 of 11 (45%).
    _enter_daily(branch, ali, REPEATED_ROUND_AMOUNTS)

    report = detect_fraud_patterns(branch.id, date(2025, 3, 1), date(2025, 3, 31))

    assert {p.pattern_type: p.risk_points for p in report.patterns} == {
        'round_numbers': 30, 'exact_repetition': 25}
    assert report.risk_score == 55
    assert report.risk_level == 'medium'


def test_third_pattern_pushes_the_branch_to_high_risk(branch):
    ali = make_employee(branch, 'Ali')
    _enter_daily(branch, ali, REPEATED_ROUND_AMOUNTS)
    for week, revenue in enumerate([1210, 1205, 1220, 1215], start=1):
        make_weekly_bonus(branch, week, 3, 2025, details=[(ali, revenue, 35, 'tier_1')])

    report = detect_fraud_patterns(branch.id, date(2025, 3, 1), date(2025, 3, 31))

    assert len(report.patterns) == 3
    assert report.risk_score == 95
    assert report.risk_level == 'high'
