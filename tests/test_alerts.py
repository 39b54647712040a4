# tests/test_alerts.py

from datetime import date, datetime

from conftest import make_day, make_employee

from app.analysis.alerts import generate_proactive_alerts, generate_smart_recommendations

# A Thursday: the business week started on Sunday 2025-03-16 with two days left.
THURSDAY = date(2025, 3, 20)


def _week_so_far(branch):
    ali = make_employee(branch, 'Ali')
    sara = make_employee(branch, 'Sara')
    for day in range(16, 21):
        make_day(branch, date(2025, 3, day), 530, [(ali, 230), (sara, 260)])
    return ali, sara


def test_employees_close_to_a_threshold(branch):
    ali, sara = _week_so_far(branch)

    report = generate_proactive_alerts(branch.id, THURSDAY)

    at_risk = [a for a in report.alerts if a.type == 'bonus_at_risk']
    assert [(a.entity['id'], a.priority) for a in at_risk] == [(ali.id, 'urgent'), (sara.id, 'warning')]
    assert at_risk[0].data['gap'] == 50
    assert at_risk[0].data['days_remaining'] == 2
    assert at_risk[0].deadline.date() == date(2025, 3, 22)
    assert report.summary['urgent'] == 1
    assert report.summary['warning'] == 1


def test_missing_yesterday_is_critical(branch):
    report = generate_proactive_alerts(branch.id, THURSDAY)

    [alert] = report.alerts
    assert alert.type == 'data_delay'
    assert alert.priority == 'critical'
    assert alert.data['missing_date'] == '2025-03-19'
    assert alert.deadline == datetime(2025, 3, 20, 12, 0)


def test_performance_drop_against_previous_fortnight(branch):
    ali = make_employee(branch, 'Ali')
    make_day(branch, date(2025, 2, 25), 1000, [(ali, 1000)])
    make_day(branch, date(2025, 3, 10), 500, [(ali, 500)])
    make_day(branch, date(2025, 3, 19), 0)

    report = generate_proactive_alerts(branch.id, THURSDAY)

    [drop] = [a for a in report.alerts if a.type == 'performance_drop']
    assert drop.priority == 'critical'
    assert drop.data['change_percent'] == -50


def test_no_bonus_alerts_on_the_last_day_of_the_week(branch):
    _week_so_far(branch)
    make_day(branch, date(2025, 3, 21), 0)

    report = generate_proactive_alerts(branch.id, date(2025, 3, 22))

    assert [a for a in report.alerts if a.type == 'bonus_at_risk'] == []


def test_recommendations_value_opportunities_from_the_tier_table(branch):
    ali, _ = _week_so_far(branch)

    report = generate_smart_recommendations(branch.id, THURSDAY)

    [rec] = report.recommendations
    assert rec.type == 'opportunity'
    assert rec.affected_entities == [{'type': 'employee', 'id': ali.id, 'name': 'Ali'}]
    assert rec.impact['potential_value'] == 35
    assert report.summary == {'total': 1, 'by_type': {'opportunity': 1}, 'by_priority': {'warning': 1},
                              'estimated_impact': 35}


def test_recommendation_for_missing_data(branch):
    report = generate_smart_recommendations(branch.id, THURSDAY)

    [rec] = report.recommendations
    assert rec.type == 'action_required'
    assert rec.priority == 'critical'
