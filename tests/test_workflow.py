# tests/test_workflow.py

from datetime import date, datetime

import pytest

from conftest import make_day, make_employee, make_weekly_bonus

from app.analysis.errors import EntityNotFoundError, InvalidTransitionError
from app.analysis.workflow import (can_transition_to, get_bonus_workflow_status, get_compliance_report,
                                   get_data_gaps_report, get_pending_tasks, priority_for,
                                   transition_weekly_bonus)


def test_transition_table():
    assert can_transition_to('draft') == ['pending']
    assert can_transition_to('requested') == ['approved', 'rejected']
    assert can_transition_to('rejected') == ['pending']
    assert can_transition_to('approved') == []
    assert can_transition_to('paid') == []


def test_allowed_transition_updates_status(branch):
    bonus = make_weekly_bonus(branch, 1, 3, 2025)
    now = datetime(2025, 3, 10, 9, 0)

    assert transition_weekly_bonus(bonus.id, 'pending', now=now) == 'pending'

    [week] = get_bonus_workflow_status(branch.id, 3, 2025)
    assert week['status'] == 'pending'
    assert week['updated_at'] == now
    assert week['can_transition_to'] == ['requested']


def test_disallowed_transition_is_rejected(branch):
    bonus = make_weekly_bonus(branch, 1, 3, 2025)

    with pytest.raises(InvalidTransitionError) as excinfo:
        transition_weekly_bonus(bonus.id, 'approved')
    assert excinfo.value.allowed == ['pending']

    with pytest.raises(EntityNotFoundError):
        transition_weekly_bonus(999, 'pending')


@pytest.mark.parametrize("waiting_days, priority", [(0, 'low'), (1, 'normal'), (3, 'normal'), (4, 'high'),
                                                    (7, 'high'), (8, 'urgent')])
def test_priority_by_waiting_days(waiting_days, priority):
    assert priority_for(waiting_days) == priority


def test_pending_tasks_per_role(branch):
    now = datetime(2025, 3, 20, 12, 0)
    make_weekly_bonus(branch, 1, 3, 2025, status='requested', updated_at=datetime(2025, 3, 10, 12, 0))
    make_weekly_bonus(branch, 2, 3, 2025, status='pending', updated_at=datetime(2025, 3, 15, 12, 0))
    make_weekly_bonus(branch, 3, 3, 2025, status='draft')

    tasks = get_pending_tasks('manager', now=now)

    assert [(t.task_type, t.week_number, t.waiting_days, t.priority) for t in tasks] == [
        ('approve', 1, 10, 'urgent'),
        ('review', 2, 5, 'high'),
    ]
    assert tasks[0].branch_name == 'Main Branch'
    assert get_pending_tasks('accountant', now=now) == []
    assert get_pending_tasks('cashier', now=now) == []


def test_compliance_blends_three_scores(branch):
    ali = make_employee(branch, 'Ali')
    make_weekly_bonus(branch, 1, 2, 2025, status='approved', created_at=datetime(2025, 2, 8, 10, 0))
    make_weekly_bonus(branch, 2, 2, 2025, status='draft', created_at=datetime(2025, 2, 20))
    for day in range(1, 15):
        make_day(branch, date(2025, 2, day), 100, [(ali, 100)])

    report = get_compliance_report(branch.id, 2, 2025)

    assert (report.on_time, report.delayed) == (1, 1)
    assert report.delayed_details == [{'week_number': 2, 'delay_days': 4}]
    assert (report.properly_approved, report.missing_approval) == (1, 1)
    assert (report.complete_days, report.incomplete_days) == (14, 14)
    assert report.bonus_score == 50
    assert report.approval_score == 50
    assert report.entry_score == 50
    assert report.overall_score == 50


def test_data_gaps(branch):
    ali = make_employee(branch, 'Ali')
    sara = make_employee(branch, 'Sara')
    for day in range(1, 8):
        make_day(branch, date(2025, 2, day), 200, [(ali, 100)] + ([(sara, 100)] if day <= 5 else []))

    report = get_data_gaps_report(branch.id, 2, 2025)

    assert len(report.missing_days) == 21
    assert report.missing_days[0] == '2025-02-08'
    assert [w['week_number'] for w in report.incomplete_weeks] == [2, 3, 4]
    assert report.incomplete_weeks[0] == {'week_number': 2, 'missing_days': 7, 'has_bonus': False}
    assert report.employees_without_revenue == [{'employee_id': sara.id, 'employee_name': 'Sara',
                                                 'missing_days': 2}]
    assert report.completion_rate == 25


def test_compliance_score_rounds_halves_up(branch):
    # 75% on time, nothing approved, every day entered: 0.3*75 + 0.4*100 = 62.5
    make_weekly_bonus(branch, 1, 2, 2025, created_at=datetime(2025, 2, 8))
    make_weekly_bonus(branch, 2, 2, 2025, created_at=datetime(2025, 2, 15))
    make_weekly_bonus(branch, 3, 2, 2025, created_at=datetime(2025, 2, 22))
    make_weekly_bonus(branch, 4, 2, 2025, created_at=datetime(2025, 3, 10))
    for day in range(1, 29):
        make_day(branch, date(2025, 2, day), 100)

    report = get_compliance_report(branch.id, 2, 2025)

    assert (report.bonus_score, report.approval_score, report.entry_score) == (75, 0, 100)
    assert report.overall_score == 63
