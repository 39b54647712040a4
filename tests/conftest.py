# tests/conftest.py

from datetime import datetime

import pytest

from config import TestConfig


@pytest.fixture
def app_with_db():
    """
    Creates a new app instance for a test, sets up an in-memory database,
    and yields the app within an application context.
    """
    from app import create_app, db

    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app  # The tests will run here
        db.session.remove()
        db.drop_all()


# --- Factory helpers ---

def make_branch(name='Main Branch', is_active=True):
    from app import db
    from app.models import Branch
    branch = Branch(name=name, is_active=is_active)
    db.session.add(branch)
    db.session.commit()
    return branch


def make_employee(branch, name='Employee', is_active=True):
    from app import db
    from app.models import Employee
    employee = Employee(name=name, branch_id=branch.id, is_active=is_active)
    db.session.add(employee)
    db.session.commit()
    return employee


def make_day(branch, day, total, employee_totals=None):
    """
    Adds a DailyRevenue with the given branch total and one EmployeeRevenue per
    (employee, amount) pair in `employee_totals`.
    """
    from app import db
    from app.models import DailyRevenue, EmployeeRevenue
    daily = DailyRevenue(branch_id=branch.id, date=day, total=total)
    db.session.add(daily)
    db.session.flush()
    for employee, amount in (employee_totals or []):
        db.session.add(EmployeeRevenue(employee_id=employee.id, daily_revenue_id=daily.id, total=amount))
    db.session.commit()
    return daily


def make_weekly_bonus(branch, week_number, month, year, details=(), total_amount=None, status='draft',
                      created_at=None, updated_at=None):
    """
    Adds a WeeklyBonus with one BonusDetail per (employee, weekly_revenue,
    bonus_amount, bonus_tier) tuple. The total defaults to the details' sum.
    """
    from app import db
    from app.analysis.periods import week_range
    from app.models import BonusDetail, WeeklyBonus
    week_start, week_end = week_range(week_number, month, year)
    if total_amount is None:
        total_amount = sum(d[2] for d in details)
    bonus = WeeklyBonus(branch_id=branch.id, week_number=week_number, month=month, year=year,
                        week_start=week_start, week_end=week_end, status=status, total_amount=total_amount,
                        created_at=created_at or datetime(year, month, 1),
                        updated_at=updated_at or datetime(year, month, 1))
    db.session.add(bonus)
    db.session.flush()
    for employee, revenue, amount, tier in details:
        db.session.add(BonusDetail(weekly_bonus_id=bonus.id, employee_id=employee.id, weekly_revenue=revenue,
                                   bonus_amount=amount, bonus_tier=tier, is_eligible=amount > 0))
    db.session.commit()
    return bonus


@pytest.fixture
def branch(app_with_db):
    return make_branch()
