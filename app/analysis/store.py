# ==============================================================================
# app/analysis/store.py
# ------------------------------------------------------------------------------
# Data-access layer for the analysis engine. Every read returns explicit row
# dataclasses instead of ORM objects or loose dicts, and every write is a narrow
# single-field update or single-row delete committed on its own.
# Any SQLAlchemy failure surfaces as DataUnavailableError.
# ==============================================================================

import logging
import time
from dataclasses import dataclass
from datetime import date, datetime
from functools import wraps
from typing import Optional

from sqlalchemy import and_, func, or_, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import aliased

from app import db
from app.models import Branch, BonusDetail, DailyRevenue, Employee, EmployeeRevenue, WeeklyBonus
from app.analysis.errors import DataUnavailableError


# --- Row Types ---

@dataclass(frozen=True)
class BranchRow:
    id: int
    name: str
    is_active: bool


@dataclass(frozen=True)
class EmployeeRow:
    id: int
    name: str
    branch_id: int
    is_active: bool


@dataclass(frozen=True)
class DailyRevenueRow:
    id: int
    branch_id: int
    date: date
    total: Optional[float]


@dataclass(frozen=True)
class EmployeeTotalRow:
    daily_revenue_id: int
    total: float


@dataclass(frozen=True)
class EmployeeRevenueRow:
    id: int
    employee_id: int
    employee_name: str
    daily_revenue_id: int
    date: date
    total: float


@dataclass(frozen=True)
class WeeklyBonusRow:
    id: int
    branch_id: int
    branch_name: str
    week_number: int
    month: int
    year: int
    week_start: date
    week_end: date
    status: str
    total_amount: float
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class BonusDetailRow:
    id: int
    weekly_bonus_id: int
    employee_id: int
    weekly_revenue: float
    bonus_amount: float
    bonus_tier: str
    is_eligible: bool


@dataclass(frozen=True)
class EmployeeBonusRow:
    """A bonus detail joined with its week and employee name."""
    employee_id: int
    employee_name: str
    weekly_bonus_id: int
    week_start: date
    weekly_revenue: float
    bonus_amount: float
    bonus_tier: str
    is_eligible: bool


@dataclass(frozen=True)
class BonusTotalRow:
    weekly_bonus_id: int
    recorded: float
    calculated: float


def _float(value):
    return float(value) if value is not None else 0.0


def guarded(operation):
    """Re-raises SQLAlchemy failures of the wrapped store call as DataUnavailableError."""
    def decorator(f):
        @wraps(f)
        def decorated_function(self, *args, **kwargs):
            try:
                return f(self, *args, **kwargs)
            except SQLAlchemyError as e:
                logging.error(f"Store operation '{operation}' failed: {e}")
                try:
                    self.session.rollback()
                except SQLAlchemyError:
                    logging.debug("Rollback after failed store operation also failed", exc_info=True)
                raise DataUnavailableError(operation, e) from e
        return decorated_function
    return decorator


class RevenueStore:
    """
    Query contracts over the relational store. Holds nothing but the session,
    so one instance can serve any number of analyses.
    """

    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    # --- Connectivity ---

    @guarded('ping')
    def ping(self):
        """Runs a trivial query and returns its latency in milliseconds."""
        started = time.perf_counter()
        self.session.execute(text('SELECT 1'))
        return (time.perf_counter() - started) * 1000

    # --- Reference Data ---

    @guarded('fetch branches')
    def branches(self):
        rows = self.session.query(Branch).order_by(Branch.id).all()
        return [BranchRow(b.id, b.name, bool(b.is_active)) for b in rows]

    @guarded('fetch branch')
    def branch(self, branch_id):
        b = self.session.get(Branch, branch_id)
        return BranchRow(b.id, b.name, bool(b.is_active)) if b else None

    @guarded('fetch employee')
    def employee(self, employee_id):
        e = self.session.get(Employee, employee_id)
        return EmployeeRow(e.id, e.name, e.branch_id, bool(e.is_active)) if e else None

    @guarded('fetch active employees')
    def active_employees(self, branch_id=None):
        query = self.session.query(Employee).filter(Employee.is_active.is_(True))
        if branch_id is not None:
            query = query.filter(Employee.branch_id == branch_id)
        return [EmployeeRow(e.id, e.name, e.branch_id, True) for e in query.order_by(Employee.id).all()]

    # --- Daily Revenue ---

    @guarded('fetch daily revenues')
    def daily_revenues(self, branch_id, start, end):
        rows = (self.session.query(DailyRevenue)
                .filter(DailyRevenue.branch_id == branch_id, DailyRevenue.date.between(start, end))
                .order_by(DailyRevenue.date, DailyRevenue.id)
                .all())
        return [DailyRevenueRow(r.id, r.branch_id, r.date, r.total) for r in rows]

    @guarded('count daily revenues')
    def count_daily_revenues(self, branch_id, start, end):
        return (self.session.query(func.count(DailyRevenue.id))
                .filter(DailyRevenue.branch_id == branch_id, DailyRevenue.date.between(start, end))
                .scalar()) or 0

    @guarded('sum branch revenues')
    def branch_revenue_totals(self, start, end):
        """Total DailyRevenue per branch for a range, largest first."""
        rows = (self.session.query(DailyRevenue.branch_id, func.sum(DailyRevenue.total))
                .filter(DailyRevenue.date.between(start, end))
                .group_by(DailyRevenue.branch_id)
                .order_by(func.sum(DailyRevenue.total).desc())
                .all())
        return [(branch_id, _float(total)) for branch_id, total in rows]

    # --- Employee Revenue ---

    @guarded('sum employee revenues per day')
    def employee_totals_by_day(self, branch_id, start, end):
        rows = (self.session.query(EmployeeRevenue.daily_revenue_id, func.sum(EmployeeRevenue.total))
                .join(DailyRevenue, EmployeeRevenue.daily_revenue_id == DailyRevenue.id)
                .filter(DailyRevenue.branch_id == branch_id, DailyRevenue.date.between(start, end))
                .group_by(EmployeeRevenue.daily_revenue_id)
                .all())
        return [EmployeeTotalRow(day_id, _float(total)) for day_id, total in rows]

    @guarded('find employee revenues without a branch total')
    def employee_totals_without_branch_total(self, branch_id, start, end):
        """Days whose branch total is null or zero while employee entries sum above zero."""
        rows = (self.session.query(EmployeeRevenue.daily_revenue_id, func.sum(EmployeeRevenue.total))
                .join(DailyRevenue, EmployeeRevenue.daily_revenue_id == DailyRevenue.id)
                .filter(DailyRevenue.branch_id == branch_id,
                        DailyRevenue.date.between(start, end),
                        or_(DailyRevenue.total.is_(None), DailyRevenue.total == 0))
                .group_by(EmployeeRevenue.daily_revenue_id)
                .having(func.sum(EmployeeRevenue.total) > 0)
                .all())
        return [EmployeeTotalRow(day_id, _float(total)) for day_id, total in rows]

    @guarded('fetch employee revenues')
    def employee_revenues(self, branch_id, start, end, employee_id=None):
        query = (self.session.query(EmployeeRevenue, DailyRevenue.date, Employee.name)
                 .join(DailyRevenue, EmployeeRevenue.daily_revenue_id == DailyRevenue.id)
                 .join(Employee, EmployeeRevenue.employee_id == Employee.id)
                 .filter(DailyRevenue.date.between(start, end)))
        if branch_id is not None:
            query = query.filter(DailyRevenue.branch_id == branch_id)
        if employee_id is not None:
            query = query.filter(EmployeeRevenue.employee_id == employee_id)
        rows = query.order_by(DailyRevenue.date, EmployeeRevenue.id).all()
        return [EmployeeRevenueRow(er.id, er.employee_id, name, er.daily_revenue_id, day, _float(er.total))
                for er, day, name in rows]

    @guarded('find negative employee revenues')
    def negative_employee_revenues(self, branch_id=None):
        """Rows with a negative total, including those whose employee no longer exists."""
        query = (self.session.query(EmployeeRevenue, DailyRevenue.date, Employee.name)
                 .join(DailyRevenue, EmployeeRevenue.daily_revenue_id == DailyRevenue.id)
                 .outerjoin(Employee, EmployeeRevenue.employee_id == Employee.id)
                 .filter(EmployeeRevenue.total < 0))
        if branch_id is not None:
            query = query.filter(DailyRevenue.branch_id == branch_id)
        rows = query.order_by(EmployeeRevenue.id).all()
        return [EmployeeRevenueRow(er.id, er.employee_id, name or '', er.daily_revenue_id, day, _float(er.total))
                for er, day, name in rows]

    @guarded('find employee revenues without a daily revenue')
    def orphan_employee_revenue_ids(self):
        rows = (self.session.query(EmployeeRevenue.id)
                .outerjoin(DailyRevenue, EmployeeRevenue.daily_revenue_id == DailyRevenue.id)
                .filter(DailyRevenue.id.is_(None))
                .order_by(EmployeeRevenue.id)
                .all())
        return [row[0] for row in rows]

    @guarded('find employees without a branch')
    def employees_without_branch_ids(self):
        rows = (self.session.query(Employee.id)
                .outerjoin(Branch, Employee.branch_id == Branch.id)
                .filter(Branch.id.is_(None))
                .order_by(Employee.id)
                .all())
        return [row[0] for row in rows]

    @guarded('find negative daily revenues')
    def negative_daily_revenue_ids(self, branch_id=None):
        query = self.session.query(DailyRevenue.id).filter(DailyRevenue.total < 0)
        if branch_id is not None:
            query = query.filter(DailyRevenue.branch_id == branch_id)
        return [row[0] for row in query.order_by(DailyRevenue.id).all()]

    @guarded('find duplicate employee revenues')
    def duplicate_employee_revenue_ids(self, branch_id):
        """Ids of rows repeating an (employee, day) pair, excluding the lowest id of each pair."""
        later = aliased(EmployeeRevenue)
        earlier = aliased(EmployeeRevenue)
        rows = (self.session.query(later.id)
                .join(earlier, and_(later.employee_id == earlier.employee_id,
                                    later.daily_revenue_id == earlier.daily_revenue_id,
                                    later.id > earlier.id))
                .join(DailyRevenue, later.daily_revenue_id == DailyRevenue.id)
                .filter(DailyRevenue.branch_id == branch_id)
                .distinct()
                .order_by(later.id)
                .all())
        return [row[0] for row in rows]

    # --- Weekly Bonus ---

    def _bonus_row(self, bonus, branch_name):
        return WeeklyBonusRow(
            id=bonus.id, branch_id=bonus.branch_id, branch_name=branch_name or '',
            week_number=bonus.week_number, month=bonus.month, year=bonus.year,
            week_start=bonus.week_start, week_end=bonus.week_end,
            status=bonus.status or 'draft', total_amount=_float(bonus.total_amount),
            created_at=bonus.created_at, updated_at=bonus.updated_at,
        )

    def _bonus_query(self):
        return (self.session.query(WeeklyBonus, Branch.name)
                .outerjoin(Branch, WeeklyBonus.branch_id == Branch.id))

    @guarded('fetch weekly bonus')
    def weekly_bonus(self, branch_id, week_number, month, year):
        row = (self._bonus_query()
               .filter(WeeklyBonus.branch_id == branch_id, WeeklyBonus.week_number == week_number,
                       WeeklyBonus.month == month, WeeklyBonus.year == year)
               .first())
        return self._bonus_row(*row) if row else None

    @guarded('fetch weekly bonus by id')
    def weekly_bonus_by_id(self, bonus_id):
        row = self._bonus_query().filter(WeeklyBonus.id == bonus_id).first()
        return self._bonus_row(*row) if row else None

    @guarded('fetch weekly bonuses for month')
    def weekly_bonuses_for_month(self, branch_id, month, year):
        rows = (self._bonus_query()
                .filter(WeeklyBonus.branch_id == branch_id, WeeklyBonus.month == month, WeeklyBonus.year == year)
                .order_by(WeeklyBonus.week_number)
                .all())
        return [self._bonus_row(*row) for row in rows]

    @guarded('fetch weekly bonuses by status')
    def weekly_bonuses_by_status(self, statuses, branch_id=None):
        query = self._bonus_query().filter(WeeklyBonus.status.in_(list(statuses)))
        if branch_id is not None:
            query = query.filter(WeeklyBonus.branch_id == branch_id)
        rows = query.order_by(WeeklyBonus.updated_at, WeeklyBonus.id).all()
        return [self._bonus_row(*row) for row in rows]

    @guarded('sum weekly bonuses per branch')
    def branch_bonus_totals(self, start, end):
        rows = (self.session.query(WeeklyBonus.branch_id, func.sum(WeeklyBonus.total_amount))
                .filter(WeeklyBonus.week_start.between(start, end))
                .group_by(WeeklyBonus.branch_id)
                .all())
        return {branch_id: _float(total) for branch_id, total in rows}

    # --- Bonus Details ---

    @guarded('fetch bonus details')
    def bonus_details(self, weekly_bonus_id):
        rows = (self.session.query(BonusDetail)
                .filter(BonusDetail.weekly_bonus_id == weekly_bonus_id)
                .order_by(BonusDetail.id)
                .all())
        return [BonusDetailRow(d.id, d.weekly_bonus_id, d.employee_id, _float(d.weekly_revenue),
                               _float(d.bonus_amount), d.bonus_tier or 'none', bool(d.is_eligible))
                for d in rows]

    @guarded('count bonus details')
    def bonus_detail_counts(self, weekly_bonus_ids):
        ids = list(weekly_bonus_ids)
        if not ids:
            return {}
        rows = (self.session.query(BonusDetail.weekly_bonus_id, func.count(BonusDetail.id))
                .filter(BonusDetail.weekly_bonus_id.in_(ids))
                .group_by(BonusDetail.weekly_bonus_id)
                .all())
        return {bonus_id: int(count) for bonus_id, count in rows}

    @guarded('sum bonus details')
    def bonus_detail_total(self, weekly_bonus_id):
        total = (self.session.query(func.sum(BonusDetail.bonus_amount))
                 .filter(BonusDetail.weekly_bonus_id == weekly_bonus_id)
                 .scalar())
        return _float(total)

    @guarded('fetch employee bonuses')
    def employee_bonuses(self, start, end, branch_id=None, employee_id=None):
        """Bonus details of weeks starting inside the range, oldest week first."""
        query = (self.session.query(BonusDetail, WeeklyBonus.week_start, Employee.name)
                 .join(WeeklyBonus, BonusDetail.weekly_bonus_id == WeeklyBonus.id)
                 .join(Employee, BonusDetail.employee_id == Employee.id)
                 .filter(WeeklyBonus.week_start.between(start, end)))
        if branch_id is not None:
            query = query.filter(WeeklyBonus.branch_id == branch_id)
        if employee_id is not None:
            query = query.filter(BonusDetail.employee_id == employee_id)
        rows = query.order_by(WeeklyBonus.week_start, BonusDetail.id).all()
        return [EmployeeBonusRow(d.employee_id, name, d.weekly_bonus_id, week_start, _float(d.weekly_revenue),
                                 _float(d.bonus_amount), d.bonus_tier or 'none', bool(d.is_eligible))
                for d, week_start, name in rows]

    @guarded('find orphan bonus details')
    def orphan_bonus_detail_ids(self):
        rows = (self.session.query(BonusDetail.id)
                .outerjoin(WeeklyBonus, BonusDetail.weekly_bonus_id == WeeklyBonus.id)
                .filter(WeeklyBonus.id.is_(None))
                .order_by(BonusDetail.id)
                .all())
        return [row[0] for row in rows]

    @guarded('find bonus details exceeding revenue')
    def bonus_details_exceeding_revenue_ids(self, branch_id=None):
        query = (self.session.query(BonusDetail.id)
                 .join(WeeklyBonus, BonusDetail.weekly_bonus_id == WeeklyBonus.id)
                 .filter(BonusDetail.bonus_amount > BonusDetail.weekly_revenue))
        if branch_id is not None:
            query = query.filter(WeeklyBonus.branch_id == branch_id)
        return [row[0] for row in query.order_by(BonusDetail.id).all()]

    @guarded('compare weekly bonus totals')
    def weekly_bonus_totals(self, branch_id=None):
        """Recorded total vs. the sum of the details for every weekly bonus."""
        calculated = func.coalesce(func.sum(BonusDetail.bonus_amount), 0)
        query = (self.session.query(WeeklyBonus.id, WeeklyBonus.total_amount, calculated)
                 .outerjoin(BonusDetail, BonusDetail.weekly_bonus_id == WeeklyBonus.id))
        if branch_id is not None:
            query = query.filter(WeeklyBonus.branch_id == branch_id)
        rows = query.group_by(WeeklyBonus.id, WeeklyBonus.total_amount).order_by(WeeklyBonus.id).all()
        return [BonusTotalRow(bonus_id, _float(recorded), _float(calc)) for bonus_id, recorded, calc in rows]

    # --- Write Contracts ---

    def _commit(self):
        self.session.commit()

    @guarded('update weekly bonus total')
    def update_weekly_bonus_total(self, weekly_bonus_id, total_amount):
        # A correction keeps updated_at; assigning it to itself suppresses the column onupdate.
        (self.session.query(WeeklyBonus)
         .filter(WeeklyBonus.id == weekly_bonus_id)
         .update({WeeklyBonus.total_amount: round(float(total_amount), 2),
                  WeeklyBonus.updated_at: WeeklyBonus.updated_at},
                 synchronize_session='fetch'))
        self._commit()

    @guarded('update weekly bonus status')
    def update_weekly_bonus_status(self, weekly_bonus_id, status, updated_at=None):
        bonus = self.session.get(WeeklyBonus, weekly_bonus_id)
        bonus.status = status
        bonus.updated_at = updated_at or datetime.utcnow()
        self._commit()

    @guarded('zero employee revenue')
    def zero_employee_revenue(self, employee_revenue_id):
        row = self.session.get(EmployeeRevenue, employee_revenue_id)
        row.total = 0.0
        self._commit()

    @guarded('delete employee revenue')
    def delete_employee_revenue(self, employee_revenue_id):
        self.session.query(EmployeeRevenue).filter(EmployeeRevenue.id == employee_revenue_id).delete()
        self._commit()

    @guarded('delete bonus detail')
    def delete_bonus_detail(self, bonus_detail_id):
        self.session.query(BonusDetail).filter(BonusDetail.id == bonus_detail_id).delete()
        self._commit()

    @guarded('create weekly bonus')
    def create_weekly_bonus(self, branch_id, week_number, month, year, week_start, week_end, details,
                            status='draft'):
        """
        Inserts a weekly bonus and its details in one transaction.

        Args:
            details (list): dicts with employee_id, weekly_revenue, bonus_amount,
                bonus_tier and is_eligible.

        Returns:
            int: The id of the new WeeklyBonus.
        """
        bonus = WeeklyBonus(
            branch_id=branch_id, week_number=week_number, month=month, year=year,
            week_start=week_start, week_end=week_end, status=status,
            total_amount=round(sum(d['bonus_amount'] for d in details), 2),
        )
        self.session.add(bonus)
        self.session.flush()
        for d in details:
            self.session.add(BonusDetail(weekly_bonus_id=bonus.id, **d))
        self._commit()
        return bonus.id
