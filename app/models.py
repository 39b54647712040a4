# ==============================================================================
# app/models.py
# ------------------------------------------------------------------------------
# Defines the database schema using SQLAlchemy ORM models.
# Branches and employees are reference data; revenues are entered daily and
# weekly bonuses are produced by the bonus calculation run.
# ==============================================================================

from datetime import datetime
from app import db


# Workflow states a WeeklyBonus moves through (see app/analysis/workflow.py)
BONUS_STATUSES = ('draft', 'pending', 'requested', 'approved', 'rejected', 'paid')


class Branch(db.Model):
    """A physical branch. Read-only to the analysis engine."""
    __tablename__ = 'branch'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    employees = db.relationship('Employee', backref='branch', lazy='dynamic')

    def __repr__(self):
        return f'<Branch {self.id}: {self.name}>'


class Employee(db.Model):
    """An employee working at a branch. Read-only to the analysis engine."""
    __tablename__ = 'employee'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey('branch.id'), nullable=False, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    def __repr__(self):
        return f'<Employee {self.id}: {self.name}>'


class DailyRevenue(db.Model):
    """
    One row per branch per calendar day. `total` is the branch-reported figure
    that the per-employee entries are reconciled against.
    """
    __tablename__ = 'daily_revenue'
    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey('branch.id'), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    cash = db.Column(db.Float, default=0)
    network = db.Column(db.Float, default=0)
    balance = db.Column(db.Float, default=0)
    total = db.Column(db.Float, nullable=True)
    is_matched = db.Column(db.Boolean, default=True)
    unmatch_reason = db.Column(db.String(256))

    # Relationship: one DailyRevenue has many EmployeeRevenue rows.
    employee_revenues = db.relationship('EmployeeRevenue', backref='daily_revenue', lazy='dynamic',
                                        cascade="all, delete-orphan")

    __table_args__ = (db.UniqueConstraint('branch_id', 'date', name='_branch_date_uc'),)

    def __repr__(self):
        return f'<DailyRevenue {self.id}: branch={self.branch_id} {self.date}>'


class EmployeeRevenue(db.Model):
    """
    Revenue recorded for one employee on one branch day. No uniqueness on
    (employee_id, daily_revenue_id): duplicates are a data-quality finding
    cleaned up by the `remove_duplicates` correction.
    """
    __tablename__ = 'employee_revenue'
    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=False, index=True)
    daily_revenue_id = db.Column(db.Integer, db.ForeignKey('daily_revenue.id'), nullable=False, index=True)
    cash = db.Column(db.Float, default=0)
    network = db.Column(db.Float, default=0)
    total = db.Column(db.Float, default=0)

    def __repr__(self):
        return f'<EmployeeRevenue {self.id}: employee={self.employee_id} day={self.daily_revenue_id}>'


class WeeklyBonus(db.Model):
    """
    One row per branch per week of a month (weeks 1-4, or 5 when the month has
    more than 28 days). `total_amount` must equal the sum of its details.
    """
    __tablename__ = 'weekly_bonus'
    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey('branch.id'), nullable=False, index=True)
    week_number = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)
    year = db.Column(db.Integer, nullable=False)
    week_start = db.Column(db.Date, nullable=False)
    week_end = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(32), default='draft', nullable=False, index=True)
    total_amount = db.Column(db.Float, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationship: one WeeklyBonus has many BonusDetail rows.
    details = db.relationship('BonusDetail', backref='weekly_bonus', lazy='dynamic',
                              cascade="all, delete-orphan")

    # Ensure there is only one bonus record per branch and week of a month
    __table_args__ = (db.UniqueConstraint('branch_id', 'week_number', 'month', 'year', name='_branch_week_uc'),)

    def __repr__(self):
        return f'<WeeklyBonus {self.id}: branch={self.branch_id} {self.year}-{self.month} W{self.week_number}>'


class BonusDetail(db.Model):
    """
    One row per employee per WeeklyBonus. `bonus_tier` and `bonus_amount` must
    be derivable from `weekly_revenue` through the tier table.
    """
    __tablename__ = 'bonus_detail'
    id = db.Column(db.Integer, primary_key=True)
    weekly_bonus_id = db.Column(db.Integer, db.ForeignKey('weekly_bonus.id'), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=False, index=True)
    weekly_revenue = db.Column(db.Float, default=0)
    bonus_amount = db.Column(db.Float, default=0)
    bonus_tier = db.Column(db.String(16), default='none')
    is_eligible = db.Column(db.Boolean, default=False)

    def __repr__(self):
        return f'<BonusDetail {self.id}: bonus={self.weekly_bonus_id} employee={self.employee_id}>'
