# ==============================================================================
# app/analysis/workflow.py
# ------------------------------------------------------------------------------
# Weekly bonus approval workflow, role-scoped task queues and the monthly
# compliance score.
# ==============================================================================

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import List

from app.analysis.errors import EntityNotFoundError, InvalidTransitionError
from app.analysis.periods import iter_days, month_range, week_range, weeks_in_month
from app.analysis.store import RevenueStore

# Allowed moves from each status. approved and paid are terminal for automated transitions.
TRANSITIONS = {
    'draft': ('pending',),
    'pending': ('requested',),
    'requested': ('approved', 'rejected'),
    'rejected': ('pending',),
    'approved': (),
    'paid': (),
}

# Statuses each role has to act on.
ROLE_STATUSES = {
    'admin': ('pending', 'requested', 'approved'),
    'manager': ('pending', 'requested'),
    'accountant': ('approved',),
}

TASK_TYPES = {'pending': 'review', 'requested': 'approve', 'approved': 'pay'}

# A bonus is on time when created within this many days after its week ends.
CREATION_GRACE_DAYS = 2

BONUS_WEIGHT = 0.3
APPROVAL_WEIGHT = 0.3
ENTRY_WEIGHT = 0.4


@dataclass
class PendingTask:
    task_type: str
    entity_type: str
    entity_id: int
    branch_name: str
    week_number: int
    month: int
    year: int
    amount: float
    waiting_days: int
    priority: str


@dataclass
class ComplianceReport:
    on_time: int
    delayed: int
    delayed_details: List[dict]
    properly_approved: int
    missing_approval: int
    approval_details: List[dict]
    complete_days: int
    incomplete_days: int
    completion_rate: float
    bonus_score: float
    approval_score: float
    entry_score: float
    overall_score: int


@dataclass
class DataGapsReport:
    missing_days: List[str]
    incomplete_weeks: List[dict] = field(default_factory=list)
    employees_without_revenue: List[dict] = field(default_factory=list)
    completion_rate: float = 0.0


def can_transition_to(status):
    """Statuses a weekly bonus in `status` may move to next."""
    return list(TRANSITIONS.get(status or 'draft', ()))


def is_valid_transition(current, target):
    return target in TRANSITIONS.get(current or 'draft', ())


def transition_weekly_bonus(bonus_id, new_status, now=None, store=None):
    """
    Moves a weekly bonus to `new_status` when the workflow allows it.

    Raises:
        EntityNotFoundError: No weekly bonus with that id.
        InvalidTransitionError: The move is not in the transition table.
    """
    store = store or RevenueStore()
    bonus = store.weekly_bonus_by_id(bonus_id)
    if bonus is None:
        raise EntityNotFoundError('WeeklyBonus', bonus_id)
    if not is_valid_transition(bonus.status, new_status):
        raise InvalidTransitionError(bonus.status, new_status, can_transition_to(bonus.status))
    store.update_weekly_bonus_status(bonus_id, new_status, now or datetime.utcnow())
    logging.info(f"Weekly bonus {bonus_id}: {bonus.status} -> {new_status}")
    return new_status


def get_bonus_workflow_status(branch_id, month, year, store=None):
    """Status board for the weekly bonuses of a branch month."""
    store = store or RevenueStore()
    bonuses = store.weekly_bonuses_for_month(branch_id, month, year)
    counts = store.bonus_detail_counts(b.id for b in bonuses)
    return [{
        'week_number': b.week_number,
        'status': b.status,
        'total_amount': b.total_amount,
        'employee_count': counts.get(b.id, 0),
        'created_at': b.created_at,
        'updated_at': b.updated_at,
        'can_transition_to': can_transition_to(b.status),
    } for b in bonuses]


def priority_for(waiting_days):
    if waiting_days > 7:
        return 'urgent'
    if waiting_days > 3:
        return 'high'
    if waiting_days < 1:
        return 'low'
    return 'normal'


def get_pending_tasks(role, now=None, branch_id=None, store=None):
    """
    Weekly bonuses waiting on the given role, oldest update first.

    Args:
        role (str): 'admin', 'manager' or 'accountant'. Unknown roles get no tasks.
        now (datetime): Reference time for the waiting days; defaults to utcnow.
        branch_id (int): Optional branch filter.
    """
    statuses = ROLE_STATUSES.get(role, ())
    if not statuses:
        logging.warning(f"No workflow statuses mapped to role '{role}'")
        return []
    store = store or RevenueStore()
    now = now or datetime.utcnow()

    tasks = []
    for b in store.weekly_bonuses_by_status(statuses, branch_id=branch_id):
        updated = b.updated_at or now
        waiting_days = max(0, math.floor((now - updated).total_seconds() / 86400))
        tasks.append(PendingTask(
            task_type=TASK_TYPES.get(b.status, 'review'),
            entity_type='weekly_bonus',
            entity_id=b.id,
            branch_name=b.branch_name,
            week_number=b.week_number,
            month=b.month,
            year=b.year,
            amount=b.total_amount,
            waiting_days=waiting_days,
            priority=priority_for(waiting_days),
        ))
    return tasks


def get_compliance_report(branch_id, month, year, store=None):
    """
    Blends bonus timeliness, approval completeness and data-entry completeness
    into one score for a branch month.
    """
    store = store or RevenueStore()
    start, end = month_range(month, year)
    total_days = (end - start).days + 1
    bonuses = store.weekly_bonuses_for_month(branch_id, month, year)

    on_time, delayed, delayed_details = 0, 0, []
    for b in bonuses:
        deadline = datetime.combine(b.week_end, time.min) + timedelta(days=CREATION_GRACE_DAYS)
        if b.created_at <= deadline:
            on_time += 1
        else:
            delayed += 1
            delay_days = math.ceil((b.created_at - deadline).total_seconds() / 86400)
            delayed_details.append({'week_number': b.week_number, 'delay_days': delay_days})

    properly_approved, missing_approval, approval_details = 0, 0, []
    for b in bonuses:
        has_approval = b.status == 'approved'
        if has_approval:
            properly_approved += 1
        else:
            missing_approval += 1
        approval_details.append({'week_number': b.week_number, 'status': b.status, 'has_approval': has_approval})

    complete_days = store.count_daily_revenues(branch_id, start, end)
    completion_rate = complete_days / total_days * 100

    total_weeks = len(bonuses)
    bonus_score = on_time / total_weeks * 100 if total_weeks else 100.0
    approval_score = properly_approved / total_weeks * 100 if total_weeks else 100.0
    entry_score = completion_rate
    raw = BONUS_WEIGHT * bonus_score + APPROVAL_WEIGHT * approval_score + ENTRY_WEIGHT * entry_score
    overall = math.floor(raw + 0.5)  # halves round up

    logging.info(f"Compliance for branch {branch_id} {year}-{month:02d}: {overall} "
                 f"(bonus {bonus_score:.0f}, approval {approval_score:.0f}, entry {entry_score:.0f})")

    return ComplianceReport(
        on_time=on_time, delayed=delayed, delayed_details=delayed_details,
        properly_approved=properly_approved, missing_approval=missing_approval,
        approval_details=approval_details,
        complete_days=complete_days, incomplete_days=total_days - complete_days,
        completion_rate=completion_rate,
        bonus_score=bonus_score, approval_score=approval_score, entry_score=entry_score,
        overall_score=int(overall),
    )


def get_data_gaps_report(branch_id, month, year, store=None):
    """Days, weeks and employees missing revenue entries for a branch month."""
    store = store or RevenueStore()
    start, end = month_range(month, year)
    total_days = (end - start).days + 1
    entered = {d.date for d in store.daily_revenues(branch_id, start, end)}

    missing_days = [day for day in iter_days(start, end) if day not in entered]

    incomplete_weeks = []
    for week in range(1, weeks_in_month(month, year) + 1):
        week_start, week_end = week_range(week, month, year)
        expected = (week_end - week_start).days + 1
        present = sum(1 for day in iter_days(week_start, week_end) if day in entered)
        if present < expected:
            incomplete_weeks.append({
                'week_number': week,
                'missing_days': expected - present,
                'has_bonus': store.weekly_bonus(branch_id, week, month, year) is not None,
            })

    worked_days = {}
    for row in store.employee_revenues(branch_id, start, end):
        worked_days.setdefault(row.employee_id, set()).add(row.date)

    employees_without_revenue = []
    for e in store.active_employees(branch_id):
        missing = len(entered) - len(worked_days.get(e.id, ()))
        if missing > 0:
            employees_without_revenue.append({'employee_id': e.id, 'employee_name': e.name, 'missing_days': missing})

    return DataGapsReport(
        missing_days=[d.isoformat() for d in missing_days],
        incomplete_weeks=incomplete_weeks,
        employees_without_revenue=employees_without_revenue,
        completion_rate=(total_days - len(missing_days)) / total_days * 100,
    )
