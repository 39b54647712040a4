# ==============================================================================
# app/analysis/alerts.py
# ------------------------------------------------------------------------------
# Forward-looking signals for a branch: employees close to a bonus threshold,
# missing data entry and falling performance, plus the recommendation digest
# built from the same inputs. Business weeks run Sunday to Saturday here.
# ==============================================================================

import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import List, Optional

import pandas as pd

from app.analysis.periods import as_date, sunday_week_start
from app.analysis.store import RevenueStore
from app.analysis.tiers import BONUS_THRESHOLDS, tier_for_threshold

ALERT_GAP = 300
ALERT_URGENT_GAP = 100
RECOMMENDATION_GAP = 200

DATA_DELAY_HOURS = 12

DROP_WINDOW_DAYS = 14
DROP_WARNING_PERCENT = -20
DROP_CRITICAL_PERCENT = -40

PRIORITY_ORDER = {'urgent': 0, 'critical': 1, 'warning': 2, 'info': 3}


@dataclass
class ProactiveAlert:
    id: str
    type: str  # 'bonus_at_risk' | 'data_delay' | 'performance_drop'
    priority: str
    title: str
    message: str
    entity: dict
    action_required: str
    deadline: Optional[datetime] = None
    data: dict = field(default_factory=dict)


@dataclass
class AlertReport:
    alerts: List[ProactiveAlert]
    summary: dict


@dataclass
class SmartRecommendation:
    id: str
    type: str  # 'opportunity' | 'action_required'
    priority: str
    title: str
    description: str
    impact: dict
    action_items: List[dict]
    affected_entities: List[dict]


@dataclass
class RecommendationReport:
    recommendations: List[SmartRecommendation]
    summary: dict


def _as_datetime(value):
    if isinstance(value, datetime):
        return value
    return datetime.combine(as_date(value), time.min)


def _employee_sums(rows):
    """[(employee_id, name, total)] summed over the rows, in first-seen order."""
    if not rows:
        return []
    frame = pd.DataFrame([{'employee_id': r.employee_id, 'employee_name': r.employee_name, 'total': r.total}
                          for r in rows])
    sums = frame.groupby(['employee_id', 'employee_name'], sort=False)['total'].sum()
    return [(int(emp_id), name, float(total)) for (emp_id, name), total in sums.items()]


def nearest_threshold_gap(current, max_gap):
    """The lowest threshold still above `current` by less than `max_gap`, as (threshold, gap)."""
    for threshold in BONUS_THRESHOLDS:
        gap = threshold - current
        if 0 < gap < max_gap:
            return threshold, gap
    return None


def _days_remaining(day):
    return max(0, 6 - (day - sunday_week_start(day)).days)


def _missing_yesterday(branch_id, day, store):
    yesterday = day - timedelta(days=1)
    return yesterday if store.count_daily_revenues(branch_id, yesterday, yesterday) == 0 else None


def generate_proactive_alerts(branch_id, current_date, store=None):
    """
    Collects the alerts a branch supervisor should act on today.

    Args:
        branch_id (int): The branch to watch.
        current_date (date | datetime): "Now". A plain date is taken as midnight.

    Returns:
        AlertReport: Alerts sorted urgent, critical, warning, info, and a count
        per priority.
    """
    store = store or RevenueStore()
    now = _as_datetime(current_date)
    today = now.date()
    week_start = sunday_week_start(today)
    week_end = datetime.combine(week_start + timedelta(days=6), time.max)
    days_remaining = _days_remaining(today)
    alerts = []

    if days_remaining > 0:
        for employee_id, name, current in _employee_sums(store.employee_revenues(branch_id, week_start, today)):
            near = nearest_threshold_gap(current, ALERT_GAP)
            if near is None:
                continue
            threshold, gap = near
            required_per_day = gap / days_remaining
            alerts.append(ProactiveAlert(
                id=f"bonus-risk-{employee_id}-{threshold}",
                type='bonus_at_risk',
                priority='urgent' if gap < ALERT_URGENT_GAP else 'warning',
                title=f"{name} is close to a bonus threshold",
                message=f"Needs {gap:,.0f} more to reach the {threshold} level",
                entity={'type': 'employee', 'id': employee_id, 'name': name},
                action_required=f"Achieve {required_per_day:,.0f} per day over the remaining days",
                deadline=week_end,
                data={'current_revenue': current, 'target_threshold': threshold, 'gap': gap,
                      'days_remaining': days_remaining, 'required_per_day': required_per_day},
            ))

    missing = _missing_yesterday(branch_id, today, store)
    if missing is not None:
        alerts.append(ProactiveAlert(
            id=f"data-delay-{branch_id}-{missing.isoformat()}",
            type='data_delay',
            priority='critical',
            title="Yesterday's revenue has not been entered",
            message=f"No revenue recorded for {missing.isoformat()}",
            entity={'type': 'branch', 'id': branch_id, 'name': f"Branch #{branch_id}"},
            action_required="Enter yesterday's revenue now",
            deadline=now + timedelta(hours=DATA_DELAY_HOURS),
            data={'missing_date': missing.isoformat()},
        ))

    recent_start = today - timedelta(days=DROP_WINDOW_DAYS - 1)
    previous_start = recent_start - timedelta(days=DROP_WINDOW_DAYS)
    previous = {emp_id: total for emp_id, _, total in
                _employee_sums(store.employee_revenues(branch_id, previous_start, recent_start - timedelta(days=1)))}
    for employee_id, name, recent in _employee_sums(store.employee_revenues(branch_id, recent_start, today)):
        before = previous.get(employee_id, 0.0)
        if before <= 0:
            continue
        change = (recent - before) / before * 100
        if change < DROP_WARNING_PERCENT:
            alerts.append(ProactiveAlert(
                id=f"perf-drop-{employee_id}",
                type='performance_drop',
                priority='critical' if change < DROP_CRITICAL_PERCENT else 'warning',
                title=f"{name}'s performance is dropping",
                message=f"Revenue fell {abs(change):.0f}% against the previous {DROP_WINDOW_DAYS} days",
                entity={'type': 'employee', 'id': employee_id, 'name': name},
                action_required='Review the reasons for the decline and act on them',
                data={'recent_total': recent, 'previous_total': before, 'change_percent': change},
            ))

    alerts.sort(key=lambda a: PRIORITY_ORDER[a.priority])
    summary = {priority: sum(1 for a in alerts if a.priority == priority) for priority in PRIORITY_ORDER}
    logging.info(f"Branch {branch_id}: {len(alerts)} proactive alerts {summary}")
    return AlertReport(alerts=alerts, summary=summary)


def generate_smart_recommendations(branch_id, analysis_date, store=None):
    """
    Turns this week's standings into a short list of recommendations with an
    estimated impact each.
    """
    store = store or RevenueStore()
    day = as_date(analysis_date)
    week_start = sunday_week_start(day)
    days_remaining = _days_remaining(day)
    recommendations = []

    near = []
    if days_remaining > 0:
        for employee_id, name, current in _employee_sums(store.employee_revenues(branch_id, week_start, day)):
            found = nearest_threshold_gap(current, RECOMMENDATION_GAP)
            if found:
                threshold, gap = found
                near.append({'id': employee_id, 'name': name, 'current': current, 'target': threshold,
                             'gap': gap, 'potential_bonus': tier_for_threshold(threshold).bonus_amount})

    if near:
        potential = sum(e['potential_bonus'] for e in near)
        recommendations.append(SmartRecommendation(
            id='rec-near-threshold',
            type='opportunity',
            priority='warning',
            title=f"{len(near)} employees are close to a bonus threshold",
            description=f"Total bonus could grow by {potential} by encouraging these employees",
            impact={'metric': 'total_bonus', 'current_value': 0, 'potential_value': potential,
                    'improvement': potential, 'improvement_percent': 100},
            action_items=[{'action': f"{e['name']}: needs {e['gap']:,.0f} to reach {e['target']}",
                           'effort': 'low', 'timeline': f"{days_remaining} days remaining"} for e in near],
            affected_entities=[{'type': 'employee', 'id': e['id'], 'name': e['name']} for e in near],
        ))

    if _missing_yesterday(branch_id, day, store) is not None:
        recommendations.append(SmartRecommendation(
            id='rec-missing-data',
            type='action_required',
            priority='critical',
            title="Yesterday's data is incomplete",
            description="Yesterday's revenue was not entered, which affects the bonus calculation",
            impact={'metric': 'data_completeness', 'current_value': 0, 'potential_value': 100,
                    'improvement': 100, 'improvement_percent': 100},
            action_items=[{'action': "Enter yesterday's revenue now", 'effort': 'low', 'timeline': 'today'}],
            affected_entities=[{'type': 'branch', 'id': branch_id, 'name': f"Branch #{branch_id}"}],
        ))

    by_type, by_priority = {}, {}
    for rec in recommendations:
        by_type[rec.type] = by_type.get(rec.type, 0) + 1
        by_priority[rec.priority] = by_priority.get(rec.priority, 0) + 1
    summary = {
        'total': len(recommendations),
        'by_type': by_type,
        'by_priority': by_priority,
        'estimated_impact': sum(rec.impact['improvement'] for rec in recommendations),
    }
    return RecommendationReport(recommendations=recommendations, summary=summary)
