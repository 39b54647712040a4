# ==============================================================================
# app/analysis/performance.py
# ------------------------------------------------------------------------------
# Employee performance archetypes over a trailing window, plus the per-employee
# and per-branch performance summaries used by the reports.
# ==============================================================================

import logging
from collections import namedtuple, OrderedDict
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, List

from app.analysis import stats
from app.analysis.errors import EntityNotFoundError
from app.analysis.periods import as_date
from app.analysis.store import RevenueStore

TRAILING_DAYS = 60
MIN_REVENUE_DAYS = 14

URGENCY_ORDER = {'urgent': 0, 'high': 1, 'medium': 2, 'low': 3}

PatternMetrics = namedtuple('PatternMetrics', ['avg_revenue', 'trend', 'volatility', 'bonus_rate'])

PatternRule = namedtuple('PatternRule', ['pattern', 'urgency', 'matches', 'description', 'recommendations'])

# Evaluated in order; the first rule that matches decides the archetype.
PATTERN_RULES = (
    PatternRule('declining_star', 'urgent',
                lambda m: m.bonus_rate > 0.6 and m.trend < -15,
                'High performer whose revenue is falling',
                ['Meet immediately to understand the causes', 'Put a support and motivation plan in place']),
    PatternRule('rising_talent', 'low',
                lambda m: m.trend > 20 and m.volatility < 0.3,
                'Steadily improving performance',
                ['Recognise the effort', 'Consider for promotion opportunities']),
    PatternRule('consistent_high', 'low',
                lambda m: m.bonus_rate > 0.6 and m.volatility < 0.2,
                'High and stable performance',
                ['Keep supporting', 'Share their practices with the team']),
    PatternRule('consistent_low', 'high',
                lambda m: m.bonus_rate < 0.3 and m.volatility < 0.2,
                'Consistently low performance',
                ['Intensive training', 'Review role fit']),
    PatternRule('erratic', 'medium',
                lambda m: m.volatility > 0.4,
                'Erratic performance',
                ['Stabilisation plan', 'Daily follow-up']),
    PatternRule('plateau', 'medium',
                lambda m: True,
                'Stable performance without growth',
                ['Set new goals', 'Additional incentives']),
)

PATTERN_NAMES = tuple(rule.pattern for rule in PATTERN_RULES)


@dataclass
class PerformancePattern:
    employee_id: int
    employee_name: str
    pattern: str
    description: str
    metrics: Dict[str, float]
    recommendations: List[str]
    urgency: str


@dataclass
class PerformancePatternReport:
    patterns: List[PerformancePattern]
    summary: Dict[str, int] = field(default_factory=dict)


def classify_pattern(metrics):
    """Returns the first PatternRule whose predicate accepts the metrics."""
    for rule in PATTERN_RULES:
        if rule.matches(metrics):
            return rule
    return PATTERN_RULES[-1]


def trend_percent(values):
    """Percentage change of the second half's mean over the first half's mean."""
    half = len(values) // 2
    first, second = values[:half], values[half:]
    if not first or not second:
        return 0.0
    first_avg = stats.mean(first)
    if first_avg <= 0:
        return 0.0
    return (stats.mean(second) - first_avg) / first_avg * 100


def compute_metrics(revenues, bonus_amounts):
    avg = stats.mean(revenues)
    volatility = stats.std_dev(revenues) / avg if avg > 0 else 0.0
    bonus_rate = (sum(1 for b in bonus_amounts if b > 0) / len(bonus_amounts)) if bonus_amounts else 0.0
    return PatternMetrics(avg_revenue=avg, trend=trend_percent(revenues), volatility=volatility,
                          bonus_rate=bonus_rate)


def detect_performance_patterns(branch_id, analysis_date, store=None):
    """
    Classifies every employee with enough trailing revenue into an archetype.

    Returns:
        PerformancePatternReport: patterns sorted urgent, high, medium, low and
        a count per archetype.
    """
    store = store or RevenueStore()
    end = as_date(analysis_date)
    start = end - timedelta(days=TRAILING_DAYS)
    logging.info(f"Classifying performance patterns for branch {branch_id} ({start} to {end})")

    employees = OrderedDict()
    for row in store.employee_revenues(branch_id, start, end):
        entry = employees.setdefault(row.employee_id, {'name': row.employee_name, 'revenues': [], 'bonuses': []})
        entry['revenues'].append(row.total)
    for row in store.employee_bonuses(start, end, branch_id=branch_id):
        if row.employee_id in employees:
            employees[row.employee_id]['bonuses'].append(row.bonus_amount)

    patterns = []
    for employee_id, data in employees.items():
        if len(data['revenues']) < MIN_REVENUE_DAYS:
            logging.debug(f"  Employee {employee_id}: {len(data['revenues'])} days, skipped")
            continue
        metrics = compute_metrics(data['revenues'], data['bonuses'])
        rule = classify_pattern(metrics)
        logging.debug(f"  Employee {employee_id}: trend={metrics.trend:.1f}% volatility={metrics.volatility:.2f} "
                      f"bonus_rate={metrics.bonus_rate:.2f} -> {rule.pattern}")
        patterns.append(PerformancePattern(
            employee_id=employee_id,
            employee_name=data['name'],
            pattern=rule.pattern,
            description=rule.description,
            metrics={
                'avg_revenue': round(metrics.avg_revenue, 2),
                'trend': round(metrics.trend, 1),
                'volatility': round(metrics.volatility, 2),
                'bonus_rate': round(metrics.bonus_rate, 2),
            },
            recommendations=list(rule.recommendations),
            urgency=rule.urgency,
        ))

    patterns.sort(key=lambda p: URGENCY_ORDER[p.urgency])
    summary = {name: sum(1 for p in patterns if p.pattern == name) for name in PATTERN_NAMES}
    return PerformancePatternReport(patterns=patterns, summary=summary)


def analyze_employee_performance(employee_id, start_date, end_date, store=None):
    """
    Summarises one employee's revenue and bonus record over a date range.

    Raises:
        EntityNotFoundError: The employee does not exist.
    """
    store = store or RevenueStore()
    start, end = as_date(start_date), as_date(end_date)
    employee = store.employee(employee_id)
    if employee is None:
        raise EntityNotFoundError('Employee', employee_id)
    branch = store.branch(employee.branch_id)

    revenues = store.employee_revenues(None, start, end, employee_id=employee_id)
    bonuses = store.employee_bonuses(start, end, employee_id=employee_id)

    total_revenue = sum(r.total for r in revenues)
    working_days = len({r.date for r in revenues})
    total_weeks = len(bonuses)
    eligible_weeks = sum(1 for b in bonuses if b.is_eligible)

    tier_distribution = {}
    for b in bonuses:
        tier_distribution[b.bonus_tier] = tier_distribution.get(b.bonus_tier, 0) + 1

    mid = start + (end - start) / 2
    first_total = sum(r.total for r in revenues if r.date <= mid)
    second_total = sum(r.total for r in revenues if r.date > mid)
    trend = (second_total - first_total) / first_total * 100 if first_total > 0 else 0.0
    direction = 'up' if trend > 5 else 'down' if trend < -5 else 'stable'

    branch_totals = {}
    for r in store.employee_revenues(employee.branch_id, start, end):
        branch_totals[r.employee_id] = branch_totals.get(r.employee_id, 0.0) + r.total
    ranking = sorted(branch_totals, key=lambda emp: branch_totals[emp], reverse=True)
    rank = ranking.index(employee_id) + 1 if employee_id in ranking else 0

    return {
        'employee': {'id': employee.id, 'name': employee.name, 'branch_id': employee.branch_id,
                     'branch_name': branch.name if branch else ''},
        'metrics': {
            'total_revenue': total_revenue,
            'total_bonus': sum(b.bonus_amount for b in bonuses),
            'avg_daily_revenue': total_revenue / working_days if working_days else 0.0,
            'avg_weekly_revenue': total_revenue / total_weeks if total_weeks else 0.0,
            'working_days': working_days,
            'bonus_eligible_weeks': eligible_weeks,
            'total_weeks': total_weeks,
            'bonus_rate': eligible_weeks / total_weeks * 100 if total_weeks else 0.0,
        },
        'tier_distribution': tier_distribution,
        'trend': {'direction': direction, 'percentage': abs(trend)},
        'ranking': {'in_branch': rank, 'total_in_branch': len(ranking)},
    }


def analyze_branch_performance(start_date, end_date, store=None):
    """Ranks branches by revenue over a date range."""
    store = store or RevenueStore()
    start, end = as_date(start_date), as_date(end_date)
    names = {b.id: b.name for b in store.branches()}
    bonus_totals = store.branch_bonus_totals(start, end)
    headcount = {}
    for e in store.active_employees():
        headcount[e.branch_id] = headcount.get(e.branch_id, 0) + 1

    results = []
    for ranking, (branch_id, total_revenue) in enumerate(store.branch_revenue_totals(start, end), start=1):
        total_bonus = bonus_totals.get(branch_id, 0.0)
        employee_count = headcount.get(branch_id, 0) or 1
        results.append({
            'branch_id': branch_id,
            'branch_name': names.get(branch_id, ''),
            'metrics': {
                'total_revenue': total_revenue,
                'total_bonus': total_bonus,
                'employee_count': employee_count,
                'avg_revenue_per_employee': total_revenue / employee_count,
                'avg_bonus_per_employee': total_bonus / employee_count,
                'bonus_rate': total_bonus / total_revenue * 100 if total_revenue > 0 else 0.0,
            },
            'ranking': ranking,
        })
    return results
