# ==============================================================================
# app/analysis/fraud.py
# ------------------------------------------------------------------------------
# Scans employee revenue and weekly bonus figures for manipulation patterns:
# round-number bias, threshold gaming and exact repetition. Each finding adds
# to one branch risk score; co-occurring patterns stack rather than average.
# ==============================================================================

import logging
from dataclasses import dataclass, field
from typing import List

import pandas as pd

from app.analysis.periods import as_date
from app.analysis.store import RevenueStore
from app.analysis.tiers import BONUS_THRESHOLDS

ROUND_UNIT = 50
ROUND_MIN_SAMPLES = 10
ROUND_FLAG_RATIO = 0.40
ROUND_HIGH_RATIO = 0.60

GAMING_MARGIN = 50
GAMING_MIN_WEEKS = 4
GAMING_FLAG_RATIO = 0.50

REPEAT_MIN_SAMPLES = 10
REPEAT_MIN_COUNT = 5
REPEAT_FLAG_RATIO = 0.30
REPEAT_HIGH_RATIO = 0.40

MAX_RISK_SCORE = 100


@dataclass
class FraudPattern:
    pattern_type: str  # 'round_numbers' | 'threshold_gaming' | 'exact_repetition'
    description: str
    affected_entities: List[dict]
    confidence: str
    evidence: List[str]
    risk_level: str
    recommendations: List[str]
    risk_points: int = 0


@dataclass
class FraudReport:
    risk_score: int
    risk_level: str
    patterns: List[FraudPattern] = field(default_factory=list)


def risk_level_for(score):
    if score >= 60:
        return 'high'
    if score >= 30:
        return 'medium'
    return 'low'


def _entity(employee_id, name):
    return {'type': 'employee', 'id': int(employee_id), 'name': name}


def round_number_pattern(employee_id, name, values):
    """Flags an employee whose revenue entries are mostly multiples of ROUND_UNIT."""
    series = pd.Series(values, dtype=float)
    if len(series) < ROUND_MIN_SAMPLES:
        return None
    round_count = int((series % ROUND_UNIT == 0).sum())
    ratio = round_count / len(series)
    if ratio <= ROUND_FLAG_RATIO:
        return None
    high = ratio > ROUND_HIGH_RATIO
    return FraudPattern(
        pattern_type='round_numbers',
        description=f"{ratio:.0%} of revenue entries are round numbers",
        affected_entities=[_entity(employee_id, name)],
        confidence='high' if high else 'medium',
        evidence=[f"{round_count} of {len(series)} entries are multiples of {ROUND_UNIT}"],
        risk_level='high' if high else 'medium',
        recommendations=['Review the original receipts', 'Compare with the cash register records'],
        risk_points=30 if high else 15,
    )


def threshold_gaming_pattern(employee_id, name, weekly_totals):
    """Flags an employee whose weekly totals keep landing just above a bonus cutoff."""
    if len(weekly_totals) < GAMING_MIN_WEEKS:
        return None
    suspicious = 0
    for total in weekly_totals:
        if any(0 <= total - threshold < GAMING_MARGIN for threshold in BONUS_THRESHOLDS):
            suspicious += 1
    ratio = suspicious / len(weekly_totals)
    if ratio <= GAMING_FLAG_RATIO:
        return None
    return FraudPattern(
        pattern_type='threshold_gaming',
        description='Weekly revenue repeatedly lands just above a bonus threshold',
        affected_entities=[_entity(employee_id, name)],
        confidence='high',
        evidence=[f"{ratio:.0%} of weeks ({suspicious} of {len(weekly_totals)}) are less than "
                  f"{GAMING_MARGIN} above a threshold"],
        risk_level='high',
        recommendations=["Review this employee's revenue in detail",
                         'Compare with the original receipts',
                         'Monitor closely over the coming weeks'],
        risk_points=40,
    )


def exact_repetition_patterns(employee_id, name, values):
    """Flags every single value that recurs suspiciously often in an employee's entries."""
    series = pd.Series(values, dtype=float)
    if len(series) < REPEAT_MIN_SAMPLES:
        return []
    patterns = []
    for value, count in series.value_counts().items():
        ratio = count / len(series)
        if ratio > REPEAT_FLAG_RATIO and count >= REPEAT_MIN_COUNT:
            high = ratio > REPEAT_HIGH_RATIO
            patterns.append(FraudPattern(
                pattern_type='exact_repetition',
                description=f"The same amount ({value:,.2f}) recurs suspiciously often",
                affected_entities=[_entity(employee_id, name)],
                confidence='high' if high else 'medium',
                evidence=[f"{value:,.2f} recorded {count} times ({ratio:.0%})"],
                risk_level='high' if high else 'medium',
                recommendations=['Verify the variety of services provided'],
                risk_points=25 if high else 10,
            ))
    return patterns


def _grouped(rows, value_attr):
    """{employee_id: (name, [values])} in first-seen order."""
    grouped = {}
    for row in rows:
        name, values = grouped.setdefault(row.employee_id, (row.employee_name, []))
        values.append(getattr(row, value_attr))
    return grouped


def detect_fraud_patterns(branch_id, start_date, end_date, store=None):
    """
    Runs the three manipulation heuristics over a branch and date range.

    Returns:
        FraudReport: risk score capped at 100, its level, and the patterns found.
    """
    store = store or RevenueStore()
    start, end = as_date(start_date), as_date(end_date)
    logging.info(f"Scanning branch {branch_id} for fraud patterns ({start} to {end})")

    daily = _grouped(store.employee_revenues(branch_id, start, end), 'total')
    weekly = _grouped(store.employee_bonuses(start, end, branch_id=branch_id), 'weekly_revenue')

    patterns = []
    for employee_id, (name, values) in daily.items():
        pattern = round_number_pattern(employee_id, name, values)
        if pattern:
            patterns.append(pattern)

    for employee_id, (name, totals) in weekly.items():
        pattern = threshold_gaming_pattern(employee_id, name, totals)
        if pattern:
            patterns.append(pattern)

    for employee_id, (name, values) in daily.items():
        patterns.extend(exact_repetition_patterns(employee_id, name, values))

    score = min(MAX_RISK_SCORE, sum(p.risk_points for p in patterns))
    level = risk_level_for(score)
    for p in patterns:
        logging.warning(f"  {p.pattern_type} for employee {p.affected_entities[0]['id']}: {p.evidence[0]}")
    logging.info(f"Branch {branch_id}: fraud risk {score} ({level}), {len(patterns)} patterns")

    return FraudReport(risk_score=score, risk_level=level, patterns=patterns)
