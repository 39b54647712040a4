# ==============================================================================
# app/analysis/anomalies.py
# ------------------------------------------------------------------------------
# Z-score anomaly detection over branch and employee revenue series.
# The whole lookback window forms the baseline; only the most recent days are
# ever flagged (7 for the branch, 3 for each employee).
# ==============================================================================

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List

import pandas as pd

from app.analysis import stats
from app.analysis.periods import as_date
from app.analysis.store import RevenueStore

DEFAULT_LOOKBACK_DAYS = 90
DEFAULT_ZSCORE_THRESHOLD = 2.5
MIN_HISTORY_POINTS = 7
BRANCH_RECENT_DAYS = 7
EMPLOYEE_RECENT_DAYS = 3

SEVERITY_ORDER = {'critical': 0, 'warning': 1, 'info': 2}


@dataclass
class Anomaly:
    type: str  # 'spike' | 'drop'
    entity_type: str  # 'branch' | 'employee'
    entity_id: int
    entity_name: str
    date: str
    expected_value: float
    actual_value: float
    deviation: float
    deviation_sigma: float
    confidence: str
    severity: str
    possible_causes: List[str] = field(default_factory=list)
    suggested_actions: List[str] = field(default_factory=list)


@dataclass
class SeriesStatistics:
    mean: float = 0.0
    std_dev: float = 0.0
    median: float = 0.0
    analyzed_days: int = 0


@dataclass
class AnomalyReport:
    anomalies: List[Anomaly]
    statistics: SeriesStatistics


def classify_z(z):
    """Returns (confidence, severity) for a z-score."""
    magnitude = abs(z)
    if magnitude >= 3:
        return 'high', 'critical'
    if magnitude >= 2.5:
        return 'medium', 'warning'
    return 'low', 'info'


def classify_employee_z(z):
    """Employee series are noisier: findings are never 'low' confidence and never 'critical'."""
    if abs(z) >= 3:
        return 'high', 'warning'
    return 'medium', 'info'


def _deviation_percent(value, mu):
    if mu == 0:
        return 0.0
    return round((value - mu) / mu * 100, 1)


def _branch_anomaly(branch_id, day, value, mu, z):
    is_spike = z > 0
    confidence, severity = classify_z(z)
    return Anomaly(
        type='spike' if is_spike else 'drop',
        entity_type='branch',
        entity_id=branch_id,
        entity_name=f"Branch #{branch_id}",
        date=day.isoformat(),
        expected_value=round(mu, 2),
        actual_value=round(value, 2),
        deviation=_deviation_percent(value, mu),
        deviation_sigma=round(z, 1),
        confidence=confidence,
        severity=severity,
        possible_causes=(['Peak trading day', 'More staff on shift than usual', 'Special promotion']
                         if is_spike else ['Quiet day', 'Staff absence', 'Service disruption']),
        suggested_actions=['Review the day in detail',
                           'Verify the revenue entries' if is_spike else 'Check that data entry is complete'],
    )


def _employee_anomaly(employee_id, name, day, value, mu, z):
    is_spike = z > 0
    confidence, severity = classify_employee_z(z)
    return Anomaly(
        type='spike' if is_spike else 'drop',
        entity_type='employee',
        entity_id=int(employee_id),
        entity_name=name,
        date=day.isoformat(),
        expected_value=round(mu, 2),
        actual_value=round(value, 2),
        deviation=_deviation_percent(value, mu),
        deviation_sigma=round(z, 1),
        confidence=confidence,
        severity=severity,
        possible_causes=(['Exceptional performance', 'Data entry error'] if is_spike
                         else ['Partial absence', 'Personal issue', 'Data entry error']),
        suggested_actions=['Review the entries with the supervisor'],
    )


def _employee_anomalies(rows, z_threshold):
    if not rows:
        return []
    frame = pd.DataFrame([{'employee_id': r.employee_id, 'employee_name': r.employee_name,
                           'date': r.date, 'total': r.total} for r in rows])
    anomalies = []
    for employee_id, group in frame.groupby('employee_id', sort=False):
        if len(group) < MIN_HISTORY_POINTS:
            logging.debug(f"  Employee {employee_id}: {len(group)} points, skipped")
            continue
        values = group['total'].tolist()
        mu = stats.mean(values)
        sigma = stats.std_dev(values)
        for _, rec in group.tail(EMPLOYEE_RECENT_DAYS).iterrows():
            z = stats.z_score(rec['total'], mu, sigma)
            if abs(z) >= z_threshold:
                anomalies.append(_employee_anomaly(employee_id, rec['employee_name'], rec['date'],
                                                   float(rec['total']), mu, z))
    return anomalies


def detect_revenue_anomalies(branch_id, analysis_date, lookback_days=DEFAULT_LOOKBACK_DAYS,
                             z_score_threshold=DEFAULT_ZSCORE_THRESHOLD, include_employee_level=True,
                             store=None):
    """
    Flags spikes and drops in a branch's recent revenue.

    Args:
        branch_id (int): The branch to analyse.
        analysis_date (date): Last day of the analysis window.
        lookback_days (int): Size of the baseline window in days.
        z_score_threshold (float): Minimum |z| to report.
        include_employee_level (bool): Also scan each employee's own series.

    Returns:
        AnomalyReport: Anomalies sorted critical, warning, info (insertion order
        within a severity is kept but not guaranteed to callers), plus the
        branch-level baseline statistics.
    """
    store = store or RevenueStore()
    end = as_date(analysis_date)
    start = end - timedelta(days=lookback_days)
    logging.info(f"Detecting revenue anomalies for branch {branch_id} ({start} to {end}, z >= {z_score_threshold})")

    days = store.daily_revenues(branch_id, start, end)
    if len(days) < MIN_HISTORY_POINTS:
        logging.warning(f"Branch {branch_id}: only {len(days)} days of history, anomaly scan skipped")
        return AnomalyReport(anomalies=[], statistics=SeriesStatistics(analyzed_days=len(days)))

    values = [float(d.total or 0) for d in days]
    mu = stats.mean(values)
    sigma = stats.std_dev(values)

    anomalies = []
    for day in days[-BRANCH_RECENT_DAYS:]:
        value = float(day.total or 0)
        z = stats.z_score(value, mu, sigma)
        if abs(z) >= z_score_threshold:
            anomalies.append(_branch_anomaly(branch_id, day.date, value, mu, z))

    if include_employee_level:
        anomalies.extend(_employee_anomalies(store.employee_revenues(branch_id, start, end), z_score_threshold))

    anomalies.sort(key=lambda a: SEVERITY_ORDER[a.severity])
    logging.info(f"Branch {branch_id}: {len(anomalies)} anomalies found")

    return AnomalyReport(
        anomalies=anomalies,
        statistics=SeriesStatistics(mean=round(mu, 2), std_dev=round(sigma, 2),
                                    median=round(stats.median(values), 2), analyzed_days=len(days)),
    )
