# ==============================================================================
# app/analysis/integrity.py
# ------------------------------------------------------------------------------
# Read-only integrity checklist and the idempotent corrective operations that
# repair what it finds. Corrections commit row by row: a failure part-way
# keeps (and reports) everything corrected before it.
# ==============================================================================

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, List, Optional

from app.analysis.errors import DataUnavailableError, UnknownCorrectionError
from app.analysis.reconciliation import TOLERANCE
from app.analysis.store import RevenueStore

CORRECTION_TYPES = ('recalculate', 'fix_negatives', 'remove_duplicates', 'fix_orphans')


@dataclass
class IntegrityIssue:
    type: str
    severity: str
    description: str
    affected_count: int
    recommendation: str


@dataclass
class IntegrityReport:
    is_healthy: bool
    issues: List[IntegrityIssue]
    total_checks: int
    passed_checks: int
    failed_checks: int


@dataclass
class Correction:
    entity: str
    entity_id: int
    issue: str
    action: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None


@dataclass
class CorrectionSummary:
    checked: int = 0
    corrected: int = 0
    failed: int = 0


@dataclass
class CorrectionResult:
    success: bool
    message: str
    corrections: List[Correction] = field(default_factory=list)
    summary: CorrectionSummary = field(default_factory=CorrectionSummary)


def check_data_integrity(branch_id=None, store=None):
    """
    Runs the fixed checklist. The first three checks have a matching correction;
    the rest need a manual fix.

        negative_values           employee revenue below zero            high
        orphan_records            bonus detail without a weekly bonus    medium
        total_mismatch            weekly total != sum of its details     high
        orphan_employee_revenues  employee revenue without a day         high
        employees_without_branch  employee of a missing branch           medium
        negative_daily_revenue    branch total below zero                high
        bonus_exceeds_revenue     bonus amount > weekly revenue          critical

    Orphan and branch-less checks ignore `branch_id`; those rows have no branch to scope by.
    """
    store = store or RevenueStore()
    issues = []
    checks = 0

    checks += 1
    negatives = store.negative_employee_revenues(branch_id)
    if negatives:
        issues.append(IntegrityIssue(
            type='negative_values', severity='high',
            description=f"{len(negatives)} employee revenue rows have negative totals",
            affected_count=len(negatives), recommendation="Run the 'fix_negatives' correction",
        ))

    checks += 1
    orphans = store.orphan_bonus_detail_ids()
    if orphans:
        issues.append(IntegrityIssue(
            type='orphan_records', severity='medium',
            description=f"{len(orphans)} bonus details reference a missing weekly bonus",
            affected_count=len(orphans), recommendation="Run the 'fix_orphans' correction",
        ))

    checks += 1
    mismatches = [t for t in store.weekly_bonus_totals(branch_id) if abs(t.recorded - t.calculated) > TOLERANCE]
    if mismatches:
        issues.append(IntegrityIssue(
            type='total_mismatch', severity='high',
            description=f"{len(mismatches)} weekly bonuses have a total that differs from their details",
            affected_count=len(mismatches), recommendation="Run the 'recalculate' correction",
        ))

    checks += 1
    orphan_revenues = store.orphan_employee_revenue_ids()
    if orphan_revenues:
        issues.append(IntegrityIssue(
            type='orphan_employee_revenues', severity='high',
            description=f"{len(orphan_revenues)} employee revenues reference a missing daily revenue",
            affected_count=len(orphan_revenues), recommendation="Delete the rows or restore their daily revenue",
        ))

    checks += 1
    homeless = store.employees_without_branch_ids()
    if homeless:
        issues.append(IntegrityIssue(
            type='employees_without_branch', severity='medium',
            description=f"{len(homeless)} employees belong to a branch that does not exist",
            affected_count=len(homeless), recommendation="Reassign the employees to an existing branch",
        ))

    checks += 1
    negative_days = store.negative_daily_revenue_ids(branch_id)
    if negative_days:
        issues.append(IntegrityIssue(
            type='negative_daily_revenue', severity='high',
            description=f"{len(negative_days)} daily revenues have negative totals",
            affected_count=len(negative_days), recommendation="Re-enter the branch totals for those days",
        ))

    checks += 1
    oversized = store.bonus_details_exceeding_revenue_ids(branch_id)
    if oversized:
        issues.append(IntegrityIssue(
            type='bonus_exceeds_revenue', severity='critical',
            description=f"{len(oversized)} bonus details pay more than the weekly revenue they were earned on",
            affected_count=len(oversized), recommendation="Recompute the bonus details from the tier table",
        ))

    for issue in issues:
        logging.warning(f"Integrity issue [{issue.severity}] {issue.type}: {issue.description}")

    return IntegrityReport(
        is_healthy=not issues,
        issues=issues,
        total_checks=checks,
        passed_checks=checks - len(issues),
        failed_checks=len(issues),
    )


def _recalculate(branch_id, today, store, result):
    bonuses = store.weekly_bonuses_for_month(branch_id, today.month, today.year)
    result.summary.checked = len(bonuses)
    for bonus in bonuses:
        correct_total = store.bonus_detail_total(bonus.id)
        if abs(correct_total - bonus.total_amount) > TOLERANCE:
            store.update_weekly_bonus_total(bonus.id, correct_total)
            result.corrections.append(Correction(
                entity='weekly_bonus', entity_id=bonus.id, issue='Incorrect total',
                action='Total recalculated from details', old_value=bonus.total_amount, new_value=correct_total,
            ))
            result.summary.corrected += 1


def _fix_negatives(branch_id, today, store, result):
    negatives = store.negative_employee_revenues(branch_id)
    result.summary.checked = len(negatives)
    for row in negatives:
        store.zero_employee_revenue(row.id)
        result.corrections.append(Correction(
            entity='employee_revenue', entity_id=row.id, issue='Negative value',
            action='Value set to zero', old_value=row.total, new_value=0.0,
        ))
        result.summary.corrected += 1


def _remove_duplicates(branch_id, today, store, result):
    duplicate_ids = store.duplicate_employee_revenue_ids(branch_id)
    result.summary.checked = len(duplicate_ids)
    for row_id in duplicate_ids:
        store.delete_employee_revenue(row_id)
        result.corrections.append(Correction(
            entity='employee_revenue', entity_id=row_id, issue='Duplicate entry', action='Deleted',
        ))
        result.summary.corrected += 1


def _fix_orphans(branch_id, today, store, result):
    orphan_ids = store.orphan_bonus_detail_ids()
    result.summary.checked = len(orphan_ids)
    for row_id in orphan_ids:
        store.delete_bonus_detail(row_id)
        result.corrections.append(Correction(
            entity='bonus_detail', entity_id=row_id, issue='Orphan record', action='Deleted',
        ))
        result.summary.corrected += 1


CORRECTIONS = {
    'recalculate': _recalculate,
    'fix_negatives': _fix_negatives,
    'remove_duplicates': _remove_duplicates,
    'fix_orphans': _fix_orphans,
}


def execute_auto_correction(branch_id, correction_type, today=None, store=None):
    """
    Runs one corrective operation for a branch.

    Args:
        branch_id (int): The branch to repair. `fix_orphans` is not branch-scoped,
            since an orphan detail no longer has a weekly bonus to carry a branch.
        correction_type (str): One of CORRECTION_TYPES.
        today (date): Reference day for `recalculate` (its month is repaired).

    Returns:
        CorrectionResult: Failures inside the correction are reported with
        success=False rather than raised; rows corrected before the failure stay
        corrected.

    Raises:
        UnknownCorrectionError: Unsupported correction type.
        DataUnavailableError: The store cannot be reached before the run starts.
    """
    if correction_type not in CORRECTIONS:
        raise UnknownCorrectionError(correction_type, CORRECTION_TYPES)
    store = store or RevenueStore()
    store.ping()

    today = today or date.today()
    result = CorrectionResult(success=True, message='')
    logging.info(f"Running '{correction_type}' correction for branch {branch_id}")

    try:
        CORRECTIONS[correction_type](branch_id, today, store, result)
    except Exception as e:
        logging.error(f"Correction '{correction_type}' failed for branch {branch_id}: {e}", exc_info=True)
        result.success = False
        result.message = str(e)
        result.summary.failed = result.summary.checked - result.summary.corrected
        return result

    result.message = f"Corrected {result.summary.corrected} of {result.summary.checked}"
    logging.info(f"'{correction_type}' for branch {branch_id}: {result.message}")
    return result


DEGRADED_LATENCY_MS = 1000


def check_store_health(store=None):
    """Reports 'healthy', 'degraded' (slow ping) or 'unhealthy' (unreachable) with the ping latency."""
    store = store or RevenueStore()
    try:
        latency = store.ping()
    except DataUnavailableError as e:
        logging.error(f"Store health check failed: {e}")
        return {'status': 'unhealthy', 'latency_ms': None, 'error': str(e)}
    status = 'degraded' if latency > DEGRADED_LATENCY_MS else 'healthy'
    if status == 'degraded':
        logging.warning(f"Store is slow: ping took {latency:.0f} ms")
    return {'status': status, 'latency_ms': round(latency, 2), 'error': None}
