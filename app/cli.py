# ==============================================================================
# app/cli.py
# ------------------------------------------------------------------------------
# Flask CLI commands exposing the analysis engine. Every command prints its
# result as JSON; engine errors become a non-zero exit with the message.
# ==============================================================================

import dataclasses
import json
from datetime import date, datetime
from functools import wraps

import click
from flask import current_app

from app import analysis
from app.analysis.errors import AnalysisError
from app.analysis.integrity import CORRECTION_TYPES
from app.analysis.workflow import ROLE_STATUSES


def _to_jsonable(result):
    if dataclasses.is_dataclass(result) and not isinstance(result, type):
        return dataclasses.asdict(result)
    if isinstance(result, list):
        return [_to_jsonable(item) for item in result]
    return result


def echo_json(result):
    click.echo(json.dumps(_to_jsonable(result), default=str, ensure_ascii=False, indent=2))


def reports_errors(f):
    """Turns engine errors into a clean CLI failure instead of a traceback."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except AnalysisError as e:
            raise click.ClickException(str(e)) from e
    return decorated_function


def _parse_date(ctx, param, value):
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise click.BadParameter(f"expected YYYY-MM-DD, got '{value}'") from e


date_option = dict(callback=_parse_date, metavar='YYYY-MM-DD')


def register_commands(app):
    """Attaches the analysis commands to the app's CLI group."""

    @app.cli.command('reconcile-month')
    @click.argument('branch_id', type=int)
    @click.argument('month', type=click.IntRange(1, 12))
    @click.argument('year', type=int)
    @reports_errors
    def reconcile_month_command(branch_id, month, year):
        """Reconciles a branch month: daily revenues and every weekly bonus."""
        echo_json(analysis.reconcile_month(branch_id, month, year))

    @app.cli.command('reconcile-bonus')
    @click.argument('branch_id', type=int)
    @click.argument('week_number', type=click.IntRange(1, 5))
    @click.argument('month', type=click.IntRange(1, 12))
    @click.argument('year', type=int)
    @reports_errors
    def reconcile_bonus_command(branch_id, week_number, month, year):
        """Checks one recorded weekly bonus against the tier table."""
        echo_json(analysis.reconcile_bonus_calculations(branch_id, week_number, month, year))

    @app.cli.command('calculate-bonus')
    @click.argument('branch_id', type=int)
    @click.argument('week_number', type=click.IntRange(1, 5))
    @click.argument('month', type=click.IntRange(1, 12))
    @click.argument('year', type=int)
    @reports_errors
    def calculate_bonus_command(branch_id, week_number, month, year):
        """Creates the draft weekly bonus for a week."""
        try:
            bonus_id = analysis.calculate_weekly_bonus(branch_id, week_number, month, year)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint='week_number') from e
        echo_json({'weekly_bonus_id': bonus_id})

    @app.cli.command('detect-anomalies')
    @click.argument('branch_id', type=int)
    @click.option('--date', 'analysis_date', help='Last day analysed (default: today).', **date_option)
    @click.option('--lookback-days', type=int, default=None, help='Baseline window size in days.')
    @click.option('--threshold', type=float, default=None, help='Minimum |z| to report.')
    @click.option('--employees/--no-employees', default=None, help='Also scan each employee series.')
    @reports_errors
    def detect_anomalies_command(branch_id, analysis_date, lookback_days, threshold, employees):
        """Flags revenue spikes and drops for a branch."""
        config = current_app.config
        echo_json(analysis.detect_revenue_anomalies(
            branch_id,
            analysis_date or date.today(),
            lookback_days=lookback_days if lookback_days is not None else config['ANOMALY_LOOKBACK_DAYS'],
            z_score_threshold=threshold if threshold is not None else config['ANOMALY_ZSCORE_THRESHOLD'],
            include_employee_level=employees if employees is not None else config['ANOMALY_INCLUDE_EMPLOYEES'],
        ))

    @app.cli.command('fraud-scan')
    @click.argument('branch_id', type=int)
    @click.option('--start', required=True, **date_option)
    @click.option('--end', required=True, **date_option)
    @reports_errors
    def fraud_scan_command(branch_id, start, end):
        """Scores a branch for revenue manipulation patterns."""
        echo_json(analysis.detect_fraud_patterns(branch_id, start, end))

    @app.cli.command('performance-patterns')
    @click.argument('branch_id', type=int)
    @click.option('--date', 'analysis_date', **date_option)
    @reports_errors
    def performance_patterns_command(branch_id, analysis_date):
        """Classifies employees into performance archetypes."""
        echo_json(analysis.detect_performance_patterns(branch_id, analysis_date or date.today()))

    @app.cli.command('compliance-report')
    @click.argument('branch_id', type=int)
    @click.argument('month', type=click.IntRange(1, 12))
    @click.argument('year', type=int)
    @reports_errors
    def compliance_report_command(branch_id, month, year):
        """Scores bonus timeliness, approvals and data entry for a branch month."""
        echo_json(analysis.get_compliance_report(branch_id, month, year))

    @app.cli.command('pending-tasks')
    @click.argument('role', type=click.Choice(sorted(ROLE_STATUSES)))
    @click.option('--branch-id', type=int, default=None)
    @reports_errors
    def pending_tasks_command(role, branch_id):
        """Lists the weekly bonuses waiting on a role."""
        echo_json(analysis.get_pending_tasks(role, now=datetime.utcnow(), branch_id=branch_id))

    @app.cli.command('integrity-check')
    @click.option('--branch-id', type=int, default=None)
    @reports_errors
    def integrity_check_command(branch_id):
        """Runs the data integrity checklist."""
        echo_json({'store': analysis.check_store_health(),
                   'integrity': _to_jsonable(analysis.check_data_integrity(branch_id))})

    @app.cli.command('auto-correct')
    @click.argument('branch_id', type=int)
    @click.argument('correction_type', type=click.Choice(CORRECTION_TYPES))
    @reports_errors
    def auto_correct_command(branch_id, correction_type):
        """Runs one corrective operation for a branch."""
        result = analysis.execute_auto_correction(branch_id, correction_type)
        echo_json(result)
        if not result.success:
            raise click.ClickException(result.message)
