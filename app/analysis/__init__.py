# ==============================================================================
# app/analysis/__init__.py
# ------------------------------------------------------------------------------
# Public surface of the revenue analysis engine.
# ==============================================================================

from app.analysis.errors import (AnalysisError, BonusAlreadyCalculatedError, DataUnavailableError,
                                 EntityNotFoundError, InvalidTransitionError, UnknownCorrectionError)
from app.analysis.store import RevenueStore
from app.analysis.tiers import TIER_TABLE, compute_tier
from app.analysis.reconciliation import (reconcile_bonus_calculations, reconcile_branch_revenues,
                                         reconcile_month)
from app.analysis.bonus import calculate_weekly_bonus
from app.analysis.anomalies import detect_revenue_anomalies
from app.analysis.fraud import detect_fraud_patterns
from app.analysis.performance import (analyze_branch_performance, analyze_employee_performance,
                                      detect_performance_patterns)
from app.analysis.workflow import (get_bonus_workflow_status, get_compliance_report, get_data_gaps_report,
                                   get_pending_tasks, transition_weekly_bonus)
from app.analysis.integrity import check_data_integrity, check_store_health, execute_auto_correction
from app.analysis.alerts import generate_proactive_alerts, generate_smart_recommendations
