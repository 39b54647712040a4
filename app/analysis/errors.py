# ==============================================================================
# app/analysis/errors.py
# ------------------------------------------------------------------------------
# Exceptions raised by the analysis engine. Business findings (discrepancies,
# anomalies, fraud patterns) are never raised; they are returned to callers.
# ==============================================================================


class AnalysisError(Exception):
    """Base class for every error raised by the analysis engine."""


class DataUnavailableError(AnalysisError):
    """The relational store could not be reached or a query against it failed."""

    def __init__(self, operation, original=None):
        self.operation = operation
        self.original = original
        message = f"Data store unavailable during '{operation}'"
        if original is not None:
            message += f": {original}"
        super().__init__(message)


class EntityNotFoundError(AnalysisError):
    """An id passed to an operation that needs the entity does not resolve."""

    def __init__(self, entity, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} does not exist")


class InvalidTransitionError(AnalysisError):
    """A weekly bonus was asked to move to a status its current status does not allow."""

    def __init__(self, current, target, allowed):
        self.current = current
        self.target = target
        self.allowed = list(allowed)
        super().__init__(
            f"Cannot move weekly bonus from '{current}' to '{target}'. "
            f"Allowed: {', '.join(self.allowed) or 'none'}"
        )


class BonusAlreadyCalculatedError(AnalysisError):
    """A bonus run was requested for a week that already has a WeeklyBonus record."""

    def __init__(self, branch_id, week_number, month, year):
        self.branch_id = branch_id
        self.week_number = week_number
        self.month = month
        self.year = year
        super().__init__(
            f"Weekly bonus for branch {branch_id}, week {week_number} of {year}-{month:02d} already exists; "
            f"use the 'recalculate' correction instead"
        )


class UnknownCorrectionError(AnalysisError):
    """The requested auto-correction type is not supported."""

    def __init__(self, correction_type, supported):
        self.correction_type = correction_type
        super().__init__(
            f"Unknown correction type '{correction_type}'. Supported: {', '.join(supported)}"
        )
