# ==============================================================================
# config.py
# ------------------------------------------------------------------------------
# Configuration settings for the Flask application and the analysis engine.
# Uses environment variables for sensitive data to keep them out of version control.
# ==============================================================================

import os
from dotenv import load_dotenv

# Determine the absolute path of the project directory
basedir = os.path.abspath(os.path.dirname(__file__))

# Load environment variables from a .env file located in the project root
load_dotenv(os.path.join(basedir, '.env'))


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """
    Base configuration class. Contains default settings that can be overridden
    by environment-specific configurations.
    """
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-should-really-set-a-secret-key-in-your-env-file'

    # --- Database Configuration ---
    # The relational store holding branches, revenues and weekly bonuses.
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance/app.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # --- Logging ---
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'

    # --- Anomaly Detection Defaults ---
    # Per-call overrides; the CLI reads these when no option is given.
    ANOMALY_LOOKBACK_DAYS = int(os.environ.get('ANOMALY_LOOKBACK_DAYS') or 90)
    ANOMALY_ZSCORE_THRESHOLD = float(os.environ.get('ANOMALY_ZSCORE_THRESHOLD') or 2.5)
    ANOMALY_INCLUDE_EMPLOYEES = _env_bool('ANOMALY_INCLUDE_EMPLOYEES', True)


class TestConfig(Config):
    """Configuration used by the test suite: isolated in-memory database."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    LOG_LEVEL = 'DEBUG'
