"""
Configuration for Ticketless Entry

Settings come from environment variables; the application factory
merges an optional override dictionary on top.
"""

import os
from typing import Dict, Optional

_TRUE_VALUES = ('1', 'true', 'yes', 'on')


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return float(value)


def load_config(overrides: Optional[Dict] = None) -> Dict:
    """
    Build the configuration dictionary

    Args:
        overrides: Optional values that take precedence over the
            environment

    Returns:
        Configuration dictionary
    """
    config = {
        'SECRET_KEY': os.environ.get('FLASK_SECRET_KEY', 'dev-secret-key-change-in-production'),
        'DEBUG': _env_bool('DEBUG_MODE', False),
        'LOG_LEVEL': os.environ.get('LOG_LEVEL', 'INFO'),

        # Spreadsheet
        'STORE_BACKEND': os.environ.get('STORE_BACKEND', 'sheets'),
        'SPREADSHEET_KEY': os.environ.get('SPREADSHEET_KEY', ''),
        'GOOGLE_SERVICE_ACCOUNT_JSON': os.environ.get('GOOGLE_SERVICE_ACCOUNT_JSON', ''),
        'ATTENDEES_WORKSHEET': os.environ.get('ATTENDEES_WORKSHEET', 'Attendees'),
        'ORDERS_WORKSHEET': os.environ.get('ORDERS_WORKSHEET', 'Orders'),
        'MEMBERS_WORKSHEET': os.environ.get('MEMBERS_WORKSHEET', 'Members'),

        # Store lock
        'REDIS_URL': os.environ.get('REDIS_URL', ''),
        'LOCK_TIMEOUT_SECONDS': _env_float('LOCK_TIMEOUT_SECONDS', 10.0),

        # Event
        'EVENT_NAME': os.environ.get('EVENT_NAME', 'Ticketless Entry'),
        'EVENT_TIMEZONE': os.environ.get('EVENT_TIMEZONE', 'Asia/Tokyo'),
        'TAXONOMY_FILE': os.environ.get('TAXONOMY_FILE', ''),

        # Ticket mail
        'SEND_INTERVAL_SECONDS': _env_float('SEND_INTERVAL_SECONDS', 1.0),
        'MAIL_SERVER': os.environ.get('MAIL_SERVER', 'localhost'),
        'MAIL_PORT': int(os.environ.get('MAIL_PORT', 587)),
        'MAIL_USERNAME': os.environ.get('MAIL_USERNAME', ''),
        'MAIL_PASSWORD': os.environ.get('MAIL_PASSWORD', ''),
        'MAIL_USE_TLS': _env_bool('MAIL_USE_TLS', True),
        'MAIL_DEFAULT_SENDER': os.environ.get('MAIL_DEFAULT_SENDER', ''),
    }

    if overrides:
        config.update(overrides)

    return config
