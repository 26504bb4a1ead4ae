# workshop_billing/config.py

import os
import logging
from decimal import Decimal

# --- Database Configuration ---
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DATA_DIR = os.path.join(BASE_DIR, "data")
DB_NAME = "workshop_billing.db"
DATABASE_PATH = os.environ.get("WORKSHOP_BILLING_DB", os.path.join(DATA_DIR, DB_NAME))

# How long a writer waits for another writer's transaction before giving up (seconds)
DB_BUSY_TIMEOUT_SECONDS = float(os.environ.get("WORKSHOP_BILLING_DB_TIMEOUT", "30"))

# --- Logging Configuration ---
LOGS_DIR = os.path.join(BASE_DIR, "logs")
LOG_FILE_NAME = "billing.log"
LOG_FILE_PATH = os.path.join(LOGS_DIR, LOG_FILE_NAME)

LOG_LEVEL = logging.INFO
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s.%(funcName)s:%(lineno)d - %(message)s'

LOGGING_CONFIG = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(module)s.%(funcName)s:%(lineno)d - %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
            'level': logging.INFO,
        },
        'file': {
            'class': 'logging.handlers.RotatingFileHandler',
            'formatter': 'standard',
            'filename': LOG_FILE_PATH,
            'maxBytes': 1024*1024*5,  # 5 MB
            'backupCount': 5,
            'level': logging.INFO,
            'encoding': 'utf-8',
        },
    },
    'root': {
        'handlers': ['console', 'file'],
        'level': logging.DEBUG,
    },
}


def ensure_runtime_dirs() -> None:
    """Creates the data and logs directories used by the default configuration."""
    for path in (os.path.dirname(DATABASE_PATH) or ".", LOGS_DIR):
        if not os.path.exists(path):
            os.makedirs(path)


# --- Billing defaults (overridden per organization by the settings table) ---
DEFAULT_INVOICE_PREFIX = "{year}-"
DEFAULT_INVOICE_START_NUMBER = 1001
DEFAULT_TAX_RATE = Decimal("0")

# Persisted money values are rounded to this quantum
MONEY_QUANTUM = Decimal("0.01")
