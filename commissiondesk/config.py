"""Environment-driven settings for the commission application."""
from __future__ import annotations

import os
from pathlib import Path

DEFAULT_SQLITE_PATH = Path("data/commission.db")

DATABASE_URL = os.getenv("COMMISSION_DATABASE_URL", f"sqlite:///{DEFAULT_SQLITE_PATH}")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()

LOG_LEVEL = os.getenv("COMMISSION_LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("COMMISSION_LOG_FORMAT", "console").lower()

DEFAULT_ADMIN_USERNAME = os.getenv("COMMISSION_ADMIN_USERNAME", "admin")
DEFAULT_ADMIN_PASSWORD = os.getenv("COMMISSION_ADMIN_PASSWORD", "admin123")

BCRYPT_ROUNDS = int(os.getenv("COMMISSION_BCRYPT_ROUNDS", "12"))

SESSION_COOKIE_NAME = "user_id"
# 7 days
SESSION_MAX_AGE = int(os.getenv("COMMISSION_SESSION_MAX_AGE", str(7 * 24 * 60 * 60)))


def is_production() -> bool:
    return ENVIRONMENT == "production"
