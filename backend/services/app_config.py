"""
Caelex Compliance Core - Runtime Configuration

All settings are read from environment variables once at import time.
A .env file in the backend directory is loaded first so local development
does not need exported variables.

Feature Flag: AUDIT_LOG_ENABLED
- When True: successful transitions are written to the audit_logs collection
- When False: audit events are built and logged but never persisted
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parent.parent
load_dotenv(ROOT_DIR / ".env")


# =============================================================================
# DATABASE
# =============================================================================

MONGO_URL = os.environ.get("MONGO_URL", "mongodb://localhost:27017")
DB_NAME = os.environ.get("DB_NAME", "caelex")


# =============================================================================
# WORKFLOW ENGINE
# =============================================================================

# Upper bound on chained auto-transitions in a single evaluation
MAX_AUTO_TRANSITIONS = int(os.environ.get("MAX_AUTO_TRANSITIONS", "10"))


# =============================================================================
# AUDIT / LOGGING
# =============================================================================

AUDIT_LOG_ENABLED = os.environ.get("AUDIT_LOG_ENABLED", "true").lower() == "true"

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


# =============================================================================
# HTTP
# =============================================================================

def get_cors_origins() -> List[str]:
    """Parse CORS_ORIGINS (comma separated) into a list."""
    raw = os.environ.get("CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
