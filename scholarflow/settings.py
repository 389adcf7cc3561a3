"""
scholarflow.settings
====================

Configuration settings for the scholarship workflow.

Two layers, as elsewhere in the project: plain module constants for the
infrastructure knobs (database file, API bind address, log level) read
straight from the environment, and a pydantic :class:`Settings` model for
the workflow policies.  Both can be overridden via environment variables.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

from .aggregation import ServiceCountPolicy

# ---------------------------------------------------------------------------
# Base directories
# ---------------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent

# Database settings
# ---------------------------------------------------------------------------
DB_FILE = os.environ.get("SCHOLARFLOW_DB_FILE", BASE_DIR / "scholarflow.db")
DB_URL = os.environ.get("SCHOLARFLOW_DB_URL", f"sqlite:///{DB_FILE}")
DB_ECHO = os.environ.get("SCHOLARFLOW_DB_ECHO", "False").lower() == "true"

# API settings
# ---------------------------------------------------------------------------
API_HOST = os.environ.get("SCHOLARFLOW_API_HOST", "127.0.0.1")
API_PORT = int(os.environ.get("SCHOLARFLOW_API_PORT", "8000"))
API_DEBUG = os.environ.get("SCHOLARFLOW_API_DEBUG", "False").lower() == "true"

# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL = os.environ.get("SCHOLARFLOW_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int | None = None) -> None:
    """Install the root handler once; called by the API and the CLI."""
    logging.basicConfig(level=level or LOG_LEVEL, format=LOG_FORMAT)


# ---------------------------------------------------------------------------
# Pydantic settings model for workflow policies
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Workflow policy switches, loaded from ``SCHOLARFLOW_*`` variables."""

    service_count_policy: ServiceCountPolicy = Field(
        ServiceCountPolicy.NON_REJECTED,
        description="Which service reports/entries count toward the quota",
    )
    hours_per_service_day: float = Field(
        8.0, gt=0, description="Hours of logged service equivalent to one service day"
    )
    refresh_reviewed_at_on_noop: bool = Field(
        False, description="Re-stamp reviewed_at when a review repeats the current status"
    )
    enforce_deadline: bool = Field(
        True, description="Refuse new applications after the program deadline"
    )
    notifications_enabled: bool = Field(True, description="Dispatch notification intents")
    min_report_description: int = Field(
        1, ge=1, description="Minimum length of a service report description"
    )

    class Config:
        """Configuration for the settings model."""
        env_prefix = "SCHOLARFLOW_"
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


# Initialize settings
settings = Settings()
