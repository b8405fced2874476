"""Runtime configuration read from the environment.

Values come from the process environment, with a local .env file loaded
first. Scoring weights and stage probabilities are fixed in code and are not
configurable here.

Usage:
    from config import HIGH_VALUE_THRESHOLD, configure_logging
"""
import logging
import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# External sentiment/AI service (optional; calls fail open when unset)
SENTIMENT_API_URL = os.environ.get("SENTIMENT_API_URL", "")
SENTIMENT_API_KEY = os.environ.get("SENTIMENT_API_KEY", "")
SENTIMENT_TIMEOUT = int(os.environ.get("SENTIMENT_TIMEOUT", "10"))

# Opportunity attention rules
STALLED_OPPORTUNITY_DAYS = int(os.environ.get("STALLED_OPPORTUNITY_DAYS", "14"))
HIGH_VALUE_THRESHOLD = float(os.environ.get("HIGH_VALUE_THRESHOLD", "50000"))

# Connection pool
DB_POOL_SIZE = int(os.environ.get("DB_POOL_SIZE", "5"))
DB_MAX_OVERFLOW = int(os.environ.get("DB_MAX_OVERFLOW", "10"))
DB_POOL_TIMEOUT = int(os.environ.get("DB_POOL_TIMEOUT", "30"))


def configure_logging(level: str = None) -> None:
    """Configure root logging for command-line entry points."""
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
