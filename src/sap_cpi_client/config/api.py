"""API configuration for SAP Cloud Integration OData endpoints."""

import os


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class APIConfig:
    """API configuration and settings."""

    # OData endpoint (tenant specific, no trailing slash)
    BASE_URL = os.environ.get("CPI_BASE_URL", "").rstrip("/")

    # Request settings
    MAX_RETRIES = int(os.environ.get("CPI_MAX_RETRIES", "5"))
    REQUEST_TIMEOUT = int(os.environ.get("CPI_REQUEST_TIMEOUT", "60"))
    CONCURRENCY_LIMIT = int(os.environ.get("CPI_CONCURRENCY", "7"))

    # Retry settings
    RETRY_BASE_DELAY = 2
    RETRY_MAX_DELAY = 60

    # Message processing log analysis
    ERROR_LOOKBACK_HOURS = 24
    ERROR_MAX_RESULTS = 50
    PERFORMANCE_LOOKBACK_DAYS = 7
    PERFORMANCE_MAX_RESULTS = 100
    OUTLIER_THRESHOLD = 2.0

    # Diagnostics
    DEBUG = _env_flag("CPI_DEBUG")

    @classmethod
    def get_entity_url(cls, entity: str, base_url: str = None) -> str:
        """Get the full URL for an OData entity set or navigation path."""
        return f"{(base_url or cls.BASE_URL).rstrip('/')}/{entity.lstrip('/')}"
