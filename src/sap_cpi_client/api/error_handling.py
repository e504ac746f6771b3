"""Error handling and categorization for API operations."""

import asyncio
import json
from enum import Enum
from typing import Optional

import aiohttp

RATE_LIMIT_STATUS = 429


class ErrorCategory(Enum):
    """Categories for different types of API errors."""
    NETWORK = "network"
    SERVER = "server"
    CLIENT = "client"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    DATA = "data"
    UNKNOWN = "unknown"


class ODataRequestError(Exception):
    """Raised when the OData service answers with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.body = body


def _status_of(obj) -> Optional[int]:
    for attr in ("status", "status_code"):
        value = getattr(obj, attr, None)
        if isinstance(value, int):
            return value
    return None


def get_status_code(exception: BaseException) -> Optional[int]:
    """Return the HTTP status carried by an exception, directly or on its response."""
    status = _status_of(exception)
    if status is not None:
        return status
    response = getattr(exception, "response", None)
    if response is not None:
        return _status_of(response)
    return None


def is_rate_limit_error(exception: BaseException) -> bool:
    """Check whether an exception is a rate-limit (HTTP 429) rejection."""
    return get_status_code(exception) == RATE_LIMIT_STATUS


def categorize_error(exception: Exception) -> ErrorCategory:
    """Categorize an exception into error types for better handling."""
    if is_rate_limit_error(exception):
        return ErrorCategory.RATE_LIMIT
    elif isinstance(exception, asyncio.TimeoutError):
        return ErrorCategory.TIMEOUT
    elif isinstance(exception, aiohttp.ClientConnectorError):
        return ErrorCategory.NETWORK

    status = get_status_code(exception)
    if status is not None:
        if 400 <= status < 500:
            return ErrorCategory.CLIENT
        elif 500 <= status < 600:
            return ErrorCategory.SERVER
        else:
            return ErrorCategory.UNKNOWN
    elif isinstance(exception, aiohttp.ClientError):
        return ErrorCategory.NETWORK
    elif isinstance(exception, (json.JSONDecodeError, ValueError)):
        return ErrorCategory.DATA
    else:
        return ErrorCategory.UNKNOWN


def is_retryable_error(exception: Exception) -> bool:
    """Retry network trouble, timeouts, throttling and server errors; give up on other client errors."""
    return categorize_error(exception) in (
        ErrorCategory.NETWORK,
        ErrorCategory.TIMEOUT,
        ErrorCategory.RATE_LIMIT,
        ErrorCategory.SERVER,
    )
