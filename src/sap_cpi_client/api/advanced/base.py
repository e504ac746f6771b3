"""Base class for clients that compose several API calls into one operation."""

import logging
from typing import Generic, Optional, TypeVar

from ...config.api import APIConfig

T = TypeVar("T")


class BaseAdvancedClient(Generic[T]):
    """Wraps a base API client and adds composite operations on top of it."""

    def __init__(self, client: T, logger_obj: Optional[logging.Logger] = None, debug: Optional[bool] = None):
        self.client = client
        self.logger = logger_obj or logging.getLogger(self.__class__.__module__)
        self.debug = APIConfig.DEBUG if debug is None else debug

    def get_base_client(self) -> T:
        return self.client

    def _log_failure(self, message: str) -> None:
        """Failures that are absorbed are only surfaced loudly in debug mode."""
        if self.debug:
            self.logger.error(message)
        else:
            self.logger.debug(message)
