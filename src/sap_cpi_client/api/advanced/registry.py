"""Registry of advanced client factories keyed by client type."""

import threading
from enum import Enum
from typing import Any, Callable, Dict

from .integration_content import IntegrationContentAdvancedClient
from .message_processing_logs import MessageProcessingLogsAdvancedClient


class CustomClientType(str, Enum):
    """Advanced clients known to the registry."""

    INTEGRATION_CONTENT_ADVANCED = "integration-content-advanced"
    MESSAGE_PROCESSING_LOGS_ADVANCED = "message-processing-logs-advanced"


Factory = Callable[..., Any]


class CustomClientRegistry:
    """Maps a client type to the factory that wraps a base client."""

    def __init__(self):
        self._factories: Dict[str, Factory] = {}
        self._lock = threading.Lock()
        self.register(CustomClientType.INTEGRATION_CONTENT_ADVANCED, IntegrationContentAdvancedClient)
        self.register(CustomClientType.MESSAGE_PROCESSING_LOGS_ADVANCED, MessageProcessingLogsAdvancedClient)

    def register(self, client_type: str, factory: Factory) -> None:
        with self._lock:
            self._factories[self._key(client_type)] = factory

    def has(self, client_type: str) -> bool:
        return self._key(client_type) in self._factories

    def create(self, client_type: str, base_client: Any, **kwargs) -> Any:
        """Wrap ``base_client`` with the advanced client registered for ``client_type``."""
        with self._lock:
            factory = self._factories.get(self._key(client_type))
        if factory is None:
            raise KeyError(f"No advanced client registered for '{client_type}'")
        return factory(base_client, **kwargs)

    @staticmethod
    def _key(client_type: str) -> str:
        return client_type.value if isinstance(client_type, Enum) else str(client_type)


# Global advanced client registry
custom_client_registry = CustomClientRegistry()
