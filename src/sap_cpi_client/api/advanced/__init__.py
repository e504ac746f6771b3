"""Advanced clients composing several API calls into higher-level operations."""

from .base import BaseAdvancedClient
from .integration_content import IntegrationContentAdvancedClient
from .message_processing_logs import MessageProcessingLogsAdvancedClient
from .registry import CustomClientRegistry, CustomClientType, custom_client_registry

__all__ = [
    "BaseAdvancedClient",
    "IntegrationContentAdvancedClient",
    "MessageProcessingLogsAdvancedClient",
    "CustomClientRegistry",
    "CustomClientType",
    "custom_client_registry",
]
