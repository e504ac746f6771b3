"""Async client for SAP Cloud Integration with composite batch operations."""

from .api import (
    ArtifactKind,
    IntegrationContentClient,
    MessageProcessingLogsClient,
    ODataClient,
    PackageWithArtifacts,
    RateLimitCounter,
)
from .api.advanced import IntegrationContentAdvancedClient, MessageProcessingLogsAdvancedClient

__version__ = "0.1.0"

__all__ = [
    "ODataClient",
    "IntegrationContentClient",
    "MessageProcessingLogsClient",
    "IntegrationContentAdvancedClient",
    "MessageProcessingLogsAdvancedClient",
    "ArtifactKind",
    "PackageWithArtifacts",
    "RateLimitCounter",
]
