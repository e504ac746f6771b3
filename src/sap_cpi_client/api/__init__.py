"""API clients and communication modules."""

from .batch import fan_out, partition_by_parent, run_bounded
from .error_handling import ErrorCategory, ODataRequestError, categorize_error, is_rate_limit_error
from .integration_content import IntegrationContentClient
from .message_processing_logs import MessageProcessingLogsClient
from .models import ArtifactKind, PackageWithArtifacts, RateLimitCounter
from .odata_client import ODataClient

__all__ = [
    "ODataClient",
    "IntegrationContentClient",
    "MessageProcessingLogsClient",
    "ArtifactKind",
    "PackageWithArtifacts",
    "RateLimitCounter",
    "ErrorCategory",
    "ODataRequestError",
    "categorize_error",
    "is_rate_limit_error",
    "fan_out",
    "partition_by_parent",
    "run_bounded",
]
