"""Message Processing Logs API wrapper."""

import logging
from typing import Any, Dict, List, Optional, Sequence

from .odata_client import ODataClient


class MessageProcessingLogsClient:
    """Pass-through to the MessageProcessingLogs OData entity set."""

    def __init__(self, odata_client: ODataClient, logger_obj: Optional[logging.Logger] = None):
        self.odata = odata_client
        self.logger = logger_obj or logging.getLogger(__name__)

    async def get_message_processing_logs(
        self,
        filter: Optional[str] = None,
        top: Optional[int] = None,
        skip: Optional[int] = None,
        orderby: Optional[Sequence[str]] = None,
    ) -> Dict[str, List[Dict[str, Any]]]:
        """Fetch one page of logs. The filter string is passed through as-is."""
        logs = await self.odata.get_collection(
            "MessageProcessingLogs", filter=filter, top=top, skip=skip, orderby=orderby
        )
        return {"logs": logs}
