"""Composite queries and analyses over message processing logs."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ...config.api import APIConfig
from ...utils.log_statistics import duration_statistics, error_type_histogram
from ...utils.odata_filter import and_join, build_odata_filter, datetime_condition
from ..message_processing_logs import MessageProcessingLogsClient
from .base import BaseAdvancedClient


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def flow_log_filter(
    flow_id: str, from_date: datetime, to_date: datetime, status: Optional[str] = None
) -> str:
    """Filter for one flow's logs started within [from_date, to_date]."""
    return and_join(
        [
            "MessageGuid ne null",
            build_odata_filter({"Status": status, "IntegrationFlowName": flow_id}),
            datetime_condition("LogStart", "ge", from_date),
            datetime_condition("LogStart", "le", to_date),
        ]
    )


class MessageProcessingLogsAdvancedClient(BaseAdvancedClient[MessageProcessingLogsClient]):
    """Error and performance analysis for a single integration flow."""

    async def find_error_logs_for_flow(
        self,
        flow_id: str,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        max_results: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Failed logs of a flow, newest end time first (default: last 24 hours, 50 logs)."""
        to_date = to_date or _utcnow()
        from_date = from_date or to_date - timedelta(hours=APIConfig.ERROR_LOOKBACK_HOURS)
        max_results = max_results or APIConfig.ERROR_MAX_RESULTS

        result = await self.client.get_message_processing_logs(
            filter=flow_log_filter(flow_id, from_date, to_date, status="FAILED"),
            top=max_results,
            orderby=["LogEnd desc"],
        )
        return result["logs"]

    async def get_error_statistics_for_flow(
        self,
        flow_id: str,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        max_results: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Error types of a flow's failed logs with counts and percentages."""
        error_logs = await self.find_error_logs_for_flow(
            flow_id, from_date=from_date, to_date=to_date, max_results=max_results
        )
        statistics = error_type_histogram(error_logs)
        if statistics:
            self.logger.info(
                f"{flow_id}: {len(error_logs)} failed logs, most frequent error "
                f"'{statistics[0]['errorType']}' ({statistics[0]['count']})"
            )
        return statistics

    async def analyze_flow_performance(
        self,
        flow_id: str,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        max_results: Optional[int] = None,
        outlier_threshold: Optional[float] = None,
        skip_incomplete: bool = False,
    ) -> Dict[str, Any]:
        """Duration statistics and outliers for a flow (default: last 7 days, 100 logs, 2.0 sigma).

        With ``skip_incomplete`` logs missing LogStart or LogEnd are left out of
        the statistics instead of being measured from epoch zero.
        """
        to_date = to_date or _utcnow()
        from_date = from_date or to_date - timedelta(days=APIConfig.PERFORMANCE_LOOKBACK_DAYS)
        max_results = max_results or APIConfig.PERFORMANCE_MAX_RESULTS
        outlier_threshold = outlier_threshold or APIConfig.OUTLIER_THRESHOLD

        result = await self.client.get_message_processing_logs(
            filter=flow_log_filter(flow_id, from_date, to_date),
            top=max_results,
            orderby=["LogStart desc"],
        )
        analysis = duration_statistics(
            result["logs"], outlier_threshold=outlier_threshold, skip_incomplete=skip_incomplete
        )
        if analysis["skippedLogs"]:
            self.logger.warning(f"{flow_id}: skipped {analysis['skippedLogs']} logs without start or end time")
        return analysis
