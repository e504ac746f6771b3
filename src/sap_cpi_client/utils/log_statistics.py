"""Statistics over message processing logs."""

import math
import re
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

UNKNOWN_ERROR = "Unknown Error"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_ODATA_DATE = re.compile(r"^/Date\((-?\d+)(?:[+-]\d{4})?\)/$")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def timestamp_to_millis(value: Any) -> Optional[float]:
    """Convert a log timestamp to epoch milliseconds.

    Accepts datetimes, epoch milliseconds, ``/Date(ms)/`` literals and
    ISO-8601 strings. Returns None for missing or unparseable values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return (value - _EPOCH) / timedelta(milliseconds=1)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _ODATA_DATE.match(value.strip())
        if match:
            return float(match.group(1))
        if value.strip().lstrip("-").isdigit():
            return float(value)
        try:
            parsed = pd.Timestamp(value)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.tz_localize("UTC")
        return parsed.value / 1_000_000
    return None


def error_type_of(log: Dict[str, Any]) -> str:
    error_information = log.get("ErrorInformation") or {}
    return error_information.get("Type") or UNKNOWN_ERROR


def error_type_histogram(logs: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Count error types, most frequent first.

    Each entry is ``{"errorType", "count", "percentage"}``; percentages are
    rounded independently, so they need not add up to 100.
    """
    if not logs:
        return []
    total = len(logs)
    counts = Counter(error_type_of(log) for log in logs)
    return [
        {"errorType": error_type, "count": count, "percentage": _round_half_up(count / total * 100)}
        for error_type, count in counts.most_common()
    ]


def log_duration(log: Dict[str, Any], fill_missing: bool = True) -> Optional[float]:
    """LogEnd minus LogStart in milliseconds.

    A missing timestamp counts as epoch zero when ``fill_missing`` is set,
    otherwise the duration is None.
    """
    start = timestamp_to_millis(log.get("LogStart"))
    end = timestamp_to_millis(log.get("LogEnd"))
    if start is None or end is None:
        if not fill_missing:
            return None
        start = start or 0.0
        end = end or 0.0
    return end - start


def _empty_statistics(skipped: int = 0) -> Dict[str, Any]:
    return {
        "avgDuration": 0,
        "minDuration": 0,
        "maxDuration": 0,
        "medianDuration": 0,
        "stdDevDuration": 0,
        "outliers": [],
        "totalLogs": 0,
        "skippedLogs": skipped,
    }


def duration_statistics(
    logs: Sequence[Dict[str, Any]],
    outlier_threshold: float = 2.0,
    skip_incomplete: bool = False,
) -> Dict[str, Any]:
    """Summarize processing durations and pick out outliers.

    Standard deviation is the population one. A log is an outlier when its
    duration is at least ``outlier_threshold`` standard deviations from the
    mean; with zero spread nothing is an outlier.
    """
    kept = []
    durations = []
    for log in logs:
        duration = log_duration(log, fill_missing=not skip_incomplete)
        if duration is None:
            continue
        kept.append(log)
        durations.append(duration)

    skipped = len(logs) - len(kept)
    if not kept:
        return _empty_statistics(skipped)

    series = pd.Series(durations, dtype="float64")
    mean = float(series.mean())
    std = float(series.std(ddof=0))

    if std > 0:
        deviations = (series - mean).abs()
        limit = outlier_threshold * std
        # A deviation equal to the limit up to float rounding counts
        is_outlier = (deviations > limit) | np.isclose(deviations, limit)
        outliers = [kept[i] for i in series.index[is_outlier]]
    else:
        outliers = []

    return {
        "avgDuration": mean,
        "minDuration": float(series.min()),
        "maxDuration": float(series.max()),
        "medianDuration": float(series.median()),
        "stdDevDuration": std,
        "outliers": outliers,
        "totalLogs": len(kept),
        "skippedLogs": skipped,
    }
