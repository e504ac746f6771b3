"""Helpers for building OData $filter expressions."""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable

COMPARISON_OPERATORS = ("gt", "ge", "lt", "le", "eq", "ne")


def escape_odata_string(value: str) -> str:
    """Escape a string literal; OData doubles single quotes."""
    return value.replace("'", "''")


def format_datetime_literal(value: datetime) -> str:
    """Format a datetime as an OData v2 ``datetime'...'`` literal in UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return f"datetime'{value.strftime('%Y-%m-%dT%H:%M:%S')}'"


def datetime_condition(field: str, operator: str, value: datetime) -> str:
    if operator not in COMPARISON_OPERATORS:
        raise ValueError(f"Unsupported comparison operator: {operator}")
    return f"{field} {operator} {format_datetime_literal(value)}"


def and_join(conditions: Iterable[str]) -> str:
    return " and ".join(c for c in conditions if c)


def build_odata_filter(filters: Dict[str, Any]) -> str:
    """Build a filter string from a mapping of field -> value.

    Strings, booleans and numbers become equality conditions. A datetime is an
    equality condition on that field; a dict of ``{operator: datetime}`` gives
    one range condition per operator. ``None`` values are skipped.
    """
    parts = []
    for field, value in filters.items():
        if value is None:
            continue
        if isinstance(value, dict):
            for operator in COMPARISON_OPERATORS:
                if isinstance(value.get(operator), datetime):
                    parts.append(datetime_condition(field, operator, value[operator]))
        elif isinstance(value, datetime):
            parts.append(datetime_condition(field, "eq", value))
        elif isinstance(value, str):
            parts.append(f"{field} eq '{escape_odata_string(value)}'")
        elif isinstance(value, bool):
            parts.append(f"{field} eq {'true' if value else 'false'}")
        elif isinstance(value, (int, float)):
            parts.append(f"{field} eq {value}")
    return and_join(parts)
