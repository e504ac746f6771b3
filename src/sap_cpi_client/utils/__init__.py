"""Utility helpers: logging setup, OData filters and log statistics."""
