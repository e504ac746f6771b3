"""Configuration management for the SAP CPI client."""

from .api import APIConfig
from .settings import Settings

__all__ = ["Settings", "APIConfig"]
