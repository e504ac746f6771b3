# tests/conftest.py
import asyncio
import os
import sys
from collections import defaultdict
from unittest.mock import AsyncMock, MagicMock

import pytest

# Make sure `src/` is on the import path when the package is not installed
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
sys.path.insert(0, os.path.join(ROOT, "src"))


class FakeIntegrationContentClient:
    """In-memory stand-in for IntegrationContentClient.

    Records every call, tracks how many calls per method are in flight, and
    raises configured errors keyed by ``(method, package_id)`` (``None`` for
    tenant-wide calls).
    """

    def __init__(
        self,
        packages=None,
        flows=None,
        scripts=None,
        message_mappings=None,
        value_mappings=None,
        errors=None,
        list_error=None,
        delay=0,
    ):
        self.packages = packages or []
        self.flows = flows or {}
        self.scripts = scripts or {}
        self.message_mappings = message_mappings or []
        self.value_mappings = value_mappings or []
        self.errors = errors or {}
        self.list_error = list_error
        self.delay = delay
        self.calls = []
        self.in_flight = defaultdict(int)
        self.peak_in_flight = defaultdict(int)

    async def _call(self, method, key, data):
        self.calls.append((method, key))
        self.in_flight[method] += 1
        self.peak_in_flight[method] = max(self.peak_in_flight[method], self.in_flight[method])
        try:
            await asyncio.sleep(self.delay)
            error = self.errors.get((method, key))
            if error is not None:
                raise error
            return [dict(item) for item in data]
        finally:
            self.in_flight[method] -= 1

    def child_calls(self):
        return [call for call in self.calls if call[0] != "get_integration_packages"]

    async def get_integration_packages(self, top=None, skip=None):
        self.calls.append(("get_integration_packages", (top, skip)))
        if self.list_error is not None:
            raise self.list_error
        packages = self.packages[skip or 0:]
        if top is not None:
            packages = packages[:top]
        return [dict(pkg) for pkg in packages]

    async def get_integration_flows(self, package_id):
        return await self._call("get_integration_flows", package_id, self.flows.get(package_id, []))

    async def get_script_collections(self, package_id):
        return await self._call("get_script_collections", package_id, self.scripts.get(package_id, []))

    async def get_message_mappings(self, package_id):
        data = [m for m in self.message_mappings if m.get("PackageId") == package_id]
        return await self._call("get_message_mappings", package_id, data)

    async def get_value_mappings(self, package_id):
        data = [m for m in self.value_mappings if m.get("PackageId") == package_id]
        return await self._call("get_value_mappings", package_id, data)

    async def get_all_message_mappings(self, top=None, skip=None, select=None, orderby=None):
        return await self._call("get_all_message_mappings", None, self.message_mappings)

    async def get_all_value_mappings(self, top=None, skip=None, select=None, orderby=None):
        return await self._call("get_all_value_mappings", None, self.value_mappings)


@pytest.fixture
def fake_client_factory():
    """Build FakeIntegrationContentClient instances with per-test data."""
    return FakeIntegrationContentClient


@pytest.fixture
def sample_packages():
    return [{"Id": "PkgA", "Name": "Package A"}, {"Id": "PkgB", "Name": "Package B"}, {"Id": "PkgC", "Name": "Package C"}]


@pytest.fixture
def mock_aiohttp_session():
    """Provide a mock aiohttp session for async tests."""
    session = MagicMock()
    session.closed = False
    response = AsyncMock()
    response.status = 200
    response.json = AsyncMock()
    response.text = AsyncMock(return_value="")

    # Make the session.get return an async context manager
    session.get.return_value.__aenter__.return_value = response
    session.get.return_value.__aexit__.return_value = None

    return session, response


@pytest.fixture
def mock_logger():
    """Provide a mock logger with assertion helpers."""
    logger = MagicMock()

    # Track all log calls
    logger._calls = {
        "debug": [],
        "info": [],
        "warning": [],
        "error": [],
        "critical": [],
    }

    def make_log_method(level):
        def log_method(msg, *args, **kwargs):
            logger._calls[level].append(str(msg))

        return log_method

    logger.debug = make_log_method("debug")
    logger.info = make_log_method("info")
    logger.warning = make_log_method("warning")
    logger.error = make_log_method("error")
    logger.critical = make_log_method("critical")

    def assert_logged(level, substring):
        messages = logger._calls.get(level, [])
        assert any(substring in msg for msg in messages), (
            f"'{substring}' not found in {level} logs: {messages}"
        )

    logger.assert_logged = assert_logged

    return logger
