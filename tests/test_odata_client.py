"""
Unit tests for ODataClient and the thin API wrappers.

Tests cover:
- Query string and URL building
- OData v2/v4 payload normalization
- HTTP error mapping, retry and give-up behavior
- Session ownership
- Entity paths used by the Integration Content and log wrappers
"""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import aiohttp
import pytest

from sap_cpi_client.api.error_handling import ODataRequestError
from sap_cpi_client.api.integration_content import IntegrationContentClient
from sap_cpi_client.api.message_processing_logs import MessageProcessingLogsClient
from sap_cpi_client.api.odata_client import ODataClient, build_query, extract_results
from sap_cpi_client.config.api import APIConfig

BASE_URL = "https://tenant.example.com/api/v1"


class TestODataClientInit:
    """Test ODataClient initialization."""

    def test_default_init(self):
        client = ODataClient(base_url=BASE_URL + "/")
        assert client.base_url == BASE_URL
        assert client.logger is not None
        assert client.config is not None

    def test_custom_logger(self):
        mock_logger = Mock()
        client = ODataClient(base_url=BASE_URL, logger_obj=mock_logger)
        assert client.logger is mock_logger

    def test_requires_base_url(self):
        with patch.object(APIConfig, "BASE_URL", ""):
            with pytest.raises(ValueError, match="base_url"):
                ODataClient()


class TestQueryBuilding:
    def test_build_query_encodes_spaces_as_percent_20(self):
        query = build_query(top=10, skip=20, filter="Status eq 'FAILED'", orderby=["LogEnd desc"])

        assert query == "$format=json&$top=10&$skip=20&$filter=Status%20eq%20'FAILED'&$orderby=LogEnd%20desc"

    def test_build_query_omits_unset_options(self):
        assert build_query() == "$format=json"

    def test_build_query_select(self):
        assert build_query(select=["Id", "PackageId"]) == "$format=json&$select=Id,PackageId"

    def test_build_url(self):
        client = ODataClient(base_url=BASE_URL)
        assert client.build_url("IntegrationPackages", top=5) == f"{BASE_URL}/IntegrationPackages?$format=json&$top=5"


class TestExtractResults:
    @pytest.mark.parametrize(
        "payload, expected",
        [
            ({"d": {"results": [{"Id": 1}]}}, [{"Id": 1}]),
            ({"d": {"results": None}}, []),
            ({"d": {"Id": 1}}, [{"Id": 1}]),
            ({"value": [{"Id": 2}]}, [{"Id": 2}]),
            ([{"Id": 3}], [{"Id": 3}]),
            (None, []),
            ({"unexpected": True}, []),
        ],
    )
    def test_shapes(self, payload, expected):
        assert extract_results(payload) == expected


class TestFetchJson:
    """Test request execution against a mocked aiohttp session."""

    @pytest.mark.asyncio
    async def test_returns_json(self, mock_aiohttp_session):
        session, response = mock_aiohttp_session
        response.json.return_value = {"d": {"results": [{"Id": "P"}]}}
        client = ODataClient(base_url=BASE_URL, session=session)

        result = await client.get_collection("IntegrationPackages")

        assert result == [{"Id": "P"}]
        assert session.get.call_args[0][0] == f"{BASE_URL}/IntegrationPackages?$format=json"

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, mock_aiohttp_session):
        session, response = mock_aiohttp_session
        response.status = 404
        response.text.return_value = "Not Found"
        client = ODataClient(base_url=BASE_URL, session=session)

        with pytest.raises(ODataRequestError) as exc_info:
            await client.fetch_json(f"{BASE_URL}/Missing")

        assert exc_info.value.status_code == 404
        assert exc_info.value.url == f"{BASE_URL}/Missing"
        assert session.get.call_count == 1

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self, mock_aiohttp_session):
        session, response = mock_aiohttp_session
        busy = AsyncMock()
        busy.status = 503
        busy.text = AsyncMock(return_value="busy")
        response.json.return_value = {"value": []}
        session.get.return_value.__aenter__.side_effect = [busy, response]
        client = ODataClient(base_url=BASE_URL, session=session)

        with patch("asyncio.sleep", new_callable=AsyncMock):
            result = await client.fetch_json(f"{BASE_URL}/IntegrationPackages")

        assert result == {"value": []}
        assert session.get.call_count == 2

    @pytest.mark.asyncio
    async def test_rate_limit_surfaces_after_retries(self, mock_aiohttp_session):
        session, response = mock_aiohttp_session
        response.status = 429
        client = ODataClient(base_url=BASE_URL, session=session)

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(ODataRequestError) as exc_info:
                await client.fetch_json(f"{BASE_URL}/IntegrationPackages")

        assert exc_info.value.status_code == 429
        assert session.get.call_count == APIConfig.MAX_RETRIES


class TestBackoffHandler:
    def test_backoff_handler_logs_category(self):
        from sap_cpi_client.api.odata_client import _backoff_handler, _module_logger

        with patch.object(_module_logger, "warning") as mock_warning:
            _backoff_handler({"exception": asyncio.TimeoutError(), "wait": 5.0, "tries": 2})

        message = mock_warning.call_args[0][0]
        assert "Backing off 5.0s" in message
        assert "timeout" in message
        assert "attempt 2" in message


class TestSessionOwnership:
    @pytest.mark.asyncio
    async def test_closes_owned_session(self):
        client = ODataClient(base_url=BASE_URL)
        session = client._get_session()

        await client.close()

        assert session.closed

    @pytest.mark.asyncio
    async def test_leaves_caller_session_open(self, mock_aiohttp_session):
        session, _ = mock_aiohttp_session
        session.close = AsyncMock()

        async with ODataClient(base_url=BASE_URL, session=session):
            pass

        session.close.assert_not_called()

    @pytest.mark.asyncio
    async def test_owned_session_created_with_auth(self):
        auth = aiohttp.BasicAuth("user", "secret")
        client = ODataClient(base_url=BASE_URL, auth=auth)

        with patch("sap_cpi_client.api.odata_client.aiohttp.ClientSession") as session_cls:
            session_cls.return_value.closed = False
            client._get_session()

        assert session_cls.call_args.kwargs["auth"] == auth


class TestWrappers:
    @pytest.fixture
    def odata(self):
        odata = Mock()
        odata.get_collection = AsyncMock(return_value=[])
        return odata

    @pytest.mark.asyncio
    async def test_package_listing(self, odata):
        await IntegrationContentClient(odata).get_integration_packages(top=3, skip=6)
        odata.get_collection.assert_awaited_once_with("IntegrationPackages", top=3, skip=6)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method, navigation",
        [
            ("get_integration_flows", "IntegrationDesigntimeArtifacts"),
            ("get_script_collections", "ScriptCollectionDesigntimeArtifacts"),
            ("get_message_mappings", "MessageMappingDesigntimeArtifacts"),
            ("get_value_mappings", "ValueMappingDesigntimeArtifacts"),
        ],
    )
    async def test_per_package_paths(self, odata, method, navigation):
        await getattr(IntegrationContentClient(odata), method)("PkgA")
        odata.get_collection.assert_awaited_once_with(f"IntegrationPackages('PkgA')/{navigation}")

    @pytest.mark.asyncio
    async def test_package_key_is_escaped(self, odata):
        await IntegrationContentClient(odata).get_integration_flows("O'Pkg")
        path = odata.get_collection.call_args[0][0]
        assert path == "IntegrationPackages('O%27%27Pkg')/IntegrationDesigntimeArtifacts"

    @pytest.mark.asyncio
    async def test_tenant_wide_mappings(self, odata):
        client = IntegrationContentClient(odata)

        await client.get_all_value_mappings(top=2, orderby=["Name"])

        odata.get_collection.assert_awaited_once_with(
            "ValueMappingDesigntimeArtifacts", top=2, skip=None, select=None, orderby=["Name"]
        )

    @pytest.mark.asyncio
    async def test_message_processing_logs(self, odata):
        odata.get_collection.return_value = [{"MessageGuid": "g"}]

        result = await MessageProcessingLogsClient(odata).get_message_processing_logs(
            filter="Status eq 'FAILED'", top=10, orderby=["LogEnd desc"]
        )

        assert result == {"logs": [{"MessageGuid": "g"}]}
        odata.get_collection.assert_awaited_once_with(
            "MessageProcessingLogs", filter="Status eq 'FAILED'", top=10, skip=None, orderby=["LogEnd desc"]
        )

    @pytest.mark.asyncio
    async def test_artifact_error_information_path(self, odata):
        odata.get_value = AsyncMock(return_value={"parameter": ["{}"]})

        result = await IntegrationContentClient(odata).get_artifact_error_information("My'Flow")

        assert result == {"parameter": ["{}"]}
        odata.get_value.assert_awaited_once_with(
            "IntegrationRuntimeArtifacts('My%27%27Flow')/ErrorInformation/$value"
        )

    @pytest.mark.asyncio
    async def test_artifact_error_information_non_object_payload(self, odata):
        odata.get_value = AsyncMock(return_value=["unexpected"])

        assert await IntegrationContentClient(odata).get_artifact_error_information("F") is None


class TestGetValue:
    @pytest.mark.asyncio
    async def test_requests_document_without_query_options(self, mock_aiohttp_session):
        session, response = mock_aiohttp_session
        response.json.return_value = {"parameter": ["x"]}
        client = ODataClient(base_url=BASE_URL, session=session)

        result = await client.get_value("IntegrationRuntimeArtifacts('F')/ErrorInformation/$value")

        assert result == {"parameter": ["x"]}
        assert session.get.call_args[0][0] == f"{BASE_URL}/IntegrationRuntimeArtifacts('F')/ErrorInformation/$value"
