"""OData API client for SAP Cloud Integration."""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote, urlencode

import aiohttp
import backoff

from ..config.api import APIConfig
from .error_handling import ODataRequestError, categorize_error, is_retryable_error

_module_logger = logging.getLogger(__name__)


def _backoff_handler(details):
    """Handler for logging backoff attempts with error categorization."""
    exception = details["exception"]
    error_category = categorize_error(exception)
    _module_logger.warning(
        f"Backing off {details['wait']:.1f}s after {error_category.value} error "
        f"(attempt {details['tries']}/{APIConfig.MAX_RETRIES}): {exception}"
    )


def _giveup(exception: Exception) -> bool:
    return not is_retryable_error(exception)


def build_query(
    top: Optional[int] = None,
    skip: Optional[int] = None,
    filter: Optional[str] = None,
    orderby: Optional[Sequence[str]] = None,
    select: Optional[Sequence[str]] = None,
) -> str:
    """Build an OData query string; spaces are sent as %20, never '+'."""
    params: List[tuple] = [("$format", "json")]
    if top is not None:
        params.append(("$top", int(top)))
    if skip is not None:
        params.append(("$skip", int(skip)))
    if filter:
        params.append(("$filter", filter))
    if orderby:
        params.append(("$orderby", ",".join(orderby)))
    if select:
        params.append(("$select", ",".join(select)))
    return urlencode(params, quote_via=quote, safe="$'(),:")


def extract_results(payload: Any) -> List[Dict[str, Any]]:
    """Normalize OData v2 (``d.results``) and v4 (``value``) collection payloads."""
    if payload is None:
        return []
    if isinstance(payload, list):
        return payload
    if "d" in payload:
        inner = payload["d"]
        if isinstance(inner, dict) and "results" in inner:
            return list(inner["results"] or [])
        if isinstance(inner, list):
            return inner
        return [inner] if inner else []
    if "value" in payload:
        return list(payload["value"] or [])
    return []


class ODataClient:
    """Client for fetching data from the SAP Cloud Integration OData API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        auth: Optional[aiohttp.BasicAuth] = None,
        headers: Optional[Dict[str, str]] = None,
        logger_obj: Optional[logging.Logger] = None,
    ):
        self.logger = logger_obj or logging.getLogger(__name__)
        self.config = APIConfig()
        self.base_url = (base_url or self.config.BASE_URL).rstrip("/")
        if not self.base_url:
            raise ValueError("ODataClient requires 'base_url' (or the CPI_BASE_URL environment variable)")
        self._session = session
        self._owns_session = session is None
        self._auth = auth
        self._headers = {"Accept": "application/json", **(headers or {})}

    async def __aenter__(self) -> "ODataClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(auth=self._auth, headers=self._headers)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def build_url(self, path: str, **query) -> str:
        """Build the full request URL for an entity path and query options."""
        url = APIConfig.get_entity_url(path, self.base_url)
        query_string = build_query(**query)
        return f"{url}?{query_string}" if query_string else url

    @backoff.on_exception(
        backoff.expo,
        (aiohttp.ClientError, asyncio.TimeoutError, ODataRequestError),
        max_tries=APIConfig.MAX_RETRIES,
        giveup=_giveup,
        on_backoff=_backoff_handler,
        jitter=backoff.full_jitter,
        base=APIConfig.RETRY_BASE_DELAY,
        max_value=APIConfig.RETRY_MAX_DELAY,
    )
    async def fetch_json(self, url: str) -> Any:
        """Fetch JSON data from a URL with retries."""
        session = self._get_session()
        try:
            timeout = aiohttp.ClientTimeout(total=self.config.REQUEST_TIMEOUT)
            async with session.get(url, timeout=timeout) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    raise ODataRequestError(
                        f"HTTP {resp.status} for {url}", status_code=resp.status, url=url, body=body[:500]
                    )
                return await resp.json(content_type=None)

        except Exception as e:
            error_category = categorize_error(e)
            self.logger.debug(f"Request failed with {error_category.value} error: {e}")
            raise

    async def get_collection(self, path: str, **query) -> List[Dict[str, Any]]:
        """GET an entity collection and return its records."""
        payload = await self.fetch_json(self.build_url(path, **query))
        return extract_results(payload)

    async def get_value(self, path: str) -> Any:
        """GET a single document (e.g. a ``$value`` stream) without query options."""
        return await self.fetch_json(APIConfig.get_entity_url(path, self.base_url))
