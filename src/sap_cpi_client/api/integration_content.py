"""Integration Content API wrappers (packages, designtime artifacts and runtime errors)."""

import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

from ..utils.odata_filter import escape_odata_string
from .odata_client import ODataClient


def _entity_path(entity_set: str, key: str, navigation: str) -> str:
    quoted = quote(escape_odata_string(key), safe="")
    return f"{entity_set}('{quoted}')/{navigation}"


def _package_path(package_id: str, navigation: str) -> str:
    return _entity_path("IntegrationPackages", package_id, navigation)


class IntegrationContentClient:
    """Typed pass-through to the Integration Content OData endpoints."""

    def __init__(self, odata_client: ODataClient, logger_obj: Optional[logging.Logger] = None):
        self.odata = odata_client
        self.logger = logger_obj or logging.getLogger(__name__)

    async def get_integration_packages(
        self, top: Optional[int] = None, skip: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        return await self.odata.get_collection("IntegrationPackages", top=top, skip=skip)

    async def get_integration_flows(self, package_id: str) -> List[Dict[str, Any]]:
        return await self.odata.get_collection(_package_path(package_id, "IntegrationDesigntimeArtifacts"))

    async def get_script_collections(self, package_id: str) -> List[Dict[str, Any]]:
        return await self.odata.get_collection(_package_path(package_id, "ScriptCollectionDesigntimeArtifacts"))

    async def get_message_mappings(self, package_id: str) -> List[Dict[str, Any]]:
        return await self.odata.get_collection(_package_path(package_id, "MessageMappingDesigntimeArtifacts"))

    async def get_value_mappings(self, package_id: str) -> List[Dict[str, Any]]:
        return await self.odata.get_collection(_package_path(package_id, "ValueMappingDesigntimeArtifacts"))

    async def get_all_message_mappings(
        self,
        top: Optional[int] = None,
        skip: Optional[int] = None,
        select: Optional[Sequence[str]] = None,
        orderby: Optional[Sequence[str]] = None,
    ) -> List[Dict[str, Any]]:
        """Tenant-wide message mappings; each record carries its PackageId."""
        return await self.odata.get_collection(
            "MessageMappingDesigntimeArtifacts", top=top, skip=skip, select=select, orderby=orderby
        )

    async def get_all_value_mappings(
        self,
        top: Optional[int] = None,
        skip: Optional[int] = None,
        select: Optional[Sequence[str]] = None,
        orderby: Optional[Sequence[str]] = None,
    ) -> List[Dict[str, Any]]:
        """Tenant-wide value mappings; each record carries its PackageId."""
        return await self.odata.get_collection(
            "ValueMappingDesigntimeArtifacts", top=top, skip=skip, select=select, orderby=orderby
        )

    async def get_artifact_error_information(self, artifact_id: str) -> Optional[Dict[str, Any]]:
        """Error document of a deployed artifact (``ErrorInformation/$value``)."""
        payload = await self.odata.get_value(
            _entity_path("IntegrationRuntimeArtifacts", artifact_id, "ErrorInformation/$value")
        )
        return payload if isinstance(payload, dict) else None
