"""Composite Integration Content operations.

The main entry point is :meth:`IntegrationContentAdvancedClient.get_packages_with_artifacts`,
which lists integration packages and fills in four artifact kinds for each:

- integration flows and script collections are only exposed per package, so
  they are fetched with one request per package under a concurrency limit;
- message mappings and value mappings have tenant-wide entity sets, so they
  are fetched once and grouped by their ``PackageId``.

Two strategies are available. ``parallel=True`` runs all four kinds at the
same time and lets a failure of a whole kind (for example the tenant-wide
value mapping endpoint being unreachable) propagate. The default sequential
strategy walks packages one at a time and turns every failed call into an
empty list.

Deployed artifacts in error state can be inspected with
:meth:`~IntegrationContentAdvancedClient.get_detailed_artifact_error_information`
and :meth:`~IntegrationContentAdvancedClient.parse_error_details`.
"""

import asyncio
import json
import logging
from typing import Awaitable, Dict, List, Optional, Sequence

from ...config.api import APIConfig
from ..batch import fan_out, partition_by_parent
from ..error_handling import ODataRequestError, categorize_error, is_rate_limit_error
from ..integration_content import IntegrationContentClient
from ..models import (
    GLOBAL_KINDS,
    PARENT_ID_FIELD,
    ArtifactKind,
    PackageWithArtifacts,
    RateLimitCounter,
    Record,
)
from .base import BaseAdvancedClient


class IntegrationContentAdvancedClient(BaseAdvancedClient[IntegrationContentClient]):
    """Composite operations over the Integration Content API."""

    def __init__(
        self,
        client: IntegrationContentClient,
        logger_obj: Optional[logging.Logger] = None,
        debug: Optional[bool] = None,
    ):
        super().__init__(client, logger_obj=logger_obj, debug=debug)
        self.rate_limit_counter = RateLimitCounter()

    def get_rate_limit_error_count(self) -> int:
        return self.rate_limit_counter.count

    def reset_rate_limit_error_count(self) -> None:
        self.rate_limit_counter.reset()

    def _per_package_fetcher(self, kind: ArtifactKind):
        return {
            ArtifactKind.INTEGRATION_FLOWS: self.client.get_integration_flows,
            ArtifactKind.SCRIPT_COLLECTIONS: self.client.get_script_collections,
            ArtifactKind.MESSAGE_MAPPINGS: self.client.get_message_mappings,
            ArtifactKind.VALUE_MAPPINGS: self.client.get_value_mappings,
        }[kind]

    def _global_lister(self, kind: ArtifactKind):
        if kind not in GLOBAL_KINDS:
            raise ValueError(f"{kind.name} has no tenant-wide endpoint")
        return {
            ArtifactKind.MESSAGE_MAPPINGS: self.client.get_all_message_mappings,
            ArtifactKind.VALUE_MAPPINGS: self.client.get_all_value_mappings,
        }[kind]

    async def _fan_out_kind(
        self,
        kind: ArtifactKind,
        packages: Sequence[Record],
        concurrency: int,
        counter: Optional[RateLimitCounter],
        show_progress: bool = False,
    ) -> List[Record]:
        return await fan_out(
            packages,
            self._per_package_fetcher(kind),
            limit=concurrency,
            counter=counter if counter is not None else self.rate_limit_counter,
            label=kind.value,
            logger_obj=self.logger,
            debug=self.debug,
            show_progress=show_progress,
        )

    async def _fetch_global(self, kind: ArtifactKind) -> Dict[str, List[Record]]:
        """One tenant-wide request, grouped by the PackageId each record carries."""
        children = await self._global_lister(kind)()
        return partition_by_parent(children)

    async def _fail_soft(
        self,
        call: Awaitable[List[Record]],
        description: str,
        counter: Optional[RateLimitCounter] = None,
    ) -> List[Record]:
        try:
            return list(await call or [])
        except Exception as e:
            if counter is not None and is_rate_limit_error(e):
                counter.increment()
            self._log_failure(f"Error fetching {description}: {categorize_error(e).value} - {e}")
            return []

    async def get_packages_with_artifacts(
        self,
        top: Optional[int] = None,
        skip: Optional[int] = None,
        include_empty: bool = False,
        parallel: bool = False,
        concurrency: int = APIConfig.CONCURRENCY_LIMIT,
        counter: Optional[RateLimitCounter] = None,
        show_progress: bool = False,
    ) -> List[PackageWithArtifacts]:
        """List integration packages together with their artifacts.

        Args:
            top: Maximum number of packages to list.
            skip: Number of packages to skip.
            include_empty: Keep packages that end up with no artifacts at all.
            parallel: Fetch all artifact kinds concurrently instead of package by package.
            concurrency: Maximum in-flight per-package requests (parallel only).
            counter: Rate-limit counter for this call; defaults to the client's own.
            show_progress: Show tqdm progress bars for per-package requests.

        Returns:
            One entry per package, in listing order.
        """
        if parallel and concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        counter = counter if counter is not None else self.rate_limit_counter
        rate_limited_before = counter.count

        packages = await self.client.get_integration_packages(top=top, skip=skip)
        if not packages:
            return []

        result = [PackageWithArtifacts(package=dict(pkg)) for pkg in packages]
        index_by_id: Dict[str, int] = {}
        for index, pkg in enumerate(packages):
            if pkg.get("Id"):
                index_by_id[str(pkg["Id"])] = index
        identifiable = [pkg for pkg in packages if pkg.get("Id")]

        self.logger.info(
            f"Collecting artifacts for {len(packages)} packages ({'parallel' if parallel else 'sequential'})"
        )

        if parallel:
            flows, scripts, message_mappings, value_mappings = await asyncio.gather(
                self._fan_out_kind(ArtifactKind.INTEGRATION_FLOWS, identifiable, concurrency, counter, show_progress),
                self._fan_out_kind(ArtifactKind.SCRIPT_COLLECTIONS, identifiable, concurrency, counter, show_progress),
                self._fetch_global(ArtifactKind.MESSAGE_MAPPINGS),
                self._fetch_global(ArtifactKind.VALUE_MAPPINGS),
            )

            for kind, children in (
                (ArtifactKind.INTEGRATION_FLOWS, flows),
                (ArtifactKind.SCRIPT_COLLECTIONS, scripts),
            ):
                for child in children:
                    index = index_by_id.get(str(child.get(PARENT_ID_FIELD)))
                    if index is not None:
                        result[index].artifacts[kind].append(child)

            for kind, groups in (
                (ArtifactKind.MESSAGE_MAPPINGS, message_mappings),
                (ArtifactKind.VALUE_MAPPINGS, value_mappings),
            ):
                for package_id, children in groups.items():
                    index = index_by_id.get(package_id)
                    if index is not None:
                        result[index].artifacts[kind].extend(children)
        else:
            message_mappings = partition_by_parent(
                await self._fail_soft(self._global_lister(ArtifactKind.MESSAGE_MAPPINGS)(), "message mappings", counter)
            )
            value_mappings = partition_by_parent(
                await self._fail_soft(self._global_lister(ArtifactKind.VALUE_MAPPINGS)(), "value mappings", counter)
            )

            for entry in result:
                package_id = entry.package_id
                if not package_id:
                    continue
                package_id = str(package_id)

                flows, scripts = await asyncio.gather(
                    self._fail_soft(
                        self.client.get_integration_flows(package_id),
                        f"integration flows for package {package_id}",
                        counter,
                    ),
                    self._fail_soft(
                        self.client.get_script_collections(package_id),
                        f"script collections for package {package_id}",
                        counter,
                    ),
                )
                for child in flows + scripts:
                    if not child.get(PARENT_ID_FIELD):
                        child[PARENT_ID_FIELD] = package_id

                entry.artifacts[ArtifactKind.INTEGRATION_FLOWS] = flows
                entry.artifacts[ArtifactKind.SCRIPT_COLLECTIONS] = scripts
                entry.artifacts[ArtifactKind.MESSAGE_MAPPINGS] = list(message_mappings.get(package_id, []))
                entry.artifacts[ArtifactKind.VALUE_MAPPINGS] = list(value_mappings.get(package_id, []))

        rate_limited = counter.count - rate_limited_before
        if rate_limited:
            self.logger.warning(f"{rate_limited} requests were rejected by rate limiting")

        if not include_empty:
            return [entry for entry in result if not entry.is_empty()]
        return result

    async def _resolve_packages(self, packages: Optional[Sequence[Record]], top: Optional[int]) -> List[Record]:
        if packages is not None:
            return list(packages)
        return await self.client.get_integration_packages(top=top)

    async def get_all_integration_flows(
        self,
        packages: Optional[Sequence[Record]] = None,
        top: Optional[int] = None,
        concurrency: int = APIConfig.CONCURRENCY_LIMIT,
        counter: Optional[RateLimitCounter] = None,
    ) -> List[Record]:
        """Integration flows of all packages (listing packages first unless given)."""
        packages = await self._resolve_packages(packages, top)
        return await self._fan_out_kind(ArtifactKind.INTEGRATION_FLOWS, packages, concurrency, counter)

    async def get_all_script_collections(
        self,
        packages: Optional[Sequence[Record]] = None,
        top: Optional[int] = None,
        concurrency: int = APIConfig.CONCURRENCY_LIMIT,
        counter: Optional[RateLimitCounter] = None,
    ) -> List[Record]:
        """Script collections of all packages (listing packages first unless given)."""
        packages = await self._resolve_packages(packages, top)
        return await self._fan_out_kind(ArtifactKind.SCRIPT_COLLECTIONS, packages, concurrency, counter)

    async def get_all_message_mappings(
        self,
        packages: Optional[Sequence[Record]] = None,
        top: Optional[int] = None,
        skip: Optional[int] = None,
        select: Optional[Sequence[str]] = None,
        orderby: Optional[Sequence[str]] = None,
        concurrency: int = APIConfig.CONCURRENCY_LIMIT,
        counter: Optional[RateLimitCounter] = None,
    ) -> List[Record]:
        """Per package when packages are given, otherwise the tenant-wide entity set."""
        if packages:
            return await self._fan_out_kind(ArtifactKind.MESSAGE_MAPPINGS, packages, concurrency, counter)
        return await self.client.get_all_message_mappings(top=top, skip=skip, select=select, orderby=orderby)

    async def get_all_value_mappings(
        self,
        packages: Optional[Sequence[Record]] = None,
        top: Optional[int] = None,
        skip: Optional[int] = None,
        select: Optional[Sequence[str]] = None,
        orderby: Optional[Sequence[str]] = None,
        concurrency: int = APIConfig.CONCURRENCY_LIMIT,
        counter: Optional[RateLimitCounter] = None,
    ) -> List[Record]:
        """Per package when packages are given, otherwise the tenant-wide entity set."""
        if packages:
            return await self._fan_out_kind(ArtifactKind.VALUE_MAPPINGS, packages, concurrency, counter)
        return await self.client.get_all_value_mappings(top=top, skip=skip, select=select, orderby=orderby)

    async def get_detailed_artifact_error_information(self, artifact_id: str) -> Optional[Record]:
        """Error document of a deployed artifact, or None when the tenant has none for it."""
        try:
            return await self.client.get_artifact_error_information(artifact_id)
        except ODataRequestError as e:
            if e.status_code == 404:
                self.logger.debug(f"No error information for artifact {artifact_id}")
                return None
            raise

    def parse_error_details(self, error_info: Optional[Record]) -> Optional[Record]:
        """Decode the JSON carried in ``parameter[0]`` of an artifact error document.

        Returns ``{"message", "parameters", "childMessageInstances"}``, where child
        instances are the underlying causes, or None when there is no parameter
        or it does not hold a JSON object.
        """
        parameters = (error_info or {}).get("parameter")
        if not isinstance(parameters, list) or not parameters:
            return None
        try:
            details = json.loads(parameters[0])
        except (TypeError, ValueError) as e:
            self.logger.debug(f"Error parameter is not JSON: {e}")
            return None
        if not isinstance(details, dict):
            return None

        return {
            "message": details.get("message"),
            "parameters": list(details.get("parameters") or []),
            "childMessageInstances": [
                {"message": child.get("message"), "parameters": list(child.get("parameters") or [])}
                for child in details.get("childMessageInstances") or []
                if isinstance(child, dict)
            ],
        }
