import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import aiohttp
import typer

from .api.advanced import IntegrationContentAdvancedClient, MessageProcessingLogsAdvancedClient
from .api.integration_content import IntegrationContentClient
from .api.message_processing_logs import MessageProcessingLogsClient
from .api.models import ArtifactKind, RateLimitCounter
from .api.odata_client import ODataClient
from .config.api import APIConfig
from .utils.logger_setup import setup_logging

app = typer.Typer(
    name="sap-cpi",
    help="Inspect SAP Cloud Integration packages, artifacts and message processing logs.",
    add_completion=False,
)

BaseUrlOption = typer.Option(None, "--base-url", envvar="CPI_BASE_URL", help="OData API root of the tenant.")
UserOption = typer.Option(None, "--user", envvar="CPI_USER", help="Basic auth user.")
PasswordOption = typer.Option(None, "--password", envvar="CPI_PASSWORD", help="Basic auth password.")
DebugOption = typer.Option(False, "--debug", help="Log absorbed request failures as errors.")


def _build_odata_client(base_url: Optional[str], user: Optional[str], password: Optional[str]) -> ODataClient:
    auth = aiohttp.BasicAuth(user, password or "") if user else None
    return ODataClient(base_url=base_url, auth=auth)


async def fetch_packages_with_artifacts(
    base_url: Optional[str] = None,
    user: Optional[str] = None,
    password: Optional[str] = None,
    debug: bool = False,
    **options,
) -> Dict[str, Any]:
    """Run the aggregation and return the packages plus the rate-limit count."""
    counter = RateLimitCounter()
    async with _build_odata_client(base_url, user, password) as odata:
        client = IntegrationContentAdvancedClient(IntegrationContentClient(odata), debug=debug)
        packages = await client.get_packages_with_artifacts(counter=counter, **options)
    return {"packages": packages, "rate_limit_errors": counter.count}


async def fetch_artifact_error(
    artifact_id: str,
    base_url: Optional[str] = None,
    user: Optional[str] = None,
    password: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """Parsed error details of a deployed artifact, None when there are none."""
    async with _build_odata_client(base_url, user, password) as odata:
        client = IntegrationContentAdvancedClient(IntegrationContentClient(odata))
        error_info = await client.get_detailed_artifact_error_information(artifact_id)
        return client.parse_error_details(error_info)


async def fetch_error_statistics(
    flow_id: str,
    base_url: Optional[str] = None,
    user: Optional[str] = None,
    password: Optional[str] = None,
    **options,
) -> List[Dict[str, Any]]:
    async with _build_odata_client(base_url, user, password) as odata:
        client = MessageProcessingLogsAdvancedClient(MessageProcessingLogsClient(odata))
        return await client.get_error_statistics_for_flow(flow_id, **options)


async def fetch_flow_performance(
    flow_id: str,
    base_url: Optional[str] = None,
    user: Optional[str] = None,
    password: Optional[str] = None,
    **options,
) -> Dict[str, Any]:
    async with _build_odata_client(base_url, user, password) as odata:
        client = MessageProcessingLogsAdvancedClient(MessageProcessingLogsClient(odata))
        return await client.analyze_flow_performance(flow_id, **options)


def _configure_logging(debug: bool) -> None:
    setup_logging(log_level=logging.DEBUG if debug else logging.INFO, log_to_file=False)


def _fail(error: Exception) -> None:
    typer.secho(f"An unexpected error occurred: {error}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


@app.command()
def packages(
    top: Optional[int] = typer.Option(None, "--top", help="Maximum number of packages to list."),
    skip: Optional[int] = typer.Option(None, "--skip", help="Number of packages to skip."),
    include_empty: bool = typer.Option(False, "--include-empty", help="Keep packages without artifacts."),
    parallel: bool = typer.Option(False, "--parallel", help="Fetch all artifact kinds concurrently."),
    concurrency: int = typer.Option(APIConfig.CONCURRENCY_LIMIT, "--concurrency", "-c", min=1),
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON."),
    base_url: Optional[str] = BaseUrlOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
    debug: bool = DebugOption,
):
    """
    List integration packages with their flows, mappings and script collections.
    """
    _configure_logging(debug)
    try:
        outcome = asyncio.run(
            fetch_packages_with_artifacts(
                base_url=base_url,
                user=user,
                password=password,
                debug=debug,
                top=top,
                skip=skip,
                include_empty=include_empty,
                parallel=parallel,
                concurrency=concurrency,
            )
        )
    except Exception as e:
        _fail(e)

    if as_json:
        typer.echo(json.dumps([entry.to_dict() for entry in outcome["packages"]], indent=2, default=str))
    else:
        for entry in outcome["packages"]:
            counts = ", ".join(f"{kind.name.lower()}={len(entry.artifacts[kind])}" for kind in ArtifactKind)
            typer.echo(f"{entry.package_id}: {counts}")
        typer.echo(f"{len(outcome['packages'])} packages")

    if outcome["rate_limit_errors"]:
        typer.secho(
            f"Warning: {outcome['rate_limit_errors']} requests were rate limited; results may be incomplete.",
            fg=typer.colors.YELLOW,
            err=True,
        )


@app.command("artifact-error")
def artifact_error(
    artifact_id: str = typer.Argument(..., help="Id of the deployed integration artifact."),
    base_url: Optional[str] = BaseUrlOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
    debug: bool = DebugOption,
):
    """
    Show why a deployed artifact is in error state.
    """
    _configure_logging(debug)
    try:
        details = asyncio.run(fetch_artifact_error(artifact_id, base_url=base_url, user=user, password=password))
    except Exception as e:
        _fail(e)

    if not details:
        typer.secho(f"No detailed error information for {artifact_id}.", fg=typer.colors.GREEN)
        return
    if details["message"]:
        typer.echo(f"Error: {details['message']}")
    if details["childMessageInstances"]:
        root_cause = details["childMessageInstances"][0]
        typer.echo(f"Root cause: {root_cause['message']}")
        if root_cause["parameters"]:
            typer.echo(f"Details: {root_cause['parameters'][0]}")
    elif details["parameters"]:
        typer.echo(f"Details: {details['parameters'][0]}")


@app.command("error-stats")
def error_stats(
    flow_id: str = typer.Argument(..., help="Integration flow name."),
    max_results: int = typer.Option(APIConfig.ERROR_MAX_RESULTS, "--max-results", min=1),
    base_url: Optional[str] = BaseUrlOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
    debug: bool = DebugOption,
):
    """
    Show the error types of a flow's failed messages in the last 24 hours.
    """
    _configure_logging(debug)
    try:
        statistics = asyncio.run(
            fetch_error_statistics(flow_id, base_url=base_url, user=user, password=password, max_results=max_results)
        )
    except Exception as e:
        _fail(e)

    if not statistics:
        typer.secho(f"No failed messages for {flow_id}.", fg=typer.colors.GREEN)
        return
    for entry in statistics:
        typer.echo(f"{entry['count']:>5}  {entry['percentage']:>3}%  {entry['errorType']}")


@app.command()
def performance(
    flow_id: str = typer.Argument(..., help="Integration flow name."),
    max_results: int = typer.Option(APIConfig.PERFORMANCE_MAX_RESULTS, "--max-results", min=1),
    threshold: float = typer.Option(APIConfig.OUTLIER_THRESHOLD, "--threshold", help="Outlier distance in std-devs."),
    skip_incomplete: bool = typer.Option(False, "--skip-incomplete", help="Ignore logs without start or end."),
    base_url: Optional[str] = BaseUrlOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
    debug: bool = DebugOption,
):
    """
    Summarize processing durations of a flow over the last 7 days.
    """
    _configure_logging(debug)
    try:
        analysis = asyncio.run(
            fetch_flow_performance(
                flow_id,
                base_url=base_url,
                user=user,
                password=password,
                max_results=max_results,
                outlier_threshold=threshold,
                skip_incomplete=skip_incomplete,
            )
        )
    except Exception as e:
        _fail(e)

    typer.echo(f"Logs:    {analysis['totalLogs']}")
    typer.echo(f"Average: {analysis['avgDuration']:.0f} ms")
    typer.echo(f"Median:  {analysis['medianDuration']:.0f} ms")
    typer.echo(f"Min/Max: {analysis['minDuration']:.0f} / {analysis['maxDuration']:.0f} ms")
    typer.echo(f"StdDev:  {analysis['stdDevDuration']:.0f} ms")
    typer.echo(f"Outliers: {len(analysis['outliers'])}")
    for log in analysis["outliers"]:
        typer.echo(f"  {log.get('MessageGuid')}  {log.get('LogStart')} -> {log.get('LogEnd')}")


if __name__ == "__main__":
    app()
