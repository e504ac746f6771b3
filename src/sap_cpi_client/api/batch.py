"""Bounded-concurrency fan-out helpers for per-package requests."""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from tqdm import tqdm

from ..config.api import APIConfig
from .error_handling import categorize_error, is_rate_limit_error
from .models import PARENT_ID_FIELD, RateLimitCounter, Record

_module_logger = logging.getLogger(__name__)

Task = Callable[[], Awaitable[Any]]
ChildFetcher = Callable[[str], Awaitable[List[Record]]]


async def run_bounded(tasks: Sequence[Task], limit: int) -> List[Any]:
    """Run deferred tasks with at most ``limit`` of them in flight.

    A task is only started once a slot is free. Every task runs to completion,
    queued ones included, even when another task fails. An exception that a
    task does not handle itself is raised once all tasks have settled; with
    several such failures the first in task order is raised. Result order is
    not guaranteed to callers.
    """
    if limit < 1:
        raise ValueError(f"Concurrency limit must be at least 1, got {limit}")
    if not tasks:
        return []

    semaphore = asyncio.Semaphore(limit)

    async def run(task: Task):
        async with semaphore:
            return await task()

    outcomes = await asyncio.gather(*(run(task) for task in tasks), return_exceptions=True)
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome
    return outcomes


def parent_ids_of(parents: Sequence[Record]) -> List[str]:
    """Extract parent identifiers, rejecting records that have none."""
    if not isinstance(parents, (list, tuple)):
        raise ValueError(f"Expected a list of packages, got {type(parents).__name__}")
    ids = []
    for index, parent in enumerate(parents):
        if not isinstance(parent, Mapping) or not parent.get("Id"):
            raise ValueError(f"Package at position {index} has no 'Id'")
        ids.append(str(parent["Id"]))
    return ids


async def fan_out(
    parents: Sequence[Record],
    fetch: ChildFetcher,
    limit: int = APIConfig.CONCURRENCY_LIMIT,
    parent_field: str = PARENT_ID_FIELD,
    counter: Optional[RateLimitCounter] = None,
    label: str = "artifacts",
    logger_obj: Optional[logging.Logger] = None,
    debug: bool = False,
    show_progress: bool = False,
) -> List[Record]:
    """Fetch children for every parent and return them as one flat list.

    Children missing ``parent_field`` get the id of the parent whose request
    returned them. A failing parent contributes nothing; rate-limit failures
    are tallied on ``counter``.
    """
    logger = logger_obj or _module_logger
    parent_ids = parent_ids_of(parents)
    collected: List[Record] = []

    with tqdm(
        total=len(parent_ids), desc=f"Fetching {label}", unit="pkg", leave=False, disable=not show_progress
    ) as pbar:

        def make_task(parent_id: str) -> Task:
            async def task() -> List[Record]:
                try:
                    children = list(await fetch(parent_id) or [])
                except Exception as e:
                    if counter is not None and is_rate_limit_error(e):
                        counter.increment()
                    log = logger.error if debug else logger.debug
                    log(f"Error fetching {label} for package {parent_id}: {categorize_error(e).value} - {e}")
                    return []
                finally:
                    pbar.update(1)

                for child in children:
                    if not child.get(parent_field):
                        child[parent_field] = parent_id
                collected.extend(children)
                return children

            return task

        await run_bounded([make_task(parent_id) for parent_id in parent_ids], limit)

    return collected


def partition_by_parent(children: Sequence[Record], parent_field: str = PARENT_ID_FIELD) -> Dict[str, List[Record]]:
    """Group children by their own parent id; children without one are dropped."""
    groups: Dict[str, List[Record]] = {}
    for child in children:
        parent_id = child.get(parent_field)
        if not parent_id:
            continue
        groups.setdefault(str(parent_id), []).append(child)
    return groups
