"""Rotating batch scheduler.

Each run handles at most ``limit`` packages, to stay under the GitHub API
rate limit, starting from the head of the persisted list. Afterwards the list
is rotated so the packages that were not reached come first next time:

    [a, b, c, d, e], limit 2  →  visits a, b  →  persisted [c, d, e, a, b]

This is a circular cursor rather than a priority queue: every package is
revisited at least once every ceil(N / limit) runs without tracking any
per-package timestamps.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Container, Sequence
from typing import TypeVar

from aqua_registry_updater.errors import PackageError, RunCancelled
from aqua_registry_updater.models import BatchResult, Outcome, Package, PackageResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

Handler = Callable[[Package], PackageResult]


def rotate(items: Sequence[T], index: int) -> list[T]:
    """Move ``items[:index]`` behind ``items[index:]``.

    Example:
        rotate([a, b, c, d], 1) → [b, c, d, a]
    """
    return list(items[index:]) + list(items[:index])


def log_outcome(name: str, outcome: Outcome, msg: str = "handled a package") -> None:
    level = logging.ERROR if outcome is Outcome.ERRORED else logging.INFO
    logger.log(
        level,
        "%s pkg_name=%s outcome=%s",
        msg,
        name,
        outcome.value,
        extra={"pkg_name": name, "outcome": outcome.value},
    )


def run_batch(
    packages: Sequence[Package],
    limit: int,
    ignore: Container[str],
    handle: Handler,
    result: BatchResult | None = None,
) -> BatchResult:
    """Handle packages in list order until ``limit`` budget units are used.

    Ignored packages are visited but neither handled nor counted. A package
    counts against the budget when its result (or its PackageError) says it
    was consumed; other exceptions always count. Per-package errors are
    logged and never stop the loop.

    ``result`` is updated in place while iterating, so a caller holding it
    knows where the loop stopped even if it is interrupted by
    KeyboardInterrupt or RunCancelled (which are re-raised).

    Args:
        packages: The reconciled package list.
        limit: Budget for this run.
        ignore: Names to skip.
        handle: Per-package pipeline.
        result: Progress record to update; a new one if None.

    Returns:
        The progress record. ``stop_index`` is the index of the first
        package that was not visited, ``len(packages)`` if all were.
    """
    if result is None:
        result = BatchResult()
    result.stop_index = 0
    for i, pkg in enumerate(packages):
        result.stop_index = i
        # Limitation to avoid GitHub API rate limiting
        if result.processed >= limit:
            logger.info("reached the limit of %d packages", limit)
            break
        if pkg.name in ignore:
            result.outcomes[pkg.name] = Outcome.IGNORED
            log_outcome(pkg.name, Outcome.IGNORED, "ignored a package")
            continue
        logger.info("handling a package pkg_name=%s", pkg.name, extra={"pkg_name": pkg.name})
        try:
            pkg_result = handle(pkg)
        except (KeyboardInterrupt, RunCancelled):
            result.cancelled = True
            logger.warning("interrupted while handling %s", pkg.name)
            raise
        except PackageError as exc:
            logger.error(
                "handle a package pkg_name=%s: %s",
                pkg.name,
                exc,
                extra={"pkg_name": pkg.name, "outcome": Outcome.ERRORED.value},
            )
            pkg_result = PackageResult(consumed=exc.consumed, outcome=Outcome.ERRORED)
        except Exception:
            # Any other failure is still a per-package error and counts against the limit
            logger.exception(
                "unexpected error handling a package pkg_name=%s",
                pkg.name,
                extra={"pkg_name": pkg.name, "outcome": Outcome.ERRORED.value},
            )
            pkg_result = PackageResult(consumed=True, outcome=Outcome.ERRORED)
        else:
            log_outcome(pkg.name, pkg_result.outcome)
        result.outcomes[pkg.name] = pkg_result.outcome
        if pkg_result.consumed:
            result.processed += 1
    else:
        result.stop_index = len(packages)
    return result
