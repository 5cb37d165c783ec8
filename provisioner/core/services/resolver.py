"""
Dependency resolver — order requested applications (pure).

Depth-first topological sort restricted to the requested set:

    - dependencies the caller did not request are ignored, never added
    - request order breaks ties between independent applications
    - a dependency loop among requested applications is fatal

No I/O, no subprocess.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from provisioner.core.catalog.registry import ApplicationCatalog
from provisioner.core.errors import CyclicDependencyError

logger = logging.getLogger(__name__)


def resolve_order(requested: Sequence[str], catalog: ApplicationCatalog) -> list[str]:
    """Return ``requested`` reordered so dependencies come first.

    Args:
        requested: Application ids in the caller's preference order.
            Duplicates collapse to their first occurrence.
        catalog: Registry used to look up each application's dependencies.

    Returns:
        Flat ordered list; for every requested pair where ``b`` depends on
        ``a``, ``a`` precedes ``b``.

    Raises:
        ConfigurationError: An id is not in the catalog.
        CyclicDependencyError: Requested applications form a loop.
    """
    wanted = list(dict.fromkeys(requested))
    wanted_set = set(wanted)

    # Fail on unknown ids before walking anything
    for app_id in wanted:
        catalog.require(app_id)

    resolved: list[str] = []
    done: set[str] = set()
    in_progress: list[str] = []     # stack doubles as the cycle path

    def visit(app_id: str) -> None:
        if app_id in in_progress:
            raise CyclicDependencyError(app_id, chain=list(in_progress))
        if app_id in done:
            return

        in_progress.append(app_id)
        desc = catalog.require(app_id)
        # Sorted by request position so the walk is deterministic
        deps = sorted(
            (d for d in desc.dependencies if d in wanted_set),
            key=wanted.index,
        )
        skipped = sorted(d for d in desc.dependencies if d not in wanted_set)
        if skipped:
            logger.debug(
                "Ignoring unrequested dependencies of '%s': %s",
                app_id, ", ".join(skipped),
            )
        for dep in deps:
            visit(dep)
        in_progress.pop()

        done.add(app_id)
        resolved.append(app_id)

    for app_id in wanted:
        visit(app_id)

    return resolved


def validate_order(order: Sequence[str], catalog: ApplicationCatalog) -> list[str]:
    """Check an order against the catalog's dependency edges.

    Returns:
        List of error strings (empty = valid).
    """
    errors: list[str] = []
    position = {app_id: i for i, app_id in enumerate(order)}
    for app_id in order:
        desc = catalog.get(app_id)
        if desc is None:
            errors.append(f"Unknown application: '{app_id}'")
            continue
        for dep in desc.dependencies:
            if dep in position and position[dep] > position[app_id]:
                errors.append(f"'{dep}' must come before '{app_id}'")
    return errors
