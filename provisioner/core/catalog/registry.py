"""
Application catalog — read-only registry of installable applications.

The catalog is an explicit object handed to the resolver and compiler,
so tests (and operators) can substitute their own application sets::

    catalog = ApplicationCatalog.from_recipes({"a": {...}, "b": {...}})
    catalog = ApplicationCatalog.from_yaml(Path("catalog.yml"))
    catalog = default_catalog()
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from provisioner.core.errors import ConfigurationError
from provisioner.core.models.application import ApplicationDescriptor, Task

logger = logging.getLogger(__name__)

# Keys that sit beside the module key in a runner task
TASK_KEYWORDS = frozenset({
    "name", "loop", "when", "become", "become_user", "register", "notify",
    "tags", "ignore_errors", "changed_when", "failed_when", "vars",
    "environment", "args", "delegate_to", "until", "retries", "delay",
    "no_log", "with_items", "loop_control",
})


def task_from_dict(raw: Mapping[str, Any]) -> Task:
    """Parse a runner-native task mapping into a ``Task``.

    Exactly one non-keyword key is expected: the module.
    """
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Task must be a mapping, got {type(raw).__name__}")

    modules = [k for k in raw if k not in TASK_KEYWORDS]
    if len(modules) != 1:
        raise ConfigurationError(
            f"Task {raw.get('name', '?')!r} must name exactly one module, found {modules}"
        )
    module = modules[0]
    params = raw[module]
    if params is None:
        params = {}
    extra = {k: v for k, v in raw.items() if k not in ("name", module)}
    try:
        return Task(
            name=str(raw.get("name", module)),
            module=module,
            params=params,
            extra=extra,
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid task {raw.get('name', module)!r}: {e}") from e


def descriptor_from_recipe(app_id: str, recipe: Mapping[str, Any]) -> ApplicationDescriptor:
    """Build an ``ApplicationDescriptor`` from a recipe mapping."""
    tasks_raw = recipe.get("tasks", {}) or {}
    if not isinstance(tasks_raw, Mapping):
        raise ConfigurationError(f"Application '{app_id}': 'tasks' must map OS → task list")

    tasks_by_os: dict[str, tuple[Task, ...]] = {}
    for os_name, task_list in tasks_raw.items():
        if not isinstance(task_list, list):
            raise ConfigurationError(
                f"Application '{app_id}': tasks for '{os_name}' must be a list"
            )
        tasks_by_os[str(os_name)] = tuple(task_from_dict(t) for t in task_list)

    try:
        return ApplicationDescriptor(
            id=app_id,
            display_name=recipe.get("label", app_id),
            dependencies=frozenset(recipe.get("requires", []) or []),
            tasks_by_os=tasks_by_os,
            secrets=tuple(recipe.get("secrets", []) or []),
            variables=dict(recipe.get("variables", {}) or {}),
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid application '{app_id}': {e}") from e


class ApplicationCatalog:
    """Immutable lookup of ``ApplicationDescriptor`` by id."""

    def __init__(self, descriptors: Iterable[ApplicationDescriptor]) -> None:
        entries: dict[str, ApplicationDescriptor] = {}
        for desc in descriptors:
            if desc.id in entries:
                raise ConfigurationError(f"Duplicate application id in catalog: {desc.id}")
            entries[desc.id] = desc
        self._entries = entries

    @classmethod
    def from_recipes(cls, recipes: Mapping[str, Mapping[str, Any]]) -> ApplicationCatalog:
        return cls(descriptor_from_recipe(app_id, r) for app_id, r in recipes.items())

    @classmethod
    def from_yaml(cls, path: Path) -> ApplicationCatalog:
        """Load a catalog file shaped like ``{applications: {id: recipe}}``."""
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot read catalog {path}: {e}") from e

        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Expected a YAML mapping in {path}")

        apps = data.get("applications", data)
        if not isinstance(apps, dict):
            raise ConfigurationError(f"'applications' in {path} must be a mapping")

        catalog = cls.from_recipes(apps)
        logger.info("Loaded catalog from %s with %d applications", path, len(catalog))
        return catalog

    # ── Lookup ──────────────────────────────────────────────────

    def get(self, app_id: str) -> ApplicationDescriptor | None:
        return self._entries.get(app_id)

    def require(self, app_id: str) -> ApplicationDescriptor:
        """Look up an application the caller asked for; unknown ids are fatal."""
        desc = self._entries.get(app_id)
        if desc is None:
            raise ConfigurationError(f"Unknown application: '{app_id}'")
        return desc

    def ids(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, app_id: object) -> bool:
        return app_id in self._entries

    def __iter__(self) -> Iterator[ApplicationDescriptor]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"<ApplicationCatalog apps={len(self._entries)}>"


_DEFAULT: ApplicationCatalog | None = None


def default_catalog() -> ApplicationCatalog:
    """The built-in catalog, built once per process."""
    global _DEFAULT
    if _DEFAULT is None:
        from provisioner.core.catalog.applications import APPLICATION_RECIPES

        _DEFAULT = ApplicationCatalog.from_recipes(APPLICATION_RECIPES)
    return _DEFAULT
