"""
Application models — catalog entries and the tasks they contribute.

A ``Task`` is opaque to the engine: a runner module name plus its
parameters. The engine only orders tasks; the external runner
interprets them.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

OperatingSystem = Literal["linux", "windows"]

SUPPORTED_OS: tuple[str, ...] = ("linux", "windows")


class Task(BaseModel):
    """One named unit of work for the runner.

    ``params`` is usually a mapping; free-form modules (``shell``,
    ``command``) take a plain string. ``extra`` holds task keywords
    that sit beside the module key (``loop``, ``when``, ``become_user``).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    module: str
    params: dict[str, Any] | str = Field(default_factory=dict)
    extra: dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Runner-native shape: ``{name, <module>: params, **extra}``."""
        data: dict[str, Any] = {"name": self.name, self.module: self.params}
        for key, value in self.extra.items():
            data[key] = value
        return data


class ApplicationDescriptor(BaseModel):
    """An installable application known to the catalog."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    dependencies: frozenset[str] = Field(default_factory=frozenset)
    tasks_by_os: dict[str, tuple[Task, ...]] = Field(default_factory=dict)
    secrets: tuple[str, ...] = ()          # play vars supplied out-of-band
    variables: dict[str, str] = Field(default_factory=dict)

    def tasks_for(self, operating_system: str) -> tuple[Task, ...]:
        """Tasks for an OS, or an empty tuple when the app does not support it."""
        return self.tasks_by_os.get(operating_system, ())

    def supports(self, operating_system: str) -> bool:
        return bool(self.tasks_by_os.get(operating_system))
