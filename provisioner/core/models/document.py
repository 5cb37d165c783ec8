"""
Playbook document model — the compiled, ordered task list.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from provisioner.core.models.application import Task


class Play(BaseModel):
    """One play: a host pattern, variables, and an ordered task list."""

    name: str
    hosts: str = "all"
    become: bool = True
    vars: dict[str, Any] = Field(default_factory=dict)
    tasks: list[Task] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "hosts": self.hosts,
            "become": self.become,
            "vars": dict(self.vars),
            "tasks": [t.to_dict() for t in self.tasks],
        }


class PlaybookDocument(BaseModel):
    """A document is a list of plays; the compiler emits exactly one."""

    plays: list[Play] = Field(default_factory=list)
    resolved_order: list[str] = Field(default_factory=list)
    operating_system: str = "linux"

    @property
    def task_count(self) -> int:
        return sum(len(p.tasks) for p in self.plays)

    def task_names(self) -> list[str]:
        return [t.name for p in self.plays for t in p.tasks]

    def to_list(self) -> list[dict[str, Any]]:
        return [p.to_dict() for p in self.plays]
