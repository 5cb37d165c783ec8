"""
Deployment models — lifecycle, run options, events, and results.

Lifecycle per deployment::

    created → running → succeeded
                      ↘ failed

``succeeded`` and ``failed`` are terminal. A failed deployment is not
retried by the engine; the caller starts a fresh one.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from provisioner.core.errors import ProvisioningError

DeploymentState = Literal["created", "running", "succeeded", "failed"]
RunStatus = Literal["succeeded", "failed", "timeout"]

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "created": {"running"},
    "running": {"succeeded", "failed"},
    "succeeded": set(),
    "failed": set(),
}


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class InvalidStateTransition(ProvisioningError):
    """A deployment was moved along an edge the lifecycle does not have."""


class Deployment(BaseModel):
    """One tracked invocation of the engine, owned by it exclusively."""

    id: str
    working_dir: str
    kind: Literal["playbook", "adhoc"] = "playbook"
    state: DeploymentState = "created"
    created_at: str = Field(default_factory=_now_iso)
    started_at: str | None = None
    finished_at: str | None = None
    exit_code: int | None = None
    timed_out: bool = False
    duration_ms: int = 0
    stdout: str = ""
    stderr: str = ""
    playbook_path: str | None = None
    inventory_path: str | None = None
    config_path: str | None = None
    log_path: str | None = None

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self.state]

    def transition(self, new_state: DeploymentState) -> None:
        """Move to ``new_state``, stamping the matching timestamp."""
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidStateTransition(
                f"Deployment '{self.id}' cannot go from {self.state} to {new_state}"
            )
        if new_state == "running":
            self.started_at = _now_iso()
        else:
            self.finished_at = _now_iso()
        self.state = new_state


class RunOptions(BaseModel):
    """Knobs that become runner command-line flags."""

    deployment_id: str | None = None
    check_mode: bool = False
    diff: bool = False
    limit: str | None = None
    tags: list[str] | str | None = None
    skip_tags: list[str] | str | None = None
    extra_vars: dict[str, Any] = Field(default_factory=dict)
    become: bool = True
    verbose: int = 0
    timeout_seconds: float | None = None
    pattern: str = "all"                 # ad-hoc host pattern

    @field_validator("verbose")
    @classmethod
    def _clamp_verbose(cls, value: int) -> int:
        return max(0, min(int(value), 4))

    @field_validator("timeout_seconds")
    @classmethod
    def _positive_timeout(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            raise ValueError("timeout_seconds must be positive")
        return value


class RunEvent(BaseModel):
    """One item on a run's event channel."""

    type: Literal["stdout", "stderr", "exit"]
    deployment_id: str = ""
    data: str = ""
    exit_code: int | None = None
    timed_out: bool = False


class RunResult(BaseModel):
    """Outcome of a runner invocation that actually started.

    A non-zero exit is a normal result (``success=False``); only spawn
    failures are raised.
    """

    deployment_id: str
    status: RunStatus
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    log_content: str = ""
    working_dir: str = ""
    playbook_path: str | None = None
    inventory_path: str | None = None

    @property
    def success(self) -> bool:
        return self.status == "succeeded"

    @property
    def timed_out(self) -> bool:
        return self.status == "timeout"

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["success"] = self.success
        return data


class DeploymentStatus(BaseModel):
    """Filesystem view of a deployment directory."""

    deployment_id: str
    exists: bool
    created_at: str | None = None
    modified_at: str | None = None
    log_excerpt: str = ""
    state: DeploymentState | None = None     # only when tracked in memory


class SyntaxCheckResult(BaseModel):
    valid: bool
    errors: str | None = None
