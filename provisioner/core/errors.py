"""
Error taxonomy for the provisioning engine.

Compile-time problems (unknown applications, malformed server specs,
dependency cycles) are ``ConfigurationError``s and are never retried.
Problems with the machine the engine runs on (runner binary missing,
unwritable working tree) are ``ExecutionEnvironmentError``s.

A runner that starts and exits non-zero is NOT an exception; it is a
``RunResult`` with ``success=False``.
"""

from __future__ import annotations


class ProvisioningError(Exception):
    """Base class for all provisioning engine errors."""


class ConfigurationError(ProvisioningError):
    """Invalid request, catalog, inventory, or settings."""


class CyclicDependencyError(ConfigurationError):
    """The requested applications depend on each other in a loop."""

    def __init__(self, app_id: str, chain: list[str] | None = None) -> None:
        self.app_id = app_id
        self.chain = list(chain or [])
        path = " -> ".join(self.chain + [app_id]) if self.chain else app_id
        super().__init__(f"Circular dependency detected: {app_id} ({path})")


class ExecutionEnvironmentError(ProvisioningError):
    """The runner could not be started or its workspace could not be prepared.

    Fatal to the operation that raised it, not to the engine instance.
    """

    def __init__(
        self,
        message: str,
        *,
        deployment_id: str | None = None,
        working_dir: str | None = None,
    ) -> None:
        self.deployment_id = deployment_id
        self.working_dir = working_dir
        context = []
        if deployment_id:
            context.append(f"deployment={deployment_id}")
        if working_dir:
            context.append(f"dir={working_dir}")
        suffix = f" [{', '.join(context)}]" if context else ""
        super().__init__(f"{message}{suffix}")


class DeploymentConflictError(ProvisioningError):
    """A deployment id was reused; working directories are never shared."""

    def __init__(self, deployment_id: str, working_dir: str) -> None:
        self.deployment_id = deployment_id
        self.working_dir = working_dir
        super().__init__(
            f"Deployment '{deployment_id}' already exists at {working_dir}"
        )
