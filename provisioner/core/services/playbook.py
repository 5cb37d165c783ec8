"""
Playbook compiler — resolved order + OS + server → automation document.

Document layout::

    [system preparation]
    for each resolved application:
        [marker task, application tasks for the OS ...]
    [system finalization]

An application without tasks for the target OS contributes nothing
(not even a marker) and the build continues. Secrets are never written
into the document: each declared secret becomes a reference to a
``vault_<name>`` variable that the runner environment must supply.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from provisioner.core.catalog.registry import ApplicationCatalog
from provisioner.core.catalog.system_tasks import (
    system_finalization_tasks,
    system_preparation_tasks,
)
from provisioner.core.config.loader import EngineSettings
from provisioner.core.errors import ConfigurationError
from provisioner.core.models.application import SUPPORTED_OS, ApplicationDescriptor, Task
from provisioner.core.models.document import Play, PlaybookDocument
from provisioner.core.models.server import ServerSpec
from provisioner.core.services.serializer import render_playbook

logger = logging.getLogger(__name__)


def secret_placeholder(name: str) -> str:
    """Variable reference the runner resolves from its vault."""
    return f"{{{{ vault_{name} }}}}"


def marker_task(app: ApplicationDescriptor) -> Task:
    return Task(
        name=f"--- {app.display_name} ---",
        module="ansible.builtin.debug",
        params={"msg": f"Installing {app.display_name}"},
    )


class PlaybookCompiler:
    """Builds ``PlaybookDocument``s from a catalog."""

    def __init__(
        self,
        catalog: ApplicationCatalog,
        settings: EngineSettings | None = None,
    ) -> None:
        self.catalog = catalog
        self.settings = settings or EngineSettings()

    def compile(
        self,
        resolved_order: Sequence[str],
        operating_system: str,
        spec: ServerSpec,
    ) -> PlaybookDocument:
        """Compile one single-play document.

        Raises:
            ConfigurationError: Unknown application or unsupported OS.
        """
        if operating_system not in SUPPORTED_OS:
            raise ConfigurationError(
                f"Unsupported operating system '{operating_system}' "
                f"(expected one of: {', '.join(SUPPORTED_OS)})"
            )

        apps = [self.catalog.require(app_id) for app_id in resolved_order]

        play = Play(
            name=f"VPS Setup - {spec.hostname}",
            hosts="all",
            become=True,
            vars=self.build_variables(apps, spec),
            tasks=self.build_tasks(apps, operating_system),
        )
        return PlaybookDocument(
            plays=[play],
            resolved_order=list(resolved_order),
            operating_system=operating_system,
        )

    def render(
        self,
        resolved_order: Sequence[str],
        operating_system: str,
        spec: ServerSpec,
    ) -> str:
        return render_playbook(self.compile(resolved_order, operating_system, spec))

    # ── Sections ────────────────────────────────────────────────

    def build_variables(
        self,
        apps: Sequence[ApplicationDescriptor],
        spec: ServerSpec,
    ) -> dict[str, Any]:
        variables: dict[str, Any] = {
            "server_hostname": spec.hostname,
            "timezone": self.settings.timezone,
        }
        if spec.domain:
            variables["server_domain"] = spec.domain

        for app in apps:
            for name, value in app.variables.items():
                variables.setdefault(name, value)
            for secret in app.secrets:
                variables[secret] = secret_placeholder(secret)
        return variables

    def build_tasks(
        self,
        apps: Sequence[ApplicationDescriptor],
        operating_system: str,
    ) -> list[Task]:
        tasks = system_preparation_tasks(operating_system)

        for app in apps:
            app_tasks = app.tasks_for(operating_system)
            if not app_tasks:
                logger.info(
                    "Skipping '%s': no tasks for %s", app.id, operating_system,
                )
                continue
            tasks.append(marker_task(app))
            tasks.extend(app_tasks)

        tasks.extend(system_finalization_tasks(operating_system))
        return tasks
