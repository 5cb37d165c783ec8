"""
Provision use case — request in, compiled artifacts (and a run) out.

This is the seam the CLI and the HTTP API share:

    request → resolve order → playbook + inventory → setup package / run
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from provisioner.core.catalog.registry import ApplicationCatalog, default_catalog
from provisioner.core.config.loader import EngineSettings
from provisioner.core.engine.executor import ExecutionEngine
from provisioner.core.models.deployment import RunEvent, RunOptions, RunResult
from provisioner.core.models.document import PlaybookDocument
from provisioner.core.models.inventory import InventoryModel
from provisioner.core.models.server import ProvisionRequest
from provisioner.core.services.inventory import InventoryCompiler
from provisioner.core.services.playbook import PlaybookCompiler
from provisioner.core.services.resolver import resolve_order
from provisioner.core.services.serializer import render_inventory, render_playbook
from provisioner.core.services.setup_package import SetupPackage, build_setup_package

logger = logging.getLogger(__name__)


def load_catalog(settings: EngineSettings) -> ApplicationCatalog:
    """The configured catalog file, or the built-in catalog."""
    if settings.catalog_file:
        return ApplicationCatalog.from_yaml(Path(settings.catalog_file).expanduser())
    return default_catalog()


@dataclass
class CompiledDeployment:
    """Document pair compiled from one request."""

    request: ProvisionRequest
    resolved_order: list[str] = field(default_factory=list)
    document: PlaybookDocument | None = None
    inventory: InventoryModel | None = None
    playbook_text: str = ""
    inventory_text: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "hostname": self.request.server.hostname,
            "operating_system": self.request.operating_system,
            "order_id": self.request.order_id,
            "resolved_order": self.resolved_order,
            "task_count": self.document.task_count if self.document else 0,
            "playbook": self.playbook_text,
            "inventory": self.inventory_text,
        }


def compile_request(
    request: ProvisionRequest,
    catalog: ApplicationCatalog | None = None,
    settings: EngineSettings | None = None,
) -> CompiledDeployment:
    """Resolve and compile a request into playbook and inventory text.

    Raises:
        ConfigurationError: Unknown application, cycle, or unsupported OS.
    """
    settings = settings or EngineSettings()
    catalog = catalog or load_catalog(settings)

    order = resolve_order(request.applications, catalog)
    document = PlaybookCompiler(catalog, settings).compile(
        order, request.operating_system, request.server,
    )
    inventory = InventoryCompiler.from_settings(settings).single_host(request.server)

    logger.info(
        "Compiled %s: %d app(s), %d task(s)",
        request.server.hostname, len(order), document.task_count,
    )
    return CompiledDeployment(
        request=request,
        resolved_order=order,
        document=document,
        inventory=inventory,
        playbook_text=render_playbook(document),
        inventory_text=render_inventory(inventory),
    )


def generate_setup(
    request: ProvisionRequest,
    catalog: ApplicationCatalog | None = None,
    settings: EngineSettings | None = None,
) -> SetupPackage:
    """Compile a request into a full setup package (nothing is written)."""
    settings = settings or EngineSettings()
    compiled = compile_request(request, catalog, settings)
    return build_setup_package(
        request,
        compiled.resolved_order,
        compiled.playbook_text,
        compiled.inventory_text,
        settings,
    )


def provision(
    request: ProvisionRequest,
    engine: ExecutionEngine,
    options: RunOptions | None = None,
    *,
    catalog: ApplicationCatalog | None = None,
    on_event: Callable[[RunEvent], None] | None = None,
) -> RunResult:
    """Compile a request and run it through the engine.

    Compile errors are raised before any deployment directory exists.
    """
    compiled = compile_request(request, catalog, engine.settings)
    return engine.run(compiled.playbook_text, compiled.inventory_text, options, on_event=on_event)


def check_request(
    request: ProvisionRequest,
    engine: ExecutionEngine,
    *,
    catalog: ApplicationCatalog | None = None,
) -> dict[str, Any]:
    """Compile a request and syntax-check the result."""
    compiled = compile_request(request, catalog, engine.settings)
    check = engine.check_syntax(compiled.playbook_text, compiled.inventory_text)
    return {
        "hostname": request.server.hostname,
        "resolved_order": compiled.resolved_order,
        "valid": check.valid,
        "errors": check.errors,
    }
