"""
Domain models — Pydantic types for the provisioning engine.

All models are re-exported here for convenient access:

    from provisioner.core.models import ServerSpec, Task, RunResult
"""

from provisioner.core.models.application import (
    SUPPORTED_OS,
    ApplicationDescriptor,
    OperatingSystem,
    Task,
)
from provisioner.core.models.deployment import (
    Deployment,
    DeploymentStatus,
    RunEvent,
    RunOptions,
    RunResult,
    SyntaxCheckResult,
)
from provisioner.core.models.document import Play, PlaybookDocument
from provisioner.core.models.inventory import Group, Host, InventoryModel
from provisioner.core.models.server import (
    CustomerInfo,
    ProvisionRequest,
    ResourceSpecs,
    ServerSpec,
)
from provisioner.core.models.template import GeneratedFile

__all__ = [
    # application.py
    "ApplicationDescriptor",
    "OperatingSystem",
    "SUPPORTED_OS",
    "Task",
    # deployment.py
    "Deployment",
    "DeploymentStatus",
    "RunEvent",
    "RunOptions",
    "RunResult",
    "SyntaxCheckResult",
    # document.py
    "Play",
    "PlaybookDocument",
    # inventory.py
    "Group",
    "Host",
    "InventoryModel",
    # server.py
    "CustomerInfo",
    "ProvisionRequest",
    "ResourceSpecs",
    "ServerSpec",
    # template.py
    "GeneratedFile",
]
