"""
Setup package — everything an operator needs to run one deployment by hand.

Produces ``GeneratedFile``s (never writes by itself)::

    playbook.yml
    inventory.yml
    ansible.cfg
    group_vars/all.yml
    host_vars/<hostname>.yml
    README.md

plus the runner command lines for syntax check, dry run and deploy.
``write_package()`` is the only function here that touches disk.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from provisioner.core.config.loader import EngineSettings
from provisioner.core.errors import ConfigurationError
from provisioner.core.models.deployment import RunOptions
from provisioner.core.models.server import ProvisionRequest, ServerSpec
from provisioner.core.models.template import GeneratedFile
from provisioner.core.services.playbook import secret_placeholder
from provisioner.core.services.runner_config import (
    CONFIG_FILE,
    INVENTORY_FILE,
    LOG_FILE,
    PLAYBOOK_FILE,
    build_adhoc_command,
    build_playbook_command,
    build_syntax_check_command,
    render_run_config,
)
from provisioner.core.services.serializer import to_yaml

logger = logging.getLogger(__name__)

# Per-application tuning written to group_vars when the app is installed
_APP_SETTINGS: dict[str, dict[str, Any]] = {
    "nginx": {
        "worker_processes": "auto",
        "worker_connections": 1024,
        "keepalive_timeout": 65,
    },
    "mysql": {
        "root_password": secret_placeholder("mysql_root_password"),
        "max_connections": 100,
        "innodb_buffer_pool_size": "128M",
    },
    "php": {
        "version": "8.1",
        "memory_limit": "256M",
        "upload_max_filesize": "64M",
        "post_max_size": "64M",
    },
}

_OS_SETTINGS: dict[str, dict[str, Any]] = {
    "linux": {"packages": ["curl", "wget", "unzip", "htop", "vim"]},
    "windows": {"features": ["IIS-WebServerRole", "IIS-WebServer", "IIS-CommonHttpFeatures"]},
}


@dataclass
class SetupPackage:
    """Generated artifacts for one provisioning request."""

    deployment_id: str
    hostname: str
    resolved_order: list[str] = field(default_factory=list)
    order_id: str | None = None
    files: list[GeneratedFile] = field(default_factory=list)
    commands: dict[str, str] = field(default_factory=dict)

    def file(self, path: str) -> GeneratedFile | None:
        return next((f for f in self.files if f.path == path), None)

    def to_dict(self, *, include_content: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "deployment_id": self.deployment_id,
            "order_id": self.order_id,
            "hostname": self.hostname,
            "resolved_order": self.resolved_order,
            "files": [f.path for f in self.files],
            "commands": self.commands,
        }
        if include_content:
            data["contents"] = {f.path: f.content for f in self.files}
        return data


# ── File renderers ──────────────────────────────────────────────────


def render_group_vars(
    spec: ServerSpec,
    resolved_order: list[str],
    settings: EngineSettings,
) -> str:
    data: dict[str, Any] = {
        "timezone": settings.timezone,
        "ssh_port": 22,
        "disable_root_login": False,
        "enable_firewall": True,
    }
    for app_id in resolved_order:
        if app_id in _APP_SETTINGS:
            data[app_id] = dict(_APP_SETTINGS[app_id])
    if spec.customer is not None:
        customer = spec.customer.model_dump()
        customer["company"] = customer.get("company") or "N/A"
        data["customer"] = customer
    return "---\n# Global variables for all servers\n" + to_yaml(data)


def render_host_vars(spec: ServerSpec) -> str:
    data: dict[str, Any] = {
        "server_specs": spec.resource_specs.model_dump(),
        "network": {
            "hostname": spec.hostname,
            "domain": spec.domain or "{{ server_domain | default('example.com') }}",
        },
        "applications": list(spec.applications),
    }
    os_settings = _OS_SETTINGS.get(spec.operating_system)
    if os_settings:
        data[spec.operating_system] = os_settings
    return f"---\n# Host-specific variables for {spec.hostname}\n" + to_yaml(data)


def render_readme(spec: ServerSpec, commands: dict[str, str]) -> str:
    apps = "\n".join(f"- {app}" for app in spec.applications) or "- (none)"
    steps = "\n\n".join(
        f"### {label}\n\n```bash\n{commands[key]}\n```"
        for key, label in (
            ("ping", "Test connection"),
            ("syntax_check", "Check syntax"),
            ("dry_run", "Dry run"),
            ("deploy", "Deploy"),
            ("deploy_verbose", "Deploy with verbose output"),
        )
    )
    specs = spec.resource_specs
    return (
        f"# VPS Setup for {spec.hostname}\n\n"
        "## Server\n\n"
        f"- **Hostname:** {spec.hostname}\n"
        f"- **OS:** {spec.operating_system}\n"
        f"- **CPU:** {specs.cpu}\n"
        f"- **RAM:** {specs.ram}\n"
        f"- **Storage:** {specs.storage}\n\n"
        "## Applications\n\n"
        f"{apps}\n\n"
        "## Usage\n\n"
        f"{steps}\n"
    )


def package_commands(settings: EngineSettings) -> dict[str, str]:
    """Runner command lines relative to the package directory."""
    playbook = settings.playbook_binary
    vault = settings.vault_password_file
    return {
        "ping": shlex.join(build_adhoc_command(
            settings.adhoc_binary, "ping", "", INVENTORY_FILE, RunOptions(become=False),
        )),
        "syntax_check": shlex.join(build_syntax_check_command(playbook, PLAYBOOK_FILE, INVENTORY_FILE)),
        "dry_run": shlex.join(build_playbook_command(
            playbook, PLAYBOOK_FILE, INVENTORY_FILE,
            RunOptions(check_mode=True, diff=True), vault_password_file=vault,
        )),
        "deploy": shlex.join(build_playbook_command(
            playbook, PLAYBOOK_FILE, INVENTORY_FILE, RunOptions(), vault_password_file=vault,
        )),
        "deploy_verbose": shlex.join(build_playbook_command(
            playbook, PLAYBOOK_FILE, INVENTORY_FILE,
            RunOptions(verbose=3), vault_password_file=vault,
        )),
    }


# ── Package ─────────────────────────────────────────────────────────


def build_setup_package(
    request: ProvisionRequest,
    resolved_order: list[str],
    playbook_text: str,
    inventory_text: str,
    settings: EngineSettings | None = None,
    *,
    deployment_id: str | None = None,
) -> SetupPackage:
    """Bundle compiled artifacts with config, vars files and commands."""
    settings = settings or EngineSettings()
    spec = request.server
    commands = package_commands(settings)

    files = [
        GeneratedFile(path=PLAYBOOK_FILE, content=playbook_text, reason="Automation document"),
        GeneratedFile(path=INVENTORY_FILE, content=inventory_text, reason="Target hosts"),
        GeneratedFile(
            path=CONFIG_FILE,
            content=render_run_config(f"./{LOG_FILE}", timeout=settings.connection_timeout),
            reason="Runner configuration",
        ),
        GeneratedFile(
            path="group_vars/all.yml",
            content=render_group_vars(spec, resolved_order, settings),
            reason="Variables for every host",
        ),
        GeneratedFile(
            path=f"host_vars/{spec.hostname}.yml",
            content=render_host_vars(spec),
            reason=f"Variables for {spec.hostname}",
        ),
        GeneratedFile(path="README.md", content=render_readme(spec, commands), reason="Usage"),
    ]

    if deployment_id is None:
        deployment_id = f"deploy-{request.order_id}" if request.order_id else f"deploy-{spec.hostname}"

    return SetupPackage(
        deployment_id=deployment_id,
        hostname=spec.hostname,
        resolved_order=list(resolved_order),
        order_id=request.order_id,
        files=files,
        commands=commands,
    )


def write_package(
    package: SetupPackage,
    target_dir: Path,
    *,
    overwrite: bool = False,
) -> list[Path]:
    """Write the package files under ``target_dir``.

    Existing files are left alone unless ``overwrite`` (or the file's own
    ``overwrite`` flag) is set.

    Returns:
        Paths actually written.

    Raises:
        ConfigurationError: A file path would land outside ``target_dir``.
    """
    root = target_dir.resolve()
    written: list[Path] = []

    for generated in package.files:
        target = (root / generated.path).resolve()
        if not target.is_relative_to(root):
            raise ConfigurationError(f"Refusing to write outside {root}: {generated.path}")

        if target.exists() and not (overwrite or generated.overwrite):
            logger.warning("Skipping existing file: %s", target)
            continue

        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(generated.content, encoding="utf-8")
        logger.info("Wrote generated file: %s", target)
        written.append(target)

    return written
