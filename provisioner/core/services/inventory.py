"""
Inventory compiler — server specs → ``InventoryModel``.

Three shapes from the same ``ServerSpec`` list:

    single_host     one host in the all-hosts group, connection
                    defaults merged into its vars
    by_os           linux_servers / windows_servers + all-hosts group
    by_application  by_os plus one <app>_servers group per application

Inventory construction is data-driven: application ids are grouped
whether or not the catalog knows them.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from provisioner.core.errors import ConfigurationError
from provisioner.core.models.inventory import InventoryModel, group_name_for
from provisioner.core.models.server import ServerSpec

if TYPE_CHECKING:
    from provisioner.core.config.loader import EngineSettings

logger = logging.getLogger(__name__)

DEFAULT_CONNECTION_VARS: dict[str, Any] = {
    "ansible_ssh_common_args": "-o StrictHostKeyChecking=no -o UserKnownHostsFile=/dev/null",
    "ansible_ssh_pipelining": True,
    "ansible_python_interpreter": "/usr/bin/python3",
    "ansible_ssh_timeout": 30,
}

_OS_GROUPS: dict[str, tuple[str, dict[str, Any]]] = {
    "linux": (
        "linux_servers",
        {
            "ansible_connection": "ssh",
            "ansible_python_interpreter": "/usr/bin/python3",
            "operating_system": "linux",
        },
    ),
    "windows": (
        "windows_servers",
        {
            "ansible_connection": "winrm",
            "ansible_winrm_transport": "basic",
            "ansible_winrm_server_cert_validation": "ignore",
            "ansible_python_interpreter": "python",
            "operating_system": "windows",
        },
    ),
}


def _host_vars(spec: ServerSpec) -> dict[str, Any]:
    """Per-host connection and metadata variables."""
    host_vars: dict[str, Any] = {
        "ansible_host": spec.ip_address,
        "ansible_user": spec.ssh_user,
        "ansible_ssh_private_key_file": spec.credential_ref,
        "server_type": spec.server_type,
        "operating_system": spec.operating_system,
        "applications": list(spec.applications),
        "server_specs": spec.resource_specs.model_dump(),
    }
    if spec.customer is not None:
        host_vars["customer"] = spec.customer.model_dump()
    host_vars.update(spec.connection_vars)
    return host_vars


def app_group_names(app_ids: Sequence[str], taken: set[str]) -> dict[str, str]:
    """One distinct group name per application id.

    Ids that sanitize to an existing name (``my-app`` / ``my_app``, or an
    OS group such as ``linux``) get a short digest of the id appended.

    Raises:
        ConfigurationError: A name is still taken after disambiguation.
    """
    taken = set(taken)
    names: dict[str, str] = {}
    for app_id in app_ids:
        name = group_name_for(app_id)
        if name in taken:
            digest = hashlib.sha1(app_id.encode("utf-8")).hexdigest()[:8]
            name = f"{name.removesuffix('_servers')}_{digest}_servers"
            if name in taken:
                raise ConfigurationError(
                    f"Cannot derive a unique inventory group for application '{app_id}'"
                )
            logger.debug("Group name for '%s' disambiguated to %s", app_id, name)
        taken.add(name)
        names[app_id] = name
    return names


class InventoryCompiler:
    """Builds inventories; connection defaults are injectable for tests."""

    def __init__(self, defaults: dict[str, Any] | None = None) -> None:
        self.defaults = dict(DEFAULT_CONNECTION_VARS if defaults is None else defaults)

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> InventoryCompiler:
        """Default connection vars with the engine's SSH timeout."""
        return cls({**DEFAULT_CONNECTION_VARS, "ansible_ssh_timeout": settings.connection_timeout})

    def single_host(self, spec: ServerSpec) -> InventoryModel:
        """One host, one flat group; defaults merged under host overrides."""
        inventory = InventoryModel()
        inventory.add_group(
            inventory.all_hosts_group,
            {
                "ansible_connection": "ssh",
                "ansible_ssh_timeout": self.defaults.get("ansible_ssh_timeout", 30),
                "gather_facts": True,
            },
        )
        host_vars = dict(self.defaults)
        host_vars.update(_host_vars(spec))
        inventory.add_host(spec.hostname, host_vars)
        return inventory

    def by_os(self, specs: Sequence[ServerSpec]) -> InventoryModel:
        """Hosts partitioned into OS groups under one all-hosts group."""
        inventory = self._base(specs)
        self._add_os_groups(inventory, specs)
        return inventory

    def by_application(self, specs: Sequence[ServerSpec]) -> InventoryModel:
        """OS partition plus a group per declared application (fan-out)."""
        inventory = self._base(specs)
        self._add_os_groups(inventory, specs)

        app_ids = list(dict.fromkeys(a for spec in specs for a in spec.applications))
        names = app_group_names(app_ids, set(inventory.groups))
        for app_id in app_ids:
            inventory.add_group(names[app_id], {"application_name": app_id})
        for spec in specs:
            for app_id in spec.applications:
                inventory.add_to_group(names[app_id], spec.hostname)

        logger.debug(
            "Built application inventory: %d hosts, %d groups",
            len(inventory.hosts), len(inventory.groups),
        )
        return inventory

    # ── Helpers ─────────────────────────────────────────────────

    def _base(self, specs: Sequence[ServerSpec]) -> InventoryModel:
        inventory = InventoryModel(vars=dict(self.defaults))
        inventory.add_group(inventory.all_hosts_group)
        for spec in specs:
            inventory.add_host(spec.hostname, _host_vars(spec))
        return inventory

    def _add_os_groups(self, inventory: InventoryModel, specs: Sequence[ServerSpec]) -> None:
        # Groups are created in a fixed OS order, and only when populated
        for os_name, (group_name, group_vars) in _OS_GROUPS.items():
            members = [s.hostname for s in specs if s.operating_system == os_name]
            if not members:
                continue
            inventory.add_group(group_name, group_vars)
            for hostname in members:
                inventory.add_to_group(group_name, hostname)
