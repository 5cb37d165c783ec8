"""
Inventory model — typed host/group/variable tree.

Structural rules live here rather than in the compilers:

    - hostnames are unique within one inventory
    - group names are unique
    - a group only references hosts that exist
    - every host sits in the all-hosts group exactly once

Rendering to the runner's formats is order-preserving: hosts and
groups come out in the order they were added.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field

from provisioner.core.errors import ConfigurationError

ALL_HOSTS_GROUP = "vps_servers"

_GROUP_NAME_RE = re.compile(r"[^A-Za-z0-9_]")


def group_name_for(app_id: str) -> str:
    """Deterministic inventory group name for an application id."""
    cleaned = _GROUP_NAME_RE.sub("_", app_id.strip().lower())
    if cleaned and cleaned[0].isdigit():
        cleaned = f"app_{cleaned}"
    return f"{cleaned}_servers"


class Host(BaseModel):
    name: str
    vars: dict[str, Any] = Field(default_factory=dict)


class Group(BaseModel):
    name: str
    hosts: list[str] = Field(default_factory=list)
    vars: dict[str, Any] = Field(default_factory=dict)


class InventoryModel(BaseModel):
    """Hosts, groups, and top-level (``all``) variables."""

    vars: dict[str, Any] = Field(default_factory=dict)
    hosts: dict[str, Host] = Field(default_factory=dict)
    groups: dict[str, Group] = Field(default_factory=dict)
    all_hosts_group: str = ALL_HOSTS_GROUP

    # ── Construction ────────────────────────────────────────────

    def add_host(self, name: str, host_vars: dict[str, Any] | None = None) -> Host:
        """Register a host and place it in the all-hosts group."""
        if name in self.hosts:
            raise ConfigurationError(f"Duplicate host in inventory: {name}")
        host = Host(name=name, vars=dict(host_vars or {}))
        self.hosts[name] = host
        self.ensure_group(self.all_hosts_group).hosts.append(name)
        return host

    def add_group(self, name: str, group_vars: dict[str, Any] | None = None) -> Group:
        if name in self.groups:
            raise ConfigurationError(f"Duplicate group in inventory: {name}")
        group = Group(name=name, vars=dict(group_vars or {}))
        self.groups[name] = group
        return group

    def ensure_group(self, name: str, group_vars: dict[str, Any] | None = None) -> Group:
        """Return the named group, creating it on first use."""
        group = self.groups.get(name)
        if group is None:
            return self.add_group(name, group_vars)
        return group

    def add_to_group(self, group_name: str, hostname: str) -> None:
        if hostname not in self.hosts:
            raise ConfigurationError(
                f"Group '{group_name}' references unknown host '{hostname}'"
            )
        group = self.groups.get(group_name)
        if group is None:
            raise ConfigurationError(f"Unknown inventory group: {group_name}")
        if hostname not in group.hosts:
            group.hosts.append(hostname)

    def validate_structure(self) -> None:
        """Re-check the invariants after manual edits."""
        all_group = self.groups.get(self.all_hosts_group)
        members = all_group.hosts if all_group else []
        for name in self.hosts:
            count = members.count(name)
            if count != 1:
                raise ConfigurationError(
                    f"Host '{name}' appears {count} times in '{self.all_hosts_group}'"
                )
        for group in self.groups.values():
            for hostname in group.hosts:
                if hostname not in self.hosts:
                    raise ConfigurationError(
                        f"Group '{group.name}' references unknown host '{hostname}'"
                    )

    # ── Queries ─────────────────────────────────────────────────

    def groups_for_host(self, hostname: str) -> list[str]:
        """Names of every group the host belongs to (``all`` is implicit)."""
        return [g.name for g in self.groups.values() if hostname in g.hosts]

    def host_vars(self, hostname: str) -> dict[str, Any]:
        host = self.hosts.get(hostname)
        return dict(host.vars) if host else {}

    # ── Rendering ───────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        """YAML-inventory tree. Host vars are emitted once, under the
        all-hosts group; other groups list their members only."""
        children: dict[str, Any] = {}
        for group in self.groups.values():
            node: dict[str, Any] = {}
            if group.name == self.all_hosts_group:
                node["hosts"] = {h: dict(self.hosts[h].vars) for h in group.hosts}
            else:
                node["hosts"] = {h: {} for h in group.hosts}
            if group.vars:
                node["vars"] = dict(group.vars)
            children[group.name] = node

        root: dict[str, Any] = {}
        if self.vars:
            root["vars"] = dict(self.vars)
        root["children"] = children
        return {"all": root}

    def to_dynamic_inventory(self) -> dict[str, Any]:
        """The runner's ``--list`` JSON shape."""
        data: dict[str, Any] = {
            "_meta": {
                "hostvars": {name: dict(h.vars) for name, h in self.hosts.items()},
            },
            "all": {"children": list(self.groups.keys())},
        }
        if self.vars:
            data["all"]["vars"] = dict(self.vars)
        for group in self.groups.values():
            data[group.name] = {"hosts": list(group.hosts), "vars": dict(group.vars)}
        return data
