"""
System tasks — OS-specific preparation and finalization.

These wrap every compiled document regardless of which applications
were requested. Unsupported operating systems get no system tasks.
"""

from __future__ import annotations

from provisioner.core.models.application import Task

_LINUX_PREPARATION: tuple[Task, ...] = (
    Task(
        name="Update package cache",
        module="ansible.builtin.apt",
        params={"update_cache": True, "cache_valid_time": 3600},
    ),
    Task(
        name="Upgrade all packages",
        module="ansible.builtin.apt",
        params={"upgrade": "dist"},
    ),
    Task(
        name="Install essential packages",
        module="ansible.builtin.package",
        params={
            "name": ["curl", "wget", "unzip", "software-properties-common", "apt-transport-https"],
            "state": "present",
        },
    ),
    Task(
        name="Set timezone",
        module="community.general.timezone",
        params={"name": "{{ timezone }}"},
    ),
    Task(
        name="Set hostname",
        module="ansible.builtin.hostname",
        params={"name": "{{ server_hostname }}"},
    ),
)

_LINUX_FINALIZATION: tuple[Task, ...] = (
    Task(
        name="Clean package cache",
        module="ansible.builtin.apt",
        params={"autoclean": True, "autoremove": True},
    ),
    Task(
        name="Check whether a reboot is required",
        module="ansible.builtin.stat",
        params={"path": "/var/run/reboot-required"},
        extra={"register": "reboot_required_file"},
    ),
    Task(
        name="Reboot if required",
        module="ansible.builtin.reboot",
        params={"reboot_timeout": 300},
        extra={"when": "reboot_required_file.stat.exists"},
    ),
)

_PREPARATION: dict[str, tuple[Task, ...]] = {
    "linux": _LINUX_PREPARATION,
}

_FINALIZATION: dict[str, tuple[Task, ...]] = {
    "linux": _LINUX_FINALIZATION,
}


def system_preparation_tasks(operating_system: str) -> list[Task]:
    return list(_PREPARATION.get(operating_system, ()))


def system_finalization_tasks(operating_system: str) -> list[Task]:
    return list(_FINALIZATION.get(operating_system, ()))
