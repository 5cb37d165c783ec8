"""
Runner configuration — run-config file text and command lines (pure).

The run-config file reaches the runner through the ``ANSIBLE_CONFIG``
environment variable, never through a flag.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from provisioner.core.models.deployment import RunOptions

PLAYBOOK_FILE = "playbook.yml"
INVENTORY_FILE = "inventory.yml"
CONFIG_FILE = "ansible.cfg"
LOG_FILE = "ansible.log"

_RUN_CONFIG_TEMPLATE = """\
[defaults]
inventory = {inventory}
host_key_checking = False
timeout = {timeout}
gathering = smart
fact_caching = {fact_caching}
log_path = {log_path}
retry_files_enabled = False
callback_result_format = yaml

[ssh_connection]
ssh_args = -o ControlMaster=auto -o ControlPersist=60s -o StrictHostKeyChecking=no -o UserKnownHostsFile=/dev/null
pipelining = True
control_path = /tmp/ansible-ssh-%%h-%%p-%%r

[privilege_escalation]
become = True
become_method = sudo
become_user = root
become_ask_pass = False
"""


def render_run_config(
    log_path: Path | str,
    *,
    inventory: str = f"./{INVENTORY_FILE}",
    timeout: int = 30,
    fact_caching: str = "memory",
) -> str:
    """``ansible.cfg`` for one deployment directory."""
    return _RUN_CONFIG_TEMPLATE.format(
        inventory=inventory,
        timeout=timeout,
        fact_caching=fact_caching,
        log_path=log_path,
    )


def runner_env(config_path: Path, log_path: Path, base: dict[str, str]) -> dict[str, str]:
    """Environment for the child process."""
    env = dict(base)
    env["ANSIBLE_CONFIG"] = str(config_path)
    env["ANSIBLE_LOG_PATH"] = str(log_path)
    env["ANSIBLE_FORCE_COLOR"] = "0"
    env["PYTHONUNBUFFERED"] = "1"
    return env


def _csv(value: list[str] | str) -> str:
    return ",".join(value) if isinstance(value, list) else value


def _extra_var(key: str, value: Any) -> str:
    # The runner splits key=value strings on whitespace; JSON keeps values whole
    return json.dumps({key: value}, ensure_ascii=False)


def verbosity_flag(level: int) -> str | None:
    level = max(0, min(level, 4))
    return "-" + "v" * level if level else None


def build_playbook_command(
    binary: str,
    playbook_path: Path | str,
    inventory_path: Path | str,
    options: RunOptions,
    *,
    vault_password_file: str | None = None,
) -> list[str]:
    """Full command line for a playbook run."""
    cmd = [binary, "-i", str(inventory_path), str(playbook_path)]

    flag = verbosity_flag(options.verbose)
    if flag:
        cmd.append(flag)
    if options.check_mode:
        cmd.append("--check")
    if options.diff:
        cmd.append("--diff")
    if options.limit:
        cmd.extend(["--limit", options.limit])
    if options.tags:
        cmd.extend(["--tags", _csv(options.tags)])
    if options.skip_tags:
        cmd.extend(["--skip-tags", _csv(options.skip_tags)])
    for key, value in options.extra_vars.items():
        cmd.extend(["-e", _extra_var(key, value)])
    if vault_password_file:
        cmd.extend(["--vault-password-file", vault_password_file])
    if options.become:
        cmd.append("--become")
    return cmd


def build_syntax_check_command(
    binary: str,
    playbook_path: Path | str,
    inventory_path: Path | str,
) -> list[str]:
    return [binary, "--syntax-check", "-i", str(inventory_path), str(playbook_path)]


def build_adhoc_command(
    binary: str,
    module: str,
    args: str,
    inventory_path: Path | str,
    options: RunOptions,
) -> list[str]:
    """Single-module invocation, e.g. a ``ping`` connectivity check."""
    cmd = [binary, options.pattern or "all", "-i", str(inventory_path), "-m", module]
    if args:
        cmd.extend(["-a", args])
    if options.limit:
        cmd.extend(["--limit", options.limit])
    for key, value in options.extra_vars.items():
        cmd.extend(["-e", _extra_var(key, value)])
    if options.become:
        cmd.append("--become")
    flag = verbosity_flag(options.verbose)
    if flag:
        cmd.append(flag)
    return cmd
