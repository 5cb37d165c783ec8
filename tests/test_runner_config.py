"""
Tests for run-config text and runner command lines.
"""

from __future__ import annotations

import configparser
import json

from provisioner.core.models.deployment import RunOptions
from provisioner.core.services.runner_config import (
    build_adhoc_command,
    build_playbook_command,
    build_syntax_check_command,
    render_run_config,
    runner_env,
    verbosity_flag,
)


class TestRunConfig:
    def test_sections_and_values(self):
        parser = configparser.ConfigParser(interpolation=None)
        parser.read_string(render_run_config("/work/d1/ansible.log", timeout=45))

        assert parser.sections() == ["defaults", "ssh_connection", "privilege_escalation"]
        assert parser["defaults"]["inventory"] == "./inventory.yml"
        assert parser["defaults"]["host_key_checking"] == "False"
        assert parser["defaults"]["timeout"] == "45"
        assert parser["defaults"]["log_path"] == "/work/d1/ansible.log"
        assert parser["privilege_escalation"]["become_method"] == "sudo"

    def test_control_path_keeps_runner_placeholders(self):
        text = render_run_config("x.log")
        assert "control_path = /tmp/ansible-ssh-%%h-%%p-%%r" in text

    def test_env_points_at_config(self, tmp_path):
        env = runner_env(tmp_path / "ansible.cfg", tmp_path / "ansible.log", {"PATH": "/bin"})
        assert env["ANSIBLE_CONFIG"] == str(tmp_path / "ansible.cfg")
        assert env["ANSIBLE_LOG_PATH"] == str(tmp_path / "ansible.log")
        assert env["PATH"] == "/bin"

    def test_env_does_not_mutate_base(self, tmp_path):
        base = {"PATH": "/bin"}
        runner_env(tmp_path / "c", tmp_path / "l", base)
        assert base == {"PATH": "/bin"}


class TestPlaybookCommand:
    def test_defaults(self):
        cmd = build_playbook_command("ansible-playbook", "p.yml", "i.yml", RunOptions())
        assert cmd == ["ansible-playbook", "-i", "i.yml", "p.yml", "--become"]

    def test_every_option(self):
        options = RunOptions(
            check_mode=True, diff=True, limit="web*", tags=["x", "y"],
            skip_tags="slow", extra_vars={"a": 1}, become=False, verbose=3,
        )
        cmd = build_playbook_command(
            "ap", "p.yml", "i.yml", options, vault_password_file="/v",
        )
        assert cmd == [
            "ap", "-i", "i.yml", "p.yml", "-vvv", "--check", "--diff",
            "--limit", "web*", "--tags", "x,y", "--skip-tags", "slow",
            "-e", '{"a": 1}', "--vault-password-file", "/v",
        ]

    def test_structured_extra_vars_are_json(self):
        options = RunOptions(extra_vars={"users": ["a", "b"], "flag": True})
        cmd = build_playbook_command("ap", "p", "i", options)
        values = [cmd[i + 1] for i, part in enumerate(cmd) if part == "-e"]
        assert json.loads(values[0]) == {"users": ["a", "b"]}
        assert json.loads(values[1]) == {"flag": True}

    def test_values_with_spaces_and_quotes_stay_whole(self):
        motd = 'hello world, it\'s "prod"'
        cmd = build_playbook_command("ap", "p", "i", RunOptions(extra_vars={"motd": motd}))
        value = cmd[cmd.index("-e") + 1]
        assert json.loads(value) == {"motd": motd}

    def test_adhoc_extra_vars_are_json(self):
        options = RunOptions(extra_vars={"greeting": "hi there"}, become=False)
        cmd = build_adhoc_command("ansible", "ping", "", "i.yml", options)
        assert cmd[-2:] == ["-e", '{"greeting": "hi there"}']

    def test_verbosity_is_clamped(self):
        assert RunOptions(verbose=9).verbose == 4
        assert verbosity_flag(0) is None
        assert verbosity_flag(2) == "-vv"


class TestOtherCommands:
    def test_syntax_check(self):
        assert build_syntax_check_command("ap", "p.yml", "i.yml") == [
            "ap", "--syntax-check", "-i", "i.yml", "p.yml",
        ]

    def test_adhoc_ping(self):
        cmd = build_adhoc_command("ansible", "ping", "", "i.yml", RunOptions(become=False))
        assert cmd == ["ansible", "all", "-i", "i.yml", "-m", "ping"]

    def test_adhoc_with_args(self):
        options = RunOptions(pattern="web", limit="web-1", verbose=1)
        cmd = build_adhoc_command("ansible", "shell", "uptime", "i.yml", options)
        assert cmd == [
            "ansible", "web", "-i", "i.yml", "-m", "shell", "-a", "uptime",
            "--limit", "web-1", "--become", "-v",
        ]
