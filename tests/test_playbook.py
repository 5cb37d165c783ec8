"""
Tests for the playbook compiler and the YAML serializer.
"""

from __future__ import annotations

import pytest
import yaml

from provisioner.core.catalog import default_catalog
from provisioner.core.config.loader import EngineSettings
from provisioner.core.errors import ConfigurationError
from provisioner.core.models.server import ServerSpec
from provisioner.core.services.playbook import PlaybookCompiler, secret_placeholder
from provisioner.core.services.resolver import resolve_order
from provisioner.core.services.serializer import render_playbook


def _linux_server(**kwargs) -> ServerSpec:
    data = {"hostname": "wp-01", "ip_address": "198.51.100.7"}
    data.update(kwargs)
    return ServerSpec(**data)


class TestDocumentLayout:
    def test_system_tasks_wrap_application_tasks(self, small_catalog, server):
        doc = PlaybookCompiler(small_catalog).compile(["web", "db"], "linux", server)
        names = doc.task_names()

        assert names[:5] == [
            "Update package cache", "Upgrade all packages", "Install essential packages",
            "Set timezone", "Set hostname",
        ]
        assert names[5:10] == ["--- Web server ---", "web-1", "web-2", "--- Database ---", "db-1"]
        assert names[10:] == [
            "Clean package cache", "Check whether a reboot is required", "Reboot if required",
        ]

    def test_single_play_targets_all_hosts(self, small_catalog, server):
        doc = PlaybookCompiler(small_catalog).compile(["web"], "linux", server)
        assert len(doc.plays) == 1
        play = doc.plays[0]
        assert play.name == "VPS Setup - vps-100"
        assert play.hosts == "all"
        assert play.become is True

    def test_marker_is_a_debug_task(self, small_catalog, server):
        doc = PlaybookCompiler(small_catalog).compile(["db"], "linux", server)
        marker = doc.plays[0].tasks[5]
        assert marker.module == "ansible.builtin.debug"
        assert marker.params == {"msg": "Installing Database"}

    def test_app_without_os_tasks_contributes_nothing(self, small_catalog):
        server = ServerSpec(hostname="win-1", operating_system="windows")
        doc = PlaybookCompiler(small_catalog).compile(["db", "web"], "windows", server)
        # Windows has no system tasks; db has no windows tasks and no marker
        assert doc.task_names() == ["--- Web server ---", "web-win"]

    def test_unknown_application(self, small_catalog, server):
        with pytest.raises(ConfigurationError, match="'ghost'"):
            PlaybookCompiler(small_catalog).compile(["ghost"], "linux", server)

    def test_unsupported_os(self, small_catalog, server):
        with pytest.raises(ConfigurationError, match="Unsupported operating system"):
            PlaybookCompiler(small_catalog).compile(["web"], "solaris", server)


class TestVariables:
    def test_base_variables(self, small_catalog):
        settings = EngineSettings(timezone="UTC")
        server = _linux_server(domain="example.org")
        play = PlaybookCompiler(small_catalog, settings).compile(["web"], "linux", server).plays[0]
        assert play.vars["server_hostname"] == "wp-01"
        assert play.vars["timezone"] == "UTC"
        assert play.vars["server_domain"] == "example.org"

    def test_domain_omitted_when_unset(self, small_catalog):
        play = PlaybookCompiler(small_catalog).compile(["web"], "linux", _linux_server()).plays[0]
        assert "server_domain" not in play.vars

    def test_secrets_become_vault_references(self, small_catalog, server):
        play = PlaybookCompiler(small_catalog).compile(["db"], "linux", server).plays[0]
        assert play.vars["db_password"] == "{{ vault_db_password }}"
        assert secret_placeholder("x") == "{{ vault_x }}"

    def test_application_variables_included(self, small_catalog, server):
        play = PlaybookCompiler(small_catalog).compile(["site"], "linux", server).plays[0]
        assert play.vars["site_name"] == "demo"


class TestWordpressOnly:
    """A request for wordpress alone does not pull in its dependencies."""

    @pytest.fixture
    def document(self):
        catalog = default_catalog()
        order = resolve_order(["wordpress"], catalog)
        return PlaybookCompiler(catalog).compile(order, "linux", _linux_server())

    def test_only_wordpress_marker(self, document):
        markers = [n for n in document.task_names() if n.startswith("--- ")]
        assert markers == ["--- Install WordPress with dependencies ---"]

    def test_task_count(self, document):
        # 5 preparation + marker + 5 wordpress + 3 finalization
        assert document.task_count == 14

    def test_no_literal_secret(self, document):
        text = render_playbook(document)
        assert "wordpress_db_password: '{{ vault_wordpress_db_password }}'" in text


class TestRendering:
    def test_leading_document_marker(self, small_catalog, server):
        text = PlaybookCompiler(small_catalog).render(["web"], "linux", server)
        assert text.startswith("---\n")

    def test_deterministic(self, small_catalog, server):
        compiler = PlaybookCompiler(small_catalog)
        first = compiler.render(["site", "app", "web", "db"], "linux", server)
        second = compiler.render(["site", "app", "web", "db"], "linux", server)
        assert first == second

    def test_round_trips_as_runner_yaml(self, small_catalog, server):
        text = PlaybookCompiler(small_catalog).render(["web"], "linux", server)
        plays = yaml.safe_load(text)
        assert isinstance(plays, list)
        task = plays[0]["tasks"][6]
        assert task == {"name": "web-1", "ansible.builtin.debug": {"msg": "web-1"}}
        assert list(plays[0]) == ["name", "hosts", "become", "vars", "tasks"]

    def test_task_keywords_preserved(self, small_catalog, server):
        plays = yaml.safe_load(PlaybookCompiler(small_catalog).render([], "linux", server))
        reboot = plays[0]["tasks"][-1]
        assert reboot["when"] == "reboot_required_file.stat.exists"
