"""
Tests for the inventory model and compiler.
"""

from __future__ import annotations

import json

import pytest
import yaml

from provisioner.core.config.loader import EngineSettings
from provisioner.core.errors import ConfigurationError
from provisioner.core.models.inventory import InventoryModel, group_name_for
from provisioner.core.models.server import ServerSpec
from provisioner.core.services.inventory import DEFAULT_CONNECTION_VARS, InventoryCompiler
from provisioner.core.services.serializer import render_dynamic_inventory, render_inventory


@pytest.fixture
def fleet() -> list[ServerSpec]:
    return [
        ServerSpec(hostname="web-1", ip_address="10.0.0.1", applications=["nginx", "php", "mysql"]),
        ServerSpec(hostname="web-2", ip_address="10.0.0.2", applications=["nginx"]),
        ServerSpec(
            hostname="win-1", ip_address="10.0.0.3",
            operating_system="windows", applications=["iis-site"],
        ),
    ]


class TestInventoryModel:
    def test_host_joins_all_hosts_group(self):
        inv = InventoryModel()
        inv.add_host("a")
        assert inv.groups["vps_servers"].hosts == ["a"]

    def test_duplicate_host(self):
        inv = InventoryModel()
        inv.add_host("a")
        with pytest.raises(ConfigurationError, match="Duplicate host"):
            inv.add_host("a")

    def test_duplicate_group(self):
        inv = InventoryModel()
        inv.add_group("g")
        with pytest.raises(ConfigurationError, match="Duplicate group"):
            inv.add_group("g")

    def test_group_cannot_reference_unknown_host(self):
        inv = InventoryModel()
        inv.add_group("g")
        with pytest.raises(ConfigurationError, match="unknown host"):
            inv.add_to_group("g", "ghost")

    def test_validate_structure_catches_manual_edits(self):
        inv = InventoryModel()
        inv.add_host("a")
        inv.groups["vps_servers"].hosts.append("a")
        with pytest.raises(ConfigurationError, match="appears 2 times"):
            inv.validate_structure()

    def test_group_names(self):
        assert group_name_for("nginx") == "nginx_servers"
        assert group_name_for("Node.JS") == "node_js_servers"
        assert group_name_for("7zip") == "app_7zip_servers"


class TestSingleHost:
    def test_one_host_in_flat_group(self, server):
        inv = InventoryCompiler().single_host(server)
        assert list(inv.hosts) == ["vps-100"]
        assert list(inv.groups) == ["vps_servers"]
        assert inv.groups["vps_servers"].vars == {
            "ansible_connection": "ssh",
            "ansible_ssh_timeout": 30,
            "gather_facts": True,
        }

    def test_host_vars_merge_defaults_and_metadata(self, server):
        host_vars = InventoryCompiler().single_host(server).host_vars("vps-100")
        assert host_vars["ansible_host"] == "203.0.113.10"
        assert host_vars["ansible_user"] == "root"
        assert host_vars["ansible_ssh_pipelining"] is True
        assert host_vars["applications"] == ["web", "db"]
        assert host_vars["server_specs"] == {"cpu": "2", "ram": "4GB", "storage": "50GB"}

    def test_timeout_from_settings(self, server):
        inv = InventoryCompiler.from_settings(EngineSettings(connection_timeout=45)).single_host(server)
        assert inv.groups["vps_servers"].vars["ansible_ssh_timeout"] == 45
        assert inv.host_vars("vps-100")["ansible_ssh_timeout"] == 45
        assert inv.host_vars("vps-100")["ansible_ssh_pipelining"] is True

    def test_connection_vars_override_defaults(self):
        spec = ServerSpec(
            hostname="h", connection_vars={"ansible_python_interpreter": "/opt/py/bin/python3"},
        )
        host_vars = InventoryCompiler().single_host(spec).host_vars("h")
        assert host_vars["ansible_python_interpreter"] == "/opt/py/bin/python3"

    def test_renders_runner_yaml(self, server):
        text = render_inventory(InventoryCompiler().single_host(server))
        assert text.startswith("---\n")
        data = yaml.safe_load(text)
        host = data["all"]["children"]["vps_servers"]["hosts"]["vps-100"]
        assert host["ansible_host"] == "203.0.113.10"


class TestMultiHost:
    def test_by_os_partitions_hosts(self, fleet):
        inv = InventoryCompiler().by_os(fleet)
        assert list(inv.groups) == ["vps_servers", "linux_servers", "windows_servers"]
        assert inv.groups["linux_servers"].hosts == ["web-1", "web-2"]
        assert inv.groups["windows_servers"].hosts == ["win-1"]
        assert inv.groups["windows_servers"].vars["ansible_connection"] == "winrm"
        assert inv.vars == DEFAULT_CONNECTION_VARS

    def test_empty_os_group_is_omitted(self, fleet):
        inv = InventoryCompiler().by_os(fleet[:2])
        assert "windows_servers" not in inv.groups

    def test_by_application_fans_out(self, fleet):
        inv = InventoryCompiler().by_application(fleet)
        # web-1: 3 application groups + OS group + all-hosts group
        assert sorted(inv.groups_for_host("web-1")) == sorted([
            "vps_servers", "linux_servers", "nginx_servers", "php_servers", "mysql_servers",
        ])
        assert inv.groups["nginx_servers"].hosts == ["web-1", "web-2"]
        assert inv.groups["nginx_servers"].vars == {"application_name": "nginx"}

    def test_unknown_applications_still_grouped(self, fleet):
        inv = InventoryCompiler().by_application(fleet)
        assert inv.groups["iis_site_servers"].hosts == ["win-1"]

    def test_ids_that_sanitize_alike_get_separate_groups(self):
        specs = [
            ServerSpec(hostname="a", ip_address="10.0.0.1", applications=["my-app"]),
            ServerSpec(hostname="b", ip_address="10.0.0.2", applications=["my_app"]),
        ]
        inv = InventoryCompiler().by_application(specs)
        app_groups = {
            g.vars["application_name"]: g for g in inv.groups.values()
            if "application_name" in g.vars
        }
        assert set(app_groups) == {"my-app", "my_app"}
        assert app_groups["my-app"].name == "my_app_servers"
        assert app_groups["my-app"].hosts == ["a"]
        assert app_groups["my_app"].name != "my_app_servers"
        assert app_groups["my_app"].hosts == ["b"]

    def test_app_named_like_os_group_keeps_os_group_intact(self):
        specs = [ServerSpec(hostname="a", ip_address="10.0.0.1", applications=["linux"])]
        inv = InventoryCompiler().by_application(specs)
        assert inv.groups["linux_servers"].vars["operating_system"] == "linux"
        app_group = next(g for g in inv.groups.values() if g.vars.get("application_name") == "linux")
        assert app_group.name != "linux_servers"
        assert app_group.hosts == ["a"]

    def test_host_lands_in_one_group_per_distinct_app(self):
        specs = [ServerSpec(hostname="a", ip_address="10.0.0.1", applications=["x.y", "x-y", "x_y"])]
        inv = InventoryCompiler().by_application(specs)
        app_groups = [g for g in inv.groups.values() if "application_name" in g.vars]
        assert len(app_groups) == 3
        assert len({g.name for g in app_groups}) == 3
        assert all(g.hosts == ["a"] for g in app_groups)

    def test_duplicate_hostnames_rejected(self):
        specs = [ServerSpec(hostname="dup"), ServerSpec(hostname="dup")]
        with pytest.raises(ConfigurationError, match="Duplicate host"):
            InventoryCompiler().by_os(specs)

    def test_host_vars_rendered_once(self, fleet):
        data = InventoryCompiler().by_application(fleet).to_dict()
        children = data["all"]["children"]
        assert children["vps_servers"]["hosts"]["web-1"]["ansible_host"] == "10.0.0.1"
        assert children["nginx_servers"]["hosts"]["web-1"] == {}


class TestDynamicInventory:
    def test_list_shape(self, fleet):
        data = json.loads(render_dynamic_inventory(InventoryCompiler().by_application(fleet)))
        assert set(data["_meta"]["hostvars"]) == {"web-1", "web-2", "win-1"}
        assert "nginx_servers" in data["all"]["children"]
        assert data["nginx_servers"]["hosts"] == ["web-1", "web-2"]
        assert data["all"]["vars"]["ansible_ssh_timeout"] == 30
