"""
Shared test fixtures: a small fabricated catalog, server specs, and
stand-in runner scripts for the execution engine.
"""

from __future__ import annotations

import logging
import stat
from collections.abc import Callable
from pathlib import Path

import pytest

from provisioner.core.catalog.registry import ApplicationCatalog
from provisioner.core.config.loader import EngineSettings
from provisioner.core.engine import ExecutionEngine
from provisioner.core.models.inventory import InventoryModel
from provisioner.core.models.server import ServerSpec


def _task(name: str, module: str = "ansible.builtin.debug") -> dict:
    return {"name": name, module: {"msg": name}}


@pytest.fixture
def small_catalog() -> ApplicationCatalog:
    """web ← app ← site, plus an independent db and a linux-only tool."""
    return ApplicationCatalog.from_recipes({
        "web": {
            "label": "Web server",
            "tasks": {"linux": [_task("web-1"), _task("web-2")], "windows": [_task("web-win")]},
        },
        "db": {
            "label": "Database",
            "secrets": ["db_password"],
            "tasks": {"linux": [_task("db-1")]},
        },
        "app": {
            "label": "Application",
            "requires": ["web"],
            "tasks": {"linux": [_task("app-1")]},
        },
        "site": {
            "label": "Site",
            "requires": ["app", "db"],
            "variables": {"site_name": "demo"},
            "tasks": {"linux": [_task("site-1")]},
        },
        "tool": {
            "label": "Tool",
            "tasks": {"linux": [_task("tool-1")]},
        },
    })


@pytest.fixture
def server() -> ServerSpec:
    return ServerSpec(
        hostname="vps-100",
        ip_address="203.0.113.10",
        operating_system="linux",
        applications=["web", "db"],
    )


@pytest.fixture
def make_runner(tmp_path: Path) -> Callable[..., str]:
    """Write an executable ``/bin/sh`` script standing in for the runner."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()

    def _make(name: str, body: str, *, executable: bool = True) -> str:
        script = bin_dir / name
        script.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
        if executable:
            script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(script)

    return _make


@pytest.fixture
def work_root(tmp_path: Path) -> Path:
    return tmp_path / "deployments"


@pytest.fixture
def make_engine(work_root: Path) -> Callable[..., ExecutionEngine]:
    """Engine rooted in tmp_path with the given settings overrides."""
    engines: list[ExecutionEngine] = []

    def _make(**overrides) -> ExecutionEngine:
        settings = EngineSettings(work_dir=str(work_root), **overrides)
        engine = ExecutionEngine(settings=settings)
        engines.append(engine)
        return engine

    yield _make

    for engine in engines:
        engine.shutdown()


@pytest.fixture
def inventory(server: ServerSpec) -> InventoryModel:
    from provisioner.core.services.inventory import InventoryCompiler

    return InventoryCompiler().single_host(server)


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """CLI invocations call setup_logging(); put the root logger back."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
