"""
CLI helpers shared by the command groups in this package.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import NoReturn

import click

from provisioner.core.config.loader import EngineSettings, load_settings
from provisioner.core.errors import ProvisioningError


def cli_settings(ctx: click.Context) -> EngineSettings:
    """Settings for this invocation, loaded once and cached on the context."""
    obj = ctx.ensure_object(dict)
    if obj.get("settings") is None:
        config_path: Path | None = obj.get("config_path")
        try:
            obj["settings"] = load_settings(config_path)
        except ProvisioningError as e:
            fail(str(e))
    return obj["settings"]


def fail(message: str, code: int = 1) -> NoReturn:
    click.secho(f"❌ {message}", fg="red", err=True)
    sys.exit(code)
