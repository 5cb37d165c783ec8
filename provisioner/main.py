"""
Provisioner — CLI entrypoint.

Usage:
    provisioner --help
    provisioner catalog list
    provisioner resolve wordpress nginx
    provisioner generate request.yml -o ./out
    provisioner deploy run request.yml
"""

from __future__ import annotations

import json
from pathlib import Path

import click

from provisioner import __version__
from provisioner.core.observability.logging_config import setup_from_env
from provisioner.ui.cli import cli_settings, fail


@click.group()
@click.version_option(version=__version__, prog_name="provisioner")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to provisioner.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Provisioner — compile and run server setup automation."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = None
    setup_from_env(level)


@cli.command()
@click.argument("apps", nargs=-1, required=True)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def resolve(ctx: click.Context, apps: tuple[str, ...], as_json: bool) -> None:
    """Print the install order for APPS (dependencies first)."""
    from provisioner.core.errors import ConfigurationError
    from provisioner.core.services.resolver import resolve_order
    from provisioner.core.use_cases.provision import load_catalog

    try:
        order = resolve_order(list(apps), load_catalog(cli_settings(ctx)))
    except ConfigurationError as e:
        if as_json:
            click.echo(json.dumps({"error": str(e)}, indent=2))
            raise SystemExit(1) from e
        fail(str(e))

    if as_json:
        click.echo(json.dumps({"requested": list(apps), "order": order}, indent=2))
        return

    for position, app_id in enumerate(order, 1):
        click.echo(f"  {position}. {app_id}")


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address.")
@click.option("--port", "-p", default=8000, type=int, help="Port number.")
@click.pass_context
def web(ctx: click.Context, host: str, port: int) -> None:
    "Start the provisioning HTTP API."
    from provisioner.ui.web.server import create_app, run_server

    settings = cli_settings(ctx)
    app = create_app(settings)
    debug = ctx.obj.get("debug", False)

    click.echo()
    click.secho("⚙  Provisioner API", bold=True)
    click.echo(f"   Listening:   http://{host}:{port}/api")
    click.echo(f"   Deployments: {settings.work_path}")
    click.echo()

    run_server(app, host=host, port=port, debug=debug)


# ── Register sub-command groups from provisioner/ui/cli/ ─────────

from provisioner.ui.cli.catalog import catalog  # noqa: E402
from provisioner.ui.cli.deploy import deploy  # noqa: E402
from provisioner.ui.cli.generate import generate, inventory  # noqa: E402

cli.add_command(catalog)
cli.add_command(generate)
cli.add_command(inventory)
cli.add_command(deploy)


if __name__ == "__main__":
    cli()
