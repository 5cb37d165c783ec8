"""
CLI commands for the application catalog.
"""

from __future__ import annotations

import json

import click

from provisioner.ui.cli import cli_settings, fail


@click.group()
def catalog() -> None:
    """Application catalog — list and inspect installable apps."""


@catalog.command("list")
@click.option("--os", "operating_system", default=None, help="Only apps with tasks for this OS.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_apps(ctx: click.Context, operating_system: str | None, as_json: bool) -> None:
    """List every application in the catalog."""
    from provisioner.core.use_cases.provision import load_catalog

    apps = list(load_catalog(cli_settings(ctx)))
    if operating_system:
        apps = [app for app in apps if app.supports(operating_system)]

    if as_json:
        click.echo(json.dumps([
            {
                "id": app.id,
                "name": app.display_name,
                "dependencies": sorted(app.dependencies),
                "operating_systems": sorted(app.tasks_by_os),
            }
            for app in apps
        ], indent=2))
        return

    click.secho(f"📦 Applications ({len(apps)})", fg="cyan", bold=True)
    for app in apps:
        deps = f"  ← {', '.join(sorted(app.dependencies))}" if app.dependencies else ""
        os_list = ", ".join(sorted(app.tasks_by_os)) or "-"
        click.echo(f"   • {app.id:<12} {app.display_name} [{os_list}]{deps}")


@catalog.command("show")
@click.argument("app_id")
@click.option("--os", "operating_system", default="linux", help="Task list to show.")
@click.pass_context
def show(ctx: click.Context, app_id: str, operating_system: str) -> None:
    """Show one application's dependencies, secrets and tasks."""
    from provisioner.core.use_cases.provision import load_catalog

    app = load_catalog(cli_settings(ctx)).get(app_id)
    if app is None:
        fail(f"Unknown application: '{app_id}'")

    click.secho(f"📦 {app.display_name} ({app.id})", fg="cyan", bold=True)
    if app.dependencies:
        click.echo(f"   Requires: {', '.join(sorted(app.dependencies))}")
    if app.secrets:
        click.echo(f"   Secrets:  {', '.join(app.secrets)}")

    tasks = app.tasks_for(operating_system)
    if not tasks:
        click.secho(f"   No tasks for {operating_system}", fg="yellow")
        return
    click.echo(f"   Tasks ({operating_system}):")
    for task in tasks:
        click.echo(f"     - {task.name}  [{task.module}]")
