"""
CLI commands that compile artifacts without running anything.

    generate   request file → setup package directory
    inventory  servers file → inventory (by-os, by-app, dynamic JSON)
"""

from __future__ import annotations

import json
from pathlib import Path

import click

from provisioner.core.errors import ConfigurationError
from provisioner.ui.cli import cli_settings, fail


@click.command()
@click.argument("request_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output", "-o", "output_dir",
    type=click.Path(file_okay=False, path_type=Path), default=None,
    help="Directory to write the package into (default: print the playbook).",
)
@click.option("--overwrite", is_flag=True, help="Replace files that already exist.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def generate(
    ctx: click.Context,
    request_file: Path,
    output_dir: Path | None,
    overwrite: bool,
    as_json: bool,
) -> None:
    """Compile REQUEST_FILE into a playbook, inventory and setup package."""
    from provisioner.core.config.loader import load_request
    from provisioner.core.services.setup_package import write_package
    from provisioner.core.use_cases.provision import generate_setup

    settings = cli_settings(ctx)
    try:
        request = load_request(request_file)
        package = generate_setup(request, settings=settings)
        written = write_package(package, output_dir, overwrite=overwrite) if output_dir else []
    except ConfigurationError as e:
        fail(str(e))

    if as_json:
        data = package.to_dict(include_content=output_dir is None)
        data["written"] = [str(p) for p in written]
        click.echo(json.dumps(data, indent=2))
        return

    if output_dir is None:
        playbook = package.file("playbook.yml")
        click.echo(playbook.content if playbook else "", nl=False)
        return

    click.secho(f"✅ Setup package for {package.hostname}", fg="green", bold=True)
    click.echo(f"   Order:  {' → '.join(package.resolved_order) or '(none)'}")
    click.echo(f"   Output: {output_dir}")
    for path in written:
        click.echo(f"     • {path.relative_to(output_dir.resolve())}")
    skipped = len(package.files) - len(written)
    if skipped:
        click.secho(f"   {skipped} existing file(s) kept (use --overwrite)", fg="yellow")
    click.echo()
    click.echo(f"   Deploy: {package.commands['deploy']}")


@click.command()
@click.argument("servers_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--mode",
    type=click.Choice(["by-os", "by-app", "dynamic"]),
    default="by-os",
    show_default=True,
    help="Grouping (dynamic = by-app as runner --list JSON).",
)
@click.option(
    "--output", "-o", "output_file",
    type=click.Path(dir_okay=False, path_type=Path), default=None,
    help="Write to a file instead of stdout.",
)
@click.pass_context
def inventory(
    ctx: click.Context, servers_file: Path, mode: str, output_file: Path | None,
) -> None:
    """Build an inventory for every server in SERVERS_FILE."""
    from provisioner.core.config.loader import load_servers
    from provisioner.core.services.inventory import InventoryCompiler
    from provisioner.core.services.serializer import (
        render_dynamic_inventory,
        render_inventory,
    )

    compiler = InventoryCompiler.from_settings(cli_settings(ctx))
    try:
        servers = load_servers(servers_file)
        if mode == "by-os":
            text = render_inventory(compiler.by_os(servers))
        elif mode == "by-app":
            text = render_inventory(compiler.by_application(servers))
        else:
            text = render_dynamic_inventory(compiler.by_application(servers)) + "\n"
    except ConfigurationError as e:
        fail(str(e))

    if output_file is None:
        click.echo(text, nl=False)
        return

    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(text, encoding="utf-8")
    click.secho(f"✅ Inventory written: {output_file} ({len(servers)} host(s))", fg="green")
