"""
CLI commands for running and managing deployments.

Thin wrappers over ``provisioner.core.engine`` and the provision use case.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import click

from provisioner.core.engine import ExecutionEngine
from provisioner.core.errors import ProvisioningError
from provisioner.core.models.deployment import RunEvent, RunOptions, RunResult
from provisioner.ui.cli import cli_settings, fail


def _engine(ctx: click.Context) -> ExecutionEngine:
    return ExecutionEngine(settings=cli_settings(ctx))


def parse_extra_vars(values: tuple[str, ...]) -> dict[str, Any]:
    """``-e key=value`` pairs, or ``-e '{"json": "object"}'``."""
    extra: dict[str, Any] = {}
    for raw in values:
        raw = raw.strip()
        if raw.startswith("{"):
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                raise click.BadParameter(f"invalid JSON: {e}", param_hint="-e") from e
            if not isinstance(data, dict):
                raise click.BadParameter("JSON extra vars must be an object", param_hint="-e")
            extra.update(data)
            continue
        key, sep, value = raw.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got {raw!r}", param_hint="-e")
        extra[key.strip()] = value
    return extra


def _echo_event(event: RunEvent) -> None:
    if event.type == "stdout":
        click.echo(event.data, nl=False)
    elif event.type == "stderr":
        click.echo(event.data, nl=False, err=True)


def _report(result: RunResult, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        click.echo()
        if result.success:
            click.secho(f"✅ {result.deployment_id} succeeded", fg="green", bold=True)
        elif result.timed_out:
            click.secho(f"⏱  {result.deployment_id} timed out", fg="red", bold=True)
        else:
            click.secho(
                f"❌ {result.deployment_id} failed (exit {result.exit_code})",
                fg="red", bold=True,
            )
        click.echo(f"   Directory: {result.working_dir}")
        click.echo(f"   Duration:  {result.duration_ms}ms")
    if not result.success:
        sys.exit(1)


@click.group()
def deploy() -> None:
    """Deployments — run, check, ad-hoc, status, cleanup, delete."""


# ── Run ─────────────────────────────────────────────────────────────


@deploy.command("run")
@click.argument("request_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--id", "deployment_id", default=None, help="Deployment id (default: generated).")
@click.option("--check", "check_mode", is_flag=True, help="Dry run (runner --check).")
@click.option("--diff", is_flag=True, help="Show changes (runner --diff).")
@click.option("--limit", default=None, help="Restrict to a host pattern.")
@click.option("--tags", default=None, help="Comma-separated tags to run.")
@click.option("--skip-tags", default=None, help="Comma-separated tags to skip.")
@click.option("-e", "--extra-vars", "extra_vars", multiple=True, help="key=value or JSON object.")
@click.option("--no-become", is_flag=True, help="Do not pass --become.")
@click.option("--verbosity", type=click.IntRange(0, 4), default=0, help="Runner -v level (0-4).")
@click.option(
    "--timeout", "timeout_seconds",
    type=click.FloatRange(min=0, min_open=True), default=None,
    help="Kill the runner after N seconds.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def run_cmd(
    ctx: click.Context,
    request_file: Path,
    deployment_id: str | None,
    check_mode: bool,
    diff: bool,
    limit: str | None,
    tags: str | None,
    skip_tags: str | None,
    extra_vars: tuple[str, ...],
    no_become: bool,
    verbosity: int,
    timeout_seconds: float | None,
    as_json: bool,
) -> None:
    """Compile REQUEST_FILE and run it against its server."""
    from provisioner.core.config.loader import load_request
    from provisioner.core.use_cases.provision import provision

    options = RunOptions(
        deployment_id=deployment_id,
        check_mode=check_mode,
        diff=diff,
        limit=limit,
        tags=tags,
        skip_tags=skip_tags,
        extra_vars=parse_extra_vars(extra_vars),
        become=not no_become,
        verbose=verbosity,
        timeout_seconds=timeout_seconds,
    )
    engine = _engine(ctx)
    try:
        request = load_request(request_file)
        result = provision(
            request, engine, options, on_event=None if as_json else _echo_event,
        )
    except ProvisioningError as e:
        fail(str(e))

    _report(result, as_json)


@deploy.command("check")
@click.argument("request_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def check_cmd(ctx: click.Context, request_file: Path, as_json: bool) -> None:
    """Compile REQUEST_FILE and syntax-check it (nothing is kept)."""
    from provisioner.core.config.loader import load_request
    from provisioner.core.use_cases.provision import check_request

    try:
        result = check_request(load_request(request_file), _engine(ctx))
    except ProvisioningError as e:
        fail(str(e))

    if as_json:
        click.echo(json.dumps(result, indent=2))
    elif result["valid"]:
        click.secho(f"✅ Playbook for {result['hostname']} is valid", fg="green", bold=True)
    else:
        click.secho(f"❌ Playbook for {result['hostname']} is invalid", fg="red", bold=True)
        click.echo(result["errors"] or "")
    if not result["valid"]:
        sys.exit(1)


@deploy.command("adhoc")
@click.argument("servers_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("module")
@click.option("--args", "-a", "module_args", default="", help="Module arguments.")
@click.option("--pattern", default="all", show_default=True, help="Host pattern.")
@click.option("--limit", default=None, help="Restrict to a host pattern.")
@click.option("--become/--no-become", default=False, help="Escalate privileges.")
@click.option(
    "--timeout", "timeout_seconds",
    type=click.FloatRange(min=0, min_open=True), default=None,
    help="Kill the runner after N seconds.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def adhoc_cmd(
    ctx: click.Context,
    servers_file: Path,
    module: str,
    module_args: str,
    pattern: str,
    limit: str | None,
    become: bool,
    timeout_seconds: float | None,
    as_json: bool,
) -> None:
    """Run MODULE against the servers in SERVERS_FILE (e.g. ``ping``)."""
    from provisioner.core.config.loader import load_servers
    from provisioner.core.services.inventory import InventoryCompiler

    try:
        compiler = InventoryCompiler.from_settings(cli_settings(ctx))
        inventory = compiler.by_os(load_servers(servers_file))
        options = RunOptions(
            pattern=pattern, limit=limit, become=become, timeout_seconds=timeout_seconds,
        )
        result = _engine(ctx).run_adhoc(
            module, module_args, inventory, options,
            on_event=None if as_json else _echo_event,
        )
    except ProvisioningError as e:
        fail(str(e))

    _report(result, as_json)


# ── Manage ──────────────────────────────────────────────────────────


@deploy.command("status")
@click.argument("deployment_id")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status_cmd(ctx: click.Context, deployment_id: str, as_json: bool) -> None:
    """Show a deployment directory and the tail of its log."""
    try:
        status = _engine(ctx).status(deployment_id)
    except ProvisioningError as e:
        fail(str(e))

    if as_json:
        click.echo(json.dumps(status.model_dump(mode="json"), indent=2))
        return

    if not status.exists:
        click.secho(f"❓ No deployment '{deployment_id}'", fg="yellow")
        sys.exit(1)

    click.secho(f"📋 {deployment_id}", fg="cyan", bold=True)
    click.echo(f"   Created:  {status.created_at}")
    click.echo(f"   Modified: {status.modified_at}")
    if status.log_excerpt:
        click.echo()
        click.echo(status.log_excerpt)


@deploy.command("cleanup")
@click.option(
    "--max-age-days", type=float, default=None,
    help="Remove deployments at least this old (default: from settings).",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def cleanup_cmd(ctx: click.Context, max_age_days: float | None, as_json: bool) -> None:
    """Remove old deployment directories."""
    engine = _engine(ctx)
    days = engine.settings.cleanup_max_age_days if max_age_days is None else max_age_days
    removed = engine.cleanup(days * 24 * 60 * 60 * 1000)

    if as_json:
        click.echo(json.dumps({"removed": removed}, indent=2))
        return
    if not removed:
        click.echo("Nothing to clean up.")
        return
    click.secho(f"🧹 Removed {len(removed)} deployment(s)", fg="green")
    for deployment_id in removed:
        click.echo(f"   • {deployment_id}")


@deploy.command("delete")
@click.argument("deployment_id")
@click.pass_context
def delete_cmd(ctx: click.Context, deployment_id: str) -> None:
    """Delete one deployment directory."""
    try:
        deleted = _engine(ctx).delete(deployment_id)
    except ProvisioningError as e:
        fail(str(e))

    if not deleted:
        click.secho(f"❓ No deployment '{deployment_id}'", fg="yellow")
        sys.exit(1)
    click.secho(f"🗑  Deleted {deployment_id}", fg="green")
