"""
Execution engine — runs compiled document pairs as tracked deployments.

Every run owns one directory::

    <root>/<deployment_id>/
        playbook.yml
        inventory.yml
        ansible.cfg
        ansible.log

Flow:
    allocate dir → write artifacts → spawn runner → stream events → result

A deployment directory is created with ``mkdir(exist_ok=False)``, so two
concurrent runs can never share one. The only shared mutable state is
the in-memory deployment table, guarded by ``_lock``.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
import threading
import time
import uuid
from collections.abc import Callable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import UTC, datetime
from pathlib import Path

from provisioner.core.config.loader import EngineSettings
from provisioner.core.engine.process import RunnerProcess
from provisioner.core.errors import (
    ConfigurationError,
    DeploymentConflictError,
    ExecutionEnvironmentError,
)
from provisioner.core.models.deployment import (
    Deployment,
    DeploymentStatus,
    RunEvent,
    RunOptions,
    RunResult,
    SyntaxCheckResult,
)
from provisioner.core.models.document import PlaybookDocument
from provisioner.core.models.inventory import InventoryModel
from provisioner.core.services.runner_config import (
    CONFIG_FILE,
    INVENTORY_FILE,
    LOG_FILE,
    PLAYBOOK_FILE,
    build_adhoc_command,
    build_playbook_command,
    build_syntax_check_command,
    render_run_config,
    runner_env,
)
from provisioner.core.services.serializer import render_inventory, render_playbook

logger = logging.getLogger(__name__)

EventCallback = Callable[[RunEvent], None]

_SAFE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")


def generate_deployment_id(prefix: str = "deploy") -> str:
    """Generate a unique deployment ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"{prefix}-{now}-{short}"


def validate_deployment_id(deployment_id: str) -> str:
    """Reject ids that are not a single safe path component."""
    if not _SAFE_ID.match(deployment_id) or ".." in deployment_id:
        raise ConfigurationError(f"Invalid deployment id: {deployment_id!r}")
    return deployment_id


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, UTC).isoformat()


def _read_log(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug("Log not readable at %s: %s", path, e)
        return ""


def _as_playbook_text(document: PlaybookDocument | str) -> str:
    return document if isinstance(document, str) else render_playbook(document)


def _as_inventory_text(inventory: InventoryModel | str) -> str:
    return inventory if isinstance(inventory, str) else render_inventory(inventory)


class ExecutionEngine:
    """Runs the external automation runner against compiled artifacts.

    Args:
        root: Directory holding one subdirectory per deployment
            (default: ``settings.work_dir``).
        settings: Engine settings (binaries, vault file, timeouts).
    """

    def __init__(
        self,
        root: Path | str | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.root = Path(root).expanduser() if root is not None else self.settings.work_path
        self._lock = threading.Lock()
        self._deployments: dict[str, Deployment] = {}
        self._active: set[str] = set()
        self._subscribers: list[EventCallback] = []
        self._pool: ThreadPoolExecutor | None = None

    def __repr__(self) -> str:
        return f"ExecutionEngine(root={str(self.root)!r})"

    # ── Setup ───────────────────────────────────────────────────

    def initialize(self) -> None:
        """Create the root directory (idempotent) and check it is writable."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ExecutionEnvironmentError(
                f"Cannot create deployment root: {e}", working_dir=str(self.root),
            ) from e
        if not os.access(self.root, os.W_OK | os.X_OK):
            raise ExecutionEnvironmentError(
                "Deployment root is not writable", working_dir=str(self.root),
            )
        logger.debug("Deployment root ready at %s", self.root)

    def subscribe(self, callback: EventCallback) -> None:
        """Register a listener for every event of every run."""
        with self._lock:
            self._subscribers.append(callback)

    def shutdown(self, wait: bool = True) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=wait)
            self._pool = None

    # ── Runs ────────────────────────────────────────────────────

    def stream(
        self,
        document: PlaybookDocument | str,
        inventory: InventoryModel | str,
        options: RunOptions | None = None,
    ) -> Iterator[RunEvent]:
        """Run a playbook, yielding its events as they happen.

        The final event is always ``exit``. Subscribers see the same
        events.
        """
        options = options or RunOptions()
        deployment, cmd = self._prepare_playbook(document, inventory, options)
        yield from self._drive(deployment, cmd, options, None)

    def run(
        self,
        document: PlaybookDocument | str,
        inventory: InventoryModel | str,
        options: RunOptions | None = None,
        on_event: EventCallback | None = None,
    ) -> RunResult:
        """Run a playbook to completion.

        Raises:
            ExecutionEnvironmentError: Runner could not be started or the
                working directory could not be prepared.
            DeploymentConflictError: ``options.deployment_id`` already exists.
        """
        options = options or RunOptions()
        deployment, cmd = self._prepare_playbook(document, inventory, options)
        for _ in self._drive(deployment, cmd, options, on_event):
            pass
        return self._result(deployment)

    def submit(
        self,
        document: PlaybookDocument | str,
        inventory: InventoryModel | str,
        options: RunOptions | None = None,
        on_event: EventCallback | None = None,
    ) -> Future[RunResult]:
        """Schedule ``run()`` on the engine's worker pool."""
        with self._lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self.settings.max_workers,
                    thread_name_prefix="deployment",
                )
            pool = self._pool
        return pool.submit(self.run, document, inventory, options, on_event)

    def run_adhoc(
        self,
        module: str,
        args: str,
        inventory: InventoryModel | str,
        options: RunOptions | None = None,
        on_event: EventCallback | None = None,
    ) -> RunResult:
        """Run a single module against ``options.pattern`` (e.g. ``ping``)."""
        options = options or RunOptions()
        deployment = self._allocate(options.deployment_id, kind="adhoc")
        work = Path(deployment.working_dir)

        inventory_path = work / INVENTORY_FILE
        try:
            self._write(deployment, inventory_path, _as_inventory_text(inventory))
            self._write_config(deployment)
        except ExecutionEnvironmentError as e:
            self._fail_unstarted(deployment, e)
            raise
        deployment.inventory_path = str(inventory_path)

        cmd = build_adhoc_command(
            self.settings.adhoc_binary, module, args, inventory_path, options,
        )
        for _ in self._drive(deployment, cmd, options, on_event):
            pass
        return self._result(deployment)

    def check_syntax(
        self,
        document: PlaybookDocument | str,
        inventory: InventoryModel | str,
    ) -> SyntaxCheckResult:
        """Syntax-only check in a throwaway directory, always removed."""
        self.initialize()
        try:
            work = Path(tempfile.mkdtemp(prefix="syntax-check-", dir=self.root))
        except OSError as e:
            raise ExecutionEnvironmentError(
                f"Cannot create syntax-check directory: {e}", working_dir=str(self.root),
            ) from e
        try:
            playbook_path = work / PLAYBOOK_FILE
            inventory_path = work / INVENTORY_FILE
            playbook_path.write_text(_as_playbook_text(document), encoding="utf-8")
            inventory_path.write_text(_as_inventory_text(inventory), encoding="utf-8")
            config_path = work / CONFIG_FILE
            log_path = work / LOG_FILE
            config_path.write_text(
                render_run_config(log_path, timeout=self.settings.connection_timeout),
                encoding="utf-8",
            )

            cmd = build_syntax_check_command(
                self.settings.playbook_binary, playbook_path, inventory_path,
            )
            proc = RunnerProcess(
                cmd,
                cwd=work,
                env=runner_env(config_path, log_path, dict(os.environ)),
                deadline_seconds=self.settings.default_timeout_seconds,
            )
            stdout: list[str] = []
            stderr: list[str] = []
            for event in proc:
                if event.type == "stdout":
                    stdout.append(event.data)
                elif event.type == "stderr":
                    stderr.append(event.data)

            if proc.returncode == 0 and not proc.timed_out:
                return SyntaxCheckResult(valid=True)
            errors = "".join(stderr) or "".join(stdout)
            if proc.timed_out:
                errors = errors or "Syntax check timed out"
            return SyntaxCheckResult(valid=False, errors=errors)
        except OSError as e:
            raise ExecutionEnvironmentError(
                f"Cannot prepare syntax check: {e}", working_dir=str(work),
            ) from e
        finally:
            shutil.rmtree(work, ignore_errors=True)

    # ── Inspection ──────────────────────────────────────────────

    def get(self, deployment_id: str) -> Deployment | None:
        with self._lock:
            return self._deployments.get(deployment_id)

    def deployments(self) -> list[Deployment]:
        with self._lock:
            return list(self._deployments.values())

    def status(self, deployment_id: str) -> DeploymentStatus:
        """Filesystem view of one deployment plus its log excerpt."""
        validate_deployment_id(deployment_id)
        work = self.root / deployment_id
        tracked = self.get(deployment_id)
        state = tracked.state if tracked else None

        try:
            stat = work.stat()
        except FileNotFoundError:
            return DeploymentStatus(deployment_id=deployment_id, exists=False, state=state)
        except OSError as e:
            raise ExecutionEnvironmentError(
                f"Cannot stat deployment: {e}",
                deployment_id=deployment_id, working_dir=str(work),
            ) from e
        if not work.is_dir():
            return DeploymentStatus(deployment_id=deployment_id, exists=False, state=state)

        log = _read_log(work / LOG_FILE)
        limit = self.settings.log_excerpt_chars
        return DeploymentStatus(
            deployment_id=deployment_id,
            exists=True,
            created_at=_iso(stat.st_ctime),
            modified_at=_iso(stat.st_mtime),
            log_excerpt=log[-limit:] if limit > 0 else "",
            state=state,
        )

    # ── Removal ─────────────────────────────────────────────────

    def delete(self, deployment_id: str) -> bool:
        """Remove one deployment directory.

        Returns:
            True if a directory was removed; False if it did not exist or
            the deployment is still running in this engine.
        """
        validate_deployment_id(deployment_id)
        work = self.root / deployment_id
        with self._lock:
            if deployment_id in self._active:
                logger.warning("Refusing to delete running deployment %s", deployment_id)
                return False
            self._deployments.pop(deployment_id, None)

        if not work.is_dir():
            return False
        try:
            shutil.rmtree(work)
        except OSError as e:
            raise ExecutionEnvironmentError(
                f"Cannot delete deployment: {e}",
                deployment_id=deployment_id, working_dir=str(work),
            ) from e
        logger.info("Deleted deployment %s", deployment_id)
        return True

    def cleanup(self, max_age_ms: float | None = None) -> list[str]:
        """Remove deployment directories at least ``max_age_ms`` old.

        Per-entry failures are logged and skipped. Deployments this
        engine is currently running are never removed.

        Returns:
            Ids of the removed deployments.
        """
        if max_age_ms is None:
            max_age_ms = self.settings.cleanup_max_age_days * 24 * 60 * 60 * 1000
        if not self.root.is_dir():
            return []

        with self._lock:
            active = set(self._active)

        now = time.time()
        removed: list[str] = []
        for entry in sorted(self.root.iterdir()):
            if entry.name in active:
                continue
            try:
                if not entry.is_dir():
                    continue
                age_ms = (now - entry.stat().st_mtime) * 1000
                if age_ms < max_age_ms:
                    continue
                shutil.rmtree(entry)
            except OSError as e:
                logger.warning("Cleanup skipped %s: %s", entry, e)
                continue
            with self._lock:
                self._deployments.pop(entry.name, None)
            removed.append(entry.name)

        if removed:
            logger.info("Cleaned up %d deployment(s)", len(removed))
        return removed

    # ── Internals ───────────────────────────────────────────────

    def _allocate(self, deployment_id: str | None, *, kind: str) -> Deployment:
        self.initialize()
        deployment_id = validate_deployment_id(deployment_id or generate_deployment_id())
        work = self.root / deployment_id
        try:
            work.mkdir(exist_ok=False)
        except FileExistsError as e:
            raise DeploymentConflictError(deployment_id, str(work)) from e
        except OSError as e:
            raise ExecutionEnvironmentError(
                f"Cannot create working directory: {e}",
                deployment_id=deployment_id, working_dir=str(work),
            ) from e

        deployment = Deployment(id=deployment_id, working_dir=str(work), kind=kind)
        with self._lock:
            self._deployments[deployment_id] = deployment
        logger.info("Allocated deployment %s at %s", deployment_id, work)
        return deployment

    def _write(self, deployment: Deployment, path: Path, content: str) -> None:
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise ExecutionEnvironmentError(
                f"Cannot write {path.name}: {e}",
                deployment_id=deployment.id, working_dir=deployment.working_dir,
            ) from e

    def _fail_unstarted(self, deployment: Deployment, error: Exception) -> None:
        # States only move forward, so an unstarted deployment passes through running
        with self._lock:
            deployment.transition("running")
            deployment.transition("failed")
        deployment.stderr = str(error)
        logger.error("Deployment %s could not be prepared: %s", deployment.id, error)

    def _write_config(self, deployment: Deployment) -> None:
        work = Path(deployment.working_dir)
        log_path = work / LOG_FILE
        config_path = work / CONFIG_FILE
        self._write(
            deployment,
            config_path,
            render_run_config(log_path, timeout=self.settings.connection_timeout),
        )
        deployment.config_path = str(config_path)
        deployment.log_path = str(log_path)

    def _prepare_playbook(
        self,
        document: PlaybookDocument | str,
        inventory: InventoryModel | str,
        options: RunOptions,
    ) -> tuple[Deployment, list[str]]:
        deployment = self._allocate(options.deployment_id, kind="playbook")
        work = Path(deployment.working_dir)

        playbook_path = work / PLAYBOOK_FILE
        inventory_path = work / INVENTORY_FILE
        try:
            self._write(deployment, playbook_path, _as_playbook_text(document))
            self._write(deployment, inventory_path, _as_inventory_text(inventory))
            self._write_config(deployment)
        except ExecutionEnvironmentError as e:
            self._fail_unstarted(deployment, e)
            raise
        deployment.playbook_path = str(playbook_path)
        deployment.inventory_path = str(inventory_path)

        cmd = build_playbook_command(
            self.settings.playbook_binary,
            playbook_path,
            inventory_path,
            options,
            vault_password_file=self.settings.vault_password_file,
        )
        return deployment, cmd

    def _drive(
        self,
        deployment: Deployment,
        cmd: list[str],
        options: RunOptions,
        on_event: EventCallback | None,
    ) -> Iterator[RunEvent]:
        work = Path(deployment.working_dir)
        env = runner_env(
            Path(deployment.config_path or work / CONFIG_FILE),
            Path(deployment.log_path or work / LOG_FILE),
            dict(os.environ),
        )
        deadline = options.timeout_seconds or self.settings.default_timeout_seconds

        with self._lock:
            self._active.add(deployment.id)
            deployment.transition("running")
        try:
            try:
                proc = RunnerProcess(
                    cmd, cwd=work, env=env,
                    deadline_seconds=deadline, deployment_id=deployment.id,
                )
            except ExecutionEnvironmentError as e:
                deployment.stderr = str(e)
                deployment.transition("failed")
                logger.error("Deployment %s could not start: %s", deployment.id, e)
                raise

            logger.info("Deployment %s started (pid %d)", deployment.id, proc.pid)
            stdout: list[str] = []
            stderr: list[str] = []
            try:
                for event in proc:
                    if event.type == "stdout":
                        stdout.append(event.data)
                    elif event.type == "stderr":
                        stderr.append(event.data)
                    self._emit(event, on_event)
                    yield event
            except GeneratorExit:
                # Consumer stopped listening; the child must not outlive it
                proc.kill()
                deployment.exit_code = proc.wait()
                deployment.duration_ms = proc.elapsed_ms
                deployment.stdout = "".join(stdout)
                deployment.stderr = "".join(stderr)
                deployment.transition("failed")
                logger.warning("Deployment %s abandoned by its consumer", deployment.id)
                raise

            deployment.stdout = "".join(stdout)
            deployment.stderr = "".join(stderr)
            deployment.exit_code = proc.returncode
            deployment.timed_out = proc.timed_out
            deployment.duration_ms = proc.elapsed_ms
            if proc.returncode == 0 and not proc.timed_out:
                deployment.transition("succeeded")
            else:
                deployment.transition("failed")
            logger.info(
                "Deployment %s finished: %s (exit %s, %dms)",
                deployment.id, deployment.state, proc.returncode, proc.elapsed_ms,
            )
        finally:
            with self._lock:
                self._active.discard(deployment.id)

    def _emit(self, event: RunEvent, on_event: EventCallback | None) -> None:
        with self._lock:
            listeners = list(self._subscribers)
        if on_event is not None:
            listeners.insert(0, on_event)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed on %s event", event.type)

    def _result(self, deployment: Deployment) -> RunResult:
        if deployment.state == "succeeded":
            status = "succeeded"
        elif deployment.timed_out:
            status = "timeout"
        else:
            status = "failed"
        log_path = Path(deployment.log_path) if deployment.log_path else None
        return RunResult(
            deployment_id=deployment.id,
            status=status,
            exit_code=deployment.exit_code,
            stdout=deployment.stdout,
            stderr=deployment.stderr,
            duration_ms=deployment.duration_ms,
            log_content=_read_log(log_path) if log_path else "",
            working_dir=deployment.working_dir,
            playbook_path=deployment.playbook_path,
            inventory_path=deployment.inventory_path,
        )
