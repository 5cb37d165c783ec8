"""
Runner process — spawn, stream, and (on deadline) kill one child.

The SINGLE PLACE where the engine starts a subprocess. Two reader
threads per child push output chunks into a queue; iterating a
``RunnerProcess`` drains that queue and yields ``RunEvent``s, ending
with exactly one ``exit`` event.
"""

from __future__ import annotations

import logging
import os
import queue
import signal
import subprocess
import threading
import time
from collections.abc import Iterator
from pathlib import Path
from typing import IO

from provisioner.core.errors import ExecutionEnvironmentError
from provisioner.core.models.deployment import RunEvent

logger = logging.getLogger(__name__)

# How long to keep draining output after a kill
_KILL_GRACE_SECONDS = 5.0


def _pump(pipe: IO[str], kind: str, sink: queue.Queue) -> None:
    try:
        for line in iter(pipe.readline, ""):
            sink.put((kind, line))
    except (OSError, ValueError) as e:
        logger.debug("Reader for %s stopped: %s", kind, e)
    finally:
        pipe.close()
        sink.put((kind, None))


class RunnerProcess:
    """A started child process whose output is consumed as events.

    Args:
        cmd: Full command line.
        cwd: Working directory of the child.
        env: Complete environment of the child.
        deadline_seconds: Kill the child after this many seconds.
        deployment_id: Stamped onto every event.

    Raises:
        ExecutionEnvironmentError: The binary is missing or not executable.
    """

    def __init__(
        self,
        cmd: list[str],
        *,
        cwd: Path,
        env: dict[str, str],
        deadline_seconds: float | None = None,
        deployment_id: str = "",
    ) -> None:
        self.cmd = cmd
        self.deployment_id = deployment_id
        self.deadline_seconds = deadline_seconds
        self.timed_out = False
        self.returncode: int | None = None

        logger.debug("Spawning %s (cwd=%s)", cmd, cwd)
        try:
            self._proc = subprocess.Popen(
                cmd,
                cwd=str(cwd),
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                bufsize=1,
                start_new_session=True,
            )
        except FileNotFoundError as e:
            raise ExecutionEnvironmentError(
                f"Runner binary not found: {cmd[0]} ({e})",
                deployment_id=deployment_id or None,
                working_dir=str(cwd),
            ) from e
        except OSError as e:
            raise ExecutionEnvironmentError(
                f"Cannot start {cmd[0]}: {e}",
                deployment_id=deployment_id or None,
                working_dir=str(cwd),
            ) from e

        self._started = time.monotonic()
        self._queue: queue.Queue = queue.Queue()
        self._readers = [
            threading.Thread(
                target=_pump, args=(self._proc.stdout, "stdout", self._queue),
                daemon=True, name=f"runner-stdout-{self._proc.pid}",
            ),
            threading.Thread(
                target=_pump, args=(self._proc.stderr, "stderr", self._queue),
                daemon=True, name=f"runner-stderr-{self._proc.pid}",
            ),
        ]
        for reader in self._readers:
            reader.start()

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started) * 1000)

    def kill(self) -> None:
        """Kill the child and everything in its process group."""
        try:
            os.killpg(self._proc.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            self._proc.kill()

    def wait(self) -> int:
        """Reap the child and record its exit status."""
        self.returncode = self._proc.wait()
        return self.returncode

    def _remaining(self) -> float | None:
        if self.deadline_seconds is None:
            return None
        return self.deadline_seconds - (time.monotonic() - self._started)

    def __iter__(self) -> Iterator[RunEvent]:
        open_streams = len(self._readers)
        grace_until: float | None = None

        while open_streams:
            if grace_until is not None:
                timeout = max(0.0, grace_until - time.monotonic())
            else:
                timeout = self._remaining()
                if timeout is not None and timeout <= 0:
                    logger.warning(
                        "Deadline of %ss reached, killing pid %d",
                        self.deadline_seconds, self._proc.pid,
                    )
                    self.timed_out = True
                    self.kill()
                    grace_until = time.monotonic() + _KILL_GRACE_SECONDS
                    continue

            try:
                kind, chunk = self._queue.get(timeout=timeout)
            except queue.Empty:
                if grace_until is not None:
                    logger.warning("Output of pid %d still open after kill", self._proc.pid)
                    break
                continue

            if chunk is None:
                open_streams -= 1
                continue
            yield RunEvent(type=kind, deployment_id=self.deployment_id, data=chunk)

        self.wait()
        yield RunEvent(
            type="exit",
            deployment_id=self.deployment_id,
            exit_code=self.returncode,
            timed_out=self.timed_out,
        )
