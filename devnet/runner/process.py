"""Launch external programs in buffered or streamed capture mode."""

from __future__ import annotations

import enum
import logging
import shlex
import shutil
import subprocess
import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from devnet.errors import DevnetError
from devnet.runner.log_stream import STDERR, STDOUT, LogRelay, LogSink

__all__ = [
    "CaptureMode",
    "ExecutionError",
    "LaunchError",
    "ProcessInvocation",
    "ProcessOutcome",
    "ProcessRunner",
    "RunningProcess",
    "ensure_required_binaries",
]

logger = logging.getLogger("devnet.runner")


class LaunchError(DevnetError):
    """Raised when an external program cannot be spawned."""


class ExecutionError(DevnetError):
    """Raised when a spawned program cannot be waited on."""


class CaptureMode(enum.Enum):
    BUFFERED = "buffered"
    STREAMED = "streamed"


@dataclass(slots=True)
class ProcessInvocation:
    """One external program run."""

    program: str
    args: Sequence[str] = ()
    cwd: Path | None = None
    mode: CaptureMode = CaptureMode.BUFFERED

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]

    def describe(self) -> str:
        return shlex.join(self.argv)


@dataclass(slots=True)
class ProcessOutcome:
    """Result of a finished invocation."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None

    @property
    def diagnostic(self) -> str:
        return self.stderr if self.stderr.strip() else self.stdout


@dataclass(slots=True)
class RunningProcess:
    """Handle to a streamed child whose pipes are being relayed."""

    invocation: ProcessInvocation
    process: subprocess.Popen[bytes]
    sink: LogSink
    relays: list[threading.Thread] = field(default_factory=list)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> int | None:
        return self.process.returncode

    def poll(self) -> int | None:
        """Non-blocking completion check."""

        try:
            return self.process.poll()
        except OSError as exc:
            raise ExecutionError(f"Unable to poll {self.invocation.describe()}: {exc}") from exc

    def kill(self) -> None:
        if self.process.poll() is None:
            logger.warning("Killing %s (pid %s)", self.invocation.describe(), self.pid)
            self.process.kill()
            try:
                self.process.wait(timeout=10)
            except subprocess.TimeoutExpired as exc:
                raise ExecutionError(f"Process {self.pid} did not exit after kill") from exc

    def join_relays(self, timeout: float | None = None) -> None:
        for thread in self.relays:
            thread.join(timeout)

    def outcome(self) -> ProcessOutcome:
        code = self.returncode
        return ProcessOutcome(
            success=code == 0,
            stdout=self.sink.text(STDOUT),
            stderr=self.sink.text(STDERR),
            exit_code=code,
        )


class ProcessRunner:
    """Spawn child processes without touching the parent's working directory."""

    def run(self, invocation: ProcessInvocation, sink: LogSink | None = None) -> ProcessOutcome:
        """Run ``invocation`` to completion and return its captured output.

        Streamed invocations are relayed line by line to ``sink`` while the
        process runs; buffered invocations block until exit and return the
        full stdout/stderr text.
        """

        if invocation.mode is CaptureMode.STREAMED:
            running = self.spawn(invocation, sink or LogSink())
            try:
                running.process.wait()
            except OSError as exc:  # pragma: no cover - wait plumbing
                raise ExecutionError(str(exc)) from exc
            running.join_relays()
            return running.outcome()

        logger.debug("Running %s in %s", invocation.describe(), invocation.cwd)
        process = self._popen(invocation)
        try:
            stdout, stderr = process.communicate()
        except OSError as exc:  # pragma: no cover - wait plumbing
            raise ExecutionError(f"Unable to wait on {invocation.describe()}: {exc}") from exc
        outcome = ProcessOutcome(
            success=process.returncode == 0,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=process.returncode,
        )
        if not outcome.success:
            logger.debug("%s exited with %s", invocation.describe(), process.returncode)
        return outcome

    def spawn(self, invocation: ProcessInvocation, sink: LogSink) -> RunningProcess:
        """Start ``invocation`` and hand both pipes to a relay before it exits."""

        logger.debug("Spawning %s in %s", invocation.describe(), invocation.cwd)
        process = self._popen(invocation)
        relays = LogRelay(sink).attach(process.stdout, process.stderr)
        return RunningProcess(invocation=invocation, process=process, sink=sink, relays=relays)

    @staticmethod
    def _popen(invocation: ProcessInvocation) -> subprocess.Popen[bytes]:
        try:
            return subprocess.Popen(  # noqa: S603
                invocation.argv,
                cwd=str(invocation.cwd) if invocation.cwd is not None else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
            )
        except OSError as exc:
            raise LaunchError(f"Failed to start {invocation.describe()}: {exc}") from exc


def ensure_required_binaries(names: Iterable[str]) -> None:
    """Raise :class:`LaunchError` for the first binary missing from ``PATH``."""

    for name in names:
        if shutil.which(name) is None:
            raise LaunchError(f"Required binary '{name}' is not available on PATH")
        logger.debug("Found binary: %s", name)
