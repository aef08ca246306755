"""Keep the local devnet checkout cloned, current, and its submodules fetched."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from devnet.checkout.status import STATUS_ARGS, UpstreamStatus, parse_status
from devnet.config import DevnetConfig
from devnet.errors import DevnetError
from devnet.runner import (
    BoundedPoller,
    CaptureMode,
    LogChunk,
    LogSink,
    PollOutcome,
    ProcessInvocation,
    ProcessOutcome,
    ProcessRunner,
)

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from devnet.lifecycle.progress import ProgressReporter

__all__ = [
    "METADATA_DIRNAME",
    "FilesystemError",
    "LocalCheckout",
    "RepositorySynchronizer",
    "SubmoduleTimeoutError",
    "SyncError",
]

METADATA_DIRNAME = ".git"

logger = logging.getLogger("devnet.checkout")


class FilesystemError(DevnetError):
    """Raised when the checkout directory cannot be created or removed."""


class SyncError(DevnetError):
    """Raised when a git step fails; carries the tool's diagnostic text."""

    def __init__(self, step: str, diagnostic: str = ""):
        self.step = step
        self.diagnostic = diagnostic
        message = f"git {step} failed"
        if diagnostic:
            message = f"{message}: {diagnostic}"
        super().__init__(message)


class SubmoduleTimeoutError(SyncError):
    """Raised when the submodule update outlives its allotted duration."""


@dataclass(slots=True)
class LocalCheckout:
    """Descriptor for the on-disk working copy."""

    root: Path
    exists: bool
    has_metadata: bool
    cloned: bool = False
    pulled: bool = False
    submodules_updated: bool = False

    @classmethod
    def inspect(cls, root: Path) -> LocalCheckout:
        root = Path(root)
        return cls(
            root=root,
            exists=root.is_dir(),
            has_metadata=(root / METADATA_DIRNAME).exists(),
        )


class RepositorySynchronizer:
    """Decide between clone, pull, or no-op for the configured checkout."""

    def __init__(
        self,
        config: DevnetConfig,
        *,
        runner: ProcessRunner | None = None,
        poller: BoundedPoller | None = None,
        observers: Iterable[Callable[[LogChunk], None]] | None = None,
    ) -> None:
        self.config = config
        self.runner = runner or ProcessRunner()
        self.poller = poller or BoundedPoller(
            config.poll_interval,
            config.submodule_timeout,
            kill_on_timeout=config.kill_on_timeout,
        )
        self.observers = list(observers or [])

    def ensure_ready(
        self,
        target_root: Path | None = None,
        *,
        progress: ProgressReporter | None = None,
    ) -> LocalCheckout:
        root = (
            Path(target_root).expanduser().absolute()
            if target_root is not None
            else self.config.checkout
        )
        self._ensure_directory(root)
        checkout = LocalCheckout.inspect(root)

        if checkout.has_metadata:
            logger.info("Repository already cloned at %s", root)
            self._set_message(progress, "Checking repository status...")
            status = self.upstream_status(root)
            if status.is_behind:
                logger.info("Local branch is %d commit(s) behind; pulling", status.behind)
                self._set_message(progress, "Pulling latest changes...")
                self._pull(root)
                checkout.pulled = True
            else:
                logger.info("Repository is up to date")
        else:
            logger.info("Cloning %s into %s", self.config.repo_url, root)
            self._set_message(progress, "Cloning repository...")
            self._clone(root)
            checkout.cloned = True

        if checkout.cloned or checkout.pulled:
            self._set_message(progress, "Updating submodules...")
            self.update_submodules(root)
            checkout.submodules_updated = True

        checkout.exists = root.is_dir()
        checkout.has_metadata = (root / METADATA_DIRNAME).exists()
        return checkout

    # ------------------------------------------------------------------ git steps
    def upstream_status(self, root: Path) -> UpstreamStatus:
        outcome = self._git(*STATUS_ARGS, cwd=root)
        self._check("status", outcome)
        return parse_status(outcome.stdout)

    def update_submodules(self, root: Path) -> None:
        invocation = ProcessInvocation(
            program=self.config.git_executable,
            args=("submodule", "update", "--init", "--recursive"),
            cwd=root,
            mode=CaptureMode.STREAMED,
        )
        with LogSink(label="git submodule") as sink:
            for observer in self.observers:
                sink.add_listener(observer)
            running = self.runner.spawn(invocation, sink)
            result = self.poller.await_completion(running)
            if result is PollOutcome.TIMED_OUT:
                raise SubmoduleTimeoutError(
                    "submodule update",
                    f"no completion after {self.poller.max_duration:g}s",
                )
            running.join_relays()
            if result is PollOutcome.FAILURE:
                raise SyncError("submodule update", running.outcome().diagnostic)
        logger.info("Successfully updated submodules")

    def _clone(self, root: Path) -> None:
        outcome = self._git("clone", self.config.repo_url, str(root), cwd=root.parent)
        self._check("clone", outcome)

    def _pull(self, root: Path) -> None:
        outcome = self._git("pull", "origin", self.config.branch, cwd=root)
        self._check("pull", outcome)

    # ------------------------------------------------------------------ helpers
    def _git(self, *args: str, cwd: Path) -> ProcessOutcome:
        invocation = ProcessInvocation(
            program=self.config.git_executable,
            args=args,
            cwd=cwd,
            mode=CaptureMode.BUFFERED,
        )
        return self.runner.run(invocation)

    @staticmethod
    def _check(step: str, outcome: ProcessOutcome) -> None:
        if not outcome.success:
            raise SyncError(step, outcome.diagnostic)

    @staticmethod
    def _ensure_directory(root: Path) -> None:
        if root.exists():
            return
        logger.info("Creating checkout directory %s", root)
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FilesystemError(f"Failed to create directory {root}: {exc}") from exc

    @staticmethod
    def _set_message(progress: ProgressReporter | None, message: str) -> None:
        if progress is not None:
            progress.set_message(message)
