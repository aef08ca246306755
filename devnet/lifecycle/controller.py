"""Sequence sync and docker compose steps for devnet lifecycle actions."""

from __future__ import annotations

import enum
import logging
import shutil
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from devnet.checkout import FilesystemError, RepositorySynchronizer
from devnet.config import DevnetConfig, load_config
from devnet.errors import DevnetError
from devnet.lifecycle.progress import NullProgress, ProgressReporter
from devnet.runner import (
    BoundedPoller,
    CaptureMode,
    LogChunk,
    ProcessInvocation,
    ProcessRunner,
)

__all__ = [
    "EnvironmentController",
    "LifecycleAction",
    "LifecycleResult",
    "LifecycleState",
    "LifecycleStepError",
    "ensure_environment_ready",
    "reset",
    "run_lifecycle_action",
    "start",
    "stop",
    "update",
]

logger = logging.getLogger("devnet.lifecycle")


class LifecycleAction(enum.Enum):
    START = "start"
    STOP = "stop"
    RESET = "reset"
    UPDATE = "update"


class LifecycleState(enum.Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    BUILDING = "building"
    PULLING_IMAGES = "pulling_images"
    STARTING = "starting"
    STOPPING = "stopping"
    RESETTING_FILES = "resetting_files"
    DONE = "done"
    FAILED = "failed"


class LifecycleStepError(DevnetError):
    """Raised when a docker compose step exits unsuccessfully."""

    def __init__(self, step: LifecycleState, diagnostic: str = ""):
        self.step = step
        self.diagnostic = diagnostic
        message = f"{step.value} failed"
        if diagnostic:
            message = f"{message}: {diagnostic}"
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class _ComposeStep:
    state: LifecycleState
    args: tuple[str, ...]
    message: str
    done: str


_COMPOSE_STEPS: dict[LifecycleAction, tuple[_ComposeStep, ...]] = {
    LifecycleAction.START: (
        _ComposeStep(
            LifecycleState.BUILDING,
            ("build",),
            "Building devnet containers...",
            "Successfully built devnet containers.",
        ),
        _ComposeStep(
            LifecycleState.PULLING_IMAGES,
            ("pull",),
            "Pulling changes to devnet containers...",
            "Successfully pulled changes to devnet containers.",
        ),
        _ComposeStep(
            LifecycleState.STARTING,
            ("up", "--wait", "-d"),
            "Starting devnet containers...",
            "Devnet environment started.",
        ),
    ),
    LifecycleAction.STOP: (
        _ComposeStep(
            LifecycleState.STOPPING,
            ("down", "-v"),
            "Stopping devnet containers...",
            "Devnet environment stopped.",
        ),
    ),
    LifecycleAction.UPDATE: (),
    LifecycleAction.RESET: (),
}

_CONFIRMATIONS = {
    LifecycleAction.START: "Devnet environment started.",
    LifecycleAction.STOP: "Devnet environment stopped.",
    LifecycleAction.UPDATE: "Devnet repository is up to date.",
    LifecycleAction.RESET: "Devnet repository reset.",
}


@dataclass(slots=True)
class LifecycleResult:
    """Single pass/fail outcome of one lifecycle action."""

    action: LifecycleAction
    checkout: Path
    success: bool = False
    failed_step: LifecycleState | None = None
    diagnostic: str = ""
    states: list[LifecycleState] = field(default_factory=list)
    error: DevnetError | None = None

    @property
    def message(self) -> str:
        if self.success:
            return _CONFIRMATIONS[self.action]
        step = self.failed_step.value if self.failed_step else "unknown"
        return f"{self.action.value} failed during {step}"

    def raise_for_status(self) -> None:
        if self.error is not None:
            raise self.error


class EnvironmentController:
    """Drive one lifecycle action at a time against the synchronized checkout.

    Steps run strictly in sequence; the first failure ends the action with
    the failing step's diagnostic output. Nothing is retried and no
    compensating action runs. Concurrent controllers on the same checkout
    are unsupported.
    """

    def __init__(
        self,
        config: DevnetConfig,
        *,
        runner: ProcessRunner | None = None,
        synchronizer: RepositorySynchronizer | None = None,
        poller: BoundedPoller | None = None,
        observers: Iterable[Callable[[LogChunk], None]] | None = None,
    ) -> None:
        self.config = config
        self.runner = runner or ProcessRunner()
        self.synchronizer = synchronizer or RepositorySynchronizer(
            config,
            runner=self.runner,
            poller=poller,
            observers=observers,
        )
        self.state = LifecycleState.IDLE

    @property
    def checkout(self) -> Path:
        return self.config.checkout

    def ensure_environment_ready(self, progress: ProgressReporter | None = None) -> Path:
        checkout = self.synchronizer.ensure_ready(self.checkout, progress=progress)
        return checkout.root

    def run(
        self,
        action: LifecycleAction,
        *,
        progress: ProgressReporter | None = None,
    ) -> LifecycleResult:
        progress = progress or NullProgress()
        result = LifecycleResult(action=action, checkout=self.checkout)
        self._transition(result, LifecycleState.IDLE)
        logger.info("Running %s against %s", action.value, self.checkout)
        try:
            if action is LifecycleAction.RESET:
                self._transition(result, LifecycleState.RESETTING_FILES)
                progress.set_message("Removing local devnet repository...")
                self._remove_checkout()
            self._transition(result, LifecycleState.SYNCING)
            root = self.ensure_environment_ready(progress)
            for step in _COMPOSE_STEPS[action]:
                self._transition(result, step.state)
                progress.set_message(step.message)
                self._compose(step, root)
                logger.info(step.done)
        except DevnetError as exc:
            failed_step = self.state
            self._transition(result, LifecycleState.FAILED)
            result.failed_step = failed_step
            result.error = exc
            result.diagnostic = getattr(exc, "diagnostic", "") or str(exc)
            logger.warning("%s failed during %s: %s", action.value, failed_step.value, exc)
            return result
        finally:
            progress.clear()

        self._transition(result, LifecycleState.DONE)
        result.success = True
        return result

    # ------------------------------------------------------------------ steps
    def compose_invocation(self, args: Iterable[str], cwd: Path) -> ProcessInvocation:
        return ProcessInvocation(
            program=self.config.docker_executable,
            args=("compose", "-f", self.config.compose_file, *args),
            cwd=cwd,
            mode=CaptureMode.BUFFERED,
        )

    def _compose(self, step: _ComposeStep, root: Path) -> None:
        outcome = self.runner.run(self.compose_invocation(step.args, root))
        if not outcome.success:
            raise LifecycleStepError(step.state, outcome.diagnostic)

    def _remove_checkout(self) -> None:
        root = self.checkout
        if not root.exists():
            logger.info("No checkout at %s; proceeding to a fresh clone", root)
            return
        logger.info("Deleting checkout %s", root)
        try:
            shutil.rmtree(root)
        except OSError as exc:
            raise FilesystemError(f"Failed to remove {root}: {exc}") from exc

    def _transition(self, result: LifecycleResult, state: LifecycleState) -> None:
        self.state = state
        result.states.append(state)


# ---------------------------------------------------------------------- contracts
def _controller(
    config: DevnetConfig | None,
    checkout: Path | None = None,
    **kwargs: object,
) -> EnvironmentController:
    config = config or load_config()
    if checkout is not None:
        config = config.merged(checkout_path=checkout)
    return EnvironmentController(config, **kwargs)  # type: ignore[arg-type]


def ensure_environment_ready(
    config: DevnetConfig | None = None,
    *,
    progress: ProgressReporter | None = None,
    **kwargs: object,
) -> Path:
    """Guarantee the checkout exists and is current; return its root."""

    return _controller(config, **kwargs).ensure_environment_ready(progress)


def run_lifecycle_action(
    checkout: Path,
    action: LifecycleAction,
    *,
    config: DevnetConfig | None = None,
    progress: ProgressReporter | None = None,
    **kwargs: object,
) -> LifecycleResult:
    """Run ``action`` against the checkout rooted at ``checkout``."""

    return _controller(config, Path(checkout), **kwargs).run(action, progress=progress)


def _action(action: LifecycleAction) -> Callable[..., LifecycleResult]:
    def _run(
        config: DevnetConfig | None = None,
        *,
        progress: ProgressReporter | None = None,
        **kwargs: object,
    ) -> LifecycleResult:
        return _controller(config, **kwargs).run(action, progress=progress)

    _run.__name__ = action.value
    _run.__doc__ = f"Run the {action.value} lifecycle action against the configured checkout."
    return _run


start = _action(LifecycleAction.START)
stop = _action(LifecycleAction.STOP)
update = _action(LifecycleAction.UPDATE)
reset = _action(LifecycleAction.RESET)
