"""Devnet lifecycle controller and caller-facing actions."""

from .controller import (
    EnvironmentController,
    LifecycleAction,
    LifecycleResult,
    LifecycleState,
    LifecycleStepError,
    ensure_environment_ready,
    reset,
    run_lifecycle_action,
    start,
    stop,
    update,
)
from .progress import NullProgress, ProgressReporter, RecordingProgress

__all__ = [
    "EnvironmentController",
    "LifecycleAction",
    "LifecycleResult",
    "LifecycleState",
    "LifecycleStepError",
    "NullProgress",
    "ProgressReporter",
    "RecordingProgress",
    "ensure_environment_ready",
    "reset",
    "run_lifecycle_action",
    "start",
    "stop",
    "update",
]
