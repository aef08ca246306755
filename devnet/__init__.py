"""Local devnet checkout synchronization and container orchestration."""

from .lifecycle import (
    LifecycleAction,
    LifecycleResult,
    ensure_environment_ready,
    reset,
    run_lifecycle_action,
    start,
    stop,
    update,
)
from .version import __version__

__all__ = [
    "LifecycleAction",
    "LifecycleResult",
    "__version__",
    "ensure_environment_ready",
    "reset",
    "run_lifecycle_action",
    "start",
    "stop",
    "update",
]
