"""Process runner, log relay, and bounded poller."""

from .log_stream import STDERR, STDOUT, LogChunk, LogRelay, LogSink
from .poller import (
    DEFAULT_MAX_DURATION,
    DEFAULT_POLL_INTERVAL,
    BoundedPoller,
    PollOutcome,
    PollState,
)
from .process import (
    CaptureMode,
    ExecutionError,
    LaunchError,
    ProcessInvocation,
    ProcessOutcome,
    ProcessRunner,
    RunningProcess,
    ensure_required_binaries,
)

__all__ = [
    "DEFAULT_MAX_DURATION",
    "DEFAULT_POLL_INTERVAL",
    "STDERR",
    "STDOUT",
    "BoundedPoller",
    "CaptureMode",
    "ExecutionError",
    "LaunchError",
    "LogChunk",
    "LogRelay",
    "LogSink",
    "PollOutcome",
    "PollState",
    "ProcessInvocation",
    "ProcessOutcome",
    "ProcessRunner",
    "RunningProcess",
    "ensure_required_binaries",
]
