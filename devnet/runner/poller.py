"""Cooperative polling supervision for long-running child processes."""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

__all__ = [
    "DEFAULT_MAX_DURATION",
    "DEFAULT_POLL_INTERVAL",
    "BoundedPoller",
    "PollOutcome",
    "PollState",
]

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_MAX_DURATION = 30000.0

logger = logging.getLogger("devnet.runner.poller")


class Pollable(Protocol):
    def poll(self) -> int | None: ...

    def kill(self) -> None: ...


class PollOutcome(enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    TIMED_OUT = "timed_out"


@dataclass(slots=True)
class PollState:
    """Bookkeeping for one supervised wait."""

    started_at: float
    elapsed: float = 0.0
    checks: int = 0
    last_returncode: int | None = None


class BoundedPoller:
    """Check a running process every ``poll_interval`` seconds up to ``max_duration``.

    Detection latency is at most one interval. When the deadline passes the
    process is killed unless ``kill_on_timeout`` is disabled, in which case it
    keeps running unsupervised.
    """

    def __init__(
        self,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_duration: float = DEFAULT_MAX_DURATION,
        *,
        kill_on_timeout: bool = True,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if max_duration < 0:
            raise ValueError("max_duration must not be negative")
        self.poll_interval = poll_interval
        self.max_duration = max_duration
        self.kill_on_timeout = kill_on_timeout
        self._clock = clock or time.monotonic
        self._sleep = sleep or time.sleep
        self.last_state: PollState | None = None

    def await_completion(self, process: Pollable) -> PollOutcome:
        state = PollState(started_at=self._clock())
        self.last_state = state
        while True:
            state.checks += 1
            state.last_returncode = process.poll()
            state.elapsed = self._clock() - state.started_at
            if state.last_returncode is not None:
                return PollOutcome.SUCCESS if state.last_returncode == 0 else PollOutcome.FAILURE
            if state.elapsed >= self.max_duration:
                break
            self._sleep(min(self.poll_interval, self.max_duration - state.elapsed))

        logger.warning(
            "Process still running after %.1fs (%d checks)", state.elapsed, state.checks
        )
        if self.kill_on_timeout:
            process.kill()
        return PollOutcome.TIMED_OUT
