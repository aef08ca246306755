"""Shared pytest fixtures."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from devnet.config import DevnetConfig
from devnet.runner import (
    STDERR,
    STDOUT,
    LogSink,
    ProcessInvocation,
    ProcessOutcome,
)

UP_TO_DATE = (
    "# branch.oid 1111111111111111111111111111111111111111\n"
    "# branch.head main\n"
    "# branch.upstream origin/main\n"
    "# branch.ab +0 -0\n"
)
BEHIND = (
    "# branch.oid 1111111111111111111111111111111111111111\n"
    "# branch.head main\n"
    "# branch.upstream origin/main\n"
    "# branch.ab +0 -3\n"
)


@dataclass
class FakeRunning:
    """Streamed process stand-in that finishes after ``polls_until_exit`` checks."""

    invocation: ProcessInvocation
    sink: LogSink
    returncode_on_exit: int | None = 0
    polls_until_exit: int = 1
    stderr_text: str = ""
    polls: int = 0
    killed: bool = False
    returncode: int | None = None

    def poll(self) -> int | None:
        self.polls += 1
        if self.returncode is None and self.polls >= self.polls_until_exit:
            self.returncode = self.returncode_on_exit
        return self.returncode

    def kill(self) -> None:
        self.killed = True
        self.returncode = -9

    def join_relays(self, timeout: float | None = None) -> None:
        if self.stderr_text:
            self.sink.write(self.stderr_text, stream=STDERR)

    def outcome(self) -> ProcessOutcome:
        return ProcessOutcome(
            success=self.returncode == 0,
            stdout=self.sink.text(STDOUT),
            stderr=self.sink.text(STDERR),
            exit_code=self.returncode,
        )


@dataclass
class FakeRunner:
    """Records invocations and answers them from canned outcomes.

    ``outcomes`` maps an argument prefix (e.g. ``("compose", "-f", "x", "build")``
    or ``("status",)``) to the outcome returned for matching invocations. A
    successful ``clone`` creates the target's ``.git`` directory.
    """

    outcomes: dict[tuple[str, ...], ProcessOutcome] = field(default_factory=dict)
    calls: list[ProcessInvocation] = field(default_factory=list)
    spawned: list[FakeRunning] = field(default_factory=list)
    submodule_returncode: int | None = 0
    submodule_polls: int = 1
    submodule_stderr: str = ""
    on_clone: Callable[[Path], None] | None = None

    def run(self, invocation: ProcessInvocation, sink: LogSink | None = None) -> ProcessOutcome:
        self.calls.append(invocation)
        outcome = self._match(tuple(invocation.args))
        if invocation.args and invocation.args[0] == "clone" and outcome.success:
            target = Path(invocation.args[2])
            if self.on_clone is not None:
                self.on_clone(target)
            (target / ".git").mkdir(parents=True, exist_ok=True)
        return outcome

    def spawn(self, invocation: ProcessInvocation, sink: LogSink) -> FakeRunning:
        self.calls.append(invocation)
        running = FakeRunning(
            invocation=invocation,
            sink=sink,
            returncode_on_exit=self.submodule_returncode,
            polls_until_exit=self.submodule_polls,
            stderr_text=self.submodule_stderr,
        )
        self.spawned.append(running)
        return running

    def _match(self, args: tuple[str, ...]) -> ProcessOutcome:
        for prefix, outcome in self.outcomes.items():
            if args[: len(prefix)] == prefix:
                return outcome
        if args and args[0] == "status":
            return ProcessOutcome(success=True, stdout=UP_TO_DATE)
        return ProcessOutcome(success=True)

    def commands(self) -> list[tuple[str, ...]]:
        return [(call.program, *call.args) for call in self.calls]

    def subcommands(self, program: str) -> list[str]:
        names: list[str] = []
        for call in self.calls:
            if call.program != program:
                continue
            args = list(call.args)
            if program == "docker":
                args = args[3:]
            names.append(args[0] if args else "")
        return names


@pytest.fixture()
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture()
def checkout_root(tmp_path: Path) -> Path:
    return tmp_path / "home" / "u" / ".tool-repo"


@pytest.fixture()
def devnet_config(checkout_root: Path) -> DevnetConfig:
    return DevnetConfig(
        repo_url="https://example.invalid/coprocessor.git",
        checkout_path=checkout_root,
        compose_file="docker-compose-devnet.yaml",
        poll_interval=0.01,
        submodule_timeout=1.0,
    )


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "devnet-home"
    monkeypatch.setenv("DEVNET_HOME", str(home))
    for name in ("DEVNET_REPO_URL", "DEVNET_BRANCH", "DEVNET_CHECKOUT", "DEVNET_COMPOSE_FILE"):
        monkeypatch.delenv(name, raising=False)
    return home
