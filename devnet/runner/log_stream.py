"""Line relay from child process pipes into a shared log sink."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from threading import Lock
from typing import IO

__all__ = ["STDERR", "STDOUT", "LogChunk", "LogRelay", "LogSink"]

STDOUT = "stdout"
STDERR = "stderr"

_LEVELS = {STDOUT: logging.INFO, STDERR: logging.WARNING}

logger = logging.getLogger("devnet.runner.relay")


@dataclass(slots=True)
class LogChunk:
    """A single relayed line."""

    stream: str
    text: str
    timestamp: datetime

    @property
    def level(self) -> int:
        return _LEVELS.get(self.stream, logging.WARNING)


class LogSink:
    """Append-only sink that fans relayed lines out to observers.

    Every chunk is forwarded to the ``devnet.runner.relay`` logger (INFO for
    stdout, WARNING for stderr), to registered listeners, and optionally to a
    log file. The text of each channel is retained so callers can surface a
    failed command's diagnostic output.
    """

    def __init__(self, path: Path | None = None, *, label: str | None = None):
        self.label = label
        self.path = Path(path) if path is not None else None
        self._handle: IO[str] | None = None
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = self.path.open("a", encoding="utf-8")
        self._listeners: list[Callable[[LogChunk], None]] = []
        self._channels: dict[str, list[str]] = {STDOUT: [], STDERR: []}
        self._lock = Lock()

    def __enter__(self) -> LogSink:  # noqa: D401 - context manager
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        with self._lock:
            if self._handle is None or self._handle.closed:
                return
            self._handle.flush()
            self._handle.close()

    def write(self, text: str, stream: str = STDOUT) -> LogChunk:
        chunk = LogChunk(stream=stream, text=text, timestamp=datetime.now(UTC))
        with self._lock:
            self._channels.setdefault(stream, []).append(text)
            if self._handle is not None and not self._handle.closed:
                self._handle.write(text if text.endswith("\n") else f"{text}\n")
                self._handle.flush()
            listeners = list(self._listeners)
        if self.label:
            logger.log(chunk.level, "%s: %s", self.label, text.rstrip("\n"))
        else:
            logger.log(chunk.level, "%s", text.rstrip("\n"))
        for listener in listeners:
            try:
                listener(chunk)
            except Exception:
                logger.warning("log listener %r failed", listener, exc_info=True)
        return chunk

    def add_listener(self, callback: Callable[[LogChunk], None]) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(callback)

        def _remove() -> None:
            with self._lock:
                try:
                    self._listeners.remove(callback)
                except ValueError:  # pragma: no cover - already removed
                    pass

        return _remove

    def lines(self, stream: str) -> list[str]:
        with self._lock:
            return [line.rstrip("\n") for line in self._channels.get(stream, [])]

    def text(self, stream: str) -> str:
        with self._lock:
            return "".join(self._channels.get(stream, []))


class LogRelay:
    """Drain both pipes of a running process on independent threads."""

    def __init__(self, sink: LogSink):
        self.sink = sink

    def attach(self, stdout: IO[bytes] | None, stderr: IO[bytes] | None) -> list[threading.Thread]:
        threads: list[threading.Thread] = []
        for pipe, label in ((stdout, STDOUT), (stderr, STDERR)):
            if pipe is None:
                continue
            thread = threading.Thread(
                target=self._pump,
                args=(pipe, label),
                name=f"devnet-relay-{label}",
                daemon=True,
            )
            thread.start()
            threads.append(thread)
        return threads

    def _pump(self, pipe: IO[bytes], label: str) -> None:
        with pipe:
            for raw in iter(pipe.readline, b""):
                try:
                    line = raw.decode("utf-8")
                except UnicodeDecodeError as exc:
                    self.sink.write(
                        f"undecodable {label} line skipped: {exc}\n",
                        stream=STDERR,
                    )
                    continue
                try:
                    self.sink.write(line, stream=label)
                except Exception:
                    # keep draining so the child never blocks on a full pipe
                    logger.exception("failed to record %s line", label)
