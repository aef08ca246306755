"""Progress reporting handed down through one lifecycle action."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

__all__ = ["NullProgress", "ProgressReporter", "RecordingProgress"]


@runtime_checkable
class ProgressReporter(Protocol):
    def set_message(self, text: str) -> None: ...

    def clear(self) -> None: ...


class NullProgress:
    def set_message(self, text: str) -> None:
        pass

    def clear(self) -> None:
        pass


class RecordingProgress:
    """Keep every message; used by tests and non-interactive callers."""

    def __init__(self) -> None:
        self.messages: list[str] = []
        self.current: str | None = None
        self.cleared = 0

    def set_message(self, text: str) -> None:
        self.messages.append(text)
        self.current = text

    def clear(self) -> None:
        self.current = None
        self.cleared += 1
