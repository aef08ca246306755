"""Interpret ``git status`` output to decide whether a pull is needed."""

from __future__ import annotations

import re
from dataclasses import dataclass

__all__ = ["STATUS_ARGS", "UpstreamStatus", "parse_status"]

# porcelain v2 prints "# branch.ab +<ahead> -<behind>" when an upstream is set
STATUS_ARGS = ("status", "--porcelain=v2", "--branch")

_AHEAD_BEHIND = re.compile(r"^# branch\.ab \+(\d+) -(\d+)\s*$", re.MULTILINE)
_UPSTREAM = re.compile(r"^# branch\.upstream (\S+)\s*$", re.MULTILINE)
_HUMAN_BEHIND = re.compile(r"Your branch is behind '([^']+)' by (\d+) commit")
_HUMAN_DIVERGED = re.compile(r"and have (\d+) and (\d+) different commits each")


@dataclass(slots=True, frozen=True)
class UpstreamStatus:
    """Ahead/behind counts of the local branch against its upstream."""

    upstream: str | None = None
    ahead: int = 0
    behind: int = 0

    @property
    def is_behind(self) -> bool:
        """Local is strictly behind: upstream has commits we lack and we have none it lacks."""

        return self.behind > 0 and self.ahead == 0


def parse_status(text: str) -> UpstreamStatus:
    """Parse porcelain v2 branch headers, falling back to the human wording."""

    upstream_match = _UPSTREAM.search(text)
    upstream = upstream_match.group(1) if upstream_match else None
    counts = _AHEAD_BEHIND.search(text)
    if counts:
        return UpstreamStatus(
            upstream=upstream, ahead=int(counts.group(1)), behind=int(counts.group(2))
        )
    human = _HUMAN_BEHIND.search(text)
    if human:
        return UpstreamStatus(upstream=human.group(1), behind=int(human.group(2)))
    diverged = _HUMAN_DIVERGED.search(text)
    if diverged:
        return UpstreamStatus(
            upstream=upstream, ahead=int(diverged.group(1)), behind=int(diverged.group(2))
        )
    return UpstreamStatus(upstream=upstream)
