"""Base exception shared by every devnet component."""

from __future__ import annotations

__all__ = ["DevnetError"]


class DevnetError(RuntimeError):
    """Root of the devnet error hierarchy."""
