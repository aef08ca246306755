"""Local checkout synchronization."""

from .status import UpstreamStatus, parse_status
from .sync import (
    METADATA_DIRNAME,
    FilesystemError,
    LocalCheckout,
    RepositorySynchronizer,
    SubmoduleTimeoutError,
    SyncError,
)

__all__ = [
    "METADATA_DIRNAME",
    "FilesystemError",
    "LocalCheckout",
    "RepositorySynchronizer",
    "SubmoduleTimeoutError",
    "SyncError",
    "UpstreamStatus",
    "parse_status",
]
