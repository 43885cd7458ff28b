"""
focussync - Local/cloud reconciliation for focus-app user data.

Decides whether a device's reminders, app selections, analytics and
settings should be uploaded, replaced by the account's cloud copy, or merged
with it, and performs the merge latest-wins.
"""

from importlib.metadata import PackageNotFoundError, version

from .coordinator import SyncCoordinator
from .decision import decide
from .engine import ReconciliationEngine
from .errors import (
    ConfigurationError,
    InvalidArgumentError,
    MalformedRecordError,
    RemoteError,
    RemoteRejectedError,
    RemoteUnavailableError,
    SyncError,
)
from .types import (
    Collection,
    ForegroundOutcome,
    MergeResult,
    Resolution,
    SignInOutcome,
    Snapshot,
    SyncAction,
)

try:
    __version__ = version("focussync")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "Collection",
    "ConfigurationError",
    "ForegroundOutcome",
    "InvalidArgumentError",
    "MalformedRecordError",
    "MergeResult",
    "ReconciliationEngine",
    "RemoteError",
    "RemoteRejectedError",
    "RemoteUnavailableError",
    "Resolution",
    "SignInOutcome",
    "Snapshot",
    "SyncAction",
    "SyncCoordinator",
    "SyncError",
    "decide",
]
