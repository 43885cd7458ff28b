"""Logging helpers for focussync.

Modules log through ``logging.getLogger(__name__)``. Sync operations
additionally emit one summary line each via ``log_sync_operation`` on the
``focussync.sync`` logger, so an operator can follow reconciliation with a
single logger filter:

    SYNC | upload | 3f2a... | reminders | ok | rows=3
    SYNC | merge | 3f2a... | - | failed | Reminders fetch failed: ...
"""

import logging
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_sync_logger = logging.getLogger("focussync.sync")


def configure_logging(level: Union[int, str] = logging.WARNING) -> None:
    """Configure root logging for CLI use."""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("focussync").setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def log_sync_operation(
    user_id: str,
    operation: str,
    collection: Optional[str],
    success: bool,
    error: Optional[str] = None,
    **counts: int,
) -> None:
    """Log one line summarizing a sync operation."""
    parts = ["SYNC", operation, user_id or "-", collection or "-", "ok" if success else "failed"]
    if counts:
        parts.append(" ".join(f"{k}={v}" for k, v in counts.items()))
    if error:
        parts.append(error)
    message = " | ".join(parts)
    if success:
        _sync_logger.info(message)
    else:
        _sync_logger.warning(message)
