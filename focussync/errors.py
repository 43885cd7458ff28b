"""
Error taxonomy for focussync.

Error handling philosophy:
- Missing or empty identifiers raise InvalidArgumentError (also a ValueError)
- Transport failures talking to the remote store raise RemoteUnavailableError
- Structured rejections from the remote store raise RemoteRejectedError
- Rows or items that cannot be read into the expected shape raise
  MalformedRecordError; merge skips those per item instead of aborting
- Upload and download re-raise remote errors labeled with the failing
  collection ("Settings upload failed: ...") and never retry internally
"""

from typing import Optional


class SyncError(Exception):
    """Base for all focussync errors.

    Args:
        message: Human readable description.
        collection: Logical collection the failure belongs to, if any.
        code: Backend error code (PostgREST / Postgres), if any.
    """

    def __init__(
        self,
        message: str = "",
        *,
        collection: Optional[str] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.collection = collection
        self.code = code

    def relabel(self, label: str, collection: Optional[str] = None) -> "SyncError":
        """Return a copy of this error prefixed with ``label``."""
        return type(self)(
            f"{label}: {self.message}",
            collection=collection or self.collection,
            code=self.code,
        )


class InvalidArgumentError(SyncError, ValueError):
    """Raised when a caller passes a missing or unusable argument."""

    pass


class ConfigurationError(SyncError):
    """Raised when the remote store cannot be configured."""

    pass


class RemoteError(SyncError):
    """Base for failures reported by the remote store."""

    pass


class RemoteUnavailableError(RemoteError):
    """Network or transport failure reaching the remote store."""

    pass


class RemoteRejectedError(RemoteError):
    """The remote store answered with a structured error.

    E.g., a permission (RLS) violation, a constraint violation, or a
    malformed identifier such as a non-UUID user id.
    """

    pass


class MalformedRecordError(SyncError):
    """A fetched row or item does not have the expected shape."""

    pass
