"""
focussync Protocol Definitions
==============================

Interface contracts for the two replicas the engine reconciles.

- LocalStore:  the device's key-value persistence. Synchronous, single
               threaded access by contract of the host app.
- RemoteStore: the account's relational backend. Asynchronous; one table per
               collection, rows keyed by user_id.

The engine receives both at construction. Nothing in focussync reaches for a
process-wide client, so tests inject fakes without patching globals.

Error contract for RemoteStore implementations:
- Transport failures raise RemoteUnavailableError
- Structured backend errors raise RemoteRejectedError (with ``code``)
- "No rows" outcomes are not errors (empty list / None / 0)
"""

from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from .types import Collection, Snapshot


@runtime_checkable
class LocalStore(Protocol):
    """Per-device persistence of user collections and sync metadata."""

    def get_reminders(self) -> List[Dict[str, Any]]: ...

    def set_reminders(self, reminders: List[Dict[str, Any]]) -> None: ...

    def get_selected_apps(self) -> Dict[str, Any]: ...

    def set_selected_apps(self, apps: Dict[str, Any]) -> None: ...

    def get_analytics_history(self) -> List[Dict[str, Any]]: ...

    def set_analytics_history(self, records: List[Dict[str, Any]]) -> None: ...

    def get_settings(self) -> Optional[Dict[str, Any]]: ...

    def set_settings(self, settings: Dict[str, Any]) -> None: ...

    def get_migration_flag(self, user_id: str) -> bool: ...

    def set_migration_flag(self, user_id: str, value: bool) -> None: ...

    def get_last_sync_at(self, user_id: str) -> int: ...

    def set_last_sync_at(self, user_id: str, ts: int) -> None: ...

    def get_dirty_since(self) -> int: ...

    def clear_dirty(self, if_unchanged_since: Optional[int] = None) -> bool: ...

    def has_local_data(self) -> bool: ...

    def snapshot(self) -> Snapshot: ...


@runtime_checkable
class RemoteStore(Protocol):
    """Per-user row sets in the account backend."""

    async def upsert(
        self, collection: Collection, row: Dict[str, Any], on_conflict: str = "user_id"
    ) -> None: ...

    async def delete(self, collection: Collection, user_id: str) -> None: ...

    async def insert(self, collection: Collection, rows: Sequence[Dict[str, Any]]) -> None: ...

    async def select(
        self,
        collection: Collection,
        user_id: str,
        columns: str,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]: ...

    async def select_one(
        self, collection: Collection, user_id: str, columns: str
    ) -> Optional[Dict[str, Any]]: ...

    async def count(self, collection: Collection, user_id: str) -> int: ...
