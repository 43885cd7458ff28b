"""Reconciliation engine for focussync.

ReconciliationEngine moves one user's collections between the device
(LocalStore) and the account (RemoteStore):

- upload:          full replace of the user's remote rows with the local snapshot
- download:        read every remote collection into a Snapshot
- pull:            download and overwrite the device, unless the cloud is empty
- has_cloud_data:  existence probe using count-only queries
- merge:           latest-wins reconciliation of reminders, union of analytics

Upload is not transactional across collections. Each collection is
replaced with delete-then-insert and a failure stops the run without rolling
back collections already written; rerunning upload to completion converges.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from .errors import InvalidArgumentError, MalformedRecordError, SyncError
from .logging_config import log_sync_operation
from .merge import merge_analytics, merge_reminders
from .protocols import LocalStore, RemoteStore
from .types import (
    REMOTE_ANALYTICS_LIMIT,
    Collection,
    MergeResult,
    Snapshot,
    now_ms,
    utc_now,
)

logger = logging.getLogger(__name__)


def _require_user_id(user_id: Any) -> str:
    if not isinstance(user_id, str) or not user_id.strip():
        raise InvalidArgumentError("Missing userId")
    return user_id


class ReconciliationEngine:
    """Upload, download, pull, presence and merge for one device.

    Args:
        local: The device's store.
        remote: The account's store (injected; no global client).
        clock: Returns the current time in epoch milliseconds.
    """

    def __init__(
        self,
        local: LocalStore,
        remote: RemoteStore,
        clock: Callable[[], int] = now_ms,
    ):
        self.local = local
        self.remote = remote
        self._clock = clock

    async def _step(self, label: str, collection: Collection, awaitable):
        """Await one remote step, relabeling failures with the step name."""
        try:
            return await awaitable
        except SyncError as e:
            raise e.relabel(label, collection.value) from e

    # === Upload ===

    async def upload(self, user_id: str) -> None:
        """Replace the user's cloud data with this device's data.

        The local snapshot is read once, before any remote write, so writes
        landing on the device mid-upload are not half-included.

        Raises:
            InvalidArgumentError: If user_id is missing.
            RemoteUnavailableError / RemoteRejectedError: First failing step,
                labeled (e.g. "Reminders upload failed: ...").
        """
        user_id = _require_user_id(user_id)
        snapshot = self.local.snapshot()
        uploaded_at = utc_now()

        try:
            if snapshot.settings is not None:
                await self._step(
                    "Settings upload failed",
                    Collection.SETTINGS,
                    self.remote.upsert(
                        Collection.SETTINGS,
                        {
                            "user_id": user_id,
                            "settings_data": snapshot.settings,
                            "updated_at": uploaded_at,
                        },
                        on_conflict="user_id",
                    ),
                )

            await self._replace(
                user_id,
                Collection.APPS,
                [{"user_id": user_id, "app_data": snapshot.apps, "updated_at": uploaded_at}],
            )
            await self._replace(
                user_id,
                Collection.REMINDERS,
                [{"user_id": user_id, "reminder_data": r} for r in snapshot.reminders],
            )
            await self._replace(
                user_id,
                Collection.ANALYTICS,
                [
                    {"user_id": user_id, "session_data": a}
                    for a in snapshot.analytics[:REMOTE_ANALYTICS_LIMIT]
                ],
            )
        except SyncError as e:
            log_sync_operation(user_id, "upload", e.collection, False, str(e))
            raise

        log_sync_operation(
            user_id,
            "upload",
            None,
            True,
            reminders=len(snapshot.reminders),
            analytics=min(len(snapshot.analytics), REMOTE_ANALYTICS_LIMIT),
        )

    async def _replace(
        self, user_id: str, collection: Collection, rows: List[Dict[str, Any]]
    ) -> None:
        await self._step(
            f"{collection.label} cleanup failed",
            collection,
            self.remote.delete(collection, user_id),
        )
        if rows:
            await self._step(
                f"{collection.label} upload failed",
                collection,
                self.remote.insert(collection, rows),
            )
        logger.debug(f"Replaced {collection.table} for {user_id}: {len(rows)} rows")

    # === Download ===

    async def download(self, user_id: str) -> Snapshot:
        """Read the user's cloud data (read-only).

        Returns:
            Snapshot with ``None`` settings and empty apps/lists when the
            account has no rows.

        Raises:
            InvalidArgumentError: If user_id is missing.
            RemoteUnavailableError / RemoteRejectedError: First failing fetch,
                labeled (e.g. "Settings fetch failed: ...").
            MalformedRecordError: If a settings or apps payload is not an
                object.
        """
        user_id = _require_user_id(user_id)

        settings_row, apps_rows, reminder_rows, analytics_rows = await asyncio.gather(
            self._step(
                "Settings fetch failed",
                Collection.SETTINGS,
                self.remote.select_one(Collection.SETTINGS, user_id, "settings_data"),
            ),
            # Latest row wins if overlapping uploads left more than one
            self._step(
                "Apps fetch failed",
                Collection.APPS,
                self.remote.select(
                    Collection.APPS,
                    user_id,
                    "app_data, updated_at",
                    order_by="updated_at",
                    descending=True,
                    limit=1,
                ),
            ),
            self._step(
                "Reminders fetch failed",
                Collection.REMINDERS,
                self.remote.select(Collection.REMINDERS, user_id, "reminder_data, created_at"),
            ),
            self._step(
                "Analytics fetch failed",
                Collection.ANALYTICS,
                self.remote.select(
                    Collection.ANALYTICS,
                    user_id,
                    "session_data, created_at",
                    order_by="created_at",
                    descending=True,
                    limit=REMOTE_ANALYTICS_LIMIT,
                ),
            ),
        )

        settings = settings_row.get("settings_data") if settings_row else None
        apps = (apps_rows[0].get("app_data") if apps_rows else None) or {}
        for collection, value in ((Collection.SETTINGS, settings), (Collection.APPS, apps)):
            if value is not None and not isinstance(value, dict):
                raise MalformedRecordError(
                    f"{collection.label} fetch failed: payload is {type(value).__name__}",
                    collection=collection.value,
                )

        return Snapshot(
            settings=settings,
            apps=apps,
            reminders=self._payloads(Collection.REMINDERS, reminder_rows),
            analytics=self._payloads(Collection.ANALYTICS, analytics_rows),
        )

    def _payloads(self, collection: Collection, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Extract document payloads, dropping rows that carry no object."""
        payloads = []
        for row in rows:
            payload = row.get(collection.payload_column) if isinstance(row, dict) else None
            if isinstance(payload, dict):
                payloads.append(payload)
            else:
                logger.warning(f"Dropping {collection.table} row without an object payload")
        return payloads

    # === Pull ===

    async def pull(self, user_id: str) -> bool:
        """Replace the device's data with the cloud's.

        Destructive by design; callers use it when the device is empty or
        the user chose "replace with cloud". An empty cloud never wipes the
        device.

        Returns:
            True if local data was overwritten, False if the cloud was empty.
        """
        snapshot = await self.download(user_id)
        if not snapshot.has_any():
            log_sync_operation(user_id, "pull", None, True, written=0)
            return False

        self.local.set_selected_apps(snapshot.apps)
        self.local.set_reminders(snapshot.reminders)
        self.local.set_analytics_history(snapshot.analytics)
        if snapshot.settings:
            self.local.set_settings(snapshot.settings)

        log_sync_operation(
            user_id,
            "pull",
            None,
            True,
            reminders=len(snapshot.reminders),
            analytics=len(snapshot.analytics),
        )
        return True

    # === Presence ===

    async def has_cloud_data(self, user_id: str) -> bool:
        """Check whether any cloud row exists for the user.

        Presence is existence of a row, not content: a settings row holding
        an empty object still counts as cloud data.
        """
        if not user_id:
            return False

        settings_row, apps, reminders, analytics = await asyncio.gather(
            self._step(
                "Settings presence check failed",
                Collection.SETTINGS,
                self.remote.select_one(Collection.SETTINGS, user_id, "user_id"),
            ),
            *(
                self._step(
                    f"{collection.label} presence check failed",
                    collection,
                    self.remote.count(collection, user_id),
                )
                for collection in (Collection.APPS, Collection.REMINDERS, Collection.ANALYTICS)
            ),
        )
        return settings_row is not None or apps > 0 or reminders > 0 or analytics > 0

    # === Merge ===

    async def merge(self, user_id: str, now: Optional[int] = None) -> MergeResult:
        """Fold cloud reminders and analytics into the device.

        Never discards a local reminder unless the cloud holds the same id
        with a strictly newer ``updatedAt``. Safe to repeat: a second merge
        against unchanged state reports zero changes.

        Args:
            user_id: Signed-in account.
            now: Timestamp recorded as the last sync; defaults to the clock.

        Returns:
            MergeResult with reminders_changed / analytics_added counts.
        """
        try:
            cloud = await self.download(user_id)
        except SyncError as e:
            log_sync_operation(user_id, "merge", e.collection, False, str(e))
            raise

        local_reminders = self.local.get_reminders()
        local_analytics = self.local.get_analytics_history()

        reminders, reminders_changed, reminders_skipped = merge_reminders(
            local_reminders, cloud.reminders
        )
        analytics, analytics_added, analytics_skipped = merge_analytics(
            local_analytics, cloud.analytics
        )

        if reminders != local_reminders:
            self.local.set_reminders(reminders)
        if analytics != local_analytics:
            self.local.set_analytics_history(analytics)
        self.local.set_last_sync_at(user_id, now if now is not None else self._clock())

        result = MergeResult(
            reminders_changed=reminders_changed,
            analytics_added=analytics_added,
            skipped=reminders_skipped + analytics_skipped,
        )
        log_sync_operation(
            user_id,
            "merge",
            None,
            True,
            reminders_changed=result.reminders_changed,
            analytics_added=result.analytics_added,
            skipped=result.skipped,
        )
        return result
