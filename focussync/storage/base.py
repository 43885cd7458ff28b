"""Key-value local store for focussync.

KeyValueLocalStore implements the LocalStore contract on top of three raw
primitives (read / write / remove a string by key). Backends only provide
those primitives; key layout, JSON encoding, defaults and dirty tracking
live here so every backend behaves identically.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from focussync.types import DEFAULT_SETTINGS, Snapshot, now_ms

logger = logging.getLogger(__name__)

KEYS = {
    "selected_apps": "ff:selectedApps",
    "reminders": "ff:reminders",
    "analytics": "ff:analytics",  # newest-first list of session records
    "settings": "ff:settings",
    "migration_flag_prefix": "ff:migrated:",  # ff:migrated:<userId>
    "last_sync_at_prefix": "ff:lastSyncAt:",  # ff:lastSyncAt:<userId>
    "dirty_since": "ff:dirtySince",
}


class KeyValueLocalStore(ABC):
    """LocalStore over a string key-value backend.

    Every collection write marks the store dirty so a later foreground
    cycle knows there is something to upload.

    Args:
        clock: Returns the current time in epoch milliseconds.
    """

    def __init__(self, clock: Callable[[], int] = now_ms):
        self._clock = clock

    # === Backend primitives ===

    @abstractmethod
    def _read(self, key: str) -> Optional[str]: ...

    @abstractmethod
    def _write(self, key: str, value: str) -> None: ...

    @abstractmethod
    def _remove(self, key: str) -> None: ...

    # === Helpers ===

    def _get_json(self, key: str) -> Any:
        raw = self._read(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring unreadable local value for {key}")
            return None

    def _set_json(self, key: str, value: Any) -> None:
        self._write(key, json.dumps(value))

    def _get_int(self, key: str) -> int:
        raw = self._read(key)
        try:
            return int(raw) if raw else 0
        except ValueError:
            return 0

    # === Collections ===

    def get_reminders(self) -> List[Dict[str, Any]]:
        value = self._get_json(KEYS["reminders"])
        return value if isinstance(value, list) else []

    def set_reminders(self, reminders: List[Dict[str, Any]]) -> None:
        self._set_json(KEYS["reminders"], list(reminders or []))
        self.mark_dirty()

    def get_selected_apps(self) -> Dict[str, Any]:
        value = self._get_json(KEYS["selected_apps"])
        return value if isinstance(value, dict) else {}

    def set_selected_apps(self, apps: Dict[str, Any]) -> None:
        self._set_json(KEYS["selected_apps"], dict(apps or {}))
        self.mark_dirty()

    def get_analytics_history(self) -> List[Dict[str, Any]]:
        value = self._get_json(KEYS["analytics"])
        return value if isinstance(value, list) else []

    def set_analytics_history(self, records: List[Dict[str, Any]]) -> None:
        self._set_json(KEYS["analytics"], list(records or []))
        self.mark_dirty()

    def get_settings(self) -> Optional[Dict[str, Any]]:
        """Get preferences, falling back to defaults when never written.

        A stored empty object is returned as-is, not replaced by defaults.
        """
        if self._read(KEYS["settings"]) is None:
            return dict(DEFAULT_SETTINGS)
        value = self._get_json(KEYS["settings"])
        return value if isinstance(value, dict) else dict(DEFAULT_SETTINGS)

    def set_settings(self, settings: Dict[str, Any]) -> None:
        self._set_json(KEYS["settings"], dict(settings or {}))
        self.mark_dirty()

    def has_local_data(self) -> bool:
        """True if the device holds apps, reminders or analytics.

        Settings are not user data for this purpose: every device has them.
        """
        return (
            len(self.get_selected_apps()) > 0
            or len(self.get_reminders()) > 0
            or len(self.get_analytics_history()) > 0
        )

    def snapshot(self) -> Snapshot:
        """Read all four collections in one pass."""
        return Snapshot(
            settings=self.get_settings(),
            apps=self.get_selected_apps(),
            reminders=self.get_reminders(),
            analytics=self.get_analytics_history(),
        )

    # === Sync metadata ===

    def get_migration_flag(self, user_id: str) -> bool:
        if not user_id:
            return False
        return self._read(KEYS["migration_flag_prefix"] + user_id) == "true"

    def set_migration_flag(self, user_id: str, value: bool) -> None:
        if not user_id:
            return
        self._write(KEYS["migration_flag_prefix"] + user_id, "true" if value else "false")

    def get_last_sync_at(self, user_id: str) -> int:
        if not user_id:
            return 0
        return self._get_int(KEYS["last_sync_at_prefix"] + user_id)

    def set_last_sync_at(self, user_id: str, ts: int) -> None:
        if not user_id:
            return
        self._write(KEYS["last_sync_at_prefix"] + user_id, str(int(ts)))

    def get_dirty_since(self) -> int:
        return self._get_int(KEYS["dirty_since"])

    def mark_dirty(self) -> None:
        """Record that local data changed."""
        current = self.get_dirty_since()
        # Strictly increasing so compare-and-clear notices every write
        self._write(KEYS["dirty_since"], str(max(self._clock(), current + 1)))

    def clear_dirty(self, if_unchanged_since: Optional[int] = None) -> bool:
        """Clear the dirty marker.

        Args:
            if_unchanged_since: Only clear if the marker still holds this
                value, i.e. nothing was written since it was read.

        Returns:
            True if the marker was cleared.
        """
        if if_unchanged_since is not None and self.get_dirty_since() != if_unchanged_since:
            return False
        self._remove(KEYS["dirty_since"])
        return True
