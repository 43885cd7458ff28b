"""
Shared types for focussync.

These are the vocabulary between the decision function, the stores, the
reconciliation engine and the coordinator. Collection documents themselves
(reminders, app selections, analytics records, settings) stay plain JSON
dicts: the engine chooses which whole document survives, it never rewrites
fields inside one.
"""

import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

# === Limits ===

# Analytics records kept on the device after a merge
LOCAL_ANALYTICS_LIMIT = 500

# Analytics records sent by upload / fetched by download
REMOTE_ANALYTICS_LIMIT = 200

# Soft cooldown between foreground merges
MERGE_COOLDOWN_SECONDS = 5 * 60

# Preferences a device starts with before the user touches settings
DEFAULT_SETTINGS: Dict[str, bool] = {
    "reminderNotifications": True,
    "sessionNotifications": True,
    "motivationMessages": False,
    "analytics": False,
}


# === Shared Utility Functions ===


def utc_now() -> str:
    """Get current timestamp as ISO string in UTC."""
    return datetime.now(timezone.utc).isoformat()


def now_ms() -> int:
    """Get current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


# === Enums ===


class Collection(str, Enum):
    """Logical collections reconciled between device and cloud."""

    SETTINGS = "settings"
    APPS = "apps"
    REMINDERS = "reminders"
    ANALYTICS = "analytics"

    @property
    def table(self) -> str:
        """Remote table holding this collection."""
        return COLLECTION_TABLES[self]

    @property
    def payload_column(self) -> str:
        """Remote column holding the JSON document."""
        return COLLECTION_PAYLOAD_COLUMNS[self]

    @property
    def label(self) -> str:
        return self.value.capitalize()


COLLECTION_TABLES: Dict[Collection, str] = {
    Collection.SETTINGS: "user_settings",
    Collection.APPS: "user_apps",
    Collection.REMINDERS: "user_reminders",
    Collection.ANALYTICS: "user_analytics",
}

COLLECTION_PAYLOAD_COLUMNS: Dict[Collection, str] = {
    Collection.SETTINGS: "settings_data",
    Collection.APPS: "app_data",
    Collection.REMINDERS: "reminder_data",
    Collection.ANALYTICS: "session_data",
}


class SyncAction(str, Enum):
    """What the device should do after comparing local and cloud state."""

    NOOP = "noop"
    PULL = "pull"
    PROMPT_UPLOAD = "prompt-upload"
    PROMPT_MERGE = "prompt-merge"

    @property
    def is_prompt(self) -> bool:
        return self in (SyncAction.PROMPT_UPLOAD, SyncAction.PROMPT_MERGE)


class Resolution(str, Enum):
    """User choice answering an upload/merge prompt."""

    KEEP_LOCAL = "keep-local"
    SAVE_TO_ACCOUNT = "save-to-account"
    REPLACE_WITH_CLOUD = "replace-with-cloud"
    MERGE = "merge"
    LATER = "later"


# === Results ===


@dataclass
class Snapshot:
    """All four collections for one user, captured at a point in time.

    ``settings`` is None when no settings row / value exists at all, which
    is different from an existing but empty settings object.
    """

    settings: Optional[Dict[str, Any]] = None
    apps: Dict[str, Any] = field(default_factory=dict)
    reminders: List[Dict[str, Any]] = field(default_factory=list)
    analytics: List[Dict[str, Any]] = field(default_factory=list)

    def has_any(self) -> bool:
        """True when at least one collection carries content."""
        return bool(self.settings) or bool(self.apps) or bool(self.reminders) or bool(
            self.analytics
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MergeResult:
    """Counts reported by a merge, for logging and telemetry."""

    reminders_changed: int = 0
    analytics_added: int = 0
    skipped: int = 0  # Malformed remote items left out

    def to_dict(self) -> Dict[str, int]:
        return {
            "remindersChanged": self.reminders_changed,
            "analyticsAdded": self.analytics_added,
            "skipped": self.skipped,
        }


@dataclass
class SignInOutcome:
    """Result of evaluating a sign-in event."""

    action: SyncAction
    pulled: bool = False
    has_local: bool = False
    has_cloud: bool = False
    migrated: bool = False


@dataclass
class ForegroundOutcome:
    """Result of one foreground sync cycle. Never raises; see ``errors``."""

    merged: Optional[MergeResult] = None
    uploaded: bool = False
    skipped_merge: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0
