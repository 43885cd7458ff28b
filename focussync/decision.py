"""Sync direction decision.

Pure: no I/O and no caching. Local and cloud presence can change between
checks, so callers evaluate it again on every sign-in / foreground event.
"""

from .types import SyncAction


def decide(has_local: bool, has_cloud: bool, migrated: bool) -> SyncAction:
    """Choose what to do with this device's data for a signed-in user.

    Args:
        has_local: The device holds user data (apps, reminders or analytics).
        has_cloud: The account has at least one remote row.
        migrated: This device was already reconciled with this account.

    Returns:
        The SyncAction to perform. Prompt actions are presented by the caller.
    """
    if migrated:
        # A reconciled device with local data is authoritative; cloud is only
        # used to populate an empty device.
        if not has_local and has_cloud:
            return SyncAction.PULL
        return SyncAction.NOOP

    if has_local and not has_cloud:
        return SyncAction.PROMPT_UPLOAD
    if not has_local and has_cloud:
        return SyncAction.PULL
    if has_local and has_cloud:
        return SyncAction.PROMPT_MERGE
    return SyncAction.NOOP
