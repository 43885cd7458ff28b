"""Sync commands for the focussync CLI."""

import asyncio
import json
import logging
from typing import TYPE_CHECKING

from focussync.decision import decide
from focussync.types import Resolution, SyncAction

if TYPE_CHECKING:
    from focussync.coordinator import SyncCoordinator

logger = logging.getLogger(__name__)

ACTION_HINTS = {
    SyncAction.NOOP: "Nothing to do",
    SyncAction.PULL: "Cloud data will be pulled onto this device",
    SyncAction.PROMPT_UPLOAD: "Ask: save this device's data to the account?",
    SyncAction.PROMPT_MERGE: "Ask: keep local data, replace with cloud, or merge?",
}


def _print_json(data):
    print(json.dumps(data, indent=2, default=str))


def cmd_status(args, c: "SyncCoordinator"):
    """Show local state, sync metadata and cloud presence."""
    local = c.local
    snapshot = local.snapshot()
    has_cloud = asyncio.run(c.engine.has_cloud_data(args.user_id))
    status = {
        "user_id": args.user_id,
        "local": {
            "reminders": len(snapshot.reminders),
            "apps": len(snapshot.apps),
            "analytics": len(snapshot.analytics),
            "has_data": local.has_local_data(),
        },
        "cloud": {"has_data": has_cloud},
        "migrated": local.get_migration_flag(args.user_id),
        "last_sync_at": local.get_last_sync_at(args.user_id) or None,
        "dirty_since": local.get_dirty_since() or None,
        "merge_due": c.merge_due(args.user_id),
    }
    if args.json:
        _print_json(status)
        return

    print(f"Sync status for {args.user_id}")
    print("=" * 40)
    print(
        f"Local:    {status['local']['reminders']} reminders, "
        f"{status['local']['apps']} app selections, "
        f"{status['local']['analytics']} sessions"
    )
    print(f"Cloud:    {'data present' if has_cloud else 'empty'}")
    print(f"Migrated: {'yes' if status['migrated'] else 'no'}")
    print(f"Dirty:    {'yes' if status['dirty_since'] else 'no'}")
    print(f"Merge due: {'yes' if status['merge_due'] else 'no'}")


def cmd_decide(args, c: "SyncCoordinator"):
    """Evaluate the sync decision without acting on it."""
    has_local = c.local.has_local_data()
    has_cloud = asyncio.run(c.engine.has_cloud_data(args.user_id))
    migrated = c.local.get_migration_flag(args.user_id)
    action = decide(has_local, has_cloud, migrated)
    if args.json:
        _print_json(
            {
                "action": action.value,
                "has_local": has_local,
                "has_cloud": has_cloud,
                "migrated": migrated,
            }
        )
        return
    print(f"{action.value}: {ACTION_HINTS[action]}")


def cmd_upload(args, c: "SyncCoordinator"):
    """Replace cloud data with this device's data."""
    asyncio.run(c.engine.upload(args.user_id))
    print("✓ Uploaded local data to account")


def cmd_download(args, c: "SyncCoordinator"):
    """Print the account's cloud data without touching the device."""
    snapshot = asyncio.run(c.engine.download(args.user_id))
    if args.json:
        _print_json(snapshot.to_dict())
        return
    print(f"Settings:  {'present' if snapshot.settings is not None else 'none'}")
    print(f"Apps:      {len(snapshot.apps)}")
    print(f"Reminders: {len(snapshot.reminders)}")
    for reminder in snapshot.reminders:
        print(f"  - {reminder.get('id')}: {reminder.get('title', '')}")
    print(f"Analytics: {len(snapshot.analytics)}")


def cmd_pull(args, c: "SyncCoordinator"):
    """Replace this device's data with the account's."""
    if asyncio.run(c.engine.pull(args.user_id)):
        print("✓ Replaced local data with cloud data")
    else:
        print("Cloud is empty; local data left untouched")


def cmd_merge(args, c: "SyncCoordinator"):
    """Merge cloud reminders and analytics into this device."""
    result = asyncio.run(c.engine.merge(args.user_id))
    if args.json:
        _print_json(result.to_dict())
        return
    print(
        f"✓ Merged: {result.reminders_changed} reminders changed, "
        f"{result.analytics_added} sessions added"
    )
    if result.skipped:
        print(f"  {result.skipped} malformed cloud items skipped")


def cmd_sign_in(args, c: "SyncCoordinator"):
    """Run the sign-in reconciliation check."""
    outcome = asyncio.run(c.on_sign_in(args.user_id))
    if args.json:
        _print_json(
            {
                "action": outcome.action.value,
                "pulled": outcome.pulled,
                "has_local": outcome.has_local,
                "has_cloud": outcome.has_cloud,
                "migrated": outcome.migrated,
            }
        )
        return
    print(f"{outcome.action.value}: {ACTION_HINTS[outcome.action]}")
    if outcome.pulled:
        print("✓ Loaded your data from your account")
    if outcome.action.is_prompt:
        print("  Answer with: focussync resolve <choice>")


def cmd_foreground(args, c: "SyncCoordinator"):
    """Run one background sync cycle (cooldown-gated merge, dirty upload)."""
    outcome = asyncio.run(c.on_foreground(args.user_id))
    if args.json:
        _print_json(
            {
                "merged": outcome.merged.to_dict() if outcome.merged else None,
                "uploaded": outcome.uploaded,
                "skipped_merge": outcome.skipped_merge,
                "errors": outcome.errors,
            }
        )
        return
    if outcome.merged:
        print(
            f"✓ Merged: {outcome.merged.reminders_changed} reminders changed, "
            f"{outcome.merged.analytics_added} sessions added"
        )
    elif outcome.skipped_merge:
        print("Merge skipped (cooldown)")
    if outcome.uploaded:
        print("✓ Uploaded local changes")
    for error in outcome.errors:
        print(f"✗ {error}")


def cmd_resolve(args, c: "SyncCoordinator"):
    """Apply an answer to the upload/merge prompt."""
    resolution = Resolution(args.choice)
    result = asyncio.run(c.resolve(args.user_id, resolution))
    if resolution is Resolution.LATER:
        print("Deferred; you will be asked again on next sign-in")
        return
    print(f"✓ Device reconciled ({resolution.value})")
    if result is not None:
        print(
            f"  {result.reminders_changed} reminders changed, "
            f"{result.analytics_added} sessions added"
        )
