"""
focussync CLI - Reconcile this device's data with a cloud account.

Usage:
    focussync status [--json]
    focussync decide [--json]
    focussync upload
    focussync download [--json]
    focussync pull
    focussync merge [--json]
    focussync sign-in [--json]
    focussync foreground [--json]
    focussync resolve {keep-local,save-to-account,replace-with-cloud,merge,later}

The account is taken from --user-id or SYNC_USER_ID; Supabase credentials
from SUPABASE_URL and SUPABASE_PUBLISHABLE_KEY (or SUPABASE_ANON_KEY).
"""

import argparse
import logging
import sys

from focussync.cli.commands.sync import (
    cmd_decide,
    cmd_download,
    cmd_foreground,
    cmd_merge,
    cmd_pull,
    cmd_resolve,
    cmd_sign_in,
    cmd_status,
    cmd_upload,
)
from focussync.config import get_settings
from focussync.coordinator import SyncCoordinator
from focussync.engine import ReconciliationEngine
from focussync.errors import SyncError
from focussync.logging_config import configure_logging
from focussync.storage import SQLiteLocalStore, SupabaseRemoteStore, create_supabase_client
from focussync.types import Resolution

logger = logging.getLogger(__name__)

COMMANDS = {
    "status": cmd_status,
    "decide": cmd_decide,
    "upload": cmd_upload,
    "download": cmd_download,
    "pull": cmd_pull,
    "merge": cmd_merge,
    "sign-in": cmd_sign_in,
    "foreground": cmd_foreground,
    "resolve": cmd_resolve,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="focussync",
        description="Reconcile local focus-app data with a cloud account",
    )
    parser.add_argument("--user-id", "-u", help="Signed-in account id (default: SYNC_USER_ID)")
    parser.add_argument("--db", help="Local store file (default: SYNC_DB_PATH)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log at INFO level")

    subparsers = parser.add_subparsers(dest="command", required=True)
    for name in ("status", "decide", "download", "merge", "sign-in", "foreground"):
        p = subparsers.add_parser(name, help=COMMANDS[name].__doc__)
        p.add_argument("--json", "-j", action="store_true", help="Output as JSON")
    for name in ("upload", "pull"):
        p = subparsers.add_parser(name, help=COMMANDS[name].__doc__)
        p.set_defaults(json=False)

    p_resolve = subparsers.add_parser("resolve", help=cmd_resolve.__doc__)
    p_resolve.add_argument("choice", choices=[r.value for r in Resolution])
    p_resolve.set_defaults(json=False)

    return parser


def build_coordinator(args, settings) -> SyncCoordinator:
    """Wire the local store, Supabase store, engine and coordinator."""
    local = SQLiteLocalStore(args.db or settings.sync_db_path)
    remote = SupabaseRemoteStore(create_supabase_client(settings))
    engine = ReconciliationEngine(local, remote)
    return SyncCoordinator(engine, cooldown_seconds=settings.sync_merge_cooldown_seconds)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(logging.INFO if args.verbose else settings.log_level)

    args.user_id = args.user_id or settings.sync_user_id
    if not args.user_id:
        print("✗ No account: pass --user-id or set SYNC_USER_ID")
        sys.exit(1)

    try:
        coordinator = build_coordinator(args, settings)
        COMMANDS[args.command](args, coordinator)
    except SyncError as e:
        logger.debug(f"{args.command} failed", exc_info=True)
        print(f"✗ {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
