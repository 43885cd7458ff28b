"""Storage backends for focussync.

- KeyValueLocalStore: LocalStore contract over a string key-value backend
- SQLiteLocalStore:   on-disk local store (default for the CLI)
- MemoryLocalStore:   dict-backed local store (tests, ephemeral hosts)
- SupabaseRemoteStore: RemoteStore over Supabase tables
"""

from .base import KEYS, KeyValueLocalStore
from .cloud import SupabaseRemoteStore, create_supabase_client
from .memory import MemoryLocalStore
from .sqlite import SQLiteLocalStore

__all__ = [
    "KEYS",
    "KeyValueLocalStore",
    "MemoryLocalStore",
    "SQLiteLocalStore",
    "SupabaseRemoteStore",
    "create_supabase_client",
]
