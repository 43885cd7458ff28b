"""Tests for item-level merge and ReconciliationEngine.merge.

Tests:
- Latest-wins reminders by updatedAt, local-only items kept
- Analytics union by id with the local cap
- Malformed remote items skipped, never merged
- Idempotence of repeated merges
- LastSyncAt bookkeeping
"""

import httpx
import pytest

from focussync.errors import RemoteUnavailableError
from focussync.merge import merge_analytics, merge_reminders, timestamp_of
from focussync.storage import KEYS


def _reminder(id, updated_at, title="Reminder"):
    return {"id": id, "title": title, "updatedAt": updated_at}


class TestMergeReminders:
    """Pure reminder merge."""

    def test_remote_only_items_appended(self):
        local = [_reminder("r1", 1)]
        remote = [_reminder("r2", 1)]

        merged, changed, skipped = merge_reminders(local, remote)

        assert [r["id"] for r in merged] == ["r1", "r2"]
        assert (changed, skipped) == (1, 0)

    def test_newer_remote_replaces_in_place(self):
        local = [_reminder("r1", 1, "old"), _reminder("r2", 5)]
        remote = [_reminder("r1", 2, "new")]

        merged, changed, _ = merge_reminders(local, remote)

        assert merged == [_reminder("r1", 2, "new"), _reminder("r2", 5)]
        assert changed == 1

    @pytest.mark.parametrize("remote_ts", [1, 0])
    def test_equal_or_older_remote_keeps_local(self, remote_ts):
        local = [_reminder("r1", 1, "local")]

        merged, changed, _ = merge_reminders(local, [_reminder("r1", remote_ts, "remote")])

        assert merged == local
        assert changed == 0

    def test_local_only_items_never_dropped(self):
        local = [_reminder("r1", 10), _reminder("r2", 10)]

        merged, _, _ = merge_reminders(local, [])

        assert merged == local

    def test_missing_timestamp_is_oldest(self):
        local = [{"id": "r1", "title": "no timestamp"}]
        remote = [_reminder("r1", 1, "stamped")]

        merged, changed, _ = merge_reminders(local, remote)

        assert merged[0]["title"] == "stamped"
        assert changed == 1

    def test_remote_without_timestamp_never_replaces(self):
        local = [_reminder("r1", 1, "local")]

        merged, changed, _ = merge_reminders(local, [{"id": "r1", "updatedAt": None}])

        assert merged == local
        assert changed == 0

    @pytest.mark.parametrize(
        "bad",
        [
            {"title": "no id"},
            {"id": "", "updatedAt": 5},
            {"id": 42, "updatedAt": 5},
            {"id": "r9", "updatedAt": "yesterday"},
            "not-an-object",
            None,
        ],
    )
    def test_malformed_remote_items_skipped(self, bad):
        local = [_reminder("r1", 1)]

        merged, changed, skipped = merge_reminders(local, [bad, _reminder("r2", 1)])

        assert [r["id"] for r in merged] == ["r1", "r2"]
        assert (changed, skipped) == (1, 1)

    def test_duplicate_remote_ids_newest_wins(self):
        remote = [_reminder("r1", 1, "first"), _reminder("r1", 3, "third"), _reminder("r1", 2)]

        merged, changed, _ = merge_reminders([], remote)

        assert merged == [_reminder("r1", 3, "third")]
        assert changed == 2

    def test_inputs_not_mutated(self):
        local = [_reminder("r1", 1)]
        remote = [_reminder("r1", 2)]

        merge_reminders(local, remote)

        assert local == [_reminder("r1", 1)]


class TestMergeAnalytics:
    """Pure analytics union."""

    def test_union_by_id(self):
        local = [{"id": "a2"}, {"id": "a1"}]
        remote = [{"id": "a3"}, {"id": "a1"}]

        merged, added, skipped = merge_analytics(local, remote)

        assert [a["id"] for a in merged] == ["a2", "a1", "a3"]
        assert (added, skipped) == (1, 0)

    def test_local_record_wins_on_same_id(self):
        local = [{"id": "a1", "duration": 10}]

        merged, added, _ = merge_analytics(local, [{"id": "a1", "duration": 99}])

        assert merged == local
        assert added == 0

    def test_capped_to_limit(self):
        local = [{"id": f"l{i}"} for i in range(4)]
        remote = [{"id": f"r{i}"} for i in range(3)]

        merged, added, _ = merge_analytics(local, remote, limit=5)

        assert [a["id"] for a in merged] == ["l0", "l1", "l2", "l3", "r0"]
        assert added == 1

    def test_full_history_reports_nothing_added(self):
        local = [{"id": f"l{i}"} for i in range(5)]

        merged, added, _ = merge_analytics(local, [{"id": "r0"}], limit=5)

        assert merged == local
        assert added == 0

    def test_malformed_records_skipped(self):
        merged, added, skipped = merge_analytics([], [{"duration": 5}, {"id": "a1"}, 7])

        assert merged == [{"id": "a1"}]
        assert (added, skipped) == (1, 2)


class TestTimestampOf:
    @pytest.mark.parametrize(
        "value,expected",
        [(5, 5), (2.5, 2.5), ("7", 7.0), ("soon", 0), (None, 0), (True, 0), ([], 0)],
    )
    def test_lenient_reading(self, value, expected):
        assert timestamp_of(value) == expected


class TestEngineMerge:
    """Merging cloud state into the device."""

    @pytest.mark.asyncio
    async def test_merge_pulls_in_remote_only_items(
        self, engine, local, mock_supabase_client, user_id
    ):
        mock_supabase_client.rows("user_reminders").append(
            {"user_id": user_id, "reminder_data": _reminder("r2", 5)}
        )
        mock_supabase_client.rows("user_analytics").append(
            {"user_id": user_id, "session_data": {"id": "a9", "startedAt": 1}}
        )
        local.set_reminders([_reminder("r1", 1)])

        result = await engine.merge(user_id)

        assert [r["id"] for r in local.get_reminders()] == ["r1", "r2"]
        assert [a["id"] for a in local.get_analytics_history()] == ["a9"]
        assert result.to_dict() == {"remindersChanged": 1, "analyticsAdded": 1, "skipped": 0}

    @pytest.mark.asyncio
    async def test_merge_is_idempotent(self, engine, local, mock_supabase_client, user_id):
        mock_supabase_client.rows("user_reminders").append(
            {"user_id": user_id, "reminder_data": _reminder("r2", 5)}
        )
        mock_supabase_client.rows("user_analytics").append(
            {"user_id": user_id, "session_data": {"id": "a9"}}
        )
        await engine.merge(user_id)
        state = (local.get_reminders(), local.get_analytics_history())
        local.writes.clear()

        result = await engine.merge(user_id)

        assert result.reminders_changed == 0
        assert result.analytics_added == 0
        assert (local.get_reminders(), local.get_analytics_history()) == state
        # Only the sync timestamp is written
        assert local.writes == [KEYS["last_sync_at_prefix"] + user_id]

    @pytest.mark.asyncio
    async def test_merge_idempotent_with_full_history(
        self, engine, local, mock_supabase_client, user_id
    ):
        local.set_analytics_history([{"id": f"l{i}"} for i in range(500)])
        mock_supabase_client.rows("user_analytics").append(
            {"user_id": user_id, "session_data": {"id": "remote-1"}}
        )

        first = await engine.merge(user_id)
        second = await engine.merge(user_id)

        assert first.analytics_added == 0
        assert second.analytics_added == 0
        assert len(local.get_analytics_history()) == 500

    @pytest.mark.asyncio
    async def test_conflict_resolution_across_devices(self, engine, local, make_device, user_id):
        """Device A edits at T+1, device B at T+2, A again at T+3."""
        local.set_reminders([_reminder("r1", 1000, "original")])
        await engine.upload(user_id)
        device_b = make_device()
        await device_b.pull(user_id)

        local.set_reminders([_reminder("r1", 1001, "edited on A")])
        device_b.local.set_reminders([_reminder("r1", 1002, "edited on B")])
        await device_b.upload(user_id)

        await engine.merge(user_id)
        assert local.get_reminders() == [_reminder("r1", 1002, "edited on B")]

        local.set_reminders([_reminder("r1", 1003, "edited on A again")])
        await engine.upload(user_id)
        await device_b.merge(user_id)
        assert device_b.local.get_reminders() == [_reminder("r1", 1003, "edited on A again")]

    @pytest.mark.asyncio
    async def test_local_newer_survives_merge(self, engine, local, mock_supabase_client, user_id):
        mock_supabase_client.rows("user_reminders").append(
            {"user_id": user_id, "reminder_data": _reminder("r1", 1, "cloud")}
        )
        local.set_reminders([_reminder("r1", 2, "device")])

        result = await engine.merge(user_id)

        assert local.get_reminders() == [_reminder("r1", 2, "device")]
        assert result.reminders_changed == 0

    @pytest.mark.asyncio
    async def test_malformed_cloud_items_counted(
        self, engine, local, mock_supabase_client, user_id
    ):
        rows = mock_supabase_client.rows("user_reminders")
        rows.append({"user_id": user_id, "reminder_data": {"title": "no id"}})
        rows.append({"user_id": user_id, "reminder_data": _reminder("r1", 1)})

        result = await engine.merge(user_id)

        assert result.skipped == 1
        assert local.get_reminders() == [_reminder("r1", 1)]

    @pytest.mark.asyncio
    async def test_merge_records_last_sync(self, engine, local, clock, user_id):
        await engine.merge(user_id)
        assert local.get_last_sync_at(user_id) == clock.now

        await engine.merge(user_id, now=42)
        assert local.get_last_sync_at(user_id) == 42

    @pytest.mark.asyncio
    async def test_merge_does_not_touch_apps_or_settings(
        self, engine, local, mock_supabase_client, user_id
    ):
        mock_supabase_client.rows("user_apps").append(
            {"user_id": user_id, "app_data": {"cloud.app": True}, "updated_at": "2025-01-01"}
        )
        mock_supabase_client.rows("user_settings").append(
            {"user_id": user_id, "settings_data": {"analytics": True}}
        )
        local.set_selected_apps({"device.app": True})

        await engine.merge(user_id)

        assert local.get_selected_apps() == {"device.app": True}
        assert local.get_settings()["analytics"] is False

    @pytest.mark.asyncio
    async def test_failed_download_leaves_device_unchanged(
        self, engine, local, mock_supabase_client, user_id
    ):
        mock_supabase_client.fail("user_reminders", "select", httpx.ConnectError("offline"))

        with pytest.raises(RemoteUnavailableError):
            await engine.merge(user_id)

        assert local.writes == []
        assert local.get_last_sync_at(user_id) == 0
