"""Sign-in and foreground orchestration.

SyncCoordinator is the seam the host app calls into. It decides what to do
(via ``decide``), runs the silent parts itself (pulling into an empty
device, periodic merges, uploading dirty data) and hands prompt actions back
to the caller, which owns all presentation.

Foreground sync is background work: failures are logged and returned in the
outcome, never raised, and the next foreground event retries. Prompt
resolutions are user actions: failures propagate and the migration flag is
left unset so the caller can keep the prompt open for a retry.
"""

import logging
from typing import Callable, Optional, Union

from .decision import decide
from .engine import ReconciliationEngine
from .errors import InvalidArgumentError, SyncError
from .protocols import LocalStore
from .types import (
    MERGE_COOLDOWN_SECONDS,
    ForegroundOutcome,
    MergeResult,
    Resolution,
    SignInOutcome,
    SyncAction,
    now_ms,
)

logger = logging.getLogger(__name__)


class SyncCoordinator:
    """Drive the reconciliation engine from app lifecycle events.

    Args:
        engine: The reconciliation engine for this device.
        cooldown_seconds: Minimum time between foreground merges.
        clock: Returns the current time in epoch milliseconds.
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        cooldown_seconds: int = MERGE_COOLDOWN_SECONDS,
        clock: Callable[[], int] = now_ms,
    ):
        self.engine = engine
        self.cooldown_ms = cooldown_seconds * 1000
        self._clock = clock

    @property
    def local(self) -> LocalStore:
        return self.engine.local

    async def _cloud_presence(self, user_id: str) -> bool:
        try:
            return await self.engine.has_cloud_data(user_id)
        except SyncError as e:
            logger.warning(f"Cloud presence check failed, assuming no cloud data: {e}")
            return False

    async def on_sign_in(self, user_id: str) -> SignInOutcome:
        """Evaluate a sign-in event.

        Pulls silently when the device is empty and the account is not;
        a successful pull marks the device as reconciled. Prompt actions are
        returned for the caller to present.
        """
        migrated = self.local.get_migration_flag(user_id)
        has_local = self.local.has_local_data()
        has_cloud = await self._cloud_presence(user_id)

        action = decide(has_local, has_cloud, migrated)
        outcome = SignInOutcome(
            action=action, has_local=has_local, has_cloud=has_cloud, migrated=migrated
        )
        logger.info(
            f"Sign-in for {user_id}: local={has_local} cloud={has_cloud} "
            f"migrated={migrated} -> {action.value}"
        )

        if action is SyncAction.PULL:
            try:
                outcome.pulled = await self.engine.pull(user_id)
            except SyncError as e:
                logger.warning(f"Sign-in pull failed (will retry next sign-in): {e}")
                return outcome
            if outcome.pulled:
                # Implicitly reconciled; avoids prompting on the next sign-in
                self.local.set_migration_flag(user_id, True)

        return outcome

    async def resolve(
        self, user_id: str, resolution: Union[Resolution, str]
    ) -> Optional[MergeResult]:
        """Apply the user's answer to an upload/merge prompt.

        Returns:
            The MergeResult for ``Resolution.MERGE``, otherwise None.

        Raises:
            InvalidArgumentError: For an unknown resolution.
            SyncError: If the chosen operation fails; the device stays
                unreconciled so the prompt can be retried.
        """
        try:
            resolution = Resolution(resolution)
        except ValueError as e:
            raise InvalidArgumentError(f"Unknown resolution: {resolution!r}") from e

        result = None
        if resolution is Resolution.LATER:
            logger.info(f"Reconciliation for {user_id} deferred")
            return None
        if resolution is Resolution.SAVE_TO_ACCOUNT:
            await self.engine.upload(user_id)
        elif resolution is Resolution.REPLACE_WITH_CLOUD:
            await self.engine.pull(user_id)
        elif resolution is Resolution.MERGE:
            result = await self.sync_now(user_id)

        self.local.set_migration_flag(user_id, True)
        logger.info(f"Device reconciled with {user_id} ({resolution.value})")
        return result

    async def sync_now(self, user_id: str) -> MergeResult:
        """Merge then upload, ignoring the cooldown.

        Used for explicit user actions; errors propagate.
        """
        result = await self.engine.merge(user_id, now=self._clock())
        dirty_since = self.local.get_dirty_since()
        await self.engine.upload(user_id)
        self.local.clear_dirty(if_unchanged_since=dirty_since)
        return result

    def merge_due(self, user_id: str) -> bool:
        """True once the cooldown since the last merge has elapsed."""
        return self._clock() - self.local.get_last_sync_at(user_id) >= self.cooldown_ms

    async def on_foreground(self, user_id: str) -> ForegroundOutcome:
        """Run one background sync cycle for a signed-in user.

        Merge runs first (if due) so remote-only items from other devices are
        on the device before the full-replace upload of dirty data.
        """
        outcome = ForegroundOutcome()
        if not user_id:
            return outcome

        if self.merge_due(user_id):
            try:
                outcome.merged = await self.engine.merge(user_id, now=self._clock())
            except SyncError as e:
                logger.warning(f"Foreground merge failed (will retry): {e}")
                outcome.errors.append(str(e))
                # Uploading now could overwrite rows the merge never saw
                return outcome
        else:
            outcome.skipped_merge = True

        dirty_since = self.local.get_dirty_since()
        if dirty_since:
            try:
                await self.engine.upload(user_id)
            except SyncError as e:
                logger.warning(f"Foreground upload failed (will retry): {e}")
                outcome.errors.append(str(e))
            else:
                outcome.uploaded = True
                if not self.local.clear_dirty(if_unchanged_since=dirty_since):
                    logger.debug("Local data changed during upload; staying dirty")

        return outcome
