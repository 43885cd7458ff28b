"""Item-level reconciliation of local and remote collections.

Reminders are merged latest-wins by ``updatedAt``; analytics records are
immutable once created and merged as a set union by ``id``. Both functions
are pure: they return new lists and never mutate their inputs.

Guarantees:
- A local item is only ever replaced by a remote item with the same id and a
  strictly greater timestamp. Local-only items are always kept.
- A missing timestamp counts as 0, older than every real write.
- Remote items that cannot be identified are skipped, never merged.
"""

import logging
from typing import Any, Dict, List, Tuple

from .errors import MalformedRecordError
from .records import parse_analytics, parse_reminder
from .types import LOCAL_ANALYTICS_LIMIT

logger = logging.getLogger(__name__)


def timestamp_of(value: Any) -> float:
    """Lenient epoch-ms reading for local documents. Unusable values are 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return 0
    return 0


def _id_of(item: Any) -> Any:
    return item.get("id") if isinstance(item, dict) else None


def merge_reminders(
    local: List[Dict[str, Any]], remote: List[Any]
) -> Tuple[List[Dict[str, Any]], int, int]:
    """Merge remote reminders into the local list.

    Args:
        local: Reminders on the device.
        remote: Reminder documents from the cloud.

    Returns:
        (merged list, number of reminders added or replaced, number skipped)
    """
    merged = list(local)
    by_id: Dict[Any, Dict[str, Any]] = {}
    for item in merged:
        item_id = _id_of(item)
        if item_id is not None:
            by_id[item_id] = item

    changed = 0
    skipped = 0
    for raw in remote:
        try:
            record = parse_reminder(raw)
        except MalformedRecordError as e:
            logger.warning(f"Skipping remote reminder: {e}")
            skipped += 1
            continue

        existing = by_id.get(record.id)
        if existing is None:
            merged.append(raw)
            changed += 1
        elif record.updated_at > timestamp_of(existing.get("updatedAt")):
            merged = [raw if _id_of(item) == record.id else item for item in merged]
            changed += 1
        else:
            continue
        by_id[record.id] = raw

    return merged, changed, skipped


def merge_analytics(
    local: List[Dict[str, Any]],
    remote: List[Any],
    limit: int = LOCAL_ANALYTICS_LIMIT,
) -> Tuple[List[Dict[str, Any]], int, int]:
    """Union remote analytics records into the local history.

    Local records keep their newest-first order; new remote records follow.

    Returns:
        (merged list capped to ``limit``, records added that survived the cap,
        number skipped)
    """
    seen = {_id_of(item) for item in local}
    seen.discard(None)
    new: List[Dict[str, Any]] = []
    skipped = 0
    for raw in remote:
        try:
            record = parse_analytics(raw)
        except MalformedRecordError as e:
            logger.warning(f"Skipping remote analytics record: {e}")
            skipped += 1
            continue
        if record.id in seen:
            continue
        seen.add(record.id)
        new.append(raw)

    merged = (list(local) + new)[:limit]
    # Records cut by the cap were not added; a repeat merge must report 0
    added = min(len(new), max(0, limit - len(local)))
    return merged, added, skipped
