"""Uniqueness and capacity rules for the bounded collections.

History is kept oldest first; the most recently used entry sits at the end.
Eviction picks the entry with the oldest ``last_accessed`` (or ``timestamp``
when it was never accessed), ties going to the earlier list position. The scan
is O(n); limits are capped at 1000.
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional

from clipkeep.models.items import ClipboardItem, IpHistoryItem, utcnow


def find_by_fingerprint(
    history: List[ClipboardItem],
    fingerprint: str,
    fingerprint_of: Callable[[ClipboardItem], str],
) -> Optional[int]:
    for index, item in enumerate(history):
        if fingerprint_of(item) == fingerprint:
            return index
    return None


def move_to_recent(history: List[ClipboardItem], index: int) -> ClipboardItem:
    item = history.pop(index)
    history.append(item)
    return item


def lru_index(history: List[ClipboardItem]) -> int:
    """Index to evict. The last entry is the one just used and never chosen,
    even when the wall clock has stepped backwards."""
    if len(history) < 2:
        return 0
    return min(range(len(history) - 1), key=lambda i: (history[i].last_used, i))


def enforce_history_limit(history: List[ClipboardItem], limit: int) -> List[ClipboardItem]:
    evicted = []
    while len(history) > limit:
        evicted.append(history.pop(lru_index(history)))
    return evicted


def merge_duplicates(
    history: List[ClipboardItem],
    fingerprint_of: Callable[[ClipboardItem], str],
) -> List[ClipboardItem]:
    """Collapse entries with equal fingerprints in place.

    The most recently used copy survives, keeps its position, and absorbs the
    access counts of the others. Returns the removed entries.
    """
    groups: Dict[str, List[ClipboardItem]] = {}
    for item in history:
        groups.setdefault(fingerprint_of(item), []).append(item)

    positions = {id(item): index for index, item in enumerate(history)}
    removed: List[ClipboardItem] = []
    survivors = set()
    for items in groups.values():
        if len(items) == 1:
            survivors.add(id(items[0]))
            continue
        keep = max(items, key=lambda it: (it.last_used, positions[id(it)]))
        accessed = [it.last_accessed for it in items if it.last_accessed is not None]
        keep.access_count = sum(it.access_count for it in items)
        keep.last_accessed = max(accessed) if accessed else None
        survivors.add(id(keep))
        removed.extend(it for it in items if it is not keep)

    history[:] = [item for item in history if id(item) in survivors]
    return removed


def sort_ips(recent_ips: List[IpHistoryItem]) -> None:
    recent_ips.sort(key=lambda item: item.timestamp, reverse=True)


def merge_ip(recent_ips: List[IpHistoryItem], ip: str, limit: int, now: Optional[datetime] = None) -> bool:
    """Record one sighting of ``ip``. Returns True when the ip is new."""
    now = now or utcnow()
    for item in recent_ips:
        if item.ip == ip:
            item.count += 1
            item.timestamp = now
            sort_ips(recent_ips)
            return False

    recent_ips.insert(0, IpHistoryItem(ip=ip, timestamp=now, count=1))
    sort_ips(recent_ips)
    enforce_ip_limit(recent_ips, limit)
    return True


def enforce_ip_limit(recent_ips: List[IpHistoryItem], limit: int) -> List[IpHistoryItem]:
    sort_ips(recent_ips)
    evicted = []
    while len(recent_ips) > limit:
        evicted.append(recent_ips.pop())
    return evicted
