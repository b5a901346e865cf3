"""In-memory owner of :class:`AppData`.

Every mutation runs under one re-entrant lock. After a successful mutation a
deep copy of the data is handed to the persistence callback while the lock is
still held, so snapshots reach the writer in the order the mutations happened.
Readers always receive copies.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import ValidationError

from clipkeep.database import history_policy
from clipkeep.exceptions import InvalidInputError, ItemNotFoundError
from clipkeep.models.items import (
    AppData,
    AppSettings,
    BookmarkItem,
    ClipboardItem,
    IpHistoryItem,
    utcnow,
)
from clipkeep.utils.fingerprint import content_fingerprint
from clipkeep.utils.ip_extractor import extract_ip_addresses, is_valid_ip

logger = logging.getLogger(__name__)

PersistCallback = Callable[[AppData], None]


class SortMode(str, Enum):
    RECENT = "recent"
    FREQUENCY = "frequency"
    ALPHABETICAL = "alphabetical"

    @classmethod
    def parse(cls, value: Union[str, "SortMode"]) -> "SortMode":
        try:
            return cls(value)
        except ValueError:
            choices = ", ".join(mode.value for mode in cls)
            raise InvalidInputError(f"Unknown sort mode {value!r} (expected one of: {choices})")


class ItemKind(str, Enum):
    CLIPBOARD = "clipboard"
    BOOKMARK = "bookmark"

    @classmethod
    def parse(cls, value: Union[str, "ItemKind"]) -> "ItemKind":
        if value == "history":
            return cls.CLIPBOARD
        try:
            return cls(value)
        except ValueError:
            raise InvalidInputError(f"Unknown item kind {value!r} (expected 'clipboard' or 'bookmark')")


@dataclass
class IngestResult:
    item: ClipboardItem
    is_new: bool
    new_ips: List[str] = field(default_factory=list)
    evicted: List[ClipboardItem] = field(default_factory=list)


class StateStore:

    def __init__(self, data: Optional[AppData] = None, persist: Optional[PersistCallback] = None):
        self._data = data or AppData()
        self._persist = persist
        self._lock = threading.RLock()
        # Keyed by object identity; hand-edited files may repeat an id.
        self._fingerprints: Dict[int, Tuple[ClipboardItem, str]] = {}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _fingerprint_of(self, item: ClipboardItem) -> str:
        cached = self._fingerprints.get(id(item))
        if cached is not None and cached[0] is item:
            return cached[1]
        fingerprint = content_fingerprint(item.content)
        self._fingerprints[id(item)] = (item, fingerprint)
        return fingerprint

    def _forget(self, items: Iterable[ClipboardItem]) -> None:
        for item in items:
            self._fingerprints.pop(id(item), None)

    def _commit(self) -> None:
        """Queue a snapshot for persistence. Caller must hold the lock."""
        if self._persist is None:
            return
        try:
            self._persist(self._data.model_copy(deep=True))
        except Exception:
            logger.exception("Failed to queue data for persistence")

    def _find_history(self, item_id: str) -> int:
        for index, item in enumerate(self._data.history):
            if item.id == item_id:
                return index
        raise ItemNotFoundError(f"Clipboard item {item_id} not found")

    def _find_bookmark(self, bookmark_id: str) -> int:
        for index, bookmark in enumerate(self._data.bookmarks):
            if bookmark.id == bookmark_id:
                return index
        raise ItemNotFoundError(f"Bookmark {bookmark_id} not found")

    def _find_ip(self, ip: str) -> int:
        for index, item in enumerate(self._data.recent_ips):
            if item.ip == ip:
                return index
        raise ItemNotFoundError(f"IP {ip} not found in history")

    def _record_ips(self, text: str) -> List[str]:
        new_ips = []
        limit = self._data.settings.ip_limit
        for ip in extract_ip_addresses(text):
            if history_policy.merge_ip(self._data.recent_ips, ip, limit):
                logger.info("New IP added to history: %s", ip)
                new_ips.append(ip)
            else:
                logger.debug("IP seen again: %s", ip)
        return new_ips

    @staticmethod
    def _require_text(value: Optional[str], label: str) -> str:
        if value is None or not str(value).strip():
            raise InvalidInputError(f"{label} must not be empty")
        return str(value)

    # ------------------------------------------------------------------
    # Ingest
    # ------------------------------------------------------------------
    def ingest(self, content: str, content_type: str = "text") -> Optional[IngestResult]:
        """Record clipboard text. Returns None for blank text."""
        if content is None or not content.strip():
            return None

        fingerprint = content_fingerprint(content)
        with self._lock:
            history = self._data.history
            index = history_policy.find_by_fingerprint(history, fingerprint, self._fingerprint_of)
            evicted: List[ClipboardItem] = []
            if index is not None:
                item = history_policy.move_to_recent(history, index)
                item.touch()
                is_new = False
                logger.debug("Clipboard content already in history: %s", item.id)
            else:
                item = ClipboardItem.from_text(content, content_type)
                self._fingerprints[id(item)] = (item, fingerprint)
                history.append(item)
                evicted = history_policy.enforce_history_limit(history, self._data.settings.history_limit)
                self._forget(evicted)
                is_new = True
                logger.info("Clipboard change recorded: %d chars", len(content))

            new_ips = self._record_ips(content)
            self._commit()
            return IngestResult(
                item=item.model_copy(deep=True),
                is_new=is_new,
                new_ips=new_ips,
                evicted=evicted,
            )

    def add_history_item(self, content: str, content_type: str = "text") -> Optional[IngestResult]:
        self._require_text(content, "Content")
        return self.ingest(content, content_type)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def get_history(self) -> List[ClipboardItem]:
        with self._lock:
            return [item.model_copy(deep=True) for item in self._data.history]

    def search_history(self, query: str) -> List[ClipboardItem]:
        items = self.get_history()
        if not query or not query.strip():
            return items
        needle = query.lower()
        results = [
            item for item in items
            if needle in item.content.lower() or needle in item.content_type.lower()
        ]
        results.sort(key=lambda item: item.timestamp, reverse=True)
        return results

    def get_sorted_history(self, mode: Union[str, SortMode] = SortMode.RECENT) -> List[ClipboardItem]:
        mode = SortMode.parse(mode)
        items = self.get_history()
        if mode is SortMode.RECENT:
            return list(reversed(items))
        if mode is SortMode.FREQUENCY:
            positions = {item.id: index for index, item in enumerate(items)}
            return sorted(items, key=lambda item: (item.access_count, positions[item.id]), reverse=True)
        return sorted(items, key=lambda item: item.content.casefold())

    def delete_history_item(self, item_id: str) -> ClipboardItem:
        with self._lock:
            item = self._data.history.pop(self._find_history(item_id))
            self._forget([item])
            logger.info("Clipboard item deleted: %s", item_id)
            self._commit()
            return item

    def clear_history(self) -> int:
        with self._lock:
            count = len(self._data.history)
            self._data.history.clear()
            self._fingerprints.clear()
            logger.info("Clipboard history cleared: %d items", count)
            self._commit()
            return count

    def remove_duplicate_history(self) -> int:
        with self._lock:
            removed = history_policy.merge_duplicates(self._data.history, self._fingerprint_of)
            self._forget(removed)
            if removed:
                logger.info("Removed %d duplicate history items", len(removed))
            self._commit()
            return len(removed)

    def find_duplicate_history(self) -> List[Dict[str, Any]]:
        with self._lock:
            groups: Dict[str, List[ClipboardItem]] = {}
            for item in self._data.history:
                groups.setdefault(self._fingerprint_of(item), []).append(item)
            duplicates = [items for items in groups.values() if len(items) > 1]
            return [
                {
                    "content_preview": items[0].content[:50] + ("..." if len(items[0].content) > 50 else ""),
                    "count": len(items),
                    "item_ids": [item.id for item in items],
                    "timestamps": [item.timestamp.isoformat() for item in items],
                }
                for items in duplicates
            ]

    def remove_large_items(self, threshold_bytes: int) -> int:
        if threshold_bytes < 0:
            raise InvalidInputError("Size threshold must not be negative")
        with self._lock:
            history = self._data.history
            removed = [item for item in history if item.size > threshold_bytes]
            history[:] = [item for item in history if item.size <= threshold_bytes]
            self._forget(removed)
            if removed:
                logger.info("Removed %d items larger than %d bytes", len(removed), threshold_bytes)
                self._commit()
            return len(removed)

    def remove_old_items(self, days: int) -> int:
        if days < 0:
            raise InvalidInputError("Days must not be negative")
        cutoff = utcnow() - timedelta(days=days)
        with self._lock:
            history = self._data.history
            removed = [item for item in history if item.timestamp <= cutoff]
            history[:] = [item for item in history if item.timestamp > cutoff]
            self._forget(removed)
            if removed:
                logger.info("Removed %d items older than %d days", len(removed), days)
                self._commit()
            return len(removed)

    # ------------------------------------------------------------------
    # Bookmarks
    # ------------------------------------------------------------------
    def get_bookmarks(self) -> List[BookmarkItem]:
        with self._lock:
            return [bookmark.model_copy(deep=True) for bookmark in self._data.bookmarks]

    def search_bookmarks(self, query: str) -> List[BookmarkItem]:
        bookmarks = self.get_bookmarks()
        if not query or not query.strip():
            return bookmarks
        needle = query.lower()
        results = [
            bookmark for bookmark in bookmarks
            if needle in bookmark.name.lower()
            or needle in bookmark.content.lower()
            or any(needle in tag.lower() for tag in bookmark.tags)
        ]
        results.sort(key=lambda bookmark: bookmark.timestamp, reverse=True)
        return results

    def get_sorted_bookmarks(self, mode: Union[str, SortMode] = SortMode.RECENT) -> List[BookmarkItem]:
        mode = SortMode.parse(mode)
        bookmarks = self.get_bookmarks()
        if mode is SortMode.RECENT:
            return sorted(bookmarks, key=lambda bookmark: bookmark.timestamp, reverse=True)
        if mode is SortMode.FREQUENCY:
            return sorted(bookmarks, key=lambda bookmark: (bookmark.access_count, bookmark.timestamp), reverse=True)
        return sorted(bookmarks, key=lambda bookmark: bookmark.name.casefold())

    def add_bookmark(
        self,
        name: str,
        content: str,
        content_type: str = "text",
        tags: Optional[Iterable[str]] = None,
    ) -> BookmarkItem:
        bookmark = BookmarkItem(
            name=self._require_text(name, "Bookmark name").strip(),
            content=self._require_text(content, "Bookmark content"),
            content_type=content_type or "text",
            tags=list(tags or []),
        )
        with self._lock:
            self._data.bookmarks.append(bookmark)
            logger.info("Bookmark added: %s", bookmark.id)
            self._commit()
            return bookmark.model_copy(deep=True)

    def bookmark_history_item(
        self,
        item_id: str,
        name: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> BookmarkItem:
        with self._lock:
            item = self._data.history[self._find_history(item_id)]
            if name is None:
                lines = item.content.strip().splitlines()
                name = lines[0][:50] if lines else item.content[:50]
            return self.add_bookmark(name, item.content, item.content_type, tags)

    def update_bookmark(
        self,
        bookmark_id: str,
        name: Optional[str] = None,
        content: Optional[str] = None,
        content_type: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> BookmarkItem:
        if name is not None:
            name = self._require_text(name, "Bookmark name").strip()
        if content is not None:
            self._require_text(content, "Bookmark content")
        with self._lock:
            bookmark = self._data.bookmarks[self._find_bookmark(bookmark_id)]
            changes: Dict[str, Any] = {}
            if name is not None:
                changes["name"] = name
            if content is not None:
                changes["content"] = content
            if content_type is not None:
                changes["content_type"] = content_type
            if tags is not None:
                changes["tags"] = list(tags)
            try:
                updated = BookmarkItem.model_validate({**bookmark.model_dump(), **changes, "last_accessed": utcnow()})
            except ValidationError as e:
                raise InvalidInputError(f"Invalid bookmark update: {e.error_count()} error(s)", e) from e
            self._data.bookmarks[self._find_bookmark(bookmark_id)] = updated
            logger.info("Bookmark updated: %s", bookmark_id)
            self._commit()
            return updated.model_copy(deep=True)

    def delete_bookmark(self, bookmark_id: str) -> BookmarkItem:
        with self._lock:
            bookmark = self._data.bookmarks.pop(self._find_bookmark(bookmark_id))
            logger.info("Bookmark deleted: %s", bookmark_id)
            self._commit()
            return bookmark

    def duplicate_bookmark(self, bookmark_id: str) -> BookmarkItem:
        with self._lock:
            original = self._data.bookmarks[self._find_bookmark(bookmark_id)]
            duplicate = BookmarkItem(
                name=f"{original.name} (copy)",
                content=original.content,
                content_type=original.content_type,
                tags=list(original.tags),
            )
            self._data.bookmarks.append(duplicate)
            logger.info("Bookmark duplicated: %s -> %s", bookmark_id, duplicate.id)
            self._commit()
            return duplicate.model_copy(deep=True)

    def clear_bookmarks(self) -> int:
        with self._lock:
            count = len(self._data.bookmarks)
            self._data.bookmarks.clear()
            logger.info("All bookmarks cleared: %d items", count)
            self._commit()
            return count

    def find_duplicate_bookmarks(self) -> List[Dict[str, Any]]:
        with self._lock:
            groups: Dict[str, List[BookmarkItem]] = {}
            for bookmark in self._data.bookmarks:
                groups.setdefault(f"{bookmark.name}:{bookmark.content}", []).append(bookmark)
            return [
                {
                    "key": key,
                    "count": len(bookmarks),
                    "bookmark_ids": [bookmark.id for bookmark in bookmarks],
                    "names": [bookmark.name for bookmark in bookmarks],
                }
                for key, bookmarks in groups.items()
                if len(bookmarks) > 1
            ]

    # ------------------------------------------------------------------
    # Access tracking
    # ------------------------------------------------------------------
    def get_item(self, item_id: str, kind: Union[str, ItemKind]) -> Union[ClipboardItem, BookmarkItem]:
        kind = ItemKind.parse(kind)
        with self._lock:
            if kind is ItemKind.CLIPBOARD:
                return self._data.history[self._find_history(item_id)].model_copy(deep=True)
            return self._data.bookmarks[self._find_bookmark(item_id)].model_copy(deep=True)

    def increment_access_count(self, item_id: str, kind: Union[str, ItemKind]) -> int:
        kind = ItemKind.parse(kind)
        with self._lock:
            if kind is ItemKind.CLIPBOARD:
                item = history_policy.move_to_recent(self._data.history, self._find_history(item_id))
            else:
                item = self._data.bookmarks[self._find_bookmark(item_id)]
            item.touch()
            logger.debug("Access count updated: %s (%s) -> %d", item_id, kind.value, item.access_count)
            self._commit()
            return item.access_count

    # ------------------------------------------------------------------
    # IP history
    # ------------------------------------------------------------------
    def get_recent_ips(self) -> List[IpHistoryItem]:
        with self._lock:
            return [item.model_copy(deep=True) for item in self._data.recent_ips]

    def search_ip_history(self, query: str) -> List[IpHistoryItem]:
        items = self.get_recent_ips()
        if not query or not query.strip():
            return items
        needle = query.strip()
        return [item for item in items if needle in item.ip]

    def add_ip(self, ip: str) -> bool:
        ip = (ip or "").strip()
        if not is_valid_ip(ip):
            raise InvalidInputError(f"Invalid IP address format: {ip!r}")
        with self._lock:
            is_new = history_policy.merge_ip(self._data.recent_ips, ip, self._data.settings.ip_limit)
            self._commit()
            return is_new

    def reset_ip_count(self, ip: str) -> None:
        with self._lock:
            self._data.recent_ips[self._find_ip(ip)].count = 1
            logger.info("IP count reset: %s", ip)
            self._commit()

    def remove_ip(self, ip: str) -> None:
        with self._lock:
            self._data.recent_ips.pop(self._find_ip(ip))
            logger.info("IP removed from history: %s", ip)
            self._commit()

    def clear_ip_history(self) -> int:
        with self._lock:
            count = len(self._data.recent_ips)
            self._data.recent_ips.clear()
            logger.info("IP history cleared: %d items", count)
            self._commit()
            return count

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def get_settings(self) -> AppSettings:
        with self._lock:
            return self._data.settings.model_copy(deep=True)

    def update_settings(self, settings: Union[AppSettings, Dict[str, Any]]) -> AppSettings:
        if isinstance(settings, AppSettings):
            changes = settings.model_dump()
        else:
            changes = dict(settings)
            unknown = sorted(set(changes) - set(AppSettings.model_fields))
            if unknown:
                raise InvalidInputError(f"Unknown settings: {', '.join(unknown)}")

        with self._lock:
            try:
                updated = AppSettings.model_validate({**self._data.settings.model_dump(), **changes})
            except ValidationError as e:
                raise InvalidInputError(f"Invalid settings: {e.errors()[0]['msg']}", e) from e

            self._data.settings = updated
            evicted = history_policy.enforce_history_limit(self._data.history, updated.history_limit)
            self._forget(evicted)
            history_policy.enforce_ip_limit(self._data.recent_ips, updated.ip_limit)
            logger.info("Settings updated")
            self._commit()
            return updated.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Whole-document operations
    # ------------------------------------------------------------------
    def snapshot(self) -> AppData:
        with self._lock:
            return self._data.model_copy(deep=True)

    def replace(self, data: AppData) -> None:
        with self._lock:
            self._data = data
            self._fingerprints.clear()

    def save(self) -> None:
        with self._lock:
            self._commit()

    def repair(self) -> Dict[str, int]:
        """Merge duplicates and enforce limits on freshly loaded data."""
        with self._lock:
            duplicates = history_policy.merge_duplicates(self._data.history, self._fingerprint_of)
            self._forget(duplicates)
            evicted = history_policy.enforce_history_limit(self._data.history, self._data.settings.history_limit)
            self._forget(evicted)
            ip_evicted = history_policy.enforce_ip_limit(self._data.recent_ips, self._data.settings.ip_limit)
            report = {
                "duplicates_removed": len(duplicates),
                "history_evicted": len(evicted),
                "ips_evicted": len(ip_evicted),
            }
            if any(report.values()):
                logger.info("Loaded data repaired: %s", report)
                self._commit()
            return report

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            data = self._data
            settings = data.settings
            history_count = len(data.history)
            total_size = sum(item.size for item in data.history)
            most_recent = max((item.timestamp for item in data.history), default=None)
            return {
                "history_count": history_count,
                "bookmark_count": len(data.bookmarks),
                "ip_count": len(data.recent_ips),
                "history_limit": settings.history_limit,
                "ip_limit": settings.ip_limit,
                "history_usage_percent": round(history_count * 100.0 / settings.history_limit, 1),
                "ip_usage_percent": round(len(data.recent_ips) * 100.0 / settings.ip_limit, 1),
                "total_size_bytes": total_size,
                "bookmark_size_bytes": sum(len(b.content.encode("utf-8", errors="surrogatepass")) for b in data.bookmarks),
                "average_size": total_size // history_count if history_count else 0,
                "most_recent_timestamp": most_recent.isoformat() if most_recent else None,
            }
