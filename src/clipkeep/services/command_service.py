"""Command surface of ClipKeep.

:class:`CommandService` wires the monitor, the state store, the persistence
writer and the diagnostic log together, and exposes every operation the UI
needs. Commands never raise: each returns a :class:`CommandResult` whose
``kind`` tells the caller what went wrong.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from clipkeep import __version__
from clipkeep.clipboard import ClipboardReader
from clipkeep.config import AppConfig
from clipkeep.database import IngestResult, StateStore
from clipkeep.exceptions import (
    ClipboardReadError,
    ClipKeepError,
    InvalidInputError,
    PersistenceError,
    ServiceNotReadyError,
)
from clipkeep.models.items import AppSettings
from clipkeep.models.results import CommandResult, ErrorKind
from clipkeep.services.clipboard_service import ClipboardService
from clipkeep.services.events import CLIPBOARD_UPDATED, DATA_CHANGED, IP_DETECTED, EventBus
from clipkeep.services.persistence_service import PersistenceService
from clipkeep.utils.file_manager import FileManager
from clipkeep.utils.ip_extractor import extract_ip_addresses
from clipkeep.utils.log_file import DiagnosticLogHandler, attach_diagnostic_log, detach_diagnostic_log

logger = logging.getLogger(__name__)


class CommandService:

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        reader: Optional[ClipboardReader] = None,
        events: Optional[EventBus] = None,
    ) -> None:
        self.config = config or AppConfig.from_env()
        self.events = events or EventBus()
        self.file_manager = FileManager(self.config.data_dir)
        self.persistence = PersistenceService(self.file_manager)
        self.store: Optional[StateStore] = None
        self.clipboard_service = ClipboardService(
            on_change=self._on_clipboard_change,
            reader=reader,
            poll_interval=self.config.poll_interval,
            max_poll_interval=self.config.max_poll_interval,
        )
        self.log_handler: Optional[DiagnosticLogHandler] = None
        self.load_source: Optional[str] = None
        self._init_lock = threading.Lock()

    # ---------------------------------------------------------------------
    # Plumbing
    # ---------------------------------------------------------------------
    def _run(self, action: str, func: Callable[[], Any]) -> CommandResult:
        try:
            return CommandResult.success(func())
        except ClipKeepError as e:
            logger.warning(f"{action} failed: {e}")
            return CommandResult.failure(e.kind, e.message)
        except Exception as e:
            logger.exception("%s failed unexpectedly", action)
            return CommandResult.failure(ErrorKind.INTERNAL, f"{action} failed: {e}")

    def _mutate(self, action: str, func: Callable[[], Any]) -> CommandResult:
        result = self._run(action, func)
        if result.ok:
            self.events.emit(DATA_CHANGED, {"operation": action})
        return result

    def _require_store(self) -> StateStore:
        if self.store is None:
            raise ServiceNotReadyError("ClipKeep is not initialized")
        return self.store

    def _publish_ingest(self, result: Optional[IngestResult]) -> None:
        if result is None:
            return
        self.events.emit(CLIPBOARD_UPDATED, result.item)
        for ip in result.new_ips:
            self.events.emit(IP_DETECTED, ip)

    def _on_clipboard_change(self, text: str) -> None:
        store = self.store
        if store is None:
            logger.debug("Clipboard change ignored before initialization")
            return
        self._publish_ingest(store.ingest(text))

    def subscribe(self, event: str, listener: Callable[[Any], None]) -> Callable[[], None]:
        return self.events.subscribe(event, listener)

    # ---------------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------------
    def initialize(self) -> CommandResult:
        return self._run("initialize", self._initialize)

    def _initialize(self) -> Dict[str, Any]:
        with self._init_lock:
            if self.store is not None:
                return self._status()

            if self.log_handler is None:
                self.log_handler = attach_diagnostic_log(
                    self.file_manager.log_path,
                    max_bytes=self.config.log_max_bytes,
                    level=self.config.log_level_number,
                )
            logger.info("Initializing ClipKeep %s in %s", __version__, self.file_manager.base_dir)

            data, self.load_source = self.file_manager.load()
            self.persistence.start()
            self.store = StateStore(data, persist=self.persistence.request_save)
            self.store.repair()

            if self.config.monitor_clipboard:
                self._start_monitor()
            return self._status()

    def _start_monitor(self) -> bool:
        try:
            self.clipboard_service.start()
            return True
        except NotImplementedError as e:
            logger.warning(f"Clipboard monitoring unavailable: {e}")
            return False

    def _status(self) -> Dict[str, Any]:
        return {
            "data_source": self.load_source,
            "monitoring": self.clipboard_service.is_running,
            "data_dir": str(self.file_manager.base_dir),
        }

    def shutdown(self) -> CommandResult:
        return self._run("shutdown", self._shutdown)

    def _shutdown(self) -> bool:
        with self._init_lock:
            self.clipboard_service.stop()
            # Commands fail with a state error until the next initialize().
            self.store = None
            self.persistence.stop()
            if self.log_handler is not None:
                logger.info("ClipKeep stopped")
                detach_diagnostic_log(self.log_handler)
                self.log_handler = None
        return True

    def start_monitoring(self) -> CommandResult:
        def start() -> bool:
            self._require_store()
            return self._start_monitor()
        return self._run("start_monitoring", start)

    def stop_monitoring(self) -> CommandResult:
        def stop() -> bool:
            self.clipboard_service.stop()
            return True
        return self._run("stop_monitoring", stop)

    # ---------------------------------------------------------------------
    # History
    # ---------------------------------------------------------------------
    def get_history(self) -> CommandResult:
        return self._run("get_history", lambda: self._require_store().get_history())

    def search_history(self, query: str) -> CommandResult:
        return self._run("search_history", lambda: self._require_store().search_history(query))

    def get_sorted_history(self, mode: str = "recent") -> CommandResult:
        return self._run("get_sorted_history", lambda: self._require_store().get_sorted_history(mode))

    def add_history_item(self, content: str, content_type: str = "text") -> CommandResult:
        def add():
            result = self._require_store().add_history_item(content, content_type)
            self._publish_ingest(result)
            return result.item
        return self._run("add_history_item", add)

    def delete_history_item(self, item_id: str) -> CommandResult:
        return self._mutate("delete_history_item", lambda: self._require_store().delete_history_item(item_id))

    def clear_history(self) -> CommandResult:
        return self._mutate("clear_history", lambda: self._require_store().clear_history())

    def remove_duplicate_history(self) -> CommandResult:
        return self._mutate("remove_duplicate_history", lambda: self._require_store().remove_duplicate_history())

    def find_duplicate_history(self) -> CommandResult:
        return self._run("find_duplicate_history", lambda: self._require_store().find_duplicate_history())

    def optimize_memory(self, size_threshold_mb: float = 1.0) -> CommandResult:
        def optimize() -> int:
            if size_threshold_mb <= 0:
                raise InvalidInputError("Size threshold must be positive")
            return self._require_store().remove_large_items(int(size_threshold_mb * 1024 * 1024))
        return self._mutate("optimize_memory", optimize)

    def cleanup_old_items(self, days: int = 30) -> CommandResult:
        return self._mutate("cleanup_old_items", lambda: self._require_store().remove_old_items(days))

    # ---------------------------------------------------------------------
    # Bookmarks
    # ---------------------------------------------------------------------
    def get_bookmarks(self) -> CommandResult:
        return self._run("get_bookmarks", lambda: self._require_store().get_bookmarks())

    def search_bookmarks(self, query: str) -> CommandResult:
        return self._run("search_bookmarks", lambda: self._require_store().search_bookmarks(query))

    def get_sorted_bookmarks(self, mode: str = "recent") -> CommandResult:
        return self._run("get_sorted_bookmarks", lambda: self._require_store().get_sorted_bookmarks(mode))

    def add_bookmark(
        self,
        name: str,
        content: str,
        content_type: str = "text",
        tags: Optional[Iterable[str]] = None,
    ) -> CommandResult:
        return self._mutate(
            "add_bookmark",
            lambda: self._require_store().add_bookmark(name, content, content_type, tags))

    def bookmark_history_item(
        self,
        item_id: str,
        name: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> CommandResult:
        return self._mutate(
            "bookmark_history_item",
            lambda: self._require_store().bookmark_history_item(item_id, name, tags))

    def update_bookmark(
        self,
        bookmark_id: str,
        name: Optional[str] = None,
        content: Optional[str] = None,
        content_type: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> CommandResult:
        return self._mutate(
            "update_bookmark",
            lambda: self._require_store().update_bookmark(bookmark_id, name, content, content_type, tags))

    def delete_bookmark(self, bookmark_id: str) -> CommandResult:
        return self._mutate("delete_bookmark", lambda: self._require_store().delete_bookmark(bookmark_id))

    def duplicate_bookmark(self, bookmark_id: str) -> CommandResult:
        return self._mutate("duplicate_bookmark", lambda: self._require_store().duplicate_bookmark(bookmark_id))

    def clear_bookmarks(self) -> CommandResult:
        return self._mutate("clear_bookmarks", lambda: self._require_store().clear_bookmarks())

    def find_duplicate_bookmarks(self) -> CommandResult:
        return self._run("find_duplicate_bookmarks", lambda: self._require_store().find_duplicate_bookmarks())

    # ---------------------------------------------------------------------
    # Access tracking
    # ---------------------------------------------------------------------
    def increment_access_count(self, item_id: str, kind: str = "clipboard") -> CommandResult:
        return self._mutate(
            "increment_access_count",
            lambda: self._require_store().increment_access_count(item_id, kind))

    def copy_to_clipboard(self, item_id: str, kind: str = "clipboard") -> CommandResult:
        def copy() -> int:
            store = self._require_store()
            item = store.get_item(item_id, kind)
            try:
                written = self.clipboard_service.set_clipboard_text(item.content)
            except NotImplementedError as e:
                raise ClipboardReadError("No clipboard backend for this platform", e) from e
            if not written:
                raise ClipboardReadError("Failed to write to the clipboard")
            return store.increment_access_count(item_id, kind)
        return self._mutate("copy_to_clipboard", copy)

    # ---------------------------------------------------------------------
    # IP history
    # ---------------------------------------------------------------------
    def get_recent_ips(self) -> CommandResult:
        return self._run("get_recent_ips", lambda: self._require_store().get_recent_ips())

    def search_ip_history(self, query: str) -> CommandResult:
        return self._run("search_ip_history", lambda: self._require_store().search_ip_history(query))

    def add_ip(self, ip: str) -> CommandResult:
        def add() -> bool:
            is_new = self._require_store().add_ip(ip)
            if is_new:
                self.events.emit(IP_DETECTED, ip.strip())
            return is_new
        return self._mutate("add_ip", add)

    def detect_ips(self, text: str) -> CommandResult:
        return self._run("detect_ips", lambda: extract_ip_addresses(text or ""))

    def reset_ip_count(self, ip: str) -> CommandResult:
        return self._mutate("reset_ip_count", lambda: self._require_store().reset_ip_count(ip))

    def remove_ip(self, ip: str) -> CommandResult:
        return self._mutate("remove_ip", lambda: self._require_store().remove_ip(ip))

    def clear_ip_history(self) -> CommandResult:
        return self._mutate("clear_ip_history", lambda: self._require_store().clear_ip_history())

    # ---------------------------------------------------------------------
    # Settings
    # ---------------------------------------------------------------------
    def get_settings(self) -> CommandResult:
        return self._run("get_settings", lambda: self._require_store().get_settings())

    def update_settings(self, settings: Union[AppSettings, Dict[str, Any]]) -> CommandResult:
        return self._mutate("update_settings", lambda: self._require_store().update_settings(settings))

    # ---------------------------------------------------------------------
    # Data, stats and diagnostics
    # ---------------------------------------------------------------------
    def get_app_data(self) -> CommandResult:
        return self._run("get_app_data", lambda: self._require_store().snapshot())

    def save_data(self) -> CommandResult:
        def save() -> bool:
            self._require_store().save()
            if not self.persistence.flush():
                raise PersistenceError("Timed out waiting for the data file to be written")
            if self.persistence.last_error:
                raise PersistenceError(self.persistence.last_error)
            return True
        return self._run("save_data", save)

    def get_stats(self) -> CommandResult:
        return self._run("get_stats", lambda: self._require_store().stats())

    def get_logs(self, max_lines: int = 500) -> CommandResult:
        def read() -> List[str]:
            if self.log_handler is None:
                raise ServiceNotReadyError("Diagnostic log is not attached")
            return self.log_handler.read_tail(max_lines)
        return self._run("get_logs", read)

    def clear_logs(self) -> CommandResult:
        def clear() -> bool:
            if self.log_handler is None:
                raise ServiceNotReadyError("Diagnostic log is not attached")
            self.log_handler.clear()
            logger.info("Log file cleared")
            return True
        return self._run("clear_logs", clear)

    def get_diagnostics(self) -> CommandResult:
        def diagnostics() -> Dict[str, Any]:
            stats = self._require_store().stats()
            report: Dict[str, Any] = {
                "version": __version__,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "data_stats": stats,
                "settings": self._require_store().get_settings().model_dump(),
                "monitor": {
                    "running": self.clipboard_service.is_running,
                    "interval": self.clipboard_service.current_interval,
                    "consecutive_errors": self.clipboard_service.consecutive_errors,
                },
                "persistence": {
                    "writes_completed": self.persistence.writes_completed,
                    "last_error": self.persistence.last_error,
                    "load_source": self.load_source,
                },
                "health": {
                    "data_integrity": "OK" if self.persistence.last_error is None else "Degraded",
                    "memory_usage": "High" if stats["history_usage_percent"] >= 90 else "Normal",
                },
            }
            report.update(self.file_manager.file_stats())
            return report
        return self._run("get_diagnostics", diagnostics)
