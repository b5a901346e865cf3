import logging
import threading
from typing import Optional

from clipkeep.exceptions import PersistenceError
from clipkeep.models.items import AppData
from clipkeep.utils.file_manager import FileManager

logger = logging.getLogger(__name__)


class PersistenceService:
    """Single background writer for the data file.

    ``request_save`` only stores the snapshot and wakes the writer, so callers
    never wait on the disk. Pending snapshots are coalesced: when several
    arrive while a write is in progress only the newest one is written. There
    is exactly one writer thread, so two writes never overlap.
    """

    def __init__(self, file_manager: FileManager, auto_start: bool = False) -> None:
        self.file_manager = file_manager
        self._condition = threading.Condition()
        self._pending: Optional[AppData] = None
        self._writing = False
        self._stopping = False
        self._thread: Optional[threading.Thread] = None
        self.last_error: Optional[str] = None
        self.writes_completed = 0

        if auto_start:
            self.start()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._condition:
            if self.is_running:
                return
            self._stopping = False
            self._thread = threading.Thread(
                target=self._run, name="clipkeep-writer", daemon=True)
            self._thread.start()
        logger.debug("Persistence writer started")

    def request_save(self, snapshot: AppData) -> None:
        with self._condition:
            self._pending = snapshot
            self._condition.notify_all()

    def flush(self, timeout: Optional[float] = 5.0) -> bool:
        """Wait until every requested snapshot has been written."""
        with self._condition:
            if not self.is_running:
                return self._pending is None
            return self._condition.wait_for(
                lambda: self._pending is None and not self._writing, timeout=timeout)

    def stop(self, timeout: float = 5.0) -> None:
        """Write whatever is pending, then stop the writer thread."""
        with self._condition:
            if self._thread is None:
                return
            self._stopping = True
            self._condition.notify_all()
        self._thread.join(timeout=timeout)
        self._thread = None
        logger.debug("Persistence writer stopped")

    def _run(self) -> None:
        while True:
            with self._condition:
                self._condition.wait_for(lambda: self._pending is not None or self._stopping)
                if self._pending is None:
                    return
                snapshot = self._pending
                self._pending = None
                self._writing = True

            try:
                self.file_manager.save(snapshot)
                self.writes_completed += 1
                self.last_error = None
            except PersistenceError as e:
                self.last_error = str(e)
                logger.error(f"Auto-save failed: {e}")
            except Exception as e:
                self.last_error = str(e)
                logger.exception("Unexpected error while saving data")
            finally:
                with self._condition:
                    self._writing = False
                    self._condition.notify_all()
