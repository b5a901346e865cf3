"""Clipboard monitor for ClipKeep.

A background thread polls the native clipboard, fingerprints the text and
calls ``on_change`` whenever the fingerprint differs from the last one seen.
Read failures never stop the loop: the polling interval doubles on each
consecutive failure up to ``max_poll_interval`` and snaps back to the base
interval on the next successful read.
"""

import logging
import threading
from typing import Callable, Optional

from clipkeep.clipboard import ClipboardReader, get_clipboard_reader
from clipkeep.exceptions import ClipboardReadError
from clipkeep.utils.fingerprint import content_fingerprint

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.25
DEFAULT_MAX_POLL_INTERVAL = 4.0


class ClipboardService:
    """Service that watches the clipboard and reports text changes."""

    def __init__(
        self,
        on_change: Optional[Callable[[str], None]] = None,
        reader: Optional[ClipboardReader] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_poll_interval: float = DEFAULT_MAX_POLL_INTERVAL,
        auto_register: bool = False,
    ) -> None:
        """Initialise the service.

        Args:
            on_change: Callback that receives the new clipboard text.
            reader: Clipboard backend; the platform default when omitted.
            poll_interval: Base polling interval in seconds.
            max_poll_interval: Ceiling for the backoff interval.
            auto_register: When ``True`` polling starts immediately.
        """
        self._on_change = on_change or self._default_handler
        self._reader = reader
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._poll_thread: Optional[threading.Thread] = None
        self._is_running = False
        self._last_fingerprint: Optional[str] = None
        self._write_generation = 0
        self.poll_interval = poll_interval
        self.max_poll_interval = max(max_poll_interval, poll_interval)
        self.current_interval = poll_interval
        self.consecutive_errors = 0

        if auto_register:
            self.start()

    @property
    def reader(self) -> ClipboardReader:
        if self._reader is None:
            self._reader = get_clipboard_reader()
        return self._reader

    @property
    def is_running(self) -> bool:
        return self._is_running

    # ---------------------------------------------------------------------
    # Lifecycle management
    # ---------------------------------------------------------------------
    def start(self) -> None:
        """Start background polling of the clipboard.

        Raises:
            NotImplementedError: no clipboard backend exists for this platform.
        """
        with self._lock:
            if self._is_running:
                logger.debug("ClipboardService already running")
                return

            # Resolve the backend before spawning the thread so an unsupported
            # platform fails here instead of inside the loop.
            self._reader = self.reader
            logger.info("Starting ClipboardService polling (interval=%ss)", self.poll_interval)
            self._stop_event.clear()
            self.current_interval = self.poll_interval
            self._is_running = True
            self._poll_thread = threading.Thread(
                target=self._poll_loop, name="clipkeep-monitor", daemon=True)
            self._poll_thread.start()

    def stop(self) -> None:
        """Stop the background polling thread."""
        with self._lock:
            if not self._is_running:
                return

            logger.info("Stopping ClipboardService polling")
            self._is_running = False
            self._stop_event.set()

        # join thread outside the lock
        if self._poll_thread is not None:
            self._poll_thread.join(timeout=self.max_poll_interval + 1.0)
            self._poll_thread = None

    def run_forever(self) -> None:
        """Run the service in the foreground until stopped or Ctrl+C."""
        try:
            if not self._is_running:
                self.start()

            while not self._stop_event.wait(timeout=self.poll_interval):
                continue
        except KeyboardInterrupt:
            logger.info("ClipboardService interrupted by user")
        finally:
            self.stop()

    # ---------------------------------------------------------------------
    # Polling
    # ---------------------------------------------------------------------
    def poll_once(self) -> bool:
        """Read the clipboard once. Returns True when a change was dispatched."""
        with self._lock:
            generation = self._write_generation
        try:
            text = self.reader.read_text()
        except ClipboardReadError as exc:
            self._on_read_failure(exc)
            return False

        self._on_read_success()
        if text is None:
            return False

        fingerprint = content_fingerprint(text)
        with self._lock:
            # A write since the read started makes the read stale.
            if generation != self._write_generation:
                return False
            if fingerprint == self._last_fingerprint:
                return False
            self._last_fingerprint = fingerprint

        if not text.strip():
            return False

        try:
            self._on_change(text)
        except Exception:
            logger.exception("Error while handling clipboard change")
        return True

    def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            self.poll_once()
            self._stop_event.wait(self.current_interval)

    def _on_read_failure(self, exc: ClipboardReadError) -> None:
        self.consecutive_errors += 1
        previous = self.current_interval
        self.current_interval = min(self.current_interval * 2, self.max_poll_interval)
        if self.consecutive_errors == 1 or self.current_interval != previous:
            logger.warning(
                "Clipboard read failed (#%d): %s; next poll in %.2fs",
                self.consecutive_errors, exc, self.current_interval)

    def _on_read_success(self) -> None:
        if self.consecutive_errors:
            logger.info("Clipboard readable again after %d failed reads", self.consecutive_errors)
        self.consecutive_errors = 0
        self.current_interval = self.poll_interval

    # ---------------------------------------------------------------------
    # Writing
    # ---------------------------------------------------------------------
    def set_clipboard_text(self, text: str) -> bool:
        """Put ``text`` on the clipboard without reporting it back as a change."""
        with self._lock:
            self._write_generation += 1
            previous = self._last_fingerprint
            self._last_fingerprint = content_fingerprint(text)
            if not self.reader.write_text(text):
                self._last_fingerprint = previous
                return False
            return True

    @staticmethod
    def _default_handler(text: str) -> None:
        logger.info("Clipboard changed | preview=%r", text[:60])

    # ---------------------------------------------------------------------
    # Context manager helpers
    # ---------------------------------------------------------------------
    def __enter__(self) -> "ClipboardService":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
