import logging
import time
from typing import Optional

import win32clipboard as wc

from clipkeep.clipboard.base import ClipboardReader
from clipkeep.exceptions import ClipboardReadError

logger = logging.getLogger(__name__)


class WindowsClipboard(ClipboardReader):
    open_attempts = 3
    retry_delay = 0.05

    def _open(self) -> None:
        last_error: Optional[Exception] = None
        for _ in range(self.open_attempts):
            try:
                wc.OpenClipboard()
                return
            except Exception as exc:
                last_error = exc
                time.sleep(self.retry_delay)
        raise ClipboardReadError("Clipboard is held by another process", last_error)

    def _close(self) -> None:
        try:
            wc.CloseClipboard()
        except Exception as exc:
            logger.debug("CloseClipboard failed: %s", exc)

    def _read_text(self) -> Optional[str]:
        self._open()
        try:
            if not wc.IsClipboardFormatAvailable(wc.CF_UNICODETEXT):
                return None
            data = wc.GetClipboardData(wc.CF_UNICODETEXT)
        finally:
            self._close()

        if isinstance(data, bytes):
            return data.decode("utf-8", errors="replace")
        return data

    def _write_text(self, text: str) -> bool:
        self._open()
        try:
            wc.EmptyClipboard()
            wc.SetClipboardText(text, wc.CF_UNICODETEXT)
        finally:
            self._close()
        return True
