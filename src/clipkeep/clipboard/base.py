import logging
from abc import ABC, abstractmethod
from typing import Optional

from clipkeep.exceptions import ClipboardReadError

logger = logging.getLogger(__name__)


class ClipboardReader(ABC):
    """Access to the native clipboard as plain text."""

    @abstractmethod
    def _read_text(self) -> Optional[str]:
        pass

    @abstractmethod
    def _write_text(self, text: str) -> bool:
        pass

    def read_text(self) -> Optional[str]:
        """Return the clipboard text, or None when it holds no text.

        Raises:
            ClipboardReadError: the clipboard could not be opened or read.
        """
        try:
            return self._read_text()
        except ClipboardReadError:
            raise
        except Exception as exc:
            raise ClipboardReadError("Failed to read clipboard", exc) from exc

    def write_text(self, text: str) -> bool:
        try:
            return self._write_text(text)
        except Exception as exc:
            logger.warning("Failed to write clipboard: %s", exc)
            return False
