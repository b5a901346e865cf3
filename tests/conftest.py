"""Shared fixtures: in-memory clipboard readers and a ready command service."""

import threading
from typing import Iterable, List, Optional

import pytest

from clipkeep.clipboard import ClipboardReader
from clipkeep.config import AppConfig
from clipkeep.exceptions import ClipboardReadError
from clipkeep.services import CommandService


class FakeClipboard(ClipboardReader):
    """Clipboard held in memory. ``text`` is what the next read returns."""

    def __init__(self, text: Optional[str] = None):
        self.text = text
        self.writes: List[str] = []
        self.fail_reads = 0
        self.fail_writes = False
        self.reads = 0
        self._lock = threading.Lock()

    def _read_text(self) -> Optional[str]:
        with self._lock:
            self.reads += 1
            if self.fail_reads:
                self.fail_reads -= 1
                raise ClipboardReadError("Clipboard is held by another process")
            return self.text

    def _write_text(self, text: str) -> bool:
        if self.fail_writes:
            raise OSError("access denied")
        with self._lock:
            self.writes.append(text)
            self.text = text
        return True


class CyclingClipboard(ClipboardReader):
    """Returns the given texts in turn, forever."""

    def __init__(self, texts: Iterable[str]):
        self.texts = list(texts)
        self.index = 0

    def _read_text(self) -> Optional[str]:
        text = self.texts[self.index % len(self.texts)]
        self.index += 1
        return text

    def _write_text(self, text: str) -> bool:
        return True


@pytest.fixture
def clipboard():
    return FakeClipboard()


@pytest.fixture
def config(tmp_path):
    return AppConfig(
        data_dir=tmp_path / "data",
        poll_interval=0.01,
        max_poll_interval=0.08,
        monitor_clipboard=False,
    )


@pytest.fixture
def commands(config, clipboard):
    service = CommandService(config, reader=clipboard)
    result = service.initialize()
    assert result.ok, result.error
    yield service
    service.shutdown()
