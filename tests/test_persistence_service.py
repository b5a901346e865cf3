import json
import threading

from clipkeep.exceptions import PersistenceError
from clipkeep.models.items import AppData, ClipboardItem
from clipkeep.services import PersistenceService
from clipkeep.utils.file_manager import FileManager


def data_with(*texts):
    return AppData(history=[ClipboardItem.from_text(text) for text in texts])


class SlowFileManager(FileManager):
    """Blocks the first write until released so later requests pile up."""

    def __init__(self, base_dir):
        super().__init__(base_dir)
        self.release = threading.Event()
        self.started = threading.Event()
        self.saved = []

    def save(self, data):
        self.started.set()
        self.release.wait(timeout=5.0)
        self.saved.append([item.content for item in data.history])
        return super().save(data)


class BrokenFileManager(FileManager):
    def save(self, data):
        raise PersistenceError("disk full")


def test_request_save_writes_in_background(tmp_path):
    manager = FileManager(tmp_path)
    service = PersistenceService(manager, auto_start=True)
    try:
        service.request_save(data_with("a"))
        assert service.flush(timeout=5.0)
    finally:
        service.stop()

    document = json.loads(manager.data_path.read_text(encoding="utf-8"))
    assert [item["content"] for item in document["history"]] == ["a"]
    assert service.writes_completed == 1


def test_pending_snapshots_are_coalesced(tmp_path):
    manager = SlowFileManager(tmp_path)
    service = PersistenceService(manager, auto_start=True)
    try:
        service.request_save(data_with("1"))
        assert manager.started.wait(timeout=5.0)
        for text in ("2", "3", "4"):
            service.request_save(data_with(text))
        manager.release.set()
        assert service.flush(timeout=5.0)
    finally:
        service.stop()

    assert manager.saved == [["1"], ["4"]]


def test_stop_writes_pending_snapshot(tmp_path):
    manager = FileManager(tmp_path)
    service = PersistenceService(manager, auto_start=True)
    service.request_save(data_with("last"))
    service.stop()

    loaded, source = manager.load()
    assert source == "primary"
    assert [item.content for item in loaded.history] == ["last"]
    assert not service.is_running


def test_write_errors_are_recorded_not_raised(tmp_path):
    service = PersistenceService(BrokenFileManager(tmp_path), auto_start=True)
    try:
        service.request_save(data_with("x"))
        assert service.flush(timeout=5.0)
        assert service.last_error == "disk full"
        assert service.writes_completed == 0
    finally:
        service.stop()
