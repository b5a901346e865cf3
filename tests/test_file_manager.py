import json
import os

import pytest

from clipkeep.exceptions import PersistenceError
from clipkeep.models.items import AppData, ClipboardItem
from clipkeep.utils import file_manager as file_manager_module
from clipkeep.utils.file_manager import FileManager


def data_with(*texts):
    return AppData(history=[ClipboardItem.from_text(text) for text in texts])


def stored_contents(path):
    document = json.loads(path.read_text(encoding="utf-8"))
    return [item["content"] for item in document["history"]]


def test_save_then_load_from_primary(tmp_path):
    manager = FileManager(tmp_path)
    original = data_with("one", "two")
    manager.save(original)

    loaded, source = manager.load()
    assert source == "primary"
    assert [item.id for item in loaded.history] == [item.id for item in original.history]
    assert not manager.data_path.with_name(manager.data_path.name + ".tmp").exists()


def test_second_save_keeps_previous_document_as_backup(tmp_path):
    manager = FileManager(tmp_path)
    manager.save(data_with("old"))
    manager.save(data_with("new"))

    assert stored_contents(manager.data_path) == ["new"]
    assert stored_contents(manager.backup_path) == ["old"]


def test_fault_before_rename_leaves_previous_state(tmp_path, monkeypatch):
    manager = FileManager(tmp_path)
    manager.save(data_with("committed"))

    real_replace = os.replace

    def failing_replace(src, dst):
        if os.fspath(dst) == os.fspath(manager.data_path):
            raise OSError("power lost")
        return real_replace(src, dst)

    monkeypatch.setattr(file_manager_module.os, "replace", failing_replace)
    with pytest.raises(PersistenceError):
        manager.save(data_with("uncommitted"))

    assert stored_contents(manager.data_path) == ["committed"]
    assert not (tmp_path / "clipboard_data.json.tmp").exists()


def test_corrupt_primary_recovers_from_backup(tmp_path):
    manager = FileManager(tmp_path)
    manager.save(data_with("first"))
    manager.save(data_with("second"))
    manager.data_path.write_text("{not json", encoding="utf-8")

    loaded, source = manager.load()
    assert source == "backup"
    assert [item.content for item in loaded.history] == ["first"]
    # the recovered document is written back and the bad one preserved
    assert stored_contents(manager.data_path) == ["first"]
    assert manager.corrupt_path.read_text(encoding="utf-8") == "{not json"


def test_both_files_corrupt_start_fresh(tmp_path):
    manager = FileManager(tmp_path)
    manager.data_path.write_text("", encoding="utf-8")
    manager.backup_path.write_text("[]", encoding="utf-8")

    loaded, source = manager.load()
    assert source == "fresh"
    assert loaded.history == []
    assert loaded.settings.history_limit == 50
    assert stored_contents(manager.data_path) == []


def test_missing_files_start_fresh(tmp_path):
    loaded, source = FileManager(tmp_path / "new").load()
    assert source == "fresh"
    assert loaded == AppData()


def test_invalid_ip_entries_are_dropped_on_load(tmp_path):
    manager = FileManager(tmp_path)
    document = AppData().model_dump(mode="json")
    document["recent_ips"] = [
        {"ip": "10.0.0.1", "timestamp": "2024-01-01T00:00:00", "count": 3},
        {"ip": "999.1.1.1", "timestamp": "2024-01-01T00:00:00", "count": 1},
    ]
    manager.data_path.write_text(json.dumps(document), encoding="utf-8")

    loaded, source = manager.load()
    assert source == "primary"
    assert [item.ip for item in loaded.recent_ips] == ["10.0.0.1"]
    assert loaded.recent_ips[0].timestamp.tzinfo is not None


def test_file_stats(tmp_path):
    manager = FileManager(tmp_path)
    manager.save(data_with("x"))
    stats = manager.file_stats()
    assert stats["data_file_size"] > 0
    assert stats["disk_usage"] == "Normal"
