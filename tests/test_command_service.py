import dataclasses
import time

from clipkeep.models.results import ErrorKind
from clipkeep.services import CLIPBOARD_UPDATED, DATA_CHANGED, IP_DETECTED, CommandService

from conftest import FakeClipboard


def test_commands_before_initialize_fail_with_state(config):
    service = CommandService(config, reader=FakeClipboard())
    result = service.get_history()
    assert not result.ok
    assert result.kind is ErrorKind.STATE


def test_initialize_is_idempotent(commands):
    result = commands.initialize()
    assert result.ok
    assert result.value["data_source"] == "fresh"
    assert result.value["monitoring"] is False


def test_add_and_query_history(commands):
    added = commands.add_history_item("hello 10.0.0.7")
    assert added.ok
    assert added.value.id.startswith("i_")

    history = commands.get_history()
    assert history.ok
    assert [item.content for item in history.value] == ["hello 10.0.0.7"]
    assert [item.ip for item in commands.get_recent_ips().value] == ["10.0.0.7"]


def test_not_found_and_validation_are_typed(commands):
    missing = commands.delete_history_item("i_unknown")
    assert not missing.ok
    assert missing.kind is ErrorKind.NOT_FOUND

    invalid = commands.update_settings({"history_limit": 5000})
    assert invalid.kind is ErrorKind.VALIDATION

    bad_sort = commands.get_sorted_history("sideways")
    assert bad_sort.kind is ErrorKind.VALIDATION

    blank = commands.add_bookmark("", "content")
    assert blank.kind is ErrorKind.VALIDATION

    bad_ip = commands.add_ip("1.2.3.999")
    assert bad_ip.kind is ErrorKind.VALIDATION


def test_events_are_emitted(commands):
    events = []
    commands.subscribe(CLIPBOARD_UPDATED, lambda item: events.append(("clip", item.content)))
    commands.subscribe(IP_DETECTED, lambda ip: events.append(("ip", ip)))
    commands.subscribe(DATA_CHANGED, lambda payload: events.append(("data", payload["operation"])))

    commands.add_history_item("server at 10.0.0.1")
    commands.add_history_item("server at 10.0.0.1")
    commands.add_bookmark("name", "content")
    commands.get_history()

    assert events == [
        ("clip", "server at 10.0.0.1"),
        ("ip", "10.0.0.1"),
        ("clip", "server at 10.0.0.1"),
        ("data", "add_bookmark"),
    ]


def test_failing_listener_does_not_break_command(commands):
    def broken(item):
        raise RuntimeError("listener bug")

    commands.subscribe(CLIPBOARD_UPDATED, broken)
    assert commands.add_history_item("still stored").ok
    assert len(commands.get_history().value) == 1


def test_unsubscribe(commands):
    seen = []
    unsubscribe = commands.subscribe(DATA_CHANGED, seen.append)
    commands.clear_history()
    unsubscribe()
    commands.clear_history()
    assert len(seen) == 1


def test_copy_to_clipboard_counts_access(commands, clipboard):
    item = commands.add_history_item("copy me").value
    result = commands.copy_to_clipboard(item.id)

    assert result.ok
    assert result.value == 1
    assert clipboard.writes == ["copy me"]


def test_copy_to_clipboard_failure_is_clipboard_kind(commands, clipboard):
    item = commands.add_history_item("copy me").value
    clipboard.fail_writes = True
    result = commands.copy_to_clipboard(item.id)
    assert result.kind is ErrorKind.CLIPBOARD


def test_save_data_and_restart_restores_state(config, clipboard):
    first = CommandService(config, reader=clipboard)
    first.initialize()
    first.add_history_item("persisted")
    bookmark = first.add_bookmark("keep", "forever", tags=["t"]).value
    first.update_settings({"history_limit": 7})
    assert first.save_data().ok
    first.shutdown()

    second = CommandService(config, reader=clipboard)
    try:
        assert second.initialize().value["data_source"] == "primary"
        assert [i.content for i in second.get_history().value] == ["persisted"]
        assert [b.id for b in second.get_bookmarks().value] == [bookmark.id]
        assert second.get_settings().value.history_limit == 7
    finally:
        second.shutdown()


def test_sixty_changes_keep_last_fifty_in_order(config):
    reader = FakeClipboard()
    service = CommandService(config, reader=reader)
    service.initialize()
    try:
        for number in range(1, 61):
            reader.text = f"clip #{number}"
            assert service.clipboard_service.poll_once()

        history = service.get_history().value
        assert [item.content for item in history] == [f"clip #{n}" for n in range(11, 61)]
    finally:
        service.shutdown()


def test_monitor_feeds_store(config):
    reader = FakeClipboard("from the monitor 172.16.0.1")
    service = CommandService(dataclasses.replace(config, monitor_clipboard=True), reader=reader)
    assert service.initialize().value["monitoring"] is True
    try:
        deadline = time.monotonic() + 5.0
        while not service.get_history().value and time.monotonic() < deadline:
            time.sleep(0.01)
        assert [item.content for item in service.get_history().value] == ["from the monitor 172.16.0.1"]
        assert service.stop_monitoring().ok
        assert not service.clipboard_service.is_running
    finally:
        service.shutdown()


def test_optimize_and_cleanup(commands):
    commands.add_history_item("x" * (2 * 1024 * 1024))
    commands.add_history_item("small")
    assert commands.optimize_memory(1).value == 1
    assert commands.optimize_memory(0).kind is ErrorKind.VALIDATION
    assert commands.cleanup_old_items(30).value == 0
    assert commands.cleanup_old_items(-1).kind is ErrorKind.VALIDATION


def test_detect_ips_does_not_mutate(commands):
    result = commands.detect_ips("a 1.2.3.4 b 300.1.1.1 c 5.6.7.8")
    assert result.value == ["1.2.3.4", "5.6.7.8"]
    assert commands.get_recent_ips().value == []


def test_logs_and_diagnostics(commands):
    commands.add_history_item("log something")
    logs = commands.get_logs(50)
    assert logs.ok
    assert any("Clipboard change recorded" in line for line in logs.value)

    assert commands.clear_logs().ok
    assert not any("Clipboard change recorded" in line for line in commands.get_logs().value)

    report = commands.get_diagnostics()
    assert report.ok
    assert report.value["data_stats"]["history_count"] == 1
    assert report.value["settings"]["history_limit"] == 50
    assert report.value["health"]["data_integrity"] == "OK"
    assert "data_file_path" in report.value


def test_stats_and_duplicates_reports(commands):
    commands.add_bookmark("n", "c")
    commands.add_bookmark("n", "c")
    assert commands.get_stats().value["bookmark_count"] == 2
    assert commands.find_duplicate_bookmarks().value[0]["count"] == 2
    assert commands.find_duplicate_history().value == []
    assert commands.remove_duplicate_history().value == 0


def test_restart_after_shutdown_persists_new_mutations(config, clipboard):
    service = CommandService(config, reader=clipboard)
    assert service.initialize().ok
    assert service.shutdown().ok

    stopped = service.add_bookmark("too early", "dropped")
    assert not stopped.ok
    assert stopped.kind is ErrorKind.STATE

    assert service.initialize().ok
    try:
        assert service.add_bookmark("after", "restart").ok
        assert service.save_data().ok
    finally:
        service.shutdown()

    reloaded = CommandService(config, reader=clipboard)
    try:
        reloaded.initialize()
        assert [b.name for b in reloaded.get_bookmarks().value] == ["after"]
    finally:
        reloaded.shutdown()
