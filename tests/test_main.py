import json

import pytest

from clipkeep.main import build_config, main, parse_args


def test_stats_prints_json(tmp_path, capsys):
    with pytest.raises(SystemExit) as exit_info:
        main(["--stats", "--data-dir", str(tmp_path)])

    assert exit_info.value.code == 0
    out = capsys.readouterr().out
    stats = json.loads(out[out.index("{"):])
    assert stats["history_count"] == 0
    assert stats["history_limit"] == 50
    assert (tmp_path / "clipboard_data.json").exists()


def test_diagnostics_prints_json(tmp_path, capsys):
    with pytest.raises(SystemExit) as exit_info:
        main(["--diagnostics", "--data-dir", str(tmp_path)])

    assert exit_info.value.code == 0
    out = capsys.readouterr().out
    report = json.loads(out[out.index("{"):])
    assert report["persistence"]["load_source"] == "fresh"


def test_command_line_overrides_config(tmp_path):
    config = build_config(parse_args([
        "--data-dir", str(tmp_path), "-i", "0.5", "--no-monitor", "--verbose",
    ]))
    assert config.data_dir == tmp_path
    assert config.poll_interval == 0.5
    assert config.monitor_clipboard is False
    assert config.log_level == "DEBUG"


def test_invalid_poll_interval_exits(tmp_path):
    with pytest.raises(SystemExit) as exit_info:
        main(["--stats", "--data-dir", str(tmp_path), "-i", "0"])
    assert exit_info.value.code == 2
