import io
from datetime import datetime

from taskgrid.logger import (
    LogLevel,
    format_event,
    format_message,
    log,
    log_component,
    log_event,
)

WHEN = datetime(2024, 1, 2, 3, 4, 5)


def test_format_message_info():
    line = format_message("mgr", "hello", LogLevel.INFO, WHEN)
    assert line == "[2024-01-02 03:04:05] [INFO]    mgr: hello"


def test_format_message_level_labels_keep_alignment():
    lines = [format_message("w", "m", level, WHEN) for level in LogLevel]
    assert "[WARNING] w: m" in lines[1]
    assert "[ERROR]   w: m" in lines[2]
    assert len({line.index("w: m") for line in lines}) == 1


def test_format_message_defaults_to_now():
    line = format_message("who", "msg")
    stamp = line[1:20]
    parsed = datetime.strptime(stamp, "%Y-%m-%d %H:%M:%S")
    assert abs((datetime.now() - parsed).total_seconds()) < 5
    assert line.endswith("] [INFO]    who: msg")


def test_log_prints_line(capsys):
    log("node", "boom", LogLevel.ERROR)
    out = capsys.readouterr().out
    assert out.endswith("[ERROR]   node: boom\n")
    assert out.startswith("[")


def test_format_event():
    assert format_event("WARN", "gone", WHEN) == "[2024-01-02 03:04:05] [WARN]    gone"


def test_log_event_writes_to_stream():
    stream = io.StringIO()
    log_event("INFO", "Manager starting...", stream)
    log_event("ERROR", "failed", stream)
    lines = stream.getvalue().splitlines()
    assert len(lines) == 2
    assert lines[0].endswith("[INFO]    Manager starting...")
    assert lines[1].endswith("[ERROR]    failed")


def test_log_event_defaults_to_stdout(capsys):
    log_event("INFO", "ready")
    assert capsys.readouterr().out.endswith("[INFO]    ready\n")


def test_log_component_appends_to_file(tmp_path, capsys):
    log_component("manager", "first", tmp_path)
    log_component("manager", "second", tmp_path)
    lines = (tmp_path / "manager.log").read_text().splitlines()
    assert [line.split("] ", 1)[1] for line in lines] == ["first", "second"]
    assert capsys.readouterr().out == "[manager] first\n[manager] second\n"


def test_log_component_missing_directory_still_prints(tmp_path, capsys):
    missing = tmp_path / "absent"
    log_component("node", "hello", missing)
    assert not missing.exists()
    assert capsys.readouterr().out == "[node] hello\n"