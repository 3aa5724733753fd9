import pytest

from codchi.locked import LockedConfig


def test_read_mode_creates_missing_file(tmp_path):
    path = tmp_path / "cfg.json"
    lock, content = LockedConfig.open(path, False)
    lock.close()
    assert content == ""
    assert path.exists()


def test_open_reads_existing_content(tmp_path):
    path = tmp_path / "cfg.json"
    path.write_text("hello", encoding="utf-8")
    with LockedConfig.open(path, True)[0] as lock:
        assert not lock.closed
    assert lock.closed
    lock2, content = LockedConfig.open(path, True)
    lock2.close()
    assert content == "hello"


def test_write_replaces_and_truncates(tmp_path):
    path = tmp_path / "cfg.json"
    path.write_text("a much longer original text", encoding="utf-8")
    lock, _ = LockedConfig.open(path, True)
    lock.write("short")
    assert lock.closed
    assert path.read_text(encoding="utf-8") == "short"


def test_write_in_read_mode_fails(tmp_path):
    path = tmp_path / "cfg.json"
    path.write_text("keep", encoding="utf-8")
    lock, _ = LockedConfig.open(path, False)
    with pytest.raises(PermissionError):
        lock.write("changed")
    lock.close()
    assert path.read_text(encoding="utf-8") == "keep"


def test_write_after_close_fails(tmp_path):
    lock, _ = LockedConfig.open(tmp_path / "cfg", True)
    lock.close()
    with pytest.raises(ValueError):
        lock.write("x")


def test_open_parse_uses_parser(tmp_path):
    path = tmp_path / "n.txt"
    path.write_text("41", encoding="utf-8")
    lock, value = LockedConfig.open_parse(path, False, int, lambda: -1)
    lock.close()
    assert value == 41


def test_open_parse_falls_back_on_invalid(tmp_path):
    path = tmp_path / "n.txt"
    path.write_text("not a number", encoding="utf-8")
    lock, value = LockedConfig.open_parse(path, False, int, lambda: -1)
    lock.close()
    assert value == -1


def test_open_parse_empty_skips_parser(tmp_path):
    calls = []

    def parse(text):
        calls.append(text)
        return text

    lock, value = LockedConfig.open_parse(tmp_path / "e", True, parse, lambda: "default")
    lock.close()
    assert value == "default"
    assert calls == []


def test_open_parse_default_error_propagates(tmp_path):
    def failing_default():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        LockedConfig.open_parse(tmp_path / "e", True, str, failing_default)