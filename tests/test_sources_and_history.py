import json

import pytest

from conftest import make_result
from werkaholic_scan.config import Settings, load_settings
from werkaholic_scan.output.history import HistoryWriter, load_history
from werkaholic_scan.sources.frames import (
    DirectoryFrameSource,
    FileFrameSource,
    Frame,
    StaticFrameSource,
    normalize_media_type,
    open_source,
)


@pytest.mark.parametrize(
    "hint,expected",
    [(".png", "image/png"), (".WEBP", "image/webp"), (".gif", "image/gif"), (".jpg", "image/jpeg"), ("", "image/jpeg")],
)
def test_normalize_media_type(hint, expected):
    assert normalize_media_type(hint) == expected


def test_file_source_returns_same_frame(tmp_path):
    path = tmp_path / "regal.png"
    path.write_bytes(b"png-bytes")
    source = FileFrameSource(path)
    first, second = source.capture(), source.capture()
    assert first == second == Frame(b"png-bytes", "image/png", "regal.png")


def test_file_source_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        FileFrameSource(tmp_path / "nope.jpg")


def test_directory_source_cycles_sorted_images(tmp_path):
    for name in ("b.jpg", "a.png", "notes.txt"):
        (tmp_path / name).write_bytes(name.encode())
    source = DirectoryFrameSource(tmp_path)
    names = [source.capture().name for _ in range(3)]
    assert names == ["a.png", "b.jpg", "a.png"]


def test_directory_source_without_images_is_not_ready(tmp_path):
    assert DirectoryFrameSource(tmp_path).capture() is None


def test_open_source_picks_by_path_type(tmp_path):
    (tmp_path / "a.jpg").write_bytes(b"x")
    assert isinstance(open_source(tmp_path), DirectoryFrameSource)
    assert isinstance(open_source(tmp_path / "a.jpg"), FileFrameSource)


def test_static_source_repeats_and_handles_empty():
    frames = [Frame(b"1", name="1.jpg"), Frame(b"2", name="2.jpg")]
    source = StaticFrameSource(frames)
    assert [source.capture().name for _ in range(3)] == ["1.jpg", "2.jpg", "1.jpg"]
    assert StaticFrameSource([]).capture() is None


def test_history_appends_json_lines(tmp_path):
    path = tmp_path / "data" / "history.jsonl"
    writer = HistoryWriter(path)
    frame = Frame(b"x", name="jacke.jpg")
    writer.append(make_result("Herren Lederjacke braun"), frame, "manual")
    writer.append(make_result("Bohrmaschine Bosch"), frame, "auto")

    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert json.loads(lines[0])["analysis"]["title"] == "Herren Lederjacke braun"

    entries = load_history(path)
    assert [e.trigger for e in entries] == ["manual", "auto"]
    assert entries[1].analysis.title == "Bohrmaschine Bosch"
    assert entries[0].image == "jacke.jpg"
    assert entries[0].id != entries[1].id


def test_load_history_missing_file(tmp_path):
    assert load_history(tmp_path / "none.jsonl") == []


def test_load_settings_defaults_when_missing(tmp_path):
    assert load_settings(str(tmp_path / "settings.json")) == Settings()


def test_load_settings_ignores_unknown_keys(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"scan_interval_ms": 5000, "theme": "dark"}))
    settings = load_settings(str(path))
    assert settings.scan_interval_ms == 5000
    assert settings.dwell_ms == 4000


def test_load_settings_rejects_unknown_classifier(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"classifier": "openai"}))
    with pytest.raises(ValueError):
        load_settings(str(path))
