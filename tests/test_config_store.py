from __future__ import annotations

from pathlib import Path

from config import JsonConfigStore


def test_config_read_write(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    store = JsonConfigStore(path=path)

    assert store.get_api_key() == ""
    assert store.get_hotkey() == "Key.alt_l"
    assert store.get_max_recording_s() == 5.0
    assert store.get_model() == "qwen3-asr-flash"

    store.set_api_key("abc")
    store.set_hotkey("Key.alt_r")

    reloaded = JsonConfigStore(path=path)
    assert reloaded.get_api_key() == "abc"
    assert reloaded.get_hotkey() == "Key.alt_r"


def test_config_invalid_json_fallback(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{invalid", encoding="utf-8")

    store = JsonConfigStore(path=path)
    assert store.get_api_key() == ""
    assert store.get_hotkey() == "Key.alt_l"
    assert store.get_log_level() == "INFO"


def test_recording_limit_must_be_positive(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text('{"max_recording_s": -1}', encoding="utf-8")
    assert JsonConfigStore(path=path).get_max_recording_s() == 5.0

    path.write_text('{"max_recording_s": "soon"}', encoding="utf-8")
    assert JsonConfigStore(path=path).get_max_recording_s() == 5.0

    path.write_text('{"max_recording_s": 3}', encoding="utf-8")
    assert JsonConfigStore(path=path).get_max_recording_s() == 3.0


def test_progress_path_defaults_next_to_config(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "cfg" / "config.json")
    assert store.get_progress_path() == tmp_path / "cfg" / "progress.json"
