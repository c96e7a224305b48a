"""Tests for the user settings file."""

import json

from manga_narrator.models import NarrationSettings, PronunciationEntry
from manga_narrator.settings import api_key, load_settings, save_settings, settings_path


def test_defaults_when_missing(tmp_path):
    settings = load_settings(str(tmp_path))
    assert settings.speed == 1.0
    assert settings.dictionary == []


def test_save_and_load(tmp_path):
    home = str(tmp_path)
    save_settings(NarrationSettings(speed=1.3, dictionary=[PronunciationEntry("Goku", "Go-koo")]), home)
    settings = load_settings(home)
    assert settings.speed == 1.3
    assert settings.dictionary == [PronunciationEntry("Goku", "Go-koo")]


def test_save_keeps_other_keys(tmp_path):
    home = str(tmp_path)
    (tmp_path / "settings.json").write_text(json.dumps({"api_key": "secret"}))
    save_settings(NarrationSettings(speed=1.1), home)
    data = json.loads((tmp_path / "settings.json").read_text())
    assert data["api_key"] == "secret"
    assert data["speed"] == 1.1


def test_malformed_file_uses_defaults(tmp_path):
    (tmp_path / "settings.json").write_text("{broken")
    assert load_settings(str(tmp_path)).speed == 1.0


def test_invalid_speed_uses_default(tmp_path):
    (tmp_path / "settings.json").write_text(json.dumps({"speed": "fast"}))
    assert load_settings(str(tmp_path)).speed == 1.0


def test_dictionary_entries_without_original_skipped(tmp_path):
    (tmp_path / "settings.json").write_text(json.dumps({
        "dictionary": [{"phonetic": "x"}, "junk", {"original": "Kun", "phonetic": "koon"}],
    }))
    assert load_settings(str(tmp_path)).dictionary == [PronunciationEntry("Kun", "koon")]


def test_settings_path_uses_env(tmp_path, monkeypatch):
    monkeypatch.setenv("MANGA_NARRATOR_HOME", str(tmp_path))
    assert settings_path() == str(tmp_path / "settings.json")


def test_api_key_env_wins(tmp_path, monkeypatch):
    (tmp_path / "settings.json").write_text(json.dumps({"api_key": "from-file"}))
    monkeypatch.setenv("ELEVENLABS_API_KEY", "from-env")
    assert api_key(str(tmp_path)) == "from-env"


def test_api_key_from_file(tmp_path, monkeypatch):
    (tmp_path / "settings.json").write_text(json.dumps({"api_key": "from-file"}))
    monkeypatch.delenv("ELEVENLABS_API_KEY", raising=False)
    assert api_key(str(tmp_path)) == "from-file"


def test_api_key_missing(tmp_path, monkeypatch):
    monkeypatch.delenv("ELEVENLABS_API_KEY", raising=False)
    assert api_key(str(tmp_path)) is None
