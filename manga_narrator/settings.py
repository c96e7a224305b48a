"""User settings file: global speed, pronunciation dictionary, API key."""

import json
import logging
import os

from manga_narrator.constants import API_KEY_ENV, SETTINGS_FILE
from manga_narrator.models import NarrationSettings, PronunciationEntry
from manga_narrator.storage import data_home

logger = logging.getLogger(__name__)


def settings_path(home: str | None = None) -> str:
    return os.path.join(home or data_home(), SETTINGS_FILE)


def load_raw(home: str | None = None) -> dict:
    """Read settings.json. Returns empty dict if missing or malformed."""
    path = settings_path(home)
    if not os.path.exists(path):
        return {}
    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError:
        logger.warning("Malformed settings file: %s, using defaults", path)
        return {}
    return data if isinstance(data, dict) else {}


def write_raw(data: dict, home: str | None = None) -> str:
    path = settings_path(home)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    return path


def load_settings(home: str | None = None) -> NarrationSettings:
    data = load_raw(home)
    try:
        speed = float(data.get("speed", 1.0))
    except (TypeError, ValueError):
        logger.warning("Invalid speed %r in settings, using 1.0", data.get("speed"))
        speed = 1.0
    dictionary = [
        PronunciationEntry(original=str(item["original"]), phonetic=str(item.get("phonetic", "")))
        for item in data.get("dictionary", [])
        if isinstance(item, dict) and item.get("original")
    ]
    return NarrationSettings(speed=speed, dictionary=dictionary)


def save_settings(settings: NarrationSettings, home: str | None = None) -> str:
    """Write speed and dictionary, keeping any other keys already in the file."""
    data = load_raw(home)
    data["speed"] = settings.speed
    data["dictionary"] = [
        {"original": e.original, "phonetic": e.phonetic} for e in settings.dictionary
    ]
    return write_raw(data, home)


def api_key(home: str | None = None) -> str | None:
    """$ELEVENLABS_API_KEY, else "api_key" from settings.json."""
    return os.environ.get(API_KEY_ENV) or load_raw(home).get("api_key") or None
