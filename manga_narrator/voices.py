"""Voice assignment: session locks, persisted memory, archetype and type defaults."""

import json
import logging
import os

from manga_narrator.constants import (
    ARCHETYPE_VOICE_MAP,
    DEFAULT_VOICE_MAP,
    FALLBACK_VOICE,
    PERSONALITY_BY_TYPE,
)
from manga_narrator.voice_memory import VoiceMemoryStore, normalize_key

logger = logging.getLogger(__name__)

# Case-insensitive view of the character type table
_TYPE_VOICES = {name.lower(): voice for name, voice in DEFAULT_VOICE_MAP.items()}


def _type_voice(category: str | None) -> str | None:
    if not category:
        return None
    return _TYPE_VOICES.get(normalize_key(category))


def load_overrides(path: str) -> dict[str, str]:
    """Load a voice override sidecar: {"voices": {"<character>": "<voice_id>"}}.

    Returns an empty dict if the file is missing or malformed.
    """
    if not os.path.exists(path):
        return {}
    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError:
        logger.warning("Malformed voice override file: %s, ignoring", path)
        return {}
    voices = data.get("voices", {}) if isinstance(data, dict) else {}
    return {str(k): str(v) for k, v in voices.items() if v}


class VoiceRegistry:
    """Resolves a speaking character to a voice id for one reading session.

    Priority: session lock → persisted memory → archetype → category →
    identifier as category → global fallback. Whatever is resolved is locked
    for the rest of the session, so a character keeps its voice even if the
    memory store changes underneath.
    """

    def __init__(self, memory: VoiceMemoryStore):
        self.memory = memory
        self._locks: dict[str, str] = {}

    def get_voice(
        self,
        character_key: str,
        fallback_category: str | None = None,
        archetype: str | None = None,
    ) -> str:
        key = normalize_key(character_key)

        # 1. Session lock
        if key in self._locks:
            return self._locks[key]

        # 2. Persisted memory
        saved = self.memory.suggest_voice(key)
        if saved:
            logger.debug("Memory hit for %r → %s", key, saved)
            self._locks[key] = saved
            return saved

        # 3-6. Archetype → category → identifier → fallback
        if archetype and archetype in ARCHETYPE_VOICE_MAP:
            voice = ARCHETYPE_VOICE_MAP[archetype]
            source = archetype
        elif _type_voice(fallback_category):
            voice = _type_voice(fallback_category)
            source = fallback_category
        elif _type_voice(key):
            voice = _type_voice(key)
            source = key
        else:
            logger.info("Using fallback voice for %r", key)
            voice = FALLBACK_VOICE
            source = "fallback"

        self._locks[key] = voice
        personality = PERSONALITY_BY_TYPE.get(normalize_key(fallback_category or key), "other")
        self.memory.save_voice(key, voice, personality, f"Auto: {source}")
        return voice

    def lock_voice(self, character_key: str, voice_id: str, persist: bool = False) -> None:
        """Pin a voice for the rest of the session (user override)."""
        key = normalize_key(character_key)
        self._locks[key] = voice_id
        if persist:
            personality = PERSONALITY_BY_TYPE.get(key, "other")
            self.memory.save_voice(key, voice_id, personality, "User override")
        logger.debug("Locked %r → %s", key, voice_id)

    def apply_overrides(self, overrides: dict[str, str]) -> None:
        for character, voice_id in overrides.items():
            self.lock_voice(character, voice_id)

    def clear_session(self) -> None:
        self._locks.clear()

    @property
    def session_locks(self) -> dict[str, str]:
        return dict(self._locks)
