"""Persisted character → voice bindings with fuzzy name matching."""

import logging
import time
from dataclasses import asdict

from manga_narrator.constants import VOICE_MEMORY_KEY
from manga_narrator.errors import StorageError
from manga_narrator.models import VoiceBinding
from manga_narrator.storage import KeyValueStore

logger = logging.getLogger(__name__)


def normalize_key(name: str) -> str:
    return name.strip().lower()


class VoiceMemoryStore:
    """At most one binding per normalized character key, persisted as a list."""

    def __init__(self, store: KeyValueStore, storage_key: str = VOICE_MEMORY_KEY):
        self.store = store
        self.storage_key = storage_key

    def _load(self) -> list[VoiceBinding]:
        try:
            raw = self.store.get(self.storage_key) or []
        except StorageError as e:
            logger.warning("Voice memory unreadable, starting empty: %s", e)
            return []
        if not isinstance(raw, list):
            logger.warning("Voice memory is not a list, starting empty: %r", raw)
            return []
        bindings = []
        for item in raw:
            try:
                bindings.append(VoiceBinding(**item))
            except TypeError:
                logger.warning("Skipping malformed voice binding: %r", item)
        return bindings

    def _save(self, bindings: list[VoiceBinding]) -> None:
        try:
            self.store.set(self.storage_key, [asdict(b) for b in bindings])
        except StorageError as e:
            logger.warning("Voice memory not saved: %s", e)

    def save_voice(
        self,
        key: str,
        voice_id: str,
        personality: str = "other",
        source_label: str = "",
    ) -> VoiceBinding:
        """Insert or replace the binding for key."""
        binding = VoiceBinding(
            character_key=normalize_key(key),
            voice_id=voice_id,
            personality=personality,
            source_label=source_label,
            timestamp=time.time(),
        )
        bindings = [b for b in self._load() if b.character_key != binding.character_key]
        bindings.append(binding)
        self._save(bindings)
        return binding

    def suggest_voice(self, key: str) -> str | None:
        """Exact key match, else the first stored key whose words contain or are contained in key's.

        "naruto uzumaki" finds a binding stored as "naruto" and vice versa.
        Returns None when nothing matches.
        """
        name = normalize_key(key)
        if not name:
            return None
        bindings = self._load()

        for b in bindings:
            if b.character_key == name:
                return b.voice_id

        # Whole words only, so "hero" never matches "heroine"
        words = set(name.split())
        for b in bindings:
            stored = set(b.character_key.split())
            if stored and (stored <= words or words <= stored):
                return b.voice_id

        return None

    def suggest_by_personality(self, personality: str, limit: int = 3) -> list[str]:
        """Most recently bound voice ids for a personality tag."""
        matches = [b for b in self._load() if b.personality == personality]
        matches.sort(key=lambda b: b.timestamp, reverse=True)
        return [b.voice_id for b in matches[:limit]]

    def list_all(self) -> list[VoiceBinding]:
        return self._load()
