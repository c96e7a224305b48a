"""Tests for voice registry (Layer 1c)."""

import json

from manga_narrator.constants import ARCHETYPE_VOICE_MAP, DEFAULT_VOICE_MAP, FALLBACK_VOICE
from manga_narrator.voices import VoiceRegistry, load_overrides


# --- Resolution order ---

def test_fresh_hero_gets_default_and_is_persisted(registry, memory):
    """getVoice('Hero') with no memory returns the Hero default and remembers it."""
    voice = registry.get_voice("Hero")
    assert voice == DEFAULT_VOICE_MAP["Hero"]
    assert memory.suggest_voice("hero") == voice


def test_archetype_beats_category(registry):
    voice = registry.get_voice("Luffy", "Villain", "heroic_youth")
    assert voice == ARCHETYPE_VOICE_MAP["heroic_youth"]


def test_unknown_archetype_uses_category(registry):
    voice = registry.get_voice("Luffy", "Villain", "not_an_archetype")
    assert voice == DEFAULT_VOICE_MAP["Villain"]


def test_identifier_as_category(registry):
    """A key that is itself a character type resolves through the type table."""
    assert registry.get_voice("mentor") == DEFAULT_VOICE_MAP["Mentor"]


def test_global_fallback(registry):
    assert registry.get_voice("some random extra") == FALLBACK_VOICE


def test_memory_beats_defaults(registry, memory):
    memory.save_voice("hero", "user-picked")
    assert registry.get_voice("Hero", "Hero", "heroic_youth") == "user-picked"


def test_memory_fuzzy_match(registry, memory):
    memory.save_voice("naruto", "voice-n")
    assert registry.get_voice("Naruto Uzumaki", "Hero") == "voice-n"


def test_auto_binding_source_label(registry, memory):
    registry.get_voice("Zoro", "Rival", "legendary_deep")
    binding = memory.list_all()[0]
    assert binding.character_key == "zoro"
    assert binding.source_label == "Auto: legendary_deep"
    assert binding.personality == "villain"


def test_fallback_source_label(registry, memory):
    registry.get_voice("Extra")
    assert memory.list_all()[0].source_label == "Auto: fallback"


# --- Session stability ---

def test_same_voice_twice_despite_memory_change(registry, memory):
    """Session lock holds even if the store is rewritten in between."""
    first = registry.get_voice("Hero")
    memory.save_voice("hero", "something-else")
    assert registry.get_voice("Hero") == first


def test_case_insensitive_keys(registry):
    assert registry.get_voice("  HERO ") == registry.get_voice("hero")


def test_lock_voice_overrides_resolution(registry):
    registry.lock_voice("Hero", "override-voice")
    assert registry.get_voice("hero", "Hero", "heroic_youth") == "override-voice"


def test_lock_voice_persist(registry, memory):
    registry.lock_voice("Kakashi", "voice-k", persist=True)
    binding = memory.list_all()[0]
    assert binding.voice_id == "voice-k"
    assert binding.source_label == "User override"


def test_lock_voice_not_persisted_by_default(registry, memory):
    registry.lock_voice("Kakashi", "voice-k")
    assert memory.list_all() == []


def test_sessions_are_isolated(memory):
    """Locks in one registry do not leak into another sharing the same memory."""
    a = VoiceRegistry(memory)
    b = VoiceRegistry(memory)
    a.lock_voice("hero", "session-a-only")
    assert b.get_voice("hero") == DEFAULT_VOICE_MAP["Hero"]


def test_clear_session(registry, memory):
    registry.lock_voice("hero", "temporary")
    registry.clear_session()
    assert registry.session_locks == {}
    assert registry.get_voice("hero") == DEFAULT_VOICE_MAP["Hero"]


# --- Override files ---

def test_load_overrides(tmp_path):
    path = tmp_path / "voices.json"
    path.write_text(json.dumps({"voices": {"Naruto": "voice-n", "Empty": ""}}))
    assert load_overrides(str(path)) == {"Naruto": "voice-n"}


def test_load_overrides_missing_file(tmp_path):
    assert load_overrides(str(tmp_path / "nope.json")) == {}


def test_load_overrides_malformed_json(tmp_path):
    path = tmp_path / "voices.json"
    path.write_text("{bad json")
    assert load_overrides(str(path)) == {}


def test_apply_overrides(registry):
    registry.apply_overrides({"Naruto": "voice-n"})
    assert registry.get_voice("naruto") == "voice-n"


def test_corrupt_memory_document_falls_through_to_defaults(memory):
    memory.store.set("voice_memory", 5)
    assert VoiceRegistry(memory).get_voice("Hero", "Hero") == DEFAULT_VOICE_MAP["Hero"]


def test_hero_and_heroine_keep_distinct_voices(registry):
    hero = registry.get_voice("Hero", "Hero")
    heroine = registry.get_voice("Heroine", "Heroine")
    assert hero == DEFAULT_VOICE_MAP["Hero"]
    assert heroine == DEFAULT_VOICE_MAP["Heroine"]
    assert hero != heroine
