"""Shared fixtures for manga narrator tests."""

import asyncio
import io

import pytest
from pydub import AudioSegment

from manga_narrator.cache import NarrationCache
from manga_narrator.engine import NarrationEngine
from manga_narrator.errors import SynthesisUnavailable
from manga_narrator.models import TextRegion
from manga_narrator.storage import MemoryStore
from manga_narrator.tts import SpeechProvider
from manga_narrator.voice_memory import VoiceMemoryStore
from manga_narrator.voices import VoiceRegistry


def make_mp3_bytes(duration: int = 100) -> bytes:
    buf = io.BytesIO()
    AudioSegment.silent(duration=duration).export(buf, format="mp3")
    return buf.getvalue()


class FakeProvider(SpeechProvider):
    """Records calls; returns fixed bytes or raises."""

    def __init__(self, name="fake", data=None, error=None, applies_speed=False):
        self.name = name
        self.data = data
        self.error = error
        self.applies_speed = applies_speed
        self.calls = []

    def synthesize(self, text, voice_id, params, speed):
        self.calls.append({"text": text, "voice_id": voice_id, "params": params, "speed": speed})
        if self.error:
            raise self.error
        return self.data


class FakePlayer:
    """Player double. With hold=True, play() blocks until stop() is called."""

    def __init__(self, hold=False):
        self.hold = hold
        self.played = []
        self.stop_calls = 0
        self.paused = False
        self._active = False
        self._release = None

    @property
    def is_active(self):
        return self._active

    @property
    def is_paused(self):
        return self._active and self.paused

    async def play(self, audio, rate=1.0):
        self.played.append({"duration": len(audio), "rate": rate})
        self._active = True
        try:
            if self.hold:
                self._release = asyncio.Event()
                await self._release.wait()
        finally:
            self._active = False

    def pause(self):
        self.paused = True
        return True

    def resume(self):
        self.paused = False
        return True

    def stop(self):
        self.stop_calls += 1
        self.paused = False
        if self._release is not None:
            self._release.set()


@pytest.fixture
def tiny_mp3(tmp_path):
    """Generate a 100ms silent MP3 for testing."""
    path = tmp_path / "test.mp3"
    AudioSegment.silent(duration=100).export(str(path), format="mp3")
    return path


@pytest.fixture
def mp3_bytes():
    return make_mp3_bytes()


@pytest.fixture
def memory():
    return VoiceMemoryStore(MemoryStore())


@pytest.fixture
def registry(memory):
    return VoiceRegistry(memory)


@pytest.fixture
def cache(tmp_path):
    return NarrationCache(str(tmp_path / "audio_cache"))


@pytest.fixture
def player():
    return FakePlayer()


@pytest.fixture
def primary(mp3_bytes):
    return FakeProvider(name="primary", data=mp3_bytes)


@pytest.fixture
def fallback(mp3_bytes):
    return FakeProvider(name="fallback", data=mp3_bytes, applies_speed=True)


@pytest.fixture
def failing_primary():
    return FakeProvider(name="primary", error=SynthesisUnavailable("429 rate limited", status=429))


@pytest.fixture
def engine(registry, cache, primary, fallback, player):
    return NarrationEngine(
        registry=registry,
        cache=cache,
        primary=primary,
        fallback=fallback,
        player=player,
        line_pause_ms=0,
        synthesis_timeout=5,
    )


@pytest.fixture
def sample_regions():
    """A two-row page: narration and two bubbles on top, one bubble below."""
    return [
        TextRegion(box=[50, 700, 150, 950], character_type="Hero", text="I'M NOT JOKING!!"),
        TextRegion(box=[60, 100, 160, 300], character_type="Narrator", text="Meanwhile..."),
        TextRegion(box=[70, 400, 140, 600], character_type="Villain", text="Then prove it."),
        TextRegion(box=[500, 500, 600, 800], character_type="Mentor", text="Enough, both of you."),
    ]
