"""Narrated playback: delivery heuristics, cached synthesis, fallback voice, sequencing."""

import asyncio
import logging
import re

from pydub import AudioSegment

from manga_narrator.cache import NarrationCache
from manga_narrator.constants import LINE_PAUSE_MS, SPEED_MIN, SPEED_MAX, SYNTHESIS_TIMEOUT
from manga_narrator.models import DeliveryParams, NarrationSettings, PronunciationEntry, TextRegion
from manga_narrator.playback import FFplayPlayer, decode_audio
from manga_narrator.tts import SpeechProvider
from manga_narrator.voices import VoiceRegistry

logger = logging.getLogger(__name__)

# Checked in order; first match wins.
EMOTION_RULES = [
    (re.compile(r"!{2,}|attack|fight|run|watch out|now!", re.IGNORECASE),
     DeliveryParams(stability=0.3, style=0.7, speed=1.2, emotion="action")),
    (re.compile(r"\?{2,}|why|no!|please|love|hate|sob", re.IGNORECASE),
     DeliveryParams(stability=0.4, style=0.9, speed=0.9, emotion="emotional")),
    (re.compile(r"\.{3,}|…|shhh|quiet|whisper", re.IGNORECASE),
     DeliveryParams(stability=0.8, style=0.1, speed=0.8, emotion="whisper")),
]
NORMAL_DELIVERY = DeliveryParams(stability=0.6, style=0.3, speed=1.0, emotion="normal")


def detect_scene_emotion(text: str) -> DeliveryParams:
    """Pick delivery parameters from punctuation and keywords in the line."""
    for pattern, params in EMOTION_RULES:
        if pattern.search(text):
            return DeliveryParams(**vars(params))
    return DeliveryParams(**vars(NORMAL_DELIVERY))


def _phrase_pattern(phrase: str) -> re.Pattern:
    """Match phrase as a whole word/phrase; edges that are not word chars match anywhere."""
    left = r"\b" if re.match(r"\w", phrase) else ""
    right = r"\b" if re.search(r"\w$", phrase) else ""
    return re.compile(left + re.escape(phrase) + right)


def apply_pronunciations(text: str, dictionary: list[PronunciationEntry]) -> str:
    """Apply dictionary substitutions in list order.

    Each entry sees the output of the previous ones, so a later entry can
    rewrite text an earlier entry produced.
    """
    for entry in dictionary:
        if not entry.original:
            continue
        text = _phrase_pattern(entry.original).sub(lambda _: entry.phonetic, text)
    return text


def clamp_speed(speed: float) -> float:
    return max(SPEED_MIN, min(SPEED_MAX, speed))


class NarrationEngine:
    """Plays one line at a time, resolving voices and audio for each.

    Synthesis goes primary provider → cache on success; on any primary
    failure (error, timeout, undecodable audio) a notice is raised and the
    fallback provider speaks the line instead. Fallback audio is not cached.
    """

    def __init__(
        self,
        registry: VoiceRegistry,
        cache: NarrationCache,
        primary: SpeechProvider,
        fallback: SpeechProvider | None = None,
        player=None,
        on_notice=None,
        line_pause_ms: int = LINE_PAUSE_MS,
        synthesis_timeout: float = SYNTHESIS_TIMEOUT,
    ):
        self.registry = registry
        self.cache = cache
        self.primary = primary
        self.fallback = fallback
        self.player = player or FFplayPlayer()
        self.on_notice = on_notice
        self.line_pause_ms = line_pause_ms
        self.synthesis_timeout = synthesis_timeout
        self._generation = 0   # bumped whenever in-flight audio becomes stale
        self._script_id = 0    # bumped by stop() and by each new script
        self._fetch: asyncio.Task | None = None

    detect_scene_emotion = staticmethod(detect_scene_emotion)

    @property
    def is_playing(self) -> bool:
        return self.player.is_active and not getattr(self.player, "is_paused", False)

    def _notice(self, message: str) -> None:
        logger.warning(message)
        if self.on_notice:
            try:
                self.on_notice(message)
            except Exception:
                logger.exception("Notice callback failed")

    async def _synthesize(self, provider: SpeechProvider, text, voice_id, params, speed) -> tuple[bytes, AudioSegment]:
        data = await asyncio.wait_for(
            asyncio.to_thread(provider.synthesize, text, voice_id, params, speed),
            timeout=self.synthesis_timeout,
        )
        return data, decode_audio(data)

    async def fetch_audio(
        self,
        text: str,
        voice_id: str,
        params: DeliveryParams,
        speed: float,
        generation: int | None = None,
    ) -> tuple[AudioSegment, float] | None:
        """Return (audio, playback rate) for a line, or None if nothing could speak it.

        With a generation, gives up without falling back once stop() has
        made that generation stale.
        """
        key = self.cache.key(text, voice_id, params.stability, params.style)

        cached = self.cache.get(key)
        if cached:
            try:
                return decode_audio(cached), speed
            except Exception as e:
                logger.warning("Discarding unreadable cache entry %s: %s", key, e)

        try:
            data, audio = await self._synthesize(self.primary, text, voice_id, params, speed)
        except Exception as e:
            if generation is not None and generation != self._generation:
                return None
            reason = "timed out" if isinstance(e, asyncio.TimeoutError) else str(e)
            self._notice(f"{self.primary.name} unavailable ({reason}); using fallback voice")
        else:
            self.cache.put(key, data)
            return audio, speed

        if self.fallback is None:
            return None
        try:
            _, audio = await self._synthesize(self.fallback, text, voice_id, params, speed)
        except Exception as e:
            logger.error("Fallback synthesis failed, skipping line: %s", e)
            return None
        return audio, (1.0 if self.fallback.applies_speed else speed)

    async def _play(self, text: str, voice_id: str, settings: NarrationSettings) -> bool:
        # At most one line sounds at a time
        self.player.stop()
        self._generation += 1
        generation = self._generation

        spoken = apply_pronunciations(text, settings.dictionary)
        params = detect_scene_emotion(text)
        speed = clamp_speed(params.speed * settings.speed)
        logger.debug("Line %r as %s (%s, speed=%.2f)", spoken[:30], voice_id, params.emotion, speed)

        self._fetch = asyncio.ensure_future(self.fetch_audio(spoken, voice_id, params, speed, generation))
        try:
            result = await self._fetch
        except asyncio.CancelledError:
            if generation != self._generation:
                return False
            raise
        finally:
            if generation == self._generation:
                self._fetch = None
        if result is None or generation != self._generation:
            return False

        audio, rate = result
        try:
            await self.player.play(audio, rate)
        except Exception as e:
            logger.error("Playback failed: %s", e)
            return False
        return generation == self._generation

    async def play_line(self, text: str, voice_id: str, settings: NarrationSettings | None = None) -> bool:
        """Stop whatever is playing, then speak one line. True if it played to the end."""
        self.stop()
        return await self._play(text, voice_id, settings or NarrationSettings())

    async def play_script(
        self,
        lines: list[TextRegion],
        on_line_start=None,
        settings: NarrationSettings | None = None,
        start_index: int = 0,
    ) -> int:
        """Narrate lines in order until the end or until stop() is called.

        Returns the index of the first line not narrated, so a caller can
        start a fresh sequence from there.
        """
        self.stop()
        self._script_id += 1
        script_id = self._script_id
        settings = settings or NarrationSettings()
        logger.info("Starting script playback: %d lines", len(lines) - start_index)

        index = start_index
        while index < len(lines) and script_id == self._script_id:
            line = lines[index]
            try:
                voice_id = self.registry.get_voice(
                    line.voice_key, line.character_type, line.voice_archetype,
                )
                if on_line_start:
                    on_line_start(line)
                await self._play(line.text, voice_id, settings)
            except Exception:
                logger.exception("Skipping line %d after unexpected error", index)

            if script_id != self._script_id:
                break
            index += 1
            if index < len(lines):
                await asyncio.sleep(self.line_pause_ms / 1000)

        logger.info("Script playback ended at line %d/%d", index, len(lines))
        return index

    def stop(self) -> None:
        """Halt audio and end any running script. Safe when idle."""
        self._script_id += 1
        self._generation += 1
        if self._fetch is not None and not self._fetch.done():
            self._fetch.cancel()
        self._fetch = None
        self.player.stop()

    async def toggle_pause(self) -> bool:
        """Pause or resume the current clip. Returns True if audio is now playing."""
        if getattr(self.player, "is_paused", False):
            self.player.resume()
            return True
        if self.player.is_active:
            self.player.pause()
            return False
        return False
