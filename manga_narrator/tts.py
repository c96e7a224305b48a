"""Speech providers: ElevenLabs over HTTP, edge-tts as the degraded fallback."""

import asyncio
import logging
import os
import tempfile
import time

import edge_tts
import requests

from manga_narrator.constants import (
    ELEVENLABS_BASE_URL,
    ELEVENLABS_MODEL,
    FALLBACK_EDGE_VOICE,
    SIMILARITY_BOOST,
    SYNTHESIS_TIMEOUT,
    TTS_RETRY_COUNT,
    TTS_RETRY_BASE_DELAY,
)
from manga_narrator.errors import SynthesisUnavailable
from manga_narrator.models import DeliveryParams

logger = logging.getLogger(__name__)


def rate_string(speed: float) -> str:
    """Convert a speed multiplier to an edge-tts relative rate: 1.2 → "+20%"."""
    percent = round((speed - 1.0) * 100)
    return f"{percent:+d}%"


class SpeechProvider:
    """Turns text into encoded audio bytes.

    ``applies_speed`` is True when the provider bakes the speed into the
    audio itself, so the player should not speed it up again.
    """

    name = "provider"
    applies_speed = False

    def synthesize(self, text: str, voice_id: str, params: DeliveryParams, speed: float) -> bytes:
        raise NotImplementedError


class ElevenLabsProvider(SpeechProvider):
    """ElevenLabs text-to-speech. Any failure raises SynthesisUnavailable."""

    name = "elevenlabs"

    def __init__(
        self,
        api_key: str | None,
        model_id: str = ELEVENLABS_MODEL,
        timeout: float = SYNTHESIS_TIMEOUT,
        base_url: str = ELEVENLABS_BASE_URL,
        similarity_boost: float = SIMILARITY_BOOST,
    ):
        self.api_key = api_key
        self.model_id = model_id
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self.similarity_boost = similarity_boost

    def synthesize(self, text: str, voice_id: str, params: DeliveryParams, speed: float) -> bytes:
        if not self.api_key:
            raise SynthesisUnavailable("Missing ElevenLabs API key")

        url = f"{self.base_url}/text-to-speech/{voice_id}"
        payload = {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": {
                "stability": params.stability,
                "similarity_boost": self.similarity_boost,
                "style": params.style,
                "use_speaker_boost": True,
            },
        }
        headers = {
            "xi-api-key": self.api_key,
            "Content-Type": "application/json",
            "Accept": "audio/mpeg",
        }

        try:
            response = requests.post(
                url,
                json=payload,
                headers=headers,
                params={"optimize_streaming_latency": 3},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SynthesisUnavailable(f"ElevenLabs request failed: {e}") from e

        if not response.ok:
            raise SynthesisUnavailable(
                f"ElevenLabs API error: {response.status_code} {response.text[:200]}",
                status=response.status_code,
            )
        if not response.content:
            raise SynthesisUnavailable("ElevenLabs returned empty audio", status=response.status_code)
        return response.content

    def list_voices(self) -> list[dict]:
        """Voices available to the account; empty list on any failure."""
        try:
            response = requests.get(
                f"{self.base_url}/voices",
                headers={"xi-api-key": self.api_key or ""},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json().get("voices", [])
        except (requests.RequestException, ValueError) as e:
            logger.warning("Could not list ElevenLabs voices: %s", e)
            return []


class EdgeTTSProvider(SpeechProvider):
    """Basic edge-tts voice used when the primary provider is unavailable.

    Ignores the requested voice id and speaks every line with one voice;
    speed is passed as an edge-tts relative rate.
    """

    name = "edge-tts"
    applies_speed = True

    def __init__(
        self,
        voice: str = FALLBACK_EDGE_VOICE,
        retries: int = TTS_RETRY_COUNT,
        base_delay: float = TTS_RETRY_BASE_DELAY,
    ):
        self.voice = voice
        self.retries = retries
        self.base_delay = base_delay

    def synthesize(self, text: str, voice_id: str, params: DeliveryParams, speed: float) -> bytes:
        """Retries on network errors or empty output with exponential backoff."""
        rate = rate_string(speed)
        last_error = None
        for attempt in range(self.retries):
            fd, path = tempfile.mkstemp(suffix=".mp3")
            os.close(fd)
            try:
                communicate = edge_tts.Communicate(text, self.voice, rate=rate)
                asyncio.run(communicate.save(path))

                with open(path, "rb") as f:
                    data = f.read()
                if data:
                    return data

                # empty output counts as a failure
                last_error = SynthesisUnavailable(f"edge-tts produced no audio for: {text[:50]}...")
            except Exception as e:
                last_error = e
            finally:
                if os.path.exists(path):
                    os.remove(path)

            if attempt < self.retries - 1:
                time.sleep(self.base_delay * (2 ** attempt))

        raise SynthesisUnavailable(f"edge-tts failed: {last_error}") from last_error
