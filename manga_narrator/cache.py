"""Content-addressed cache of synthesized narration audio."""

import hashlib
import logging
import re

from manga_narrator.storage import BlobDirectory

logger = logging.getLogger(__name__)


def normalize_text(text: str) -> str:
    """Lower-case, trim and collapse whitespace."""
    return re.sub(r"\s+", " ", text.strip().lower())


class NarrationCache:
    """Audio bytes keyed by (text, voice, stability, style).

    A missing or unreadable entry is a miss; write failures are logged and
    dropped so narration never stops on a cache problem.
    """

    def __init__(self, directory: str):
        self.blobs = BlobDirectory(directory)

    @staticmethod
    def key(text: str, voice_id: str, stability: float, style: float) -> str:
        digest = hashlib.sha256(normalize_text(text).encode()).hexdigest()[:32]
        return f"audio_v1_{voice_id}_{stability!r}_{style!r}_{digest}.mp3"

    def get(self, key: str) -> bytes | None:
        try:
            data = self.blobs.read(key)
        except OSError as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None
        if data:
            logger.debug("Cache hit: %s", key)
            return data
        return None

    def put(self, key: str, data: bytes) -> None:
        try:
            self.blobs.write(key, data)
        except OSError as e:
            logger.warning("Cache write failed for %s: %s", key, e)

    def clear(self) -> None:
        try:
            self.blobs.clear()
        except OSError as e:
            logger.warning("Cache clear failed: %s", e)
