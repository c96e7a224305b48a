"""Decode synthesized audio and play it through ffplay."""

import asyncio
import io
import logging
import os
import signal
import tempfile

from pydub import AudioSegment

from manga_narrator.errors import DecodeFailure

logger = logging.getLogger(__name__)


def decode_audio(data: bytes, format: str | None = None) -> AudioSegment:
    """Decode encoded audio bytes (MP3 by default detection) into an AudioSegment."""
    if not data:
        raise DecodeFailure("No audio data")
    try:
        audio = AudioSegment.from_file(io.BytesIO(data), format=format)
    except Exception as e:
        raise DecodeFailure(f"Could not decode audio: {e}") from e
    if len(audio) == 0:
        raise DecodeFailure("Decoded audio is empty")
    return audio


class FFplayPlayer:
    """Plays one AudioSegment at a time in an ffplay subprocess.

    Rate is applied with ffmpeg's atempo filter (valid 0.5-2.0). Pausing
    suspends the process with SIGSTOP and resuming continues it.
    """

    def __init__(self, binary: str = "ffplay"):
        self.binary = binary
        self._proc: asyncio.subprocess.Process | None = None
        self._paused = False

    @property
    def is_active(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    @property
    def is_paused(self) -> bool:
        return self.is_active and self._paused

    async def play(self, audio: AudioSegment, rate: float = 1.0) -> None:
        """Play audio and return when it finishes or is stopped."""
        self.stop()

        fd, path = tempfile.mkstemp(suffix=".wav")
        os.close(fd)
        try:
            audio.export(path, format="wav")
            proc = await asyncio.create_subprocess_exec(
                self.binary, "-nodisp", "-autoexit", "-loglevel", "quiet",
                "-af", f"atempo={rate:.3f}", path,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            self._proc = proc
            self._paused = False
            await proc.wait()
        finally:
            if self._proc is not None and self._proc.returncode is not None:
                self._proc = None
            if os.path.exists(path):
                os.remove(path)

    def _signal(self, sig) -> bool:
        if not self.is_active:
            return False
        try:
            self._proc.send_signal(sig)
        except ProcessLookupError:
            return False
        return True

    def pause(self) -> bool:
        if self._paused or not self._signal(signal.SIGSTOP):
            return False
        self._paused = True
        return True

    def resume(self) -> bool:
        if not self._paused or not self._signal(signal.SIGCONT):
            return False
        self._paused = False
        return True

    def stop(self) -> None:
        """Terminate the current clip. Safe to call when idle."""
        if not self.is_active:
            self._proc = None
            return
        if self._paused:
            self._signal(signal.SIGCONT)
        self._signal(signal.SIGTERM)
        self._paused = False
