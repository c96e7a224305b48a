"""Render an ordered script into a single audio track and export it."""

import json
import logging
import os
from datetime import datetime, timezone

from pydub import AudioSegment

from manga_narrator.constants import LINE_PAUSE_MS, PANEL_PAUSE_MS, OUTPUT_BITRATE, VERSION
from manga_narrator.engine import NarrationEngine, apply_pronunciations, clamp_speed, detect_scene_emotion
from manga_narrator.models import NarrationSettings, TextRegion

logger = logging.getLogger(__name__)


def _calculate_pause(prev: TextRegion, curr: TextRegion) -> int:
    """Longer pause when the next line starts a new panel."""
    if prev.panel_number != curr.panel_number:
        return PANEL_PAUSE_MS
    return LINE_PAUSE_MS


def _apply_rate(audio: AudioSegment, rate: float) -> AudioSegment:
    """Resample-based rate change (pitch follows speed)."""
    if abs(rate - 1.0) < 1e-3:
        return audio
    shifted = audio._spawn(audio.raw_data, overrides={
        "frame_rate": int(audio.frame_rate * rate),
    })
    return shifted.set_frame_rate(audio.frame_rate)


def concatenate_with_pauses(
    lines: list[TextRegion],
    clips: list[AudioSegment],
) -> AudioSegment:
    """Concatenate clips with panel-aware pauses."""
    if not clips:
        return AudioSegment.silent(duration=0)

    result = clips[0]
    for i in range(1, len(clips)):
        pause_ms = _calculate_pause(lines[i - 1], lines[i])
        result += AudioSegment.silent(duration=pause_ms) + clips[i]

    return result


async def render_script(
    lines: list[TextRegion],
    engine: NarrationEngine,
    settings: NarrationSettings | None = None,
) -> AudioSegment:
    """Synthesize every line through the engine's cache and providers without playing.

    Lines nothing could speak are left out of the track.
    """
    settings = settings or NarrationSettings()
    kept_lines = []
    clips = []

    for i, line in enumerate(lines):
        voice_id = engine.registry.get_voice(line.voice_key, line.character_type, line.voice_archetype)
        spoken = apply_pronunciations(line.text, settings.dictionary)
        params = detect_scene_emotion(line.text)
        speed = clamp_speed(params.speed * settings.speed)

        print(f"  Rendering line {i + 1}/{len(lines)}: {line.voice_key} ({params.emotion})")
        result = await engine.fetch_audio(spoken, voice_id, params, speed)
        if result is None:
            logger.warning("Line %d could not be synthesized, leaving it out", i)
            continue

        audio, rate = result
        kept_lines.append(line)
        clips.append(_apply_rate(audio, rate))

    return concatenate_with_pauses(kept_lines, clips)


def export_page(
    assembled: AudioSegment,
    output_path: str,
    metadata: dict,
    lines: list[TextRegion],
) -> str:
    """Export rendered audio as MP3 with tags and a JSON manifest beside it.

    Creates:
      - <output_path> (the narration)
      - <output_path stem>.json (script and provenance)

    Returns path to the MP3 file.
    """
    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    tags = {}
    if metadata.get("title"):
        tags["title"] = metadata["title"]
    if metadata.get("source"):
        tags["comment"] = metadata["source"]

    assembled.export(output_path, format="mp3", bitrate=OUTPUT_BITRATE, tags=tags)

    manifest = {
        "source": metadata.get("source", ""),
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "narrator_version": VERSION,
        "script": [line.to_dict() for line in lines],
        "stats": {
            "lines": len(lines),
            "panels": len({line.panel_number for line in lines}),
            "duration_seconds": round(len(assembled) / 1000, 1),
        },
    }

    manifest_path = os.path.splitext(output_path)[0] + ".json"
    with open(manifest_path, "w") as f:
        json.dump(manifest, f, indent=2)

    return output_path
