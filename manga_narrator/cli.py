"""CLI interface with subcommand routing."""

import argparse
import asyncio
import json
import logging
import os
import shutil
import sys

from manga_narrator.assembly import export_page, render_script
from manga_narrator.cache import NarrationCache
from manga_narrator.constants import CACHE_DIR, STORE_DIR, VERSION, DEFAULT_VOICE_MAP, ARCHETYPE_VOICE_MAP
from manga_narrator.engine import NarrationEngine
from manga_narrator.models import PronunciationEntry
from manga_narrator.pipeline import build_script, load_regions
from manga_narrator.settings import api_key, load_settings, save_settings
from manga_narrator.storage import JsonFileStore, init_data_dir
from manga_narrator.tts import EdgeTTSProvider, ElevenLabsProvider
from manga_narrator.voice_memory import VoiceMemoryStore
from manga_narrator.voices import VoiceRegistry, load_overrides


def _check_ffmpeg():
    """Verify ffmpeg is installed."""
    if not shutil.which("ffmpeg"):
        print("Error: ffmpeg is required but not found.", file=sys.stderr)
        print("Install with: brew install ffmpeg", file=sys.stderr)
        raise SystemExit(1)


def _check_ffplay():
    """Verify ffplay is installed for live narration."""
    if not shutil.which("ffplay"):
        print("Error: ffplay is required for narration but not found.", file=sys.stderr)
        print("It ships with ffmpeg builds that include SDL; try 'manga-narrator render' instead.", file=sys.stderr)
        raise SystemExit(1)


def _load_script(path: str):
    if not os.path.exists(path):
        print(f"Error: File not found: {path}", file=sys.stderr)
        raise SystemExit(1)
    try:
        regions = load_regions(path)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        print(f"Error: Could not read page JSON: {e}", file=sys.stderr)
        raise SystemExit(1)
    return build_script(regions)


def _memory(home: str) -> VoiceMemoryStore:
    return VoiceMemoryStore(JsonFileStore(os.path.join(home, STORE_DIR)))


def _build_engine(home: str, overrides: str | None = None) -> NarrationEngine:
    registry = VoiceRegistry(_memory(home))
    if overrides:
        registry.apply_overrides(load_overrides(overrides))
    return NarrationEngine(
        registry=registry,
        cache=NarrationCache(os.path.join(home, CACHE_DIR)),
        primary=ElevenLabsProvider(api_key(home)),
        fallback=EdgeTTSProvider(),
        on_notice=lambda message: print(f"  [notice] {message}", file=sys.stderr),
    )


def _format_line(line) -> str:
    return f"  {line.reading_order:>3}  p{line.panel_number:<2} {line.voice_key:<12} {line.text}"


def cmd_order(args):
    """Print a page's script in reading order."""
    script = _load_script(args.file)
    if args.json:
        print(json.dumps([line.to_dict() for line in script], indent=2, ensure_ascii=False))
        return
    if not script:
        print("No narratable text on this page.")
        return
    panels = len({line.panel_number for line in script})
    print(f"{len(script)} lines in {panels} panels:")
    for line in script:
        print(_format_line(line))


def cmd_narrate(args):
    """Narrate a page through the speakers."""
    _check_ffmpeg()
    _check_ffplay()
    home = init_data_dir()
    script = _load_script(args.file)
    if not script:
        print("No narratable text on this page.")
        return

    engine = _build_engine(home, args.overrides)
    settings = load_settings(home)

    try:
        next_index = asyncio.run(engine.play_script(
            script,
            on_line_start=lambda line: print(_format_line(line)),
            settings=settings,
            start_index=args.start,
        ))
    except KeyboardInterrupt:
        engine.stop()
        print("\nStopped.")
        return
    print(f"Done: {next_index}/{len(script)} lines")


def cmd_render(args):
    """Render a page's narration to an MP3 file."""
    _check_ffmpeg()
    home = init_data_dir()
    script = _load_script(args.file)
    if not script:
        print("No narratable text on this page.")
        return

    engine = _build_engine(home, args.overrides)
    settings = load_settings(home)

    print(f"Rendering {len(script)} lines...")
    audio = asyncio.run(render_script(script, engine, settings))
    metadata = {"title": args.title or os.path.basename(args.file), "source": os.path.abspath(args.file)}
    output_path = export_page(audio, args.output, metadata, script)
    print(f"Done: {output_path}")


def cmd_voices(args):
    """List, set or browse voices."""
    home = init_data_dir()
    memory = _memory(home)

    if args.action == "list":
        bindings = memory.list_all()
        if not bindings:
            print("No voices remembered yet.")
            return
        print("Remembered voices:")
        for b in sorted(bindings, key=lambda b: b.character_key):
            print(f"  {b.character_key:<20} → {b.voice_id}  ({b.source_label})")

    elif args.action == "set":
        if len(args.values) < 2:
            print("Error: 'voices set' requires <character> and <voice_id>", file=sys.stderr)
            raise SystemExit(1)
        character, voice_id = args.values[0], args.values[1]
        VoiceRegistry(memory).lock_voice(character, voice_id, persist=True)
        print(f"Updated: {character.strip().lower()} → {voice_id}")

    elif args.action == "available":
        filter_str = args.filter.lower() if args.filter else None
        voices = ElevenLabsProvider(api_key(home)).list_voices()
        entries = [(v.get("name", ""), v.get("voice_id", "")) for v in voices]
        if not entries:
            # Offline: show the built-in type and archetype defaults
            entries = sorted({**DEFAULT_VOICE_MAP, **ARCHETYPE_VOICE_MAP}.items())
        if filter_str:
            entries = [e for e in entries if filter_str in e[0].lower() or filter_str in e[1].lower()]
        if not entries:
            print("No matching voices found.")
            return
        print("Available voices:")
        for name, voice_id in entries:
            print(f"  {name:<24} {voice_id}")


def cmd_set(args):
    """Update narration settings."""
    home = init_data_dir()
    settings = load_settings(home)
    key = args.key
    values = args.values

    valid_keys = {"speed", "word", "unword"}
    if key not in valid_keys:
        print(f"Error: Invalid setting key: {key}", file=sys.stderr)
        print(f"Valid keys: {', '.join(sorted(valid_keys))}", file=sys.stderr)
        raise SystemExit(1)

    if key == "speed":
        if not values:
            print("Error: 'set speed' requires <float>", file=sys.stderr)
            raise SystemExit(1)
        try:
            speed = float(values[0])
        except ValueError:
            print(f"Error: Invalid speed: {values[0]}", file=sys.stderr)
            raise SystemExit(1)
        if speed <= 0:
            print(f"Error: Speed must be positive: {values[0]}", file=sys.stderr)
            raise SystemExit(1)
        settings.speed = speed
        save_settings(settings, home)
        print(f"Updated: speed → {speed}")

    elif key == "word":
        if len(values) < 2:
            print("Error: 'set word' requires <original> and <phonetic>", file=sys.stderr)
            raise SystemExit(1)
        original, phonetic = values[0], " ".join(values[1:])
        settings.dictionary = [e for e in settings.dictionary if e.original != original]
        settings.dictionary.append(PronunciationEntry(original=original, phonetic=phonetic))
        save_settings(settings, home)
        print(f"Updated: {original} → {phonetic}")

    elif key == "unword":
        if not values:
            print("Error: 'set unword' requires <original>", file=sys.stderr)
            raise SystemExit(1)
        before = len(settings.dictionary)
        settings.dictionary = [e for e in settings.dictionary if e.original != values[0]]
        if len(settings.dictionary) == before:
            print(f"Warning: '{values[0]}' not in dictionary.", file=sys.stderr)
            return
        save_settings(settings, home)
        print(f"Removed: {values[0]}")


def cmd_cache(args):
    """Manage the narration audio cache."""
    home = init_data_dir()
    NarrationCache(os.path.join(home, CACHE_DIR)).clear()
    print("Audio cache cleared.")


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="manga-narrator",
        description="Manga Narrator: read comic pages aloud in reading order",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # order
    order_parser = subparsers.add_parser("order", help="Print a page's script in reading order")
    order_parser.add_argument("file", help="Classifier JSON for one page")
    order_parser.add_argument("--json", action="store_true", help="Print the script as JSON")
    order_parser.set_defaults(func=cmd_order)

    # narrate
    narrate_parser = subparsers.add_parser("narrate", help="Narrate a page")
    narrate_parser.add_argument("file", help="Classifier JSON for one page")
    narrate_parser.add_argument("--start", type=int, default=0, help="Reading order index to start from")
    narrate_parser.add_argument("--overrides", help="Voice override JSON file")
    narrate_parser.set_defaults(func=cmd_narrate)

    # render
    render_parser = subparsers.add_parser("render", help="Render a page's narration to MP3")
    render_parser.add_argument("file", help="Classifier JSON for one page")
    render_parser.add_argument("output", help="Output MP3 path")
    render_parser.add_argument("--title", help="Title tag for the MP3")
    render_parser.add_argument("--overrides", help="Voice override JSON file")
    render_parser.set_defaults(func=cmd_render)

    # voices
    voices_parser = subparsers.add_parser("voices", help="List, set or browse voices")
    voices_parser.add_argument("action", choices=["list", "set", "available"])
    voices_parser.add_argument("values", nargs="*", help="<character> <voice_id> for 'set'")
    voices_parser.add_argument("--filter", help="Filter available voices by substring")
    voices_parser.set_defaults(func=cmd_voices)

    # set
    set_parser = subparsers.add_parser("set", help="Update narration settings")
    set_parser.add_argument("key", help="Setting key")
    set_parser.add_argument("values", nargs="*", help="Setting value(s)")
    set_parser.set_defaults(func=cmd_set)

    # cache
    cache_parser = subparsers.add_parser("cache", help="Manage the audio cache")
    cache_parser.add_argument("action", choices=["clear"])
    cache_parser.set_defaults(func=cmd_cache)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return

    args.func(args)
