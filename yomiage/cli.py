"""CLI interface with subcommand routing and interactive playback."""

import argparse
import asyncio
import hashlib
import json
import logging
import os
import sys

from yomiage.boundaries import BoundaryIndex
from yomiage.constants import (
    DEFAULT_RATE,
    DEFAULT_VOLUME,
    MANIFEST_VERSION,
    MAX_CHUNK_CHARS,
    MIN_CHUNK_CHARS,
    VERSION,
)
from yomiage.controller import PlaybackController, PlaybackListeners
from yomiage.engine import EdgeSpeechEngine
from yomiage.models import PAUSED, PLAYING, STOPPED, PlaybackSettings
from yomiage.segmenter import segment
from yomiage.voices import VOICE_POOL, choose_default, list_voices

PLAY_HELP = (
    "Commands: p pause/resume, n next, b previous, g N go to chunk N, "
    "j N jump to character N, r X rate, v X volume, voice NAME, i status, q quit"
)


def _read_text(path: str) -> str:
    """Read input text from a file, or stdin when path is '-'."""
    if path == "-":
        return sys.stdin.read()
    if not os.path.exists(path):
        print(f"Error: File not found: {path}", file=sys.stderr)
        raise SystemExit(1)
    with open(path, encoding="utf-8") as f:
        return f.read()


def _load_chunks(args) -> tuple[str, list[str]]:
    text = _read_text(args.file)
    if not text.strip():
        print(f"Error: File is empty: {args.file}", file=sys.stderr)
        raise SystemExit(1)
    chunks = segment(
        text,
        max_chars=args.max_chars,
        min_chars=args.min_chars,
        drop_urls=args.strip_urls,
    )
    if not chunks:
        print(f"Error: Could not find any speakable text in: {args.file}", file=sys.stderr)
        raise SystemExit(1)
    return text, chunks


def build_manifest(text: str, chunks: list[str]) -> dict:
    """Describe a segmentation result as a JSON-serializable manifest."""
    index = BoundaryIndex(chunks)
    entries = [
        {"index": i, "start": b.start, "end": b.end, "text": chunk}
        for i, (b, chunk) in enumerate(zip(index.boundaries, chunks))
    ]
    return {
        "version": MANIFEST_VERSION,
        "text_sha1": hashlib.sha1(text.encode("utf-8")).hexdigest(),
        "chunk_count": len(entries),
        "total_chars": index.total_chars,
        "chunks": entries,
    }


def cmd_chunks(args):
    """Print the chunks a text file is split into."""
    text, chunks = _load_chunks(args)

    if args.json:
        print(json.dumps(build_manifest(text, chunks), ensure_ascii=False, indent=2))
        return

    index = BoundaryIndex(chunks)
    for i, (boundary, chunk) in enumerate(zip(index.boundaries, chunks)):
        print(f"[{i + 1:03d}] {boundary.start:>6}-{boundary.end:<6} {chunk}")
    print(f"{len(chunks)} chunks, {index.total_chars} characters")


def handle_command(controller: PlaybackController, line: str) -> bool:
    """Apply one interactive command. Returns False when playback should end."""
    parts = line.strip().split(maxsplit=1)
    if not parts:
        return True
    cmd = parts[0].lower()
    arg = parts[1].strip() if len(parts) > 1 else ""
    playing = controller.state == PLAYING

    try:
        if cmd in ("q", "quit"):
            controller.stop()
            return False
        elif cmd == "p":
            if controller.state == PLAYING:
                controller.pause()
            elif controller.state == PAUSED:
                controller.resume()
            else:
                controller.play()
        elif cmd == "n":
            controller.next()
        elif cmd == "b":
            controller.prev()
        elif cmd == "g":
            controller.seek(int(arg) - 1, play=playing)
        elif cmd == "j":
            controller.seek_position(int(arg), play=playing)
        elif cmd == "r":
            controller.update_settings(rate=float(arg))
        elif cmd == "v":
            controller.update_settings(volume=float(arg))
        elif cmd == "voice":
            if not arg:
                print("Error: 'voice' requires a voice name", file=sys.stderr)
            else:
                controller.update_settings(voice=arg)
        elif cmd == "i":
            _print_status(controller)
        else:
            print(f"Unknown command: {cmd}")
            print(PLAY_HELP)
    except ValueError:
        print(f"Error: Invalid value for '{cmd}': {arg!r}", file=sys.stderr)
    return True


def _print_status(controller: PlaybackController) -> None:
    m = controller.metrics()
    remaining = f"~{m.remaining_seconds}s left" if m.remaining_seconds is not None else ""
    print(
        f"{m.state}: chunk {m.index + 1}/{m.total_chunks}, "
        f"char {m.played_chars}/{m.total_chars} ({m.progress_percent}%) {remaining}".rstrip()
    )
    s = controller.settings
    print(f"rate {s.rate:.2f}, volume {s.volume:.2f}, voice {s.voice or 'default'}")


async def _play_session(engine, chunks: list[str], settings: PlaybackSettings, start: int = 0) -> None:
    loop = asyncio.get_running_loop()
    done = asyncio.Event()

    def on_index(index, total):
        print(f"({index + 1}/{total}) {chunks[index]}")

    def on_state(state):
        print(f"[{state}]")
        if state == STOPPED:
            done.set()

    def on_error(error):
        print(f"Warning: skipped chunk after retries: {error}", file=sys.stderr)

    controller = PlaybackController(
        engine,
        chunks,
        settings,
        PlaybackListeners(on_index=on_index, on_state=on_state, on_error=on_error),
    )

    def on_input():
        line = sys.stdin.readline()
        if not line:
            loop.remove_reader(sys.stdin.fileno())
            return
        if not handle_command(controller, line):
            done.set()

    print(PLAY_HELP)
    loop.add_reader(sys.stdin.fileno(), on_input)
    try:
        controller.play(start)
        await done.wait()
    finally:
        loop.remove_reader(sys.stdin.fileno())
        controller.close()


def cmd_play(args):
    """Play a text file through the speech engine."""
    engine = EdgeSpeechEngine()
    if not engine.is_supported():
        print("Error: audio playback is not available.", file=sys.stderr)
        print("Install PortAudio and ffmpeg (e.g. brew install portaudio ffmpeg).", file=sys.stderr)
        raise SystemExit(1)

    if args.file == "-":
        print("Error: 'play' reads commands from stdin; pass a file path.", file=sys.stderr)
        raise SystemExit(1)

    _, chunks = _load_chunks(args)
    settings = PlaybackSettings().merged(
        rate=args.rate,
        volume=args.volume,
        voice=args.voice or choose_default(VOICE_POOL),
    )
    asyncio.run(_play_session(engine, chunks, settings, start=max(args.start - 1, 0)))


def cmd_voices(args):
    """List available Japanese voices."""
    voices = list_voices(online=args.online, filter_str=args.filter)
    if not voices:
        print("No matching voices found.")
        return
    print("Available voices:")
    for v in voices:
        print(f"  {v}")


def _add_segment_options(parser):
    parser.add_argument("file", help="Path to the text file ('-' for stdin)")
    parser.add_argument("--strip-urls", action="store_true", help="Drop URLs before splitting")
    parser.add_argument("--max-chars", type=int, default=MAX_CHUNK_CHARS, help="Maximum chunk length")
    parser.add_argument("--min-chars", type=int, default=MIN_CHUNK_CHARS, help="Chunks shorter than this get merged")


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="yomiage",
        description="yomiage — read text aloud chunk by chunk",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # chunks
    chunks_parser = subparsers.add_parser("chunks", help="Show how a text is split into chunks")
    _add_segment_options(chunks_parser)
    chunks_parser.add_argument("--json", action="store_true", help="Print a JSON manifest")
    chunks_parser.set_defaults(func=cmd_chunks)

    # play
    play_parser = subparsers.add_parser("play", help="Read a text file aloud")
    _add_segment_options(play_parser)
    play_parser.add_argument("--voice", help="Voice short name (see 'voices')")
    play_parser.add_argument("--rate", type=float, default=DEFAULT_RATE, help="Speech rate multiplier")
    play_parser.add_argument("--volume", type=float, default=DEFAULT_VOLUME, help="Volume 0.0–1.0")
    play_parser.add_argument("--start", type=int, default=1, help="Chunk number to start from")
    play_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    play_parser.set_defaults(func=cmd_play)

    # voices
    voices_parser = subparsers.add_parser("voices", help="List Japanese voices")
    voices_parser.add_argument("--filter", help="Filter voices by substring")
    voices_parser.add_argument("--online", action="store_true", help="Fetch the current list from the service")
    voices_parser.set_defaults(func=cmd_voices)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    logging.basicConfig(
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    args.func(args)
