"""
Subtitle Generator - CLI Entry Point

Usage:
    subgen generate https://example.com/talk.mp4
    subgen generate https://example.com/talk.mp4 -o talk.srt --translate-to es
    subgen generate ./talk.mp4 --allow-local --json
    subgen translate talk.srt --target fr -o talk.fr.srt
"""

import sys
import json
import argparse
import logging
from pathlib import Path

from dotenv import load_dotenv

from config import load_config
from subgen.errors import PipelineError
from subgen.orchestrator import SubtitlePipeline, create_scheduler
from subgen.srt_codec import read_srt, write_srt


def setup_logging(level: str = "INFO", log_file: str = None):
    """Configure logging for the application."""
    log_format = (
        "%(asctime)s | %(levelname)-7s | %(name)-20s | %(message)s"
    )
    date_format = "%H:%M:%S"

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=log_format,
        datefmt=date_format,
        handlers=handlers
    )

    # Suppress noisy third-party loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def print_progress(message: str, percent: int):
    """Console progress callback with progress bar."""
    bar_width = 30
    filled = int(bar_width * percent / 100)
    bar = "#" * filled + "-" * (bar_width - filled)
    print(f"\r  [{bar}] {percent:3d}%  {message:<50}", end="", flush=True, file=sys.stderr)
    if percent >= 100:
        print(file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Subtitle Generator - transcribe a video into SRT subtitles "
                    "and optionally translate them.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  TRANSCRIBE_BIN          path to the whisper.cpp executable (required)
  TRANSCRIBE_MODEL        model path passed as -m (optional)
  LIBRETRANSLATE_URL      translation backend base URL
  LIBRETRANSLATE_API_KEY  translation backend API key (optional)
        """
    )
    parser.add_argument("--config", type=Path, default=None,
                        help="Path to custom config.yaml file")
    parser.add_argument("--timeout", type=float, default=None,
                        help="Overall request deadline in seconds (default: 300)")
    parser.add_argument("--translate-url", default=None,
                        help="Override the translation backend base URL")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable verbose (DEBUG) logging")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Only print warnings and errors")

    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate subtitles for a video URL")
    gen.add_argument("video_url", help="Video URL (or local path with --allow-local)")
    gen.add_argument("-o", "--output", type=Path, default=None,
                     help="Output SRT file path")
    gen.add_argument("--translate-to", default=None, metavar="LANG",
                     help="Translate the generated subtitles to this language code")
    gen.add_argument("--transcribe-bin", default=None,
                     help="Transcription executable (overrides TRANSCRIBE_BIN)")
    gen.add_argument("--transcribe-model", default=None,
                     help="Transcription model path (overrides TRANSCRIBE_MODEL)")
    gen.add_argument("--allow-local", action="store_true",
                     help="Accept local file paths and file:// URLs")
    gen.add_argument("--json", action="store_true",
                     help="Print the response payload as JSON on stdout")

    tr = sub.add_parser("translate", help="Translate an existing SRT file")
    tr.add_argument("input", type=Path, help="Input SRT file")
    tr.add_argument("-t", "--target", required=True, metavar="LANG",
                    help="Target language code (e.g., 'es', 'fr')")
    tr.add_argument("-o", "--output", type=Path, default=None,
                    help="Output SRT file path (default: <input>.<LANG>.srt)")
    tr.add_argument("--json", action="store_true",
                    help="Print the response payload as JSON on stdout")

    return parser


def run_generate(args, pipeline: SubtitlePipeline) -> int:
    progress_fn = print_progress if not (args.quiet or args.json) else None
    result = pipeline.generate(args.video_url, progress_cb=progress_fn)
    segments = result.segments

    if args.translate_to:
        segments = pipeline.translate(segments, args.translate_to)

    if args.output:
        write_srt(segments, args.output)

    if args.json:
        payload = result.to_dict()
        if args.translate_to:
            payload["translatedSegments"] = [s.to_dict() for s in segments]
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    elif not args.quiet:
        print(f"\n  [OK] {len(segments)} subtitles, duration {result.duration:.1f}s")
        if args.output:
            print(f"  [OK] Subtitles saved to: {args.output}")
    return 0


def run_translate(args, pipeline: SubtitlePipeline) -> int:
    if not args.input.exists():
        print(f"Error: Subtitle file not found: {args.input}", file=sys.stderr)
        return 1

    segments = read_srt(args.input)
    translated = pipeline.translate(segments, args.target)
    output_path = args.output or args.input.with_suffix(f".{args.target}.srt")
    write_srt(translated, output_path)

    if args.json:
        print(json.dumps({"translatedSegments": [s.to_dict() for s in translated]},
                         ensure_ascii=False, indent=2))
    elif not args.quiet:
        print(f"  [OK] {len(translated)} subtitles translated → {output_path}")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv()

    # ── Load config ──
    config = load_config(args.config)
    config.update_from_args(args)

    # ── Setup logging ──
    log_level = "DEBUG" if args.verbose else ("WARNING" if args.quiet else config.logging.level)
    setup_logging(level=log_level, log_file=config.logging.file)

    scheduler = create_scheduler(config.translate)
    try:
        with scheduler:
            pipeline = SubtitlePipeline(config, scheduler)
            if args.command == "generate":
                return run_generate(args, pipeline)
            return run_translate(args, pipeline)
    except KeyboardInterrupt:
        print("\n\n  [WARN] Processing interrupted by user.", file=sys.stderr)
        return 130
    except PipelineError as e:
        print(f"\n  [ERROR] {e}", file=sys.stderr)
        return 1
    finally:
        scheduler.backend.close()


if __name__ == "__main__":
    sys.exit(main())
