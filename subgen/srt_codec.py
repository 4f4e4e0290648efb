"""
SRT Codec - SubRip parsing and serialization.

The SubRip block format is the interchange artifact between the
transcription executable and the rest of the pipeline:

    1
    00:00:01,200 --> 00:00:04,800
    Hello everyone, welcome to the show.

    2
    00:00:05,100 --> 00:00:06,300
    (Audience clapping)
"""

import logging
import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List

from .errors import ParseError

logger = logging.getLogger(__name__)

ARROW = "-->"
_BLOCK_SPLIT = re.compile(r"\n[ \t]*\n")


@dataclass
class Segment:
    """A timed span of subtitle text, offsets in seconds."""
    start: float
    end: float
    text: str
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def duration(self) -> float:
        return self.end - self.start

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({"start": self.start, "end": self.end, "text": self.text})
        return data


def parse_timestamp(value: str) -> float:
    """
    Convert an SRT timestamp to seconds.

    Args:
        value: Timestamp such as "01:01:01,123".

    Returns:
        Seconds as a float (e.g., 3661.123).

    Raises:
        ValueError: If any field is missing or non-numeric.
    """
    parts = value.strip().split(":")
    if len(parts) != 3:
        raise ValueError(f"expected HH:MM:SS,mmm, got {value!r}")
    hours, minutes, rest = parts
    secs, sep, millis = rest.partition(",")
    if not sep:
        raise ValueError(f"missing millisecond separator in {value!r}")

    fields = [hours, minutes, secs, millis]
    if not all(f.strip().isdigit() for f in fields):
        raise ValueError(f"non-numeric field in {value!r}")

    h, m, s, ms = (int(f) for f in fields)
    return h * 3600 + m * 60 + s + ms / 1000


def format_timestamp(seconds: float) -> str:
    """
    Convert seconds to SRT timestamp format: HH:MM:SS,mmm

    Sub-millisecond remainders are floored. The count is taken on whole
    milliseconds first so values like 1.001 do not lose a millisecond to
    binary float error.

    Args:
        seconds: Time in seconds (e.g., 125.340)

    Returns:
        Formatted timestamp string (e.g., "00:02:05,340")
    """
    if seconds < 0:
        seconds = 0.0

    total_ms = math.floor(round(seconds * 1000, 6))
    hours, rem = divmod(total_ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    secs, millis = divmod(rem, 1000)

    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def parse_srt(content: str) -> List[Segment]:
    """
    Parse SubRip text into an ordered list of segments.

    Args:
        content: Full SRT document.

    Returns:
        Segments in block order.

    Raises:
        ParseError: If a block has a non-numeric index or time field,
            lacks the "-->" arrow, has no text line, or ends before it starts.
    """
    content = content.replace("\r\n", "\n").replace("\r", "\n").lstrip("\ufeff")
    blocks = [b for b in _BLOCK_SPLIT.split(content.strip("\n")) if b.strip()]

    segments = []
    for number, block in enumerate(blocks, start=1):
        segments.append(_parse_block(block, number))

    logger.debug(f"Parsed {len(segments)} SRT blocks")
    return segments


def _parse_block(block: str, number: int) -> Segment:
    lines = block.strip("\n").split("\n")
    index_line = lines[0].strip()

    if not index_line.isdigit():
        raise ParseError(
            f"Block {number}: index line {index_line!r} is not numeric",
            block_number=number,
        )
    if len(lines) < 2 or ARROW not in lines[1]:
        raise ParseError(
            f"Block {number} (index {index_line}): missing '{ARROW}' time line",
            block_number=number,
        )

    raw_start, _, raw_end = lines[1].partition(ARROW)
    try:
        start = parse_timestamp(raw_start)
        end = parse_timestamp(raw_end)
    except ValueError as e:
        raise ParseError(
            f"Block {number} (index {index_line}): {e}",
            block_number=number,
        ) from e

    if start > end:
        raise ParseError(
            f"Block {number} (index {index_line}): ends before it starts",
            block_number=number,
        )

    if len(lines) < 3:
        raise ParseError(
            f"Block {number} (index {index_line}): no subtitle text",
            block_number=number,
        )

    return Segment(start=start, end=end, text="\n".join(lines[2:]))


def compose_srt(segments: Iterable[Segment]) -> str:
    """
    Serialize segments back into SubRip text.

    Blocks are re-indexed from 1 in the given order and joined by a
    blank line. An empty sequence yields an empty string.
    """
    blocks = []
    for i, seg in enumerate(segments, start=1):
        blocks.append(
            f"{i}\n"
            f"{format_timestamp(seg.start)} {ARROW} {format_timestamp(seg.end)}\n"
            f"{seg.text}\n"
        )
    return "\n".join(blocks)


def read_srt(path: Path) -> List[Segment]:
    """Read and parse an SRT file written by the transcriber."""
    content = Path(path).read_text(encoding="utf-8", errors="replace")
    return parse_srt(content)


def write_srt(segments: List[Segment], output_path: Path) -> Path:
    """
    Write segments to an SRT file.

    Args:
        segments: Segments in display order.
        output_path: Path for the output .srt file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(compose_srt(segments), encoding="utf-8")

    logger.info(f"SRT written: {len(segments)} subtitles → {output_path}")
    return output_path


def preview(segments: List[Segment], max_entries: int = 10) -> str:
    """
    Generate a short text preview of segments for logging.

    Args:
        segments: Segments to show.
        max_entries: Maximum entries to include in preview.
    """
    lines = []
    shown = min(len(segments), max_entries)

    for seg in segments[:shown]:
        text_preview = seg.text.replace("\n", " ")[:80]
        if len(seg.text) > 80:
            text_preview += "..."
        lines.append(
            f"  [{format_timestamp(seg.start)} → {format_timestamp(seg.end)}] {text_preview}"
        )

    if len(segments) > shown:
        lines.append(f"  ... and {len(segments) - shown} more entries")

    return "\n".join(lines)
