"""
Pipeline Orchestrator - Coordinates subtitle generation and translation.

Generation stages (strictly sequential, each needs the previous artifact):
  1. Audio Extraction (FFmpeg)
  2. Transcription (external whisper.cpp-style executable)
  3. SRT Parsing

Translation bypasses those stages and fans segment text out through the
shared TranslationScheduler, then recombines results in input order.
"""

import math
import time
import logging
from concurrent.futures import FIRST_EXCEPTION, Future, wait
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union
from urllib.parse import urlparse

from .artifacts import RequestArtifacts
from .audio_extractor import AudioExtractor
from .errors import (
    ConfigurationError,
    ParseError,
    PipelineError,
    PipelineTimeoutError,
    TranscriptionError,
    TranslationError,
    ValidationError,
)
from .srt_codec import Segment, preview, read_srt
from .transcriber import Transcriber
from .translate_backend import LibreTranslateBackend
from .translation_scheduler import TranslationScheduler

logger = logging.getLogger(__name__)

# Type alias for progress callbacks: (message: str, percent: int) -> None
ProgressCallback = Optional[Callable[[str, int], None]]


class Stage(str, Enum):
    IDLE = "idle"
    EXTRACTING_AUDIO = "extracting_audio"
    TRANSCRIBING = "transcribing"
    PARSING_ARTIFACT = "parsing_artifact"
    COMPLETED = "completed"
    TRANSLATING = "translating"
    FAILED = "failed"


@dataclass
class GenerationResult:
    """Completed generation: parsed segments plus derived metadata."""
    segments: List[Segment]
    language: str = "auto"
    duration: float = 0.0

    @classmethod
    def from_segments(cls, segments: List[Segment]) -> "GenerationResult":
        duration = segments[-1].end if segments else 0
        return cls(segments=segments, language="auto", duration=duration)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "language": self.language,
            "duration": self.duration,
            "segments": [s.to_dict() for s in self.segments],
        }


@dataclass
class PipelineRun:
    """State of one request as it moves through the stages."""
    request_id: str = "-"
    stage: Stage = Stage.IDLE
    history: List[Stage] = field(default_factory=list)
    failure: Optional[PipelineError] = None

    def enter(self, stage: Stage):
        logger.debug(f"Request {self.request_id}: {self.stage.value} → {stage.value}")
        self.history.append(self.stage)
        self.stage = stage

    def fail(self, error: PipelineError):
        if error.stage is None:
            error.stage = self.stage.value
        self.failure = error
        self.enter(Stage.FAILED)
        logger.error(f"Request {self.request_id} failed during {error.stage}: {error.message}")


class Deadline:
    """Overall time budget for one request."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self.seconds = seconds
        self._clock = clock
        self._expires_at = clock() + seconds

    def remaining(self) -> float:
        return self._expires_at - self._clock()

    def budget(self, cap: Optional[float] = None) -> float:
        """Seconds the next stage may take; raises if nothing is left."""
        left = self.remaining()
        if left <= 0:
            raise PipelineTimeoutError(f"Request deadline of {self.seconds:.0f}s exceeded")
        return min(left, cap) if cap else left


def create_scheduler(translate_config) -> TranslationScheduler:
    """Build the process-wide scheduler from the translate config section."""
    backend = LibreTranslateBackend(
        base_url=translate_config.base_url,
        api_key=translate_config.api_key,
        timeout=translate_config.http_timeout_sec,
    )
    return TranslationScheduler(
        backend,
        min_interval=translate_config.min_interval_sec,
        max_retries=translate_config.max_retries,
        rate_limit_backoff=translate_config.rate_limit_backoff_sec,
        network_backoff=translate_config.network_backoff_sec,
    )


class SubtitlePipeline:
    """
    Main pipeline orchestrator.

    Usage:
        config = load_config()
        with create_scheduler(config.translate) as scheduler:
            pipeline = SubtitlePipeline(config, scheduler)
            result = pipeline.generate("https://example.com/video.mp4")
            translated = pipeline.translate(result.segments, "es")

    A single instance may serve many concurrent requests; the only state
    shared between them is the scheduler.
    """

    def __init__(self, config, scheduler: Optional[TranslationScheduler] = None,
                 extractor: Optional[AudioExtractor] = None,
                 transcriber: Optional[Transcriber] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.config = config
        self.scheduler = scheduler
        self.extractor = extractor or AudioExtractor(ffmpeg_bin=config.audio.ffmpeg_bin)
        self.transcriber = transcriber or Transcriber(
            binary=config.transcribe.binary,
            model=config.transcribe.model,
        )
        self._clock = clock

    # ── Generation ──

    def generate(self, video_url: str, progress_cb: ProgressCallback = None) -> GenerationResult:
        """
        Turn a video source into subtitle segments.

        Args:
            video_url: Remote video locator.
            progress_cb: Optional callback for progress updates.

        Returns:
            GenerationResult with language "auto", duration and segments.

        Raises:
            PipelineError: Any classified failure, tagged with its stage.
        """
        run = PipelineRun()
        try:
            source = self.validate_source(video_url)
            self.transcriber.check_ready()
            self.extractor.verify()
        except PipelineError as e:
            run.fail(e)
            raise

        pipeline_cfg = self.config.pipeline
        deadline = Deadline(pipeline_cfg.request_timeout_sec, clock=self._clock)
        cap = pipeline_cfg.stage_timeout_sec
        artifacts = RequestArtifacts.allocate(pipeline_cfg.temp_dir)
        run.request_id = artifacts.request_id
        start_time = time.monotonic()
        logger.info(f"Request {run.request_id}: generating subtitles for {source}")

        try:
            # ── Stage 1: Audio Extraction ──
            run.enter(Stage.EXTRACTING_AUDIO)
            self._report(progress_cb, "Extracting audio from video...", 5)
            self.extractor.extract(source, artifacts.audio_path, timeout=deadline.budget(cap))

            # ── Stage 2: Transcription ──
            run.enter(Stage.TRANSCRIBING)
            self._report(progress_cb, "Transcribing speech...", 35)
            transcript = self.transcriber.transcribe(
                artifacts.audio_path, artifacts.subtitle_base, timeout=deadline.budget(cap)
            )
            if not transcript.subtitle_path.exists():
                raise TranscriptionError(
                    "Transcriber exited successfully but wrote no subtitle file",
                    returncode=transcript.returncode,
                    stderr=transcript.stderr,
                )

            # ── Stage 3: Parse ──
            run.enter(Stage.PARSING_ARTIFACT)
            self._report(progress_cb, "Parsing subtitles...", 90)
            deadline.budget()
            try:
                segments = read_srt(transcript.subtitle_path)
            except OSError as e:
                raise ParseError(f"Could not read subtitle file: {e.strerror or e.__class__.__name__}") from e

            run.enter(Stage.COMPLETED)
        except PipelineError as e:
            run.fail(e)
            raise
        finally:
            artifacts.cleanup()

        result = GenerationResult.from_segments(segments)
        elapsed = time.monotonic() - start_time
        self._report(progress_cb, f"Done! ({elapsed:.1f}s)", 100)
        logger.info(
            f"Request {run.request_id}: {len(segments)} segments, "
            f"duration {result.duration:.1f}s, took {elapsed:.1f}s"
        )
        if segments:
            logger.debug(f"Preview:\n{preview(segments, max_entries=5)}")
        return result

    def validate_source(self, video_url) -> str:
        """Return the stripped source locator or raise ValidationError."""
        if not isinstance(video_url, str) or not video_url.strip():
            raise ValidationError("Video URL is required")

        source = video_url.strip()
        allowed = [s.lower() for s in self.config.pipeline.allowed_schemes]
        parsed = urlparse(source)
        scheme = parsed.scheme.lower()

        if not scheme and "file" in allowed:
            if not Path(source).exists():
                raise ValidationError(f"Local video file not found: {source}")
            return source
        if scheme not in allowed:
            raise ValidationError(
                f"Unsupported video URL scheme '{scheme or '(none)'}'; "
                f"allowed: {', '.join(allowed)}"
            )
        if scheme != "file" and not parsed.netloc:
            raise ValidationError(f"Video URL has no host: {source}")
        return source

    # ── Translation ──

    def translate(self, subtitles: Sequence[Union[Segment, Mapping]],
                  target_language: str) -> List[Segment]:
        """
        Translate every segment's text, keeping timing and order.

        Args:
            subtitles: Segments or segment-shaped mappings.
            target_language: Target language code (e.g. "es").

        Returns:
            New segments, same order, only `text` replaced.

        Raises:
            ValidationError: If the payload is malformed.
            TranslationError: If any task fails; no partial output.
            PipelineTimeoutError: If the request deadline expires.
        """
        run = PipelineRun(stage=Stage.TRANSLATING)
        try:
            target = self.validate_target(target_language)
            segments = self.validate_segments(subtitles)
            if self.scheduler is None or not self.scheduler.running:
                raise ConfigurationError("Translation scheduler is not running")
        except PipelineError as e:
            run.fail(e)
            raise

        if not segments:
            return []

        logger.info(f"Translating {len(segments)} segments to {target}...")
        deadline = Deadline(self.config.pipeline.request_timeout_sec, clock=self._clock)
        futures: List[Future] = []
        try:
            for seg in segments:
                futures.append(self.scheduler.submit(seg.text, target))

            done, not_done = wait(futures, timeout=max(deadline.remaining(), 0),
                                  return_when=FIRST_EXCEPTION)
            for future in futures:
                if future not in done:
                    continue
                if future.cancelled():
                    raise TranslationError("Translation was cancelled before it ran")
                if future.exception() is not None:
                    raise future.exception()
            if not_done:
                raise PipelineTimeoutError(
                    f"Translation of {len(segments)} segments exceeded "
                    f"{deadline.seconds:.0f}s ({len(not_done)} unfinished)"
                )

            translated = [
                replace(seg, text=future.result(), extra=dict(seg.extra))
                for seg, future in zip(segments, futures)
            ]
        except PipelineError as e:
            run.fail(e)
            raise
        finally:
            for future in futures:
                future.cancel()

        logger.info("Translation completed successfully")
        return translated

    @staticmethod
    def validate_target(target_language) -> str:
        if not isinstance(target_language, str) or not target_language.strip():
            raise ValidationError("Target language is required")
        return target_language.strip()

    @staticmethod
    def validate_segments(subtitles) -> List[Segment]:
        """Coerce a subtitle payload into Segments, checking start <= end."""
        if subtitles is None or isinstance(subtitles, (str, bytes, Mapping)):
            raise ValidationError("Subtitles must be a list of segments")
        try:
            items = list(subtitles)
        except TypeError as e:
            raise ValidationError("Subtitles must be a list of segments") from e

        segments = []
        for i, item in enumerate(items):
            if isinstance(item, Segment):
                seg = item
            elif isinstance(item, Mapping):
                seg = _segment_from_mapping(item, i)
            else:
                raise ValidationError(f"subtitles[{i}] is not an object")

            if seg.start < 0 or seg.end < seg.start:
                raise ValidationError(
                    f"subtitles[{i}] has invalid timing ({seg.start} → {seg.end})"
                )
            segments.append(seg)
        return segments

    # ── Utilities ──

    @staticmethod
    def _report(cb: ProgressCallback, msg: str, pct: int):
        """Report progress to logger and optional callback."""
        logger.info(f"[{pct:3d}%] {msg}")
        if cb:
            cb(msg, pct)


def _segment_from_mapping(item: Mapping, i: int) -> Segment:
    values = {}
    for key in ("start", "end"):
        value = item.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ValidationError(f"subtitles[{i}].{key} must be a number")
        values[key] = float(value)

    text = item.get("text")
    if not isinstance(text, str):
        raise ValidationError(f"subtitles[{i}].text must be a string")

    extra = {k: v for k, v in item.items() if k not in ("start", "end", "text")}
    return Segment(start=values["start"], end=values["end"], text=text, extra=extra)
