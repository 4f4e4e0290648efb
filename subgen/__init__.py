"""
Subtitle Generator - Pipeline Package

Turns a remote video into SRT subtitles and optionally translates them:
  - audio_extractor: FFmpeg-based audio extraction to 16kHz mono PCM
  - transcriber: whisper.cpp-style executable invocation
  - srt_codec: SRT parsing and serialization
  - translate_backend: LibreTranslate HTTP client
  - translation_scheduler: process-wide rate-limited translation queue
  - artifacts: per-request temporary files
  - orchestrator: generation and translation pipeline
  - handlers: JSON request/response contract
"""

from .errors import (
    ConfigurationError,
    ExtractionError,
    ParseError,
    PipelineError,
    PipelineTimeoutError,
    TranscriptionError,
    TranslationError,
    ValidationError,
)
from .orchestrator import GenerationResult, SubtitlePipeline, create_scheduler
from .srt_codec import Segment, compose_srt, parse_srt
from .translation_scheduler import TranslationScheduler

__version__ = "0.1.0"
