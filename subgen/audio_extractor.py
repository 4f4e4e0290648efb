"""
Audio Extractor - FFmpeg-based audio extraction from a video source.

Decodes the audio track of any ffmpeg-readable source (remote URLs
included) into 16kHz mono 16-bit PCM WAV, the only input format the
transcription executable accepts. The format is fixed, not configurable.
"""

import subprocess
import logging
from pathlib import Path
from typing import Optional

import soundfile as sf

from .errors import ConfigurationError, ExtractionError, PipelineTimeoutError

logger = logging.getLogger(__name__)

SAMPLE_RATE = 16000
CHANNELS = 1
CODEC = "pcm_s16le"
CONTAINER = "wav"
SUBTYPE = "PCM_16"


class AudioExtractor:
    """Decodes a video source to the transcriber's PCM format using FFmpeg."""

    def __init__(self, ffmpeg_bin: str = "ffmpeg"):
        self.ffmpeg_bin = ffmpeg_bin
        self._verified = False

    def verify(self):
        """
        Check that the FFmpeg binary can be executed.

        The check runs once per extractor; later calls are free.

        Raises:
            ConfigurationError: If FFmpeg is missing or broken.
        """
        if self._verified:
            return

        try:
            result = subprocess.run(
                [self.ffmpeg_bin, "-version"],
                capture_output=True, text=True, timeout=10
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error(f"FFmpeg check failed for {self.ffmpeg_bin}: {e}")
            raise ConfigurationError("FFmpeg is not available (set FFMPEG_BIN)") from e

        if result.returncode != 0:
            raise ConfigurationError(
                f"FFmpeg returned exit code {result.returncode} for -version"
            )

        version_line = result.stdout.split("\n")[0]
        logger.debug(f"FFmpeg found: {version_line}")
        self._verified = True

    def build_command(self, source: str, output_path: Path) -> list:
        return [
            self.ffmpeg_bin,
            "-nostdin",
            "-i", source,
            "-vn",                          # No video
            "-acodec", CODEC,               # 16-bit PCM
            "-ar", str(SAMPLE_RATE),        # Sample rate
            "-ac", str(CHANNELS),           # Mono
            "-f", CONTAINER,
            "-loglevel", "error",           # Suppress verbose output
            "-y",                           # Overwrite
            str(output_path)
        ]

    def extract(self, source: str, output_path: Path, timeout: Optional[float] = None) -> Path:
        """
        Decode the audio of a video source into a WAV file.

        Args:
            source: Video locator (URL or anything ffmpeg accepts).
            output_path: Destination WAV path.
            timeout: Seconds before ffmpeg is killed; None waits forever.

        Returns:
            The output path.

        Raises:
            ExtractionError: If ffmpeg fails or the output is unusable.
            PipelineTimeoutError: If the timeout expires.
        """
        output_path = Path(output_path)
        cmd = self.build_command(source, output_path)

        logger.info(f"Extracting audio: {source} → {output_path.name}")
        logger.debug(f"FFmpeg command: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=timeout
            )
        except subprocess.TimeoutExpired as e:
            raise PipelineTimeoutError(
                f"Audio extraction exceeded {timeout:.1f}s and was aborted"
            ) from e
        except OSError as e:
            logger.error(f"Could not start FFmpeg: {e}")
            raise ExtractionError("Could not start FFmpeg", detail=str(e)) from e

        # A nonzero exit wins even if ffmpeg left a file behind.
        if result.returncode != 0:
            detail = (result.stderr or "").strip()
            logger.error(f"FFmpeg exited with code {result.returncode}: {detail}")
            raise ExtractionError(
                f"FFmpeg audio extraction failed with exit code {result.returncode}",
                detail=detail,
            )

        self._check_output(output_path)
        return output_path

    @staticmethod
    def _check_output(output_path: Path):
        """Confirm ffmpeg wrote a readable WAV in the fixed format."""
        if not output_path.exists():
            raise ExtractionError("FFmpeg reported success but wrote no audio file")

        try:
            info = sf.info(str(output_path))
        except RuntimeError as e:
            logger.error(f"Could not read extracted audio: {e}")
            raise ExtractionError("Extracted audio is unreadable", detail=str(e)) from e

        if (info.samplerate, info.channels, info.subtype) != (SAMPLE_RATE, CHANNELS, SUBTYPE):
            raise ExtractionError(
                f"Extracted audio has unexpected format "
                f"({info.samplerate} Hz, {info.channels} ch, {info.subtype})"
            )

        file_size_mb = output_path.stat().st_size / (1024 * 1024)
        logger.info(
            f"Audio extracted: {info.duration:.1f}s, {file_size_mb:.1f} MB ({output_path.name})"
        )
