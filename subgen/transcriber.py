"""
Transcriber - Speech-to-text via an external whisper.cpp-style executable.

The executable reads the 16kHz mono WAV produced by the audio extractor
and writes `<base>.srt` next to the requested base name:

    <bin> -f <audio.wav> -osrt -of <base> [-m <model>]

Exit code 0 is the only success signal. Whether the .srt actually exists
is checked by the orchestrator before parsing.
"""

import sys
import time
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .errors import ConfigurationError, PipelineTimeoutError, TranscriptionError

logger = logging.getLogger(__name__)

SUPPORTED_PLATFORMS = ("win32", "linux", "darwin")


@dataclass
class TranscriptionRun:
    """Outcome of one successful executable run."""
    returncode: int
    stderr: str
    subtitle_path: Path
    elapsed_sec: float


class Transcriber:
    """
    Runs the transcription executable as a blocking child process.

    Args:
        binary: Path to the executable (TRANSCRIBE_BIN). Required.
        model: Optional model path (TRANSCRIBE_MODEL), passed as -m.
        platform: Host platform name; defaults to sys.platform.
    """

    def __init__(self, binary: Optional[str], model: Optional[str] = None,
                 platform: Optional[str] = None):
        self.binary = binary
        self.model = model
        self.platform = platform or sys.platform

    def check_ready(self):
        """
        Validate configuration before anything is spawned.

        Raises:
            ConfigurationError: If the binary path is unset or the host
                platform is not supported.
        """
        if not self.binary:
            raise ConfigurationError(
                "Transcription binary path not configured (set TRANSCRIBE_BIN)"
            )
        if self.platform not in SUPPORTED_PLATFORMS:
            raise ConfigurationError(
                f"Unsupported platform '{self.platform}' for the transcription executable"
            )

    def build_command(self, audio_path: Path, artifact_base: Path) -> List[str]:
        cmd = [self.binary, "-f", str(audio_path), "-osrt", "-of", str(artifact_base)]
        if self.model:
            cmd += ["-m", self.model]
        return cmd

    def transcribe(self, audio_path: Path, artifact_base: Path,
                   timeout: Optional[float] = None) -> TranscriptionRun:
        """
        Transcribe a WAV file into `<artifact_base>.srt`.

        Args:
            audio_path: 16kHz mono WAV input.
            artifact_base: Output path without the .srt suffix.
            timeout: Seconds before the child is killed; None waits forever.

        Returns:
            TranscriptionRun with the expected subtitle path.

        Raises:
            ConfigurationError: If check_ready() fails.
            TranscriptionError: If the process cannot start or exits nonzero.
            PipelineTimeoutError: If the timeout expires.
        """
        self.check_ready()

        cmd = self.build_command(audio_path, artifact_base)
        logger.info(f"Transcribing {Path(audio_path).name} with {Path(self.binary).name}")
        logger.debug(f"Transcriber command: {' '.join(cmd)}")

        t0 = time.monotonic()
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, errors="replace", timeout=timeout
            )
        except subprocess.TimeoutExpired as e:
            raise PipelineTimeoutError(
                f"Transcription exceeded {timeout:.1f}s and was aborted"
            ) from e
        except OSError as e:
            logger.error(f"Could not start transcription executable {self.binary}: {e}")
            raise TranscriptionError("Could not start transcription executable", stderr=str(e)) from e
        elapsed = time.monotonic() - t0

        if result.returncode != 0:
            logger.error(
                f"Transcription exited with code {result.returncode}: {result.stderr.strip()}"
            )
            raise TranscriptionError(
                f"Transcription failed with exit code {result.returncode}",
                returncode=result.returncode,
                stderr=result.stderr,
            )

        logger.info(f"Transcription finished in {elapsed:.1f}s")
        return TranscriptionRun(
            returncode=result.returncode,
            stderr=result.stderr,
            subtitle_path=Path(f"{artifact_base}.srt"),
            elapsed_sec=elapsed,
        )
