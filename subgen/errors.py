"""
Pipeline errors - the failure taxonomy shared by every stage.

Each error carries the stage it was raised in so the request boundary
can report a classified failure without leaking tracebacks or paths.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for all classified pipeline failures."""

    kind = "pipeline"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind,
            "stage": self.stage,
        }

    def __str__(self):
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class ConfigurationError(PipelineError):
    """A required binding is missing or the host is unsupported."""

    kind = "configuration"


class ValidationError(PipelineError):
    """The incoming request is missing fields or malformed."""

    kind = "validation"


class ExtractionError(PipelineError):
    """ffmpeg could not decode the source into the fixed PCM format."""

    kind = "extraction"

    def __init__(self, message: str, detail: str = "", stage: Optional[str] = None):
        super().__init__(message, stage=stage)
        self.detail = detail


class TranscriptionError(PipelineError):
    """The transcription executable failed or produced nothing."""

    kind = "transcription"

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        stderr: str = "",
        stage: Optional[str] = None,
    ):
        super().__init__(message, stage=stage)
        self.returncode = returncode
        self.stderr = stderr


class ParseError(PipelineError):
    """A subtitle block could not be decoded."""

    kind = "parse"

    def __init__(self, message: str, block_number: Optional[int] = None, stage: Optional[str] = None):
        super().__init__(message, stage=stage)
        self.block_number = block_number


class TranslationError(PipelineError):
    """The translation backend refused a task or retries ran out."""

    kind = "translation"

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: str = "",
        stage: Optional[str] = None,
    ):
        super().__init__(message, stage=stage)
        self.status = status
        self.body = body


class PipelineTimeoutError(PipelineError, TimeoutError):
    """The request deadline (or a stage cap) expired."""

    kind = "timeout"
