"""
Request Artifacts - Per-request temporary files.

Every generation request gets its own audio and subtitle paths under the
temp directory. Names combine a process-wide counter with a random token
so concurrent requests never collide, even within the same clock tick.
"""

import itertools
import logging
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

PREFIX = "subgen_"

_counter = itertools.count(1)


def new_request_id() -> str:
    return f"{next(_counter):06d}_{uuid.uuid4().hex[:12]}"


@dataclass
class RequestArtifacts:
    """Temporary paths owned by a single generation request."""
    request_id: str
    audio_path: Path
    subtitle_base: Path

    @property
    def subtitle_path(self) -> Path:
        return self.subtitle_base.with_name(self.subtitle_base.name + ".srt")

    @property
    def paths(self) -> List[Path]:
        return [self.audio_path, self.subtitle_path]

    @classmethod
    def allocate(cls, temp_dir: Optional[Path] = None) -> "RequestArtifacts":
        root = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())
        root.mkdir(parents=True, exist_ok=True)
        request_id = new_request_id()
        base = root / f"{PREFIX}{request_id}"
        return cls(
            request_id=request_id,
            audio_path=base.with_name(base.name + ".wav"),
            subtitle_base=base,
        )

    def cleanup(self) -> int:
        """
        Delete every artifact that exists.

        Deletion failures are logged and ignored so they never replace
        the outcome of the request.

        Returns:
            Number of files removed.
        """
        removed = 0
        for path in self.paths:
            try:
                if path.exists():
                    path.unlink()
                    removed += 1
            except OSError as e:
                logger.warning(f"Could not remove temp file {path}: {e}")
        if removed:
            logger.debug(f"Cleaned up {removed} temp file(s) for request {self.request_id}")
        return removed
