"""
Request Handlers - JSON request/response contract for the web layer.

    Generate:  {"videoUrl": str}
            -> {"language": "auto", "duration": float, "segments": [...]}
    Translate: {"subtitles": [...], "targetLanguage": str}
            -> {"translatedSegments": [...]}

Failures come back as {"error", "kind", "stage"} with an HTTP status.
No traceback or filesystem path ever reaches the payload.
"""

import logging
from typing import Any, Dict, Tuple

from .errors import PipelineError, PipelineTimeoutError, ValidationError

logger = logging.getLogger(__name__)

Response = Tuple[int, Dict[str, Any]]


def error_response(error: PipelineError) -> Response:
    if isinstance(error, ValidationError):
        status = 400
    elif isinstance(error, PipelineTimeoutError):
        status = 504
    else:
        status = 500
    return status, error.to_dict()


def _require_object(body) -> dict:
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def handle_generate(pipeline, body) -> Response:
    """Run one generation request and shape the response."""
    try:
        payload = _require_object(body)
        result = pipeline.generate(payload.get("videoUrl"))
    except PipelineError as e:
        return error_response(e)
    except Exception:
        logger.exception("Unexpected error while generating subtitles")
        return 500, {"error": "Failed to generate subtitles", "kind": "internal", "stage": None}
    return 200, result.to_dict()


def handle_translate(pipeline, body) -> Response:
    """Run one translation batch and shape the response."""
    try:
        payload = _require_object(body)
        segments = pipeline.translate(payload.get("subtitles"), payload.get("targetLanguage"))
    except PipelineError as e:
        return error_response(e)
    except Exception:
        logger.exception("Unexpected error while translating subtitles")
        return 500, {"error": "Failed to translate subtitles", "kind": "internal", "stage": None}
    return 200, {"translatedSegments": [s.to_dict() for s in segments]}
