"""
Translate Backend - A single call to a LibreTranslate-compatible API.

Retries, pacing and concurrency live in the scheduler; this module only
knows how to shape the request and read the answer.
"""

import logging
from typing import Optional

import requests

from .errors import TranslationError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://libretranslate.com"

# Failures worth retrying: the request never got an HTTP answer.
TRANSPORT_ERRORS = (requests.exceptions.ConnectionError, requests.exceptions.Timeout)
REQUEST_ERRORS = requests.exceptions.RequestException


class LibreTranslateBackend:
    """POSTs text to `{base_url}/translate` and returns the raw response."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, api_key: Optional[str] = None,
                 timeout: float = 30.0, session: Optional[requests.Session] = None):
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/translate"

    def build_payload(self, text: str, target: str) -> dict:
        payload = {
            "q": text,
            "source": "auto",
            "target": target,
            "format": "text",
        }
        if self.api_key:
            payload["api_key"] = self.api_key
        return payload

    def post(self, text: str, target: str) -> requests.Response:
        """Send one translation request; transport errors propagate."""
        return self.session.post(
            self.endpoint,
            json=self.build_payload(text, target),
            timeout=self.timeout,
        )

    @staticmethod
    def parse_translation(response: requests.Response) -> str:
        """Extract `translatedText` from a 2xx response body."""
        try:
            data = response.json()
        except ValueError as e:
            raise TranslationError(
                "Translation backend returned invalid JSON",
                status=response.status_code,
                body=response.text,
            ) from e

        translated = data.get("translatedText") if isinstance(data, dict) else None
        if not isinstance(translated, str):
            raise TranslationError(
                "Translation backend response has no translatedText",
                status=response.status_code,
                body=response.text,
            )
        return translated

    def close(self):
        self.session.close()
