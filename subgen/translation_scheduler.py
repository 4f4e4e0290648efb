"""
Translation Scheduler - Process-wide pacing of translation backend calls.

Every translation request in the process shares one scheduler:
  - a FIFO queue of pending tasks
  - one dispatcher thread, so at most one backend call is in flight
  - a minimum spacing between consecutive backend calls
  - bounded retry with escalating backoff for 429s and transport errors

Create it once at startup, start() it, and pass it to every handler.
"""

import time
import queue
import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import TranslationError
from .translate_backend import REQUEST_ERRORS, TRANSPORT_ERRORS

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass
class TranslationTask:
    text: str
    target: str
    attempt: int = 0


class TranslationScheduler:
    """
    Serializes translation calls against a shared external quota.

    Args:
        backend: Object with post(text, target) and parse_translation(response).
        min_interval: Minimum seconds between the starts of two backend calls.
        max_retries: Retries allowed per task (shared by 429 and transport errors).
        rate_limit_backoff: Base wait for a 429; the nth retry waits n times this.
        network_backoff: Base wait for a transport error, scaled the same way.
        clock: Monotonic time source.
        sleep: Blocking sleep function.
    """

    def __init__(self, backend, min_interval: float = 1.5, max_retries: int = 3,
                 rate_limit_backoff: float = 3.0, network_backoff: float = 2.0,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.backend = backend
        self.min_interval = min_interval
        self.max_retries = max_retries
        self.rate_limit_backoff = rate_limit_backoff
        self.network_backoff = network_backoff
        self._clock = clock
        self._sleep = sleep

        self._queue: "queue.Queue" = queue.Queue()
        self._lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None
        self._closed = False
        self._last_dispatch: Optional[float] = None
        self._dispatch_count = 0

    # ── Lifecycle ──

    def start(self) -> "TranslationScheduler":
        with self._lock:
            if self._closed:
                raise RuntimeError("Translation scheduler has been closed")
            if self._worker is None:
                self._worker = threading.Thread(
                    target=self._run, name="translation-dispatcher", daemon=True
                )
                self._worker.start()
                logger.debug("Translation dispatcher started")
        return self

    def close(self, wait: bool = True):
        """Stop accepting work, cancel queued tasks, and stop the dispatcher."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            worker = self._worker

        cancelled = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if item is not _STOP and item[1].cancel():
                cancelled += 1
        if cancelled:
            logger.warning(f"Cancelled {cancelled} queued translation task(s) on shutdown")

        self._queue.put(_STOP)
        if worker is not None and wait:
            worker.join()

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._closed

    @property
    def dispatch_count(self) -> int:
        """Backend calls issued so far, retries included."""
        return self._dispatch_count

    # ── Submission ──

    def submit(self, text: str, target: str) -> Future:
        """
        Queue a translation and return a Future for its result.

        The Future resolves to the translated string or raises
        TranslationError. Cancelling it before dispatch skips the task.
        """
        future: Future = Future()
        with self._lock:
            if not self.running:
                raise RuntimeError("Translation scheduler is not running")
            self._queue.put((TranslationTask(text=text, target=target), future))
        return future

    def translate(self, text: str, target: str, timeout: Optional[float] = None) -> str:
        """Blocking form of submit()."""
        return self.submit(text, target).result(timeout=timeout)

    # ── Dispatcher ──

    def _run(self):
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            task, future = item
            if not future.set_running_or_notify_cancel():
                continue
            try:
                result = self._execute(task)
            except Exception as e:
                future.set_exception(e)
            else:
                future.set_result(result)
        logger.debug("Translation dispatcher stopped")

    def _await_slot(self):
        """Block until min_interval has passed since the previous dispatch."""
        if self._last_dispatch is not None:
            wait = self.min_interval - (self._clock() - self._last_dispatch)
            if wait > 0:
                self._sleep(wait)
        self._last_dispatch = self._clock()
        self._dispatch_count += 1

    def _backoff(self, task: TranslationTask, base: float, reason: str):
        delay = (task.attempt + 1) * base
        logger.warning(
            f"{reason}, waiting {delay:.1f}s before retry "
            f"{task.attempt + 1}/{self.max_retries}"
        )
        self._sleep(delay)
        task.attempt += 1

    def _execute(self, task: TranslationTask) -> str:
        while True:
            self._await_slot()
            try:
                response = self.backend.post(task.text, task.target)
            except TRANSPORT_ERRORS as e:
                if task.attempt < self.max_retries:
                    self._backoff(task, self.network_backoff, f"Network error ({e.__class__.__name__})")
                    continue
                logger.error(f"Translation backend unreachable: {e}")
                raise TranslationError(
                    f"Translation backend unreachable after {self.max_retries} retries"
                ) from e
            except REQUEST_ERRORS as e:
                logger.error(f"Translation request failed: {e}")
                raise TranslationError(
                    f"Translation request failed ({e.__class__.__name__})"
                ) from e

            status = response.status_code
            if status == 429:
                if task.attempt < self.max_retries:
                    self._backoff(task, self.rate_limit_backoff, "Rate limited")
                    continue
                raise TranslationError(
                    "Translation rate limit exhausted",
                    status=status,
                    body=response.text,
                )

            if not 200 <= status < 300:
                logger.error(f"Translation backend returned {status}: {response.text}")
                raise TranslationError(
                    f"Translation backend error {status}",
                    status=status,
                    body=response.text,
                )

            return self.backend.parse_translation(response)
