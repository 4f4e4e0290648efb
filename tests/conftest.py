"""
Shared fixtures: fake clock, fake HTTP session, fake subprocess runner.
"""

import subprocess
import threading
from pathlib import Path

import numpy as np
import pytest
import requests
import soundfile as sf

from config import AppConfig
from subgen.translate_backend import LibreTranslateBackend
from subgen.translation_scheduler import TranslationScheduler


def write_wav(path, sample_rate=16000, channels=1, seconds=0.1):
    frames = int(sample_rate * seconds)
    shape = (frames,) if channels == 1 else (frames, channels)
    sf.write(str(path), np.zeros(shape, dtype="int16"), sample_rate, subtype="PCM_16")


SAMPLE_SRT = (
    "1\n00:00:01,000 --> 00:00:03,500\nHello world\n\n"
    "2\n00:00:04,000 --> 00:00:06,250\nSecond line\n\n"
)


class FakeClock:
    """Monotonic clock whose sleep() advances time instantly."""

    def __init__(self, start=1000.0):
        self.now = start
        self.sleeps = []
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            return self.now

    def sleep(self, seconds):
        with self._lock:
            self.sleeps.append(seconds)
            self.now += seconds


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ("" if payload is None else str(payload))

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    """
    Scripted stand-in for requests.Session.

    Each post() consumes the next scripted item: a FakeResponse is
    returned, an exception is raised. Once the script is empty every
    call succeeds with "[target] text".
    """

    def __init__(self, script=None, clock=None, hook=None):
        self.script = list(script or [])
        self.clock = clock
        self.hook = hook
        self.calls = []
        self.dispatch_times = []
        self._lock = threading.Lock()

    def post(self, url, json=None, timeout=None):
        with self._lock:
            self.calls.append({"url": url, "json": json, "timeout": timeout})
            if self.clock is not None:
                self.dispatch_times.append(self.clock())
            item = self.script.pop(0) if self.script else None
        if self.hook is not None:
            self.hook(json)
        if isinstance(item, BaseException):
            raise item
        if item is None:
            return FakeResponse(200, {"translatedText": f"[{json['target']}] {json['q']}"})
        return item

    def close(self):
        pass


def ok(text):
    return FakeResponse(200, {"translatedText": text})


def rate_limited():
    return FakeResponse(429, text="Too many requests")


def connection_error():
    return requests.exceptions.ConnectionError("Failed to establish a new connection")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_scheduler(clock):
    created = []

    def factory(script=None, hook=None, **kwargs):
        session = FakeSession(script, clock=clock, hook=hook)
        backend = LibreTranslateBackend("http://lt.test", session=session)
        scheduler = TranslationScheduler(backend, clock=clock, sleep=clock.sleep, **kwargs)
        scheduler.start()
        created.append(scheduler)
        return scheduler, session

    yield factory
    for scheduler in created:
        scheduler.close()


class FakeRunner:
    """
    Replacement for subprocess.run that emulates ffmpeg and the
    transcription executable by writing their output files.
    """

    def __init__(self, transcribe_bin="/opt/whisper/main"):
        self.transcribe_bin = transcribe_bin
        self.calls = []
        self.srt_content = SAMPLE_SRT
        self.write_srt = True
        self.ffmpeg_returncode = 0
        self.ffmpeg_stderr = ""
        self.transcribe_returncode = 0
        self.transcribe_stderr = ""
        self.raise_for = {}
        self._lock = threading.Lock()

    def __call__(self, cmd, capture_output=False, text=False, timeout=None, **kwargs):
        with self._lock:
            self.calls.append({"cmd": list(cmd), "timeout": timeout})
        exc = self.raise_for.get(cmd[0])
        if exc is not None:
            raise exc
        if cmd[0] == "ffmpeg":
            return self._ffmpeg(cmd)
        if cmd[0] == self.transcribe_bin:
            return self._transcribe(cmd)
        raise FileNotFoundError(cmd[0])

    def _ffmpeg(self, cmd):
        if "-version" in cmd:
            return subprocess.CompletedProcess(cmd, 0, "ffmpeg version 6.1", "")
        output = Path(cmd[-1])
        write_wav(output)
        return subprocess.CompletedProcess(cmd, self.ffmpeg_returncode, "", self.ffmpeg_stderr)

    def _transcribe(self, cmd):
        base = cmd[cmd.index("-of") + 1]
        if self.write_srt:
            Path(f"{base}.srt").write_text(self.srt_content, encoding="utf-8")
        return subprocess.CompletedProcess(
            cmd, self.transcribe_returncode, "", self.transcribe_stderr
        )

    def commands(self, program):
        return [c["cmd"] for c in self.calls if c["cmd"][0] == program]


@pytest.fixture
def runner(monkeypatch):
    fake = FakeRunner()
    monkeypatch.setattr(subprocess, "run", fake)
    return fake


@pytest.fixture
def app_config(tmp_path):
    config = AppConfig()
    config.transcribe.binary = "/opt/whisper/main"
    config.pipeline.temp_dir = str(tmp_path / "tmp")
    return config
