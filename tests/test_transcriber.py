"""
Tests for the transcription executable wrapper.
"""

import subprocess
from pathlib import Path

import pytest

from subgen.errors import ConfigurationError, PipelineTimeoutError, TranscriptionError
from subgen.transcriber import Transcriber

BIN = "/opt/whisper/main"


class TestReadiness:

    @pytest.mark.parametrize("binary", [None, ""])
    def test_missing_binary(self, binary):
        with pytest.raises(ConfigurationError) as exc_info:
            Transcriber(binary).check_ready()
        assert "TRANSCRIBE_BIN" in exc_info.value.message

    def test_unsupported_platform(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Transcriber(BIN, platform="sunos5").check_ready()
        assert "sunos5" in exc_info.value.message

    @pytest.mark.parametrize("platform", ["win32", "linux", "darwin"])
    def test_supported_platforms(self, platform):
        Transcriber(BIN, platform=platform).check_ready()

    def test_transcribe_checks_first(self, runner, tmp_path):
        with pytest.raises(ConfigurationError):
            Transcriber(None).transcribe(tmp_path / "a.wav", tmp_path / "a")
        assert runner.calls == []


class TestCommand:

    def test_without_model(self, tmp_path):
        cmd = Transcriber(BIN).build_command(tmp_path / "a.wav", tmp_path / "a")
        assert cmd == [BIN, "-f", str(tmp_path / "a.wav"), "-osrt", "-of", str(tmp_path / "a")]

    def test_with_model(self, tmp_path):
        cmd = Transcriber(BIN, model="/models/ggml-base.bin").build_command(
            tmp_path / "a.wav", tmp_path / "a"
        )
        assert cmd[-2:] == ["-m", "/models/ggml-base.bin"]


class TestTranscribe:

    def test_success(self, runner, tmp_path):
        run = Transcriber(BIN, platform="linux").transcribe(
            tmp_path / "a.wav", tmp_path / "a", timeout=60
        )
        assert run.returncode == 0
        assert run.subtitle_path == Path(f"{tmp_path / 'a'}.srt")
        assert run.subtitle_path.exists()
        assert runner.calls[-1]["timeout"] == 60

    def test_nonzero_exit(self, runner, tmp_path):
        runner.transcribe_returncode = 3
        runner.transcribe_stderr = "failed to load model\n"

        with pytest.raises(TranscriptionError) as exc_info:
            Transcriber(BIN, platform="linux").transcribe(tmp_path / "a.wav", tmp_path / "a")

        assert exc_info.value.returncode == 3
        assert "failed to load model" in exc_info.value.stderr
        assert exc_info.value.message == "Transcription failed with exit code 3"

    def test_exit_code_zero_without_file_is_not_an_error_here(self, runner, tmp_path):
        runner.write_srt = False
        run = Transcriber(BIN, platform="linux").transcribe(tmp_path / "a.wav", tmp_path / "a")
        assert not run.subtitle_path.exists()

    def test_launch_failure(self, runner, tmp_path):
        runner.raise_for[BIN] = FileNotFoundError(2, "No such file or directory", BIN)
        with pytest.raises(TranscriptionError) as exc_info:
            Transcriber(BIN, platform="linux").transcribe(tmp_path / "a.wav", tmp_path / "a")
        assert BIN in exc_info.value.stderr
        assert BIN not in exc_info.value.message

    def test_stderr_paths_stay_out_of_message(self, runner, tmp_path):
        audio = tmp_path / "a.wav"
        runner.transcribe_returncode = 1
        runner.transcribe_stderr = f"error: failed to read WAV file '{audio}'"

        with pytest.raises(TranscriptionError) as exc_info:
            Transcriber(BIN, platform="linux").transcribe(audio, tmp_path / "a")

        assert str(audio) in exc_info.value.stderr
        assert str(tmp_path) not in str(exc_info.value.to_dict())

    def test_timeout(self, runner, tmp_path):
        runner.raise_for[BIN] = subprocess.TimeoutExpired([BIN], 2)
        with pytest.raises(PipelineTimeoutError):
            Transcriber(BIN, platform="linux").transcribe(
                tmp_path / "a.wav", tmp_path / "a", timeout=2
            )
