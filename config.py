"""
Configuration loader for the subtitle generator.
Loads from config.yaml, then applies environment bindings and CLI overrides.
"""

import os
import yaml
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


@dataclass
class AudioConfig:
    ffmpeg_bin: str = "ffmpeg"


@dataclass
class TranscribeConfig:
    binary: Optional[str] = None     # TRANSCRIBE_BIN
    model: Optional[str] = None      # TRANSCRIBE_MODEL


@dataclass
class TranslateConfig:
    base_url: str = "https://libretranslate.com"
    api_key: Optional[str] = None
    min_interval_sec: float = 1.5
    max_retries: int = 3
    rate_limit_backoff_sec: float = 3.0
    network_backoff_sec: float = 2.0
    http_timeout_sec: float = 30.0


@dataclass
class PipelineConfig:
    request_timeout_sec: float = 300.0
    stage_timeout_sec: Optional[float] = None
    temp_dir: Optional[str] = None  # None = system temp directory
    allowed_schemes: List[str] = field(default_factory=lambda: ["http", "https"])


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class AppConfig:
    """Top-level application configuration."""
    audio: AudioConfig = field(default_factory=AudioConfig)
    transcribe: TranscribeConfig = field(default_factory=TranscribeConfig)
    translate: TranslateConfig = field(default_factory=TranslateConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def apply_env(self, env: Optional[Mapping[str, str]] = None):
        """Override config values from environment bindings."""
        env = os.environ if env is None else env
        if env.get("TRANSCRIBE_BIN"):
            self.transcribe.binary = env["TRANSCRIBE_BIN"]
        if env.get("TRANSCRIBE_MODEL"):
            self.transcribe.model = env["TRANSCRIBE_MODEL"]
        if env.get("LIBRETRANSLATE_URL"):
            self.translate.base_url = env["LIBRETRANSLATE_URL"]
        if env.get("LIBRETRANSLATE_API_KEY"):
            self.translate.api_key = env["LIBRETRANSLATE_API_KEY"]
        if env.get("FFMPEG_BIN"):
            self.audio.ffmpeg_bin = env["FFMPEG_BIN"]

    def update_from_args(self, args):
        """Override config values from CLI arguments."""
        if getattr(args, "transcribe_bin", None):
            self.transcribe.binary = args.transcribe_bin
        if getattr(args, "transcribe_model", None):
            self.transcribe.model = args.transcribe_model
        if getattr(args, "translate_url", None):
            self.translate.base_url = args.translate_url
        if getattr(args, "timeout", None):
            self.pipeline.request_timeout_sec = args.timeout
        if getattr(args, "allow_local", False) and "file" not in self.pipeline.allowed_schemes:
            self.pipeline.allowed_schemes.append("file")


def _dict_to_dataclass(cls, data: dict):
    """Convert a dict to a dataclass, ignoring unknown keys."""
    if data is None:
        return cls()
    field_names = {f.name for f in cls.__dataclass_fields__.values()}
    filtered = {k: v for k, v in data.items() if k in field_names}
    return cls(**filtered)


def load_config(config_path: Optional[Path] = None,
                env: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Load configuration from a YAML file, then apply environment bindings.
    Falls back to defaults if file is missing.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.warning(f"Config file not found at {path}, using defaults.")
        config = AppConfig()
    else:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        config = AppConfig(
            audio=_dict_to_dataclass(AudioConfig, raw.get("audio")),
            transcribe=_dict_to_dataclass(TranscribeConfig, raw.get("transcribe")),
            translate=_dict_to_dataclass(TranslateConfig, raw.get("translate")),
            pipeline=_dict_to_dataclass(PipelineConfig, raw.get("pipeline")),
            logging=_dict_to_dataclass(LoggingConfig, raw.get("logging")),
        )
        logger.info(f"Configuration loaded from {path}")

    config.apply_env(env)
    return config
