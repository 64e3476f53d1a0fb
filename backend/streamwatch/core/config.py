"""Configuration settings for the audio stream exporter."""
from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import BaseModel, ValidationError, field_validator
from pydantic_settings import BaseSettings

from streamwatch.monitor.models import StreamTarget

DEFAULT_SILENCE_MIN_SECONDS = 5.0
DEFAULT_SILENCE_NOISE_LEVEL = "-30dB"


class ConfigError(Exception):
    """Raised when the stream configuration cannot be loaded."""


class Settings(BaseSettings):
    """Process settings loaded from environment variables."""

    # Server settings
    host: str = "0.0.0.0"
    port: int = 2112

    # Stream list (YAML)
    config_path: str = "config.yml"

    # Diagnostic subprocess settings
    ffmpeg_path: str = "ffmpeg"
    enable_level_stats: bool = True  # Append astats + ametadata to the filter chain
    level_stats_reset_frames: int = 50  # astats reset interval, in audio frames
    read_buffer_limit: int = 64 * 1024  # Longest stderr line accepted, in bytes
    terminate_grace_seconds: float = 5.0

    # Restart cadence
    restart_delay_seconds: float = 5.0  # After the diagnostic process exits
    launch_retry_delay_seconds: float = 10.0  # After a failed launch

    # Liveness probe
    probe_interval_seconds: float = 30.0
    probe_duration_seconds: int = 2
    probe_timeout_seconds: float = 15.0

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


class MonitorConfig(BaseModel):
    """Stream list and silence thresholds read from the YAML config file."""

    streams: List[str] = []
    silence_min_seconds: Optional[float] = DEFAULT_SILENCE_MIN_SECONDS
    silence_noise_level: Optional[str] = DEFAULT_SILENCE_NOISE_LEVEL

    @field_validator("streams")
    @classmethod
    def _unique_urls(cls, value: List[str]) -> List[str]:
        urls = [url.strip() for url in value]
        if any(not url for url in urls):
            raise ValueError("stream URLs must not be blank")
        seen = set()
        duplicates = []
        for url in urls:
            if url in seen:
                duplicates.append(url)
            seen.add(url)
        if duplicates:
            raise ValueError(f"duplicate stream URLs: {', '.join(duplicates)}")
        return urls

    @field_validator("silence_min_seconds")
    @classmethod
    def _default_min_seconds(cls, value: Optional[float]) -> float:
        if value is None or value <= 0:
            return DEFAULT_SILENCE_MIN_SECONDS
        return value

    @field_validator("silence_noise_level")
    @classmethod
    def _default_noise_level(cls, value: Optional[str]) -> str:
        if value is None or not str(value).strip():
            return DEFAULT_SILENCE_NOISE_LEVEL
        return str(value).strip()

    def targets(self) -> List[StreamTarget]:
        """Build one StreamTarget per configured URL, in file order."""
        return [
            StreamTarget(
                url=url,
                silence_min_seconds=self.silence_min_seconds,
                silence_noise_level=self.silence_noise_level,
            )
            for url in self.streams
        ]


def load_monitor_config(path: Union[str, Path]) -> MonitorConfig:
    """
    Read and validate the YAML stream configuration.

    Args:
        path: Path to the YAML file

    Returns:
        Validated MonitorConfig with defaults applied

    Raises:
        ConfigError: If the file cannot be read, parsed or validated
    """
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except OSError as e:
        raise ConfigError(f"Config read error: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML parsing error: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config root in {path} must be a mapping")

    try:
        return MonitorConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config in {path}: {e}") from e


settings = Settings()
