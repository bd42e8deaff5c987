"""
Configuration management for hlspresso
"""

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .progress import ProgressFileFormat
from .transcoding.constants import (
    DEFAULT_DOWNLOAD_TIMEOUT,
    DEFAULT_LADDER,
    MIN_DOWNLOAD_SPACE,
    MIN_OUTPUT_SPACE,
    REACHABILITY_TIMEOUT,
)
from .transcoding.models import OutputType, PlaylistType, QualityTier


class TranscodeConfig(BaseModel):
    """Everything one transcode run needs. Frozen; copy with ``model_copy``."""
    model_config = ConfigDict(frozen=True)

    input: str = ""
    stream_from_url: bool = False
    download_dir: str = "downloads"
    allow_overwrite: bool = False

    output: str = ""
    output_type: OutputType = OutputType.HLS
    segment_duration: int = 10
    playlist_type: PlaylistType = PlaylistType.VOD
    resolutions: List[QualityTier] = Field(default_factory=lambda: list(DEFAULT_LADDER))
    auto_resolutions: bool = False

    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    extra_args: List[str] = Field(default_factory=list)

    download_timeout: float = DEFAULT_DOWNLOAD_TIMEOUT
    probe_timeout: float = REACHABILITY_TIMEOUT
    min_download_space: int = MIN_DOWNLOAD_SPACE
    min_output_space: int = MIN_OUTPUT_SPACE

    progress_file: Optional[str] = None
    progress_format: ProgressFileFormat = ProgressFileFormat.TEXT
    progress_throttle: float = 0.0


class ToolsConfig(BaseModel):
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"


class DownloadConfig(BaseModel):
    directory: str = "downloads"
    timeout_seconds: float = DEFAULT_DOWNLOAD_TIMEOUT
    probe_timeout_seconds: float = REACHABILITY_TIMEOUT
    min_free_bytes: int = MIN_DOWNLOAD_SPACE


class HLSConfig(BaseModel):
    segment_duration: int = 10
    playlist_type: PlaylistType = PlaylistType.VOD
    min_free_bytes: int = MIN_OUTPUT_SPACE


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "json"
    file: Optional[str] = None


class Settings(BaseSettings):
    """Process defaults. Environment variables use the ``HLSPRESSO_`` prefix."""
    model_config = SettingsConfigDict(env_prefix="HLSPRESSO_", env_nested_delimiter="__")

    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    download: DownloadConfig = Field(default_factory=DownloadConfig)
    hls: HLSConfig = Field(default_factory=HLSConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def transcode_defaults(self) -> dict:
        """Field values for a TranscodeConfig built from these settings."""
        return {
            "download_dir": self.download.directory,
            "download_timeout": self.download.timeout_seconds,
            "probe_timeout": self.download.probe_timeout_seconds,
            "min_download_space": self.download.min_free_bytes,
            "segment_duration": self.hls.segment_duration,
            "playlist_type": self.hls.playlist_type,
            "min_output_space": self.hls.min_free_bytes,
            "ffmpeg_path": self.tools.ffmpeg_path,
            "ffprobe_path": self.tools.ffprobe_path,
        }


def find_config_file() -> Optional[Path]:
    """Find the configuration file in standard locations."""
    search_paths = [
        Path.cwd() / "hlspresso.yaml",
        Path.cwd() / "hlspresso.yml",
        Path.cwd() / "config" / "hlspresso.yaml",
        Path.home() / ".config" / "hlspresso" / "hlspresso.yaml",
        Path("/etc/hlspresso/hlspresso.yaml"),
    ]

    for path in search_paths:
        if path.exists():
            return path

    return None


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Load settings from YAML file or use defaults."""
    config_file = Path(config_path) if config_path else find_config_file()

    if config_file and config_file.exists():
        with open(config_file, "r") as f:
            yaml_data = yaml.safe_load(f) or {}
        return Settings(**yaml_data)

    return Settings()
