"""
Data models for transcoding operations.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, Any


class OutputType(str, Enum):
    HLS = "hls"
    MP4 = "mp4"


class PlaylistType(str, Enum):
    VOD = "vod"
    EVENT = "event"


class InputMode(str, Enum):
    LOCAL = "local"
    DOWNLOAD = "download"
    STREAM = "stream"


@dataclass(frozen=True)
class QualityTier:
    """One rung of a bitrate ladder."""
    width: int
    height: int
    video_bitrate: str
    max_bitrate: str
    buffer_size: str
    audio_bitrate: str

    @property
    def max_dimension(self) -> int:
        return max(self.width, self.height)

    def label(self) -> str:
        return f"{self.width}x{self.height}@{self.video_bitrate}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BitratePreset:
    """Named bitrate settings used when generating a ladder."""
    name: str
    video_bitrate: str
    max_bitrate: str
    buffer_size: str
    audio_bitrate: str

    def tier(self, width: int, height: int) -> QualityTier:
        return QualityTier(
            width=width,
            height=height,
            video_bitrate=self.video_bitrate,
            max_bitrate=self.max_bitrate,
            buffer_size=self.buffer_size,
            audio_bitrate=self.audio_bitrate,
        )


@dataclass
class MediaInfo:
    """Result of probing a media source."""
    width: int = 0
    height: int = 0
    duration: float = 0.0
    video_codec: str = ""
    audio_codec: str = ""
    has_audio: bool = False

    @property
    def is_vertical(self) -> bool:
        return self.height > self.width

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
