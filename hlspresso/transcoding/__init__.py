"""
Transcoding package for hlspresso.
FFmpeg command construction, process management, and HLS/MP4 output.

The orchestrator lives in ``hlspresso.transcoding.engine`` and is exported
from the top-level package.
"""

from .models import QualityTier, BitratePreset, MediaInfo, OutputType, PlaylistType, InputMode
from .constants import (
    BITRATE_PRESETS,
    DEFAULT_LADDER,
    SUPPORTED_EXTENSIONS,
    MASTER_PLAYLIST_NAME,
)
from .ladder import generate_ladder, format_ladder, classify_resolution, preset_names
from .probe import MediaProbe
from .commands import CommandBuilder
from .error_classifier import ErrorClassifier, DiagnosticPattern
from .runner import FFmpegRunner, RunResult
from .encoders import EncoderPreflight
from .hls import HLSBuilder
from .mp4 import MP4Transcoder

__all__ = [
    # Models
    "QualityTier",
    "BitratePreset",
    "MediaInfo",
    "OutputType",
    "PlaylistType",
    "InputMode",
    # Constants
    "BITRATE_PRESETS",
    "DEFAULT_LADDER",
    "SUPPORTED_EXTENSIONS",
    "MASTER_PLAYLIST_NAME",
    # Ladder
    "generate_ladder",
    "format_ladder",
    "classify_resolution",
    "preset_names",
    # Components
    "MediaProbe",
    "CommandBuilder",
    "ErrorClassifier",
    "DiagnosticPattern",
    "FFmpegRunner",
    "RunResult",
    "EncoderPreflight",
    "HLSBuilder",
    "MP4Transcoder",
]
