"""
hlspresso - ffmpeg orchestration for adaptive HLS and MP4 transcoding
"""

__version__ = "1.0.0"

from .errors import ErrorCategory, ErrorCode, TranscodeError, get_error_message
from .progress import ProgressReporter, ProgressState, ProgressStatus, ProgressFileFormat
from .config import TranscodeConfig, Settings, load_settings
from .downloader import RemoteFetcher, DownloadRequest
from .transcoding.models import QualityTier, OutputType, PlaylistType
from .transcoding.ladder import generate_ladder, format_ladder
from .transcoding.engine import TranscodeEngine, EngineState

__all__ = [
    "__version__",
    "ErrorCategory",
    "ErrorCode",
    "TranscodeError",
    "get_error_message",
    "ProgressReporter",
    "ProgressState",
    "ProgressStatus",
    "ProgressFileFormat",
    "TranscodeConfig",
    "Settings",
    "load_settings",
    "RemoteFetcher",
    "DownloadRequest",
    "QualityTier",
    "OutputType",
    "PlaylistType",
    "generate_ladder",
    "format_ladder",
    "TranscodeEngine",
    "EngineState",
]
