"""
Constants and presets for transcoding operations.
"""

from typing import Dict, FrozenSet, List, Tuple

from .models import BitratePreset, QualityTier


# Bitrate presets keyed by resolution class, highest first
BITRATE_PRESETS: Dict[str, BitratePreset] = {
    "2160p": BitratePreset("2160p", "15000k", "16050k", "22500k", "192k"),
    "1440p": BitratePreset("1440p", "9000k", "9630k", "13500k", "192k"),
    "1080p": BitratePreset("1080p", "5000k", "5350k", "7500k", "192k"),
    "720p": BitratePreset("720p", "2800k", "2996k", "4200k", "128k"),
    "480p": BitratePreset("480p", "1400k", "1498k", "2100k", "96k"),
    "360p": BitratePreset("360p", "800k", "856k", "1200k", "64k"),
    "240p": BitratePreset("240p", "400k", "428k", "600k", "48k"),
}

# Largest-dimension thresholds for classifying a source, checked in order
RESOLUTION_THRESHOLDS: List[Tuple[int, str]] = [
    (2160, "2160p"),
    (1440, "1440p"),
    (1080, "1080p"),
    (720, "720p"),
    (480, "480p"),
    (360, "360p"),
]
LOWEST_PRESET = "240p"

# Standard tier sizes emitted below the source, largest first
STANDARD_TIER_SIZES: List[int] = [1080, 720, 480, 360, 240]

# Smallest tier the ladder generator will emit
MIN_TIER_WIDTH = 160
MIN_TIER_HEIGHT = 90

# Absolute bounds enforced before dispatching (orientation-agnostic)
MAX_LONG_SIDE = 7680
MAX_SHORT_SIDE = 4320
MIN_LONG_SIDE = MIN_TIER_WIDTH
MIN_SHORT_SIDE = MIN_TIER_HEIGHT

# Ladder used when none is configured
DEFAULT_LADDER: List[QualityTier] = [
    QualityTier(1920, 1080, "5000k", "5350k", "7500k", "192k"),
    QualityTier(1280, 720, "2800k", "2996k", "4200k", "128k"),
    QualityTier(854, 480, "1400k", "1498k", "2100k", "96k"),
]

SUPPORTED_EXTENSIONS: FrozenSet[str] = frozenset({
    ".mp4", ".mov", ".avi", ".mkv", ".webm", ".flv", ".wmv",
    ".mpeg", ".mpg", ".m4v", ".3gp", ".ts", ".mts", ".m2ts",
})

# Encoders the preflight requires
REQUIRED_VIDEO_CODEC = "libx264"
REQUIRED_AUDIO_CODEC = "aac"

# HLS naming
MASTER_PLAYLIST_NAME = "master.m3u8"
VARIANT_PLAYLIST_NAME = "playlist.m3u8"
SEGMENT_PATTERN = "data%03d.ts"
STREAM_DIR_PREFIX = "stream_"
HLS_SEGMENT_TYPE = "mpegts"

# Single-output encode settings
MP4_VIDEO_PRESET = "medium"
MP4_CRF = 22
MP4_AUDIO_BITRATE = "128k"

# Disk space floors in bytes
MIN_DOWNLOAD_SPACE = 500 * 1024 * 1024
MIN_OUTPUT_SPACE = 1024 * 1024 * 1024

# Network timeouts in seconds
DEFAULT_DOWNLOAD_TIMEOUT = 30 * 60
REACHABILITY_TIMEOUT = 10.0

# Deadline for the best-effort frame count and duration queries
ESTIMATE_TIMEOUT = 120.0

# Subprocess shutdown timeouts in seconds
GRACEFUL_STOP_TIMEOUT = 5.0
TERMINATE_TIMEOUT = 3.0

# Number of stderr lines kept for diagnostics
STDERR_TAIL_LINES = 100
