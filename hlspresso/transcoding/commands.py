"""
FFmpeg command building for HLS ladders and single MP4 outputs.
"""

import logging
from pathlib import Path
from typing import List, Sequence

from .. import __version__
from .constants import (
    HLS_SEGMENT_TYPE,
    MASTER_PLAYLIST_NAME,
    MP4_AUDIO_BITRATE,
    MP4_CRF,
    MP4_VIDEO_PRESET,
    REQUIRED_AUDIO_CODEC,
    REQUIRED_VIDEO_CODEC,
    SEGMENT_PATTERN,
    STREAM_DIR_PREFIX,
    VARIANT_PLAYLIST_NAME,
)
from .models import PlaylistType, QualityTier

logger = logging.getLogger(__name__)


def stream_dir_name(index: int) -> str:
    return f"{STREAM_DIR_PREFIX}{index}"


def _ffmpeg_path(path: Path) -> str:
    # Forward slashes work for ffmpeg on every platform
    return str(path).replace("\\", "/")


class CommandBuilder:
    """Builds FFmpeg argument vectors."""

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        self.ffmpeg_path = ffmpeg_path

    def _get_protocol_args(self, source: str) -> List[str]:
        """Reconnect options for HTTP sources read directly by ffmpeg."""
        if source.startswith("http://") or source.startswith("https://"):
            return [
                "-headers", f"User-Agent: hlspresso/{__version__}\r\n",
                "-reconnect", "1",
                "-reconnect_streamed", "1",
                "-reconnect_delay_max", "5",
            ]
        return []

    def build_filter_graph(self, tiers: Sequence[QualityTier]) -> str:
        """
        Split the decoded video into one branch per tier and scale each.

        For two tiers: ``[0:v]split=2[v0][v1]; [v0]scale=w=1280:h=720[v0out]; ...``
        """
        count = len(tiers)
        labels = "".join(f"[v{i}]" for i in range(count))
        parts = [f"[0:v]split={count}{labels}"]
        for i, tier in enumerate(tiers):
            parts.append(f"[v{i}]scale=w={tier.width}:h={tier.height}[v{i}out]")
        return "; ".join(parts)

    def build_hls_command(
        self,
        source: str,
        output_dir: Path,
        tiers: Sequence[QualityTier],
        segment_duration: int = 10,
        playlist_type: PlaylistType = PlaylistType.VOD,
        extra_args: Sequence[str] = (),
        include_audio: bool = True
    ) -> List[str]:
        """
        Build the ladder command.

        Variant ``i`` writes ``stream_i/playlist.m3u8`` and
        ``stream_i/dataNNN.ts``; ffmpeg writes the master playlist into
        ``output_dir``. Extra arguments go right before the output pattern.
        """
        cmd = [self.ffmpeg_path, "-y", "-hide_banner"]
        cmd.extend(self._get_protocol_args(source))
        cmd.extend(["-i", source])
        cmd.extend(["-filter_complex", self.build_filter_graph(tiers)])

        stream_maps = []
        for i, tier in enumerate(tiers):
            cmd.extend(["-map", f"[v{i}out]"])
            cmd.extend([f"-c:v:{i}", REQUIRED_VIDEO_CODEC])
            cmd.extend([f"-b:v:{i}", tier.video_bitrate])
            cmd.extend([f"-maxrate:v:{i}", tier.max_bitrate])
            cmd.extend([f"-bufsize:v:{i}", tier.buffer_size])

            if include_audio:
                cmd.extend(["-map", "a:0"])
                cmd.extend([f"-c:a:{i}", REQUIRED_AUDIO_CODEC])
                cmd.extend([f"-b:a:{i}", tier.audio_bitrate])
                cmd.extend(["-ac", "2"])
                stream_maps.append(f"v:{i},a:{i}")
            else:
                stream_maps.append(f"v:{i}")

        segment_path = _ffmpeg_path(output_dir / f"{STREAM_DIR_PREFIX}%v" / SEGMENT_PATTERN)
        playlist_path = _ffmpeg_path(output_dir / f"{STREAM_DIR_PREFIX}%v" / VARIANT_PLAYLIST_NAME)

        cmd.extend([
            "-f", "hls",
            "-hls_time", str(segment_duration),
            "-hls_playlist_type", PlaylistType(playlist_type).value,
            "-hls_flags", "independent_segments",
            "-hls_segment_type", HLS_SEGMENT_TYPE,
            "-hls_segment_filename", segment_path,
            "-master_pl_name", MASTER_PLAYLIST_NAME,
            "-var_stream_map", " ".join(stream_maps),
        ])
        cmd.extend(extra_args)
        cmd.append(playlist_path)

        return cmd

    def build_mp4_command(
        self,
        source: str,
        output_path: Path,
        extra_args: Sequence[str] = ()
    ) -> List[str]:
        """Single H.264/AAC output; ``-y`` is always set right before the output."""
        cmd = [self.ffmpeg_path, "-hide_banner"]
        cmd.extend(self._get_protocol_args(source))
        cmd.extend([
            "-i", source,
            "-c:v", REQUIRED_VIDEO_CODEC,
            "-preset", MP4_VIDEO_PRESET,
            "-crf", str(MP4_CRF),
            "-c:a", REQUIRED_AUDIO_CODEC,
            "-b:a", MP4_AUDIO_BITRATE,
        ])
        cmd.extend(extra_args)
        cmd.extend(["-y", str(output_path)])
        return cmd
