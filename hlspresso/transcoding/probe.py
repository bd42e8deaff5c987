"""
Media probing with ffprobe.
"""

import asyncio
import json
import logging
from typing import List, Optional, Tuple

from ..errors import ErrorCategory, ErrorCode, TranscodeError
from .models import MediaInfo

logger = logging.getLogger(__name__)


class MediaProbe:
    """Runs ffprobe against a local path or URL."""

    def __init__(self, ffprobe_path: str = "ffprobe"):
        self.ffprobe_path = ffprobe_path

    async def _run(self, args: List[str]) -> Tuple[int, str, str]:
        cmd = [self.ffprobe_path, *args]
        logger.debug(f"[Probe] Running: {' '.join(cmd)}")
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise
        return (
            process.returncode,
            stdout.decode("utf-8", errors="ignore"),
            stderr.decode("utf-8", errors="ignore"),
        )

    async def probe(self, source: str) -> MediaInfo:
        """
        Read width, height and duration of the first video stream.

        Duration is best effort and 0.0 when ffprobe does not report it.

        Raises:
            TranscodeError: when ffprobe is missing or fails, its output cannot
                be parsed, or the source has no usable video stream
        """
        try:
            code, stdout, stderr = await self._run([
                "-v", "quiet",
                "-print_format", "json",
                "-show_format",
                "-show_streams",
                source,
            ])
        except FileNotFoundError as e:
            raise TranscodeError(
                ErrorCategory.CODEC_NOT_FOUND,
                "ffprobe not found",
                str(e),
                ErrorCode.MISSING_DEPENDENCY,
            ) from e
        except OSError as e:
            raise TranscodeError.wrap(e, ErrorCategory.SYSTEM, "Failed to run ffprobe", 30) from e

        if code != 0:
            raise TranscodeError(
                ErrorCategory.SYSTEM,
                "Failed to probe input",
                stderr.strip() or f"ffprobe exited with code {code}",
                30,
            )

        try:
            data = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise TranscodeError.wrap(
                e, ErrorCategory.SYSTEM, "Failed to parse ffprobe output", 31
            ) from e

        return self.parse_probe_output(data)

    @staticmethod
    def parse_probe_output(data: dict) -> MediaInfo:
        """Build MediaInfo from ffprobe's JSON document."""
        streams = data.get("streams") or []
        video = next((s for s in streams if s.get("codec_type") == "video"), None)
        if video is None:
            raise TranscodeError(
                ErrorCategory.INVALID_FORMAT,
                "No video stream found",
                "",
                ErrorCode.INVALID_FILE_FORMAT,
            )

        width = int(video.get("width") or 0)
        height = int(video.get("height") or 0)
        if width <= 0 or height <= 0:
            raise TranscodeError.from_code(
                ErrorCode.INVALID_RESOLUTION,
                f"Probed resolution: {width}x{height}",
            )

        audio = next((s for s in streams if s.get("codec_type") == "audio"), None)

        return MediaInfo(
            width=width,
            height=height,
            duration=_parse_duration(data.get("format", {}).get("duration")),
            video_codec=video.get("codec_name", ""),
            audio_codec=audio.get("codec_name", "") if audio else "",
            has_audio=audio is not None,
        )

    async def get_duration(self, source: str) -> float:
        """Container duration in seconds, or 0.0 if it cannot be read."""
        try:
            code, stdout, _ = await self._run([
                "-v", "error",
                "-show_entries", "format=duration",
                "-of", "default=noprint_wrappers=1:nokey=1",
                source,
            ])
        except OSError as e:
            logger.debug(f"[Probe] Duration query failed: {e}")
            return 0.0
        if code != 0:
            return 0.0
        return _parse_duration(stdout.strip())

    async def count_frames(self, source: str) -> int:
        """Video packet count of the first video stream, or 0 if unknown."""
        try:
            code, stdout, _ = await self._run([
                "-v", "error",
                "-select_streams", "v:0",
                "-count_packets",
                "-show_entries", "stream=nb_read_packets",
                "-of", "csv=p=0",
                source,
            ])
        except OSError as e:
            logger.debug(f"[Probe] Frame count query failed: {e}")
            return 0
        if code != 0:
            return 0
        value = stdout.strip().splitlines()[0].strip(" ,") if stdout.strip() else ""
        try:
            return max(0, int(value))
        except ValueError:
            return 0


def _parse_duration(value: Optional[str]) -> float:
    if value in (None, "", "N/A"):
        return 0.0
    try:
        return max(0.0, float(value))
    except (TypeError, ValueError):
        return 0.0
