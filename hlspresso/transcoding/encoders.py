"""
Encoder availability checks.
"""

import asyncio
import logging
from typing import List, Set, Tuple

from ..errors import ErrorCategory, ErrorCode, TranscodeError
from .constants import REQUIRED_AUDIO_CODEC, REQUIRED_VIDEO_CODEC

logger = logging.getLogger(__name__)


class EncoderPreflight:
    """Verifies that ffmpeg runs and ships the codecs the commands rely on."""

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        self.ffmpeg_path = ffmpeg_path

    async def _query(self, flag: str) -> Tuple[int, str]:
        process = await asyncio.create_subprocess_exec(
            self.ffmpeg_path, "-hide_banner", flag,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        try:
            stdout, _ = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise
        return process.returncode, stdout.decode("utf-8", errors="ignore")

    async def check(self) -> None:
        """
        Run ``ffmpeg -version`` and ``ffmpeg -codecs``.

        Raises:
            TranscodeError: missing dependency (1602) when ffmpeg cannot run,
                codec not found (1600) without libx264, codec not supported
                (1601) without aac, or a system error when the codec listing
                fails
        """
        try:
            code, output = await self._query("-version")
        except OSError as e:
            raise TranscodeError(
                ErrorCategory.CODEC_NOT_FOUND,
                "FFmpeg not found",
                str(e),
                ErrorCode.MISSING_DEPENDENCY,
            ) from e
        if code != 0:
            raise TranscodeError(
                ErrorCategory.CODEC_NOT_FOUND,
                "FFmpeg not found",
                output.strip(),
                ErrorCode.MISSING_DEPENDENCY,
            )

        version_line = output.splitlines()[0] if output else ""
        logger.debug(f"[Preflight] {version_line}")

        try:
            code, output = await self._query("-codecs")
        except OSError as e:
            raise TranscodeError.wrap(e, ErrorCategory.SYSTEM, "Failed to list FFmpeg codecs", 20) from e
        if code != 0:
            raise TranscodeError(
                ErrorCategory.SYSTEM, "Failed to list FFmpeg codecs", output.strip(), 20
            )

        available = self.parse_encoders(output)
        if REQUIRED_VIDEO_CODEC not in available:
            raise TranscodeError(
                ErrorCategory.CODEC_NOT_FOUND,
                "Required video codec not found",
                f"Codec: {REQUIRED_VIDEO_CODEC}",
                ErrorCode.CODEC_NOT_FOUND,
            )
        if REQUIRED_AUDIO_CODEC not in available:
            raise TranscodeError(
                ErrorCategory.CODEC_NOT_FOUND,
                "Required audio codec not supported",
                f"Codec: {REQUIRED_AUDIO_CODEC}",
                ErrorCode.CODEC_NOT_SUPPORTED,
            )

    @staticmethod
    def parse_encoders(codecs_output: str) -> Set[str]:
        """
        Collect codec and encoder names from ``ffmpeg -codecs`` output.

        Lines look like
        `` DEV.LS h264   H.264 / AVC ... (encoders: libx264 libx264rgb h264_nvenc)``.
        """
        names: Set[str] = set()
        for line in codecs_output.splitlines():
            fields: List[str] = line.split()
            if len(fields) < 2 or len(fields[0]) != 6 or fields[1] == "=":
                continue
            names.add(fields[1])
            for marker in ("(encoders:", "(decoders:"):
                if marker in line:
                    rest = line.split(marker, 1)[1].split(")", 1)[0]
                    names.update(rest.split())
        return names
