"""
Single-file MP4 transcoding.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Sequence, Union

from ..errors import ErrorCategory, ErrorCode, TranscodeError, cancelled_error
from ..progress import ProgressReporter
from ..utils import run_best_effort
from .commands import CommandBuilder
from .constants import ESTIMATE_TIMEOUT
from .error_classifier import ErrorClassifier
from .probe import MediaProbe
from .runner import FFmpegRunner, parse_time

logger = logging.getLogger(__name__)


class MP4Transcoder:
    """Transcodes one input into one H.264/AAC MP4 file."""

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        probe: Optional[MediaProbe] = None,
        runner: Optional[FFmpegRunner] = None,
        classifier: Optional[ErrorClassifier] = None,
        estimate_timeout: float = ESTIMATE_TIMEOUT
    ):
        self.command_builder = CommandBuilder(ffmpeg_path)
        self.probe = probe or MediaProbe()
        self.runner = runner or FFmpegRunner()
        self.classifier = classifier or ErrorClassifier()
        self.estimate_timeout = estimate_timeout

    async def transcode(
        self,
        source: str,
        output_path: Union[str, Path],
        extra_args: Sequence[str] = (),
        allow_overwrite: bool = False,
        progress: Optional[ProgressReporter] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> Path:
        """
        Encode ``source`` to ``output_path`` and return the output path.

        Progress is reported in milliseconds of encoded media against the
        probed duration.

        Raises:
            TranscodeError: when the output exists and overwrite is off, on
                spawn or encoder failure, cancellation, or a missing output
        """
        output_path = Path(output_path)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise TranscodeError.from_code(ErrorCode.WRITE_PERMISSION_DENIED, str(e)) from e
        except OSError as e:
            raise TranscodeError.wrap(
                e, ErrorCategory.SYSTEM, "Failed to create output directory", 10
            ) from e

        if output_path.exists() and not allow_overwrite:
            raise TranscodeError(
                ErrorCategory.INVALID_OUTPUT_PATH,
                "Output file already exists",
                f"Path: {output_path}",
                ErrorCode.INVALID_OUTPUT_PATH,
            )

        cmd = self.command_builder.build_mp4_command(source, output_path, extra_args)

        total_ms = 0
        if progress is not None:
            duration = await run_best_effort(
                self.probe.get_duration(source),
                0.0,
                cancel_event=cancel_event,
                timeout=self.estimate_timeout,
                what="duration query",
            )
            total_ms = int(duration * 1000)
            if total_ms > 0:
                progress.start(total_ms)
                logger.info(f"[MP4] Source duration {duration:.2f}s")
            else:
                logger.warning("[MP4] Could not read source duration, progress disabled")

        def on_line(line: str) -> None:
            if total_ms <= 0:
                return
            elapsed = parse_time(line)
            if elapsed is not None:
                progress.update(int(elapsed * 1000), "transcoding", "Creating MP4 file")

        logger.info(f"[MP4] Transcoding {source} -> {output_path}")

        if cancel_event is not None and cancel_event.is_set():
            raise cancelled_error("MP4 transcoding was cancelled before FFmpeg started")

        try:
            result = await self.runner.run(cmd, on_line=on_line, cancel_event=cancel_event)
        except FileNotFoundError as e:
            raise TranscodeError(
                ErrorCategory.CODEC_NOT_FOUND,
                "FFmpeg not found",
                str(e),
                ErrorCode.MISSING_DEPENDENCY,
            ) from e
        except OSError as e:
            raise TranscodeError.wrap(e, ErrorCategory.TRANSCODING, "Failed to start FFmpeg", 12) from e

        if result.cancelled:
            raise cancelled_error("MP4 transcoding was cancelled")

        if result.return_code != 0:
            logger.error(f"[MP4] FFmpeg exited with code {result.return_code}")
            raise self.classifier.to_error(
                result.error_output, ErrorCategory.TRANSCODING, "Transcoding failed", 13
            )

        if not output_path.exists():
            raise TranscodeError(
                ErrorCategory.TRANSCODING,
                "Output file not created",
                f"Expected: {output_path}",
                14,
            )

        if progress is not None:
            progress.complete()

        logger.info(f"[MP4] Output ready: {output_path}")
        return output_path
