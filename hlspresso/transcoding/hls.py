"""
Adaptive HLS output: one ffmpeg run producing every ladder variant plus
the master playlist.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Sequence, Union

from ..errors import ErrorCategory, ErrorCode, TranscodeError, cancelled_error
from ..progress import ProgressReporter
from ..utils import run_best_effort
from .commands import CommandBuilder, stream_dir_name
from .constants import ESTIMATE_TIMEOUT, MASTER_PLAYLIST_NAME
from .error_classifier import ErrorClassifier
from .models import PlaylistType, QualityTier
from .probe import MediaProbe
from .runner import FFmpegRunner, parse_frame

logger = logging.getLogger(__name__)


class HLSBuilder:
    """Builds an adaptive HLS stream from one input."""

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

    def prepare_output(self, output_dir: Path, tier_count: int) -> None:
        """Create the output directory and one ``stream_N`` directory per tier."""
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise TranscodeError.from_code(ErrorCode.WRITE_PERMISSION_DENIED, str(e)) from e
        except OSError as e:
            raise TranscodeError.wrap(
                e, ErrorCategory.HLS, "Failed to create output directory", 2
            ) from e

        for i in range(tier_count):
            stream_dir = output_dir / stream_dir_name(i)
            try:
                stream_dir.mkdir(exist_ok=True)
            except OSError as e:
                raise TranscodeError.wrap(
                    e, ErrorCategory.HLS, f"Failed to create stream directory {stream_dir.name}", 3
                ) from e

    async def build(
        self,
        source: str,
        output_dir: Union[str, Path],
        tiers: Sequence[QualityTier],
        segment_duration: int = 10,
        playlist_type: PlaylistType = PlaylistType.VOD,
        extra_args: Sequence[str] = (),
        progress: Optional[ProgressReporter] = None,
        cancel_event: Optional[asyncio.Event] = None,
        include_audio: bool = True
    ) -> Path:
        """
        Encode ``source`` into ``output_dir`` and return the master playlist path.

        Progress is reported in frames when ffprobe can count them; otherwise
        the encode runs without progress updates.

        Raises:
            TranscodeError: on spawn failure, encoder failure (refined from
                stderr when possible), cancellation, or a missing master playlist
        """
        output_dir = Path(output_dir)
        if not tiers:
            raise TranscodeError(ErrorCategory.HLS, "No resolutions to encode", "", 1)

        self.prepare_output(output_dir, len(tiers))

        cmd = self.command_builder.build_hls_command(
            source,
            output_dir,
            tiers,
            segment_duration=segment_duration,
            playlist_type=playlist_type,
            extra_args=extra_args,
            include_audio=include_audio,
        )

        total_frames = 0
        if progress is not None:
            total_frames = await run_best_effort(
                self.probe.count_frames(source),
                0,
                cancel_event=cancel_event,
                timeout=self.estimate_timeout,
                what="frame count",
            )
            if total_frames > 0:
                progress.start(total_frames)
                logger.info(f"[HLS] Estimated {total_frames} frames")
            else:
                logger.warning("[HLS] Could not estimate frame count, progress disabled")

        def on_line(line: str) -> None:
            if total_frames <= 0:
                return
            frame = parse_frame(line)
            if frame is not None:
                progress.update(frame, "transcoding", "Creating HLS stream")

        logger.info(
            f"[HLS] Encoding {len(tiers)} variant(s) into {output_dir}",
            extra={"tiers": [tier.label() for tier in tiers]},
        )

        if cancel_event is not None and cancel_event.is_set():
            raise cancelled_error("HLS encoding was cancelled before FFmpeg started")

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
            raise TranscodeError.wrap(e, ErrorCategory.HLS, "Failed to start FFmpeg", 4) from e

        if result.cancelled:
            raise cancelled_error("HLS encoding was cancelled")

        if result.return_code != 0:
            logger.error(f"[HLS] FFmpeg exited with code {result.return_code}")
            raise self.classifier.to_error(
                result.error_output, ErrorCategory.HLS, "Failed to create HLS stream", 16
            )

        master_path = output_dir / MASTER_PLAYLIST_NAME
        if not master_path.exists():
            raise TranscodeError(
                ErrorCategory.HLS,
                "Master playlist not created",
                f"Expected: {master_path}",
                17,
            )

        if progress is not None:
            progress.complete()

        logger.info(f"[HLS] Master playlist ready: {master_path}")
        return master_path
