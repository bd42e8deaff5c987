"""
Transcode orchestration.

TranscodeEngine drives one run through its states:

    validating -> resolving_input -> [probing_resolution -> building_ladder]
        -> dispatching -> done | failed

Every failure surfaces as a TranscodeError. Nothing is retried; callers
that want retries call ``run`` again.
"""

import asyncio
import logging
import shutil
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Sequence

import httpx

from ..config import TranscodeConfig
from ..downloader import RemoteFetcher
from ..errors import ErrorCategory, ErrorCode, TranscodeError, cancelled_error
from ..progress import ProgressReporter
from ..utils import check_free_space, is_no_space, run_cancellable
from .constants import MAX_LONG_SIDE, MAX_SHORT_SIDE, MIN_LONG_SIDE, MIN_SHORT_SIDE
from .encoders import EncoderPreflight
from .hls import HLSBuilder
from .inputs import InputResolver, ResolvedInput, is_remote_url
from .ladder import format_ladder, generate_ladder
from .models import MediaInfo, OutputType, QualityTier
from .mp4 import MP4Transcoder
from .probe import MediaProbe
from .runner import FFmpegRunner

logger = logging.getLogger(__name__)

WRITE_PROBE_NAME = ".hlspresso_write_test"


class EngineState(str, Enum):
    CREATED = "created"
    VALIDATING = "validating"
    RESOLVING_INPUT = "resolving_input"
    PROBING_RESOLUTION = "probing_resolution"
    BUILDING_LADDER = "building_ladder"
    DISPATCHING = "dispatching"
    DONE = "done"
    FAILED = "failed"


def validate_resolution(tier: QualityTier) -> None:
    """
    Check one tier against absolute bounds.

    Bounds are orientation-agnostic: the long side is compared with 7680 and
    the short side with 4320, and the floor is 160 (long) by 90 (short).

    Raises:
        TranscodeError: invalid (1801), too high (1802) or too low (1803)
    """
    width, height = tier.width, tier.height
    resolution = f"Resolution: {width}x{height}"

    if width <= 0 or height <= 0:
        raise TranscodeError.from_code(ErrorCode.INVALID_RESOLUTION, resolution)

    long_side, short_side = max(width, height), min(width, height)
    if long_side > MAX_LONG_SIDE or short_side > MAX_SHORT_SIDE:
        raise TranscodeError.from_code(
            ErrorCode.RESOLUTION_TOO_HIGH,
            f"{resolution} exceeds {MAX_LONG_SIDE}x{MAX_SHORT_SIDE}",
        )
    if long_side < MIN_LONG_SIDE or short_side < MIN_SHORT_SIDE:
        raise TranscodeError.from_code(
            ErrorCode.RESOLUTION_TOO_LOW,
            f"{resolution} is below {MIN_LONG_SIDE}x{MIN_SHORT_SIDE}",
        )


def validate_resolutions(tiers: Sequence[QualityTier]) -> None:
    for tier in tiers:
        validate_resolution(tier)


def validate_config(config: TranscodeConfig, fetcher: Optional[RemoteFetcher]) -> None:
    """
    Reject configurations that can never run.

    Raises:
        TranscodeError: validation category
    """
    if not config.input:
        raise TranscodeError(ErrorCategory.VALIDATION, "Input path is required", "", 1)
    if not config.output:
        raise TranscodeError(ErrorCategory.VALIDATION, "Output path is required", "", 2)
    if is_remote_url(config.input) and not config.stream_from_url and fetcher is None:
        raise TranscodeError(
            ErrorCategory.VALIDATION, "Downloader is required for remote input", "", 3
        )
    if config.segment_duration <= 0:
        raise TranscodeError(
            ErrorCategory.VALIDATION,
            "Segment duration must be positive",
            f"Value: {config.segment_duration}",
            4,
        )
    if (
        config.output_type == OutputType.HLS
        and not config.auto_resolutions
        and not config.resolutions
    ):
        raise TranscodeError(ErrorCategory.VALIDATION, "At least one resolution is required", "", 6)


class TranscodeEngine:
    """
    Orchestrates a single transcode.

    Args:
        config: Run configuration; validated here
        progress: Optional progress reporter shared with the caller
        fetcher: Required when the input is a URL that is not streamed
        probe: ffprobe wrapper (built from ``config.ffprobe_path`` if omitted)
        runner: ffmpeg process runner
        transport: httpx transport for the stream reachability check
        disk_usage: ``shutil.disk_usage`` compatible callable

    Raises:
        TranscodeError: validation category when the configuration is unusable
    """

    def __init__(
        self,
        config: TranscodeConfig,
        progress: Optional[ProgressReporter] = None,
        fetcher: Optional[RemoteFetcher] = None,
        probe: Optional[MediaProbe] = None,
        runner: Optional[FFmpegRunner] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        disk_usage: Callable = shutil.disk_usage
    ):
        validate_config(config, fetcher)

        self.config = config
        self.progress = progress
        self.fetcher = fetcher
        self.transport = transport
        self.disk_usage = disk_usage
        self.state = EngineState.CREATED

        self.probe = probe or MediaProbe(config.ffprobe_path)
        runner = runner or FFmpegRunner()
        self.preflight = EncoderPreflight(config.ffmpeg_path)
        self.hls_builder = HLSBuilder(config.ffmpeg_path, probe=self.probe, runner=runner)
        self.mp4_transcoder = MP4Transcoder(config.ffmpeg_path, probe=self.probe, runner=runner)

    @classmethod
    def create(
        cls,
        config: TranscodeConfig,
        progress: Optional[ProgressReporter] = None
    ) -> "TranscodeEngine":
        """
        Engine with default collaborators: a fetcher for remote inputs and,
        when ``config.progress_file`` is set and no reporter is given, a
        reporter writing that file.
        """
        fetcher = None
        if is_remote_url(config.input) and not config.stream_from_url:
            fetcher = RemoteFetcher()
        if progress is None and config.progress_file:
            progress = ProgressReporter(
                throttle=config.progress_throttle,
                progress_file=config.progress_file,
                file_format=config.progress_format,
            )
        return cls(config, progress=progress, fetcher=fetcher)

    def _set_state(self, state: EngineState) -> None:
        logger.debug(f"[Engine] {self.state.value} -> {state.value}")
        self.state = state

    @staticmethod
    def _check_cancelled(cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise cancelled_error("Transcode cancelled")

    async def run(self, cancel_event: Optional[asyncio.Event] = None) -> Path:
        """
        Execute the run and return the master playlist (HLS) or output file (MP4).

        Setting ``cancel_event`` aborts in-flight network requests and stops
        ffmpeg; partially written output is left in place.

        Raises:
            TranscodeError: for every failure, including cancellation
        """
        config = self.config.model_copy()
        try:
            result = await self._run(config, cancel_event)
        except TranscodeError as e:
            self._set_state(EngineState.FAILED)
            logger.error(f"[Engine] Transcode failed: {e}", extra={"error": e.to_dict()})
            if self.progress is not None:
                self.progress.close()
            raise
        except asyncio.CancelledError:
            self._set_state(EngineState.FAILED)
            if self.progress is not None:
                self.progress.close()
            raise
        except OSError as e:
            self._set_state(EngineState.FAILED)
            if self.progress is not None:
                self.progress.close()
            if is_no_space(e):
                raise TranscodeError.from_code(ErrorCode.INSUFFICIENT_DISK_SPACE, str(e)) from e
            raise TranscodeError.wrap(e, ErrorCategory.SYSTEM, "Unexpected system error", 99) from e

        self._set_state(EngineState.DONE)
        if self.progress is not None:
            self.progress.complete()
        logger.info(f"[Engine] Transcode finished: {result}")
        return result

    async def _run(self, config: TranscodeConfig, cancel_event: Optional[asyncio.Event]) -> Path:
        self._set_state(EngineState.VALIDATING)
        self._check_cancelled(cancel_event)
        logger.info(
            f"[Engine] Starting {config.output_type.value} transcode of {config.input}",
            extra={"output": config.output, "remote": is_remote_url(config.input)},
        )

        self._set_state(EngineState.RESOLVING_INPUT)
        resolver = InputResolver(
            config, fetcher=self.fetcher, transport=self.transport, disk_usage=self.disk_usage
        )
        resolved = await resolver.resolve(self.progress, cancel_event)
        self._check_cancelled(cancel_event)
        logger.info(f"[Engine] Input resolved ({resolved.mode.value}): {resolved.locator}")

        media_info: Optional[MediaInfo] = None
        if config.output_type == OutputType.HLS and config.auto_resolutions:
            self._set_state(EngineState.PROBING_RESOLUTION)
            media_info = await run_cancellable(
                self.probe.probe(resolved.locator), cancel_event=cancel_event, what="probe"
            )
            logger.info(f"[Engine] Source resolution {media_info.width}x{media_info.height}")

            self._set_state(EngineState.BUILDING_LADDER)
            ladder = generate_ladder(media_info.width, media_info.height)
            config = config.model_copy(update={"resolutions": ladder})
            logger.info(f"[Engine] Generated ladder: {format_ladder(ladder)}")

        self._set_state(EngineState.DISPATCHING)
        if config.output_type == OutputType.HLS:
            return await self._dispatch_hls(config, resolved, media_info, cancel_event)
        return await self._dispatch_mp4(config, resolved, cancel_event)

    async def _dispatch_hls(
        self,
        config: TranscodeConfig,
        resolved: ResolvedInput,
        media_info: Optional[MediaInfo],
        cancel_event: Optional[asyncio.Event]
    ) -> Path:
        validate_resolutions(config.resolutions)
        await run_cancellable(self.preflight.check(), cancel_event=cancel_event, what="preflight")

        output_dir = Path(config.output)
        self._prepare_output_dir(output_dir, config.min_output_space)

        return await self.hls_builder.build(
            resolved.locator,
            output_dir,
            config.resolutions,
            segment_duration=config.segment_duration,
            playlist_type=config.playlist_type,
            extra_args=config.extra_args,
            progress=self.progress,
            cancel_event=cancel_event,
            include_audio=media_info.has_audio if media_info is not None else True,
        )

    async def _dispatch_mp4(
        self,
        config: TranscodeConfig,
        resolved: ResolvedInput,
        cancel_event: Optional[asyncio.Event]
    ) -> Path:
        await run_cancellable(self.preflight.check(), cancel_event=cancel_event, what="preflight")

        output_path = Path(config.output)
        check_free_space(output_path.parent, config.min_download_space, self.disk_usage)

        return await self.mp4_transcoder.transcode(
            resolved.locator,
            output_path,
            extra_args=config.extra_args,
            allow_overwrite=config.allow_overwrite,
            progress=self.progress,
            cancel_event=cancel_event,
        )

    def _prepare_output_dir(self, output_dir: Path, required_space: int) -> None:
        """Create the HLS output directory and make sure it is writable and has room."""
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise TranscodeError.from_code(ErrorCode.WRITE_PERMISSION_DENIED, str(e)) from e
        except OSError as e:
            raise TranscodeError.wrap(
                e, ErrorCategory.SYSTEM, "Failed to create output directory", 15
            ) from e

        check_free_space(output_dir, required_space, self.disk_usage)

        probe_file = output_dir / WRITE_PROBE_NAME
        try:
            probe_file.write_bytes(b"")
            probe_file.unlink()
        except PermissionError as e:
            raise TranscodeError.from_code(ErrorCode.WRITE_PERMISSION_DENIED, str(e)) from e
        except OSError as e:
            raise TranscodeError.from_code(ErrorCode.OUTPUT_PATH_NOT_ACCESSIBLE, str(e)) from e
