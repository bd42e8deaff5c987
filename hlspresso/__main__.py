"""
Command-line entry point.

    hlspresso -i input.mp4 -o out/ --auto-resolutions
    hlspresso -i https://example.com/video.mp4 --download-dir downloads -o out.mp4 -t mp4
"""

import argparse
import asyncio
import logging
import re
import signal
import sys
from enum import IntEnum
from typing import List, Optional

from pydantic import ValidationError

from . import __version__
from .config import LoggingConfig, Settings, TranscodeConfig, load_settings
from .errors import ErrorCategory, TranscodeError
from .logging_setup import configure_logging
from .console import ConsoleProgress
from .progress import ProgressFileFormat, ProgressReporter
from .transcoding.engine import TranscodeEngine
from .transcoding.ladder import classify_resolution
from .transcoding.models import OutputType, PlaylistType, QualityTier

logger = logging.getLogger("hlspresso.cli")

_RESOLUTION_PATTERN = re.compile(r"^(\d+)x(\d+)(?::(\d+)k)?(?::(\d+)k)?$")


class ExitCode(IntEnum):
    SUCCESS = 0
    TRANSCODE_ERROR = 1
    USAGE_ERROR = 2
    INTERRUPTED = 130


def parse_resolution(value: str) -> QualityTier:
    """
    Parse ``WIDTHxHEIGHT[:VIDEOk[:AUDIOk]]``.

    Max rate and buffer size follow the preset proportions (1.07x and 1.5x
    of the video bitrate). Omitted bitrates come from the matching preset.
    """
    match = _RESOLUTION_PATTERN.match(value.strip())
    if not match:
        raise argparse.ArgumentTypeError(
            f"invalid resolution '{value}', expected WIDTHxHEIGHT[:VIDEOk[:AUDIOk]]"
        )
    width, height = int(match.group(1)), int(match.group(2))
    preset = classify_resolution(width, height)
    if match.group(3) is None:
        return preset.tier(width, height)

    video_kbps = int(match.group(3))
    audio = f"{match.group(4)}k" if match.group(4) else preset.audio_bitrate
    return QualityTier(
        width=width,
        height=height,
        video_bitrate=f"{video_kbps}k",
        max_bitrate=f"{int(video_kbps * 1.07 + 0.5)}k",
        buffer_size=f"{int(video_kbps * 1.5 + 0.5)}k",
        audio_bitrate=audio,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hlspresso",
        description="Transcode video to adaptive HLS or MP4 with ffmpeg.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    source = parser.add_argument_group("input")
    source.add_argument("-i", "--input", required=True, help="Input file path or http(s) URL.")
    source.add_argument(
        "--remote", action="store_true",
        help="Input is remote. URLs are detected automatically; kept for compatibility.",
    )
    source.add_argument(
        "--stream", action="store_true",
        help="Let ffmpeg read the URL directly instead of downloading it first.",
    )
    source.add_argument("--download-dir", default=None, help="Directory for downloaded inputs.")
    source.add_argument(
        "--overwrite", action="store_true", help="Overwrite existing downloads and outputs."
    )

    output = parser.add_argument_group("output")
    output.add_argument("-o", "--output", required=True, help="Output directory (hls) or file (mp4).")
    output.add_argument(
        "-t", "--type", dest="output_type", default=OutputType.HLS.value,
        choices=[t.value for t in OutputType], help="Output type.",
    )
    output.add_argument("--hls-segment-duration", type=int, default=None, help="Segment length in seconds.")
    output.add_argument(
        "--hls-playlist-type", default=None,
        choices=[t.value for t in PlaylistType], help="HLS playlist type.",
    )
    output.add_argument(
        "--resolution", dest="resolutions", action="append", type=parse_resolution, default=None,
        help="Ladder tier as WIDTHxHEIGHT[:VIDEOk[:AUDIOk]]. Repeatable.",
    )
    output.add_argument(
        "--auto-resolutions", action="store_true",
        help="Derive the ladder from the probed source resolution.",
    )

    tools = parser.add_argument_group("ffmpeg")
    tools.add_argument("--ffmpeg", dest="ffmpeg_path", default=None, help="Path to ffmpeg.")
    tools.add_argument("--ffprobe", dest="ffprobe_path", default=None, help="Path to ffprobe.")
    tools.add_argument(
        "--ffmpeg-param", dest="extra_args", action="append", default=[],
        help="Extra ffmpeg argument, placed before the output. Repeatable.",
    )

    misc = parser.add_argument_group("misc")
    misc.add_argument("--progress-file", default=None, help="File updated with progress.")
    misc.add_argument(
        "--progress-format", default=ProgressFileFormat.TEXT.value,
        choices=[f.value for f in ProgressFileFormat], help="Progress file format.",
    )
    misc.add_argument(
        "--no-progress", dest="show_progress", action="store_false",
        help="Do not draw the progress bar on stderr.",
    )
    misc.add_argument("--config", default=None, help="Path to a hlspresso.yaml settings file.")
    misc.add_argument(
        "--log-level", default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], help="Logging level.",
    )
    misc.add_argument("--log-format", default=None, choices=["json", "text"], help="Log format.")

    return parser


def build_config(args: argparse.Namespace, settings: Settings) -> TranscodeConfig:
    """Merge parsed arguments over the settings defaults."""
    values = settings.transcode_defaults()
    values.update({
        "input": args.input,
        "output": args.output,
        "output_type": args.output_type,
        "stream_from_url": args.stream,
        "allow_overwrite": args.overwrite,
        "auto_resolutions": args.auto_resolutions,
        "extra_args": args.extra_args,
        "progress_file": args.progress_file,
        "progress_format": args.progress_format,
    })
    optional = {
        "download_dir": args.download_dir,
        "segment_duration": args.hls_segment_duration,
        "playlist_type": args.hls_playlist_type,
        "resolutions": args.resolutions,
        "ffmpeg_path": args.ffmpeg_path,
        "ffprobe_path": args.ffprobe_path,
    }
    values.update({key: value for key, value in optional.items() if value is not None})
    return TranscodeConfig(**values)


def _install_signal_handlers(cancel_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def request_cancel() -> None:
        logger.warning("Interrupt received, cancelling transcode")
        cancel_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_cancel)
        except (NotImplementedError, RuntimeError):
            # Windows event loops do not support add_signal_handler
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(request_cancel))


async def _run(engine: TranscodeEngine, console: ConsoleProgress) -> str:
    cancel_event = asyncio.Event()
    _install_signal_handlers(cancel_event)
    render = asyncio.create_task(console.render(engine.progress.subscribe()))
    try:
        result = await engine.run(cancel_event)
    finally:
        engine.progress.close()
        await render
    return str(result)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_settings(args.config)
    logging_config = LoggingConfig(
        level=args.log_level or settings.logging.level,
        format=args.log_format or settings.logging.format,
        file=settings.logging.file,
    )
    configure_logging(logging_config)

    if args.remote and "://" not in args.input:
        logger.warning("--remote given but the input is not a URL; treating it as a local path")

    try:
        config = build_config(args, settings)
    except ValidationError as e:
        parser.error(str(e))
        return ExitCode.USAGE_ERROR

    try:
        progress = ProgressReporter(
            throttle=config.progress_throttle,
            progress_file=config.progress_file,
            file_format=config.progress_format,
        )
        engine = TranscodeEngine.create(config, progress=progress)
        console = ConsoleProgress(disable=not args.show_progress)
        output = asyncio.run(_run(engine, console))
    except TranscodeError as e:
        logger.critical(f"Transcode failed: {e}", extra={"error": e.to_dict()})
        sys.stderr.write(e.to_json() + "\n")
        if e.category == ErrorCategory.CANCELLED:
            return ExitCode.INTERRUPTED
        return ExitCode.TRANSCODE_ERROR
    except KeyboardInterrupt:
        return ExitCode.INTERRUPTED

    print(output)
    return ExitCode.SUCCESS


if __name__ == "__main__":
    sys.exit(main())
