"""
FFmpeg subprocess lifecycle.

One runner invocation owns one ffmpeg process: it spawns it, reads stderr
in a single reader task, watches the cancel event, and joins the reader
with the process exit before returning.
"""

import asyncio
import codecs
import logging
import re
import signal
import subprocess
import sys
from collections import deque
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Deque, Dict, List, Optional

from .constants import GRACEFUL_STOP_TIMEOUT, STDERR_TAIL_LINES, TERMINATE_TIMEOUT

logger = logging.getLogger(__name__)
ffmpeg_logger = logging.getLogger("hlspresso.ffmpeg")

# ffmpeg separates its stats lines with carriage returns
_LINE_SPLIT = re.compile(r"[\r\n]")

FRAME_PATTERN = re.compile(r"frame=\s*(\d+)")
TIME_PATTERN = re.compile(r"time=\s*(-?\d+):(\d+):(\d+(?:\.\d+)?)")


@dataclass
class RunResult:
    return_code: int
    error_output: str
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return self.return_code == 0 and not self.cancelled


def parse_frame(line: str) -> Optional[int]:
    match = FRAME_PATTERN.search(line)
    if match:
        return int(match.group(1))
    return None


def parse_time(line: str) -> Optional[float]:
    """Elapsed seconds from a ``time=HH:MM:SS.ss`` stats field."""
    match = TIME_PATTERN.search(line)
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    elapsed = int(hours) * 3600 + int(minutes) * 60 + float(seconds)
    return max(0.0, elapsed)


async def iter_lines(stream: asyncio.StreamReader, chunk_size: int = 4096) -> AsyncIterator[str]:
    """Yield text lines split on either newline or carriage return."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    while True:
        chunk = await stream.read(chunk_size)
        if not chunk:
            buffer += decoder.decode(b"", final=True)
            break
        buffer += decoder.decode(chunk)
        parts = _LINE_SPLIT.split(buffer)
        buffer = parts.pop()
        for part in parts:
            if part.strip():
                yield part
    if buffer.strip():
        yield buffer


class FFmpegRunner:
    """Runs a prepared ffmpeg command."""

    async def spawn(self, cmd: List[str]) -> asyncio.subprocess.Process:
        """Start ffmpeg. OSError (e.g. FileNotFoundError) propagates to the caller."""
        kwargs: Dict[str, Any] = {
            "stdin": asyncio.subprocess.DEVNULL,
            "stdout": asyncio.subprocess.DEVNULL,
            "stderr": asyncio.subprocess.PIPE,
        }
        if sys.platform == "win32":
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        return await asyncio.create_subprocess_exec(*cmd, **kwargs)

    async def run(
        self,
        cmd: List[str],
        on_line: Optional[Callable[[str], None]] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> RunResult:
        """
        Run ``cmd`` to completion.

        Every stderr line is logged at DEBUG on the ``hlspresso.ffmpeg`` logger
        and handed to ``on_line``. Setting ``cancel_event`` stops ffmpeg
        gracefully; cancelling the calling task does the same and then
        re-raises CancelledError. The process exit is always awaited.

        Raises:
            OSError: if the process cannot be started
        """
        logger.info(f"[Runner] Running FFmpeg: {' '.join(cmd[:12])}...")
        process = await self.spawn(cmd)

        tail: Deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        cancelled = False

        async def read_stderr():
            async for line in iter_lines(process.stderr):
                tail.append(line)
                ffmpeg_logger.debug(line)
                if on_line is not None:
                    try:
                        on_line(line)
                    except Exception as e:
                        logger.warning(f"[Runner] Line handler error: {e}")

        async def watch_cancel():
            nonlocal cancelled
            if cancel_event is None:
                return
            await cancel_event.wait()
            if process.returncode is None:
                cancelled = True
                logger.info("[Runner] Cancellation requested, terminating FFmpeg")
                await self.terminate(process)

        reader_task = asyncio.create_task(read_stderr())
        watch_task = asyncio.create_task(watch_cancel())

        try:
            await asyncio.gather(reader_task, process.wait())
        except asyncio.CancelledError:
            cancelled = True
            await self.terminate(process)
            reader_task.cancel()
            await asyncio.gather(reader_task, return_exceptions=True)
            raise
        finally:
            watch_task.cancel()
            await asyncio.gather(watch_task, return_exceptions=True)

        return_code = process.returncode if process.returncode is not None else -1
        if cancel_event is not None and cancel_event.is_set():
            cancelled = True

        return RunResult(
            return_code=return_code,
            error_output="\n".join(tail),
            cancelled=cancelled,
        )

    async def terminate(self, process: asyncio.subprocess.Process) -> None:
        """
        Stop ffmpeg: SIGINT (CTRL_BREAK on Windows) so it can finalize,
        then SIGTERM, then SIGKILL. Returns once the process has exited.
        """
        if process.returncode is not None:
            return

        try:
            if sys.platform == "win32":
                process.send_signal(signal.CTRL_BREAK_EVENT)
            else:
                process.send_signal(signal.SIGINT)
        except (ProcessLookupError, OSError):
            pass

        try:
            await asyncio.wait_for(process.wait(), timeout=GRACEFUL_STOP_TIMEOUT)
            logger.debug("[Runner] FFmpeg terminated gracefully")
            return
        except asyncio.TimeoutError:
            pass

        try:
            process.terminate()
            await asyncio.wait_for(process.wait(), timeout=TERMINATE_TIMEOUT)
            logger.debug("[Runner] FFmpeg terminated with SIGTERM")
            return
        except (asyncio.TimeoutError, ProcessLookupError, OSError):
            pass

        try:
            process.kill()
        except (ProcessLookupError, OSError):
            pass
        await process.wait()
        logger.warning("[Runner] FFmpeg killed forcefully")
