"""
Small helpers shared across hlspresso components.
"""

import asyncio
import errno
import logging
import shutil
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

from .errors import DEADLINE_EXCEEDED, ErrorCategory, ErrorCode, TranscodeError, cancelled_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NO_SPACE_ERRNOS = (errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC))

_MB = 1024 * 1024


async def run_cancellable(
    awaitable: Awaitable[T],
    cancel_event: Optional[asyncio.Event] = None,
    timeout: Optional[float] = None,
    what: str = "operation"
) -> T:
    """
    Await ``awaitable`` bound to a cancel event and an optional deadline.

    The awaitable is cancelled (and awaited) when the event fires or the
    deadline passes; either case raises a cancellation TranscodeError.
    """
    task = asyncio.ensure_future(awaitable)
    waiters = {task}
    cancel_task = None
    if cancel_event is not None:
        cancel_task = asyncio.ensure_future(cancel_event.wait())
        waiters.add(cancel_task)

    try:
        done, _ = await asyncio.wait(
            waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise
    finally:
        if cancel_task is not None:
            cancel_task.cancel()

    if task in done:
        return task.result()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    if cancel_event is not None and cancel_event.is_set():
        raise cancelled_error(f"{what} cancelled")
    raise cancelled_error(f"{what} exceeded {timeout:.1f}s", deadline=True)


async def run_best_effort(
    awaitable: Awaitable[T],
    default: T,
    cancel_event: Optional[asyncio.Event] = None,
    timeout: Optional[float] = None,
    what: str = "operation"
) -> T:
    """
    Like run_cancellable, but a passed deadline yields ``default``.

    A set cancel event still raises the cancellation error.
    """
    try:
        return await run_cancellable(awaitable, cancel_event, timeout, what)
    except TranscodeError as e:
        if e.category != ErrorCategory.CANCELLED or e.code != DEADLINE_EXCEEDED:
            raise
        logger.warning(f"[Utils] {e.details}, continuing without it")
        return default


def is_no_space(error: BaseException) -> bool:
    return isinstance(error, OSError) and error.errno in _NO_SPACE_ERRNOS


def find_cause(error: BaseException, kind: type) -> Optional[BaseException]:
    """Walk the __cause__/__context__ chain for an exception of ``kind``."""
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        if isinstance(current, kind):
            return current
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return None


def check_free_space(
    directory: Path,
    required: int,
    disk_usage: Callable = shutil.disk_usage
) -> None:
    """
    Raise a disk space error if ``directory`` has less than ``required`` bytes free.

    The nearest existing ancestor is measured when ``directory`` does not
    exist yet. Failing to read usage is logged and ignored.
    """
    target = Path(directory).absolute()
    while not target.exists() and target.parent != target:
        target = target.parent
    try:
        usage = disk_usage(str(target))
    except OSError as e:
        logger.warning(f"Could not read free space for {target}: {e}")
        return
    if usage.free < required:
        raise TranscodeError.from_code(
            ErrorCode.INSUFFICIENT_DISK_SPACE,
            f"Available: {usage.free // _MB} MB, required: {required // _MB} MB",
        )
