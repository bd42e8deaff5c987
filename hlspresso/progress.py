"""
Progress reporting for a single transcode run.

A ProgressReporter tracks a counter against a total and pushes snapshots to
any number of asyncio subscribers, optionally mirroring the state to a file.
All state mutation, emission and file writes happen under one lock, so
writers on other threads (or the event loop) see a consistent state.
"""

import asyncio
import json
import logging
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class ProgressStatus(str, Enum):
    INITIALIZED = "initialized"
    STARTED = "started"
    PROCESSING = "processing"
    COMPLETED = "completed"


class ProgressFileFormat(str, Enum):
    TEXT = "text"
    JSON = "json"


@dataclass(frozen=True)
class ProgressState:
    """Immutable progress snapshot."""
    status: ProgressStatus = ProgressStatus.INITIALIZED
    current: int = 0
    total: int = 0
    percentage: float = 0.0
    step: str = ""
    stage: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "current": self.current,
            "total": self.total,
            "percentage": self.percentage,
            "step": self.step,
            "stage": self.stage,
            "timestamp": self.timestamp.isoformat().replace("+00:00", "Z"),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def compute_percentage(current: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return min(100.0, max(0.0, current / total * 100.0))


_CLOSED = object()


class ProgressSubscription:
    """Async iterator over snapshots; finishes when the reporter completes."""

    def __init__(self, reporter: "ProgressReporter", loop: asyncio.AbstractEventLoop):
        self._reporter = reporter
        self._loop = loop
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._finished = False

    def _push(self, item: Any) -> bool:
        """Hand an item to the subscriber's loop. Returns False if the loop is gone."""
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
            return True
        except RuntimeError:
            return False

    def __aiter__(self) -> "ProgressSubscription":
        return self

    async def __anext__(self) -> ProgressState:
        if self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._finished = True
            raise StopAsyncIteration
        return item

    async def collect(self) -> List[ProgressState]:
        """Drain the subscription until the reporter completes."""
        return [state async for state in self]

    def close(self) -> None:
        self._reporter._unsubscribe(self)
        self._push(_CLOSED)


class ProgressReporter:
    """
    Thread-safe progress tracker.

    Args:
        throttle: Minimum seconds between emissions from update/increment.
            start and complete always emit.
        progress_file: Optional file overwritten on every state change.
        file_format: "text" writes the bare percentage ("55.00"),
            "json" writes the serialized state.
    """

    def __init__(
        self,
        throttle: float = 0.0,
        progress_file: Optional[Union[str, Path]] = None,
        file_format: Union[str, ProgressFileFormat] = ProgressFileFormat.TEXT
    ):
        self.throttle = max(0.0, throttle)
        self.progress_file = Path(progress_file) if progress_file else None
        self.file_format = ProgressFileFormat(file_format)

        self._lock = threading.Lock()
        self._state = ProgressState()
        self._subscribers: List[ProgressSubscription] = []
        self._closed = False
        self._last_emit = 0.0

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def snapshot(self) -> ProgressState:
        with self._lock:
            return self._state

    def subscribe(self) -> ProgressSubscription:
        """
        Subscribe from inside a running event loop.

        A subscription made after completion is already finished.
        """
        subscription = ProgressSubscription(self, asyncio.get_running_loop())
        with self._lock:
            if self._closed:
                subscription._push(_CLOSED)
            else:
                self._subscribers.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: ProgressSubscription) -> None:
        with self._lock:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)

    def start(self, total: int) -> None:
        """Begin a phase with a known total; current resets to 0."""
        with self._lock:
            if self._closed:
                return
            total = max(0, int(total))
            self._state = ProgressState(
                status=ProgressStatus.STARTED,
                current=0,
                total=total,
                percentage=0.0,
                step=self._state.step,
                stage=self._state.stage,
            )
            self._emit_locked(force=True)

    def update(self, current: int, step: str = "", stage: str = "") -> None:
        """Set the counter, clamped to [0, total]. Never moves backwards."""
        with self._lock:
            self._update_locked(current, step, stage)

    def increment(self, step: str = "", stage: str = "") -> None:
        with self._lock:
            self._update_locked(self._state.current + 1, step, stage)

    def _update_locked(self, current: int, step: str, stage: str) -> None:
        if self._closed:
            return
        total = self._state.total
        current = min(max(0, int(current)), total)
        current = max(current, self._state.current)
        self._state = replace(
            self._state,
            status=ProgressStatus.PROCESSING,
            current=current,
            percentage=compute_percentage(current, total),
            step=step,
            stage=stage,
            timestamp=datetime.now(timezone.utc),
        )
        self._emit_locked(force=False)

    def complete(self) -> None:
        """Finalize at 100% and close every subscription. Later calls are no-ops."""
        with self._lock:
            if self._closed:
                return
            self._state = replace(
                self._state,
                status=ProgressStatus.COMPLETED,
                current=self._state.total,
                percentage=100.0,
                timestamp=datetime.now(timezone.utc),
            )
            self._emit_locked(force=True)
            self._close_locked()

    def close(self) -> None:
        """End every subscription without completing, e.g. after a failed run."""
        with self._lock:
            if not self._closed:
                self._close_locked()

    def _close_locked(self) -> None:
        self._closed = True
        for subscription in self._subscribers:
            subscription._push(_CLOSED)
        self._subscribers.clear()

    def _emit_locked(self, force: bool) -> None:
        state = self._state
        if self.progress_file is not None:
            self._write_file(state)

        now = time.monotonic()
        if not force and self.throttle and now - self._last_emit < self.throttle:
            return
        self._last_emit = now

        dead = [s for s in self._subscribers if not s._push(state)]
        for subscription in dead:
            self._subscribers.remove(subscription)

    def _write_file(self, state: ProgressState) -> None:
        if self.file_format == ProgressFileFormat.JSON:
            content = state.to_json()
        else:
            content = f"{state.percentage:.2f}"
        try:
            self.progress_file.write_text(content, encoding="utf-8")
        except OSError as e:
            logger.warning(f"[Progress] Failed to write progress file {self.progress_file}: {e}")

