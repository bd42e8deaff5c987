"""
Terminal progress display for the command line.
"""

import logging
import sys
from typing import Optional, TextIO

from tqdm import tqdm

from .progress import ProgressState, ProgressStatus, ProgressSubscription

logger = logging.getLogger(__name__)

BAR_FORMAT = "{desc}: {percentage:3.0f}%|{bar}| [{elapsed}<{remaining}]"


class ConsoleProgress:
    """
    Draws a reporter's progress as a tqdm bar on stderr.

    Each phase (download, encode) gets its own bar; a new phase starts
    when the reporter is restarted or its step changes. Every update is
    also logged at DEBUG.
    """

    def __init__(self, file: Optional[TextIO] = None, disable: bool = False):
        self.file = file or sys.stderr
        self.disable = disable
        self.bar: Optional[tqdm] = None
        self.step = None

    def _open(self, state: ProgressState) -> tqdm:
        return tqdm(
            total=100,
            desc=state.stage or state.step or "Working",
            file=self.file,
            disable=self.disable,
            bar_format=BAR_FORMAT,
            leave=True,
        )

    def show(self, state: ProgressState) -> None:
        logger.debug(
            f"[Progress] {state.step or state.status.value}: {state.percentage:.2f}%",
            extra={"progress": state.to_dict()},
        )
        if self.bar is None or state.status == ProgressStatus.STARTED:
            # start() carries the previous phase's step, so it is not recorded
            self.close()
            self.bar = self._open(state)
            self.step = None
        elif state.step and self.step and state.step != self.step:
            self.close()
            self.bar = self._open(state)
        if state.status != ProgressStatus.STARTED and state.step:
            self.step = state.step
        if state.stage:
            self.bar.set_description(state.stage, refresh=False)
        self.bar.n = state.percentage
        self.bar.refresh()

    def close(self) -> None:
        if self.bar is not None:
            self.bar.close()
            self.bar = None

    async def render(self, subscription: ProgressSubscription) -> None:
        """Draw every snapshot until the subscription ends."""
        try:
            async for state in subscription:
                self.show(state)
        finally:
            self.close()
