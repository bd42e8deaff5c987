"""
Tests for the terminal progress display.
"""

import asyncio
import io

import pytest

from hlspresso.console import ConsoleProgress
from hlspresso.progress import ProgressReporter


@pytest.mark.asyncio
async def test_renders_until_complete():
    reporter = ProgressReporter()
    output = io.StringIO()
    console = ConsoleProgress(file=output)
    render = asyncio.create_task(console.render(reporter.subscribe()))

    reporter.start(10)
    reporter.update(5, "transcoding", "Creating HLS stream")
    reporter.complete()
    await asyncio.wait_for(render, timeout=5)

    text = output.getvalue()
    assert "Creating HLS stream" in text
    assert "100%" in text
    assert console.bar is None


@pytest.mark.asyncio
async def test_each_phase_gets_a_new_bar():
    reporter = ProgressReporter()
    console = ConsoleProgress(file=io.StringIO())
    subscription = reporter.subscribe()

    reporter.start(100)
    reporter.update(100, "downloading", "Downloading file")
    reporter.start(10)
    reporter.update(2, "transcoding", "Creating MP4 file")
    reporter.close()

    bars = []
    async for state in subscription:
        console.show(state)
        bars.append(console.bar)
    console.close()

    # start, download update, restart, encode update
    assert bars[0] is bars[1]
    assert bars[2] is not bars[1]
    assert bars[3] is bars[2]
    assert console.bar is None


@pytest.mark.asyncio
async def test_failed_run_ends_rendering():
    reporter = ProgressReporter()
    console = ConsoleProgress(file=io.StringIO())
    render = asyncio.create_task(console.render(reporter.subscribe()))

    reporter.start(10)
    reporter.update(3, "transcoding", "Creating HLS stream")
    reporter.close()

    await asyncio.wait_for(render, timeout=5)
    assert console.bar is None


def test_disabled_bar_draws_nothing():
    output = io.StringIO()
    console = ConsoleProgress(file=output, disable=True)
    reporter = ProgressReporter()
    reporter.start(4)
    console.show(reporter.snapshot())
    console.close()
    assert output.getvalue() == ""
