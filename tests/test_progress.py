"""
Tests for the progress reporter.
"""

import asyncio
import json
import threading

import pytest

from hlspresso.progress import (
    ProgressFileFormat,
    ProgressReporter,
    ProgressStatus,
    compute_percentage,
)


def test_compute_percentage():
    assert compute_percentage(0, 0) == 0.0
    assert compute_percentage(5, 0) == 0.0
    assert compute_percentage(55, 100) == 55.0
    assert compute_percentage(150, 100) == 100.0


class TestReporterState:
    def test_initial_snapshot(self):
        reporter = ProgressReporter()
        state = reporter.snapshot()
        assert state.status == ProgressStatus.INITIALIZED
        assert state.percentage == 0.0

    def test_start_update_complete(self):
        reporter = ProgressReporter()
        reporter.start(100)
        assert reporter.snapshot().status == ProgressStatus.STARTED

        reporter.update(55, "transcoding", "Creating HLS stream")
        state = reporter.snapshot()
        assert state.status == ProgressStatus.PROCESSING
        assert state.current == 55
        assert state.percentage == 55.0
        assert state.step == "transcoding"
        assert state.stage == "Creating HLS stream"

        reporter.complete()
        state = reporter.snapshot()
        assert state.status == ProgressStatus.COMPLETED
        assert state.current == 100
        assert state.percentage == 100.0
        assert reporter.closed

    def test_update_is_clamped(self):
        reporter = ProgressReporter()
        reporter.start(10)
        reporter.update(50)
        assert reporter.snapshot().current == 10
        assert reporter.snapshot().percentage == 100.0

    def test_update_never_moves_backwards(self):
        reporter = ProgressReporter()
        reporter.start(100)
        reporter.update(60)
        reporter.update(40)
        assert reporter.snapshot().current == 60

    def test_zero_total_reports_zero_percent(self):
        reporter = ProgressReporter()
        reporter.start(0)
        reporter.update(5)
        assert reporter.snapshot().percentage == 0.0

    def test_start_rebases_the_phase(self):
        reporter = ProgressReporter()
        reporter.start(10)
        reporter.update(10)
        reporter.start(200)
        state = reporter.snapshot()
        assert state.current == 0
        assert state.total == 200

    def test_increment_from_threads(self):
        reporter = ProgressReporter()
        reporter.start(400)

        def work():
            for _ in range(100):
                reporter.increment("counting")

        threads = [threading.Thread(target=work) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert reporter.snapshot().current == 400

    def test_complete_is_idempotent(self):
        reporter = ProgressReporter()
        reporter.start(10)
        reporter.complete()
        first = reporter.snapshot()
        reporter.complete()
        reporter.update(3)
        assert reporter.snapshot() == first

    def test_close_without_completing(self):
        reporter = ProgressReporter()
        reporter.start(10)
        reporter.update(4)
        reporter.close()
        assert reporter.closed
        assert reporter.snapshot().status == ProgressStatus.PROCESSING


class TestProgressFile:
    def test_text_format(self, tmp_path):
        path = tmp_path / "progress.txt"
        reporter = ProgressReporter(progress_file=path)

        reporter.start(100)
        assert path.read_text() == "0.00"

        reporter.update(55)
        assert path.read_text() == "55.00"

        reporter.complete()
        assert path.read_text() == "100.00"

    def test_json_format(self, tmp_path):
        path = tmp_path / "progress.json"
        reporter = ProgressReporter(progress_file=path, file_format=ProgressFileFormat.JSON)
        reporter.start(200)
        reporter.update(50, "downloading", "Downloading file")

        data = json.loads(path.read_text())
        assert data["status"] == "processing"
        assert data["current"] == 50
        assert data["total"] == 200
        assert data["percentage"] == 25.0
        assert data["step"] == "downloading"
        assert data["timestamp"].endswith("Z")

    def test_file_written_even_when_throttled(self, tmp_path):
        path = tmp_path / "progress.txt"
        reporter = ProgressReporter(throttle=60.0, progress_file=path)
        reporter.start(100)
        reporter.update(30)
        reporter.update(70)
        assert path.read_text() == "70.00"

    def test_unwritable_file_does_not_raise(self, tmp_path):
        reporter = ProgressReporter(progress_file=tmp_path / "missing" / "progress.txt")
        reporter.start(10)
        reporter.update(5)
        assert reporter.snapshot().current == 5


class TestSubscriptions:
    @pytest.mark.asyncio
    async def test_subscriber_sees_every_update_in_order(self):
        reporter = ProgressReporter()
        subscription = reporter.subscribe()

        reporter.start(4)
        for i in range(1, 5):
            reporter.update(i)
        reporter.complete()

        states = await asyncio.wait_for(subscription.collect(), timeout=5)
        assert [s.current for s in states] == [0, 1, 2, 3, 4, 4]
        assert states[0].status == ProgressStatus.STARTED
        assert states[-1].status == ProgressStatus.COMPLETED
        assert states[-1].percentage == 100.0

    @pytest.mark.asyncio
    async def test_multiple_subscribers(self):
        reporter = ProgressReporter()
        first = reporter.subscribe()
        second = reporter.subscribe()

        reporter.start(2)
        reporter.update(1)
        reporter.complete()

        a = await asyncio.wait_for(first.collect(), timeout=5)
        b = await asyncio.wait_for(second.collect(), timeout=5)
        assert [s.current for s in a] == [s.current for s in b] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_throttle_drops_intermediate_updates(self):
        reporter = ProgressReporter(throttle=60.0)
        subscription = reporter.subscribe()

        reporter.start(100)
        for i in range(1, 100):
            reporter.update(i)
        reporter.complete()

        states = await asyncio.wait_for(subscription.collect(), timeout=5)
        assert states[0].status == ProgressStatus.STARTED
        assert states[-1].status == ProgressStatus.COMPLETED
        assert len(states) == 2

    @pytest.mark.asyncio
    async def test_subscribe_after_completion_is_finished(self):
        reporter = ProgressReporter()
        reporter.start(1)
        reporter.complete()

        subscription = reporter.subscribe()
        states = await asyncio.wait_for(subscription.collect(), timeout=5)
        assert states == []

    @pytest.mark.asyncio
    async def test_close_ends_subscription(self):
        reporter = ProgressReporter()
        subscription = reporter.subscribe()
        reporter.start(10)
        reporter.update(3)
        reporter.close()

        states = await asyncio.wait_for(subscription.collect(), timeout=5)
        assert [s.current for s in states] == [0, 3]
        assert states[-1].status == ProgressStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        reporter = ProgressReporter()
        subscription = reporter.subscribe()
        subscription.close()

        reporter.start(10)
        reporter.update(5)

        states = await asyncio.wait_for(subscription.collect(), timeout=5)
        assert states == []

    @pytest.mark.asyncio
    async def test_updates_from_worker_thread(self):
        reporter = ProgressReporter()
        subscription = reporter.subscribe()

        def work():
            reporter.start(3)
            for i in range(1, 4):
                reporter.update(i)
            reporter.complete()

        await asyncio.get_running_loop().run_in_executor(None, work)
        states = await asyncio.wait_for(subscription.collect(), timeout=5)
        assert [s.current for s in states] == [0, 1, 2, 3, 3]
