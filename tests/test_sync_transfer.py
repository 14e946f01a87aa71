"""Tests for the transfer coordinator."""

import asyncio

import pytest

from pymonaca.sync.transfer import (
    TransferCoordinator,
    TransferDirection,
    TransferProgress,
    TransferTask,
)


def _tasks(*paths: str) -> list[TransferTask]:
    return [TransferTask(path, TransferDirection.UPLOAD) for path in paths]


class TestRunBatch:
    """Tests for TransferCoordinator.run_batch."""

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        """An empty batch succeeds without calling anything."""
        calls = []

        async def transfer_one(task):
            calls.append(task)

        events = []
        result = await TransferCoordinator().run_batch([], transfer_one, events.append)

        assert result.ok
        assert result.total == 0
        assert result.completed == 0
        assert calls == []
        assert events == []

    @pytest.mark.asyncio
    async def test_all_transfers_run_concurrently(self):
        """Every transfer is in flight before any of them finishes."""
        in_flight = 0
        peak = 0
        release = asyncio.Event()

        async def transfer_one(task):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            if in_flight == 3:
                release.set()
            await release.wait()
            in_flight -= 1

        result = await TransferCoordinator().run_batch(
            _tasks("/a", "/b", "/c"), transfer_one
        )

        assert result.ok
        assert peak == 3
        assert sorted(result.succeeded) == ["/a", "/b", "/c"]

    @pytest.mark.asyncio
    async def test_progress_in_completion_order(self):
        """Progress events follow completion order with a running count."""
        delays = {"/a": 0.03, "/b": 0.0, "/c": 0.015}

        async def transfer_one(task):
            await asyncio.sleep(delays[task.path])

        events: list[TransferProgress] = []
        result = await TransferCoordinator().run_batch(
            _tasks("/a", "/b", "/c"), transfer_one, events.append
        )

        assert result.ok
        assert [event.path for event in events] == ["/b", "/c", "/a"]
        assert [event.completed for event in events] == [1, 2, 3]
        assert all(event.total == 3 for event in events)

    @pytest.mark.asyncio
    async def test_failure_still_reports_siblings(self):
        """One failing task fails the batch, but siblings settle and report."""
        error = RuntimeError("disk full")

        async def transfer_one(task):
            if task.path == "/b":
                raise error
            await asyncio.sleep(0.01)

        events: list[TransferProgress] = []
        result = await TransferCoordinator().run_batch(
            _tasks("/a", "/b", "/c"), transfer_one, events.append
        )

        assert not result.ok
        assert result.error is error
        assert result.failed_path == "/b"
        assert result.completed == 3
        assert sorted(result.succeeded) == ["/a", "/c"]
        assert len(events) == 3
        failed = [event for event in events if not event.ok]
        assert [event.path for event in failed] == ["/b"]
        assert failed[0].error is error

    @pytest.mark.asyncio
    async def test_first_failure_wins(self):
        """The earliest failure in completion order becomes the batch error."""
        first = ValueError("first")
        second = ValueError("second")

        async def transfer_one(task):
            if task.path == "/slow":
                await asyncio.sleep(0.02)
                raise second
            raise first

        result = await TransferCoordinator().run_batch(
            _tasks("/slow", "/fast"), transfer_one
        )

        assert result.error is first
        assert result.failed_path == "/fast"

    @pytest.mark.asyncio
    async def test_raise_for_error(self):
        async def transfer_one(task):
            raise OSError("boom")

        result = await TransferCoordinator().run_batch(_tasks("/a"), transfer_one)

        with pytest.raises(OSError, match="boom"):
            result.raise_for_error()

    @pytest.mark.asyncio
    async def test_max_concurrency_bounds_in_flight(self):
        in_flight = 0
        peak = 0

        async def transfer_one(task):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.005)
            in_flight -= 1

        coordinator = TransferCoordinator(max_concurrency=2)
        result = await coordinator.run_batch(
            _tasks("/a", "/b", "/c", "/d", "/e"), transfer_one
        )

        assert result.ok
        assert result.completed == 5
        assert peak == 2

    def test_invalid_max_concurrency(self):
        with pytest.raises(ValueError):
            TransferCoordinator(max_concurrency=0)

    @pytest.mark.asyncio
    async def test_raising_callback_waits_for_all_transfers(self):
        """A failing progress callback never leaves transfers in flight."""
        finished = []

        async def transfer_one(task):
            if task.path == "/slow":
                await asyncio.sleep(0.02)
            finished.append(task.path)

        def progress_callback(event):
            raise RuntimeError("display broken")

        with pytest.raises(RuntimeError, match="display broken"):
            await TransferCoordinator().run_batch(
                _tasks("/fast", "/slow"), transfer_one, progress_callback
            )

        assert sorted(finished) == ["/fast", "/slow"]


class TestStreamBatch:
    """Tests for TransferCoordinator.stream_batch."""

    @pytest.mark.asyncio
    async def test_stream_yields_every_event(self):
        async def transfer_one(task):
            await asyncio.sleep(0)

        stream = TransferCoordinator().stream_batch(
            _tasks("/a", "/b"), transfer_one
        )
        events = [event async for event in stream]

        assert sorted(event.path for event in events) == ["/a", "/b"]
        assert stream.result is not None
        assert stream.result.ok
        assert stream.result.completed == 2

    @pytest.mark.asyncio
    async def test_stream_result_carries_failure(self):
        async def transfer_one(task):
            if task.path == "/bad":
                raise RuntimeError("nope")

        stream = TransferCoordinator().stream_batch(
            _tasks("/ok", "/bad"), transfer_one
        )
        events = [event async for event in stream]

        assert len(events) == 2
        assert not stream.result.ok
        assert stream.result.failed_path == "/bad"

    @pytest.mark.asyncio
    async def test_stream_empty_batch(self):
        async def transfer_one(task):
            raise AssertionError("not called")

        stream = TransferCoordinator().stream_batch([], transfer_one)

        assert [event async for event in stream] == []
        assert stream.result.total == 0

    @pytest.mark.asyncio
    async def test_leaving_context_early_waits_for_transfers(self):
        finished = []

        async def transfer_one(task):
            if task.path == "/slow":
                await asyncio.sleep(0.02)
            finished.append(task.path)

        async with TransferCoordinator().stream_batch(
            _tasks("/fast", "/slow"), transfer_one
        ) as stream:
            async for event in stream:
                assert event.path == "/fast"
                break

        assert sorted(finished) == ["/fast", "/slow"]
        assert stream.result.completed == 2

    @pytest.mark.asyncio
    async def test_wait_after_early_break(self):
        async def transfer_one(task):
            await asyncio.sleep(0.01 if task.path == "/slow" else 0)

        stream = TransferCoordinator().stream_batch(
            _tasks("/fast", "/slow"), transfer_one
        )
        async for _event in stream:
            break

        result = await stream.wait()

        assert result.ok
        assert sorted(result.succeeded) == ["/fast", "/slow"]

    @pytest.mark.asyncio
    async def test_iteration_stops_after_exhaustion(self):
        async def transfer_one(task):
            pass

        stream = TransferCoordinator().stream_batch(_tasks("/a"), transfer_one)
        first = [event async for event in stream]
        second = [event async for event in stream]

        assert [event.path for event in first] == ["/a"]
        assert second == []
