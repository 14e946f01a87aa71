"""Concurrent execution of file transfer batches.

A batch fans out one asyncio task per file and fans back in once every
task has settled. The batch succeeds only if every transfer succeeded; the
first failure (in completion order) becomes the batch error. Failing tasks
never cancel their siblings.
"""

import asyncio
import logging
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class TransferDirection(str, Enum):
    """Direction of a single file transfer."""

    UPLOAD = "upload"
    """Local file to remote project"""

    DOWNLOAD = "download"
    """Remote project file to local disk"""


@dataclass(frozen=True)
class TransferTask:
    """One file to move in a batch."""

    path: str
    """Project path of the file"""

    direction: TransferDirection
    """Upload or download"""


@dataclass(frozen=True)
class TransferProgress:
    """Emitted once for every task of a batch when it settles."""

    path: str
    """Path of the task that just settled"""

    completed: int
    """Number of settled tasks so far, including this one"""

    total: int
    """Number of tasks in the batch"""

    error: Optional[BaseException] = None
    """Failure of this task, if it failed"""

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchResult:
    """Outcome of a transfer batch."""

    total: int
    completed: int = 0
    succeeded: list[str] = field(default_factory=list)
    error: Optional[BaseException] = None
    """First failure in completion order"""
    failed_path: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        """Re-raise the batch error, if any."""
        if self.error is not None:
            raise self.error


ProgressCallback = Callable[[TransferProgress], None]
TransferFunc = Callable[[TransferTask], Awaitable[Any]]


class TransferCoordinator:
    """Runs batches of transfers concurrently on the current event loop."""

    def __init__(self, max_concurrency: Optional[int] = None):
        """Initialize transfer coordinator.

        Args:
            max_concurrency: Upper bound of transfers in flight at once
                (None dispatches every task immediately)
        """
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency

    async def run_batch(
        self,
        tasks: Iterable[TransferTask],
        transfer_one: TransferFunc,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """Execute a batch of transfers and wait until all have settled.

        Args:
            tasks: Transfers to run
            transfer_one: Coroutine function performing a single transfer
            progress_callback: Called with a TransferProgress as each task
                settles, in completion order

        Returns:
            BatchResult; ``result.ok`` is False if any transfer failed

        Raises:
            Exception: Whatever progress_callback raised, once all transfers
                have settled

        Examples:
            >>> coordinator = TransferCoordinator()
            >>> result = await coordinator.run_batch(tasks, operations.transfer)
            >>> result.raise_for_error()
        """
        task_list = list(tasks)
        result = BatchResult(total=len(task_list))
        if not task_list:
            return result

        semaphore = (
            asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None
        )
        logger.debug("Starting batch of %d transfer(s)", result.total)

        async def run_one(task: TransferTask) -> None:
            error: Optional[BaseException] = None
            try:
                if semaphore is not None:
                    async with semaphore:
                        await transfer_one(task)
                else:
                    await transfer_one(task)
            except Exception as e:
                error = e

            # Runs on the loop thread only, so the counter needs no lock
            result.completed += 1
            if error is None:
                result.succeeded.append(task.path)
            else:
                logger.debug("Transfer of %s failed: %s", task.path, error)
                if result.error is None:
                    result.error = error
                    result.failed_path = task.path

            if progress_callback is not None:
                progress_callback(
                    TransferProgress(
                        path=task.path,
                        completed=result.completed,
                        total=result.total,
                        error=error,
                    )
                )

        outcomes = await asyncio.gather(
            *(run_one(task) for task in task_list), return_exceptions=True
        )

        logger.debug(
            "Batch finished: %d/%d succeeded",
            len(result.succeeded),
            result.total,
        )
        # A raising progress callback surfaces only after every task settled
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        return result

    def stream_batch(
        self, tasks: Iterable[TransferTask], transfer_one: TransferFunc
    ) -> "BatchStream":
        """Run a batch and expose its progress events as an async iterator."""
        return BatchStream(self, list(tasks), transfer_one)


class BatchStream:
    """Async iterator over the progress events of one batch.

    Events are funneled through a single queue with one consumer. Once the
    iteration ends, :attr:`result` holds the BatchResult.

    Used as an async context manager, leaving the block waits for every
    transfer to settle, even when the loop was left early. Plain iteration
    that stops early leaves the remaining transfers running in the
    background; call :meth:`wait` to join them.

    Examples:
        >>> async with coordinator.stream_batch(tasks, operations.transfer) as stream:
        ...     async for event in stream:
        ...         print(f"{event.completed}/{event.total} {event.path}")
        >>> stream.result.raise_for_error()
    """

    def __init__(
        self,
        coordinator: TransferCoordinator,
        tasks: list[TransferTask],
        transfer_one: TransferFunc,
    ):
        self._coordinator = coordinator
        self._tasks = tasks
        self._transfer_one = transfer_one
        self._queue: Optional[asyncio.Queue[Optional[TransferProgress]]] = None
        self._runner: Optional[asyncio.Future[None]] = None
        self._exhausted = False
        self.result: Optional[BatchResult] = None

    def _start(self) -> None:
        if self._runner is None:
            self._queue = asyncio.Queue()
            self._runner = asyncio.ensure_future(self._drive())

    async def _drive(self) -> None:
        assert self._queue is not None
        try:
            self.result = await self._coordinator.run_batch(
                self._tasks, self._transfer_one, self._queue.put_nowait
            )
        finally:
            self._queue.put_nowait(None)

    def __aiter__(self) -> "BatchStream":
        self._start()
        return self

    async def __anext__(self) -> TransferProgress:
        self._start()
        assert self._queue is not None
        if self._exhausted:
            raise StopAsyncIteration
        event = await self._queue.get()
        if event is None:
            self._exhausted = True
            await self.wait()
            raise StopAsyncIteration
        return event

    async def wait(self) -> BatchResult:
        """Wait until every transfer of the batch has settled."""
        self._start()
        assert self._runner is not None
        await self._runner
        assert self.result is not None
        return self.result

    async def __aenter__(self) -> "BatchStream":
        self._start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        # Transfers are never cancelled, even if the consumer stops early
        await self.wait()
