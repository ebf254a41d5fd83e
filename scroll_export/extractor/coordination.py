"""
Pipeline Coordination - Channels, Cancellation and Stage Supervision

Building blocks shared by every stage of an export run:

- Channel: bounded async FIFO with explicit close. Senders block while the
  channel is full (backpressure); receivers block while it is empty and stop
  once it is closed and drained.
- CancellationContext: one-way flag holding the first failure of the run.
- StageGroup: starts stages as tasks. The first stage to fail sets the
  context and cancels every sibling; wait() returns only after every stage
  has finished, whatever the outcome.

Stages are expected to call CancellationContext.raise_if_cancelled() at
their poll points; task cancellation covers the ones suspended in a channel
operation or a remote call.
"""

import asyncio
import logging
from collections import deque
from typing import Coroutine, Generic, TypeVar

from scroll_export.utils.errors import CancellationError, ChannelClosed

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Channel(Generic[T]):
    """Bounded many-producer/many-consumer channel that can be closed."""

    def __init__(self, capacity: int, name: str = "channel") -> None:
        if capacity < 1:
            raise ValueError(f"Channel capacity must be >= 1, got {capacity}")
        self.name = name
        self.capacity = capacity
        self._items: deque[T] = deque()
        self._closed = False
        self._changed = asyncio.Condition()

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._items)

    async def send(self, item: T) -> None:
        """Append item, waiting while the channel is full.

        Raises:
            ChannelClosed: If the channel is (or becomes) closed
        """
        async with self._changed:
            await self._changed.wait_for(
                lambda: self._closed or len(self._items) < self.capacity
            )
            if self._closed:
                raise ChannelClosed(f"send on closed channel {self.name!r}")
            self._items.append(item)
            self._changed.notify_all()

    async def receive(self) -> T:
        """Pop the oldest item, waiting while the channel is empty.

        Items buffered before close() are still delivered.

        Raises:
            ChannelClosed: If the channel is closed and drained
        """
        async with self._changed:
            await self._changed.wait_for(lambda: self._closed or bool(self._items))
            if not self._items:
                raise ChannelClosed(f"channel {self.name!r} is closed")
            item = self._items.popleft()
            self._changed.notify_all()
            return item

    async def close(self) -> None:
        """Close the channel and wake every blocked sender and receiver."""
        async with self._changed:
            self._closed = True
            self._changed.notify_all()

    def __aiter__(self) -> "Channel[T]":
        return self

    async def __anext__(self) -> T:
        try:
            return await self.receive()
        except ChannelClosed:
            raise StopAsyncIteration from None


class CancellationContext:
    """Irreversible cancellation flag that retains the first cause."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._cause: BaseException | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def cause(self) -> BaseException | None:
        return self._cause

    def cancel(self, cause: BaseException) -> bool:
        """Cancel the run with cause.

        Returns:
            True if this call triggered cancellation, False if it was already
            cancelled (cause is discarded)
        """
        if self._event.is_set():
            logger.debug("Discarding failure after cancellation: %r", cause)
            return False
        self._cause = cause
        self._event.set()
        return True

    def raise_if_cancelled(self, stage: str) -> None:
        """Poll point: raise CancellationError if the run was cancelled."""
        if self._event.is_set():
            raise CancellationError(stage)

    async def wait(self) -> None:
        await self._event.wait()


class StageGroup:
    """Runs pipeline stages with first-error-wins cancellation."""

    def __init__(self, context: CancellationContext) -> None:
        self.context = context
        self._tasks: list[asyncio.Task] = []

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, name: str, stage: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(self._supervise(name, stage), name=name)
        # a task cancelled before its first step never awaits the stage
        task.add_done_callback(lambda _: stage.close())
        self._tasks.append(task)
        return task

    async def _supervise(self, name: str, stage: Coroutine) -> None:
        try:
            await stage
        except CancellationError:
            logger.debug("Stage stopped at poll point: stage=%s", name)
        except asyncio.CancelledError:
            if not self.context.cancelled:
                raise
            logger.debug("Stage cancelled: stage=%s", name)
        except Exception as e:
            if self.context.cancel(e):
                logger.error(
                    "Stage failed, cancelling run: stage=%s, error=%s",
                    name, str(e),
                )
                self._cancel_others()
        else:
            logger.debug("Stage finished: stage=%s", name)

    def _cancel_others(self) -> None:
        current = asyncio.current_task()
        for task in self._tasks:
            if task is not current and not task.done():
                task.cancel()

    async def wait(self) -> None:
        """Join barrier: return once every stage has finished.

        If the waiter itself is cancelled, all stages are cancelled and
        awaited before the cancellation propagates.
        """
        try:
            # stages report through the context, not through gather
            await asyncio.gather(*self._tasks, return_exceptions=True)
        except asyncio.CancelledError:
            self.context.cancel(CancellationError("join"))
            self._cancel_others()
            await asyncio.gather(*self._tasks, return_exceptions=True)
            raise
