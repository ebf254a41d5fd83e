import asyncio

import pytest

from scroll_export.extractor.coordination import CancellationContext, Channel, StageGroup
from scroll_export.utils.errors import CancellationError, ChannelClosed, SourceError


@pytest.mark.asyncio
async def test_channel_is_fifo():
    channel: Channel[int] = Channel(3)
    for i in range(3):
        await channel.send(i)

    assert [await channel.receive() for _ in range(3)] == [0, 1, 2]


@pytest.mark.asyncio
async def test_channel_send_blocks_while_full():
    channel: Channel[int] = Channel(1)
    await channel.send(1)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(channel.send(2), timeout=0.05)

    assert await channel.receive() == 1
    await asyncio.wait_for(channel.send(3), timeout=1)
    assert len(channel) == 1


@pytest.mark.asyncio
async def test_closed_channel_drains_then_stops():
    channel: Channel[str] = Channel(4)
    await channel.send("a")
    await channel.send("b")
    await channel.close()

    assert [item async for item in channel] == ["a", "b"]
    with pytest.raises(ChannelClosed):
        await channel.receive()
    with pytest.raises(ChannelClosed):
        await channel.send("c")


@pytest.mark.asyncio
async def test_close_wakes_blocked_receivers():
    channel: Channel[int] = Channel(1)
    receivers = [asyncio.create_task(channel.receive()) for _ in range(3)]
    await asyncio.sleep(0)

    await channel.close()
    results = await asyncio.gather(*receivers, return_exceptions=True)

    assert all(isinstance(r, ChannelClosed) for r in results)


@pytest.mark.asyncio
async def test_close_wakes_blocked_sender():
    channel: Channel[int] = Channel(1)
    await channel.send(1)
    sender = asyncio.create_task(channel.send(2))
    await asyncio.sleep(0)

    await channel.close()

    with pytest.raises(ChannelClosed):
        await sender


def test_channel_requires_capacity():
    with pytest.raises(ValueError):
        Channel(0)


@pytest.mark.asyncio
async def test_first_cancellation_cause_wins():
    context = CancellationContext()
    first, second = SourceError("first"), SourceError("second")

    assert context.cancel(first) is True
    assert context.cancel(second) is False

    assert context.cancelled
    assert context.cause is first
    with pytest.raises(CancellationError):
        context.raise_if_cancelled("producer")
    await asyncio.wait_for(context.wait(), timeout=1)


def test_uncancelled_context_poll_is_silent():
    context = CancellationContext()
    context.raise_if_cancelled("producer")
    assert context.cause is None


@pytest.mark.asyncio
async def test_failing_stage_cancels_blocked_siblings():
    context = CancellationContext()
    group = StageGroup(context)
    finished_cleanup: list[str] = []

    async def blocked(name: str) -> None:
        try:
            await asyncio.Event().wait()
        finally:
            finished_cleanup.append(name)

    async def failing() -> None:
        await asyncio.sleep(0.01)
        raise SourceError("scroll expired")

    group.spawn("blocked-1", blocked("blocked-1"))
    group.spawn("failing", failing())
    group.spawn("blocked-2", blocked("blocked-2"))

    await asyncio.wait_for(group.wait(), timeout=1)

    assert isinstance(context.cause, SourceError)
    assert sorted(finished_cleanup) == ["blocked-1", "blocked-2"]


@pytest.mark.asyncio
async def test_later_failures_are_discarded():
    context = CancellationContext()
    group = StageGroup(context)
    first = SourceError("first")

    async def fail_now() -> None:
        raise first

    async def fail_on_cancel() -> None:
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            raise SourceError("while unwinding")

    group.spawn("unwinding", fail_on_cancel())
    group.spawn("first", fail_now())

    await asyncio.wait_for(group.wait(), timeout=1)

    assert context.cause is first


@pytest.mark.asyncio
async def test_poll_point_exit_is_not_a_failure():
    context = CancellationContext()
    group = StageGroup(context)

    async def polls() -> None:
        context.raise_if_cancelled("poller")

    context.cancel(SourceError("root cause"))
    group.spawn("poller", polls())
    await group.wait()

    assert str(context.cause) == "root cause"


@pytest.mark.asyncio
async def test_successful_stages_leave_context_untouched():
    context = CancellationContext()
    group = StageGroup(context)

    async def ok() -> None:
        await asyncio.sleep(0)

    for i in range(5):
        group.spawn(f"ok-{i}", ok())
    await group.wait()

    assert len(group) == 5
    assert not context.cancelled


@pytest.mark.asyncio
async def test_cancelled_waiter_cancels_stages():
    context = CancellationContext()
    group = StageGroup(context)
    stage = group.spawn("forever", asyncio.Event().wait())

    waiter = asyncio.create_task(group.wait())
    await asyncio.sleep(0.01)
    waiter.cancel()

    with pytest.raises(asyncio.CancelledError):
        await waiter
    assert stage.done()
    assert isinstance(context.cause, CancellationError)
