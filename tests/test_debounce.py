import asyncio

import pytest

from sales_order_service.debounce import ChannelState, DebouncedChannel


@pytest.mark.anyio
async def test_rapid_writes_settle_once_with_last_value():
    loop = asyncio.get_running_loop()
    events = []
    channel = DebouncedChannel(300, on_settle=lambda v: events.append((v, loop.time())))

    channel.set_raw("a")
    await asyncio.sleep(0.05)
    channel.set_raw("ab")
    last_write = loop.time()
    assert channel.raw == "ab"
    assert channel.settled == ""
    assert channel.state is ChannelState.PENDING

    await asyncio.sleep(0.45)

    assert [value for value, _ in events] == ["ab"]
    assert events[0][1] - last_write >= 0.29
    assert channel.settled == "ab"
    assert channel.state is ChannelState.IDLE


@pytest.mark.anyio
async def test_clear_bypasses_delay_and_cancels_pending():
    events = []
    channel = DebouncedChannel(50, on_settle=events.append)
    channel.set_raw("tornillos")
    await asyncio.sleep(0.1)
    channel.set_raw("tornillos 3/8")

    channel.clear()
    assert channel.raw == ""
    assert channel.settled == ""
    await asyncio.sleep(0.1)
    assert events == ["tornillos", ""]


@pytest.mark.anyio
async def test_close_cancels_pending_timer():
    events = []
    async with DebouncedChannel(50, on_settle=events.append) as channel:
        channel.set_raw("pintura")
    await asyncio.sleep(0.1)

    assert events == []
    assert channel.state is ChannelState.CLOSED
    with pytest.raises(RuntimeError):
        channel.set_raw("otra")


@pytest.mark.anyio
async def test_flush_settles_immediately():
    channel = DebouncedChannel(10_000)
    channel.set_raw("entregar por la tarde")
    channel.flush()
    assert channel.settled == "entregar por la tarde"
    assert channel.deadline is None
