from __future__ import annotations

import asyncio
import threading

import pytest

from querywatch.channel import SourceChannel
from querywatch.models import utc_now


def test_publish_before_bind_is_dropped():
    channel: SourceChannel[str] = SourceChannel(name="src")
    channel.publish("select 1")
    assert channel.dropped == 1


@pytest.mark.asyncio
async def test_payloads_are_delivered_in_publish_order_then_none():
    channel: SourceChannel[int] = SourceChannel(name="src")
    channel.bind(asyncio.get_running_loop())

    before = utc_now()
    for i in range(3):
        channel.publish(i)
    await channel.close()

    received = []
    while (item := await channel.get()) is not None:
        assert before <= item.captured_at <= utc_now()
        received.append(item.payload)
    assert received == [0, 1, 2]
    # The end marker stays visible to later reads.
    assert await channel.get() is None

    channel.publish(99)
    assert channel.dropped == 1


@pytest.mark.asyncio
async def test_full_channel_drops_instead_of_blocking():
    channel: SourceChannel[int] = SourceChannel(name="src", max_size=2)
    channel.bind(asyncio.get_running_loop())
    for i in range(5):
        channel.publish(i)
    assert channel.dropped == 3
    assert (await channel.get()).payload == 0  # type: ignore[union-attr]


@pytest.mark.asyncio
async def test_publish_from_another_thread_is_marshalled_to_the_loop():
    channel: SourceChannel[int] = SourceChannel(name="src")
    channel.bind(asyncio.get_running_loop())

    def produce() -> None:
        for i in range(50):
            channel.publish(i)

    thread = threading.Thread(target=produce)
    thread.start()
    thread.join()

    received = [(await channel.get()).payload for _ in range(50)]  # type: ignore[union-attr]
    assert received == list(range(50))
    assert channel.dropped == 0


def test_max_size_must_be_positive():
    with pytest.raises(ValueError):
        SourceChannel(name="src", max_size=0)
