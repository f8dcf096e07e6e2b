import asyncio

import pytest

from wificonnect.network.polling import wait_for_state


def _reader(values):
    reads: list[object] = []
    iterator = iter(values)

    async def read():
        value = next(iterator)
        reads.append(value)
        return value

    return read, reads


def test_returns_true_without_sleeping_when_already_matched(instant_sleep) -> None:
    read, reads = _reader(["activated"])

    matched = asyncio.run(wait_for_state(20, read, lambda v: v == "activated"))

    assert matched is True
    assert reads == ["activated"]
    assert instant_sleep == []


def test_returns_true_once_value_matches(instant_sleep) -> None:
    read, reads = _reader(["activating", "activating", "activated"])

    matched = asyncio.run(wait_for_state(20, read, lambda v: v == "activated"))

    assert matched is True
    assert len(reads) == 3
    assert instant_sleep == [1.0, 1.0]


def test_returns_false_after_timeout(instant_sleep) -> None:
    read, reads = _reader(["activating"] * 10)

    matched = asyncio.run(wait_for_state(3, read, lambda v: v == "activated"))

    assert matched is False
    assert len(reads) == 4
    assert instant_sleep == [1.0, 1.0, 1.0]


def test_read_errors_propagate(instant_sleep) -> None:
    async def read():
        raise RuntimeError("service gone")

    with pytest.raises(RuntimeError, match="service gone"):
        asyncio.run(wait_for_state(5, read, lambda v: True))


def test_wait_can_be_cancelled() -> None:
    async def read():
        return "activating"

    async def _exercise():
        task = asyncio.create_task(
            wait_for_state(60, read, lambda v: v == "activated", interval=0.01)
        )
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(_exercise())
