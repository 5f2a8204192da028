"""
Tests for the capture throttle.
"""

import asyncio

import pytest

from inkshot.throttle import CaptureThrottle


def test_limit_must_be_positive():
    with pytest.raises(ValueError):
        CaptureThrottle(0)


def test_release_without_acquire():
    async def scenario():
        throttle = CaptureThrottle(2)
        await throttle.release()

    with pytest.raises(RuntimeError):
        asyncio.run(scenario())


def test_permit_tracks_in_flight():
    async def scenario():
        throttle = CaptureThrottle(2)
        async with throttle.permit():
            assert throttle.in_flight == 1
            async with throttle.permit():
                assert throttle.in_flight == 2
        return throttle.in_flight

    assert asyncio.run(scenario()) == 0


def test_permit_released_on_error():
    throttle = None

    async def scenario():
        nonlocal throttle
        throttle = CaptureThrottle(1)
        async with throttle.permit():
            raise KeyError("boom")

    with pytest.raises(KeyError):
        asyncio.run(scenario())
    assert throttle.in_flight == 0


def test_waiters_admitted_in_order():
    """Excess callers queue and are admitted oldest first as permits free up."""
    async def scenario():
        throttle = CaptureThrottle(1)
        order = []

        await throttle.acquire()

        async def worker(n):
            async with throttle.permit():
                order.append(n)

        tasks = [asyncio.create_task(worker(n)) for n in range(3)]
        await asyncio.sleep(0.01)
        assert order == []
        assert throttle.in_flight == 1

        await throttle.release()
        await asyncio.gather(*tasks)
        return order, throttle.in_flight

    order, in_flight = asyncio.run(scenario())
    assert order == [0, 1, 2]
    assert in_flight == 0


def test_never_more_than_limit_holders():
    async def scenario():
        throttle = CaptureThrottle(3)
        active = 0
        peak = 0

        async def worker():
            nonlocal active, peak
            async with throttle.permit():
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.005)
                active -= 1

        await asyncio.gather(*(worker() for _ in range(20)))
        return peak

    assert asyncio.run(scenario()) == 3


def test_cancelled_waiter_passes_slot_on():
    """A waiter cancelled right after being woken does not strand the next one."""
    async def scenario():
        throttle = CaptureThrottle(1)
        await throttle.acquire()

        first = asyncio.create_task(throttle.acquire())
        second = asyncio.create_task(throttle.acquire())
        await asyncio.sleep(0.01)

        await throttle.release()
        first.cancel()

        await asyncio.wait_for(second, timeout=1)
        return first.cancelled(), throttle.in_flight

    cancelled, in_flight = asyncio.run(scenario())
    assert cancelled
    assert in_flight == 1
