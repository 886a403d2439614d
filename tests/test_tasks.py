"""Tests for the asyncio task helpers."""

import asyncio

import pytest

from bangumoe.tasks import IssueOrder, LatestOnly, SingleFlight, Superseded


@pytest.mark.asyncio
async def test_latest_only_supersedes_older_call():
    """An older call in flight is cancelled and reports Superseded."""
    latest = LatestOnly("test")
    gate = asyncio.Event()

    async def slow():
        await gate.wait()
        return "old"

    async def fast():
        return "new"

    older = asyncio.create_task(latest.run(slow()))
    await asyncio.sleep(0)
    assert latest.pending

    assert await latest.run(fast()) == "new"
    with pytest.raises(Superseded):
        await older
    assert not latest.pending


@pytest.mark.asyncio
async def test_latest_only_discards_result_that_ignores_cancellation():
    """A call that finishes anyway after being replaced is still discarded."""
    latest = LatestOnly("test")
    release = asyncio.Event()

    async def stubborn():
        try:
            await release.wait()
        except asyncio.CancelledError:
            pass
        return "stale"

    async def fresh():
        await release.wait()
        return "fresh"

    older = asyncio.create_task(latest.run(stubborn()))
    await asyncio.sleep(0)
    newer = asyncio.create_task(latest.run(fresh()))
    await asyncio.sleep(0)
    release.set()

    assert await newer == "fresh"
    with pytest.raises(Superseded):
        await older


@pytest.mark.asyncio
async def test_latest_only_errors_of_replaced_call_are_superseded():
    latest = LatestOnly("test")
    release = asyncio.Event()

    async def failing():
        try:
            await release.wait()
        except asyncio.CancelledError:
            pass
        raise RuntimeError("boom")

    older = asyncio.create_task(latest.run(failing()))
    await asyncio.sleep(0)

    async def ok():
        return 1

    assert await latest.run(ok()) == 1
    with pytest.raises(Superseded):
        await older


@pytest.mark.asyncio
async def test_latest_only_propagates_errors_of_current_call():
    latest = LatestOnly("test")

    async def failing():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await latest.run(failing())


@pytest.mark.asyncio
async def test_single_flight_shares_result():
    """Concurrent callers share one underlying call."""
    flight = SingleFlight("test")
    gate = asyncio.Event()
    calls = []

    async def work():
        calls.append(1)
        await gate.wait()
        return "done"

    first = asyncio.create_task(flight.run(work))
    second = asyncio.create_task(flight.run(work))
    await asyncio.sleep(0)
    assert flight.in_flight
    gate.set()

    assert await first == "done"
    assert await second == "done"
    assert len(calls) == 1
    assert not flight.in_flight


@pytest.mark.asyncio
async def test_single_flight_shares_failure_and_allows_retry():
    flight = SingleFlight("test")
    gate = asyncio.Event()
    calls = []

    async def failing():
        calls.append(1)
        await gate.wait()
        raise RuntimeError("boom")

    first = asyncio.create_task(flight.run(failing))
    second = asyncio.create_task(flight.run(failing))
    await asyncio.sleep(0)
    gate.set()

    results = await asyncio.gather(first, second, return_exceptions=True)
    assert all(isinstance(r, RuntimeError) for r in results)
    assert len(calls) == 1

    with pytest.raises(RuntimeError):
        await flight.run(failing)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_issue_order_applies_in_issue_order():
    """A later call that finishes first waits for the earlier one to apply."""
    order = IssueOrder()
    first_gate = asyncio.Event()
    applied = []

    async def first():
        await first_gate.wait()
        return "first"

    async def second():
        return "second"

    a = asyncio.create_task(order.run(first(), applied.append))
    await asyncio.sleep(0)
    b = asyncio.create_task(order.run(second(), applied.append))
    await asyncio.sleep(0)
    assert applied == []

    first_gate.set()
    await asyncio.gather(a, b)
    assert applied == ["first", "second"]


@pytest.mark.asyncio
async def test_issue_order_failure_does_not_block_later_calls():
    order = IssueOrder()
    applied = []

    async def failing():
        raise RuntimeError("boom")

    async def ok():
        return "ok"

    with pytest.raises(RuntimeError):
        await order.run(failing(), applied.append)
    assert await order.run(ok(), applied.append) == "ok"
    assert applied == ["ok"]


@pytest.mark.asyncio
async def test_latest_only_discard():
    """A discarded call reports Superseded and nothing is pending afterwards."""
    latest = LatestOnly("test")
    gate = asyncio.Event()

    async def slow():
        await gate.wait()
        return "late"

    call = asyncio.create_task(latest.run(slow()))
    await asyncio.sleep(0)

    latest.discard()
    gate.set()

    with pytest.raises(Superseded):
        await call
    assert not latest.pending
