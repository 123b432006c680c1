from __future__ import annotations

import asyncio

import pytest

from vaultcache.scheduler import SaveScheduler


@pytest.mark.asyncio
async def test_schedule_coalesces_repeated_requests():
    scheduler = SaveScheduler()
    fired: list[str] = []

    scheduler.schedule("/vaults/a", 0.05, lambda: fired.append("first"))
    scheduler.schedule("/vaults/a", 0.05, lambda: fired.append("second"))
    await asyncio.sleep(0.15)

    assert fired == ["second"]
    assert not scheduler.pending("/vaults/a")


@pytest.mark.asyncio
async def test_timers_are_independent_per_vault():
    scheduler = SaveScheduler()
    fired: list[str] = []

    scheduler.schedule("/vaults/a", 0.01, lambda: fired.append("a"))
    scheduler.schedule("/vaults/b", 0.01, lambda: fired.append("b"))
    assert scheduler.pending_vaults() == ["/vaults/a", "/vaults/b"]
    await asyncio.sleep(0.05)

    assert sorted(fired) == ["a", "b"]
    assert scheduler.pending_vaults() == []


@pytest.mark.asyncio
async def test_registry_entry_is_removed_before_action_runs():
    scheduler = SaveScheduler()
    observed: list[bool] = []

    def _action() -> None:
        observed.append(scheduler.pending("/vaults/a"))
        if len(observed) == 1:
            scheduler.schedule("/vaults/a", 0.01, _action)

    scheduler.schedule("/vaults/a", 0.01, _action)
    await asyncio.sleep(0.08)

    assert observed == [False, False]
    assert not scheduler.pending("/vaults/a")


@pytest.mark.asyncio
async def test_cancel_all_drops_timers_without_firing():
    scheduler = SaveScheduler()
    fired: list[str] = []
    scheduler.schedule("/vaults/a", 0.01, lambda: fired.append("a"))
    scheduler.schedule("/vaults/b", 0.01, lambda: fired.append("b"))

    assert scheduler.cancel_all() == 2
    await asyncio.sleep(0.05)

    assert fired == []
    assert scheduler.pending_vaults() == []


@pytest.mark.asyncio
async def test_rescheduling_cancels_the_armed_timer():
    scheduler = SaveScheduler()
    fired: list[str] = []
    scheduler.schedule("/vaults/a", 0.01, lambda: fired.append("stale"))
    scheduler.schedule("/vaults/a", 0.2, lambda: fired.append("latest"))

    await asyncio.sleep(0.05)

    assert fired == []
    assert scheduler.pending("/vaults/a")
    assert scheduler.cancel("/vaults/a") is True
    assert scheduler.cancel("/vaults/a") is False


def test_schedule_without_event_loop_raises():
    scheduler = SaveScheduler()

    with pytest.raises(RuntimeError):
        scheduler.schedule("/vaults/a", 1.0, lambda: None)


def test_schedule_without_event_loop_keeps_armed_timer():
    loop = asyncio.new_event_loop()
    try:
        scheduler = SaveScheduler()
        armed = loop.call_later(60, lambda: None)
        scheduler._pending["/vaults/a"] = armed

        with pytest.raises(RuntimeError):
            scheduler.schedule("/vaults/a", 1.0, lambda: None)

        assert scheduler.pending("/vaults/a")
        assert not armed.cancelled()
    finally:
        loop.close()
