from __future__ import annotations

import asyncio

import pytest

from mortality_explorer.services.loading import LoadingIndicator


@pytest.mark.asyncio
async def test_fast_work_never_shows_overlay():
    changes = []
    loading = LoadingIndicator(delay_ms=50, on_change=changes.append)

    loading.start()
    assert loading.pending
    loading.stop()
    await asyncio.sleep(0.08)

    assert not loading.pending
    assert not loading.visible
    assert changes == []


@pytest.mark.asyncio
async def test_slow_work_shows_then_hides_overlay():
    changes = []
    loading = LoadingIndicator(delay_ms=10, on_change=changes.append)

    loading.start()
    await asyncio.sleep(0.05)
    assert loading.visible
    assert not loading.pending

    loading.stop()
    assert not loading.visible
    assert changes == [True, False]


@pytest.mark.asyncio
async def test_restart_rearms_timer():
    loading = LoadingIndicator(delay_ms=100)
    loading.start()
    await asyncio.sleep(0.06)
    loading.start()
    await asyncio.sleep(0.06)
    assert not loading.visible
    await asyncio.sleep(0.1)
    assert loading.visible


def test_negative_delay_rejected():
    with pytest.raises(ValueError):
        LoadingIndicator(delay_ms=-1)


def test_start_requires_running_loop():
    with pytest.raises(RuntimeError):
        LoadingIndicator().start()
