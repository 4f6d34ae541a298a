"""Tests for guardr.browser.watcher — the auto-run trigger loop."""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from unittest import mock

import pytest
from conftest import FakeHost

from guardr.browser import watcher as watcher_mod
from guardr.browser.watcher import AutoRunWatcher


@pytest.fixture(autouse=True)
def _fast_delays() -> Iterator[None]:
    with (
        mock.patch.object(watcher_mod, "INITIAL_ATTEMPT_INTERVAL_SECONDS", 0.01),
        mock.patch.object(watcher_mod, "VENDOR_RENDER_DELAY_SECONDS", 0.0),
        mock.patch.object(watcher_mod, "GENERIC_RENDER_DELAY_SECONDS", 0.0),
    ):
        yield


class _Recorder:
    def __init__(self) -> None:
        self.references: list[float] = []

    async def __call__(self, reference: float) -> None:
        self.references.append(reference)


def _watch(host: FakeHost, run: _Recorder, *, busy: bool = False, timeout: float = 0.3) -> AutoRunWatcher:
    return AutoRunWatcher(host, run, is_busy=lambda: busy, timeout_seconds=timeout)


# ── Initial check ───────────────────────────────────────────────


class TestInitialCheck:
    def test_runs_when_vendor_detected(self, host: FakeHost) -> None:
        host.cmps = ["OneTrust"]
        run = _Recorder()

        async def scenario() -> AutoRunWatcher:
            watcher = _watch(host, run)
            watcher.start()
            await watcher.wait()
            return watcher

        watcher = asyncio.run(scenario())
        assert watcher.runs == 1
        assert run.references == [host.clock]

    def test_generic_banner_also_runs(self, host: FakeHost) -> None:
        host.cmps = ["Generic"]
        run = _Recorder()

        async def scenario() -> None:
            watcher = _watch(host, run)
            watcher.start()
            await watcher.wait()

        asyncio.run(scenario())
        assert len(run.references) == 1

    def test_no_consent_manager(self, host: FakeHost) -> None:
        run = _Recorder()

        async def scenario() -> None:
            watcher = _watch(host, run)
            watcher.start()
            await watcher.wait()

        asyncio.run(scenario())
        assert run.references == []
        assert host.unwatched == 1


# ── Mutation triggers ───────────────────────────────────────────


async def _until_watching(host: FakeHost) -> None:
    while host.watch_callback is None:
        await asyncio.sleep(0.01)


class TestMutations:
    def test_burst_is_coalesced(self, host: FakeHost) -> None:
        run = _Recorder()

        async def scenario() -> AutoRunWatcher:
            watcher = _watch(host, run, timeout=0.5)
            watcher.start()
            await _until_watching(host)
            for _ in range(5):
                host.watch_callback()
            await watcher.wait()
            return watcher

        watcher = asyncio.run(scenario())
        assert watcher.runs == 1
        assert host.settles == [watcher_mod.MUTATION_SETTLE_MS]

    def test_dropped_while_busy(self, host: FakeHost) -> None:
        host.cmps = ["OneTrust"]
        run = _Recorder()

        async def scenario() -> AutoRunWatcher:
            watcher = _watch(host, run, busy=True)
            watcher.start()
            await _until_watching(host)
            host.watch_callback()
            await watcher.wait()
            return watcher

        watcher = asyncio.run(scenario())
        assert watcher.runs == 0
        assert watcher.dropped == 2
        assert run.references == []


# ── Lifecycle ───────────────────────────────────────────────────


class TestLifecycle:
    def test_stop_unwatches(self, host: FakeHost) -> None:
        async def scenario() -> AutoRunWatcher:
            watcher = _watch(host, _Recorder(), timeout=30.0)
            watcher.start()
            await _until_watching(host)
            await watcher.stop()
            return watcher

        watcher = asyncio.run(scenario())
        assert not watcher.active
        assert host.unwatched == 1

    def test_start_twice_is_noop(self, host: FakeHost) -> None:
        async def scenario() -> None:
            watcher = _watch(host, _Recorder(), timeout=0.1)
            watcher.start()
            first = watcher._task
            watcher.start()
            assert watcher._task is first
            await watcher.wait()

        asyncio.run(scenario())

    def test_run_failure_ends_watcher(self, host: FakeHost) -> None:
        host.cmps = ["OneTrust"]

        async def failing(reference: float) -> None:
            raise RuntimeError("boom")

        async def scenario() -> None:
            watcher = AutoRunWatcher(host, failing, is_busy=lambda: False, timeout_seconds=5.0)
            watcher.start()
            await watcher.wait()

        asyncio.run(scenario())
        assert host.unwatched == 1
