"""Tests for guardr.pipeline.controller — command handling for one page."""

from __future__ import annotations

import asyncio

import pytest
from conftest import FakeHost

from guardr import config
from guardr.learning.engine import LearningEngine
from guardr.models.labels import Intent
from guardr.models.page import ElementSnapshot
from guardr.pipeline.controller import ControllerError, PageController


def _controller(engine: LearningEngine, settings: config.Settings) -> PageController:
    return PageController(engine, settings)


# ── Page lifecycle ──────────────────────────────────────────────


class TestLifecycle:
    def test_run_without_page(self, engine: LearningEngine, settings: config.Settings) -> None:
        with pytest.raises(ControllerError, match="No page is open"):
            asyncio.run(_controller(engine, settings).run_clean())

    def test_navigate_without_browser(self, engine: LearningEngine, settings: config.Settings) -> None:
        with pytest.raises(ControllerError, match="No browser"):
            asyncio.run(_controller(engine, settings).run_clean("https://example.com"))

    def test_auto_run_starts_watcher(self, engine: LearningEngine, settings: config.Settings, host: FakeHost) -> None:
        controller = _controller(engine, settings.model_copy(update={"auto_run": True}))

        async def scenario() -> tuple[bool, bool]:
            await controller.attach(host)
            started = controller.watcher is not None and controller.watcher.active
            await controller.close()
            return started, controller.watcher is None

        assert asyncio.run(scenario()) == (True, True)
        assert controller.host is None

    def test_manual_mode_has_no_watcher(self, engine: LearningEngine, settings: config.Settings, host: FakeHost) -> None:
        controller = _controller(engine, settings)
        asyncio.run(controller.attach(host))
        assert controller.watcher is None
        assert controller.host is host


# ── RUN_CLEAN / SCAN_ONLY ───────────────────────────────────────


class TestRunClean:
    def test_runs_against_attached_page(self, engine: LearningEngine, settings: config.Settings, banner_host: FakeHost) -> None:
        controller = _controller(engine, settings)

        async def scenario():
            await controller.attach(banner_host)
            return await controller.run_clean()

        run = asyncio.run(scenario())
        assert run.resolution_method == "direct-click"
        assert not controller.is_busy()

    def test_auto_run_skipped_while_busy(self, engine: LearningEngine, settings: config.Settings, banner_host: FakeHost) -> None:
        controller = _controller(engine, settings)

        async def scenario() -> None:
            await controller.attach(banner_host)
            async with controller._lock:
                await controller._auto_run(105.0)

        asyncio.run(scenario())
        assert banner_host.clicks == []


class TestScanOnly:
    def test_reports_without_clicking(self, engine: LearningEngine, settings: config.Settings, banner_host: FakeHost) -> None:
        banner_host.cmps = ["Didomi"]
        banner_host.add_toggle("t", "Analytics", parent="banner")
        controller = _controller(engine, settings)

        async def scenario():
            await controller.attach(banner_host)
            return await controller.scan_only()

        scan = asyncio.run(scenario())
        assert scan.cmps == ["Didomi"]
        assert scan.cmp_label == "Didomi"
        assert scan.surface_visible
        assert scan.toggle_count == 1
        assert scan.url == banner_host.url
        assert banner_host.clicks == []

    def test_no_surface(self, engine: LearningEngine, settings: config.Settings, host: FakeHost) -> None:
        controller = _controller(engine, settings)

        async def scenario():
            await controller.attach(host)
            return await controller.scan_only()

        scan = asyncio.run(scenario())
        assert not scan.surface_visible
        assert scan.cmp_label == "Generic/Unknown"


# ── Teaching ────────────────────────────────────────────────────


async def _until_idle(controller: PageController) -> None:
    while controller.teaching.active:
        await asyncio.sleep(0.01)


class TestTeaching:
    def test_captured_click_is_learned(self, engine: LearningEngine, settings: config.Settings, host: FakeHost) -> None:
        host.next_click = ElementSnapshot(ref="x", text="Nah, thanks")
        controller = _controller(engine, settings)

        async def scenario():
            await controller.attach(host)
            entered = await controller.enter_teaching(Intent.DENY)
            busy = controller.is_busy()
            await _until_idle(controller)
            return entered, busy

        entered, busy = asyncio.run(scenario())
        assert entered.active and entered.intent is Intent.DENY
        assert busy
        assert controller.teaching.captured is not None
        assert controller.teaching.captured.normalized_text == "nah thanks"
        assert [p.normalized_text for p in engine.custom_patterns()] == ["nah thanks"]

    def test_timeout_without_click(self, engine: LearningEngine, settings: config.Settings, host: FakeHost) -> None:
        controller = _controller(engine, settings)

        async def scenario() -> None:
            await controller.attach(host)
            await controller.enter_teaching(Intent.DENY)
            await _until_idle(controller)

        asyncio.run(scenario())
        assert controller.teaching.captured is None
        assert engine.custom_patterns() == []

    def test_exit_cancels_capture(self, engine: LearningEngine, settings: config.Settings, host: FakeHost) -> None:
        host.capture_delay = 10.0
        controller = _controller(engine, settings)

        async def scenario():
            await controller.attach(host)
            await controller.enter_teaching(Intent.MANAGE)
            return await controller.exit_teaching()

        state = asyncio.run(scenario())
        assert not state.active
        assert host.capture_cancelled
        assert not controller.is_busy()

    def test_watcher_resumes_after_exit(self, engine: LearningEngine, settings: config.Settings, host: FakeHost) -> None:
        host.capture_delay = 10.0
        controller = _controller(engine, settings.model_copy(update={"auto_run": True}))

        async def scenario() -> tuple[bool, bool]:
            await controller.attach(host)
            await controller.enter_teaching(Intent.DENY)
            paused = controller.watcher is None
            await controller.exit_teaching()
            resumed = controller.watcher is not None and controller.watcher.active
            await controller.close()
            return paused, resumed

        assert asyncio.run(scenario()) == (True, True)

    def test_watcher_resumes_after_capture(self, engine: LearningEngine, settings: config.Settings, host: FakeHost) -> None:
        host.next_click = ElementSnapshot(ref="x", text="Nope")
        controller = _controller(engine, settings.model_copy(update={"auto_run": True}))

        async def scenario() -> bool:
            await controller.attach(host)
            await controller.enter_teaching(Intent.DENY)
            await _until_idle(controller)
            resumed = controller.watcher is not None and controller.watcher.active
            await controller.close()
            return resumed

        assert asyncio.run(scenario())

    def test_unknown_intent_rejected(self, engine: LearningEngine, settings: config.Settings, host: FakeHost) -> None:
        controller = _controller(engine, settings)

        async def scenario() -> None:
            await controller.attach(host)
            await controller.enter_teaching(Intent.UNKNOWN)

        with pytest.raises(ControllerError, match="concrete intent"):
            asyncio.run(scenario())


# ── GET_LEARNED_PATTERNS / PING ─────────────────────────────────


class TestLearnedPatterns:
    def test_requires_page_or_url(self, engine: LearningEngine, settings: config.Settings) -> None:
        with pytest.raises(ControllerError):
            _controller(engine, settings).learned_patterns()

    def test_for_url(self, engine: LearningEngine, settings: config.Settings) -> None:
        engine.learn_success("Reject all", Intent.DENY, "example.com")
        report = _controller(engine, settings).learned_patterns("https://www.example.com/news")
        assert report.site == "example.com"
        assert [p.normalized_text for p in report.patterns] == ["reject all"]
        assert report.stats is not None and report.stats.global_patterns == 1

    def test_ping(self) -> None:
        assert PageController.ping() is True
