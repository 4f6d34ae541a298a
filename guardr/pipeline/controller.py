"""
Per-page command handling.

A :class:`PageController` owns one controlled page: its host, the run
lock, the auto-run watcher and the teaching state.  Manual runs are
serialised by the lock; watcher triggers are dropped while a run or a
teaching session holds the page.
"""

from __future__ import annotations

import asyncio
import contextlib

from playwright import async_api

from guardr import config
from guardr.browser import host as host_mod
from guardr.browser import session as session_mod
from guardr.browser import watcher as watcher_mod
from guardr.consent import classifier, cmp, discovery
from guardr.learning import engine as engine_mod
from guardr.models import commands, labels, result
from guardr.pipeline import context, orchestrator
from guardr.utils import logger, url

log = logger.create_logger("Controller")

# How long teaching mode waits for the user's click.
TEACH_TIMEOUT_SECONDS = 60.0


class ControllerError(Exception):
    """A command that cannot be carried out in the current state."""


class PageController:
    """Runs commands against one controlled page.

    Args:
        learning: Shared learning engine.
        settings: Engine and server settings.
        browser: Browser used by :meth:`navigate`; optional when a
            host is attached directly.
    """

    def __init__(
        self,
        learning: engine_mod.LearningEngine,
        settings: config.Settings,
        browser: session_mod.BrowserSession | None = None,
    ) -> None:
        self.learning = learning
        self.settings = settings
        self._browser = browser
        self._pw_page: async_api.Page | None = None
        self._host: host_mod.HostPage | None = None
        self._lock = asyncio.Lock()
        self._watcher: watcher_mod.AutoRunWatcher | None = None
        self._teaching = commands.TeachingState(active=False)
        self._teach_task: asyncio.Task[None] | None = None

    @property
    def host(self) -> host_mod.HostPage | None:
        return self._host

    @property
    def teaching(self) -> commands.TeachingState:
        return self._teaching

    @property
    def watcher(self) -> watcher_mod.AutoRunWatcher | None:
        return self._watcher

    def is_busy(self) -> bool:
        return self._lock.locked() or self._teaching.active

    # ==========================================================================
    # Page lifecycle
    # ==========================================================================

    async def attach(self, host: host_mod.HostPage) -> None:
        """Control *host*, starting the auto-run watcher when enabled."""
        await self._stop_watcher()
        self._host = host
        self._start_watcher(host)

    def _start_watcher(self, host: host_mod.HostPage) -> None:
        """Watch *host* for consent surfaces unless one watcher is already live."""
        if not self.settings.auto_run or self._host is not host:
            return
        if self._watcher is not None and self._watcher.active:
            return
        self._watcher = watcher_mod.AutoRunWatcher(
            host,
            self._auto_run,
            is_busy=self.is_busy,
            timeout_seconds=self.settings.watch_timeout_seconds,
        )
        self._watcher.start()

    async def navigate(self, target: str) -> host_mod.HostPage:
        if self._browser is None:
            raise ControllerError("No browser available to open pages")
        if self._pw_page is None or self._pw_page.is_closed():
            self._pw_page = await self._browser.new_page()
        try:
            opened = await self._browser.open(self._pw_page, target)
        except async_api.Error as exc:
            raise ControllerError(f"Navigation failed: {exc}") from exc
        await self.attach(opened)
        return opened

    async def _require_host(self, target: str | None) -> host_mod.HostPage:
        if target:
            return await self.navigate(target)
        if self._host is None:
            raise ControllerError("No page is open; send a url with the command")
        return self._host

    async def _stop_watcher(self) -> None:
        if self._watcher is not None:
            await self._watcher.stop()
            self._watcher = None

    async def close(self) -> None:
        await self.exit_teaching()
        await self._stop_watcher()
        if self._pw_page is not None and not self._pw_page.is_closed():
            await self._pw_page.close()
        self._pw_page = None
        self._host = None

    # ==========================================================================
    # Commands
    # ==========================================================================

    async def run_clean(self, target: str | None = None, *, reference_time: float | None = None) -> result.RunResult:
        """Run the full denial pipeline against the page."""
        host = await self._require_host(target)
        async with self._lock:
            runner = orchestrator.ConsentOrchestrator(
                host,
                self.learning,
                deadline_seconds=self.settings.deadline_seconds,
                recency_window=self.settings.recency_window_seconds,
            )
            return await runner.run(reference_time)

    async def _auto_run(self, reference_time: float) -> None:
        if self.is_busy():
            return
        await self.run_clean(reference_time=reference_time)

    async def scan_only(self, target: str | None = None) -> commands.ScanReport:
        """Report consent state without touching any control."""
        host = await self._require_host(target)
        async with self._lock:
            site = url.site_id(host.url)
            cmps = await host.detect_cmps()
            ctx = context.RunContext.create(
                host,
                self.learning.build_classifier(site),
                None,
                site=site,
                budget_seconds=self.settings.deadline_seconds,
                reference_time=await host.now(),
                recency_window=self.settings.recency_window_seconds,
            )
            surfaces = await discovery.discover(ctx)
            toggles = [t for t in await host.toggles(None) if t.visible]
        log.info("Scan complete", {"site": site, "cmps": cmps, "surfaces": len(surfaces), "toggles": len(toggles)})
        return commands.ScanReport(
            cmps=cmps,
            cmp_label=cmp.cmp_label(cmps),
            surface_visible=bool(surfaces),
            toggle_count=len(toggles),
            url=host.url,
        )

    async def enter_teaching(self, intent: labels.Intent, target: str | None = None) -> commands.TeachingState:
        """Capture the user's next click as a taught pattern."""
        host = await self._require_host(target)
        if intent is labels.Intent.UNKNOWN:
            raise ControllerError("Teaching needs a concrete intent")
        if self._teaching.active:
            return self._teaching
        await self._stop_watcher()
        self._teaching = commands.TeachingState(active=True, intent=intent)
        self._teach_task = asyncio.create_task(self._capture(host, intent))
        log.info("Teaching mode entered", {"intent": intent.value})
        return self._teaching

    async def _capture(self, host: host_mod.HostPage, intent: labels.Intent) -> None:
        captured: labels.LearnedPattern | None = None
        try:
            element = await host.capture_next_click(TEACH_TIMEOUT_SECONDS)
            if element is None:
                log.info("Teaching timed out without a click")
                return
            label = classifier.element_label(element)
            captured = self.learning.teach(label, intent, url.site_id(host.url))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log.warn("Teaching capture failed", {"error": str(exc)})
        finally:
            self._teaching = commands.TeachingState(active=False, intent=intent, captured=captured)
            self._start_watcher(host)

    async def exit_teaching(self) -> commands.TeachingState:
        task = self._teach_task
        self._teach_task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            if self._host is not None:
                await self._host.cancel_capture()
        if self._teaching.active:
            self._teaching = self._teaching.model_copy(update={"active": False})
        if self._host is not None:
            self._start_watcher(self._host)
        log.info("Teaching mode exited", {"captured": self._teaching.captured is not None})
        return self._teaching

    def learned_patterns(self, target: str | None = None) -> commands.LearnedPatternsReport:
        """The learned patterns for the page's site (or *target*'s)."""
        if target:
            site = url.site_id(target)
        elif self._host is not None:
            site = url.site_id(self._host.url)
        else:
            raise ControllerError("No page is open; send a url with the command")
        return commands.LearnedPatternsReport(
            site=site,
            patterns=self.learning.site_patterns(site),
            stats=self.learning.stats(),
        )

    @staticmethod
    def ping() -> bool:
        return True
