"""
Auto-run watcher.

After navigation, when auto mode is on, the watcher first checks for a
consent manager a few times and runs once if it finds one.  It then
listens for consent-like nodes being added to the page and runs again
after the page settles.  Mutation bursts are coalesced through a
one-slot queue, triggers are dropped while a manual run or teaching
session is active, and the watcher unregisters itself after a fixed
lifetime.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable

from guardr.browser import host as host_mod
from guardr.consent import cmp
from guardr.utils import logger

log = logger.create_logger("AutoRun")

INITIAL_ATTEMPTS = 3
INITIAL_ATTEMPT_INTERVAL_SECONDS = 1.0
# Grace given to a detected vendor banner to finish rendering.
VENDOR_RENDER_DELAY_SECONDS = 1.5
GENERIC_RENDER_DELAY_SECONDS = 1.2
MUTATION_SETTLE_MS = 800

RunCallback = Callable[[float], Awaitable[object]]


class AutoRunWatcher:
    """Triggers denial runs from page mutations for a limited time.

    Args:
        host: The page to watch.
        run: Called with the page-clock trigger time to start a run.
        is_busy: Returns ``True`` while a manual run or teaching
            session owns the page.
        timeout_seconds: Lifetime of the watcher.
    """

    def __init__(
        self,
        host: host_mod.HostPage,
        run: RunCallback,
        *,
        is_busy: Callable[[], bool],
        timeout_seconds: float = 15.0,
    ) -> None:
        self._host = host
        self._run = run
        self._is_busy = is_busy
        self._timeout = timeout_seconds
        self._queue: asyncio.Queue[None] = asyncio.Queue(maxsize=1)
        self._task: asyncio.Task[None] | None = None
        self.runs = 0
        self.dropped = 0

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.active:
            return
        self._task = asyncio.create_task(self._main())
        log.debug("Watcher started", {"url": self._host.url[:100], "timeoutSeconds": self._timeout})

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def wait(self) -> None:
        """Wait for the watcher to finish on its own."""
        if self._task is not None:
            await self._task

    def notify(self) -> None:
        """Queue a trigger; a pending one absorbs it."""
        with contextlib.suppress(asyncio.QueueFull):
            self._queue.put_nowait(None)

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    async def _main(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout
        try:
            if await self._initial_check(deadline):
                await self._run_once("initial check")
            await self._host.watch(self.notify)
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                try:
                    async with asyncio.timeout(remaining):
                        await self._queue.get()
                except TimeoutError:
                    break
                await self._host.settle(MUTATION_SETTLE_MS)
                # Triggers that arrived while settling belong to this run.
                while not self._queue.empty():
                    self._queue.get_nowait()
                await self._run_once("mutation")
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log.warn("Watcher stopped after an error", {"error": str(exc)})
        finally:
            try:
                await self._host.unwatch()
            except Exception as exc:
                log.debug("Unwatch failed", {"error": str(exc)})
            log.debug("Watcher stopped", {"runs": self.runs, "dropped": self.dropped})

    async def _initial_check(self, deadline: float) -> bool:
        """Look for a consent manager a few times.  Returns whether to run."""
        loop = asyncio.get_running_loop()
        for attempt in range(1, INITIAL_ATTEMPTS + 1):
            cmps = await self._host.detect_cmps()
            vendors = [name for name in cmps if name != cmp.GENERIC_LABEL]
            if vendors:
                log.info("Consent manager detected", {"cmps": vendors, "attempt": attempt})
                await asyncio.sleep(VENDOR_RENDER_DELAY_SECONDS)
                return True
            if cmps:
                log.info("Generic consent banner detected", {"attempt": attempt})
                await asyncio.sleep(GENERIC_RENDER_DELAY_SECONDS)
                return True
            if attempt < INITIAL_ATTEMPTS and loop.time() + INITIAL_ATTEMPT_INTERVAL_SECONDS < deadline:
                await asyncio.sleep(INITIAL_ATTEMPT_INTERVAL_SECONDS)
        log.debug("No consent manager on initial check, watching mutations")
        return False

    async def _run_once(self, reason: str) -> None:
        if self._is_busy():
            self.dropped += 1
            log.debug("Trigger dropped, page busy", {"reason": reason})
            return
        reference = await self._host.now()
        log.info("Auto-run triggered", {"reason": reason})
        await self._run(reference)
        self.runs += 1
