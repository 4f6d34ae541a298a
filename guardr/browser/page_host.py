"""
Playwright implementation of :class:`guardr.browser.host.HostPage`.

One :class:`PlaywrightHost` wraps one frame of a page.  The main-frame
host hands out child hosts for same-origin frames only; cross-origin
documents are never scripted.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

from playwright import async_api

from guardr.browser import scripts
from guardr.consent import cmp, constants
from guardr.models import page
from guardr.utils import logger, url as url_mod

log = logger.create_logger("PageHost")

CLICK_TIMEOUT_MS = 2000
SAFETY_TIMEOUT_MS = 2000
SETTLE_POLL_SECONDS = 0.1
SETTLE_QUIET_SECONDS = 0.3
MAX_FRAMES = 10


class PlaywrightHost:
    """A scriptable document backed by a Playwright frame.

    Args:
        pw_page: The page the frame belongs to.
        frame: The document to address; the main frame when omitted.
    """

    def __init__(self, pw_page: async_api.Page, frame: async_api.Frame | None = None) -> None:
        self._page = pw_page
        self._frame = frame or pw_page.main_frame
        self._watch_callback: Callable[[], None] | None = None
        self._binding_exposed = False

    @property
    def url(self) -> str:
        return self._frame.url

    @property
    def name(self) -> str:
        if self._is_main:
            return "main"
        return self._frame.name or url_mod.extract_host(self._frame.url)

    @property
    def _is_main(self) -> bool:
        return self._frame is self._page.main_frame

    async def _evaluate(self, body: str, arg: Any = None) -> Any:
        """Run ``body(window.__guardr, arg)`` with the helpers installed."""
        return await self._frame.evaluate(
            f"(arg) => {{ {scripts.HELPERS}\n return ({body})(window.__guardr, arg); }}",
            arg,
        )

    def _locator(self, ref: str) -> async_api.Locator:
        return self._frame.locator(f'[data-guardr-ref="{ref}"]').first

    # ==========================================================================
    # Clock and text
    # ==========================================================================

    async def now(self) -> float:
        return float(await self._evaluate("(g) => g.now()"))

    async def load_time(self) -> float:
        return float(await self._evaluate("(g) => g.loadTime()"))

    async def body_text(self, limit: int = 3000) -> str:
        text = await self._frame.evaluate(
            "(limit) => document.body ? (document.body.innerText || '').slice(0, limit) : ''",
            limit,
        )
        return text or ""

    # ==========================================================================
    # Element queries
    # ==========================================================================

    async def candidates(self) -> list[page.ElementSnapshot]:
        raw = await self._evaluate("(g) => g.candidates()")
        return [page.ElementSnapshot.model_validate(item) for item in raw or []]

    async def controls(self, scope: str | None = None) -> list[page.ElementSnapshot]:
        raw = await self._evaluate("(g, scope) => g.controls(scope)", scope)
        return [page.ElementSnapshot.model_validate(item) for item in raw or []]

    async def toggles(self, scope: str | None = None) -> list[page.ElementSnapshot]:
        raw = await self._evaluate("(g, scope) => g.toggles(scope)", scope)
        return [page.ElementSnapshot.model_validate(item) for item in raw or []]

    async def is_visible(self, ref: str) -> bool:
        try:
            return bool(await self._evaluate("(g, ref) => g.isVisible(ref)", ref))
        except async_api.Error as exc:
            # The document went away with the element.
            log.debug("Visibility check failed", {"ref": ref, "error": str(exc)})
            return False

    # ==========================================================================
    # Interaction
    # ==========================================================================

    async def _is_safe_to_click(self, locator: async_api.Locator) -> bool | None:
        """Whether clicking will stay on the page; ``None`` when unknown."""
        try:
            return bool(await locator.evaluate(scripts.IS_SAFE_TO_CLICK, timeout=SAFETY_TIMEOUT_MS))
        except async_api.Error:
            log.debug("Could not evaluate element safety (timeout/error)")
            return None

    async def _did_navigate_away(self, original_url: str) -> bool:
        """Go back if the last click navigated the page."""
        try:
            await asyncio.sleep(0.3)
            current_url = self._page.url
            if current_url != original_url:
                log.warn(
                    "Click caused navigation, going back",
                    {"from": original_url[:80], "to": current_url[:80]},
                )
                await self._page.go_back(wait_until="domcontentloaded", timeout=5000)
                return True
        except async_api.Error as exc:
            log.warn("Navigation check failed", {"error": str(exc)})
        return False

    async def click(self, ref: str) -> bool:
        locator = self._locator(ref)
        if await self._is_safe_to_click(locator) is False:
            log.debug("Skipping click, element would navigate away", {"ref": ref})
            return False
        original_url = self._page.url
        try:
            await locator.click(timeout=CLICK_TIMEOUT_MS)
        except async_api.Error as exc:
            log.debug("Click failed", {"ref": ref, "error": str(exc).splitlines()[0] if str(exc) else ""})
            return False
        return not await self._did_navigate_away(original_url)

    async def activate(self, ref: str) -> bool:
        original_url = self._page.url
        if not await self._evaluate("(g, ref) => g.activate(ref)", ref):
            return False
        return not await self._did_navigate_away(original_url)

    async def read_checked(self, ref: str) -> bool | None:
        return await self._evaluate("(g, ref) => g.readChecked(ref)", ref)

    async def force_checked(self, ref: str, value: bool) -> bool:
        return bool(await self._evaluate("(g, arg) => g.forceChecked(arg.ref, arg.value)", {"ref": ref, "value": value}))

    async def hide(self, ref: str) -> bool:
        return bool(await self._evaluate("(g, ref) => g.hide(ref)", ref))

    # ==========================================================================
    # Vendors
    # ==========================================================================

    async def detect_cmps(self) -> list[str]:
        signatures = [
            {"name": s.name, "globals": list(s.globals), "selectors": list(s.selectors), "cookies": list(s.cookies)}
            for s in cmp.CMP_SIGNATURES
        ]
        found: list[str] = list(await self._frame.evaluate(scripts.DETECT_CMPS, signatures) or [])
        if found:
            return found
        consent_frames = self._is_main and any(
            constants.is_consent_host(f.url) for f in self._page.frames if f is not self._page.main_frame
        )
        if consent_frames or await self._frame.evaluate(scripts.GENERIC_PRESENT, list(cmp.GENERIC_SELECTORS)):
            return [cmp.GENERIC_LABEL]
        return []

    async def call_vendor_apis(self) -> list[str]:
        called: list[str] = []
        for call in cmp.VENDOR_REJECT_CALLS:
            try:
                if await self._frame.evaluate(call.script):
                    called.append(call.label)
                    log.info("Vendor reject API called", {"vendor": call.name})
            except async_api.Error as exc:
                log.debug("Vendor reject API failed", {"vendor": call.name, "error": str(exc)})
        return called

    async def tcf_data(self) -> dict[str, Any] | None:
        try:
            return await self._frame.evaluate(scripts.TCF_DATA)
        except async_api.Error as exc:
            log.debug("TCF data unavailable", {"error": str(exc)})
            return None

    # ==========================================================================
    # Frames
    # ==========================================================================

    async def frames(self) -> list[PlaywrightHost]:
        if not self._is_main:
            return []
        children = [
            frame
            for frame in self._page.frames
            if frame is not self._page.main_frame
            and not frame.is_detached()
            and url_mod.is_same_origin(frame.url, self._page.url)
        ]
        if len(children) > MAX_FRAMES:
            log.debug("Frame scan capped", {"found": len(children), "limit": MAX_FRAMES})
        return [PlaywrightHost(self._page, frame) for frame in children[:MAX_FRAMES]]

    # ==========================================================================
    # Timing, teaching and watching
    # ==========================================================================

    async def settle(self, max_ms: int) -> None:
        """Poll the mutation counter until it stays still or time runs out."""
        deadline = time.monotonic() + max_ms / 1000
        last: int | None = None
        quiet_since = time.monotonic()
        while time.monotonic() < deadline:
            try:
                count = await self._evaluate("(g) => g.mutations()")
            except async_api.Error:
                # Mid-navigation: the execution context was replaced.
                await asyncio.sleep(SETTLE_POLL_SECONDS)
                continue
            current = time.monotonic()
            if count != last:
                last = count
                quiet_since = current
            elif current - quiet_since >= SETTLE_QUIET_SECONDS:
                return
            await asyncio.sleep(SETTLE_POLL_SECONDS)

    async def capture_next_click(self, timeout: float) -> page.ElementSnapshot | None:
        raw = await self._evaluate("(g, ms) => g.captureClick(ms)", int(timeout * 1000))
        return page.ElementSnapshot.model_validate(raw) if raw else None

    async def cancel_capture(self) -> None:
        try:
            await self._evaluate("(g) => g.cancelCapture()")
        except async_api.Error as exc:
            log.debug("Capture cancel skipped", {"error": str(exc)})

    def _on_notify(self, _source: dict[str, Any], *_args: Any) -> None:
        if self._watch_callback is not None:
            self._watch_callback()

    async def watch(self, callback: Callable[[], None]) -> None:
        if not self._binding_exposed:
            await self._page.expose_binding("__guardrNotify", self._on_notify)
            self._binding_exposed = True
        self._watch_callback = callback
        await self._evaluate("(g) => g.watch()")

    async def unwatch(self) -> None:
        self._watch_callback = None
        try:
            await self._evaluate("(g) => g.unwatch()")
        except async_api.Error as exc:
            log.debug("Unwatch skipped", {"error": str(exc)})
