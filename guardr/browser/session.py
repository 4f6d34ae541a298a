"""
Browser session management.

A :class:`BrowserSession` owns one Playwright browser and context.
Every page it opens carries the guardr helper script and the
automation-masking script from the start.
"""

from __future__ import annotations

from typing import Literal

from playwright import async_api

from guardr.browser import page_host, scripts
from guardr.utils import logger

log = logger.create_logger("BrowserSession")

NAVIGATION_TIMEOUT_MS = 60000


class BrowserSession:
    """Manages an isolated browser for the denial engine."""

    def __init__(self, *, headless: bool = True) -> None:
        self._headless = headless
        self._playwright: async_api.Playwright | None = None
        self._browser: async_api.Browser | None = None
        self._context: async_api.BrowserContext | None = None

    @property
    def is_open(self) -> bool:
        return self._context is not None

    # ==========================================================================
    # Browser Lifecycle
    # ==========================================================================

    async def launch(self) -> None:
        """Launch Chrome, falling back to bundled Chromium."""
        if self._context is not None:
            return
        log.info("Launching browser", {"headless": self._headless})
        pw = await async_api.async_playwright().start()
        self._playwright = pw

        launch_kwargs: dict[str, object] = {
            "headless": self._headless,
            "args": [
                "--no-first-run",
                "--no-default-browser-check",
                "--disable-blink-features=AutomationControlled",
                "--disable-infobars",
            ],
        }
        try:
            br = await pw.chromium.launch(channel="chrome", **launch_kwargs)  # type: ignore[arg-type]
            log.info("Launched real Chrome browser")
        except async_api.Error:
            log.info("Real Chrome not available, falling back to bundled Chromium")
            br = await pw.chromium.launch(**launch_kwargs)  # type: ignore[arg-type]
        self._browser = br

        self._context = await br.new_context(
            viewport={"width": 1366, "height": 900},
            locale="en-GB",
            timezone_id="Europe/London",
            java_script_enabled=True,
        )
        await self._context.add_init_script(scripts.STEALTH)
        await self._context.add_init_script(scripts.HELPERS)

    async def new_page(self) -> async_api.Page:
        if self._context is None:
            await self.launch()
        assert self._context is not None
        return await self._context.new_page()

    async def open(
        self,
        pw_page: async_api.Page,
        url: str,
        wait_until: Literal["commit", "domcontentloaded", "load", "networkidle"] = "load",
    ) -> page_host.PlaywrightHost:
        """Navigate *pw_page* to *url* and return its main-frame host.

        Raises:
            playwright.async_api.Error: When navigation fails.
        """
        log.debug("Navigating", {"url": url, "waitUntil": wait_until})
        response = await pw_page.goto(url, wait_until=wait_until, timeout=NAVIGATION_TIMEOUT_MS)
        status = response.status if response else None
        if status and status >= 400:
            log.warn("Page returned an error status", {"url": url, "status": status})
        if pw_page.url != url:
            log.info("Redirected", {"from": url, "to": pw_page.url})
        return page_host.PlaywrightHost(pw_page)

    async def close(self) -> None:
        """Close the context, browser and Playwright driver."""
        if self._context is not None:
            try:
                await self._context.close()
            except async_api.Error as exc:
                log.debug("Context close failed", {"error": str(exc)})
            self._context = None
        if self._browser is not None:
            try:
                await self._browser.close()
            except async_api.Error as exc:
                log.debug("Browser close failed", {"error": str(exc)})
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        log.info("Browser closed")
