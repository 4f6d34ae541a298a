"""
The host-page interface consumed by the denial engine.

Everything the engine knows about a page comes through this protocol:
element snapshots, clicks, checked-state reads and writes, vendor
entry points, and the page's own clock.  The Playwright-backed
implementation lives in :mod:`guardr.browser.page_host`.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from guardr.models import page


class HostPage(Protocol):
    """One scriptable document: the main frame or a same-origin child."""

    @property
    def url(self) -> str: ...

    @property
    def name(self) -> str:
        """Short identifier used in logs and action traces."""
        ...

    async def now(self) -> float:
        """Seconds on the page's clock."""
        ...

    async def load_time(self) -> float:
        """The page clock's reading when the document finished loading."""
        ...

    async def body_text(self, limit: int = 3000) -> str: ...

    async def candidates(self) -> list[page.ElementSnapshot]:
        """Elements with overlay, dialog, or consent-identifier signals."""
        ...

    async def controls(self, scope: str | None = None) -> list[page.ElementSnapshot]:
        """Click targets inside *scope* (whole document when ``None``)."""
        ...

    async def toggles(self, scope: str | None = None) -> list[page.ElementSnapshot]:
        """Checkbox and switch-like inputs inside *scope*."""
        ...

    async def is_visible(self, ref: str) -> bool: ...

    async def click(self, ref: str) -> bool:
        """Click like a user would.  ``False`` when the click failed or was unsafe."""
        ...

    async def activate(self, ref: str) -> bool:
        """Forceful activation path, dispatched from inside the page."""
        ...

    async def read_checked(self, ref: str) -> bool | None: ...

    async def force_checked(self, ref: str, value: bool) -> bool:
        """Set the checked state directly and fire change events."""
        ...

    async def hide(self, ref: str) -> bool:
        """Suppress an element's visibility and release any scroll lock."""
        ...

    async def detect_cmps(self) -> list[str]: ...

    async def call_vendor_apis(self) -> list[str]:
        """Invoke every vendor "reject all" entry point present.  Returns labels of those called."""
        ...

    async def tcf_data(self) -> dict[str, Any] | None: ...

    async def frames(self) -> list[HostPage]:
        """Same-origin child documents.  Cross-origin frames are never returned."""
        ...

    async def settle(self, max_ms: int) -> None:
        """Wait until the document stops mutating, at most *max_ms*."""
        ...

    async def capture_next_click(self, timeout: float) -> page.ElementSnapshot | None:
        """Wait for the user's next click and snapshot its target."""
        ...

    async def cancel_capture(self) -> None: ...

    async def watch(self, callback: Callable[[], None]) -> None:
        """Call *callback* whenever consent-like nodes are added."""
        ...

    async def unwatch(self) -> None: ...
