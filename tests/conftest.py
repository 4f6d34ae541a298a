"""Shared fixtures for the test suite."""

from __future__ import annotations

import asyncio
import dataclasses
import pathlib
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest

from guardr import config
from guardr.learning.engine import LearningEngine
from guardr.learning.store import PatternStore
from guardr.models import page

LOAD_TIME = 100.0

# ── In-memory host page ─────────────────────────────────────────


@dataclasses.dataclass
class FakeElement:
    """One element of a :class:`FakeHost` document."""

    ref: str
    kind: str  # "root", "control" or "toggle"
    text: str = ""
    parent: str | None = None
    visible: bool = True
    checked: bool | None = None
    stuck: bool = False
    click_fails: bool = False
    activate_fails: bool = False
    on_click: Callable[[FakeHost], None] | None = None
    attrs: dict[str, Any] = dataclasses.field(default_factory=dict)


class FakeHost:
    """Implements the host-page protocol over a dict of elements.

    Roots are returned by ``candidates()``; controls and toggles belong
    to the root (or any element) named by ``parent``.
    """

    def __init__(self, url: str = "https://www.example.com/article", name: str = "main") -> None:
        self._url = url
        self._name = name
        self.clock = LOAD_TIME + 5
        self.loaded_at = LOAD_TIME
        self.body = ""
        self.elements: dict[str, FakeElement] = {}
        self.cmps: list[str] = []
        self.vendor_labels: list[str] = []
        self.on_vendor_call: Callable[[FakeHost], None] | None = None
        self.tcf: dict[str, Any] | None = None
        self.child_frames: list[FakeHost] = []
        self.candidate_delay = 0.0
        self.next_click: page.ElementSnapshot | None = None
        self.capture_delay = 0.0
        self.capture_cancelled = False
        self.watch_callback: Callable[[], None] | None = None
        self.unwatched = 0
        self.clicks: list[str] = []
        self.activations: list[str] = []
        self.hidden: list[str] = []
        self.settles: list[int] = []

    # ── Building the document ──

    def add_root(self, ref: str, text: str, **attrs: Any) -> FakeElement:
        defaults = {"position": "fixed", "z_index": 1000, "width": 800.0, "height": 200.0, "first_seen": LOAD_TIME + 1}
        element = FakeElement(ref=ref, kind="root", text=text, attrs={**defaults, **attrs})
        self.elements[ref] = element
        return element

    def add_control(self, ref: str, text: str, parent: str | None = None, **kwargs: Any) -> FakeElement:
        fields = {k: kwargs.pop(k) for k in ("on_click", "click_fails", "activate_fails", "visible") if k in kwargs}
        element = FakeElement(ref=ref, kind="control", text=text, parent=parent, attrs={"tag": "button", **kwargs}, **fields)
        self.elements[ref] = element
        return element

    def add_toggle(self, ref: str, label: str, parent: str | None = None, checked: bool = True, **kwargs: Any) -> FakeElement:
        fields = {k: kwargs.pop(k) for k in ("stuck", "visible") if k in kwargs}
        attrs = {"tag": "input", "input_type": "checkbox", "is_toggle": True, "aria_label": label, **kwargs}
        element = FakeElement(ref=ref, kind="toggle", parent=parent, checked=checked, attrs=attrs, **fields)
        self.elements[ref] = element
        return element

    def set_visible(self, ref: str, visible: bool) -> None:
        self.elements[ref].visible = visible

    def closes(self, ref: str) -> Callable[[FakeHost], None]:
        """An ``on_click`` effect hiding *ref*."""
        return lambda host: host.set_visible(ref, False)

    def _shown(self, ref: str) -> bool:
        element = self.elements.get(ref)
        while element is not None:
            if not element.visible:
                return False
            element = self.elements.get(element.parent) if element.parent else None
        return ref in self.elements

    def _within(self, element: FakeElement, scope: str) -> bool:
        parent = element.parent
        while parent is not None:
            if parent == scope:
                return True
            parent = self.elements[parent].parent if parent in self.elements else None
        return False

    def snapshot(self, ref: str) -> page.ElementSnapshot:
        element = self.elements[ref]
        return page.ElementSnapshot(
            ref=ref,
            text=element.text,
            visible=self._shown(ref),
            checked=element.checked,
            first_seen=element.attrs.get("first_seen", LOAD_TIME + 1),
            **{k: v for k, v in element.attrs.items() if k != "first_seen"},
        )

    def _query(self, kind: str, scope: str | None) -> list[page.ElementSnapshot]:
        out = []
        for element in self.elements.values():
            if element.kind != kind:
                continue
            if scope is None:
                if not self._shown(element.ref):
                    continue
            elif not self._within(element, scope):
                continue
            out.append(self.snapshot(element.ref))
        return out

    # ── Protocol ──

    @property
    def url(self) -> str:
        return self._url

    @property
    def name(self) -> str:
        return self._name

    async def now(self) -> float:
        return self.clock

    async def load_time(self) -> float:
        return self.loaded_at

    async def body_text(self, limit: int = 3000) -> str:
        return self.body[:limit]

    async def candidates(self) -> list[page.ElementSnapshot]:
        if self.candidate_delay:
            await asyncio.sleep(self.candidate_delay)
        return [self.snapshot(ref) for ref, el in self.elements.items() if el.kind == "root"]

    async def controls(self, scope: str | None = None) -> list[page.ElementSnapshot]:
        return self._query("control", scope)

    async def toggles(self, scope: str | None = None) -> list[page.ElementSnapshot]:
        return self._query("toggle", scope)

    async def is_visible(self, ref: str) -> bool:
        return self._shown(ref)

    def _press(self, element: FakeElement) -> None:
        if element.kind == "toggle" and not element.stuck:
            element.checked = not element.checked
        if element.on_click is not None:
            element.on_click(self)

    async def click(self, ref: str) -> bool:
        self.clicks.append(ref)
        element = self.elements.get(ref)
        if element is None or element.click_fails or not self._shown(ref):
            return False
        self._press(element)
        return True

    async def activate(self, ref: str) -> bool:
        self.activations.append(ref)
        element = self.elements.get(ref)
        if element is None or element.activate_fails:
            return False
        self._press(element)
        return True

    async def read_checked(self, ref: str) -> bool | None:
        return self.elements[ref].checked

    async def force_checked(self, ref: str, value: bool) -> bool:
        element = self.elements[ref]
        if element.stuck:
            return False
        element.checked = value
        return True

    async def hide(self, ref: str) -> bool:
        if ref not in self.elements:
            return False
        self.hidden.append(ref)
        self.elements[ref].visible = False
        return True

    async def detect_cmps(self) -> list[str]:
        return list(self.cmps)

    async def call_vendor_apis(self) -> list[str]:
        if self.vendor_labels and self.on_vendor_call is not None:
            self.on_vendor_call(self)
        return list(self.vendor_labels)

    async def tcf_data(self) -> dict[str, Any] | None:
        return self.tcf

    async def frames(self) -> list[FakeHost]:
        return list(self.child_frames)

    async def settle(self, max_ms: int) -> None:
        self.settles.append(max_ms)

    async def capture_next_click(self, timeout: float) -> page.ElementSnapshot | None:
        if self.capture_delay:
            await asyncio.sleep(self.capture_delay)
        return self.next_click

    async def cancel_capture(self) -> None:
        self.capture_cancelled = True

    async def watch(self, callback: Callable[[], None]) -> None:
        self.watch_callback = callback

    async def unwatch(self) -> None:
        self.watch_callback = None
        self.unwatched += 1


# ── Page fixtures ───────────────────────────────────────────────


@pytest.fixture()
def host() -> FakeHost:
    """An empty page."""
    return FakeHost()


@pytest.fixture()
def banner_host() -> FakeHost:
    """A cookie banner with Accept all / Reject all; rejecting closes it."""
    fake = FakeHost()
    fake.add_root("banner", "We use cookies to improve your experience. Accept or reject them below.")
    fake.add_control("accept", "Accept all", parent="banner", on_click=fake.closes("banner"))
    fake.add_control("reject", "Reject all", parent="banner", on_click=fake.closes("banner"))
    return fake


# ── Learning fixtures ───────────────────────────────────────────


class FrozenClock:
    """A settable clock for expiry tests."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def store(tmp_path: pathlib.Path) -> PatternStore:
    return PatternStore(tmp_path / "learning")


@pytest.fixture()
def engine(store: PatternStore, clock: FrozenClock) -> LearningEngine:
    return LearningEngine(store, clock=clock)


@pytest.fixture()
def settings(tmp_path: pathlib.Path) -> config.Settings:
    return config.Settings(
        auto_run=False,
        deadline_seconds=5.0,
        watch_timeout_seconds=0.5,
        store_dir=tmp_path / "learning",
    )
