"""Per-scan views of host page elements.

Snapshots are built fresh on every scan and never persisted.  The
``ref`` is an opaque handle the host page resolves back to the live
element.
"""

from __future__ import annotations

import dataclasses

import pydantic


class ElementSnapshot(pydantic.BaseModel):
    """Cached attributes of one element, as observed by the host page."""

    model_config = pydantic.ConfigDict(extra="ignore", frozen=True)

    ref: str
    tag: str = ""
    role: str = ""
    input_type: str = ""
    text: str = ""
    aria_label: str = ""
    title: str = ""
    associated_text: str = ""
    container_text: str = ""
    id_tokens: tuple[str, ...] = ()
    visible: bool = True
    position: str = "static"
    z_index: int = 0
    width: float = 0.0
    height: float = 0.0
    disabled: bool = False
    checked: bool | None = None
    is_toggle: bool = False
    aria_modal: bool = False
    in_nav: bool = False
    would_navigate: bool = False
    active: bool = False
    expanded: bool | None = None
    scope_ref: str | None = None
    first_seen: float = 0.0

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def actionable(self) -> bool:
        """Visible, enabled and not a real link away from the page."""
        return self.visible and not self.disabled and not self.would_navigate


@dataclasses.dataclass
class Surface:
    """A discovered consent dialog or settings panel.

    Identity is the root element's ``ref``.  ``parent`` points at the
    surface whose Manage control spawned this one.
    """

    root: ElementSnapshot
    controls: list[ElementSnapshot]
    toggles: list[ElementSnapshot]
    first_seen: float
    depth: int = 0
    parent: Surface | None = None

    @property
    def ref(self) -> str:
        return self.root.ref

    @property
    def control_refs(self) -> frozenset[str]:
        return frozenset(el.ref for el in (*self.controls, *self.toggles))

    @property
    def label(self) -> str:
        """Short name used for the ``section`` of recorded controls."""
        if self.root.aria_label:
            return self.root.aria_label[:50]
        if self.depth:
            return f"Panel {self.depth}"
        return "Main"
