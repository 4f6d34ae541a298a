"""Pydantic models for the outcome of a denial run."""

from __future__ import annotations

from typing import Literal

import pydantic

from guardr.models import base

ResolutionMethod = Literal[
    "learned-replay",
    "direct-click",
    "manage-panel",
    "vendor-api",
    "multi-section",
    "toggle-sweep",
    "embedded-frame",
    "forced-hide",
]

ConfidenceLevel = Literal["high", "medium", "low"]

# Control kinds recorded on denied/kept entries.
ControlKind = Literal["consent", "deny-all", "api-reject", "system", "tcf-purpose", "forced-hide"]

METHOD_CONFIDENCE: dict[str, ConfidenceLevel] = {
    "learned-replay": "high",
    "direct-click": "high",
    "vendor-api": "high",
    "manage-panel": "medium",
    "multi-section": "medium",
    "toggle-sweep": "medium",
    "embedded-frame": "medium",
    "forced-hide": "low",
}


class ControlRecord(base.CamelModel):
    """A control that was switched off, clicked, or deliberately left on."""

    label: str
    category: str
    kind: ControlKind = "consent"
    section: str = "Main"

    @property
    def dedupe_key(self) -> str:
        return f"{self.label}|{self.category}|{self.kind}"


class ErrorRecord(base.CamelModel):
    """A non-fatal failure encountered during a run."""

    label: str
    error: str


class ActionLogEntry(base.CamelModel):
    """One line of the run's human-readable trace."""

    time_ms: int
    action: str


class RunResult(base.CamelModel):
    """Everything one denial run found and did.

    Exactly one instance exists per run; callers always receive
    one, even when nothing was found.
    """

    url: str = ""
    site: str = ""
    denied: list[ControlRecord] = pydantic.Field(default_factory=list)
    kept: list[ControlRecord] = pydantic.Field(default_factory=list)
    errors: list[ErrorRecord] = pydantic.Field(default_factory=list)
    cmp_detected: str | None = None
    resolution_method: ResolutionMethod | None = None
    resolution_confidence: ConfidenceLevel | None = None
    surface_found: bool = False
    surface_closed: bool = False
    toggles_seen: int = 0
    sections_visited: int = 0
    sections: list[str] = pydantic.Field(default_factory=list)
    frames_scanned: int = 0
    action_log: list[ActionLogEntry] = pydantic.Field(default_factory=list)
    payment_wall_suspected: bool = False
    payment_wall_reason: str | None = None
    deadline_exceeded: bool = False
    elapsed_ms: int = 0

    @property
    def resolved(self) -> bool:
        return self.resolution_method is not None

    def set_method(self, method: ResolutionMethod) -> None:
        """Record how the run reached its end state (first caller wins)."""
        if self.resolution_method is None:
            self.resolution_method = method
            self.resolution_confidence = METHOD_CONFIDENCE[method]
