"""Request/response models for the command surface."""

from __future__ import annotations

from typing import Literal

import pydantic

from guardr.models import base, labels, result

CommandType = Literal[
    "RUN_CLEAN",
    "SCAN_ONLY",
    "ENTER_TEACHING_MODE",
    "EXIT_TEACHING_MODE",
    "GET_LEARNED_PATTERNS",
    "PING",
]


class CommandRequest(base.CamelModel):
    """A single command sent to the page controller.

    ``url`` navigates the controlled page first when given.
    ``intent`` is the meaning attached to the next captured click
    while teaching.
    """

    type: CommandType
    url: str | None = None
    intent: labels.Intent = labels.Intent.DENY


class ScanReport(base.CamelModel):
    """Read-only view of the page's consent state."""

    cmps: list[str] = pydantic.Field(default_factory=list)
    cmp_label: str = "Generic/Unknown"
    surface_visible: bool = False
    toggle_count: int = 0
    url: str = ""


class TeachingState(base.CamelModel):
    active: bool
    intent: labels.Intent | None = None
    captured: labels.LearnedPattern | None = None


class LearningStats(base.CamelModel):
    """Counts over the persisted learning state."""

    global_patterns: int = 0
    taught_patterns: int = 0
    sites: int = 0
    promoted_rules: int = 0
    ready_for_promotion: int = 0
    by_intent: dict[str, int] = pydantic.Field(default_factory=dict)


class LearnedPatternsReport(base.CamelModel):
    site: str
    patterns: list[labels.LearnedPattern] = pydantic.Field(default_factory=list)
    stats: LearningStats | None = None


class CommandResponse(base.CamelModel):
    """Envelope returned for every command.

    Exactly one of the payload fields is set, matching ``type``.
    """

    type: CommandType
    success: bool = True
    error: str | None = None
    run: result.RunResult | None = None
    scan: ScanReport | None = None
    teaching: TeachingState | None = None
    learned: LearnedPatternsReport | None = None
    alive: bool | None = None

    @classmethod
    def failure(cls, command: CommandType, message: str) -> CommandResponse:
        return cls(type=command, success=False, error=message)
