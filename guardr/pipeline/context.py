"""
Run-scoped state for one denial attempt.

A :class:`RunContext` is created per run and passed explicitly to every
phase, discovery and resolver call.  It owns the :class:`RunResult`,
the per-run de-duplication set and the deadline.  Frame scans derive a
child context that shares the result and deadline but addresses a
different host document.
"""

from __future__ import annotations

import dataclasses
import time

from guardr.browser import host as host_mod
from guardr.consent import classifier as classifier_mod
from guardr.learning import engine as engine_mod
from guardr.models import page, result
from guardr.utils import errors, logger

log = logger.create_logger("RunContext")

MAX_ACTION_LOG = 100
MAX_ACTION_LENGTH = 200
MAX_ERRORS = 50


@dataclasses.dataclass
class RunContext:
    """Everything one run reads and writes.

    ``reference_time`` is the page-clock time surfaces are measured
    against for recency.  ``processed`` holds refs of surfaces already
    resolved in ``host``.
    """

    host: host_mod.HostPage
    classifier: classifier_mod.Classifier
    learning: engine_mod.LearningEngine | None
    result: result.RunResult
    site: str
    deadline: float
    started: float
    reference_time: float = 0.0
    recency_window: float = 60.0
    processed: set[str] = dataclasses.field(default_factory=set)
    seen_surfaces: list[page.Surface] = dataclasses.field(default_factory=list)
    recorded: set[str] = dataclasses.field(default_factory=set)
    attempted: set[str] = dataclasses.field(default_factory=set)
    in_frame: bool = False

    @classmethod
    def create(
        cls,
        host: host_mod.HostPage,
        classifier: classifier_mod.Classifier,
        learning: engine_mod.LearningEngine | None,
        *,
        site: str,
        budget_seconds: float,
        reference_time: float = 0.0,
        recency_window: float = 60.0,
    ) -> RunContext:
        started = time.monotonic()
        return cls(
            host=host,
            classifier=classifier,
            learning=learning,
            result=result.RunResult(url=host.url, site=site),
            site=site,
            deadline=started + budget_seconds,
            started=started,
            reference_time=reference_time,
            recency_window=recency_window,
        )

    def for_frame(self, frame: host_mod.HostPage) -> RunContext:
        """Child context for a same-origin frame.

        Shares the result, de-duplication set and deadline; surface
        bookkeeping starts empty because refs are per document.
        """
        return dataclasses.replace(
            self,
            host=frame,
            processed=set(),
            seen_surfaces=[],
            attempted=set(),
            in_frame=True,
        )

    # ------------------------------------------------------------------
    # Deadline
    # ------------------------------------------------------------------

    def remaining(self) -> float:
        return self.deadline - time.monotonic()

    def expired(self) -> bool:
        return time.monotonic() >= self.deadline

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def log_action(self, action: str) -> None:
        """Append to the capped, time-stamped action log."""
        if len(self.result.action_log) >= MAX_ACTION_LOG:
            return
        prefix = f"[{self.host.name}] " if self.in_frame else ""
        self.result.action_log.append(
            result.ActionLogEntry(
                time_ms=self.elapsed_ms(),
                action=(prefix + action)[:MAX_ACTION_LENGTH],
            )
        )

    def _claim(self, record: result.ControlRecord) -> bool:
        key = record.dedupe_key
        if key in self.recorded:
            return False
        self.recorded.add(key)
        return True

    def is_recorded(self, label: str, category: str, kind: result.ControlKind) -> bool:
        return f"{label}|{category}|{kind}" in self.recorded

    def record_denied(self, label: str, category: str, kind: result.ControlKind = "consent", section: str = "Main") -> bool:
        """Add a denied control once per ``(label, category, kind)``."""
        record = result.ControlRecord(label=label[:150], category=category, kind=kind, section=section[:50] or "Main")
        if not self._claim(record):
            return False
        self.result.denied.append(record)
        return True

    def record_kept(self, label: str, category: str, kind: result.ControlKind = "consent", section: str = "Main") -> bool:
        """Add a kept (protected) control once per ``(label, category, kind)``."""
        record = result.ControlRecord(label=label[:150], category=category, kind=kind, section=section[:50] or "Main")
        if not self._claim(record):
            return False
        self.result.kept.append(record)
        return True

    def record_error(self, label: str, error: BaseException | str) -> None:
        """Append a non-fatal error; identical entries are kept once."""
        message = error if isinstance(error, str) else errors.get_error_message(error)
        entry = result.ErrorRecord(label=errors.truncate(label, 100), error=errors.truncate(message))
        if len(self.result.errors) >= MAX_ERRORS or entry in self.result.errors:
            return
        self.result.errors.append(entry)
        log.debug("Run error recorded", {"label": entry.label, "error": entry.error})

    def mark_resolved(self, method: result.ResolutionMethod) -> None:
        """Record the resolving method.  Successes inside a frame count as frame resolutions."""
        self.result.set_method("embedded-frame" if self.in_frame else method)
        if self.result.surface_found:
            self.result.surface_closed = True

    # ------------------------------------------------------------------
    # Learning feedback
    # ------------------------------------------------------------------

    def learn(self, label: str, intent: classifier_mod.Intent, *, success: bool) -> None:
        if self.learning is None or not label:
            return
        if success:
            self.learning.learn_success(label, intent, self.site)
        else:
            self.learning.learn_failure(label, intent, self.site)
