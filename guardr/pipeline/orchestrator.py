"""
Ordered execution of the denial phases under one deadline.

The orchestrator walks the phases in a fixed order, stopping at the
first one that reaches an end state.  A payment wall ends the run
before any control is touched.  Phase failures are recorded on the
result and never abort the run; the deadline ends it early with the
result flagged, so callers always receive a :class:`RunResult`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from guardr.browser import host as host_mod
from guardr.consent import classifier as classifier_mod, cmp
from guardr.learning import engine as engine_mod
from guardr.models import result
from guardr.pipeline import context, phases
from guardr.utils import logger, url

log = logger.create_logger("Orchestrator")

DEFAULT_DEADLINE_SECONDS = 30.0
DEFAULT_RECENCY_WINDOW_SECONDS = 60.0

Phase = Callable[[context.RunContext], Awaitable[bool]]

# Run order.  The first entry is terminal when it fires.
PHASES: tuple[tuple[str, Phase], ...] = (
    ("payment-wall", phases.payment_wall_check),
    ("learned-replay", phases.learned_replay),
    ("structural", phases.structural),
    ("direct-click", phases.direct_click_sweep),
    ("vendor-api", phases.vendor_api),
    ("multi-section", phases.multi_section),
    ("toggle-sweep", phases.toggle_sweep),
    ("embedded-frames", phases.embedded_frames),
    ("forced-hide", phases.forced_hide),
)


class ConsentOrchestrator:
    """Runs one denial attempt against a host page.

    Usage::

        orchestrator = ConsentOrchestrator(host, engine)
        run = await orchestrator.run()
        print(run.resolution_method, len(run.denied))
    """

    def __init__(
        self,
        host: host_mod.HostPage,
        learning: engine_mod.LearningEngine | None = None,
        *,
        deadline_seconds: float = DEFAULT_DEADLINE_SECONDS,
        recency_window: float = DEFAULT_RECENCY_WINDOW_SECONDS,
        phase_list: tuple[tuple[str, Phase], ...] = PHASES,
    ) -> None:
        self._host = host
        self._learning = learning
        self._deadline_seconds = deadline_seconds
        self._recency_window = recency_window
        self._phases = phase_list

    async def run(self, reference_time: float | None = None) -> result.RunResult:
        """Execute the phases and return the populated result.

        Args:
            reference_time: Page-clock time surfaces are measured
                against.  Defaults to the document's load time.
        """
        site = url.site_id(self._host.url)
        logger.start_log_file(site)
        log.section(f"Denial run: {site}")
        log.start_timer("denial-run")

        ctx = self._new_context(site)
        try:
            ctx.reference_time = reference_time if reference_time is not None else await self._host.load_time()
            await self._detect_cmps(ctx)
            await self._run_phases(ctx)
        except Exception as exc:
            log.error("Denial run failed", {"site": site, "error": str(exc)})
            ctx.record_error("Denial run", exc)
        finally:
            self._finish(ctx)
            logger.end_log_file()
        return ctx.result

    def _new_context(self, site: str) -> context.RunContext:
        if self._learning is not None:
            classifier = self._learning.build_classifier(site)
        else:
            classifier = classifier_mod.Classifier()
        return context.RunContext.create(
            self._host,
            classifier,
            self._learning,
            site=site,
            budget_seconds=self._deadline_seconds,
            recency_window=self._recency_window,
        )

    @staticmethod
    async def _detect_cmps(ctx: context.RunContext) -> None:
        """Label the run with the consent managers present on the page."""
        try:
            async with asyncio.timeout(ctx.remaining()):
                cmps = await ctx.host.detect_cmps()
        except Exception as exc:
            log.warn("CMP detection failed", {"error": str(exc)})
            ctx.record_error("CMP detection", exc)
            return
        if cmps:
            ctx.result.cmp_detected = cmp.cmp_label(cmps)
            ctx.log_action(f"Consent manager detected: {ctx.result.cmp_detected}")

    async def _run_phases(self, ctx: context.RunContext) -> None:
        for name, phase in self._phases:
            if ctx.expired():
                self._flag_deadline(ctx, name)
                return
            log.subsection(f"Phase: {name}")
            log.debug("Phase started", {"remainingMs": int(ctx.remaining() * 1000)})
            try:
                async with asyncio.timeout(ctx.remaining()):
                    done = await phase(ctx)
            except TimeoutError:
                if ctx.expired():
                    self._flag_deadline(ctx, name)
                    return
                ctx.record_error(f"Phase {name}", "timed out")
                continue
            except Exception as exc:
                log.warn("Phase failed, continuing", {"phase": name, "error": str(exc)})
                ctx.record_error(f"Phase {name}", exc)
                continue

            if done:
                log.success("Run reached end state", {"phase": name, "method": ctx.result.resolution_method})
                return

    @staticmethod
    def _flag_deadline(ctx: context.RunContext, phase: str) -> None:
        ctx.result.deadline_exceeded = True
        ctx.log_action(f"Deadline reached before {phase} completed")
        log.warn("Run deadline exceeded", {"phase": phase, "elapsedMs": ctx.elapsed_ms()})

    @staticmethod
    def _finish(ctx: context.RunContext) -> None:
        run = ctx.result
        run.elapsed_ms = ctx.elapsed_ms()
        # A label switched off anywhere is not reported as kept.
        denied_labels = {record.label for record in run.denied}
        run.kept = [record for record in run.kept if record.label not in denied_labels]
        log.end_timer("denial-run", "Denial run complete")
        log.info(
            "Run summary",
            {
                "site": ctx.site,
                "method": run.resolution_method or "none",
                "confidence": run.resolution_confidence or "none",
                "denied": len(run.denied),
                "kept": len(run.kept),
                "errors": len(run.errors),
                "togglesSeen": run.toggles_seen,
                "sectionsVisited": run.sections_visited,
                "framesScanned": run.frames_scanned,
                "paymentWall": run.payment_wall_suspected,
                "deadlineExceeded": run.deadline_exceeded,
            },
        )
