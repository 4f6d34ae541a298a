"""
Vendor-independent discovery of consent surfaces.

Candidates come from structural signals only: out-of-flow positioning,
a stacking order above the page, dialog semantics, or identifier
tokens that mention privacy or consent.  A candidate qualifies when,
within the recency window of its reference time, either

* its text is on the privacy topic, asks for a decision, and it holds
  at least one visible control, or
* it holds a Deny-labelled and an Accept-labelled control side by side.

Qualifying surfaces are ranked by stacking order, then area, and
surfaces whose controls are all contained in a higher-ranked surface
are dropped.
"""

from __future__ import annotations

from guardr.consent import constants
from guardr.models import labels, page
from guardr.pipeline import context
from guardr.utils import logger

log = logger.create_logger("Discovery")

Intent = labels.Intent

# A panel opened by a click may be observed marginally before the
# click time was read back from the page.
_PANEL_TOLERANCE_SECONDS = 0.25


def has_structural_signal(element: page.ElementSnapshot) -> bool:
    """Whether *element* looks like an overlay or dialog root."""
    if element.position in constants.OVERLAY_POSITIONS:
        return True
    if element.z_index > 0:
        return True
    if element.role in constants.DIALOG_ROLES or element.aria_modal or element.tag == "dialog":
        return True
    tokens = " ".join(element.id_tokens).lower()
    return any(token in tokens for token in constants.IDENTIFIER_TOKENS)


def is_recent(first_seen: float, reference: float, window: float, *, after_reference: bool = False) -> bool:
    """Whether an element first seen at *first_seen* falls in the window.

    The element must have appeared no later than *window* seconds after
    *reference*.  With *after_reference* it must also have appeared at
    or after the reference (a freshly opened panel).
    """
    if first_seen - reference > window:
        return False
    return not (after_reference and first_seen < reference - _PANEL_TOLERANCE_SECONDS)


def qualifies(ctx: context.RunContext, root: page.ElementSnapshot, controls: list[page.ElementSnapshot]) -> bool:
    """Apply the topic/decision rule and the button-pair rule."""
    visible_controls = [c for c in controls if c.visible and not c.disabled]
    text = f"{root.text} {root.aria_label}"

    if (
        visible_controls
        and constants.PRIVACY_TOPIC_RE.search(text)
        and constants.DECISION_RE.search(text)
    ):
        return True

    intents = {ctx.classifier.classify_element(c)[0] for c in visible_controls}
    return Intent.DENY in intents and Intent.ACCEPT in intents


def rank(surfaces: list[page.Surface]) -> list[page.Surface]:
    """Highest stacking order first; drop surfaces nested in a better one."""
    ordered = sorted(surfaces, key=lambda s: (s.root.z_index, s.root.area), reverse=True)
    kept: list[page.Surface] = []
    for surface in ordered:
        refs = surface.control_refs
        if refs and any(refs <= other.control_refs for other in kept):
            log.debug("Nested surface dropped", {"ref": surface.ref})
            continue
        kept.append(surface)
    return kept


async def build_surface(
    ctx: context.RunContext,
    root: page.ElementSnapshot,
    *,
    depth: int = 0,
    parent: page.Surface | None = None,
) -> page.Surface:
    """Collect a root's click targets and toggles into a Surface."""
    controls = await ctx.host.controls(root.ref)
    toggles = await ctx.host.toggles(root.ref)
    return page.Surface(
        root=root,
        controls=controls,
        toggles=toggles,
        first_seen=root.first_seen,
        depth=depth,
        parent=parent,
    )


async def discover(
    ctx: context.RunContext,
    *,
    reference: float | None = None,
    after_reference: bool = False,
    depth: int = 0,
    parent: page.Surface | None = None,
) -> list[page.Surface]:
    """Find qualifying, not-yet-processed surfaces in ``ctx.host``.

    Args:
        ctx: The run context.
        reference: Page-clock time recency is measured against;
            defaults to the run's reference time.
        after_reference: Only accept surfaces that appeared after
            *reference* (used after opening a settings panel).
        depth: Discovery level; 0 for the initial scan.
        parent: The surface whose Manage control led here.
    """
    ref_time = ctx.reference_time if reference is None else reference
    candidates = await ctx.host.candidates()
    found: list[page.Surface] = []

    for candidate in candidates:
        if candidate.ref in ctx.processed or not candidate.visible:
            continue
        try:
            if not has_structural_signal(candidate):
                continue
            if not is_recent(candidate.first_seen, ref_time, ctx.recency_window, after_reference=after_reference):
                log.debug("Candidate outside recency window", {"ref": candidate.ref, "firstSeen": candidate.first_seen})
                continue
            surface = await build_surface(ctx, candidate, depth=depth, parent=parent)
            if qualifies(ctx, candidate, surface.controls):
                found.append(surface)
        except Exception as exc:
            log.debug("Candidate skipped after inspection error", {"ref": candidate.ref, "error": str(exc)})
            continue

    ranked = rank(found)
    if ranked:
        ctx.result.surface_found = True
        for surface in ranked:
            if all(s.ref != surface.ref for s in ctx.seen_surfaces):
                ctx.seen_surfaces.append(surface)
        log.info(
            "Consent surfaces discovered",
            {
                "count": len(ranked),
                "depth": depth,
                "top": ranked[0].ref,
                "controls": len(ranked[0].controls),
                "toggles": len(ranked[0].toggles),
            },
        )
    return ranked


async def any_surface_visible(ctx: context.RunContext) -> bool:
    """Whether any surface seen during the run is still on screen.

    Falls back to a fresh discovery when no surface has been seen.
    """
    if ctx.seen_surfaces:
        for surface in ctx.seen_surfaces:
            if await ctx.host.is_visible(surface.ref):
                return True
        return False
    return bool(await discover(ctx))
