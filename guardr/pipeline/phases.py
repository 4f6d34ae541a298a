"""
The ordered strategies of a denial run.

Each phase takes the run context and returns ``True`` when it brought
the run to an end state.  Phases never raise for expected page
conditions; unexpected exceptions propagate to the orchestrator, which
records them and moves on to the next phase.
"""

from __future__ import annotations

from typing import Any

from guardr.consent import classifier, cmp, constants, discovery, payment_wall, resolver
from guardr.models import labels, page
from guardr.pipeline import context
from guardr.utils import logger

log = logger.create_logger("Phases")

Intent = labels.Intent

# Direct-sweep labels longer than this are not button-like.
MAX_SWEEP_LABEL_LENGTH = 60

SETTLE_AFTER_API_MS = 1500
SETTLE_AFTER_TAB_MS = 1000
SETTLE_AFTER_SECTION_MS = 300
SETTLE_AFTER_REPLAY_MS = 800


# ============================================================================
# 1. Payment wall
# ============================================================================


async def payment_wall_check(ctx: context.RunContext) -> bool:
    """Abort the run when the page looks like a consent-or-pay wall."""
    body = await ctx.host.body_text(payment_wall.BODY_TEXT_LIMIT)
    candidates = await ctx.host.candidates()
    surface_texts = [
        c.text
        for c in candidates
        if c.visible and discovery.has_structural_signal(c) and constants.PRIVACY_TOPIC_RE.search(c.text)
    ]
    reason = payment_wall.detect(body, surface_texts)
    if reason is None:
        return False
    ctx.result.payment_wall_suspected = True
    ctx.result.payment_wall_reason = reason
    ctx.log_action("Payment wall suspected, no controls touched")
    return True


# ============================================================================
# 2. Learned replay
# ============================================================================


async def learned_replay(ctx: context.RunContext) -> bool:
    """Click controls matching the site's proven Deny patterns."""
    if ctx.learning is None:
        return False
    known = [p for p in ctx.learning.site_patterns(ctx.site) if p.intent is Intent.DENY and p.success_count]
    if not known:
        return False

    keys = {p.normalized_text for p in known}
    surfaces = await discovery.discover(ctx)
    for element in await ctx.host.controls(None):
        if ctx.expired():
            break
        if not element.actionable or element.ref in ctx.attempted:
            continue
        label = classifier.element_label(element)
        if classifier.pattern_key(label) not in keys:
            continue

        log.info("Replaying learned control", {"label": label[:60], "site": ctx.site})
        if not await resolver.activate(ctx, element, label):
            ctx.learn(label, Intent.DENY, success=False)
            continue
        await ctx.host.settle(SETTLE_AFTER_REPLAY_MS)
        owner = next((s for s in surfaces if element.ref in s.control_refs), None)
        gone = not await ctx.host.is_visible(owner.ref if owner else element.ref)
        ctx.learn(label, Intent.DENY, success=gone)
        if gone:
            ctx.result.surface_found = True
            ctx.record_denied(f'Clicked "{label}"', constants.CATEGORY_BANNER_ACTION, "deny-all")
            ctx.log_action(f'Replayed learned deny control "{label}"')
            ctx.mark_resolved("learned-replay")
            return True
    return False


# ============================================================================
# 3. Structural discovery and resolution
# ============================================================================


async def structural(ctx: context.RunContext) -> bool:
    """Discover surfaces by structure and resolve each in rank order."""
    surfaces = await discovery.discover(ctx)
    for surface in surfaces:
        if ctx.expired():
            break
        outcome = await resolver.resolve(ctx, surface)
        if outcome.closed and outcome.method is not None:
            ctx.mark_resolved(outcome.method)
            return True
    return False


# ============================================================================
# 4. Direct click sweep
# ============================================================================


async def direct_click_sweep(ctx: context.RunContext) -> bool:
    """Try every short, Deny-labelled control on the page."""
    for candidate in resolver.classify_controls(ctx, await ctx.host.controls(None)):
        if ctx.expired():
            break
        element = candidate.element
        if (
            candidate.intent is not Intent.DENY
            or element.in_nav
            or element.ref in ctx.attempted
            or len(candidate.label) >= MAX_SWEEP_LABEL_LENGTH
        ):
            continue
        if not await resolver.activate(ctx, element, candidate.label):
            ctx.learn(candidate.label, Intent.DENY, success=False)
            continue
        await ctx.host.settle(resolver.SETTLE_AFTER_DENY_MS)
        gone = not await ctx.host.is_visible(element.ref)
        ctx.learn(candidate.label, Intent.DENY, success=gone)
        if gone:
            ctx.record_denied(f'Clicked "{candidate.label}"', constants.CATEGORY_BANNER_ACTION, "deny-all")
            ctx.log_action(f'Clicked deny control "{candidate.label}" outside any surface')
            ctx.mark_resolved("direct-click")
            return True
    return False


# ============================================================================
# 5. Vendor API
# ============================================================================


def _report_tcf(ctx: context.RunContext, data: dict[str, Any] | None) -> None:
    if not data:
        return
    purpose = data.get("purpose") or {}
    consents = purpose.get("consents") or {}
    for purpose_id in sorted(cmp.MANDATORY_TCF_PURPOSES):
        if not (consents.get(str(purpose_id)) or consents.get(purpose_id)):
            continue
        label = f"Purpose {purpose_id}: {cmp.TCF_PURPOSE_LABELS[purpose_id]}"
        ctx.record_kept(label, "TCF Purpose", "tcf-purpose")
    still_on = [k for k, v in consents.items() if v and str(k).isdigit() and int(k) not in cmp.MANDATORY_TCF_PURPOSES]
    log.debug("TCF data read", {"cmpId": data.get("cmpId"), "purposesStillOn": still_on})


async def vendor_api(ctx: context.RunContext) -> bool:
    """Invoke vendor reject entry points and check the surface went away."""
    cmps = await ctx.host.detect_cmps()
    if cmps and ctx.result.cmp_detected is None:
        ctx.result.cmp_detected = cmp.cmp_label(cmps)

    called = await ctx.host.call_vendor_apis()
    for label in called:
        ctx.record_denied(f"Called {label}", constants.CATEGORY_CMP_API, "api-reject")
        ctx.log_action(f"Called vendor API {label}")
    _report_tcf(ctx, await ctx.host.tcf_data())

    if not called:
        return False
    await ctx.host.settle(SETTLE_AFTER_API_MS)
    if await discovery.any_surface_visible(ctx):
        log.info("Vendor API called but the surface is still visible", {"apis": called})
        return False
    ctx.mark_resolved("vendor-api")
    return True


# ============================================================================
# 6. Multi-section navigation
# ============================================================================


def _section_name(element: page.ElementSnapshot) -> str:
    return classifier.normalize(element.text) or classifier.normalize(element.aria_label)


async def _local_deny(ctx: context.RunContext, scope: str | None, section: str) -> bool:
    """Click a reject or object-to-all control inside one section."""
    for candidate in resolver.classify_controls(ctx, await ctx.host.controls(scope)):
        if candidate.element.ref in ctx.attempted:
            continue
        if candidate.intent is not Intent.DENY and not constants.OBJECT_ALL_RE.search(candidate.label):
            continue
        if await resolver.activate(ctx, candidate.element, candidate.label):
            ctx.record_denied(f'Clicked "{candidate.label}"', constants.CATEGORY_BANNER_ACTION, "deny-all", section)
            ctx.log_action(f'Clicked "{candidate.label}" in {section}')
            await ctx.host.settle(resolver.SETTLE_AFTER_TOGGLE_MS)
            return True
    return False


async def _visit(ctx: context.RunContext, element: page.ElementSnapshot, name: str, kind: str) -> int:
    """Sweep one tab or section.  Returns toggles changed plus local deny clicks."""
    ctx.result.sections.append(f"{kind}: {name}"[:60])
    ctx.result.sections_visited += 1
    changed = await resolver.sweep_toggles(ctx, await ctx.host.toggles(element.scope_ref), name)
    if await _local_deny(ctx, element.scope_ref, name):
        changed += 1
    return changed


async def multi_section(ctx: context.RunContext) -> bool:
    """Walk vendor/purpose tabs and expandable sections."""
    tabs: list[tuple[page.ElementSnapshot, str]] = []
    sections: list[tuple[page.ElementSnapshot, str]] = []
    for element in await ctx.host.controls(None):
        if not element.actionable:
            continue
        name = _section_name(element)
        if not name:
            continue
        if any(p.search(name) for p in constants.TAB_PATTERNS):
            tabs.append((element, name))
        elif any(p.search(name) for p in constants.SECTION_PATTERNS):
            sections.append((element, name))

    if not tabs and not sections:
        return False
    log.info("Navigating sections", {"tabs": len(tabs), "sections": len(sections)})

    changed = 0
    for tab, name in tabs:
        if ctx.expired():
            break
        if not tab.active:
            if not await resolver.activate(ctx, tab, name):
                continue
            await ctx.host.settle(SETTLE_AFTER_TAB_MS)
        changed += await _visit(ctx, tab, name, "tab")

    for section, name in sections:
        if ctx.expired():
            break
        if section.expanded is not True:
            if not await resolver.activate(ctx, section, name):
                continue
            await ctx.host.settle(SETTLE_AFTER_SECTION_MS)
        changed += await _visit(ctx, section, name, "section")

    if not changed:
        return False
    await resolver.try_confirm(ctx, await ctx.host.controls(None))
    if await discovery.any_surface_visible(ctx):
        return False
    ctx.mark_resolved("multi-section")
    return True


# ============================================================================
# 7. Page-wide toggle sweep
# ============================================================================


async def toggle_sweep(ctx: context.RunContext) -> bool:
    """Switch off every eligible toggle on the page and confirm."""
    changed = await resolver.sweep_toggles(ctx, await ctx.host.toggles(None))
    if not changed:
        return False
    await resolver.try_confirm(ctx, await ctx.host.controls(None))
    if await discovery.any_surface_visible(ctx):
        return False
    ctx.mark_resolved("toggle-sweep")
    return True


# ============================================================================
# 8. Embedded frames
# ============================================================================

# Phases repeated inside each same-origin frame.
FRAME_PHASES = (structural, direct_click_sweep, vendor_api, multi_section)


async def embedded_frames(ctx: context.RunContext) -> bool:
    """Repeat the in-document phases inside same-origin frames."""
    if ctx.in_frame:
        return False
    for frame in await ctx.host.frames():
        if ctx.expired():
            break
        ctx.result.frames_scanned += 1
        child = ctx.for_frame(frame)
        log.debug("Scanning frame", {"frame": frame.name, "url": frame.url[:100]})
        for phase in FRAME_PHASES:
            if child.expired():
                break
            if await phase(child):
                return True
    return False


# ============================================================================
# 9. Forced hide
# ============================================================================


async def forced_hide(ctx: context.RunContext) -> bool:
    """Last resort: hide whatever surface is still on screen."""
    targets = [s for s in ctx.seen_surfaces if await ctx.host.is_visible(s.ref)]
    if not targets:
        ctx.processed.clear()
        targets = await discovery.discover(ctx)
    if not targets:
        log.debug("Nothing left to hide")
        return False

    hidden = 0
    for surface in targets:
        if await ctx.host.hide(surface.ref):
            hidden += 1
            ctx.log_action(f"Hid consent surface {surface.label}")
    if not hidden:
        ctx.record_error("Forced hide", "no surface could be hidden")
        return False
    log.warn("Consent surface hidden without a recorded choice", {"count": hidden})
    ctx.mark_resolved("forced-hide")
    return True
