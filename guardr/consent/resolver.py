"""
Action selection and execution inside a consent surface.

Toggles are handled first: locked ones are recorded as kept, protected
ones that are on are left alone, and every other enabled toggle is
switched off and verified.  Click targets are then classified and
acted on in the order Deny > Manage.  Accept is never executed and
Unknown controls are never touched.  After a change set a Confirm
control is tried to persist the choice.

Activation failures are retried once through the forceful path and
recorded as run errors when they still do not take effect.
"""

from __future__ import annotations

import dataclasses

from guardr.consent import classifier, constants, discovery, mandatory
from guardr.models import labels, page, result
from guardr.pipeline import context
from guardr.utils import logger

log = logger.create_logger("Resolver")

Intent = labels.Intent

# Additional discovery levels opened through Manage controls.
MAX_MANAGE_DEPTH = 2

# Settle budgets (ms) after each kind of interaction.
SETTLE_AFTER_DENY_MS = 800
SETTLE_AFTER_MANAGE_MS = 1200
SETTLE_AFTER_CONFIRM_MS = 800
SETTLE_AFTER_TOGGLE_MS = 200


@dataclasses.dataclass
class Resolution:
    """Outcome of resolving one surface."""

    closed: bool = False
    acted: bool = False
    toggles_changed: int = 0
    method: result.ResolutionMethod | None = None


@dataclasses.dataclass(frozen=True)
class Classified:
    element: page.ElementSnapshot
    intent: labels.Intent
    label: str


def classify_controls(ctx: context.RunContext, controls: list[page.ElementSnapshot]) -> list[Classified]:
    """Classify actionable controls, skipping links that would navigate away."""
    out: list[Classified] = []
    for element in controls:
        if not element.actionable:
            continue
        intent, label = ctx.classifier.classify_element(element)
        out.append(Classified(element, intent, label))
    return out


# Click-target intents in the order they are acted on.
ACTION_PRIORITY: tuple[labels.Intent, ...] = (Intent.DENY, Intent.MANAGE)


def pick_action(candidates: list[Classified]) -> Classified | None:
    """Deny first, then Manage.  Accept and Unknown are never picked."""
    for wanted in ACTION_PRIORITY:
        for candidate in candidates:
            if candidate.intent is wanted:
                return candidate
    return None


# ============================================================================
# Activation
# ============================================================================


async def activate(ctx: context.RunContext, element: page.ElementSnapshot, label: str) -> bool:
    """Click *element*, falling back once to the forceful path."""
    ctx.attempted.add(element.ref)
    try:
        if await ctx.host.click(element.ref):
            return True
    except Exception as exc:
        log.debug("Click failed, trying forceful activation", {"label": label[:60], "error": str(exc)})
    try:
        if await ctx.host.activate(element.ref):
            return True
    except Exception as exc:
        ctx.record_error(f"Activation failed: {label}", exc)
        return False
    ctx.record_error(f"Activation failed: {label}", "control did not respond to click or forced activation")
    return False


# ============================================================================
# Toggles
# ============================================================================


async def _switch_off(ctx: context.RunContext, toggle: page.ElementSnapshot, label: str) -> bool:
    """Turn a checked toggle off and verify; force the state if needed."""
    try:
        await ctx.host.click(toggle.ref)
        await ctx.host.settle(SETTLE_AFTER_TOGGLE_MS)
        if await ctx.host.read_checked(toggle.ref) is False:
            return True
        log.debug("Toggle still on after click, forcing state", {"label": label[:60]})
        await ctx.host.force_checked(toggle.ref, False)
        if await ctx.host.read_checked(toggle.ref) is False:
            return True
    except Exception as exc:
        ctx.record_error(label, exc)
        return False
    ctx.record_error(label, "toggle stayed on after click and forced state change")
    return False


async def sweep_toggles(ctx: context.RunContext, toggles: list[page.ElementSnapshot], section: str = "Main") -> int:
    """Switch off every non-protected checked toggle.  Returns how many changed."""
    changed = 0
    for toggle in toggles:
        if ctx.expired():
            break
        if not toggle.visible:
            continue
        ctx.result.toggles_seen += 1
        label = classifier.element_label(toggle) or "Unlabelled toggle"

        if toggle.disabled:
            ctx.record_kept(label, constants.CATEGORY_LOCKED, "system", section)
            continue

        checked = toggle.checked
        if checked is None:
            checked = await ctx.host.read_checked(toggle.ref)
        if not checked:
            continue

        if mandatory.is_protected(label, toggle.container_text):
            if ctx.record_kept(label, constants.CATEGORY_MANDATORY, "consent", section):
                log.debug("Protected toggle kept", {"label": label[:60], "keyword": mandatory.matched_keyword(label, toggle.container_text)})
            continue

        category = constants.toggle_category(f"{label} {toggle.container_text}")
        if ctx.is_recorded(label, category, "consent"):
            continue
        if await _switch_off(ctx, toggle, label):
            ctx.record_denied(label, category, "consent", section)
            ctx.log_action(f'Unchecked "{label}" ({category})')
            changed += 1
    return changed


# ============================================================================
# Confirm
# ============================================================================


async def try_confirm(ctx: context.RunContext, controls: list[page.ElementSnapshot], section: str = "Main") -> bool:
    """Click the first Confirm-classified control.  Returns whether one was clicked."""
    for candidate in classify_controls(ctx, controls):
        if candidate.intent is not Intent.CONFIRM:
            continue
        if await activate(ctx, candidate.element, candidate.label):
            ctx.log_action(f'Confirmed with "{candidate.label}"')
            await ctx.host.settle(SETTLE_AFTER_CONFIRM_MS)
            ctx.learn(candidate.label, Intent.CONFIRM, success=True)
            log.info("Choices confirmed", {"label": candidate.label[:60], "section": section})
            return True
    return False


# ============================================================================
# Surface resolution
# ============================================================================


async def _refresh(ctx: context.RunContext, surface: page.Surface) -> page.Surface:
    return await discovery.build_surface(ctx, surface.root, depth=surface.depth, parent=surface.parent)


async def _deny_click(ctx: context.RunContext, surface: page.Surface, choice: Classified) -> bool:
    """Execute a Deny control and report whether the surface closed."""
    if not await activate(ctx, choice.element, choice.label):
        ctx.learn(choice.label, Intent.DENY, success=False)
        return False
    ctx.record_denied(f'Clicked "{choice.label}"', constants.CATEGORY_BANNER_ACTION, "deny-all", surface.label)
    ctx.log_action(f'Clicked deny control "{choice.label}"')
    await ctx.host.settle(SETTLE_AFTER_DENY_MS)

    closed = not await ctx.host.is_visible(surface.ref)
    control_gone = closed or not await ctx.host.is_visible(choice.element.ref)
    if not closed and control_gone:
        # Content swapped in place for a confirmation message.
        closed = not await ctx.host.controls(surface.ref)
    ctx.learn(choice.label, Intent.DENY, success=control_gone)
    return closed


async def _open_manage(ctx: context.RunContext, surface: page.Surface, choice: Classified) -> Resolution:
    """Open a settings panel and resolve whatever it spawned."""
    outcome = Resolution()
    clicked_at = await ctx.host.now()
    if not await activate(ctx, choice.element, choice.label):
        ctx.learn(choice.label, Intent.MANAGE, success=False)
        return outcome
    outcome.acted = True
    ctx.log_action(f'Opened settings via "{choice.label}"')
    await ctx.host.settle(SETTLE_AFTER_MANAGE_MS)

    panels = await discovery.discover(
        ctx,
        reference=clicked_at,
        after_reference=True,
        depth=surface.depth + 1,
        parent=surface,
    )
    surface_visible = await ctx.host.is_visible(surface.ref)
    ctx.learn(choice.label, Intent.MANAGE, success=bool(panels) or surface_visible)

    inner: Resolution | None = None
    if panels:
        for panel in panels:
            if ctx.expired():
                break
            inner = await resolve(ctx, panel)
            outcome.toggles_changed += inner.toggles_changed
            if inner.closed:
                break
    elif surface_visible:
        # Content swapped in place: resolve the same root once more.
        refreshed = await _refresh(ctx, surface)
        refreshed.depth = surface.depth + 1
        inner = await resolve(ctx, refreshed, manage_allowed=False)
        outcome.toggles_changed += inner.toggles_changed

    if inner is not None and inner.closed and not await ctx.host.is_visible(surface.ref):
        outcome.closed = True
        outcome.method = inner.method or "manage-panel"
    return outcome


async def resolve(ctx: context.RunContext, surface: page.Surface, *, manage_allowed: bool = True) -> Resolution:
    """Resolve one surface end to end.

    Returns a :class:`Resolution` whose ``method`` names the path that
    closed the surface, if any.
    """
    ctx.processed.add(surface.ref)
    outcome = Resolution()
    section = surface.label

    outcome.toggles_changed = await sweep_toggles(ctx, surface.toggles, section)
    candidates = classify_controls(ctx, surface.controls)
    log.debug(
        "Resolving surface",
        {
            "ref": surface.ref,
            "depth": surface.depth,
            "intents": [c.intent.value for c in candidates],
        },
    )

    choice = pick_action(candidates)
    if choice is not None and choice.intent is Intent.DENY and not ctx.expired():
        outcome.acted = True
        if await _deny_click(ctx, surface, choice):
            outcome.closed = True
            outcome.method = "direct-click" if surface.depth == 0 else "manage-panel"
            return outcome
        # The deny control failed; a settings path may still work.
        choice = pick_action([c for c in candidates if c.intent is Intent.MANAGE])

    if outcome.toggles_changed and not ctx.expired():
        refreshed = await _refresh(ctx, surface)
        if await try_confirm(ctx, refreshed.controls, section):
            outcome.acted = True
            if not await ctx.host.is_visible(surface.ref):
                outcome.closed = True
                outcome.method = "manage-panel" if surface.depth else "toggle-sweep"
                return outcome

    if choice is not None and choice.intent is Intent.MANAGE and manage_allowed and surface.depth < MAX_MANAGE_DEPTH and not ctx.expired():
        inner = await _open_manage(ctx, surface, choice)
        outcome.acted = outcome.acted or inner.acted
        outcome.toggles_changed += inner.toggles_changed
        if inner.closed:
            outcome.closed = True
            outcome.method = inner.method
            return outcome
        if inner.toggles_changed and await ctx.host.is_visible(surface.ref):
            refreshed = await _refresh(ctx, surface)
            if await try_confirm(ctx, refreshed.controls, section) and not await ctx.host.is_visible(surface.ref):
                outcome.closed = True
                outcome.method = "manage-panel"
                return outcome

    if not outcome.acted:
        log.debug("No actionable control on surface", {"ref": surface.ref})
    return outcome
