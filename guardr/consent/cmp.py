"""
Consent-management platform signatures and programmatic entry points.

Vendor detection only labels a run; discovery never depends on it.
Each signature lists window globals and DOM selectors that betray the
vendor, and each reject call is a small script run in the page that
returns ``true`` when the vendor API was present and invoked.
"""

from __future__ import annotations

import dataclasses


@dataclasses.dataclass(frozen=True)
class CmpSignature:
    """Markers that identify one consent-management platform."""

    name: str
    globals: tuple[str, ...] = ()
    selectors: tuple[str, ...] = ()
    cookies: tuple[str, ...] = ()


@dataclasses.dataclass(frozen=True)
class VendorRejectCall:
    """A vendor's "reject all" entry point."""

    name: str
    label: str
    script: str


CMP_SIGNATURES: tuple[CmpSignature, ...] = (
    CmpSignature("OneTrust", ("OneTrust",), ("#onetrust-banner-sdk", ".onetrust-banner-sdk")),
    CmpSignature("Cookiebot", ("Cookiebot", "CookieConsent"), ("#CybotCookiebotDialog",)),
    CmpSignature("Didomi", ("Didomi",), ("#didomi-host",)),
    CmpSignature("Usercentrics", ("UC_UI",), ('[data-testid="uc-center-container"]', "#usercentrics-root")),
    CmpSignature("TrustArc", ("truste",), ("#truste-consent-track",)),
    CmpSignature("Quantcast", ("__qcCmpApi",), ("#qc-cmp2-ui",)),
    CmpSignature("Sourcepoint", ("_sp_",), ("#sp_message_container", '[id^="sp_message"]')),
    CmpSignature("Axeptio", ("axeptio",), ("#axeptio_overlay",)),
    CmpSignature("CookieYes", (), (".cky-consent-container", '[class*="cookieyes"]')),
    CmpSignature("Osano", ("Osano",), (".osano-cm-window",)),
    CmpSignature("Termly", (), ("#termly-code-snippet-support",)),
    CmpSignature("TCF/IAB", ("__tcfapi", "__cmp"), (), ("FCCDCF",)),
    CmpSignature("Iubenda", ("_iub",), (".iubenda-cs-banner",)),
    CmpSignature("Complianz", (), (".cmplz-cookiebanner",)),
    CmpSignature("CookieLaw", (), (".cc-window", ".cc-banner")),
    CmpSignature("WP Cookie", (), ("#cookie-notice", ".cookie-notice-container")),
)

# Fallback selectors for the "Generic" label when no vendor matched.
GENERIC_SELECTORS: tuple[str, ...] = (
    '[id*="cookie"],[class*="cookie-banner"]',
    '[id*="consent"],[class*="gdpr"]',
    'dialog,[role="dialog"],[role="alertdialog"]',
)

GENERIC_LABEL = "Generic"

VENDOR_REJECT_CALLS: tuple[VendorRejectCall, ...] = (
    VendorRejectCall(
        "OneTrust",
        "OneTrust.RejectAll()",
        "() => { if (window.OneTrust && typeof OneTrust.RejectAll === 'function') { OneTrust.RejectAll(); return true; } return false; }",
    ),
    VendorRejectCall(
        "Cookiebot",
        "Cookiebot.deny()",
        "() => { const c = window.Cookiebot || window.CookieConsent;"
        " if (c && typeof c.deny === 'function') { c.deny(); return true; }"
        " if (c && typeof c.submitCustomConsent === 'function') { c.submitCustomConsent(false, false, false); return true; }"
        " return false; }",
    ),
    VendorRejectCall(
        "Didomi",
        "Didomi.setUserDisagreeToAll()",
        "() => { if (window.Didomi && typeof Didomi.setUserDisagreeToAll === 'function') { Didomi.setUserDisagreeToAll(); return true; } return false; }",
    ),
    VendorRejectCall(
        "Usercentrics",
        "UC_UI.denyAllConsents()",
        "() => { if (window.UC_UI && typeof UC_UI.denyAllConsents === 'function') {"
        " UC_UI.denyAllConsents(); if (typeof UC_UI.closeCMP === 'function') UC_UI.closeCMP(); return true; } return false; }",
    ),
    VendorRejectCall(
        "Osano",
        "Osano.cm.deny()",
        "() => { if (window.Osano && Osano.cm && typeof Osano.cm.deny === 'function') { Osano.cm.deny(); return true; } return false; }",
    ),
    VendorRejectCall(
        "Iubenda",
        "_iub.cs.api.rejectAll()",
        "() => { const api = window._iub && _iub.cs && _iub.cs.api;"
        " if (api && typeof api.rejectAll === 'function') { api.rejectAll(); return true; } return false; }",
    ),
    VendorRejectCall(
        "Sourcepoint",
        "_sp_.pushData('reject_all')",
        "() => { if (window._sp_ && typeof _sp_.pushData === 'function') { _sp_.pushData('reject_all'); return true; } return false; }",
    ),
    VendorRejectCall(
        "Quantcast",
        "__qcCmpApi('setConsentedToAll', false)",
        "() => { if (typeof window.__qcCmpApi === 'function') { window.__qcCmpApi('setConsentedToAll', false, () => {}); return true; } return false; }",
    ),
    VendorRejectCall(
        "TCF/IAB",
        "__tcfapi('rejectAll')",
        "() => { if (typeof window.__tcfapi === 'function') { try { window.__tcfapi('rejectAll', 2, () => {}); return true; }"
        " catch (e) { return false; } } return false; }",
    ),
)

# IAB TCF v2 purpose names, by purpose id.
TCF_PURPOSE_LABELS: dict[int, str] = {
    1: "Store and/or access information on a device",
    2: "Use limited data to select advertising",
    3: "Create profiles for personalised advertising",
    4: "Use profiles to select personalised advertising",
    5: "Create profiles to personalise content",
    6: "Use profiles to select personalised content",
    7: "Measure advertising performance",
    8: "Measure content performance",
    9: "Understand audiences through statistics",
    10: "Develop and improve services",
    11: "Use limited data to select content",
}

# Purposes reported as kept: they cover service delivery rather than tracking.
MANDATORY_TCF_PURPOSES: frozenset[int] = frozenset({10, 11})


def cmp_label(cmps: list[str]) -> str:
    """Join detected vendor names for display."""
    return ", ".join(cmps) if cmps else "Generic/Unknown"
