"""Shared keyword sets and patterns for consent-surface handling."""

from __future__ import annotations

import re
from urllib import parse

# Consent-manager keywords matched against iframe **hostname** only.
# Matching the full URL would false-positive on ad-sync iframes that
# carry ``gdpr=1`` or ``gdpr_consent=…`` in their query strings.
CONSENT_HOST_KEYWORDS: tuple[str, ...] = (
    "consent",
    "onetrust",
    "cookiebot",
    "sourcepoint",
    "trustarc",
    "didomi",
    "quantcast",
    "usercentrics",
    "gdpr",
    "privacy",
    "cmp",
    "cookie",
)

# Hostname fragments of ad-tech sync/pixel frames.
CONSENT_HOST_EXCLUDE: tuple[str, ...] = (
    "cookie-sync",
    "pixel",
    "-sync.",
    "ad-sync",
    "user-sync",
    "match.",
    "prebid",
)

# ============================================================================
# Surface discovery vocabulary
# ============================================================================

# Identifier/class tokens hinting that an element is a consent surface.
IDENTIFIER_TOKENS: tuple[str, ...] = (
    "cookie",
    "consent",
    "gdpr",
    "ccpa",
    "privacy",
    "cmp",
    "onetrust",
    "cookiebot",
    "didomi",
    "usercentrics",
    "truste",
    "qc-cmp",
    "sp_message",
    "banner",
    "notice",
)

# Words that place a surface's text on the privacy topic.
PRIVACY_TOPIC_RE: re.Pattern[str] = re.compile(
    r"cookie|privacy|consent|gdpr|tracking|tracker|personal data|personal information|"
    r"partners|vendors|legitimate interest|"
    r"datenschutz|einwilligung|confidentialit|données|traceurs|"
    r"privacidad|consentimiento|riservatezza|consenso|privacidade|"
    r"persoonsgegevens|toestemming|integritet|samtykke|prywatno|"
    r"souhlas|evästeet|süti|cookies",
    re.IGNORECASE,
)

# Words that show the surface asks the visitor to decide something.
DECISION_RE: re.Pattern[str] = re.compile(
    r"\b(accept\w*|agree|allow|reject\w*|decline|deny|refuse|consent|manage|preferences|settings|"
    r"customi[sz]e|choices?|opt[\s-]?out|ok|okay|got it|continue|"
    r"accepter|refuser|paramètres|akzeptieren|ablehnen|zustimmen|einstellungen|"
    r"aceptar|rechazar|accetta|rifiuta|aceitar|rejeitar|accepteren|weigeren|afwijzen)\b",
    re.IGNORECASE,
)

# CSS positions that take an element out of normal flow.
OVERLAY_POSITIONS: frozenset[str] = frozenset({"fixed", "absolute", "sticky"})

DIALOG_ROLES: frozenset[str] = frozenset({"dialog", "alertdialog"})

# ============================================================================
# Multi-section navigation
# ============================================================================

TAB_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^partners?$",
        r"^vendors?$",
        r"^legitimate interests?$",
        r"^special (purposes?|features?)$",
        r"^purposes?$",
        r"^features?$",
        r"^(third[- ]?party|third parties)$",
        r"^custom vendors?$",
        r"^stacks?$",
        r"^personali[sz]ation$",
        r"^advertising$",
        r"^analytics?$",
        r"^measurement$",
        r"^content selection$",
    )
)

SECTION_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"show (all |more )?vendors?",
        r"view (all )?vendors?",
        r"see (all )?(partners?|purposes?|vendors?)",
        r"expand (all|vendors?|partners?)",
        r"\d+ (vendors?|partners?)",
    )
)

# "Object to all" style buttons inside legitimate-interest tabs.
OBJECT_ALL_RE: re.Pattern[str] = re.compile(r"\bobject(\s+to)?\s+all\b|\bremove\s+all\s+objections?\b", re.IGNORECASE)

# ============================================================================
# Toggle categories
# ============================================================================

CATEGORY_LOCKED = "Locked by CMP"
CATEGORY_MANDATORY = "Strictly Necessary"
CATEGORY_BANNER_ACTION = "Banner Action"
CATEGORY_CMP_API = "CMP API"


def toggle_category(text: str) -> str:
    """Classify an unchecked toggle by the kind of processing it governs."""
    lowered = text.lower()
    if "legitimate interest" in lowered:
        return "Legitimate Interest"
    if "special feature" in lowered:
        return "Special Feature"
    if "vendor" in lowered or "partner" in lowered:
        return "Vendor Consent"
    return "Consent"


def is_consent_host(url: str) -> bool:
    """Return ``True`` if a frame *url* looks like a consent-manager host.

    Checks the hostname against :data:`CONSENT_HOST_KEYWORDS` and
    :data:`CONSENT_HOST_EXCLUDE`.
    """
    try:
        hostname = (parse.urlparse(url).hostname or "").lower()
    except ValueError:
        return False
    if any(ex in hostname for ex in CONSENT_HOST_EXCLUDE):
        return False
    return any(kw in hostname for kw in CONSENT_HOST_KEYWORDS)
