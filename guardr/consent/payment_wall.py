"""
Consent-or-pay wall detection.

A page that offers "accept tracking or subscribe" is left alone:
denying consent there can lock the visitor out.  Checks the page's
visible text and any dialog-like surface text for wall phrasing.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from guardr.utils import logger

log = logger.create_logger("PaymentWall")

# ============================================================================
# Detection Patterns
# ============================================================================

PAYMENT_WALL_PATTERNS = [
    "subscribe to continue",
    "subscribe to read",
    "sign up to continue",
    "register to continue",
    "premium members only",
    "paid subscription",
    "consent or pay",
    "pay or consent",
    "accept or subscribe",
    "accept or register",
    "ad-free subscription",
    "reject and subscribe",
    # de / fr
    "pur-abo",
    "werbefrei lesen",
    "accepter ou s'abonner",
    "sans publicité en vous abonnant",
]

# Dialog text pairing a payment/registration offer with a continue prompt.
_OFFER_RE = re.compile(r"\b(subscribe|subscription|register|premium|abonnieren|abonner)\b", re.IGNORECASE)
_CONTINUE_RE = re.compile(r"\b(continue|weiter|continuer)\b", re.IGNORECASE)

BODY_TEXT_LIMIT = 3000


def detect(body_text: str, surface_texts: Iterable[str] = ()) -> str | None:
    """Return the reason a payment wall is suspected, or ``None``."""
    body_lower = body_text[:BODY_TEXT_LIMIT].lower()
    for pattern in PAYMENT_WALL_PATTERNS:
        if pattern in body_lower:
            log.warn("Payment wall detected via page text", {"pattern": pattern})
            return f'Page text indicates a consent-or-pay wall: "{pattern}"'

    for text in surface_texts:
        if _OFFER_RE.search(text) and _CONTINUE_RE.search(text):
            log.warn("Payment wall detected via dialog text", {"text": text[:80]})
            return "Consent dialog offers a subscription to continue"

    log.debug("No payment wall detected")
    return None
