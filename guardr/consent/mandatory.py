"""
Detection of controls that must stay enabled.

A toggle whose label or nearby text mentions strictly necessary,
security, legal-obligation style processing is protected: it is
recorded as kept and never switched off.
"""

from __future__ import annotations

# Nearby container text considered alongside the label.
CONTEXT_LIMIT = 400

MANDATORY_KEYWORDS: tuple[str, ...] = (
    "strictly necessary",
    "strictly-necessary",
    "essential",
    "necessary cookies",
    "technically required",
    "technically necessary",
    "basic functionality",
    "security",
    "fraud prevention",
    "detect fraud",
    "prevent fraud",
    "ensure security",
    "system security",
    "fix errors",
    "deliver content",
    "technically deliver",
    "deliver and present",
    "technical compatibility",
    "transmission of content",
    "functional",
    "required",
    "mandatory",
    "performance of contract",
    "legal obligation",
    "vital interests",
    # de / fr / es / it / pt / nl
    "strikt notwendig",
    "unbedingt erforderlich",
    "technisch notwendig",
    "strictement nécessaire",
    "estrictamente necesario",
    "strettamente necessari",
    "estritamente necessário",
    "strikt noodzakelijk",
)


def is_protected(label: str, context: str = "") -> bool:
    """Return whether *label* plus up to 400 chars of *context* is protected."""
    haystack = f"{label} {context[:CONTEXT_LIMIT]}".lower()
    return any(keyword in haystack for keyword in MANDATORY_KEYWORDS)


def matched_keyword(label: str, context: str = "") -> str | None:
    """Return the first keyword that protects the control, if any."""
    haystack = f"{label} {context[:CONTEXT_LIMIT]}".lower()
    return next((keyword for keyword in MANDATORY_KEYWORDS if keyword in haystack), None)
