"""
Label classification into consent intents.

Resolution order for a normalised label:

1. Learned patterns for the current site, most successful first.
2. Global custom patterns (taught labels).
3. Built-in multilingual families: Deny > Confirm > Manage > Accept,
   with promoted rules filed into their intent's family.

Exclusion guards apply at every tier.  The classifier is a pure
function over the pattern state it was built with.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from guardr.consent import patterns
from guardr.models import labels, page

Intent = labels.Intent

# Labels longer than this are cut before classification.
MAX_LABEL_LENGTH = 200

# Learned pattern keys are cut to this many characters.
MAX_KEY_LENGTH = 50

_WHITESPACE_RE = re.compile(r"\s+")
_PUNCT_RE = re.compile(r"[^\w\s]")
_EDGE_CHARS = " \t\r\n.,;:!?·•|›»«‹<>→←×✓✔✕✗*-–—\"'()[]"


def normalize(text: str) -> str:
    """Trim edges and collapse internal whitespace."""
    return _WHITESPACE_RE.sub(" ", text).strip(_EDGE_CHARS)


def pattern_key(text: str) -> str:
    """Key a label for learning: lowercase, no punctuation, capped length."""
    lowered = _WHITESPACE_RE.sub(" ", text.lower()).strip()
    return _PUNCT_RE.sub("", lowered).strip()[:MAX_KEY_LENGTH]


def element_label(element: page.ElementSnapshot) -> str:
    """Pick the best human label for an element.

    Falls back through visible text, accessible label, title,
    associated label text and finally nearby container text.
    """
    for candidate in (
        element.text,
        element.aria_label,
        element.title,
        element.associated_text,
        element.container_text,
    ):
        label = normalize(candidate)
        if label:
            return label[:MAX_LABEL_LENGTH]
    return ""


def _learned_rank(pattern: labels.LearnedPattern) -> tuple[float, int]:
    return pattern.success_rate, pattern.success_count


class Classifier:
    """Maps label text to an :class:`Intent`.

    Args:
        site_patterns: Learned patterns for the current site.
        custom_patterns: Global taught patterns.
        promoted: Rules promoted from learned patterns.
        builtin: Built-in rules; defaults to the compiled families.
    """

    def __init__(
        self,
        site_patterns: Iterable[labels.LearnedPattern] = (),
        custom_patterns: Iterable[labels.LearnedPattern] = (),
        promoted: Iterable[labels.PatternRule] = (),
        builtin: Sequence[labels.PatternRule] | None = None,
    ) -> None:
        self._site = sorted(site_patterns, key=_learned_rank, reverse=True)
        self._custom = sorted(custom_patterns, key=_learned_rank, reverse=True)
        rules = list(patterns.builtin_rules() if builtin is None else builtin)
        promoted_by_intent: dict[Intent, list[labels.PatternRule]] = {}
        for rule in promoted:
            promoted_by_intent.setdefault(rule.intent, []).append(rule)
        # Promoted rules join the end of their intent's family.
        self._rules: list[labels.PatternRule] = []
        for intent, _families in patterns.FAMILY_ORDER:
            self._rules.extend(r for r in rules if r.intent == intent)
            self._rules.extend(promoted_by_intent.get(intent, ()))

    @property
    def rule_count(self) -> int:
        return len(self._rules)

    def classify(self, text: str) -> Intent:
        """Classify a raw label string."""
        label = normalize(text)[:MAX_LABEL_LENGTH]
        if not label:
            return Intent.UNKNOWN

        key = pattern_key(label)
        for learned in (*self._site, *self._custom):
            if learned.normalized_text == key and not patterns.is_excluded(learned.intent, label):
                return learned.intent

        for rule in self._rules:
            if rule.matches(label) and not patterns.is_excluded(rule.intent, label):
                return rule.intent
        return Intent.UNKNOWN

    def classify_element(self, element: page.ElementSnapshot) -> tuple[Intent, str]:
        """Classify an element, returning the intent and the label used.

        When the primary label is unknown the accessible label and the
        title are tried in turn.
        """
        label = element_label(element)
        intent = self.classify(label)
        if intent is not Intent.UNKNOWN:
            return intent, label
        for fallback in (element.aria_label, element.title):
            if fallback and normalize(fallback) != label:
                intent = self.classify(fallback)
                if intent is not Intent.UNKNOWN:
                    return intent, label
        return Intent.UNKNOWN, label
