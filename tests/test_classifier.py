"""Tests for guardr.consent.classifier — label normalisation and intent classification."""

from __future__ import annotations

import re

import pytest

from guardr.consent.classifier import Classifier, element_label, normalize, pattern_key
from guardr.models.labels import Intent, LearnedPattern, PatternRule
from guardr.models.page import ElementSnapshot

# ── normalize / pattern_key ─────────────────────────────────────


class TestNormalize:
    def test_collapses_whitespace(self) -> None:
        assert normalize("  Reject \n\t all  ") == "Reject all"

    def test_strips_edge_symbols(self) -> None:
        assert normalize("› Reject all ✕") == "Reject all"

    def test_empty(self) -> None:
        assert normalize("   ") == ""


class TestPatternKey:
    def test_lowercases_and_strips_punctuation(self) -> None:
        assert pattern_key("No, thanks!") == "no thanks"

    def test_caps_length(self) -> None:
        assert len(pattern_key("x" * 200)) == 50

    def test_collapses_whitespace(self) -> None:
        assert pattern_key("Reject   ALL") == "reject all"


# ── element_label ───────────────────────────────────────────────


class TestElementLabel:
    def test_prefers_visible_text(self) -> None:
        el = ElementSnapshot(ref="a", text="Reject all", aria_label="Close dialog")
        assert element_label(el) == "Reject all"

    def test_falls_back_to_aria_label(self) -> None:
        el = ElementSnapshot(ref="a", text="", aria_label="Reject all")
        assert element_label(el) == "Reject all"

    def test_falls_back_to_associated_then_container(self) -> None:
        assert element_label(ElementSnapshot(ref="a", associated_text="Analytics")) == "Analytics"
        assert element_label(ElementSnapshot(ref="a", container_text="Marketing partners")) == "Marketing partners"

    def test_empty_element(self) -> None:
        assert element_label(ElementSnapshot(ref="a")) == ""


# ── Built-in rules ──────────────────────────────────────────────


class TestBuiltinClassification:
    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("Reject all", Intent.DENY),
            ("Decline", Intent.DENY),
            ("Only necessary cookies", Intent.DENY),
            ("Continue without accepting", Intent.DENY),
            ("Tout refuser", Intent.DENY),
            ("Alle ablehnen", Intent.DENY),
            ("Accept all", Intent.ACCEPT),
            ("Accept all cookies", Intent.ACCEPT),
            ("Alle akzeptieren", Intent.ACCEPT),
            ("Manage preferences", Intent.MANAGE),
            ("Cookie settings", Intent.MANAGE),
            ("Save my choices", Intent.CONFIRM),
            ("Confirm my choices", Intent.CONFIRM),
            ("Read our story", Intent.UNKNOWN),
        ],
    )
    def test_labels(self, label: str, expected: Intent) -> None:
        assert Classifier().classify(label) is expected

    def test_case_insensitive(self) -> None:
        assert Classifier().classify("REJECT ALL") is Intent.DENY

    def test_empty_label_is_unknown(self) -> None:
        assert Classifier().classify("") is Intent.UNKNOWN


class TestGuards:
    def test_negative_agreement_is_deny(self) -> None:
        assert Classifier().classify("I do not agree") is Intent.DENY

    def test_accept_selection_is_not_accept(self) -> None:
        assert Classifier().classify("Accept selection") is not Intent.ACCEPT

    def test_do_not_reject_is_not_deny(self) -> None:
        assert Classifier().classify("Do not reject") is not Intent.DENY

    def test_guard_applies_to_learned_patterns(self) -> None:
        learned = LearnedPattern(text="Accept my choices", normalized_text="accept my choices", intent=Intent.ACCEPT)
        assert Classifier(site_patterns=[learned]).classify("Accept my choices") is not Intent.ACCEPT


# ── Learned tiers ───────────────────────────────────────────────


class TestLearnedTiers:
    def test_site_pattern_wins_over_builtin(self) -> None:
        learned = LearnedPattern(text="Nope", normalized_text="nope", intent=Intent.DENY, success_count=3, usage_count=3)
        assert Classifier(site_patterns=[learned]).classify("Nope!") is Intent.DENY

    def test_custom_pattern_used(self) -> None:
        taught = LearnedPattern(text="Not for me", normalized_text="not for me", intent=Intent.DENY, origin="taught")
        assert Classifier(custom_patterns=[taught]).classify("Not for me") is Intent.DENY

    def test_learned_match_is_exact_key(self) -> None:
        learned = LearnedPattern(text="Nope", normalized_text="nope", intent=Intent.DENY)
        assert Classifier(site_patterns=[learned]).classify("Nope nope") is Intent.UNKNOWN

    def test_promoted_rule_joins_its_intent(self) -> None:
        rule = PatternRule(matcher=re.compile(r"\bnah\s+thanks\b", re.IGNORECASE), language="learned", intent=Intent.DENY, source="promoted")
        classifier = Classifier(promoted=[rule])
        assert classifier.classify("Nah thanks") is Intent.DENY
        assert classifier.rule_count == Classifier().rule_count + 1


# ── classify_element ────────────────────────────────────────────


class TestClassifyElement:
    def test_returns_label_used(self) -> None:
        el = ElementSnapshot(ref="a", text="Reject all")
        assert Classifier().classify_element(el) == (Intent.DENY, "Reject all")

    def test_aria_fallback_when_text_unknown(self) -> None:
        el = ElementSnapshot(ref="a", text="✕ X", aria_label="Reject all")
        intent, _label = Classifier().classify_element(el)
        assert intent is Intent.DENY

    def test_unknown(self) -> None:
        el = ElementSnapshot(ref="a", text="Subscribe")
        assert Classifier().classify_element(el)[0] is Intent.UNKNOWN
