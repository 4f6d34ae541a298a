"""Tests for guardr.consent.constants and guardr.consent.cmp — shared vocabularies."""

from __future__ import annotations

import pytest

from guardr.consent import cmp, constants

# ── is_consent_host ─────────────────────────────────────────────


class TestIsConsentHost:
    @pytest.mark.parametrize(
        "url",
        [
            "https://cdn.cookielaw.org/consent/ui",
            "https://consent.example.com/",
            "https://sdk.privacy-center.org/x",
            "https://cmp.quantcast.com/choice",
        ],
    )
    def test_consent_hosts(self, url: str) -> None:
        assert constants.is_consent_host(url)

    @pytest.mark.parametrize(
        "url",
        [
            "https://ads.example.com/frame?gdpr=1&gdpr_consent=abc",
            "https://cookie-sync.adnetwork.com/",
            "https://user-sync.example.com/",
        ],
    )
    def test_not_consent_hosts(self, url: str) -> None:
        assert not constants.is_consent_host(url)

    def test_unparseable(self) -> None:
        assert not constants.is_consent_host("http://[::1")


# ── toggle_category ─────────────────────────────────────────────


class TestToggleCategory:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Measure ad performance (legitimate interest)", "Legitimate Interest"),
            ("Use precise geolocation data - special feature", "Special Feature"),
            ("Acme Ads Ltd - vendor", "Vendor Consent"),
            ("Our partners", "Vendor Consent"),
            ("Analytics", "Consent"),
        ],
    )
    def test_categories(self, text: str, expected: str) -> None:
        assert constants.toggle_category(text) == expected


# ── Section vocabulary ──────────────────────────────────────────


class TestSectionPatterns:
    @pytest.mark.parametrize("name", ["Vendors", "Partners", "Legitimate interest", "Purposes", "Special features"])
    def test_tabs(self, name: str) -> None:
        assert any(p.search(name) for p in constants.TAB_PATTERNS)

    @pytest.mark.parametrize("name", ["Show all vendors", "View vendors", "842 partners", "See purposes"])
    def test_sections(self, name: str) -> None:
        assert any(p.search(name) for p in constants.SECTION_PATTERNS)

    @pytest.mark.parametrize("label", ["Object to all", "Object all", "Remove all objections"])
    def test_object_all(self, label: str) -> None:
        assert constants.OBJECT_ALL_RE.search(label)


# ── CMP table ───────────────────────────────────────────────────


class TestCmp:
    def test_label_joins_names(self) -> None:
        assert cmp.cmp_label(["OneTrust", "TCF/IAB"]) == "OneTrust, TCF/IAB"

    def test_label_without_vendor(self) -> None:
        assert cmp.cmp_label([]) == "Generic/Unknown"

    def test_every_reject_call_has_a_signature(self) -> None:
        names = {signature.name for signature in cmp.CMP_SIGNATURES}
        assert {call.name for call in cmp.VENDOR_REJECT_CALLS} <= names

    def test_reject_scripts_are_functions(self) -> None:
        for call in cmp.VENDOR_REJECT_CALLS:
            assert call.script.startswith("() =>")

    def test_mandatory_purposes_are_labelled(self) -> None:
        assert all(p in cmp.TCF_PURPOSE_LABELS for p in cmp.MANDATORY_TCF_PURPOSES)
