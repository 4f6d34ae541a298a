"""Tests for guardr.utils.url — site identifiers and origin checks."""

from __future__ import annotations

import pytest

from guardr.utils.url import extract_host, is_same_origin, origin, site_id

# ── extract_host / site_id ──────────────────────────────────────


class TestExtractHost:
    def test_simple_url(self) -> None:
        assert extract_host("https://example.com/path") == "example.com"

    def test_url_with_port(self) -> None:
        assert extract_host("https://example.com:8080/path") == "example.com"

    def test_invalid_url_returns_unknown(self) -> None:
        assert extract_host("not a url") == "unknown"


class TestSiteId:
    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://www.Example.com/a", "example.com"),
            ("http://example.com", "example.com"),
            ("https://news.example.co.uk/story", "news.example.co.uk"),
            ("about:blank", "unknown"),
        ],
    )
    def test_site_id(self, url: str, expected: str) -> None:
        assert site_id(url) == expected


# ── origin / is_same_origin ─────────────────────────────────────


class TestOrigin:
    def test_scheme_and_host(self) -> None:
        assert origin("https://Example.com:8443/x?y=1") == "https://example.com:8443"

    def test_unparseable(self) -> None:
        assert origin("not a url") == ""


class TestIsSameOrigin:
    def test_same(self) -> None:
        assert is_same_origin("https://example.com/frame", "https://example.com/page")

    def test_cross_origin(self) -> None:
        assert not is_same_origin("https://cmp.vendor.net/ui", "https://example.com/page")

    @pytest.mark.parametrize("frame_url", ["about:blank", "about:srcdoc", ""])
    def test_inherited_origin(self, frame_url: str) -> None:
        assert is_same_origin(frame_url, "https://example.com/")

    def test_scheme_matters(self) -> None:
        assert not is_same_origin("http://example.com/", "https://example.com/")
