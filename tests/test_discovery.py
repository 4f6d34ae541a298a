"""Tests for guardr.consent.discovery — structural surface discovery."""

from __future__ import annotations

import asyncio

import pytest
from conftest import LOAD_TIME, FakeHost

from guardr.consent import discovery
from guardr.consent.classifier import Classifier
from guardr.models.page import ElementSnapshot, Surface
from guardr.pipeline.context import RunContext


def _ctx(host: FakeHost) -> RunContext:
    return RunContext.create(host, Classifier(), None, site="example.com", budget_seconds=5.0, reference_time=LOAD_TIME)


# ── Structural signals ──────────────────────────────────────────


class TestHasStructuralSignal:
    def test_plain_block_has_none(self) -> None:
        assert not discovery.has_structural_signal(ElementSnapshot(ref="a", tag="div"))

    @pytest.mark.parametrize(
        "attrs",
        [
            {"position": "fixed"},
            {"position": "sticky"},
            {"z_index": 10},
            {"role": "dialog"},
            {"aria_modal": True},
            {"tag": "dialog"},
            {"id_tokens": ("site-cookie-bar",)},
            {"id_tokens": ("GDPR-wrapper",)},
        ],
    )
    def test_signals(self, attrs: dict) -> None:
        assert discovery.has_structural_signal(ElementSnapshot(ref="a", **attrs))


# ── Recency ─────────────────────────────────────────────────────


class TestIsRecent:
    @pytest.mark.parametrize(
        ("first_seen", "after", "expected"),
        [
            (101.0, False, True),
            (160.0, False, True),
            (161.0, False, False),
            (50.0, False, True),
            (99.9, True, True),
            (99.0, True, False),
            (120.0, True, True),
        ],
    )
    def test_window(self, first_seen: float, after: bool, expected: bool) -> None:
        assert discovery.is_recent(first_seen, 100.0, 60.0, after_reference=after) is expected


# ── Qualification ───────────────────────────────────────────────


class TestQualifies:
    def test_topic_decision_and_control(self, banner_host: FakeHost) -> None:
        ctx = _ctx(banner_host)
        root = banner_host.snapshot("banner")
        assert discovery.qualifies(ctx, root, [banner_host.snapshot("accept")])

    def test_topic_without_visible_control(self, banner_host: FakeHost) -> None:
        ctx = _ctx(banner_host)
        assert not discovery.qualifies(ctx, banner_host.snapshot("banner"), [])

    def test_button_pair_without_topic(self, host: FakeHost) -> None:
        host.add_root("bar", "Before you go")
        host.add_control("yes", "Accept all", parent="bar")
        host.add_control("no", "Reject all", parent="bar")
        ctx = _ctx(host)
        assert discovery.qualifies(ctx, host.snapshot("bar"), [host.snapshot("yes"), host.snapshot("no")])

    def test_newsletter_does_not_qualify(self, host: FakeHost) -> None:
        host.add_root("promo", "Get our weekly newsletter")
        host.add_control("sub", "Subscribe", parent="promo")
        ctx = _ctx(host)
        assert not discovery.qualifies(ctx, host.snapshot("promo"), [host.snapshot("sub")])


# ── Ranking ─────────────────────────────────────────────────────


def _surface(ref: str, z: int, controls: list[str]) -> Surface:
    root = ElementSnapshot(ref=ref, z_index=z, width=100, height=100)
    return Surface(root=root, controls=[ElementSnapshot(ref=c) for c in controls], toggles=[], first_seen=0.0)


class TestRank:
    def test_orders_by_stacking(self) -> None:
        ranked = discovery.rank([_surface("low", 1, ["a"]), _surface("high", 9, ["b"])])
        assert [s.ref for s in ranked] == ["high", "low"]

    def test_drops_nested_surface(self) -> None:
        ranked = discovery.rank([_surface("outer", 9, ["a", "b"]), _surface("inner", 1, ["a"])])
        assert [s.ref for s in ranked] == ["outer"]

    def test_keeps_surfaces_without_controls(self) -> None:
        ranked = discovery.rank([_surface("outer", 9, ["a"]), _surface("empty", 1, [])])
        assert len(ranked) == 2


# ── discover ────────────────────────────────────────────────────


class TestDiscover:
    def test_finds_banner(self, banner_host: FakeHost) -> None:
        ctx = _ctx(banner_host)
        surfaces = asyncio.run(discovery.discover(ctx))
        assert [s.ref for s in surfaces] == ["banner"]
        assert {c.ref for c in surfaces[0].controls} == {"accept", "reject"}
        assert ctx.result.surface_found
        assert [s.ref for s in ctx.seen_surfaces] == ["banner"]

    def test_skips_processed(self, banner_host: FakeHost) -> None:
        ctx = _ctx(banner_host)
        ctx.processed.add("banner")
        assert asyncio.run(discovery.discover(ctx)) == []
        assert not ctx.result.surface_found

    def test_skips_stale_surface(self, banner_host: FakeHost) -> None:
        banner_host.elements["banner"].attrs["first_seen"] = LOAD_TIME + 120
        assert asyncio.run(discovery.discover(_ctx(banner_host))) == []

    def test_skips_hidden_surface(self, banner_host: FakeHost) -> None:
        banner_host.set_visible("banner", False)
        assert asyncio.run(discovery.discover(_ctx(banner_host))) == []

    def test_skips_in_flow_element(self, host: FakeHost) -> None:
        host.add_root("article", "Our cookie policy explains how to accept or reject cookies.", position="static", z_index=0)
        host.add_control("reject", "Reject all", parent="article")
        assert asyncio.run(discovery.discover(_ctx(host))) == []


class TestAnySurfaceVisible:
    def test_tracks_seen_surfaces(self, banner_host: FakeHost) -> None:
        ctx = _ctx(banner_host)

        async def scenario() -> tuple[bool, bool]:
            await discovery.discover(ctx)
            before = await discovery.any_surface_visible(ctx)
            banner_host.set_visible("banner", False)
            return before, await discovery.any_surface_visible(ctx)

        assert asyncio.run(scenario()) == (True, False)

    def test_falls_back_to_discovery(self, banner_host: FakeHost) -> None:
        assert asyncio.run(discovery.any_surface_visible(_ctx(banner_host)))
