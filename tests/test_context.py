"""Tests for guardr.pipeline.context — run bookkeeping."""

from __future__ import annotations

from conftest import FakeHost

from guardr.consent.classifier import Classifier
from guardr.pipeline.context import MAX_ACTION_LOG, RunContext


def _ctx(host: FakeHost, budget: float = 5.0) -> RunContext:
    return RunContext.create(host, Classifier(), None, site="example.com", budget_seconds=budget)


class TestRecording:
    def test_denied_once_per_key(self, host: FakeHost) -> None:
        ctx = _ctx(host)
        assert ctx.record_denied("Marketing", "Consent")
        assert not ctx.record_denied("Marketing", "Consent", section="Other")
        assert ctx.record_denied("Marketing", "Vendor Consent")
        assert len(ctx.result.denied) == 2

    def test_kept_shares_the_key_space(self, host: FakeHost) -> None:
        ctx = _ctx(host)
        ctx.record_kept("Essential", "Strictly Necessary")
        assert ctx.is_recorded("Essential", "Strictly Necessary", "consent")

    def test_errors_deduplicated_and_truncated(self, host: FakeHost) -> None:
        ctx = _ctx(host)
        ctx.record_error("Toggle", "x" * 300)
        ctx.record_error("Toggle", "x" * 300)
        assert len(ctx.result.errors) == 1
        assert len(ctx.result.errors[0].error) == 120

    def test_action_log_capped(self, host: FakeHost) -> None:
        ctx = _ctx(host)
        for i in range(MAX_ACTION_LOG + 10):
            ctx.log_action(f"step {i}")
        assert len(ctx.result.action_log) == MAX_ACTION_LOG


class TestFrames:
    def test_child_shares_result_and_keys(self, host: FakeHost) -> None:
        ctx = _ctx(host)
        ctx.processed.add("banner")
        ctx.record_denied("Marketing", "Consent")
        child = ctx.for_frame(FakeHost(name="cmp"))
        assert child.result is ctx.result
        assert child.processed == set()
        assert not child.record_denied("Marketing", "Consent")

    def test_frame_success_reported_as_frame(self, host: FakeHost) -> None:
        ctx = _ctx(host)
        child = ctx.for_frame(FakeHost(name="cmp"))
        child.log_action("Clicked")
        child.mark_resolved("direct-click")
        assert ctx.result.resolution_method == "embedded-frame"
        assert ctx.result.action_log[0].action == "[cmp] Clicked"


class TestDeadline:
    def test_expired(self, host: FakeHost) -> None:
        assert _ctx(host, budget=0.0).expired()
        assert not _ctx(host, budget=10.0).expired()

    def test_mark_resolved_closes_found_surface(self, host: FakeHost) -> None:
        ctx = _ctx(host)
        ctx.result.surface_found = True
        ctx.mark_resolved("toggle-sweep")
        assert ctx.result.surface_closed
