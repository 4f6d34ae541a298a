"""Intent, matching rules and learned label associations."""

from __future__ import annotations

import dataclasses
import enum
import re
from datetime import UTC, datetime
from typing import Literal

import pydantic

from guardr.models import base


class Intent(enum.StrEnum):
    """What activating a control would mean for consent."""

    DENY = "deny"
    ACCEPT = "accept"
    MANAGE = "manage"
    CONFIRM = "confirm"
    UNKNOWN = "unknown"


PatternTier = Literal["custom-learned", "built-in"]
PatternSource = Literal["library", "promoted", "taught", "learned"]
PatternOrigin = Literal["auto", "taught"]


@dataclasses.dataclass(frozen=True)
class PatternRule:
    """A compiled label-matching rule for one intent."""

    matcher: re.Pattern[str]
    language: str
    intent: Intent
    tier: PatternTier = "built-in"
    source: PatternSource = "library"

    def matches(self, label: str) -> bool:
        return self.matcher.search(label) is not None


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LearnedPattern(base.CamelModel):
    """A label observed to carry an intent at runtime.

    Confidence for auto-learned entries never drops below 0.5;
    taught entries are floored at 0.9 and never expire.
    """

    text: str
    normalized_text: str
    intent: Intent
    confidence: float = pydantic.Field(default=0.5, ge=0.0, le=1.0)
    usage_count: int = pydantic.Field(default=1, ge=0)
    success_count: int = pydantic.Field(default=0, ge=0)
    sites: set[str] = pydantic.Field(default_factory=set)
    first_seen: datetime = pydantic.Field(default_factory=_utcnow)
    last_used: datetime = pydantic.Field(default_factory=_utcnow)
    origin: PatternOrigin = "auto"

    @property
    def success_rate(self) -> float:
        if self.usage_count <= 0:
            return 0.0
        return self.success_count / self.usage_count

    @property
    def score(self) -> float:
        """Capacity-eviction score; higher survives."""
        return self.confidence * self.usage_count


class PromotedRule(base.CamelModel):
    """Persisted form of a learned pattern promoted into the built-in tier."""

    pattern: str
    intent: Intent
    source_text: str
    language: str = "learned"
    promoted_at: datetime = pydantic.Field(default_factory=_utcnow)

    def compile(self) -> PatternRule:
        return PatternRule(
            matcher=re.compile(self.pattern, re.IGNORECASE),
            language=self.language,
            intent=self.intent,
            tier="built-in",
            source="promoted",
        )
