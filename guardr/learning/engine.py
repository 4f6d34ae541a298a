"""
Confidence-scored learning of label → intent associations.

Every resolver success or failure updates a pattern keyed by the
label's normalised text, both in the site's list and in the global
map.  Patterns that prove themselves across enough sites are promoted
into the built-in rule tier.

Scoring
~~~~~~~
``confidence = 0.5 + success_rate × usage_factor × 0.5`` with
``usage_factor = min(usage / 20, 1)``.  Auto entries never fall below
0.5; taught entries are floored at 0.9.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

from guardr.consent import classifier, patterns
from guardr.learning import store as store_mod
from guardr.models import commands, labels
from guardr.utils import logger

log = logger.create_logger("Learning")

Intent = labels.Intent


@dataclasses.dataclass(frozen=True)
class LearningConfig:
    """Thresholds and caps for learning and promotion."""

    promotion_confidence: float = 0.85
    promotion_usage: int = 10
    promotion_sites: int = 3
    global_expiry_days: int = 180
    site_expiry_days: int = 90
    max_global_patterns: int = 500
    max_site_patterns: int = 10
    auto_initial_confidence: float = 0.5
    taught_initial_confidence: float = 0.95
    taught_floor: float = 0.9
    full_usage: int = 20


def compute_confidence(pattern: labels.LearnedPattern, config: LearningConfig) -> float:
    """Confidence after an update, per the scoring rule above."""
    usage_factor = min(pattern.usage_count / config.full_usage, 1.0)
    confidence = 0.5 + pattern.success_rate * usage_factor * 0.5
    if pattern.origin == "taught":
        confidence = max(confidence, config.taught_floor)
    return round(min(max(confidence, 0.5), 1.0), 4)


class LearningEngine:
    """Learns label patterns and promotes them into built-in rules.

    Args:
        pattern_store: Where learning state is persisted.
        config: Thresholds; defaults follow :class:`LearningConfig`.
        clock: Returns "now" as an aware datetime.
    """

    def __init__(
        self,
        pattern_store: store_mod.PatternStore,
        config: LearningConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = pattern_store
        self.config = config or LearningConfig()
        self._clock = clock or (lambda: datetime.now(UTC))

    # ==========================================================================
    # Reading
    # ==========================================================================

    def site_patterns(self, site: str) -> list[labels.LearnedPattern]:
        """The site's live patterns, most successful first."""
        entry = self.store.load_site(site)
        live = [p for p in entry.patterns if not self._site_expired(p)]
        return sorted(live, key=lambda p: (p.success_rate, p.success_count), reverse=True)

    def custom_patterns(self) -> list[labels.LearnedPattern]:
        """Global taught patterns, consulted before the built-in rules."""
        return [p for p in self.store.load_global().patterns if p.origin == "taught"]

    def promoted_rules(self) -> list[labels.PatternRule]:
        return [rule.compile() for rule in self.store.load_promoted().rules]

    def build_classifier(self, site: str) -> classifier.Classifier:
        """A classifier seeded with everything learned so far for *site*."""
        return classifier.Classifier(
            site_patterns=self.site_patterns(site),
            custom_patterns=self.custom_patterns(),
            promoted=self.promoted_rules(),
        )

    # ==========================================================================
    # Learning
    # ==========================================================================

    def learn_success(self, text: str, intent: Intent, site: str) -> labels.LearnedPattern | None:
        """Record that activating *text* as *intent* worked on *site*."""
        return self._record(text, intent, site, success=True)

    def learn_failure(self, text: str, intent: Intent, site: str) -> labels.LearnedPattern | None:
        """Record a failed activation.  Only existing patterns are touched."""
        return self._record(text, intent, site, success=False)

    def teach(self, text: str, intent: Intent, site: str) -> labels.LearnedPattern | None:
        """Store a user-taught pattern at high confidence."""
        key = classifier.pattern_key(text)
        if not key or intent is Intent.UNKNOWN:
            return None
        now = self._clock()

        global_entry = self.store.load_global()
        taught = self._upsert(global_entry.patterns, text, key, intent, site, now, success=True, taught=True)
        self._enforce_global_cap(global_entry)
        self.store.save_global(global_entry)

        site_entry = self.store.load_site(site)
        self._upsert(site_entry.patterns, text, key, intent, site, now, success=True, taught=True)
        self._enforce_site_cap(site_entry)
        self.store.save_site(site_entry)

        log.success("Pattern taught", {"text": text[:50], "intent": intent.value, "site": site})
        return taught

    def _record(self, text: str, intent: Intent, site: str, *, success: bool) -> labels.LearnedPattern | None:
        key = classifier.pattern_key(text)
        if not key or intent is Intent.UNKNOWN:
            return None
        now = self._clock()

        global_entry = self.store.load_global()
        updated = self._upsert(global_entry.patterns, text, key, intent, site, now, success=success)
        if updated is not None:
            self._enforce_global_cap(global_entry)
            self.store.save_global(global_entry)

        site_entry = self.store.load_site(site)
        if self._upsert(site_entry.patterns, text, key, intent, site, now, success=success) is not None:
            self._enforce_site_cap(site_entry)
            self.store.save_site(site_entry)

        if updated is not None and success and self.is_promotable(updated):
            self.promote(updated)
        return updated

    def _upsert(
        self,
        entries: list[labels.LearnedPattern],
        text: str,
        key: str,
        intent: Intent,
        site: str,
        now: datetime,
        *,
        success: bool,
        taught: bool = False,
    ) -> labels.LearnedPattern | None:
        """Update the entry for *key* in place, creating it on success."""
        existing = next((p for p in entries if p.normalized_text == key), None)

        if existing is not None and existing.intent is not intent:
            if taught or existing.origin == "auto":
                # The label now means something else; start over.
                entries.remove(existing)
                existing = None
            else:
                return None

        if existing is None:
            if not success:
                return None
            pattern = labels.LearnedPattern(
                text=text[:100],
                normalized_text=key,
                intent=intent,
                confidence=self.config.taught_initial_confidence if taught else self.config.auto_initial_confidence,
                usage_count=1,
                success_count=1,
                sites={site},
                first_seen=now,
                last_used=now,
                origin="taught" if taught else "auto",
            )
            entries.append(pattern)
            log.debug("New pattern learned", {"text": key, "intent": intent.value, "origin": pattern.origin})
            return pattern

        existing.usage_count += 1
        if success:
            existing.success_count += 1
            existing.sites.add(site)
        if taught:
            existing.origin = "taught"
        existing.last_used = now
        existing.confidence = compute_confidence(existing, self.config)
        if existing.origin == "taught":
            existing.confidence = max(existing.confidence, self.config.taught_floor)
        return existing

    # ==========================================================================
    # Promotion
    # ==========================================================================

    def is_promotable(self, pattern: labels.LearnedPattern) -> bool:
        """Confident, well used, and successful on enough distinct sites."""
        return (
            pattern.intent is not Intent.UNKNOWN
            and pattern.confidence >= self.config.promotion_confidence
            and pattern.usage_count >= self.config.promotion_usage
            and len(pattern.sites) >= self.config.promotion_sites
        )

    def promote(self, pattern: labels.LearnedPattern) -> labels.PromotedRule | None:
        """File *pattern* as a built-in rule; ``None`` when already present."""
        if not self.is_promotable(pattern):
            return None
        expression = patterns.text_to_pattern(pattern.normalized_text)
        entry = self.store.load_promoted()
        if any(rule.pattern == expression and rule.intent is pattern.intent for rule in entry.rules):
            log.debug("Promotion skipped, rule exists", {"pattern": expression})
            return None

        rule = labels.PromotedRule(
            pattern=expression,
            intent=pattern.intent,
            source_text=pattern.normalized_text,
            promoted_at=self._clock(),
        )
        entry.rules.append(rule)
        self.store.save_promoted(entry)
        log.success(
            "Pattern promoted to built-in rules",
            {
                "text": pattern.normalized_text,
                "intent": pattern.intent.value,
                "confidence": pattern.confidence,
                "sites": len(pattern.sites),
            },
        )
        return rule

    def promote_ready(self) -> int:
        """Promote every eligible global pattern.  Returns the number added."""
        return sum(1 for p in self.store.load_global().patterns if self.promote(p) is not None)

    # ==========================================================================
    # Expiry and capacity
    # ==========================================================================

    def _age(self, pattern: labels.LearnedPattern) -> timedelta:
        return self._clock() - pattern.last_used

    def _global_expired(self, pattern: labels.LearnedPattern) -> bool:
        if pattern.origin == "taught":
            return False
        return self._age(pattern) > timedelta(days=self.config.global_expiry_days)

    def _site_expired(self, pattern: labels.LearnedPattern) -> bool:
        if pattern.origin == "taught":
            return False
        return self._age(pattern) > timedelta(days=self.config.site_expiry_days)

    def _enforce_global_cap(self, entry: store_mod.GlobalPatterns) -> None:
        entry.patterns = _top(entry.patterns, self.config.max_global_patterns)

    def _enforce_site_cap(self, entry: store_mod.SitePatterns) -> None:
        entry.patterns = _top(entry.patterns, self.config.max_site_patterns)

    def clean_expired(self) -> int:
        """Drop expired global and site patterns.  Returns how many went."""
        removed = 0
        global_entry = self.store.load_global()
        kept = [p for p in global_entry.patterns if not self._global_expired(p)]
        removed += len(global_entry.patterns) - len(kept)
        if removed:
            global_entry.patterns = kept
            self.store.save_global(global_entry)

        for site in self.store.list_sites():
            site_entry = self.store.load_site(site)
            live = [p for p in site_entry.patterns if not self._site_expired(p)]
            if len(live) != len(site_entry.patterns):
                removed += len(site_entry.patterns) - len(live)
                site_entry.patterns = live
                self.store.save_site(site_entry)

        if removed:
            log.info("Expired patterns removed", {"count": removed})
        return removed

    # ==========================================================================
    # Stats, export, import, reset
    # ==========================================================================

    def stats(self) -> commands.LearningStats:
        global_patterns = self.store.load_global().patterns
        by_intent: dict[str, int] = {}
        for p in global_patterns:
            by_intent[p.intent.value] = by_intent.get(p.intent.value, 0) + 1
        return commands.LearningStats(
            global_patterns=len(global_patterns),
            taught_patterns=sum(1 for p in global_patterns if p.origin == "taught"),
            sites=len(self.store.list_sites()),
            promoted_rules=len(self.store.load_promoted().rules),
            ready_for_promotion=sum(1 for p in global_patterns if self.is_promotable(p)),
            by_intent=by_intent,
        )

    def export(self) -> store_mod.GlobalPatterns:
        return self.store.load_global()

    def import_patterns(self, incoming: Iterable[labels.LearnedPattern]) -> int:
        """Merge *incoming* into the global map; higher confidence wins.

        Returns the number of entries added or replaced.
        """
        entry = self.store.load_global()
        by_key = {p.normalized_text: p for p in entry.patterns}
        changed = 0
        for pattern in incoming:
            existing = by_key.get(pattern.normalized_text)
            if existing is None or pattern.confidence > existing.confidence:
                by_key[pattern.normalized_text] = pattern
                changed += 1
        entry.patterns = list(by_key.values())
        self._enforce_global_cap(entry)
        self.store.save_global(entry)
        log.info("Patterns imported", {"changed": changed, "total": len(entry.patterns)})
        return changed

    def reset(self) -> None:
        self.store.clear_all()
        log.warn("All learned patterns reset")


def _top(entries: list[labels.LearnedPattern], limit: int) -> list[labels.LearnedPattern]:
    """Keep the *limit* highest ``confidence × usage`` entries."""
    if len(entries) <= limit:
        return entries
    return sorted(entries, key=lambda p: p.score, reverse=True)[:limit]
