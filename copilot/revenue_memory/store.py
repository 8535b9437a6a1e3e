"""
Win Pattern Store - captures and learns from successful revenue patterns.

Every closed deal is appended to the win log. Its critical-impact actions
form a signature that is compared (Jaccard similarity over action names)
against every known pattern:

- similarity above the threshold → the closest pattern absorbs the win
- otherwise → a new pattern is created and categorized from the objections

The store is in-memory and owned by its caller. Persistence happens around
it through a WinPatternRepository (see repository.py). All reads and writes
hold one re-entrant lock, so a store shared between threads keeps its
counters and running averages consistent.
"""

import threading
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

from copilot.base import generate_id
from copilot.errors import EmptyActionSequence, PatternNotFound
from .insights import (
    action_signature,
    categorize_deal_size,
    categorize_pattern,
    classify_trend,
    generate_insights,
    jaccard_similarity,
)
from .types import (
    ActionImpact,
    Applicability,
    CategoryCount,
    PatternDefinition,
    PatternPerformance,
    PatternQuery,
    PatternStep,
    PatternTrend,
    RecommendationContext,
    RecordWinResult,
    StoreSnapshot,
    StoreStats,
    WinContext,
    WinPattern,
    WinRecord,
)

OBJECTION_MATCH_BOOST = 0.1
RECENCY_BOOST = 0.1
RECOMMENDATION_MIN_SUCCESS_RATE = 0.5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _append_unique(values: list, value) -> None:
    if value and value not in values:
        values.append(value)


class WinPatternStore:
    """
    In-memory store of win records and the patterns extracted from them.

    Usage:
        store = WinPatternStore()
        result = store.record_win(record)
        patterns = store.query(PatternQuery(industry="saas", min_success_rate=0.5))
    """

    def __init__(
        self,
        similarity_threshold: float = 0.7,
        recency_window_days: int = 30,
        recommendation_limit: int = 5,
        trend_window: int = 10,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.similarity_threshold = similarity_threshold
        self.recency_window = timedelta(days=recency_window_days)
        self.recommendation_limit = recommendation_limit
        self.trend_window = trend_window
        self._clock = clock or _utcnow

        self._patterns: Dict[str, WinPattern] = {}
        self._records: List[WinRecord] = []
        self._total_wins = 0
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings, clock: Optional[Callable[[], datetime]] = None) -> "WinPatternStore":
        return cls(
            similarity_threshold=settings.PATTERN_SIMILARITY_THRESHOLD,
            recency_window_days=settings.RECENCY_WINDOW_DAYS,
            recommendation_limit=settings.RECOMMENDATION_LIMIT,
            trend_window=settings.TREND_WINDOW,
            clock=clock,
        )

    # ==========================================================================
    # Writes
    # ==========================================================================

    def record_win(self, record: WinRecord, strict: bool = False) -> RecordWinResult:
        """
        Append a win to the log and fold it into a pattern.

        Records without critical actions are logged but touch no pattern;
        the result comes back with skipped=True (or EmptyActionSequence is
        raised when strict).
        """
        with self._lock:
            self._records.append(record)
            self._total_wins += 1

            critical = [
                (order, action)
                for order, action in enumerate(record.winning_actions)
                if action.impact == ActionImpact.CRITICAL
            ]
            if not critical:
                if strict:
                    raise EmptyActionSequence(f"Win {record.deal_id} has no critical actions")
                return RecordWinResult(
                    deal_id=record.deal_id,
                    skipped=True,
                    skip_reason="empty_action_sequence",
                )

            sequence = [
                PatternStep(
                    order=order,
                    action=action.action,
                    timing=action.timing,
                    channel=action.channel,
                    key_elements=[action.description] if action.description else [],
                )
                for order, action in critical
            ]

            match, similarity = self._find_matching_pattern(sequence)
            if match is not None:
                self._update_pattern(match, record)
                return RecordWinResult(
                    deal_id=record.deal_id,
                    pattern_id=match.id,
                    created=False,
                    similarity=similarity,
                )

            pattern = self._create_pattern(record, sequence)
            return RecordWinResult(
                deal_id=record.deal_id,
                pattern_id=pattern.id,
                created=True,
                similarity=similarity,
            )

    def record_outcome(self, pattern_id: str, won: bool, deal_value: Optional[float] = None) -> WinPattern:
        """
        Register one more use of a pattern that did or did not close.

        Losses raise usage_count only, so success_rate can drop below 1. A
        win without a deal value leaves avg_deal_value unchanged.

        Raises:
            PatternNotFound: unknown pattern id
        """
        with self._lock:
            pattern = self._patterns.get(pattern_id)
            if pattern is None:
                raise PatternNotFound(f"Pattern not found: {pattern_id}")
            if won and deal_value is None:
                deal_value = pattern.performance.avg_deal_value
            self._apply_outcome(pattern, won, deal_value)
            return pattern.model_copy(deep=True)

    def import_snapshot(self, snapshot: StoreSnapshot) -> None:
        with self._lock:
            for pattern in snapshot.patterns:
                self._patterns[pattern.id] = pattern.model_copy(deep=True)
            self._records.extend(snapshot.records)
            self._total_wins += (
                snapshot.total_wins if snapshot.total_wins is not None else len(snapshot.records)
            )

    # ==========================================================================
    # Reads
    # ==========================================================================

    def get_pattern(self, pattern_id: str) -> Optional[WinPattern]:
        with self._lock:
            pattern = self._patterns.get(pattern_id)
            return pattern.model_copy(deep=True) if pattern is not None else None

    def query(self, query: PatternQuery) -> List[WinPattern]:
        """Filter patterns (AND), sorted by success rate, highest first."""
        with self._lock:
            results = list(self._patterns.values())

            if query.category is not None:
                results = [p for p in results if p.pattern.category == query.category]

            if query.industry:
                results = [p for p in results if query.industry in p.applicability.industries]

            if query.deal_size is not None:
                results = [p for p in results if query.deal_size in p.applicability.deal_sizes]

            if query.objection_type:
                needle = query.objection_type.lower()
                results = [
                    p for p in results
                    if any(needle in o.lower() for o in p.applicability.objection_types)
                ]

            if query.min_success_rate is not None:
                results = [p for p in results if p.performance.success_rate >= query.min_success_rate]

            results.sort(key=lambda p: p.performance.success_rate, reverse=True)
            if query.limit:
                results = results[:query.limit]

            return [p.model_copy(deep=True) for p in results]

    def get_recommended_patterns(self, context: RecommendationContext) -> List[WinPattern]:
        """
        Rank patterns for a live deal.

        Score = success_rate
              + 0.1 per context objection found in the pattern's objections
              + 0.1 if the pattern was used within the recency window
        """
        with self._lock:
            candidates = self.query(PatternQuery(
                industry=context.industry,
                deal_size=context.deal_size,
                min_success_rate=RECOMMENDATION_MIN_SUCCESS_RATE,
            ))
            now = self._clock()

        scored: List[Tuple[float, WinPattern]] = []
        for pattern in candidates:
            score = pattern.performance.success_rate

            objection_types = [o.lower() for o in pattern.applicability.objection_types]
            matching = [
                o for o in context.objections
                if any(o.lower() in known for known in objection_types)
            ]
            score += len(matching) * OBJECTION_MATCH_BOOST

            if now - pattern.performance.last_used < self.recency_window:
                score += RECENCY_BOOST

            scored.append((score, pattern))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [pattern for _, pattern in scored[:self.recommendation_limit]]

    def get_stats(self) -> StoreStats:
        with self._lock:
            patterns = list(self._patterns.values())
            counts = Counter(p.pattern.category for p in patterns)
            avg_success_rate = (
                sum(p.performance.success_rate for p in patterns) / len(patterns)
                if patterns else 0.0
            )
            return StoreStats(
                total_patterns=len(patterns),
                total_wins=self._total_wins,
                avg_success_rate=avg_success_rate,
                top_categories=[
                    CategoryCount(category=category, count=count)
                    for category, count in counts.most_common(5)
                ],
            )

    def export(self) -> StoreSnapshot:
        with self._lock:
            return StoreSnapshot(
                patterns=[p.model_copy(deep=True) for p in self._patterns.values()],
                records=list(self._records),
                total_wins=self._total_wins,
            )

    # ==========================================================================
    # Internals
    # ==========================================================================

    def _find_matching_pattern(self, sequence: List[PatternStep]) -> Tuple[Optional[WinPattern], Optional[float]]:
        """Closest pattern above the similarity threshold. Ties go to the older pattern."""
        signature = action_signature(step.action for step in sequence)

        best: Optional[WinPattern] = None
        best_similarity: Optional[float] = None
        for pattern in self._patterns.values():
            similarity = jaccard_similarity(
                signature, action_signature(step.action for step in pattern.pattern.sequence)
            )
            if best_similarity is None or similarity > best_similarity:
                best_similarity = similarity
                if similarity > self.similarity_threshold:
                    best = pattern

        if best is None:
            return None, best_similarity
        return best, best_similarity

    def _update_pattern(self, pattern: WinPattern, record: WinRecord) -> None:
        applicability = pattern.applicability
        _append_unique(applicability.industries, record.industry)
        _append_unique(applicability.deal_sizes, categorize_deal_size(record.deal_value))
        _append_unique(applicability.personas, record.buyer_persona)
        for objection in record.initial_objections:
            _append_unique(applicability.objection_types, objection)

        self._apply_outcome(pattern, True, record.deal_value)

    def _apply_outcome(self, pattern: WinPattern, won: bool, deal_value: Optional[float]) -> None:
        performance = pattern.performance
        performance.usage_count += 1
        if won:
            performance.success_count += 1
            # Incremental mean over every won deal value
            performance.avg_deal_value += (deal_value - performance.avg_deal_value) / performance.success_count
        performance.success_rate = performance.success_count / performance.usage_count
        performance.last_used = self._clock()

        performance.outcome_history.append(won)
        max_history = max(2 * self.trend_window, 1)
        if len(performance.outcome_history) > max_history:
            del performance.outcome_history[:-max_history]

        performance.trend = classify_trend(performance, self.trend_window)
        pattern.applicability.confidence_score = self._confidence(performance)
        pattern.insights = generate_insights(pattern)

    @staticmethod
    def _confidence(performance: PatternPerformance) -> float:
        # 0.5 for a single win, growing with evidence, capped at 0.95
        evidence = min(0.95, 0.5 + 0.05 * (performance.usage_count - 1))
        return round(evidence * performance.success_rate, 4)

    def _create_pattern(self, record: WinRecord, sequence: List[PatternStep]) -> WinPattern:
        category = categorize_pattern(record)
        deal_size = categorize_deal_size(record.deal_value)
        now = self._clock()

        pattern = WinPattern(
            id=generate_id("win"),
            timestamp=now,
            pattern=PatternDefinition(
                name=f"{category.value} Pattern {len(self._patterns) + 1}",
                description=f"Extracted from {record.industry} deal",
                category=category,
                triggers=list(record.initial_objections),
                sequence=sequence,
                critical_elements=[step.action for step in sequence],
                anti_patterns=list(record.lost_alternatives),
            ),
            context=WinContext(
                industry=record.industry,
                deal_size=deal_size,
                buyer_persona=record.buyer_persona,
                sales_cycle=f"{record.cycle_length} days",
                competitive_situation="competitive" if record.competitors_involved else "solo",
                initial_objections=list(record.initial_objections),
                winning_factors=[a.action for a in record.winning_actions],
            ),
            performance=PatternPerformance(
                usage_count=1,
                success_count=1,
                success_rate=1.0,
                avg_deal_value=record.deal_value,
                last_used=now,
                # One data point is not a trend
                trend=PatternTrend.STABLE,
                outcome_history=[True],
            ),
            applicability=Applicability(
                industries=[record.industry],
                deal_sizes=[deal_size],
                personas=[record.buyer_persona] if record.buyer_persona else [],
                objection_types=list(record.initial_objections),
                confidence_score=0.5,
            ),
            # Insights need evidence beyond the first win
            insights=[],
        )

        self._patterns[pattern.id] = pattern
        return pattern
