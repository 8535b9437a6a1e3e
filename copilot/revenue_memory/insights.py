"""
Pattern heuristics - categorization, deal sizing, similarity, trend, insights.

All functions are pure and operate on plain WinRecord / WinPattern values.
"""

from typing import Iterable, List, Set

from .types import (
    DealSizeRange,
    InsightType,
    PatternCategory,
    PatternInsight,
    PatternPerformance,
    PatternTrend,
    WinPattern,
    WinRecord,
)


# Objection keywords → category, checked in order. First match wins.
CATEGORY_KEYWORDS = [
    (("price", "cost"), PatternCategory.PRICING),
    (("competitor", "alternative"), PatternCategory.NEGOTIATION),
    (("trust", "risk"), PatternCategory.TRUST_BUILDING),
    (("time", "busy"), PatternCategory.URGENCY_CREATION),
]

# Upper bounds (exclusive) for deal size buckets
DEAL_SIZE_BOUNDS = [
    (5_000, DealSizeRange.SMALL),
    (25_000, DealSizeRange.MEDIUM),
    (100_000, DealSizeRange.LARGE),
]

IMPROVING_THRESHOLD = 0.8
DECLINING_THRESHOLD = 0.5
TREND_DELTA = 0.1


def normalize_action(action: str) -> str:
    return " ".join(action.lower().split())


def action_signature(actions: Iterable[str]) -> Set[str]:
    """Set of normalized action names used for similarity matching."""
    return {normalize_action(a) for a in actions if a and a.strip()}


def jaccard_similarity(a: Set[str], b: Set[str]) -> float:
    """|a ∩ b| / |a ∪ b|; two empty sets have similarity 0."""
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def categorize_pattern(record: WinRecord) -> PatternCategory:
    objections = " ".join(record.initial_objections).lower()
    for keywords, category in CATEGORY_KEYWORDS:
        if any(keyword in objections for keyword in keywords):
            return category
    return PatternCategory.CLOSING


def categorize_deal_size(value: float) -> DealSizeRange:
    for bound, size in DEAL_SIZE_BOUNDS:
        if value < bound:
            return size
    return DealSizeRange.ENTERPRISE


def _rate(outcomes: List[bool]) -> float:
    return sum(1 for won in outcomes if won) / len(outcomes)


def classify_trend(performance: PatternPerformance, window: int) -> PatternTrend:
    """
    Classify a pattern's direction.

    With at least two full windows of outcome history, compares the success
    rate of the latest window against the one before it. With less history
    it falls back to thresholds on the overall success rate
    (> 0.8 improving, < 0.5 declining).
    """
    history = performance.outcome_history
    if window > 0 and len(history) >= 2 * window:
        recent = _rate(history[-window:])
        previous = _rate(history[-2 * window:-window])
        delta = recent - previous
        if delta > TREND_DELTA:
            return PatternTrend.IMPROVING
        if delta < -TREND_DELTA:
            return PatternTrend.DECLINING
        return PatternTrend.STABLE

    if performance.success_rate > IMPROVING_THRESHOLD:
        return PatternTrend.IMPROVING
    if performance.success_rate < DECLINING_THRESHOLD:
        return PatternTrend.DECLINING
    return PatternTrend.STABLE


def generate_insights(pattern: WinPattern) -> List[PatternInsight]:
    """Up to three advisory insights (timing, channel, messaging)."""
    insights: List[PatternInsight] = []
    performance = pattern.performance

    if performance.usage_count > 5:
        insights.append(PatternInsight(
            type=InsightType.TIMING,
            insight="Pattern most effective when initiated within first week of engagement",
            confidence=performance.success_rate,
            recommendation="Deploy early in sales cycle",
        ))

    channels: List[str] = []
    for step in pattern.pattern.sequence:
        if step.channel and step.channel not in channels:
            channels.append(step.channel)
    if len(channels) > 1:
        insights.append(PatternInsight(
            type=InsightType.CHANNEL,
            insight=f"Multi-channel approach ({', '.join(channels)}) shows higher success",
            confidence=0.7,
            recommendation="Use diverse channels in sequence",
        ))

    if performance.success_rate > 0.75:
        insights.append(PatternInsight(
            type=InsightType.MESSAGING,
            insight="Critical messaging elements consistently drive conversion",
            confidence=performance.success_rate,
            recommendation=f"Focus on: {', '.join(pattern.pattern.critical_elements[:3])}",
        ))

    return insights
