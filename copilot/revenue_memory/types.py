"""
Revenue Memory Types - Core Data Structures.

- WinRecord / WinningAction: immutable log entry for a closed deal
- WinPattern: clustered summary of repeated winning action sequences
- PatternQuery / RecommendationContext: read-side filters
- RecordWinResult / StoreSnapshot / StoreStats: store outputs
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================

class ActionImpact(str, Enum):
    """How much an action contributed to the win."""
    CRITICAL = "critical"
    IMPORTANT = "important"
    HELPFUL = "helpful"
    MINOR = "minor"


class PatternCategory(str, Enum):
    CLOSING = "closing"
    OBJECTION_HANDLING = "objection_handling"
    REACTIVATION = "reactivation"
    UPSELL = "upsell"
    REFERRAL = "referral"
    TRUST_BUILDING = "trust_building"
    URGENCY_CREATION = "urgency_creation"
    VALUE_DEMONSTRATION = "value_demonstration"
    PRICING = "pricing"
    NEGOTIATION = "negotiation"


class DealSizeRange(str, Enum):
    SMALL = "small"              # < 5,000
    MEDIUM = "medium"            # < 25,000
    LARGE = "large"              # < 100,000
    ENTERPRISE = "enterprise"


class PatternTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class InsightType(str, Enum):
    TIMING = "timing"
    CHANNEL = "channel"
    MESSAGING = "messaging"
    SEQUENCE = "sequence"
    PERSONA = "persona"
    OBJECTION = "objection"
    PRICING = "pricing"


# =============================================================================
# WIN RECORDS
# =============================================================================

class WinningAction(BaseModel):
    """One step taken on the way to a win, in the order it happened."""
    model_config = ConfigDict(frozen=True)

    action: str
    timing: str = ""
    channel: str = ""
    impact: ActionImpact
    description: str = ""


class WinRecord(BaseModel):
    """
    How a specific deal was closed.

    Created once per closed deal and never modified afterwards.
    """
    model_config = ConfigDict(frozen=True)

    deal_id: str = Field(..., min_length=1)
    timestamp: datetime
    industry: str
    deal_value: float = Field(..., ge=0)
    cycle_length: int = Field(0, ge=0, description="Sales cycle in days")
    buyer_persona: str = ""
    competitors_involved: List[str] = Field(default_factory=list)
    initial_objections: List[str] = Field(default_factory=list)
    winning_actions: List[WinningAction] = Field(default_factory=list)
    lost_alternatives: List[str] = Field(default_factory=list)
    customer_feedback: Optional[str] = None


# =============================================================================
# WIN PATTERNS
# =============================================================================

class PatternStep(BaseModel):
    order: int
    action: str
    timing: str
    channel: str
    key_elements: List[str] = Field(default_factory=list)
    variations: List[str] = Field(default_factory=list)


class PatternDefinition(BaseModel):
    name: str
    description: str
    category: PatternCategory
    triggers: List[str] = Field(default_factory=list)
    sequence: List[PatternStep] = Field(default_factory=list)
    critical_elements: List[str] = Field(default_factory=list)
    anti_patterns: List[str] = Field(default_factory=list)


class WinContext(BaseModel):
    """Snapshot of the deal the pattern was first extracted from."""
    industry: str
    deal_size: DealSizeRange
    buyer_persona: str
    sales_cycle: str
    competitive_situation: str  # "competitive" | "solo"
    initial_objections: List[str] = Field(default_factory=list)
    winning_factors: List[str] = Field(default_factory=list)


class PatternPerformance(BaseModel):
    usage_count: int = 0
    success_count: int = 0
    success_rate: float = 0.0
    avg_deal_value: float = 0.0
    avg_cycle_reduction: float = 0.0
    last_used: datetime
    trend: PatternTrend = PatternTrend.STABLE
    # Win/loss per use, oldest first, bounded by the store
    outcome_history: List[bool] = Field(default_factory=list)


class Applicability(BaseModel):
    industries: List[str] = Field(default_factory=list)
    deal_sizes: List[DealSizeRange] = Field(default_factory=list)
    personas: List[str] = Field(default_factory=list)
    objection_types: List[str] = Field(default_factory=list)
    confidence_score: float = 0.5
    exclusions: List[str] = Field(default_factory=list)


class PatternInsight(BaseModel):
    type: InsightType
    insight: str
    confidence: float
    actionable: bool = True
    recommendation: Optional[str] = None


class WinPattern(BaseModel):
    id: str
    timestamp: datetime
    pattern: PatternDefinition
    context: WinContext
    performance: PatternPerformance
    applicability: Applicability
    insights: List[PatternInsight] = Field(default_factory=list)


# =============================================================================
# QUERIES
# =============================================================================

class PatternQuery(BaseModel):
    """Filters compose with AND; unset fields do not filter."""
    category: Optional[PatternCategory] = None
    industry: Optional[str] = None
    deal_size: Optional[DealSizeRange] = None
    objection_type: Optional[str] = None
    min_success_rate: Optional[float] = Field(None, ge=0, le=1)
    limit: Optional[int] = Field(None, ge=1)


class RecommendationContext(BaseModel):
    industry: str
    deal_size: DealSizeRange
    objections: List[str] = Field(default_factory=list)


# =============================================================================
# STORE OUTPUTS
# =============================================================================

class RecordWinResult(BaseModel):
    """Outcome of recording a win. `skipped` is set when no pattern was touched."""
    deal_id: str
    pattern_id: Optional[str] = None
    created: bool = False
    skipped: bool = False
    skip_reason: Optional[str] = None
    similarity: Optional[float] = None


class StoreSnapshot(BaseModel):
    """
    Patterns plus the win log (or just its size).

    Repositories leave `records` empty and report `total_wins` only; when
    `total_wins` is None the log size is len(records).
    """
    patterns: List[WinPattern] = Field(default_factory=list)
    records: List[WinRecord] = Field(default_factory=list)
    total_wins: Optional[int] = Field(None, ge=0)


class CategoryCount(BaseModel):
    category: PatternCategory
    count: int


class StoreStats(BaseModel):
    total_patterns: int
    total_wins: int
    avg_success_rate: float
    top_categories: List[CategoryCount] = Field(default_factory=list)
