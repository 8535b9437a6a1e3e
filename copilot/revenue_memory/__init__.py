"""
Revenue Memory Module

Learns which action sequences close deals:
- types.py: WinRecord, WinPattern and query models
- insights.py: categorization, similarity, trend and insight heuristics
- store.py: in-memory WinPatternStore
- repository.py: persistence boundary (in-memory and Postgres)
- service.py: load → mutate → save with per-organization write locks
- routes.py: /revenue-memory endpoints
"""

from .types import (
    ActionImpact,
    DealSizeRange,
    PatternCategory,
    PatternQuery,
    PatternTrend,
    RecommendationContext,
    RecordWinResult,
    StoreSnapshot,
    StoreStats,
    WinPattern,
    WinRecord,
    WinningAction,
)
from .store import WinPatternStore
from .repository import (
    WinPatternRepository,
    InMemoryWinPatternRepository,
    SqlWinPatternRepository,
)
from .service import RevenueMemoryService, OrganizationLocks

__all__ = [
    # Types
    "ActionImpact",
    "DealSizeRange",
    "PatternCategory",
    "PatternQuery",
    "PatternTrend",
    "RecommendationContext",
    "RecordWinResult",
    "StoreSnapshot",
    "StoreStats",
    "WinPattern",
    "WinRecord",
    "WinningAction",
    # Store
    "WinPatternStore",
    # Persistence
    "WinPatternRepository",
    "InMemoryWinPatternRepository",
    "SqlWinPatternRepository",
    # Service
    "RevenueMemoryService",
    "OrganizationLocks",
]
