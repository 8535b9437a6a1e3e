"""Pydantic schemas for revenue memory API requests and responses."""
from typing import List, Optional

from pydantic import BaseModel, Field

from .types import StoreStats, WinPattern


class PatternOutcomeRequest(BaseModel):
    """Outcome of a deal where a known pattern was applied."""
    won: bool
    deal_value: Optional[float] = Field(None, ge=0)


class PatternListResponse(BaseModel):
    count: int
    patterns: List[WinPattern]


class StatsResponse(StoreStats):
    organization_id: str
