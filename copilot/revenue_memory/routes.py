"""Revenue Memory API routes.

Endpoints:
- POST /revenue-memory/{organization_id}/wins - Record a closed deal
- POST /revenue-memory/{organization_id}/patterns/{pattern_id}/outcomes - Record a pattern use
- GET  /revenue-memory/{organization_id}/patterns - Query patterns
- POST /revenue-memory/{organization_id}/patterns/recommended - Rank patterns for a deal
- GET  /revenue-memory/{organization_id}/patterns/{pattern_id} - Get one pattern
- GET  /revenue-memory/{organization_id}/stats - Store statistics
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from copilot.database import get_db
from copilot.errors import CopilotError, error_to_http
from .repository import SqlWinPatternRepository
from .schemas import PatternListResponse, PatternOutcomeRequest, StatsResponse
from .service import RevenueMemoryService
from .types import (
    DealSizeRange,
    PatternCategory,
    PatternQuery,
    RecommendationContext,
    RecordWinResult,
    WinPattern,
    WinRecord,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_revenue_memory_service(db: AsyncSession = Depends(get_db)) -> RevenueMemoryService:
    return RevenueMemoryService(SqlWinPatternRepository(db))


# ============================================================================
# WRITES
# ============================================================================

@router.post("/{organization_id}/wins", response_model=RecordWinResult)
async def record_win(
    organization_id: str,
    record: WinRecord,
    service: RevenueMemoryService = Depends(get_revenue_memory_service),
):
    """
    Record a closed deal.

    The deal's critical actions are matched against existing patterns. The
    response says which pattern absorbed the win, whether it was newly
    created, or `skipped: true` when the record had no critical actions.
    """
    try:
        return await service.record_win(organization_id, record)
    except CopilotError as e:
        raise error_to_http(e)
    except Exception as e:
        logger.exception(f"Error recording win {record.deal_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error recording win: {str(e)}")


@router.post("/{organization_id}/patterns/{pattern_id}/outcomes", response_model=WinPattern)
async def record_pattern_outcome(
    organization_id: str,
    pattern_id: str,
    payload: PatternOutcomeRequest,
    service: RevenueMemoryService = Depends(get_revenue_memory_service),
):
    """Record a won or lost deal where this pattern was applied."""
    try:
        return await service.record_outcome(organization_id, pattern_id, payload.won, payload.deal_value)
    except CopilotError as e:
        raise error_to_http(e)
    except Exception as e:
        logger.exception(f"Error recording outcome for pattern {pattern_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error recording outcome: {str(e)}")


# ============================================================================
# READS
# ============================================================================

@router.get("/{organization_id}/patterns", response_model=PatternListResponse)
async def query_patterns(
    organization_id: str,
    category: Optional[PatternCategory] = Query(None),
    industry: Optional[str] = Query(None),
    deal_size: Optional[DealSizeRange] = Query(None),
    objection_type: Optional[str] = Query(None, description="Case-insensitive substring"),
    min_success_rate: Optional[float] = Query(None, ge=0, le=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    service: RevenueMemoryService = Depends(get_revenue_memory_service),
):
    """Filter patterns, highest success rate first."""
    query = PatternQuery(
        category=category,
        industry=industry,
        deal_size=deal_size,
        objection_type=objection_type,
        min_success_rate=min_success_rate,
        limit=limit,
    )
    try:
        patterns = await service.query(organization_id, query)
        return PatternListResponse(count=len(patterns), patterns=patterns)
    except Exception as e:
        logger.exception(f"Error querying patterns for {organization_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error querying patterns: {str(e)}")


@router.post("/{organization_id}/patterns/recommended", response_model=PatternListResponse)
async def recommend_patterns(
    organization_id: str,
    context: RecommendationContext,
    service: RevenueMemoryService = Depends(get_revenue_memory_service),
):
    """Top patterns for a live deal, scored by success rate, objection overlap and recency."""
    try:
        patterns = await service.get_recommended_patterns(organization_id, context)
        return PatternListResponse(count=len(patterns), patterns=patterns)
    except Exception as e:
        logger.exception(f"Error recommending patterns for {organization_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error recommending patterns: {str(e)}")


@router.get("/{organization_id}/patterns/{pattern_id}", response_model=WinPattern)
async def get_pattern(
    organization_id: str,
    pattern_id: str,
    service: RevenueMemoryService = Depends(get_revenue_memory_service),
):
    pattern = await service.get_pattern(organization_id, pattern_id)
    if pattern is None:
        raise HTTPException(status_code=404, detail="Pattern not found")
    return pattern


@router.get("/{organization_id}/stats", response_model=StatsResponse)
async def get_stats(
    organization_id: str,
    service: RevenueMemoryService = Depends(get_revenue_memory_service),
):
    stats = await service.get_stats(organization_id)
    return StatsResponse(organization_id=organization_id, **stats.model_dump())
