"""Shared test fixtures and configuration for copilot backend tests."""
import pytest
from datetime import datetime, timezone
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

from copilot.revenue_memory.types import ActionImpact, WinningAction, WinRecord


@pytest.fixture
def fixed_now():
    """A fixed reference instant: Monday 2030-01-07 00:00 UTC."""
    return datetime(2030, 1, 7, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(fixed_now):
    """Clock returning the fixed instant."""
    return lambda: fixed_now


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    db.flush = AsyncMock()
    return db


def make_result(rows: Optional[List] = None, one=None) -> MagicMock:
    """Mimic an AsyncSession.execute() result."""
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows or []
    result.scalar_one_or_none.return_value = one
    return result


def make_record(
    deal_id: str = "deal-1",
    critical: Optional[List[str]] = None,
    deal_value: float = 10000,
    industry: str = "saas",
    objections: Optional[List[str]] = None,
    channels: Optional[List[str]] = None,
    persona: str = "cfo",
    extra_actions: Optional[List[WinningAction]] = None,
) -> WinRecord:
    """Build a win record whose critical actions are `critical`."""
    critical = critical if critical is not None else ["discovery call", "roi review", "exec sponsor"]
    channels = channels or ["phone"] * len(critical)
    actions = [
        WinningAction(
            action=name,
            timing=f"week {i + 1}",
            channel=channels[i % len(channels)],
            impact=ActionImpact.CRITICAL,
            description=f"{name} detail",
        )
        for i, name in enumerate(critical)
    ]
    actions.extend(extra_actions or [])
    return WinRecord(
        deal_id=deal_id,
        timestamp=datetime(2030, 1, 1, tzinfo=timezone.utc),
        industry=industry,
        deal_value=deal_value,
        cycle_length=30,
        buyer_persona=persona,
        competitors_involved=[],
        initial_objections=objections if objections is not None else ["price too high"],
        winning_actions=actions,
        lost_alternatives=["discounting"],
    )


@pytest.fixture
def record_factory():
    """Factory for win records."""
    return make_record


@pytest.fixture
def result_factory():
    """Factory for mocked execute() results."""
    return make_result
