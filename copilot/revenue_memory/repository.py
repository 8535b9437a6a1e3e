"""
Win pattern persistence boundary.

The store itself is in-memory. Repositories load a snapshot into it before
work and save what changed afterwards. Writers hold the organization's
repository lock across the whole cycle:

    async with repository.locked(org_id):
        store.import_snapshot(await repository.load(org_id))
        result = store.record_win(record)
        await repository.append_record(org_id, record)
        await repository.save_pattern(org_id, store.get_pattern(result.pattern_id))

load() returns patterns only. The win log is append-only and is never read
back; its size comes from count_records().
"""
import asyncio
import hashlib
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from .models import WinPatternRow, WinRecordRow
from .types import StoreSnapshot, WinPattern, WinRecord


def advisory_lock_key(organization_id: str) -> int:
    """Stable signed bigint key for pg_advisory_xact_lock."""
    digest = hashlib.sha256(f"win_patterns:{organization_id}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


class WinPatternRepository(ABC):
    """Storage for one organization's patterns and win log."""

    @abstractmethod
    def locked(self, organization_id: str):
        """
        Async context manager serializing writers for an organization.

        Must be held across load → mutate → save, and must hold across
        processes wherever the storage itself is shared.
        """
        pass

    @abstractmethod
    async def load(self, organization_id: str) -> StoreSnapshot:
        """Load every pattern for an organization (records are not loaded)."""
        pass

    @abstractmethod
    async def count_records(self, organization_id: str) -> int:
        """Number of win records logged for an organization."""
        pass

    @abstractmethod
    async def append_record(self, organization_id: str, record: WinRecord) -> None:
        """Append a win record to the log."""
        pass

    @abstractmethod
    async def save_pattern(self, organization_id: str, pattern: WinPattern) -> None:
        """Insert or replace a pattern."""
        pass


class InMemoryWinPatternRepository(WinPatternRepository):
    """Process-local repository for tests and local development."""

    def __init__(self):
        self._patterns: Dict[str, Dict[str, WinPattern]] = defaultdict(dict)
        self._records: Dict[str, List[WinRecord]] = defaultdict(list)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def locked(self, organization_id: str) -> AsyncIterator[None]:
        async with self._locks[organization_id]:
            yield

    async def load(self, organization_id: str) -> StoreSnapshot:
        return StoreSnapshot(
            patterns=[p.model_copy(deep=True) for p in self._patterns[organization_id].values()],
        )

    async def count_records(self, organization_id: str) -> int:
        return len(self._records[organization_id])

    async def append_record(self, organization_id: str, record: WinRecord) -> None:
        self._records[organization_id].append(record)

    async def save_pattern(self, organization_id: str, pattern: WinPattern) -> None:
        self._patterns[organization_id][pattern.id] = pattern.model_copy(deep=True)


class SqlWinPatternRepository(WinPatternRepository):
    """Postgres-backed repository (JSONB documents in win_patterns / win_records)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def locked(self, organization_id: str) -> AsyncIterator[None]:
        # Transaction-scoped: released when get_db commits or rolls back
        await self.db.execute(
            text("SELECT pg_advisory_xact_lock(:key)"),
            {"key": advisory_lock_key(organization_id)},
        )
        yield

    async def load(self, organization_id: str) -> StoreSnapshot:
        result = await self.db.execute(
            select(WinPatternRow)
            .where(WinPatternRow.organization_id == organization_id)
            .order_by(WinPatternRow.created_at)
        )
        return StoreSnapshot(
            patterns=[WinPattern.model_validate(row.document) for row in result.scalars().all()],
        )

    async def count_records(self, organization_id: str) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(WinRecordRow)
            .where(WinRecordRow.organization_id == organization_id)
        )
        return result.scalar_one()

    async def append_record(self, organization_id: str, record: WinRecord) -> None:
        self.db.add(WinRecordRow(
            organization_id=organization_id,
            deal_id=record.deal_id,
            recorded_at=record.timestamp,
            document=record.model_dump(mode="json"),
        ))
        await self.db.flush()

    async def save_pattern(self, organization_id: str, pattern: WinPattern) -> None:
        row = await self.db.get(WinPatternRow, pattern.id)
        if row is None:
            row = WinPatternRow(id=pattern.id, organization_id=organization_id)
            self.db.add(row)

        row.category = pattern.pattern.category.value
        row.usage_count = pattern.performance.usage_count
        row.success_rate = pattern.performance.success_rate
        row.avg_deal_value = pattern.performance.avg_deal_value
        row.document = pattern.model_dump(mode="json")
        await self.db.flush()
