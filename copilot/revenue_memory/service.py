"""
Revenue Memory Service

Brackets the in-memory WinPatternStore with persistence: every call loads
the organization's patterns into a fresh store, runs the operation, and
saves what changed. Writes for one organization hold two locks across
load → mutate → save: a process-local asyncio.Lock, so one worker queues
its own requests without tying up database connections, and the
repository lock (a Postgres advisory lock for the SQL repository), so
workers in other processes cannot interleave and lose counter updates.
"""

import asyncio
import logging
import weakref
from datetime import datetime
from typing import Callable, List, Optional

from copilot.config import Settings, settings as default_settings
from .repository import WinPatternRepository
from .store import WinPatternStore
from .types import (
    PatternQuery,
    RecommendationContext,
    RecordWinResult,
    StoreStats,
    WinPattern,
    WinRecord,
)

logger = logging.getLogger(__name__)


class OrganizationLocks:
    """
    One asyncio.Lock per organization, created on first use.

    Locks are weakly held: once no request holds or waits on an
    organization's lock it is dropped.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, organization_id: str) -> asyncio.Lock:
        lock = self._locks.get(organization_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[organization_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)


# Process-wide write locks, shared by every service instance
write_locks = OrganizationLocks()


class RevenueMemoryService:
    """
    Per-request facade over the win pattern store.

    Usage:
        service = RevenueMemoryService(SqlWinPatternRepository(db))
        result = await service.record_win(org_id, record)
    """

    def __init__(
        self,
        repository: WinPatternRepository,
        locks: Optional[OrganizationLocks] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self.locks = locks if locks is not None else write_locks
        self.settings = settings or default_settings
        self._clock = clock

    async def _load_store(self, organization_id: str, with_counts: bool = False) -> WinPatternStore:
        snapshot = await self.repository.load(organization_id)
        if with_counts:
            snapshot.total_wins = await self.repository.count_records(organization_id)
        store = WinPatternStore.from_settings(self.settings, clock=self._clock)
        store.import_snapshot(snapshot)
        return store

    # ==========================================================================
    # Writes
    # ==========================================================================

    async def record_win(self, organization_id: str, record: WinRecord) -> RecordWinResult:
        async with self.locks.get(organization_id), self.repository.locked(organization_id):
            store = await self._load_store(organization_id)
            result = store.record_win(record)

            await self.repository.append_record(organization_id, record)
            if result.pattern_id is not None:
                await self.repository.save_pattern(organization_id, store.get_pattern(result.pattern_id))

        if result.skipped:
            logger.info(f"Win {record.deal_id} for {organization_id} logged without pattern: {result.skip_reason}")
        else:
            logger.info(
                f"Win {record.deal_id} for {organization_id} "
                f"{'created' if result.created else 'updated'} pattern {result.pattern_id}"
            )
        return result

    async def record_outcome(
        self,
        organization_id: str,
        pattern_id: str,
        won: bool,
        deal_value: Optional[float] = None,
    ) -> WinPattern:
        async with self.locks.get(organization_id), self.repository.locked(organization_id):
            store = await self._load_store(organization_id)
            pattern = store.record_outcome(pattern_id, won, deal_value)
            await self.repository.save_pattern(organization_id, pattern)

        logger.info(f"Recorded {'win' if won else 'loss'} for pattern {pattern_id} ({organization_id})")
        return pattern

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def query(self, organization_id: str, query: PatternQuery) -> List[WinPattern]:
        store = await self._load_store(organization_id)
        return store.query(query)

    async def get_recommended_patterns(
        self, organization_id: str, context: RecommendationContext
    ) -> List[WinPattern]:
        store = await self._load_store(organization_id)
        return store.get_recommended_patterns(context)

    async def get_pattern(self, organization_id: str, pattern_id: str) -> Optional[WinPattern]:
        store = await self._load_store(organization_id)
        return store.get_pattern(pattern_id)

    async def get_stats(self, organization_id: str) -> StoreStats:
        store = await self._load_store(organization_id, with_counts=True)
        return store.get_stats()
