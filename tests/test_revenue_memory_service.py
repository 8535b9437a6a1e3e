"""
Tests for the Revenue Memory service and repositories.

Tests cover:
- Persistence across service instances
- Serialized concurrent writes per organization, within and across workers
- Reads that skip the win log
- Organization isolation
- SQL repository mapping (mocked session)
"""

import asyncio
import gc
import pytest
from unittest.mock import AsyncMock, MagicMock

from copilot.errors import PatternNotFound
from copilot.revenue_memory.models import WinPatternRow, WinRecordRow
from copilot.revenue_memory.repository import (
    InMemoryWinPatternRepository,
    SqlWinPatternRepository,
    advisory_lock_key,
)
from copilot.revenue_memory.service import OrganizationLocks, RevenueMemoryService
from copilot.revenue_memory.store import WinPatternStore
from copilot.revenue_memory.types import DealSizeRange, PatternQuery, RecommendationContext


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def repository():
    return InMemoryWinPatternRepository()


@pytest.fixture
def service(repository, clock):
    return RevenueMemoryService(repository, locks=OrganizationLocks(), clock=clock)


class YieldingRepository(InMemoryWinPatternRepository):
    """Gives other tasks a turn between reading and writing, like a real database."""

    async def load(self, organization_id):
        snapshot = await super().load(organization_id)
        await asyncio.sleep(0)
        return snapshot

    async def save_pattern(self, organization_id, pattern):
        await asyncio.sleep(0)
        await super().save_pattern(organization_id, pattern)


# =============================================================================
# Service Tests
# =============================================================================

class TestRevenueMemoryService:

    @pytest.mark.asyncio
    async def test_wins_persist_between_instances(self, repository, clock, record_factory):
        locks = OrganizationLocks()
        first = RevenueMemoryService(repository, locks=locks, clock=clock)
        created = await first.record_win("org_1", record_factory(deal_id="a", deal_value=1000))

        second = RevenueMemoryService(repository, locks=locks, clock=clock)
        updated = await second.record_win("org_1", record_factory(deal_id="b", deal_value=3000))

        assert updated.pattern_id == created.pattern_id
        pattern = await second.get_pattern("org_1", created.pattern_id)
        assert pattern.performance.usage_count == 2
        assert pattern.performance.avg_deal_value == pytest.approx(2000)

        stats = await second.get_stats("org_1")
        assert stats.total_wins == 2
        assert stats.total_patterns == 1

    @pytest.mark.asyncio
    async def test_skipped_win_is_still_logged(self, service, repository, record_factory):
        result = await service.record_win("org_1", record_factory(critical=[]))

        assert result.skipped is True
        assert await repository.count_records("org_1") == 1
        assert (await repository.load("org_1")).patterns == []

    @pytest.mark.asyncio
    async def test_concurrent_wins_are_serialized(self, service, record_factory):
        records = [record_factory(deal_id=f"d{i}") for i in range(20)]

        results = await asyncio.gather(*(service.record_win("org_1", r) for r in records))

        assert sum(1 for r in results if r.created) == 1
        pattern = await service.get_pattern("org_1", results[0].pattern_id)
        assert pattern.performance.usage_count == 20

    @pytest.mark.asyncio
    async def test_organizations_are_isolated(self, service, record_factory):
        await service.record_win("org_1", record_factory())

        assert await service.query("org_2", PatternQuery()) == []
        assert len(await service.query("org_1", PatternQuery())) == 1

    @pytest.mark.asyncio
    async def test_record_outcome_persists(self, service, record_factory):
        result = await service.record_win("org_1", record_factory())

        await service.record_outcome("org_1", result.pattern_id, won=False)

        pattern = await service.get_pattern("org_1", result.pattern_id)
        assert pattern.performance.success_rate == 0.5

    @pytest.mark.asyncio
    async def test_record_outcome_unknown_pattern(self, service):
        with pytest.raises(PatternNotFound):
            await service.record_outcome("org_1", "win_missing", won=True)

    @pytest.mark.asyncio
    async def test_get_pattern_unknown(self, service):
        assert await service.get_pattern("org_1", "win_missing") is None

    @pytest.mark.asyncio
    async def test_workers_sharing_storage_do_not_lose_updates(self, clock, record_factory):
        # Two services with their own process-local locks stand in for two workers
        repository = YieldingRepository()
        worker_a = RevenueMemoryService(repository, locks=OrganizationLocks(), clock=clock)
        worker_b = RevenueMemoryService(repository, locks=OrganizationLocks(), clock=clock)
        seed = await worker_a.record_win("org_1", record_factory(deal_id="seed"))

        await asyncio.gather(*(
            worker.record_win("org_1", record_factory(deal_id=f"{name}{i}"))
            for i in range(5)
            for name, worker in (("a", worker_a), ("b", worker_b))
        ))

        pattern = await worker_a.get_pattern("org_1", seed.pattern_id)
        assert pattern.performance.usage_count == 11
        assert await repository.count_records("org_1") == 11

    @pytest.mark.asyncio
    async def test_reads_skip_the_win_log(self, service, repository, record_factory):
        created = await service.record_win("org_1", record_factory())
        repository.count_records = AsyncMock(return_value=1)

        await service.query("org_1", PatternQuery())
        await service.get_pattern("org_1", created.pattern_id)
        await service.get_recommended_patterns(
            "org_1", RecommendationContext(industry="saas", deal_size=DealSizeRange.MEDIUM),
        )
        repository.count_records.assert_not_awaited()

        stats = await service.get_stats("org_1")
        repository.count_records.assert_awaited_once_with("org_1")
        assert stats.total_wins == 1


class TestOrganizationLocks:

    def test_locks_are_per_organization(self):
        locks = OrganizationLocks()

        assert locks.get("org_1") is locks.get("org_1")
        assert locks.get("org_1") is not locks.get("org_2")

    def test_unused_locks_are_dropped(self):
        locks = OrganizationLocks()
        held = locks.get("org_1")
        locks.get("org_2")
        gc.collect()

        assert len(locks) == 1
        assert locks.get("org_1") is held

    @pytest.mark.asyncio
    async def test_lock_survives_while_held(self):
        locks = OrganizationLocks()

        async with locks.get("org_1"):
            gc.collect()
            assert len(locks) == 1
            assert locks.get("org_1").locked()


# =============================================================================
# SQL Repository Tests
# =============================================================================

class TestSqlWinPatternRepository:

    @pytest.mark.asyncio
    async def test_load_reads_patterns_only(self, mock_db, result_factory, clock, record_factory):
        store = WinPatternStore(clock=clock)
        pattern = store.get_pattern(store.record_win(record_factory()).pattern_id)
        mock_db.execute.side_effect = [
            result_factory(rows=[MagicMock(document=pattern.model_dump(mode="json"))]),
        ]

        snapshot = await SqlWinPatternRepository(mock_db).load("org_1")

        assert snapshot.patterns == [pattern]
        assert snapshot.records == []
        mock_db.execute.assert_awaited_once()
        statement = str(mock_db.execute.call_args[0][0])
        assert "win_patterns" in statement
        assert "win_records" not in statement

    @pytest.mark.asyncio
    async def test_count_records(self, mock_db):
        result = MagicMock()
        result.scalar_one.return_value = 11
        mock_db.execute.return_value = result

        assert await SqlWinPatternRepository(mock_db).count_records("org_1") == 11
        statement = str(mock_db.execute.call_args[0][0]).lower()
        assert "count(" in statement
        assert "win_records" in statement

    @pytest.mark.asyncio
    async def test_locked_takes_advisory_transaction_lock(self, mock_db):
        async with SqlWinPatternRepository(mock_db).locked("org_1"):
            pass

        statement, params = mock_db.execute.call_args[0]
        assert "pg_advisory_xact_lock" in str(statement)
        assert params == {"key": advisory_lock_key("org_1")}

    def test_advisory_lock_key(self):
        key = advisory_lock_key("org_1")

        assert key == advisory_lock_key("org_1")
        assert key != advisory_lock_key("org_2")
        assert -2 ** 63 <= key < 2 ** 63

    @pytest.mark.asyncio
    async def test_record_win_locks_before_loading(self, mock_db, result_factory, clock, record_factory):
        mock_db.execute.side_effect = [MagicMock(), result_factory(rows=[])]
        mock_db.get = AsyncMock(return_value=None)
        service = RevenueMemoryService(SqlWinPatternRepository(mock_db), locks=OrganizationLocks(), clock=clock)

        await service.record_win("org_1", record_factory())

        lock_call, load_call = mock_db.execute.call_args_list
        assert "pg_advisory_xact_lock" in str(lock_call[0][0])
        assert "win_patterns" in str(load_call[0][0])

    @pytest.mark.asyncio
    async def test_append_record(self, mock_db, record_factory):
        await SqlWinPatternRepository(mock_db).append_record("org_1", record_factory(deal_id="deal-9"))

        row = mock_db.add.call_args[0][0]
        assert isinstance(row, WinRecordRow)
        assert row.organization_id == "org_1"
        assert row.deal_id == "deal-9"
        assert row.document["deal_id"] == "deal-9"
        mock_db.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_save_new_pattern_inserts_row(self, mock_db, clock, record_factory):
        store = WinPatternStore(clock=clock)
        pattern = store.get_pattern(store.record_win(record_factory()).pattern_id)
        mock_db.get = AsyncMock(return_value=None)

        await SqlWinPatternRepository(mock_db).save_pattern("org_1", pattern)

        row = mock_db.add.call_args[0][0]
        assert isinstance(row, WinPatternRow)
        assert row.id == pattern.id
        assert row.category == pattern.pattern.category.value
        assert row.usage_count == 1
        assert row.document["id"] == pattern.id

    @pytest.mark.asyncio
    async def test_save_existing_pattern_updates_row(self, mock_db, clock, record_factory):
        store = WinPatternStore(clock=clock)
        result = store.record_win(record_factory())
        store.record_outcome(result.pattern_id, won=False)
        pattern = store.get_pattern(result.pattern_id)
        existing = WinPatternRow(id=pattern.id, organization_id="org_1")
        mock_db.get = AsyncMock(return_value=existing)

        await SqlWinPatternRepository(mock_db).save_pattern("org_1", pattern)

        mock_db.add.assert_not_called()
        assert existing.usage_count == 2
        assert existing.success_rate == 0.5
