# ============================================================================
# STATUS CATALOG SERVICE TESTS
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Tests - Group status catalog rules
# PURPOSE: Verify StatusCatalogService with a mocked repository
# CREATED: 18 OCT 2026
# ============================================================================
"""
StatusCatalogService Tests

Run with:
    pytest tests/test_status_service.py -v
"""

import asyncio
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.config import StatusDefaults
from core.models import GroupStatusCatalog
from engine import EngineError, ErrorCode
from services.status_service import StatusCatalogService


# ============================================================================
# HELPERS
# ============================================================================

class _FakeConnection:

    @asynccontextmanager
    async def transaction(self):
        yield self


def _build_service(catalog=None):
    conn = _FakeConnection()
    pool = MagicMock()

    @asynccontextmanager
    async def connection():
        yield conn

    pool.connection = connection
    svc = StatusCatalogService(pool)
    svc.status_repo = AsyncMock()
    svc.status_repo.get_catalog = AsyncMock(
        return_value=catalog or GroupStatusCatalog.from_tuples(
            "grp-1", list(StatusDefaults().catalog)
        )
    )
    return svc, conn


# ============================================================================
# TESTS
# ============================================================================

class TestAddStatus:

    def test_appends_after_last(self):
        svc, conn = _build_service()

        status = asyncio.run(svc.add_status("grp-1", "blocked", "Blocked", color="#ef4444"))

        assert status.sort_order == 3
        assert status.color == "#ef4444"
        assert status.is_done is False
        svc.status_repo.create.assert_awaited_once_with(status, conn=conn)

    def test_default_color(self):
        svc, _ = _build_service(catalog=GroupStatusCatalog(group_id="grp-1"))

        status = asyncio.run(svc.add_status("grp-1", "todo", "To do"))

        assert status.sort_order == 0
        assert status.color == "#94a3b8"

    def test_duplicate_key(self):
        svc, _ = _build_service()
        with pytest.raises(ValueError, match="already exists"):
            asyncio.run(svc.add_status("grp-1", "completed", "Done again"))
        svc.status_repo.create.assert_not_awaited()


class TestRemoveStatus:

    def test_in_use_rejected(self):
        svc, _ = _build_service()
        svc.status_repo.count_tasks_using = AsyncMock(return_value=4)

        with pytest.raises(EngineError) as exc_info:
            asyncio.run(svc.remove_status("grp-1", "in_progress"))

        assert exc_info.value.code == ErrorCode.STATUS_IN_USE
        svc.status_repo.delete.assert_not_awaited()

    def test_unused_removed(self):
        svc, conn = _build_service()
        svc.status_repo.count_tasks_using = AsyncMock(return_value=0)

        asyncio.run(svc.remove_status("grp-1", "in_progress"))

        svc.status_repo.delete.assert_awaited_once_with("grp-1", "in_progress", conn=conn)

    def test_unknown_key(self):
        svc, _ = _build_service()
        with pytest.raises(KeyError):
            asyncio.run(svc.remove_status("grp-1", "nope"))


class TestSeedDefaults:

    def test_seeds_default_catalog(self):
        svc, conn = _build_service()

        catalog = asyncio.run(svc.seed_defaults("grp-1"))

        seeded = svc.status_repo.create_many.call_args.args[0]
        assert [s.key for s in seeded] == ["not_started", "in_progress", "completed"]
        assert all(s.group_id == "grp-1" for s in seeded)
        assert catalog.initial_status() == "not_started"
        assert catalog.done_keys() == ["completed"]
