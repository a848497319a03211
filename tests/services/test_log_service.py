# tests/services/test_log_service.py
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from minicloud.database import models
from minicloud.database.models.base import utcnow
from minicloud.services.context import RequestContext
from minicloud.services.exceptions import InternalError, InvalidInputError
from minicloud.services.log_service import MAX_SEARCH_LIMIT, LogService


class TestIngest:
    def test_ingest_dicts_and_entries(self, services, ctx, other_ctx):
        """테넌트는 항상 요청 스코프 기준으로 저장되고, 다른 테넌트에서는 보이지 않아야 합니다."""
        # === Arrange ===
        entries = [
            {"resource_id": "inst-1", "resource_type": "INSTANCE", "level": "warning", "message": "disk 90%"},
            models.LogEntry(resource_id="inst-1", level="ERROR", message="oom", tenant_id="spoofed"),
        ]

        # === Act ===
        stored = services.logs.ingest_logs(ctx, entries)

        # === Assert ===
        assert stored == 2
        found = services.logs.search_logs(ctx, resource_id="inst-1")
        assert sorted(e.level for e in found) == ["ERROR", "WARN"]
        assert all(e.tenant_id == ctx.tenant_id for e in found)
        assert services.logs.search_logs(other_ctx) == []

    def test_trace_id_comes_from_context(self, services, ctx):
        traced = RequestContext(user_id=ctx.user_id, tenant_id=ctx.tenant_id, trace_id="trace-42")

        services.logs.ingest_logs(traced, [
            {"resource_id": "fn-1", "message": "start"},
            {"resource_id": "fn-1", "message": "explicit", "trace_id": "own"},
        ])

        by_message = {e.message: e.trace_id for e in services.logs.search_logs(ctx, resource_id="fn-1")}
        assert by_message == {"start": "trace-42", "explicit": "own"}

    @pytest.mark.parametrize("entry", [
        {"resource_id": "", "message": "m"},
        {"resource_id": "r", "message": ""},
        {"resource_id": "r", "message": "m", "level": "LOUD"},
    ])
    def test_invalid_entries(self, services, ctx, entry):
        with pytest.raises(InvalidInputError):
            services.logs.ingest_logs(ctx, [entry])

    def test_empty_batch(self, ctx):
        repo = MagicMock()
        assert LogService(repo).ingest_logs(ctx, []) == 0
        repo.create_many.assert_not_called()

    def test_storage_failure(self, ctx):
        repo = MagicMock()
        repo.create_many.side_effect = RuntimeError("disk full")

        with pytest.raises(InternalError):
            LogService(repo).ingest_logs(ctx, [{"resource_id": "r", "message": "m"}])


class TestSearch:
    def test_filter_by_level(self, services, ctx):
        services.logs.ingest_logs(ctx, [
            {"resource_id": "r", "level": "INFO", "message": "a"},
            {"resource_id": "r", "level": "ERROR", "message": "b"},
        ])

        assert [e.message for e in services.logs.search_logs(ctx, level="error")] == ["b"]

    def test_limit_is_capped(self, ctx):
        repo = MagicMock()
        LogService(repo).search_logs(ctx, limit=MAX_SEARCH_LIMIT * 10)
        repo.search.assert_called_once_with(ctx.tenant_id, None, None, MAX_SEARCH_LIMIT)

    def test_non_positive_limit(self, services, ctx):
        with pytest.raises(InvalidInputError):
            services.logs.search_logs(ctx, limit=0)


class TestRetention:
    def test_old_entries_are_removed(self, services, ctx):
        services.logs.ingest_logs(ctx, [
            {"resource_id": "r", "message": "old", "timestamp": utcnow() - timedelta(days=10)},
            {"resource_id": "r", "message": "new"},
        ])

        deleted = services.logs.run_retention(ctx, 7)

        assert deleted == 1
        assert [e.message for e in services.logs.search_logs(ctx)] == ["new"]

    @pytest.mark.parametrize("days", [0, -1])
    def test_non_positive_days(self, services, ctx, days):
        with pytest.raises(InvalidInputError):
            services.logs.run_retention(ctx, days)
