# minicloud/services/log_service.py
import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Mapping, Optional, Union

from minicloud.database import models
from minicloud.database.models.base import utcnow
from minicloud.repositories.interfaces import ILogRepository
from minicloud.services.context import RequestContext
from minicloud.services.exceptions import InternalError, InvalidInputError

logger = logging.getLogger(__name__)

LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")
MAX_SEARCH_LIMIT = 1000

LogInput = Union[models.LogEntry, Mapping]


class LogService:
    def __init__(self, log_repo: ILogRepository):
        self.log_repo = log_repo

    def ingest_logs(self, ctx: RequestContext, entries: Iterable[LogInput]) -> int:
        """
        리소스 로그를 한 번에 저장하고 저장 건수를 반환합니다.

        엔트리는 LogEntry 객체나 resource_id/message 등을 담은 dict 모두 받습니다.
        테넌트는 항상 ctx 기준으로 덮어쓰고, trace_id 가 비어 있으면 ctx.trace_id 를 채웁니다.

        Raises:
            InvalidInputError: resource_id 나 message 가 비었거나 level 이 알 수 없는 값일 때.
        """
        ctx.check_cancelled()
        rows = [self._to_entry(ctx, entry) for entry in entries or []]
        if not rows:
            return 0
        try:
            return self.log_repo.create_many(rows)
        except Exception as e:
            raise InternalError("failed to store log entries", cause=e) from e

    def search_logs(self, ctx: RequestContext, resource_id: Optional[str] = None, level: Optional[str] = None,
                    limit: int = 100) -> List[models.LogEntry]:
        if level:
            level = self._normalize_level(level)
        if limit < 1:
            raise InvalidInputError("limit must be positive")
        return self.log_repo.search(ctx.tenant_id, resource_id or None, level or None, min(limit, MAX_SEARCH_LIMIT))

    def run_retention(self, ctx: RequestContext, days: int) -> int:
        """days 일보다 오래된 로그를 모두 삭제하고 삭제 건수를 반환합니다."""
        if days is None or days <= 0:
            raise InvalidInputError(f"retention days must be positive (got {days})")
        cutoff: datetime = utcnow() - timedelta(days=days)
        deleted = self.log_repo.delete_older_than(cutoff)
        logger.info("Log retention (%d days) removed %d entries", days, deleted)
        return deleted

    def _to_entry(self, ctx: RequestContext, entry: LogInput) -> models.LogEntry:
        if isinstance(entry, models.LogEntry):
            row = entry
        else:
            row = models.LogEntry(
                resource_id=entry.get("resource_id", ""),
                resource_type=entry.get("resource_type", ""),
                level=entry.get("level", "INFO"),
                message=entry.get("message", ""),
                trace_id=entry.get("trace_id", ""),
                timestamp=entry.get("timestamp") or utcnow(),
            )
        if not row.resource_id:
            raise InvalidInputError("log entry resource_id is required")
        if not row.message:
            raise InvalidInputError("log entry message is required")
        row.tenant_id = ctx.tenant_id
        row.level = self._normalize_level(row.level or "INFO")
        row.resource_type = row.resource_type or ""
        if not row.trace_id:
            row.trace_id = ctx.trace_id
        if row.timestamp is None:
            row.timestamp = utcnow()
        return row

    @staticmethod
    def _normalize_level(level: str) -> str:
        normalized = level.upper()
        if normalized == "WARNING":
            normalized = "WARN"
        if normalized not in LEVELS:
            raise InvalidInputError(f"unknown log level '{level}'")
        return normalized
