# minicloud/services/audit_service.py
import json
import logging
from typing import Optional

from minicloud.database import models
from minicloud.repositories.interfaces import IAuditRepository, IEventRepository
from minicloud.services.context import RequestContext

logger = logging.getLogger(__name__)


class AuditService:
    def __init__(self, audit_repo: IAuditRepository):
        self.audit_repo = audit_repo

    def log(self, ctx: RequestContext, action: str, resource_type: str, resource_id: str,
            metadata: Optional[dict] = None) -> models.AuditLog:
        """누가(ctx.user_id) 어떤 리소스에 어떤 작업을 했는지 기록합니다."""
        entry = models.AuditLog(
            tenant_id=ctx.tenant_id,
            user_id=ctx.user_id,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id),
            details=json.dumps(metadata or {}, default=str),
        )
        return self.audit_repo.create(entry)

    def list_logs(self, ctx: RequestContext, limit: int = 100):
        return self.audit_repo.list_by_tenant(ctx.tenant_id, limit)


class EventService:
    def __init__(self, event_repo: IEventRepository):
        self.event_repo = event_repo

    def record_event(self, ctx: RequestContext, action: str, resource_id: str, resource_type: str,
                     metadata: Optional[dict] = None) -> models.Event:
        """리소스 상태 변화 이벤트를 기록합니다."""
        event = models.Event(
            tenant_id=ctx.tenant_id,
            user_id=ctx.user_id,
            action=action,
            resource_id=str(resource_id),
            resource_type=resource_type,
            details=json.dumps(metadata or {}, default=str),
        )
        return self.event_repo.create(event)

    def list_events(self, ctx: RequestContext, limit: int = 100):
        return self.event_repo.list_by_tenant(ctx.tenant_id, limit)


def safe_audit(audit: Optional[AuditService], ctx: RequestContext, action: str, resource_type: str,
               resource_id: str, metadata: Optional[dict] = None):
    """감사 로그 기록 실패가 주 작업을 실패시키지 않도록 로그만 남기고 삼킵니다."""
    if audit is None:
        return
    try:
        audit.log(ctx, action, resource_type, resource_id, metadata)
    except Exception as e:
        logger.warning("Audit log '%s' for %s %s failed: %s", action, resource_type, resource_id, e)


def safe_event(events: Optional[EventService], ctx: RequestContext, action: str, resource_id: str,
               resource_type: str, metadata: Optional[dict] = None):
    """이벤트 기록 실패는 로그만 남기고 삼킵니다."""
    if events is None:
        return
    try:
        events.record_event(ctx, action, resource_id, resource_type, metadata)
    except Exception as e:
        logger.warning("Event '%s' for %s %s failed: %s", action, resource_type, resource_id, e)
