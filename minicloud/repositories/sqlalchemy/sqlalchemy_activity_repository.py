from typing import List, Optional
from sqlalchemy.orm import Session
from minicloud.database import models
from minicloud.repositories.interfaces import IAuditRepository, IEventRepository, ITaskRepository

class SqlalchemyAuditRepository(IAuditRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, entry: models.AuditLog) -> models.AuditLog:
        self.db.add(entry)
        self.db.commit()
        return entry

    def list_by_tenant(self, tenant_id: str, limit: int = 100) -> List[models.AuditLog]:
        return self.db.query(models.AuditLog).filter(models.AuditLog.tenant_id == tenant_id).order_by(models.AuditLog.id.desc()).limit(limit).all()


class SqlalchemyEventRepository(IEventRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, event: models.Event) -> models.Event:
        self.db.add(event)
        self.db.commit()
        return event

    def list_by_tenant(self, tenant_id: str, limit: int = 100) -> List[models.Event]:
        return self.db.query(models.Event).filter(models.Event.tenant_id == tenant_id).order_by(models.Event.id.desc()).limit(limit).all()


class SqlalchemyTaskRepository(ITaskRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def push(self, message: models.TaskMessage) -> models.TaskMessage:
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)
        return message

    def pop(self, queue: str) -> Optional[models.TaskMessage]:
        message = self.db.query(models.TaskMessage).filter(
            models.TaskMessage.queue == queue
        ).order_by(models.TaskMessage.id.asc()).with_for_update(skip_locked=True).first()
        if not message:
            return None
        # 커밋 후에는 삭제된 행에 접근할 수 없으므로 값을 먼저 복사해 둡니다.
        popped = models.TaskMessage(id=message.id, queue=message.queue, payload=message.payload, created_at=message.created_at)
        self.db.delete(message)
        self.db.commit()
        return popped
