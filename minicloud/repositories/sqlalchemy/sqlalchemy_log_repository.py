from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from minicloud.database import models
from minicloud.repositories.interfaces import ILogRepository

class SqlalchemyLogRepository(ILogRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create_many(self, entries: List[models.LogEntry]) -> int:
        self.db.add_all(entries)
        self.db.commit()
        return len(entries)

    def search(self, tenant_id: str, resource_id: Optional[str] = None,
               level: Optional[str] = None, limit: int = 100) -> List[models.LogEntry]:
        query = self.db.query(models.LogEntry).filter(models.LogEntry.tenant_id == tenant_id)
        if resource_id:
            query = query.filter(models.LogEntry.resource_id == resource_id)
        if level:
            query = query.filter(models.LogEntry.level == level)
        return query.order_by(models.LogEntry.timestamp.desc(), models.LogEntry.id.desc()).limit(limit).all()

    def delete_older_than(self, cutoff: datetime) -> int:
        deleted = self.db.query(models.LogEntry).filter(
            models.LogEntry.timestamp < cutoff
        ).delete(synchronize_session="fetch")
        self.db.commit()
        return deleted
