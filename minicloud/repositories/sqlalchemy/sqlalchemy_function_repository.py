from typing import List, Optional
from sqlalchemy.orm import Session
from minicloud.database import models
from minicloud.repositories.interfaces import IFunctionRepository
from .base import commit_or_conflict

class SqlalchemyFunctionRepository(IFunctionRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, function: models.Function) -> models.Function:
        self.db.add(function)
        commit_or_conflict(self.db, f"Function '{function.name}' already exists in this tenant.")
        self.db.refresh(function)
        return function

    def find_by_id(self, tenant_id: str, function_id: str) -> Optional[models.Function]:
        return self.db.query(models.Function).filter(
            models.Function.id == function_id,
            models.Function.tenant_id == tenant_id
        ).first()

    def list_by_tenant(self, tenant_id: str) -> List[models.Function]:
        return self.db.query(models.Function).filter(models.Function.tenant_id == tenant_id).order_by(models.Function.created_at.desc()).all()

    def delete(self, function: models.Function) -> bool:
        if function:
            self.db.query(models.Invocation).filter(models.Invocation.function_id == function.id).delete(synchronize_session="fetch")
            self.db.delete(function)
            self.db.commit()
            return True
        return False

    def create_invocation(self, invocation: models.Invocation) -> models.Invocation:
        self.db.add(invocation)
        self.db.commit()
        self.db.refresh(invocation)
        return invocation

    def update_invocation(self, invocation: models.Invocation) -> models.Invocation:
        self.db.add(invocation)
        self.db.commit()
        self.db.refresh(invocation)
        return invocation

    def list_invocations(self, function_id: str, limit: int = 100) -> List[models.Invocation]:
        return self.db.query(models.Invocation).filter(
            models.Invocation.function_id == function_id
        ).order_by(models.Invocation.started_at.desc()).limit(limit).all()
