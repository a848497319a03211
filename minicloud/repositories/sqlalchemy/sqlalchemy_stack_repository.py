from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from minicloud.database import models
from minicloud.repositories.interfaces import IStackRepository
from .base import commit_or_conflict, commit_or_rollback

class SqlalchemyStackRepository(IStackRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, stack: models.Stack) -> models.Stack:
        self.db.add(stack)
        commit_or_conflict(self.db, f"Stack '{stack.name}' already exists in this tenant.")
        self.db.refresh(stack)
        return stack

    def find_by_id(self, tenant_id: str, stack_id: str) -> Optional[models.Stack]:
        return self.db.query(models.Stack).filter(
            models.Stack.id == stack_id,
            models.Stack.tenant_id == tenant_id
        ).first()

    def find_by_name(self, tenant_id: str, name: str) -> Optional[models.Stack]:
        return self.db.query(models.Stack).filter(
            models.Stack.name == name,
            models.Stack.tenant_id == tenant_id
        ).first()

    def list_by_tenant(self, tenant_id: str) -> List[models.Stack]:
        return self.db.query(models.Stack).filter(models.Stack.tenant_id == tenant_id).order_by(models.Stack.created_at.desc()).all()

    def update_status(self, stack: models.Stack, status: str, reason: str = "") -> models.Stack:
        stack.status = status
        stack.status_reason = reason
        commit_or_rollback(self.db)
        self.db.refresh(stack)
        return stack

    def add_resource(self, stack: models.Stack, resource: models.StackResource) -> models.StackResource:
        last = self.db.query(func.max(models.StackResource.position)).filter(
            models.StackResource.stack_id == stack.id
        ).scalar()
        resource.stack_id = stack.id
        resource.position = 0 if last is None else last + 1
        self.db.add(resource)
        commit_or_rollback(self.db)
        self.db.refresh(resource)
        return resource

    def list_resources(self, stack_id: str) -> List[models.StackResource]:
        return self.db.query(models.StackResource).filter(
            models.StackResource.stack_id == stack_id
        ).order_by(models.StackResource.position.asc()).all()

    def delete_resources(self, stack_id: str) -> int:
        deleted = self.db.query(models.StackResource).filter(
            models.StackResource.stack_id == stack_id
        ).delete(synchronize_session="fetch")
        commit_or_rollback(self.db)
        return deleted

    def delete(self, stack: models.Stack) -> bool:
        if stack:
            self.db.delete(stack)
            commit_or_rollback(self.db)
            return True
        return False
