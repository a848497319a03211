from typing import List, Optional
from sqlalchemy.orm import Session
from minicloud.database import models
from minicloud.repositories.interfaces import ISecretRepository
from .base import commit_or_conflict

class SqlalchemySecretRepository(ISecretRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, secret: models.Secret) -> models.Secret:
        self.db.add(secret)
        commit_or_conflict(self.db, f"Secret '{secret.name}' already exists.")
        self.db.refresh(secret)
        return secret

    def find_by_id(self, user_id: str, secret_id: str) -> Optional[models.Secret]:
        return self.db.query(models.Secret).filter(
            models.Secret.id == secret_id,
            models.Secret.user_id == user_id
        ).first()

    def find_by_name(self, user_id: str, name: str) -> Optional[models.Secret]:
        return self.db.query(models.Secret).filter(
            models.Secret.name == name,
            models.Secret.user_id == user_id
        ).first()

    def list_by_user(self, user_id: str) -> List[models.Secret]:
        return self.db.query(models.Secret).filter(models.Secret.user_id == user_id).order_by(models.Secret.name.asc()).all()

    def update(self, secret: models.Secret) -> models.Secret:
        self.db.add(secret)
        self.db.commit()
        self.db.refresh(secret)
        return secret

    def delete(self, secret: models.Secret) -> bool:
        if secret:
            self.db.delete(secret)
            self.db.commit()
            return True
        return False
