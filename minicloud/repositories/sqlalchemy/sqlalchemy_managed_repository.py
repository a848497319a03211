from typing import List, Optional
from sqlalchemy.orm import Session
from minicloud.database import models
from minicloud.repositories.interfaces import ICacheRepository, IManagedDatabaseRepository

class SqlalchemyManagedDatabaseRepository(IManagedDatabaseRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, database: models.ManagedDatabase) -> models.ManagedDatabase:
        self.db.add(database)
        self.db.commit()
        self.db.refresh(database)
        return database

    def find_by_id(self, tenant_id: str, database_id: str) -> Optional[models.ManagedDatabase]:
        return self.db.query(models.ManagedDatabase).filter(
            models.ManagedDatabase.id == database_id,
            models.ManagedDatabase.tenant_id == tenant_id
        ).first()

    def list_by_tenant(self, tenant_id: str) -> List[models.ManagedDatabase]:
        return self.db.query(models.ManagedDatabase).filter(models.ManagedDatabase.tenant_id == tenant_id).order_by(models.ManagedDatabase.created_at.desc()).all()

    def delete(self, database: models.ManagedDatabase) -> bool:
        if database:
            self.db.delete(database)
            self.db.commit()
            return True
        return False


class SqlalchemyCacheRepository(ICacheRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, cache: models.Cache) -> models.Cache:
        self.db.add(cache)
        self.db.commit()
        self.db.refresh(cache)
        return cache

    def find_by_id(self, tenant_id: str, cache_id: str) -> Optional[models.Cache]:
        return self.db.query(models.Cache).filter(
            models.Cache.id == cache_id,
            models.Cache.tenant_id == tenant_id
        ).first()

    def list_by_tenant(self, tenant_id: str) -> List[models.Cache]:
        return self.db.query(models.Cache).filter(models.Cache.tenant_id == tenant_id).order_by(models.Cache.created_at.desc()).all()

    def delete(self, cache: models.Cache) -> bool:
        if cache:
            self.db.delete(cache)
            self.db.commit()
            return True
        return False
