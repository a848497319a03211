from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from minicloud.database import models
from minicloud.repositories.interfaces import IInstanceRepository
from minicloud.services.exceptions import ConflictError
from .base import commit_or_conflict

class SqlalchemyInstanceRepository(IInstanceRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, instance: models.Instance) -> models.Instance:
        self.db.add(instance)
        commit_or_conflict(self.db, f"Instance '{instance.name}' conflicts with an existing instance (name or IP).")
        self.db.refresh(instance)
        return instance

    def find_by_id(self, tenant_id: str, instance_id: str) -> Optional[models.Instance]:
        return self.db.query(models.Instance).filter(
            models.Instance.id == instance_id,
            models.Instance.tenant_id == tenant_id
        ).first()

    def find_by_name(self, tenant_id: str, name: str) -> Optional[models.Instance]:
        return self.db.query(models.Instance).filter(
            models.Instance.name == name,
            models.Instance.tenant_id == tenant_id
        ).first()

    def list_by_tenant(self, tenant_id: str) -> List[models.Instance]:
        return self.db.query(models.Instance).filter(models.Instance.tenant_id == tenant_id).order_by(models.Instance.created_at.desc()).all()

    def list_ips_by_subnet(self, subnet_id: str) -> List[str]:
        rows = self.db.query(models.Instance.private_ip).filter(
            models.Instance.subnet_id == subnet_id,
            models.Instance.private_ip.isnot(None)
        ).all()
        return [row[0] for row in rows]

    def count_by_vpc(self, vpc_id: str) -> int:
        return self.db.query(models.Instance).filter(models.Instance.vpc_id == vpc_id).count()

    def count_by_subnet(self, subnet_id: str) -> int:
        return self.db.query(models.Instance).filter(models.Instance.subnet_id == subnet_id).count()

    def update(self, instance: models.Instance) -> models.Instance:
        self.db.add(instance)
        try:
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            raise ConflictError(f"Instance '{instance.id}' was modified concurrently.", cause=e) from e
        self.db.refresh(instance)
        return instance

    def delete(self, instance: models.Instance) -> bool:
        if instance:
            self.db.delete(instance)
            self.db.commit()
            return True
        return False
