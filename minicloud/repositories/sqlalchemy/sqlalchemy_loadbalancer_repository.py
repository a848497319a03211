from typing import List, Optional
from sqlalchemy.orm import Session
from minicloud.database import models
from minicloud.repositories.interfaces import ILoadBalancerRepository
from .base import commit_or_conflict

class SqlalchemyLoadBalancerRepository(ILoadBalancerRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, lb: models.LoadBalancer) -> models.LoadBalancer:
        self.db.add(lb)
        commit_or_conflict(self.db, f"Load balancer idempotency key '{lb.idempotency_key}' already used.")
        self.db.refresh(lb)
        return lb

    def find_by_id(self, tenant_id: str, lb_id: str) -> Optional[models.LoadBalancer]:
        return self.db.query(models.LoadBalancer).filter(
            models.LoadBalancer.id == lb_id,
            models.LoadBalancer.tenant_id == tenant_id
        ).first()

    def find_by_idempotency_key(self, tenant_id: str, key: str) -> Optional[models.LoadBalancer]:
        return self.db.query(models.LoadBalancer).filter(
            models.LoadBalancer.idempotency_key == key,
            models.LoadBalancer.tenant_id == tenant_id
        ).first()

    def list_by_tenant(self, tenant_id: str) -> List[models.LoadBalancer]:
        return self.db.query(models.LoadBalancer).filter(models.LoadBalancer.tenant_id == tenant_id).order_by(models.LoadBalancer.created_at.desc()).all()

    def list_by_status(self, status: str) -> List[models.LoadBalancer]:
        return self.db.query(models.LoadBalancer).filter(models.LoadBalancer.status == status).order_by(models.LoadBalancer.created_at.asc()).all()

    def update(self, lb: models.LoadBalancer) -> models.LoadBalancer:
        lb.version = (lb.version or 0) + 1
        self.db.add(lb)
        self.db.commit()
        self.db.refresh(lb)
        return lb

    def delete(self, lb: models.LoadBalancer) -> bool:
        if lb:
            self.db.delete(lb)
            self.db.commit()
            return True
        return False

    def add_target(self, target: models.LBTarget) -> models.LBTarget:
        self.db.add(target)
        self.db.commit()
        self.db.refresh(target)
        return target

    def remove_target(self, lb_id: str, instance_id: str) -> bool:
        deleted = self.db.query(models.LBTarget).filter(
            models.LBTarget.lb_id == lb_id,
            models.LBTarget.instance_id == instance_id
        ).delete(synchronize_session="fetch")
        self.db.commit()
        return deleted > 0

    def list_targets(self, lb_id: str) -> List[models.LBTarget]:
        return self.db.query(models.LBTarget).filter(models.LBTarget.lb_id == lb_id).all()

    def update_target_health(self, target: models.LBTarget, health: str) -> models.LBTarget:
        target.health = health
        self.db.commit()
        self.db.refresh(target)
        return target
