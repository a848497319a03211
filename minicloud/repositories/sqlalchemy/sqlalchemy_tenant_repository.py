from typing import Optional
from sqlalchemy.orm import Session
from minicloud.database import models
from minicloud.repositories.interfaces import ITenantRepository
from .base import commit_or_conflict

class SqlalchemyTenantRepository(ITenantRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, tenant: models.Tenant, quota: models.TenantQuota) -> models.Tenant:
        tenant.quota = quota
        self.db.add(tenant)
        commit_or_conflict(self.db, f"Tenant slug '{tenant.slug}' already exists.")
        self.db.refresh(tenant)
        return tenant

    def find_by_id(self, tenant_id: str) -> Optional[models.Tenant]:
        return self.db.get(models.Tenant, tenant_id)

    def find_by_slug(self, slug: str) -> Optional[models.Tenant]:
        return self.db.query(models.Tenant).filter(models.Tenant.slug == slug).first()

    def get_quota(self, tenant_id: str) -> Optional[models.TenantQuota]:
        return self.db.get(models.TenantQuota, tenant_id)

    def save_quota(self, quota: models.TenantQuota) -> models.TenantQuota:
        self.db.add(quota)
        self.db.commit()
        self.db.refresh(quota)
        return quota
