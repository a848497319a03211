from abc import ABC, abstractmethod
from typing import Optional
from minicloud.database import models

class ITenantRepository(ABC):
    @abstractmethod
    def create(self, tenant: models.Tenant, quota: models.TenantQuota) -> models.Tenant:
        """새 테넌트와 쿼터 행을 함께 생성합니다."""
        pass

    @abstractmethod
    def find_by_id(self, tenant_id: str) -> Optional[models.Tenant]:
        """ID로 테넌트를 조회합니다."""
        pass

    @abstractmethod
    def find_by_slug(self, slug: str) -> Optional[models.Tenant]:
        """슬러그로 테넌트를 조회합니다."""
        pass

    @abstractmethod
    def get_quota(self, tenant_id: str) -> Optional[models.TenantQuota]:
        """테넌트의 쿼터 행을 조회합니다. 없으면 None 을 반환합니다."""
        pass

    @abstractmethod
    def save_quota(self, quota: models.TenantQuota) -> models.TenantQuota:
        """쿼터 행을 생성하거나 변경 사항을 저장합니다."""
        pass
