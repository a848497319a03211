# minicloud/services/tenant_service.py
import logging
import re
from typing import Dict, Optional

from minicloud import config
from minicloud.database import models
from minicloud.repositories.interfaces import ITenantRepository
from minicloud.services.context import RequestContext
from minicloud.services.exceptions import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    QuotaExceededError,
)

logger = logging.getLogger(__name__)

QUOTA_RESOURCES = ("instances", "vpcs", "storage_gb", "memory_gb", "vcpus")
SLUG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{1,62}$")


class TenantService:
    def __init__(self, tenant_repo: ITenantRepository):
        self.tenant_repo = tenant_repo

    def create_tenant(self, ctx: RequestContext, name: str, slug: str) -> models.Tenant:
        """
        새 테넌트를 만들고 기본 한도의 쿼터 행을 함께 생성합니다.

        Raises:
            InvalidInputError: 슬러그 형식이 틀렸을 때.
            ConflictError: 같은 슬러그의 테넌트가 이미 있을 때.
        """
        ctx.check_cancelled()
        if not name or not SLUG_PATTERN.match(slug or ""):
            raise InvalidInputError(f"invalid tenant name or slug '{slug}'")
        if self.tenant_repo.find_by_slug(slug):
            raise ConflictError(f"Tenant slug '{slug}' already exists.")

        quota = models.TenantQuota(**{f"max_{r}": limit for r, limit in config.DEFAULT_QUOTA.items()})
        tenant = models.Tenant(name=name, slug=slug, owner_id=ctx.user_id)
        tenant = self.tenant_repo.create(tenant, quota)
        logger.info("Tenant %s (%s) created by %s", tenant.id, slug, ctx.user_id)
        return tenant

    def get_tenant(self, ctx: RequestContext, tenant_id: str) -> models.Tenant:
        tenant = self.tenant_repo.find_by_id(tenant_id)
        if not tenant:
            raise NotFoundError(f"Tenant '{tenant_id}' not found.")
        return tenant

    def update_quota(self, ctx: RequestContext, tenant_id: str, limits: Dict[str, int]) -> models.TenantQuota:
        """지정한 리소스들의 최대 한도를 변경합니다."""
        self.get_tenant(ctx, tenant_id)
        quota = self.tenant_repo.get_quota(tenant_id) or QuotaService.default_quota(tenant_id)
        for resource, limit in limits.items():
            if resource not in QUOTA_RESOURCES:
                raise InvalidInputError(f"unknown quota resource '{resource}'")
            if limit < 0:
                raise InvalidInputError(f"quota limit for '{resource}' must be >= 0")
            setattr(quota, f"max_{resource}", limit)
        return self.tenant_repo.save_quota(quota)


class QuotaService:
    """
    테넌트 단위 리소스 카운터를 검사하고 갱신합니다.
    used + requested > limit 이면 QuotaExceededError 를 발생시킵니다.
    """

    def __init__(self, tenant_repo: ITenantRepository):
        self.tenant_repo = tenant_repo

    @staticmethod
    def default_quota(tenant_id: str) -> models.TenantQuota:
        values = {f"max_{r}": limit for r, limit in config.DEFAULT_QUOTA.items()}
        values.update({f"used_{r}": 0 for r in QUOTA_RESOURCES})
        return models.TenantQuota(tenant_id=tenant_id, **values)

    def _load(self, tenant_id: str) -> models.TenantQuota:
        return self.tenant_repo.get_quota(tenant_id) or self.default_quota(tenant_id)

    @staticmethod
    def _check_resource(resource: str):
        if resource not in QUOTA_RESOURCES:
            raise InvalidInputError(f"unknown quota resource '{resource}'")

    def check_quota(self, ctx: RequestContext, resource: str, requested: int):
        self._check_resource(resource)
        quota = self._load(ctx.tenant_id)
        used = getattr(quota, f"used_{resource}") or 0
        limit = getattr(quota, f"max_{resource}") or 0
        if used + requested > limit:
            raise QuotaExceededError(
                f"quota exceeded for {resource}: used {used} + requested {requested} > limit {limit}"
            )

    def consume(self, ctx: RequestContext, resource: str, amount: int):
        self._adjust(ctx.tenant_id, resource, amount)

    def release(self, ctx: RequestContext, resource: str, amount: int):
        self._adjust(ctx.tenant_id, resource, -amount)

    def _adjust(self, tenant_id: str, resource: str, delta: int):
        self._check_resource(resource)
        # 쿼터 행이 없는 테넌트는 기본 한도로 행을 만들어 그때부터 사용량을 누적합니다.
        quota = self.tenant_repo.get_quota(tenant_id) or self.default_quota(tenant_id)
        column = f"used_{resource}"
        setattr(quota, column, max(0, (getattr(quota, column) or 0) + delta))
        self.tenant_repo.save_quota(quota)
