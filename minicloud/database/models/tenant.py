from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from ..database import Base
from .base import new_id, utcnow

# 쿼터 행은 테넌트 행 없이도 존재할 수 있습니다. (사용량은 tenant_id 만으로 누적)
_QUOTA_JOIN = "Tenant.id == foreign(TenantQuota.tenant_id)"


class Tenant(Base):
    """
    하나의 격리된 테넌트(작업 공간)를 나타냅니다.
    모든 VPC, 인스턴스, 볼륨 등은 tenant_id 로 이 모델에 종속됩니다.
    """
    __tablename__ = "tenants"
    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False, index=True)
    owner_id = Column(String(36), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    quota = relationship("TenantQuota", primaryjoin=_QUOTA_JOIN, back_populates="tenant", uselist=False,
                         cascade="all, delete-orphan")


class TenantQuota(Base):
    """테넌트 단위 리소스 한도(max_*)와 현재 사용량(used_*) 카운터."""
    __tablename__ = "tenant_quotas"
    tenant_id = Column(String(36), primary_key=True)
    max_instances = Column(Integer, nullable=False, default=0)
    used_instances = Column(Integer, nullable=False, default=0)
    max_vpcs = Column(Integer, nullable=False, default=0)
    used_vpcs = Column(Integer, nullable=False, default=0)
    max_storage_gb = Column(Integer, nullable=False, default=0)
    used_storage_gb = Column(Integer, nullable=False, default=0)
    max_memory_gb = Column(Integer, nullable=False, default=0)
    used_memory_gb = Column(Integer, nullable=False, default=0)
    max_vcpus = Column(Integer, nullable=False, default=0)
    used_vcpus = Column(Integer, nullable=False, default=0)

    tenant = relationship("Tenant", primaryjoin=_QUOTA_JOIN, back_populates="quota")
