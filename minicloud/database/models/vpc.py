from sqlalchemy import Column, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import Base
from .base import OwnedResourceMixin


class VPC(OwnedResourceMixin, Base):
    """
    테넌트가 소유하는 L2 격리 경계. 호스트의 브리지 하나(network_id)로 구현됩니다.
    AWS의 'VPC' 또는 OpenStack의 'Network'에 해당합니다.
    """
    __tablename__ = "vpcs"
    __table_args__ = (UniqueConstraint("tenant_id", "name", name="uq_vpc_tenant_name"),)

    name = Column(String, nullable=False)
    cidr_block = Column(String, nullable=False)
    network_id = Column(String, nullable=False, unique=True)
    vxlan_id = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default="CREATING")

    subnets = relationship("Subnet", back_populates="vpc")
