from sqlalchemy import Column, ForeignKey, String
from sqlalchemy.orm import relationship

from ..database import Base
from .base import OwnedResourceMixin


class Subnet(OwnedResourceMixin, Base):
    """VPC CIDR 의 일부 구간. 게이트웨이 IP는 서브넷의 첫 번째 호스트 주소입니다."""
    __tablename__ = "subnets"

    vpc_id = Column(String(36), ForeignKey("vpcs.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    cidr_block = Column(String, nullable=False)
    gateway_ip = Column(String, nullable=False)
    availability_zone = Column(String, nullable=False, default="")
    status = Column(String, nullable=False, default="AVAILABLE")

    vpc = relationship("VPC", back_populates="subnets")
