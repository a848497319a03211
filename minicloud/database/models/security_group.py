from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Table
from sqlalchemy.orm import relationship

from ..database import Base
from .base import OwnedResourceMixin, new_id, utcnow

# 인스턴스 ↔ 보안 그룹 다대다 연관 테이블
instance_security_groups = Table(
    "instance_security_groups",
    Base.metadata,
    Column("instance_id", String(36), primary_key=True),
    Column("group_id", String(36), ForeignKey("security_groups.id"), primary_key=True),
)


class SecurityGroup(OwnedResourceMixin, Base):
    """
    인스턴스의 가상 방화벽. 규칙(SecurityRule)은 VPC 브리지의 플로우 엔트리로 컴파일됩니다.
    생성 시 ARP 허용 규칙 두 개(ingress, egress)가 항상 포함됩니다.
    """
    __tablename__ = "security_groups"

    vpc_id = Column(String(36), ForeignKey("vpcs.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=False, default="")

    rules = relationship(
        "SecurityRule",
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="SecurityRule.position",
    )


class SecurityRule(Base):
    __tablename__ = "security_rules"
    id = Column(String(36), primary_key=True, default=new_id)
    group_id = Column(String(36), ForeignKey("security_groups.id"), nullable=False, index=True)
    protocol = Column(String, nullable=False)
    direction = Column(String, nullable=False)
    cidr = Column(String, nullable=False, default="")
    port_min = Column(Integer, nullable=False, default=0)
    port_max = Column(Integer, nullable=False, default=0)
    priority = Column(Integer, nullable=False, default=100)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    group = relationship("SecurityGroup", back_populates="rules")
