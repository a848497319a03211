from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from ..database import Base
from .base import OwnedResourceMixin, new_id


class LoadBalancer(OwnedResourceMixin, Base):
    """
    로드밸런서의 원하는 상태(desired state). LB 워커가 프록시 배포와 타겟 헬스를 수렴시킵니다.
    """
    __tablename__ = "load_balancers"

    name = Column(String, nullable=False)
    vpc_id = Column(String(36), nullable=False, index=True)
    port = Column(Integer, nullable=False)
    algorithm = Column(String, nullable=False, default="round-robin")
    status = Column(String, nullable=False, default="CREATING")
    url = Column(String, nullable=False, default="")
    idempotency_key = Column(String, nullable=True, unique=True)
    version = Column(Integer, nullable=False, default=1)

    targets = relationship("LBTarget", back_populates="load_balancer", cascade="all, delete-orphan")


class LBTarget(Base):
    __tablename__ = "lb_targets"
    id = Column(String(36), primary_key=True, default=new_id)
    lb_id = Column(String(36), ForeignKey("load_balancers.id"), nullable=False, index=True)
    instance_id = Column(String(36), nullable=False)
    port = Column(Integer, nullable=False)
    weight = Column(Integer, nullable=False, default=1)
    health = Column(String, nullable=False, default="unknown")

    load_balancer = relationship("LoadBalancer", back_populates="targets")
