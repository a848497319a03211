from sqlalchemy import Boolean, Column, Integer, String, Text

from ..database import Base
from .base import OwnedResourceMixin


class Cluster(OwnedResourceMixin, Base):
    """
    관리형 쿠버네티스 클러스터. ssh_key 와 kubeconfig 는 SecretService 로 암호화된 값입니다.
    상태: PENDING, PROVISIONING, RUNNING, UPGRADING, DELETING, FAILED
    """
    __tablename__ = "clusters"

    name = Column(String, nullable=False)
    vpc_id = Column(String(36), nullable=False, index=True)
    version = Column(String, nullable=False, default="v1.29.0")
    worker_count = Column(Integer, nullable=False, default=2)
    ha_enabled = Column(Boolean, nullable=False, default=False)
    status = Column(String, nullable=False, default="PENDING")
    status_reason = Column(String, nullable=False, default="")
    ssh_key = Column(Text, nullable=False, default="")
    kubeconfig = Column(Text, nullable=False, default="")
