from sqlalchemy import Column, Integer, String, UniqueConstraint

from ..database import Base
from .base import OwnedResourceMixin


class Instance(OwnedResourceMixin, Base):
    """
    사용자가 생성하고 관리하는 컴퓨트 인스턴스(컨테이너)를 나타냅니다.
    version 은 낙관적 동시성 제어를 위한 단조 증가 카운터입니다.
    같은 서브넷 안에서 private_ip 는 유일해야 합니다.
    """
    __tablename__ = "instances"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_instance_tenant_name"),
        UniqueConstraint("subnet_id", "private_ip", name="uq_instance_subnet_ip"),
    )

    name = Column(String, nullable=False)
    image = Column(String, nullable=False)
    instance_type = Column(String, nullable=False)
    vpc_id = Column(String(36), nullable=True, index=True)
    subnet_id = Column(String(36), nullable=True, index=True)
    private_ip = Column(String, nullable=True)
    ovs_port = Column(String, nullable=True)
    ports = Column(String, nullable=False, default="")
    container_id = Column(String, nullable=True)
    status = Column(String, nullable=False, default="PENDING")
    version = Column(Integer, nullable=False, default=1)

    # flush 시 UPDATE ... WHERE id=? AND version=? 로 갱신하고 version 을 1 증가시킵니다.
    __mapper_args__ = {"version_id_col": version}
