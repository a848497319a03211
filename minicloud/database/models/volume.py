from sqlalchemy import Column, Integer, String

from ..database import Base
from .base import OwnedResourceMixin


class Volume(OwnedResourceMixin, Base):
    """
    블록 스토리지 볼륨. instance_id 가 설정되어 있으면 상태는 IN_USE 이고 mount_path 가 비어있지 않습니다.
    """
    __tablename__ = "volumes"

    name = Column(String, nullable=False, index=True)
    size_gb = Column(Integer, nullable=False)
    backend_path = Column(String, nullable=False, default="")
    status = Column(String, nullable=False, default="AVAILABLE")
    instance_id = Column(String(36), nullable=True, index=True)
    mount_path = Column(String, nullable=False, default="")


class Snapshot(OwnedResourceMixin, Base):
    """볼륨의 특정 시점 복사본. 생성은 백그라운드에서 진행되며 CREATING → AVAILABLE/ERROR 로 전이합니다."""
    __tablename__ = "snapshots"

    name = Column(String, nullable=False)
    volume_id = Column(String(36), nullable=False, index=True)
    volume_name = Column(String, nullable=False)
    size_gb = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="CREATING")
    status_reason = Column(String, nullable=False, default="")
