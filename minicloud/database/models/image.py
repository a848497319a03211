from sqlalchemy import Column, Integer, String
from ..database import Base

class Image(Base):
    """
    컨테이너를 생성할 때 사용되는 루트 파일시스템 이미지의 정보를 담습니다.
    rootfs_path 는 LXC 도메인의 루트 디렉터리로 마운트됩니다.
    """
    __tablename__ = "images"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False, index=True)
    rootfs_path = Column(String, nullable=False)
    default_cmd = Column(String, nullable=False, default="/sbin/init")


class InstanceType(Base):
    """인스턴스 타입 카탈로그 (vCPU 수, 메모리 크기)."""
    __tablename__ = "instance_types"
    name = Column(String, primary_key=True)
    vcpus = Column(Integer, nullable=False)
    memory_mb = Column(Integer, nullable=False)
