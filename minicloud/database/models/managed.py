from sqlalchemy import Column, Integer, String

from ..database import Base
from .base import OwnedResourceMixin


class ManagedDatabase(OwnedResourceMixin, Base):
    """컨테이너로 실행되는 관리형 관계형 데이터베이스 (postgres, mysql)."""
    __tablename__ = "managed_databases"

    name = Column(String, nullable=False)
    engine = Column(String, nullable=False)
    version = Column(String, nullable=False)
    status = Column(String, nullable=False, default="CREATING")
    vpc_id = Column(String(36), nullable=True)
    container_id = Column(String, nullable=False, default="")
    port = Column(Integer, nullable=False, default=0)
    username = Column(String, nullable=False)
    password = Column(String, nullable=False)


class Cache(OwnedResourceMixin, Base):
    """컨테이너로 실행되는 관리형 Redis 캐시."""
    __tablename__ = "caches"

    name = Column(String, nullable=False)
    engine = Column(String, nullable=False, default="redis")
    version = Column(String, nullable=False, default="7.2")
    memory_mb = Column(Integer, nullable=False, default=128)
    status = Column(String, nullable=False, default="CREATING")
    vpc_id = Column(String(36), nullable=True)
    container_id = Column(String, nullable=False, default="")
    port = Column(Integer, nullable=False, default=0)
    password = Column(String, nullable=False, default="")
