from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint

from ..database import Base
from .base import OwnedResourceMixin, new_id, utcnow


class Function(OwnedResourceMixin, Base):
    """서버리스 함수 정의. 호출 시마다 일회성 컨테이너에서 실행됩니다."""
    __tablename__ = "functions"
    __table_args__ = (UniqueConstraint("tenant_id", "name", name="uq_function_tenant_name"),)

    name = Column(String, nullable=False)
    runtime = Column(String, nullable=False)
    handler = Column(String, nullable=False)
    code = Column(Text, nullable=False, default="")
    timeout = Column(Integer, nullable=False, default=30)
    memory_mb = Column(Integer, nullable=False, default=128)
    status = Column(String, nullable=False, default="ACTIVE")


class Invocation(Base):
    __tablename__ = "invocations"
    id = Column(String(36), primary_key=True, default=new_id)
    function_id = Column(String(36), ForeignKey("functions.id"), nullable=False, index=True)
    status = Column(String, nullable=False, default="RUNNING")
    status_code = Column(Integer, nullable=False, default=0)
    logs = Column(Text, nullable=False, default="")
    duration_ms = Column(Integer, nullable=False, default=0)
    started_at = Column(DateTime, nullable=False, default=utcnow)
    ended_at = Column(DateTime, nullable=True)
