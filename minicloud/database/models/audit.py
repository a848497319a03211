from sqlalchemy import Column, DateTime, Integer, String, Text

from ..database import Base
from .base import utcnow


class AuditLog(Base):
    """누가 어떤 리소스에 어떤 작업을 했는지 남기는 감사 로그. metadata 는 JSON 문자열로 보관합니다."""
    __tablename__ = "audit_logs"
    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    action = Column(String, nullable=False)
    resource_type = Column(String, nullable=False)
    resource_id = Column(String, nullable=False)
    details = Column(Text, nullable=False, default="{}")
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Event(Base):
    """리소스 상태 변화 이벤트 (INSTANCE_LAUNCH 등)."""
    __tablename__ = "events"
    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(36), nullable=False)
    action = Column(String, nullable=False, index=True)
    resource_id = Column(String, nullable=False)
    resource_type = Column(String, nullable=False)
    details = Column(Text, nullable=False, default="{}")
    created_at = Column(DateTime, nullable=False, default=utcnow)
