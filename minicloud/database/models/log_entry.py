from sqlalchemy import Column, DateTime, Integer, String, Text

from ..database import Base
from .base import utcnow


class LogEntry(Base):
    """리소스별로 수집된 로그 한 줄. 보존 기간이 지나면 run_retention 으로 삭제됩니다."""
    __tablename__ = "log_entries"
    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(36), nullable=False, index=True)
    resource_id = Column(String, nullable=False, index=True)
    resource_type = Column(String, nullable=False, default="")
    level = Column(String, nullable=False, default="INFO")
    message = Column(Text, nullable=False)
    trace_id = Column(String, nullable=False, default="")
    timestamp = Column(DateTime, nullable=False, default=utcnow, index=True)
