import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    # SQLite는 타임존을 보관하지 않으므로 naive UTC 로 통일합니다.
    return datetime.now(timezone.utc).replace(tzinfo=None)


class OwnedResourceMixin:
    """
    테넌트가 소유하는 모든 리소스의 공통 컬럼.
    id 는 생성 시 발급되는 UUID4 문자열이며, tenant_id 로 테넌트 간 참조를 차단합니다.
    """
    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
