from sqlalchemy import Column, DateTime, String, Text, UniqueConstraint

from ..database import Base
from .base import OwnedResourceMixin


class Secret(OwnedResourceMixin, Base):
    """사용자별 키로 암호화된 비밀 값. 평문은 저장하지 않습니다."""
    __tablename__ = "secrets"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_secret_user_name"),)

    name = Column(String, nullable=False)
    encrypted_value = Column(Text, nullable=False)
    description = Column(String, nullable=False, default="")
    last_accessed_at = Column(DateTime, nullable=True)
