from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import Base
from .base import OwnedResourceMixin, new_id, utcnow


class Stack(OwnedResourceMixin, Base):
    """
    선언형 템플릿의 실행 계획. 생성한 리소스는 StackResource 로 논리 id → 물리 id 를 기록합니다.
    """
    __tablename__ = "stacks"
    __table_args__ = (UniqueConstraint("tenant_id", "name", name="uq_stack_tenant_name"),)

    name = Column(String, nullable=False)
    template = Column(Text, nullable=False)
    parameters = Column(Text, nullable=False, default="{}")
    status = Column(String, nullable=False, default="CREATE_IN_PROGRESS")
    status_reason = Column(String, nullable=False, default="")

    resources = relationship(
        "StackResource",
        back_populates="stack",
        cascade="all, delete-orphan",
        order_by="StackResource.position",
    )


class StackResource(Base):
    __tablename__ = "stack_resources"
    id = Column(String(36), primary_key=True, default=new_id)
    stack_id = Column(String(36), ForeignKey("stacks.id"), nullable=False, index=True)
    logical_id = Column(String, nullable=False)
    physical_id = Column(String, nullable=False)
    resource_type = Column(String, nullable=False)
    status = Column(String, nullable=False)
    # 생성 순서. 롤백은 이 값의 역순으로 진행됩니다.
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    stack = relationship("Stack", back_populates="resources")
