from sqlalchemy import Column, DateTime, Integer, String, Text

from ..database import Base
from .base import utcnow


class TaskMessage(Base):
    """
    내구성 있는 작업 큐의 메시지 한 건. 큐 이름별로 id 오름차순(FIFO)으로 소비됩니다.
    """
    __tablename__ = "task_messages"
    id = Column(Integer, primary_key=True, autoincrement=True)
    queue = Column(String, nullable=False, index=True)
    payload = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
