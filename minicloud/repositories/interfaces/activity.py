from abc import ABC, abstractmethod
from typing import List, Optional
from minicloud.database import models

class IAuditRepository(ABC):
    @abstractmethod
    def create(self, entry: models.AuditLog) -> models.AuditLog:
        """감사 로그를 기록합니다."""
        pass

    @abstractmethod
    def list_by_tenant(self, tenant_id: str, limit: int = 100) -> List[models.AuditLog]:
        """테넌트의 최근 감사 로그를 조회합니다."""
        pass


class IEventRepository(ABC):
    @abstractmethod
    def create(self, event: models.Event) -> models.Event:
        """이벤트를 기록합니다."""
        pass

    @abstractmethod
    def list_by_tenant(self, tenant_id: str, limit: int = 100) -> List[models.Event]:
        """테넌트의 최근 이벤트를 조회합니다."""
        pass


class ITaskRepository(ABC):
    @abstractmethod
    def push(self, message: models.TaskMessage) -> models.TaskMessage:
        """큐에 메시지를 추가합니다."""
        pass

    @abstractmethod
    def pop(self, queue: str) -> Optional[models.TaskMessage]:
        """큐에서 가장 오래된 메시지를 꺼내 삭제합니다. 비어있으면 None 을 반환합니다."""
        pass
