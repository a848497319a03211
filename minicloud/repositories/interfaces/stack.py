from abc import ABC, abstractmethod
from typing import List, Optional
from minicloud.database import models

class IStackRepository(ABC):
    @abstractmethod
    def create(self, stack: models.Stack) -> models.Stack:
        """새 스택을 생성합니다. 같은 테넌트 내 이름이 중복되면 ConflictError 를 발생시킵니다."""
        pass

    @abstractmethod
    def find_by_id(self, tenant_id: str, stack_id: str) -> Optional[models.Stack]:
        """테넌트 내에서 ID로 스택을 조회합니다."""
        pass

    @abstractmethod
    def find_by_name(self, tenant_id: str, name: str) -> Optional[models.Stack]:
        """테넌트 내에서 이름으로 스택을 조회합니다."""
        pass

    @abstractmethod
    def list_by_tenant(self, tenant_id: str) -> List[models.Stack]:
        """테넌트의 모든 스택 목록을 조회합니다."""
        pass

    @abstractmethod
    def update_status(self, stack: models.Stack, status: str, reason: str = "") -> models.Stack:
        """스택 상태와 사유를 변경합니다."""
        pass

    @abstractmethod
    def add_resource(self, stack: models.Stack, resource: models.StackResource) -> models.StackResource:
        """스택 리소스를 생성 순서의 마지막에 기록합니다."""
        pass

    @abstractmethod
    def list_resources(self, stack_id: str) -> List[models.StackResource]:
        """스택 리소스를 생성 순서대로 조회합니다."""
        pass

    @abstractmethod
    def delete_resources(self, stack_id: str) -> int:
        """스택 리소스 기록을 모두 삭제하고 삭제 건수를 반환합니다."""
        pass

    @abstractmethod
    def delete(self, stack: models.Stack) -> bool:
        """스택 기록을 삭제합니다."""
        pass
