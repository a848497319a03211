from abc import ABC, abstractmethod
from typing import List, Optional
from minicloud.database import models

class IFunctionRepository(ABC):
    @abstractmethod
    def create(self, function: models.Function) -> models.Function:
        """새 함수를 생성합니다."""
        pass

    @abstractmethod
    def find_by_id(self, tenant_id: str, function_id: str) -> Optional[models.Function]:
        """테넌트 내에서 ID로 함수를 조회합니다."""
        pass

    @abstractmethod
    def list_by_tenant(self, tenant_id: str) -> List[models.Function]:
        """테넌트의 모든 함수 목록을 조회합니다."""
        pass

    @abstractmethod
    def delete(self, function: models.Function) -> bool:
        """함수와 호출 기록을 삭제합니다."""
        pass

    @abstractmethod
    def create_invocation(self, invocation: models.Invocation) -> models.Invocation:
        """새 호출 기록을 생성합니다."""
        pass

    @abstractmethod
    def update_invocation(self, invocation: models.Invocation) -> models.Invocation:
        """호출 기록을 갱신합니다."""
        pass

    @abstractmethod
    def list_invocations(self, function_id: str, limit: int = 100) -> List[models.Invocation]:
        """함수의 최근 호출 기록을 조회합니다."""
        pass
