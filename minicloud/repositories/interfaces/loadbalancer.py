from abc import ABC, abstractmethod
from typing import List, Optional
from minicloud.database import models

class ILoadBalancerRepository(ABC):
    @abstractmethod
    def create(self, lb: models.LoadBalancer) -> models.LoadBalancer:
        """새 로드밸런서를 생성합니다. 멱등성 키가 중복되면 ConflictError 를 발생시킵니다."""
        pass

    @abstractmethod
    def find_by_id(self, tenant_id: str, lb_id: str) -> Optional[models.LoadBalancer]:
        """테넌트 내에서 ID로 로드밸런서를 조회합니다."""
        pass

    @abstractmethod
    def find_by_idempotency_key(self, tenant_id: str, key: str) -> Optional[models.LoadBalancer]:
        """멱등성 키로 로드밸런서를 조회합니다."""
        pass

    @abstractmethod
    def list_by_tenant(self, tenant_id: str) -> List[models.LoadBalancer]:
        """테넌트의 모든 로드밸런서 목록을 조회합니다."""
        pass

    @abstractmethod
    def list_by_status(self, status: str) -> List[models.LoadBalancer]:
        """테넌트와 무관하게 특정 상태의 로드밸런서 목록을 조회합니다. (LB 워커 전용)"""
        pass

    @abstractmethod
    def update(self, lb: models.LoadBalancer) -> models.LoadBalancer:
        """변경된 로드밸런서 정보를 저장합니다."""
        pass

    @abstractmethod
    def delete(self, lb: models.LoadBalancer) -> bool:
        """로드밸런서와 타겟 기록을 삭제합니다."""
        pass

    @abstractmethod
    def add_target(self, target: models.LBTarget) -> models.LBTarget:
        """타겟을 추가합니다."""
        pass

    @abstractmethod
    def remove_target(self, lb_id: str, instance_id: str) -> bool:
        """타겟을 제거합니다. 제거된 행이 없으면 False 를 반환합니다."""
        pass

    @abstractmethod
    def list_targets(self, lb_id: str) -> List[models.LBTarget]:
        """로드밸런서의 타겟 목록을 조회합니다."""
        pass

    @abstractmethod
    def update_target_health(self, target: models.LBTarget, health: str) -> models.LBTarget:
        """타겟의 헬스 상태를 변경합니다."""
        pass
