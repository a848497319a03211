from abc import ABC, abstractmethod
from typing import List, Optional
from minicloud.database import models

class IInstanceRepository(ABC):
    @abstractmethod
    def create(self, instance: models.Instance) -> models.Instance:
        """
        새 인스턴스 행을 생성합니다.
        이름 중복이나 서브넷 내 IP 중복이면 ConflictError 를 발생시킵니다.
        """
        pass

    @abstractmethod
    def find_by_id(self, tenant_id: str, instance_id: str) -> Optional[models.Instance]:
        """테넌트 내에서 ID로 인스턴스를 조회합니다."""
        pass

    @abstractmethod
    def find_by_name(self, tenant_id: str, name: str) -> Optional[models.Instance]:
        """테넌트 내에서 이름으로 인스턴스를 조회합니다."""
        pass

    @abstractmethod
    def list_by_tenant(self, tenant_id: str) -> List[models.Instance]:
        """테넌트의 모든 인스턴스 목록을 조회합니다."""
        pass

    @abstractmethod
    def list_ips_by_subnet(self, subnet_id: str) -> List[str]:
        """서브넷에서 사용 중인 private IP 목록을 조회합니다."""
        pass

    @abstractmethod
    def count_by_vpc(self, vpc_id: str) -> int:
        """VPC 에 속한 인스턴스 개수를 조회합니다."""
        pass

    @abstractmethod
    def count_by_subnet(self, subnet_id: str) -> int:
        """서브넷에 속한 인스턴스 개수를 조회합니다."""
        pass

    @abstractmethod
    def update(self, instance: models.Instance) -> models.Instance:
        """
        낙관적 동시성 제어로 인스턴스를 갱신합니다. (WHERE id=? AND version=?)
        다른 쪽이 먼저 갱신했다면 ConflictError 를 발생시킵니다.
        """
        pass

    @abstractmethod
    def delete(self, instance: models.Instance) -> bool:
        """인스턴스 기록을 삭제합니다."""
        pass
