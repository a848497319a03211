from abc import ABC, abstractmethod
from typing import List, Optional
from minicloud.database import models

class IVPCRepository(ABC):
    @abstractmethod
    def create(self, vpc: models.VPC) -> models.VPC:
        """새로운 VPC 를 생성합니다. 같은 테넌트 내 이름이 중복되면 ConflictError 를 발생시킵니다."""
        pass

    @abstractmethod
    def find_by_id(self, tenant_id: str, vpc_id: str) -> Optional[models.VPC]:
        """테넌트 내에서 ID로 VPC 를 조회합니다."""
        pass

    @abstractmethod
    def find_by_name(self, tenant_id: str, name: str) -> Optional[models.VPC]:
        """테넌트 내에서 이름으로 VPC 를 조회합니다."""
        pass

    @abstractmethod
    def list_by_tenant(self, tenant_id: str) -> List[models.VPC]:
        """테넌트의 모든 VPC 목록을 조회합니다."""
        pass

    @abstractmethod
    def update(self, vpc: models.VPC) -> models.VPC:
        """변경된 VPC 정보를 저장합니다."""
        pass

    @abstractmethod
    def delete(self, vpc: models.VPC) -> bool:
        """VPC 기록을 삭제합니다."""
        pass


class ISubnetRepository(ABC):
    @abstractmethod
    def create(self, subnet: models.Subnet) -> models.Subnet:
        """새로운 서브넷을 생성합니다."""
        pass

    @abstractmethod
    def find_by_id(self, tenant_id: str, subnet_id: str) -> Optional[models.Subnet]:
        """테넌트 내에서 ID로 서브넷을 조회합니다."""
        pass

    @abstractmethod
    def find_by_name(self, tenant_id: str, vpc_id: str, name: str) -> Optional[models.Subnet]:
        """VPC 내에서 이름으로 서브넷을 조회합니다."""
        pass

    @abstractmethod
    def list_by_vpc(self, tenant_id: str, vpc_id: str) -> List[models.Subnet]:
        """VPC 에 속한 모든 서브넷 목록을 조회합니다."""
        pass

    @abstractmethod
    def count_by_vpc(self, vpc_id: str) -> int:
        """VPC 에 속한 서브넷 개수를 조회합니다."""
        pass

    @abstractmethod
    def delete(self, subnet: models.Subnet) -> bool:
        """서브넷 기록을 삭제합니다."""
        pass


class IPeeringRepository(ABC):
    @abstractmethod
    def create(self, peering: models.VPCPeering) -> models.VPCPeering:
        """새 피어링을 생성합니다. 같은 쌍에 종료되지 않은 피어링이 있으면 ConflictError 를 발생시킵니다."""
        pass

    @abstractmethod
    def find_by_id(self, tenant_id: str, peering_id: str) -> Optional[models.VPCPeering]:
        """테넌트 내에서 ID로 피어링을 조회합니다."""
        pass

    @abstractmethod
    def find_open_by_pair(self, vpc_a: str, vpc_b: str) -> Optional[models.VPCPeering]:
        """순서와 무관하게 두 VPC 사이의 PENDING/ACTIVE 피어링을 조회합니다."""
        pass

    @abstractmethod
    def list_by_tenant(self, tenant_id: str) -> List[models.VPCPeering]:
        """테넌트의 모든 피어링 목록을 조회합니다."""
        pass

    @abstractmethod
    def count_active_by_vpc(self, vpc_id: str) -> int:
        """해당 VPC 를 참조하는 ACTIVE 피어링 개수를 조회합니다."""
        pass

    @abstractmethod
    def update_status(self, peering: models.VPCPeering, status: str) -> models.VPCPeering:
        """피어링 상태를 변경합니다."""
        pass

    @abstractmethod
    def delete(self, peering: models.VPCPeering) -> bool:
        """피어링 기록을 삭제합니다."""
        pass
