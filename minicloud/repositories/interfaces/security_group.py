from abc import ABC, abstractmethod
from typing import List, Optional
from minicloud.database import models

class ISecurityGroupRepository(ABC):
    @abstractmethod
    def create(self, group: models.SecurityGroup) -> models.SecurityGroup:
        """보안 그룹과 초기 규칙들을 함께 생성합니다."""
        pass

    @abstractmethod
    def find_by_id(self, tenant_id: str, group_id: str) -> Optional[models.SecurityGroup]:
        """테넌트 내에서 ID로 보안 그룹을 조회합니다."""
        pass

    @abstractmethod
    def find_by_name(self, tenant_id: str, vpc_id: str, name: str) -> Optional[models.SecurityGroup]:
        """VPC 내에서 이름으로 보안 그룹을 조회합니다."""
        pass

    @abstractmethod
    def list_by_vpc(self, tenant_id: str, vpc_id: str) -> List[models.SecurityGroup]:
        """VPC 에 속한 보안 그룹 목록을 조회합니다."""
        pass

    @abstractmethod
    def add_rule(self, group: models.SecurityGroup, rule: models.SecurityRule) -> models.SecurityRule:
        """그룹의 마지막 위치에 규칙을 추가합니다."""
        pass

    @abstractmethod
    def find_rule(self, rule_id: str) -> Optional[models.SecurityRule]:
        """ID로 규칙을 조회합니다."""
        pass

    @abstractmethod
    def delete_rule(self, rule: models.SecurityRule) -> bool:
        """규칙을 삭제합니다."""
        pass

    @abstractmethod
    def add_instance(self, group_id: str, instance_id: str) -> None:
        """인스턴스를 보안 그룹 멤버로 추가합니다. 이미 멤버면 아무것도 하지 않습니다."""
        pass

    @abstractmethod
    def remove_instance(self, group_id: str, instance_id: str) -> bool:
        """인스턴스의 보안 그룹 멤버십을 제거합니다."""
        pass

    @abstractmethod
    def list_instance_ids(self, group_id: str) -> List[str]:
        """보안 그룹에 연결된 인스턴스 ID 목록을 조회합니다."""
        pass

    @abstractmethod
    def list_group_ids_by_instance(self, instance_id: str) -> List[str]:
        """인스턴스가 속한 보안 그룹 ID 목록을 조회합니다."""
        pass

    @abstractmethod
    def delete(self, group: models.SecurityGroup) -> bool:
        """보안 그룹과 그 규칙들을 삭제합니다."""
        pass
