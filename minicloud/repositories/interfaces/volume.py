from abc import ABC, abstractmethod
from typing import List, Optional
from minicloud.database import models

class IVolumeRepository(ABC):
    @abstractmethod
    def create(self, volume: models.Volume) -> models.Volume:
        """새 볼륨을 생성합니다."""
        pass

    @abstractmethod
    def find_by_id(self, tenant_id: str, volume_id: str) -> Optional[models.Volume]:
        """테넌트 내에서 ID로 볼륨을 조회합니다."""
        pass

    @abstractmethod
    def find_by_name(self, tenant_id: str, name: str) -> Optional[models.Volume]:
        """테넌트 내에서 이름으로 볼륨을 조회합니다."""
        pass

    @abstractmethod
    def list_by_tenant(self, tenant_id: str) -> List[models.Volume]:
        """테넌트의 모든 볼륨 목록을 조회합니다."""
        pass

    @abstractmethod
    def list_by_instance(self, tenant_id: str, instance_id: str) -> List[models.Volume]:
        """인스턴스에 연결된 볼륨 목록을 조회합니다."""
        pass

    @abstractmethod
    def update(self, volume: models.Volume) -> models.Volume:
        """변경된 볼륨 정보를 저장합니다."""
        pass

    @abstractmethod
    def delete(self, volume: models.Volume) -> bool:
        """볼륨 기록을 삭제합니다."""
        pass


class ISnapshotRepository(ABC):
    @abstractmethod
    def create(self, snapshot: models.Snapshot) -> models.Snapshot:
        """새 스냅샷을 생성합니다."""
        pass

    @abstractmethod
    def find_by_id(self, tenant_id: str, snapshot_id: str) -> Optional[models.Snapshot]:
        """테넌트 내에서 ID로 스냅샷을 조회합니다."""
        pass

    @abstractmethod
    def list_by_tenant(self, tenant_id: str) -> List[models.Snapshot]:
        """테넌트의 모든 스냅샷 목록을 조회합니다."""
        pass

    @abstractmethod
    def update(self, snapshot: models.Snapshot) -> models.Snapshot:
        """변경된 스냅샷 정보를 저장합니다."""
        pass

    @abstractmethod
    def delete(self, snapshot: models.Snapshot) -> bool:
        """스냅샷 기록을 삭제합니다."""
        pass
