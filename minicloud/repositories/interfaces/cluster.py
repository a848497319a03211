from abc import ABC, abstractmethod
from typing import List, Optional
from minicloud.database import models

class IClusterRepository(ABC):
    @abstractmethod
    def create(self, cluster: models.Cluster) -> models.Cluster:
        """새 클러스터를 생성합니다."""
        pass

    @abstractmethod
    def find_by_id(self, tenant_id: str, cluster_id: str) -> Optional[models.Cluster]:
        """테넌트 내에서 ID로 클러스터를 조회합니다."""
        pass

    @abstractmethod
    def list_by_tenant(self, tenant_id: str) -> List[models.Cluster]:
        """테넌트의 모든 클러스터 목록을 조회합니다."""
        pass

    @abstractmethod
    def update(self, cluster: models.Cluster) -> models.Cluster:
        """변경된 클러스터 정보를 저장합니다."""
        pass

    @abstractmethod
    def delete(self, cluster: models.Cluster) -> bool:
        """클러스터 기록을 삭제합니다."""
        pass
