from abc import ABC, abstractmethod

from minicloud.database import models
from minicloud.services.context import RequestContext


class ClusterProvisioner(ABC):
    @abstractmethod
    def provision(self, ctx: RequestContext, cluster: models.Cluster) -> str:
        """컨트롤 플레인과 워커 노드를 구성하고 관리자 kubeconfig 평문을 반환합니다."""
        pass

    @abstractmethod
    def deprovision(self, ctx: RequestContext, cluster: models.Cluster) -> None:
        """클러스터 노드를 모두 제거합니다."""
        pass

    @abstractmethod
    def upgrade(self, ctx: RequestContext, cluster: models.Cluster, version: str) -> None:
        """클러스터를 지정한 쿠버네티스 버전으로 올립니다."""
        pass
