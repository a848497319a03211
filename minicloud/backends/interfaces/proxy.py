from abc import ABC, abstractmethod
from typing import List

from minicloud.database import models


class ProxyAdapter(ABC):
    @abstractmethod
    def deploy_proxy(self, lb: models.LoadBalancer, targets: List[dict]) -> str:
        """
        로드밸런서 프록시를 배포하고 접속 URL 을 반환합니다.
        targets 는 {'instance_id', 'host', 'port', 'weight'} 딕셔너리의 목록입니다.
        """
        pass

    @abstractmethod
    def update_proxy_config(self, lb: models.LoadBalancer, targets: List[dict]) -> None:
        """타겟 목록으로 프록시 설정을 갱신하고 다시 읽어들입니다."""
        pass

    @abstractmethod
    def remove_proxy(self, lb_id: str) -> None:
        """프록시를 중지하고 설정을 제거합니다."""
        pass
