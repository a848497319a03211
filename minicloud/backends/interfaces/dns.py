from abc import ABC, abstractmethod

from minicloud.database import models


class DNSService(ABC):
    @abstractmethod
    def register_instance(self, instance: models.Instance, ip: str) -> None:
        """인스턴스의 사설 A 레코드를 등록합니다."""
        pass

    @abstractmethod
    def unregister_instance(self, instance_id: str) -> None:
        """인스턴스의 사설 DNS 레코드를 제거합니다."""
        pass
