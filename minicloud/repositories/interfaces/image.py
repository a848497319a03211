from abc import ABC, abstractmethod
from typing import List, Optional
from minicloud.database import models

class IImageRepository(ABC):
    @abstractmethod
    def find_by_name(self, name: str) -> Optional[models.Image]:
        """이름으로 특정 이미지를 조회합니다."""
        pass

    @abstractmethod
    def list_all(self) -> List[models.Image]:
        """등록된 모든 이미지 목록을 조회합니다."""
        pass


class IInstanceTypeRepository(ABC):
    @abstractmethod
    def find_by_name(self, name: str) -> Optional[models.InstanceType]:
        """이름으로 인스턴스 타입을 조회합니다."""
        pass

    @abstractmethod
    def list_all(self) -> List[models.InstanceType]:
        """모든 인스턴스 타입 목록을 조회합니다."""
        pass
