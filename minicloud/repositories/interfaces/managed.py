from abc import ABC, abstractmethod
from typing import List, Optional
from minicloud.database import models

class IManagedDatabaseRepository(ABC):
    @abstractmethod
    def create(self, database: models.ManagedDatabase) -> models.ManagedDatabase:
        """새 관리형 데이터베이스를 생성합니다."""
        pass

    @abstractmethod
    def find_by_id(self, tenant_id: str, database_id: str) -> Optional[models.ManagedDatabase]:
        """테넌트 내에서 ID로 데이터베이스를 조회합니다."""
        pass

    @abstractmethod
    def list_by_tenant(self, tenant_id: str) -> List[models.ManagedDatabase]:
        """테넌트의 모든 데이터베이스 목록을 조회합니다."""
        pass

    @abstractmethod
    def delete(self, database: models.ManagedDatabase) -> bool:
        """데이터베이스 기록을 삭제합니다."""
        pass


class ICacheRepository(ABC):
    @abstractmethod
    def create(self, cache: models.Cache) -> models.Cache:
        """새 캐시를 생성합니다."""
        pass

    @abstractmethod
    def find_by_id(self, tenant_id: str, cache_id: str) -> Optional[models.Cache]:
        """테넌트 내에서 ID로 캐시를 조회합니다."""
        pass

    @abstractmethod
    def list_by_tenant(self, tenant_id: str) -> List[models.Cache]:
        """테넌트의 모든 캐시 목록을 조회합니다."""
        pass

    @abstractmethod
    def delete(self, cache: models.Cache) -> bool:
        """캐시 기록을 삭제합니다."""
        pass
