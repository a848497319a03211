from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from minicloud.database import models

class ILogRepository(ABC):
    @abstractmethod
    def create_many(self, entries: List[models.LogEntry]) -> int:
        """로그 엔트리들을 한 번에 저장하고 저장 건수를 반환합니다."""
        pass

    @abstractmethod
    def search(self, tenant_id: str, resource_id: Optional[str] = None,
               level: Optional[str] = None, limit: int = 100) -> List[models.LogEntry]:
        """조건에 맞는 최근 로그를 조회합니다."""
        pass

    @abstractmethod
    def delete_older_than(self, cutoff: datetime) -> int:
        """cutoff 이전의 로그를 삭제하고 삭제 건수를 반환합니다."""
        pass
