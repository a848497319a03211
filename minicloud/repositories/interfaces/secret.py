from abc import ABC, abstractmethod
from typing import List, Optional
from minicloud.database import models

class ISecretRepository(ABC):
    @abstractmethod
    def create(self, secret: models.Secret) -> models.Secret:
        """새 시크릿을 생성합니다. 같은 사용자 내 이름이 중복되면 ConflictError 를 발생시킵니다."""
        pass

    @abstractmethod
    def find_by_id(self, user_id: str, secret_id: str) -> Optional[models.Secret]:
        """사용자 소유의 시크릿을 ID로 조회합니다."""
        pass

    @abstractmethod
    def find_by_name(self, user_id: str, name: str) -> Optional[models.Secret]:
        """사용자 소유의 시크릿을 이름으로 조회합니다."""
        pass

    @abstractmethod
    def list_by_user(self, user_id: str) -> List[models.Secret]:
        """사용자의 모든 시크릿 목록을 조회합니다."""
        pass

    @abstractmethod
    def update(self, secret: models.Secret) -> models.Secret:
        """변경된 시크릿 정보를 저장합니다."""
        pass

    @abstractmethod
    def delete(self, secret: models.Secret) -> bool:
        """시크릿을 삭제합니다."""
        pass
