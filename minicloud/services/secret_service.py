# minicloud/services/secret_service.py
import base64
import logging
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import List, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from minicloud import config
from minicloud.database import models
from minicloud.database.models.base import utcnow
from minicloud.repositories.interfaces import ISecretRepository
from minicloud.services.audit_service import AuditService, safe_audit
from minicloud.services.context import RequestContext
from minicloud.services.exceptions import ConflictError, InternalError, InvalidInputError, NotFoundError
from minicloud.utils.identifiers import looks_like_uuid

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"
KDF_ITERATIONS = 100000


@dataclass
class SecretView:
    """API 로 돌려주는 비밀 값 표현. 목록 조회에서는 value 가 항상 [REDACTED] 입니다."""
    id: str
    name: str
    description: str
    value: str
    created_at: datetime
    last_accessed_at: Optional[datetime]


@lru_cache(maxsize=256)
def _derive_key(master_key: str, user_id: str) -> bytes:
    # 사용자 id 를 salt 로 마스터 키에서 사용자별 Fernet 키를 유도합니다.
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=user_id.encode(),
        iterations=KDF_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(master_key.encode()))


class SecretService:
    def __init__(self, secret_repo: ISecretRepository, master_key: str = None, environment: str = None,
                 audit: Optional[AuditService] = None):
        """
        Args:
            secret_repo: 비밀 값 리포지토리.
            master_key: 사용자별 키를 유도할 마스터 키. 생략하면 MINICLOUD_SECRETS_KEY.
            environment: 실행 환경. production 에서는 마스터 키 없이 시작할 수 없습니다.

        Raises:
            InternalError: production 환경인데 마스터 키가 없을 때.
        """
        self.secret_repo = secret_repo
        self.audit = audit
        environment = environment or config.ENVIRONMENT
        master_key = config.SECRETS_KEY if master_key is None else master_key
        if not master_key:
            if environment == "production":
                raise InternalError("MINICLOUD_SECRETS_KEY must be set in production")
            logger.warning("MINICLOUD_SECRETS_KEY is not set, using the development key")
            master_key = config.DEV_SECRETS_KEY
        self._master_key = master_key

    def _fernet(self, user_id: str) -> Fernet:
        return Fernet(_derive_key(self._master_key, str(user_id)))

    def encrypt(self, ctx: RequestContext, user_id: str, plaintext: str) -> str:
        return self._fernet(user_id).encrypt(plaintext.encode()).decode()

    def decrypt(self, ctx: RequestContext, user_id: str, token: str) -> str:
        try:
            return self._fernet(user_id).decrypt(token.encode()).decode()
        except (InvalidToken, ValueError) as e:
            raise InternalError("failed to decrypt value", cause=e) from e

    def create_secret(self, ctx: RequestContext, name: str, value: str, description: str = "") -> SecretView:
        ctx.check_cancelled()
        if not name:
            raise InvalidInputError("secret name is required")
        if value is None or value == "":
            raise InvalidInputError("secret value is required")
        if self.secret_repo.find_by_name(ctx.user_id, name):
            raise ConflictError(f"Secret '{name}' already exists.")

        secret = self.secret_repo.create(models.Secret(
            tenant_id=ctx.tenant_id,
            user_id=ctx.user_id,
            name=name,
            encrypted_value=self.encrypt(ctx, ctx.user_id, value),
            description=description or "",
        ))
        safe_audit(self.audit, ctx, "secret.create", "secret", secret.id, {"name": name})
        return self._view(secret, REDACTED)

    def get_secret(self, ctx: RequestContext, id_or_name: str) -> SecretView:
        """복호화한 값을 돌려주고 last_accessed_at 을 갱신합니다."""
        ctx.check_cancelled()
        secret = self._find(ctx, id_or_name)
        plaintext = self.decrypt(ctx, secret.user_id, secret.encrypted_value)
        secret.last_accessed_at = utcnow()
        secret = self.secret_repo.update(secret)
        safe_audit(self.audit, ctx, "secret.access", "secret", secret.id, {"name": secret.name})
        return self._view(secret, plaintext)

    def get_secret_by_name(self, ctx: RequestContext, name: str) -> SecretView:
        return self.get_secret(ctx, name)

    def list_secrets(self, ctx: RequestContext) -> List[SecretView]:
        return [self._view(s, REDACTED) for s in self.secret_repo.list_by_user(ctx.user_id)]

    def delete_secret(self, ctx: RequestContext, id_or_name: str) -> bool:
        ctx.check_cancelled()
        secret = self._find(ctx, id_or_name)
        self.secret_repo.delete(secret)
        safe_audit(self.audit, ctx, "secret.delete", "secret", secret.id, {"name": secret.name})
        return True

    def _find(self, ctx: RequestContext, id_or_name: str) -> models.Secret:
        secret = self.secret_repo.find_by_id(ctx.user_id, id_or_name) if looks_like_uuid(id_or_name) else None
        if secret is None:
            secret = self.secret_repo.find_by_name(ctx.user_id, id_or_name)
        if secret is None:
            raise NotFoundError(f"Secret '{id_or_name}' not found.")
        return secret

    @staticmethod
    def _view(secret: models.Secret, value: str) -> SecretView:
        return SecretView(
            id=secret.id,
            name=secret.name,
            description=secret.description or "",
            value=value,
            created_at=secret.created_at,
            last_accessed_at=secret.last_accessed_at,
        )
