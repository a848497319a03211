# minicloud/services/exceptions.py
from typing import Optional


class CloudError(Exception):
    """모든 서비스 예외의 기반 클래스. 사람이 읽을 수 있는 메시지와 원인 예외를 함께 보관합니다."""
    kind = "Internal"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self):
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


# --- Validation / Lookup ---
class InvalidInputError(CloudError):
    """요청 값이 유효하지 않을 때 (잘못된 CIDR, 템플릿, 런타임 등)"""
    kind = "InvalidInput"

class NotFoundError(CloudError):
    """리소스를 찾을 수 없을 때"""
    kind = "NotFound"

# --- Auth ---
class UnauthorizedError(CloudError):
    """인증 정보가 없거나 유효하지 않을 때"""
    kind = "Unauthorized"

class ForbiddenError(CloudError):
    """리소스 소유자가 아닌 사용자가 접근할 때"""
    kind = "Forbidden"

# --- State ---
class ConflictError(CloudError):
    """중복 이름, 사용 중인 리소스, 버전 충돌 등"""
    kind = "Conflict"

class QuotaExceededError(CloudError):
    """테넌트 쿼터를 초과할 때"""
    kind = "QuotaExceeded"

class InstanceNotRunningError(CloudError):
    """컨테이너가 없는 인스턴스에 대해 로그/통계/exec를 요청할 때"""
    kind = "InstanceNotRunning"

class CrossVPCError(CloudError):
    """다른 VPC의 인스턴스를 로드밸런서 타겟으로 등록하려 할 때"""
    kind = "CrossVPC"

# --- Backend / Runtime ---
class InternalError(CloudError):
    """백엔드(컴퓨트, 네트워크, 스토리지) 호출이나 저장소 쓰기가 실패했을 때"""
    kind = "Internal"

class OperationCancelledError(CloudError):
    """호출자가 요청 스코프를 취소했을 때"""
    kind = "Cancelled"
