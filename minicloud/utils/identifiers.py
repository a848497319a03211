# minicloud/utils/identifiers.py
import uuid


def looks_like_uuid(value: str) -> bool:
    """id 또는 이름을 받는 조회에서 값이 UUID 형식인지 판별합니다."""
    try:
        uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return False
    return True


def short_id(resource_id: str) -> str:
    """브리지, 컨테이너 이름 등에 쓰는 id 앞 8자리."""
    return str(resource_id)[:8]
