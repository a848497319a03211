# minicloud/services/helpers.py
import logging
from typing import Callable, Optional, TypeVar

from minicloud.services.exceptions import CloudError, InternalError, NotFoundError
from minicloud.utils.identifiers import looks_like_uuid

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_backend(description: str, func: Callable[..., T], *args, **kwargs) -> T:
    """
    백엔드 호출을 실행하고, 실패하면 InternalError 로 감싸 원인을 보존합니다.
    서비스 예외(CloudError)는 그대로 전파합니다.
    """
    try:
        return func(*args, **kwargs)
    except CloudError:
        raise
    except Exception as e:
        raise InternalError(f"failed to {description}", cause=e) from e


def find_by_id_or_name(kind: str, id_or_name: str, by_id: Callable[[str], Optional[T]],
                       by_name: Callable[[str], Optional[T]]) -> T:
    """UUID 형식이면 id 로, 아니면 이름으로 조회합니다. 없으면 NotFoundError."""
    found = by_id(id_or_name) if looks_like_uuid(id_or_name) else None
    if found is None:
        found = by_name(id_or_name)
    if found is None:
        raise NotFoundError(f"{kind} '{id_or_name}' not found.")
    return found
