from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from minicloud.services.exceptions import ConflictError


def commit_or_conflict(db: Session, message: str):
    """커밋하고, 유니크 제약 위반이면 롤백 후 ConflictError 로 변환합니다."""
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError(message, cause=e) from e


def commit_or_rollback(db: Session):
    """커밋하고, 어떤 이유로든 실패하면 롤백해 세션을 다시 쓸 수 있는 상태로 둔 뒤 예외를 다시 던집니다."""
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
