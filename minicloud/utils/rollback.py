# minicloud/utils/rollback.py
import logging
from typing import Callable, List, Tuple

logger = logging.getLogger(__name__)


class RollbackStack:
    """
    다단계 작업의 역순 정리 목록.

    각 단계가 성공할 때마다 그 단계를 되돌리는 함수를 push 하고,
    k번째 단계에서 실패하면 run() 으로 k-1 ... 0 번째 정리 함수를 역순으로 실행합니다.
    정리 중 발생한 예외는 로그만 남기고 다음 정리를 계속합니다.

    사용 예:
        rollback = RollbackStack("instance launch")
        rollback.push("remove container", backend.remove_container, container_id)
        ...
        except Exception:
            rollback.run()
            raise
    """

    def __init__(self, operation: str):
        self.operation = operation
        self._steps: List[Tuple[str, Callable, tuple, dict]] = []

    def push(self, description: str, func: Callable, *args, **kwargs):
        self._steps.append((description, func, args, kwargs))

    def clear(self):
        """작업이 성공했을 때 호출해 정리 목록을 비웁니다."""
        self._steps.clear()

    def __len__(self):
        return len(self._steps)

    def run(self) -> List[str]:
        """등록된 정리 함수를 역순으로 실행하고, 실패한 단계 설명 목록을 반환합니다."""
        failed = []
        while self._steps:
            description, func, args, kwargs = self._steps.pop()
            try:
                func(*args, **kwargs)
            except Exception as e:
                logger.warning("Rollback step '%s' of %s failed: %s", description, self.operation, e)
                failed.append(description)
        return failed
