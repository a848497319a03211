# minicloud/workers/background.py
import logging
import threading
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class BackgroundRunner:
    """
    스냅샷 생성, 스택 처리처럼 호출자와 분리되어 실행되는 작업을 이름 붙은 스레드로 실행합니다.

    synchronous=True 이면 submit 이 호출한 스레드에서 바로 실행합니다. (테스트, 단일 스레드 도구용)
    작업 안에서 발생한 예외는 로그만 남기고 삼킵니다. 실패는 각 작업이 엔티티 상태로 기록합니다.

    cleanup 은 스레드 작업이 끝날 때마다 그 스레드에서 호출됩니다.
    scoped_session.remove 를 넘기면 작업 스레드의 세션이 작업과 함께 정리됩니다.
    """

    def __init__(self, synchronous: bool = False, cleanup: Optional[Callable[[], None]] = None):
        self.synchronous = synchronous
        self.cleanup = cleanup
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()

    def submit(self, name: str, func: Callable, *args, **kwargs):
        if self.synchronous:
            self._run(name, func, args, kwargs)
            return None

        thread = threading.Thread(target=self._run_threaded, args=(name, func, args, kwargs),
                                  name=name, daemon=True)
        with self._lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        thread.start()
        logger.debug("Background task %s started", name)
        return thread

    def join(self, timeout: float = None):
        """실행 중인 작업이 모두 끝날 때까지 기다립니다."""
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout)

    def _run_threaded(self, name: str, func: Callable, args: tuple, kwargs: dict):
        try:
            self._run(name, func, args, kwargs)
        finally:
            if self.cleanup is not None:
                try:
                    self.cleanup()
                except Exception as e:
                    logger.warning("Cleanup after background task %s failed: %s", name, e)

    @staticmethod
    def _run(name: str, func: Callable, args: tuple, kwargs: dict):
        try:
            func(*args, **kwargs)
        except Exception as e:
            logger.error("Background task %s failed: %s", name, e, exc_info=True)
