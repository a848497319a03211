# minicloud/services/context.py
import threading
from dataclasses import dataclass, field

from minicloud.services.exceptions import OperationCancelledError


@dataclass
class RequestContext:
    """
    모든 서비스 메서드가 첫 번째 인자로 받는 요청 스코프.

    user_id / tenant_id 를 스레드 로컬이 아닌 명시적인 값으로 전달하고,
    호출자가 취소할 수 있는 이벤트를 함께 보관합니다.
    """
    user_id: str
    tenant_id: str
    trace_id: str = ""
    cancel_event: threading.Event = field(default_factory=threading.Event, repr=False, compare=False)

    def cancel(self):
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def check_cancelled(self):
        if self.cancel_event.is_set():
            raise OperationCancelledError("request was cancelled by the caller")

    def detached(self) -> "RequestContext":
        """같은 사용자/테넌트를 가진, 취소되지 않은 새 스코프를 반환합니다. (백그라운드 작업, 정리 작업용)"""
        return RequestContext(user_id=self.user_id, tenant_id=self.tenant_id, trace_id=self.trace_id)
