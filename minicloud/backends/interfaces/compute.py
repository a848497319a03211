from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class RunTaskOptions:
    """일회성 작업 컨테이너 실행 옵션."""
    image: str
    command: List[str]
    name: str = ""
    env: Dict[str, str] = field(default_factory=dict)
    memory_mb: int = 128
    cpus: float = 1.0
    network_disabled: bool = True
    read_only_rootfs: bool = False
    working_dir: str = ""
    binds: List[str] = field(default_factory=list)


class ComputeBackend(ABC):
    @abstractmethod
    def create_container(self, name: str, image: str, ports: List[str], network_id: str,
                         mounts: List[str], env: Dict[str, str], cmd: List[str]) -> str:
        """컨테이너를 생성하고 시작한 뒤 컨테이너 ID를 반환합니다."""
        pass

    @abstractmethod
    def start_container(self, container_id: str) -> None:
        """정지된 컨테이너를 다시 시작합니다."""
        pass

    @abstractmethod
    def stop_container(self, container_id: str) -> None:
        """실행 중인 컨테이너를 정지합니다."""
        pass

    @abstractmethod
    def remove_container(self, container_id: str) -> None:
        """컨테이너를 정지하고 정의까지 제거합니다."""
        pass

    @abstractmethod
    def get_container_port(self, container_id: str, container_port: int) -> int:
        """컨테이너 포트에 매핑된 호스트 포트를 조회합니다."""
        pass

    @abstractmethod
    def get_container_stats(self, container_id: str) -> Dict[str, float]:
        """CPU 시간, 메모리 사용량 등의 통계를 조회합니다."""
        pass

    @abstractmethod
    def get_logs(self, container_id: str, tail: int = 100) -> str:
        """컨테이너 콘솔 로그를 조회합니다."""
        pass

    @abstractmethod
    def run_task(self, options: RunTaskOptions) -> str:
        """일회성 작업 컨테이너를 실행하고 컨테이너 ID를 반환합니다."""
        pass

    @abstractmethod
    def wait_container(self, container_id: str, timeout: Optional[float] = None) -> int:
        """컨테이너가 종료될 때까지 기다린 뒤 종료 코드를 반환합니다. 시간 초과 시 BackendTimeoutError."""
        pass

    @abstractmethod
    def exec(self, container_id: str, cmd: List[str]) -> str:
        """실행 중인 컨테이너 안에서 명령을 실행하고 출력을 반환합니다."""
        pass

    @abstractmethod
    def create_network(self, name: str) -> str:
        """컨테이너용 가상 네트워크를 생성하고 ID를 반환합니다."""
        pass

    @abstractmethod
    def remove_network(self, network_id: str) -> None:
        """가상 네트워크를 제거합니다."""
        pass

    @abstractmethod
    def ping(self) -> None:
        """런타임 연결 상태를 확인합니다. 실패 시 BackendError."""
        pass
