from abc import ABC, abstractmethod


class StorageBackend(ABC):
    @abstractmethod
    def create_volume(self, name: str, size_gb: int) -> str:
        """블록 디바이스를 생성하고 백엔드 경로를 반환합니다."""
        pass

    @abstractmethod
    def delete_volume(self, name: str) -> None:
        """블록 디바이스를 삭제합니다."""
        pass

    @abstractmethod
    def attach_volume(self, volume_name: str, instance_id: str) -> None:
        """볼륨을 인스턴스에 연결합니다."""
        pass

    @abstractmethod
    def detach_volume(self, volume_name: str, instance_id: str) -> None:
        """볼륨을 인스턴스에서 분리합니다."""
        pass

    @abstractmethod
    def create_snapshot(self, volume_name: str, snapshot_name: str) -> None:
        """볼륨의 현재 시점 복사본을 만듭니다."""
        pass

    @abstractmethod
    def restore_snapshot(self, volume_name: str, snapshot_name: str) -> None:
        """스냅샷 내용을 볼륨에 덮어씁니다."""
        pass

    @abstractmethod
    def delete_snapshot(self, snapshot_name: str) -> None:
        """스냅샷을 삭제합니다. 없으면 아무 것도 하지 않습니다."""
        pass
