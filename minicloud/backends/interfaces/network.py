from abc import ABC, abstractmethod

from minicloud.utils.flow_compiler import FlowRule


class NetworkBackend(ABC):
    @abstractmethod
    def create_bridge(self, name: str, vxlan_id: int) -> None:
        """VXLAN VNI 를 가진 가상 스위치 브리지를 생성합니다."""
        pass

    @abstractmethod
    def delete_bridge(self, name: str) -> None:
        """브리지와 연결된 포트를 모두 제거합니다."""
        pass

    @abstractmethod
    def create_veth_pair(self, host_end: str, container_end: str) -> None:
        """서로 연결된 veth 인터페이스 쌍을 생성합니다."""
        pass

    @abstractmethod
    def attach_veth_to_bridge(self, bridge: str, veth_end: str) -> None:
        """veth 한쪽 끝을 브리지 포트로 연결합니다."""
        pass

    @abstractmethod
    def set_veth_ip(self, veth_end: str, ip: str, cidr: str) -> None:
        """veth 인터페이스에 IP/프리픽스를 설정합니다. cidr 은 프리픽스 길이 문자열입니다."""
        pass

    @abstractmethod
    def delete_veth_pair(self, host_end: str) -> None:
        """veth 쌍을 제거합니다."""
        pass

    @abstractmethod
    def add_flow_rule(self, bridge: str, rule: FlowRule) -> None:
        """브리지에 플로우 엔트리를 설치합니다."""
        pass

    @abstractmethod
    def delete_flow_rule(self, bridge: str, match: str) -> None:
        """match 와 일치하는 플로우 엔트리를 제거합니다."""
        pass
