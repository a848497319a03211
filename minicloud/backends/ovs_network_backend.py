# minicloud/backends/ovs_network_backend.py
import logging
import re

from minicloud.backends.command import run_command
from minicloud.backends.exceptions import BackendError
from minicloud.backends.interfaces import FlowRule, NetworkBackend

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[a-zA-Z0-9-]+$")
FORBIDDEN_FLOW_CHARS = set(";|&><`$")


class OvsNetworkBackend(NetworkBackend):
    """
    Open vSwitch 기반 네트워크 백엔드.

    브리지와 포트는 ovs-vsctl, 플로우는 ovs-ofctl, veth 는 iproute2(ip) 로 다룹니다.
    이름과 플로우 문자열은 명령 인자로 넘기기 전에 검증합니다.
    """

    def __init__(self, use_sudo: bool = False):
        self.use_sudo = use_sudo

    def _run(self, *args: str) -> str:
        return run_command(list(args), use_sudo=self.use_sudo)

    @staticmethod
    def _validate_name(*names: str):
        for name in names:
            if not name or not NAME_PATTERN.match(name):
                raise BackendError(f"invalid bridge or interface name '{name}'")

    def ping(self):
        self._run("ovs-vsctl", "show")

    def create_bridge(self, name: str, vxlan_id: int) -> None:
        self._validate_name(name)
        self._run("ovs-vsctl", "--may-exist", "add-br", name)
        if vxlan_id:
            self._run("ovs-vsctl", "set", "bridge", name, f"external-ids:vxlan-id={vxlan_id}")
        logger.info("Created bridge %s (vxlan %s)", name, vxlan_id)

    def delete_bridge(self, name: str) -> None:
        self._validate_name(name)
        self._run("ovs-vsctl", "--if-exists", "del-br", name)
        logger.info("Deleted bridge %s", name)

    def create_veth_pair(self, host_end: str, container_end: str) -> None:
        self._validate_name(host_end, container_end)
        self._run("ip", "link", "add", host_end, "type", "veth", "peer", "name", container_end)

    def attach_veth_to_bridge(self, bridge: str, veth_end: str) -> None:
        self._validate_name(bridge, veth_end)
        self._run("ovs-vsctl", "--may-exist", "add-port", bridge, veth_end)
        self._run("ip", "link", "set", veth_end, "up")

    def set_veth_ip(self, veth_end: str, ip: str, cidr: str) -> None:
        self._validate_name(veth_end)
        self._run("ip", "addr", "add", f"{ip}/{cidr}", "dev", veth_end)
        self._run("ip", "link", "set", veth_end, "up")

    def delete_veth_pair(self, host_end: str) -> None:
        self._validate_name(host_end)
        self._run("ip", "link", "del", host_end)

    def add_flow_rule(self, bridge: str, rule: FlowRule) -> None:
        self._validate_name(bridge)
        if FORBIDDEN_FLOW_CHARS & set(rule.match) or FORBIDDEN_FLOW_CHARS & set(rule.actions):
            raise BackendError("invalid characters in flow rule")
        flow_spec = f"priority={rule.priority},{rule.match},actions={rule.actions}"
        self._run("ovs-ofctl", "add-flow", bridge, flow_spec)

    def delete_flow_rule(self, bridge: str, match: str) -> None:
        self._validate_name(bridge)
        if FORBIDDEN_FLOW_CHARS & set(match):
            raise BackendError("invalid characters in flow match")
        self._run("ovs-ofctl", "del-flows", bridge, match)
