# minicloud/utils/flow_compiler.py
from dataclasses import dataclass

UNIVERSAL_CIDRS = ("", "0.0.0.0/0")
PEERING_PRIORITY = 500


@dataclass(frozen=True)
class FlowRule:
    """브리지에 설치되는 플로우 엔트리 한 건."""
    priority: int
    match: str
    actions: str = "NORMAL"


def compile_match(protocol: str, direction: str, cidr: str = "", port_min: int = 0, port_max: int = 0) -> str:
    """
    보안 그룹 규칙을 OpenFlow 스타일 match 문자열로 변환합니다.

    - 프로토콜은 그대로 토큰이 됩니다. (tcp, udp, icmp, arp)
    - 모든 주소를 뜻하지 않는 CIDR 은 ingress 면 nw_src, egress 면 nw_dst 로 붙습니다.
    - 포트는 단일 포트든 범위든 하한값 하나만 tp_dst 로 내려갑니다.
    """
    parts = [protocol]

    if cidr not in UNIVERSAL_CIDRS:
        if direction == "ingress":
            parts.append(f"nw_src={cidr}")
        else:
            parts.append(f"nw_dst={cidr}")

    if port_min > 0:
        if protocol in ("tcp", "udp") and port_min == port_max:
            parts.append(f"tp_dst={port_min}")
        elif port_max > port_min:
            # 범위는 하한값으로만 내려갑니다. 다중 플로우 확장은 지원하지 않습니다.
            parts.append(f"tp_dst={port_min}")

    return ",".join(parts)


def compile_rule(rule) -> FlowRule:
    """SecurityRule(또는 같은 속성을 가진 객체)을 FlowRule 로 변환하는 순수 함수."""
    match = compile_match(
        protocol=rule.protocol,
        direction=rule.direction,
        cidr=rule.cidr or "",
        port_min=rule.port_min or 0,
        port_max=rule.port_max or 0,
    )
    return FlowRule(priority=rule.priority, match=match)


def peering_match(remote_cidr: str) -> str:
    return f"ip,nw_dst={remote_cidr}"


def peering_rule(remote_cidr: str) -> FlowRule:
    """피어링 상대 VPC CIDR 로 향하는 트래픽을 허용하는 플로우."""
    return FlowRule(priority=PEERING_PRIORITY, match=peering_match(remote_cidr))
