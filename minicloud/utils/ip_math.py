# minicloud/utils/ip_math.py
import ipaddress
from typing import Iterable, Optional

from minicloud.services.exceptions import InvalidInputError


def parse_cidr(cidr: str) -> ipaddress.IPv4Network:
    """
    IPv4 CIDR 문자열을 파싱합니다. 호스트 비트가 설정된 값(예: 10.0.1.5/24)도 네트워크 주소로 정규화합니다.

    Raises:
        InvalidInputError: IPv4 프리픽스가 아닐 때.
    """
    try:
        network = ipaddress.ip_network(str(cidr).strip(), strict=False)
    except ValueError as e:
        raise InvalidInputError(f"invalid CIDR block '{cidr}'", cause=e) from e
    if network.version != 4:
        raise InvalidInputError(f"only IPv4 CIDR blocks are supported: '{cidr}'")
    return network


def cidrs_overlap(a: str, b: str) -> bool:
    """두 프리픽스 중 하나의 네트워크 주소가 다른 쪽에 포함되면 겹치는 것으로 봅니다."""
    net_a = parse_cidr(a)
    net_b = parse_cidr(b)
    return net_a.network_address in net_b or net_b.network_address in net_a


def is_within(inner: str, outer: str) -> bool:
    """inner 프리픽스 전체가 outer 프리픽스 안에 들어가는지 확인합니다."""
    return parse_cidr(inner).subnet_of(parse_cidr(outer))


def gateway_ip(cidr: str) -> str:
    """네트워크 주소에 1을 더한 주소(첫 번째 사용 가능한 호스트)를 반환합니다."""
    network = parse_cidr(cidr)
    return str(network.network_address + 1)


def allocate_ip(cidr: str, gateway: str, used: Iterable[str]) -> Optional[str]:
    """
    서브넷에서 게이트웨이와 사용 중인 주소를 제외한 가장 낮은 호스트 IP를 고릅니다.
    남은 주소가 없으면 None 을 반환합니다.
    """
    network = parse_cidr(cidr)
    taken = {ipaddress.ip_address(ip) for ip in used if ip}
    taken.add(ipaddress.ip_address(gateway))

    candidate = network.network_address + 1
    # /31, /32 에는 브로드캐스트를 따로 제외하지 않습니다.
    last = network.broadcast_address if network.prefixlen >= 31 else network.broadcast_address - 1
    while candidate <= last:
        if candidate not in taken:
            return str(candidate)
        candidate += 1
    return None
