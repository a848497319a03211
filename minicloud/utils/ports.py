# minicloud/utils/ports.py
import socket
from typing import List, Optional, Tuple

from minicloud.services.exceptions import InvalidInputError

MAX_PORT_MAPPINGS = 10


def parse_port_mappings(ports: str) -> List[Tuple[int, int]]:
    """
    "8080:80,8443:443" 형식의 포트 매핑 문자열을 (host, container) 튜플 목록으로 변환합니다.

    Raises:
        InvalidInputError: 형식이 틀렸거나, 포트가 1..65535 범위를 벗어나거나, 매핑이 10개를 넘을 때.
    """
    if not ports or not ports.strip():
        return []

    items = [p.strip() for p in ports.split(",") if p.strip()]
    if len(items) > MAX_PORT_MAPPINGS:
        raise InvalidInputError(f"too many port mappings (max {MAX_PORT_MAPPINGS})")

    mappings = []
    for item in items:
        pieces = item.split(":")
        if len(pieces) != 2:
            raise InvalidInputError(f"invalid port mapping '{item}', expected host:container")
        try:
            host_port, container_port = int(pieces[0]), int(pieces[1])
        except ValueError as e:
            raise InvalidInputError(f"invalid port mapping '{item}'", cause=e) from e
        for port in (host_port, container_port):
            if port < 1 or port > 65535:
                raise InvalidInputError(f"port {port} out of range 1-65535")
        mappings.append((host_port, container_port))
    return mappings


def find_host_port(ports: str, container_port: int) -> Optional[int]:
    """매핑 문자열에서 컨테이너 포트에 대응하는 호스트 포트를 찾습니다. 형식이 틀린 항목은 건너뜁니다."""
    for item in (ports or "").split(","):
        pieces = item.strip().split(":")
        if len(pieces) != 2:
            continue
        try:
            host_port, mapped = int(pieces[0]), int(pieces[1])
        except ValueError:
            continue
        if mapped == container_port:
            return host_port
    return None


def pick_free_port(host: str = "127.0.0.1") -> int:
    """커널에 임시 포트를 할당받아 그 번호를 반환합니다. 관리형 서비스 컨테이너의 호스트 포트로 씁니다."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]
