# tests/utils/test_flow_compiler.py
from types import SimpleNamespace

import pytest

from minicloud.utils.flow_compiler import FlowRule, compile_match, compile_rule, peering_rule


@pytest.mark.parametrize("protocol, direction, cidr, port_min, port_max, expected", [
    # 모든 주소를 뜻하는 CIDR 은 생략됩니다.
    ("tcp", "ingress", "", 80, 80, "tcp,tp_dst=80"),
    ("tcp", "ingress", "0.0.0.0/0", 80, 80, "tcp,tp_dst=80"),
    # 방향에 따라 nw_src / nw_dst 가 결정됩니다.
    ("tcp", "ingress", "10.0.0.0/16", 22, 22, "tcp,nw_src=10.0.0.0/16,tp_dst=22"),
    ("udp", "egress", "10.1.0.0/24", 53, 53, "udp,nw_dst=10.1.0.0/24,tp_dst=53"),
    # 범위는 하한값만 내려갑니다.
    ("tcp", "ingress", "", 8000, 8080, "tcp,tp_dst=8000"),
    # 포트가 없는 프로토콜
    ("icmp", "ingress", "192.168.0.0/24", 0, 0, "icmp,nw_src=192.168.0.0/24"),
    ("arp", "egress", "", 0, 0, "arp"),
    ("tcp", "ingress", "", 0, 0, "tcp"),
])
def test_compile_match(protocol, direction, cidr, port_min, port_max, expected):
    assert compile_match(protocol, direction, cidr, port_min, port_max) == expected


def test_compile_rule_keeps_priority():
    rule = SimpleNamespace(protocol="tcp", direction="ingress", cidr=None, port_min=443, port_max=443, priority=200)

    flow = compile_rule(rule)

    assert flow == FlowRule(priority=200, match="tcp,tp_dst=443")
    assert flow.actions == "NORMAL"


def test_peering_rule():
    assert peering_rule("10.20.0.0/16") == FlowRule(priority=500, match="ip,nw_dst=10.20.0.0/16")
