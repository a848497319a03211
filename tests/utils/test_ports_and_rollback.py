# tests/utils/test_ports_and_rollback.py
from unittest.mock import MagicMock

import pytest

from minicloud.services.exceptions import InvalidInputError
from minicloud.utils.identifiers import looks_like_uuid, short_id
from minicloud.utils.ports import find_host_port, parse_port_mappings, pick_free_port
from minicloud.utils.rollback import RollbackStack


# ===================================================================
#  포트 매핑
# ===================================================================
def test_parse_port_mappings():
    assert parse_port_mappings(" 8080:80, 8443:443 ") == [(8080, 80), (8443, 443)]
    assert parse_port_mappings("") == []


@pytest.mark.parametrize("ports", ["80", "a:80", "0:80", "1:2:3", ",".join(["1:1"] * 11)])
def test_parse_port_mappings_rejects(ports):
    with pytest.raises(InvalidInputError):
        parse_port_mappings(ports)


def test_find_host_port_skips_malformed_items():
    assert find_host_port("garbage,9000:80", 80) == 9000
    assert find_host_port("9000:80", 443) is None


def test_pick_free_port():
    assert 0 < pick_free_port() <= 65535


# ===================================================================
#  RollbackStack
# ===================================================================
def test_rollback_runs_in_reverse_and_continues_after_failure():
    """정리 함수는 역순으로 실행되고, 중간에 하나가 실패해도 나머지를 계속 실행해야 합니다."""
    # === Arrange ===
    calls = []
    rollback = RollbackStack("test")
    rollback.push("first", calls.append, "first")
    rollback.push("broken", MagicMock(side_effect=RuntimeError("boom")))
    rollback.push("third", calls.append, "third")

    # === Act ===
    failed = rollback.run()

    # === Assert ===
    assert calls == ["third", "first"]
    assert failed == ["broken"]
    assert len(rollback) == 0


def test_rollback_clear():
    step = MagicMock()
    rollback = RollbackStack("test")
    rollback.push("step", step)

    rollback.clear()

    assert rollback.run() == []
    step.assert_not_called()


# ===================================================================
#  식별자
# ===================================================================
def test_identifiers():
    assert looks_like_uuid("1b4e28ba-2fa1-11d2-883f-0016d3cca427")
    assert not looks_like_uuid("web-1")
    assert not looks_like_uuid(None)
    assert short_id("1b4e28ba-2fa1-11d2") == "1b4e28ba"
