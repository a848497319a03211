# tests/utils/test_ip_math.py
import pytest

from minicloud.services.exceptions import InvalidInputError
from minicloud.utils.ip_math import allocate_ip, cidrs_overlap, gateway_ip, is_within, parse_cidr


def test_parse_cidr_normalizes_host_bits():
    assert str(parse_cidr("10.0.1.5/24")) == "10.0.1.0/24"


@pytest.mark.parametrize("cidr", ["10.0.0.0/33", "banana", "fd00::/64"])
def test_parse_cidr_rejects(cidr):
    with pytest.raises(InvalidInputError):
        parse_cidr(cidr)


@pytest.mark.parametrize("a, b, expected", [
    ("10.0.0.0/16", "10.0.128.0/17", True),
    ("10.0.128.0/17", "10.0.0.0/16", True),
    ("10.0.0.0/16", "10.1.0.0/16", False),
    ("10.0.1.0/24", "10.0.1.0/24", True),
])
def test_cidrs_overlap(a, b, expected):
    assert cidrs_overlap(a, b) is expected


def test_is_within():
    assert is_within("10.0.1.0/24", "10.0.0.0/16")
    assert not is_within("10.0.0.0/15", "10.0.0.0/16")


def test_gateway_ip():
    assert gateway_ip("172.16.4.0/22") == "172.16.4.1"


def test_allocate_ip_picks_lowest_free():
    assert allocate_ip("10.0.1.0/24", "10.0.1.1", []) == "10.0.1.2"
    assert allocate_ip("10.0.1.0/24", "10.0.1.1", ["10.0.1.2", "10.0.1.4"]) == "10.0.1.3"


def test_allocate_ip_exhausted():
    # /30 은 .1(게이트웨이), .2 만 호스트이고 .3 은 브로드캐스트입니다.
    assert allocate_ip("10.0.0.0/30", "10.0.0.1", ["10.0.0.2"]) is None
