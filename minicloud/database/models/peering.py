from sqlalchemy import Column, Index, String, text

from ..database import Base
from .base import OwnedResourceMixin

_NON_TERMINAL = text("status IN ('PENDING', 'ACTIVE')")


class VPCPeering(OwnedResourceMixin, Base):
    """
    두 VPC 사이의 피어링 연결. 수락되면 양쪽 브리지에 상대 CIDR 로 향하는 플로우가 설치됩니다.
    pair_key 는 정렬된 두 VPC id 로, 종료되지 않은 피어링이 쌍마다 하나만 존재하도록 부분 유니크 인덱스를 겁니다.
    """
    __tablename__ = "vpc_peerings"
    __table_args__ = (
        Index(
            "uq_peering_open_pair",
            "pair_key",
            unique=True,
            sqlite_where=_NON_TERMINAL,
            postgresql_where=_NON_TERMINAL,
        ),
    )

    requester_vpc_id = Column(String(36), nullable=False, index=True)
    accepter_vpc_id = Column(String(36), nullable=False, index=True)
    pair_key = Column(String, nullable=False)
    status = Column(String, nullable=False, default="PENDING")

    @staticmethod
    def make_pair_key(vpc_a: str, vpc_b: str) -> str:
        return ":".join(sorted((vpc_a, vpc_b)))
