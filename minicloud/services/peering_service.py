# minicloud/services/peering_service.py
import logging
from typing import List, Optional

from minicloud.backends.interfaces import NetworkBackend
from minicloud.database import models
from minicloud.repositories.interfaces import IPeeringRepository
from minicloud.services.audit_service import AuditService, safe_audit
from minicloud.services.context import RequestContext
from minicloud.services.exceptions import ConflictError, InternalError, InvalidInputError, NotFoundError
from minicloud.services.vpc_service import VpcService
from minicloud.utils.flow_compiler import peering_match, peering_rule
from minicloud.utils.ip_math import cidrs_overlap
from minicloud.utils.rollback import RollbackStack

logger = logging.getLogger(__name__)


class PeeringService:
    def __init__(self, peering_repo: IPeeringRepository, vpc_service: VpcService,
                 network: NetworkBackend, audit: Optional[AuditService] = None):
        self.peering_repo = peering_repo
        self.vpc_service = vpc_service
        self.network = network
        self.audit = audit

    def create_peering(self, ctx: RequestContext, requester_vpc_id: str, accepter_vpc_id: str) -> models.VPCPeering:
        """
        두 VPC 사이에 PENDING 상태의 피어링을 생성합니다.

        Raises:
            InvalidInputError: 자기 자신과의 피어링이거나 두 VPC 의 CIDR 이 겹칠 때.
            NotFoundError: 둘 중 하나의 VPC 가 이 테넌트에 없을 때.
            ConflictError: 같은 쌍에 PENDING/ACTIVE 피어링이 이미 있을 때.
        """
        ctx.check_cancelled()
        requester = self.vpc_service.get_vpc(ctx, requester_vpc_id)
        accepter = self.vpc_service.get_vpc(ctx, accepter_vpc_id)
        if requester.id == accepter.id:
            raise InvalidInputError("cannot peer a VPC with itself")
        if cidrs_overlap(requester.cidr_block, accepter.cidr_block):
            raise InvalidInputError(
                f"VPC CIDR blocks overlap ({requester.cidr_block}, {accepter.cidr_block}); "
                "peering requires non-overlapping address spaces"
            )
        if self.peering_repo.find_open_by_pair(requester.id, accepter.id):
            raise ConflictError("an active or pending peering already exists between these VPCs")

        peering = models.VPCPeering(
            tenant_id=ctx.tenant_id,
            user_id=ctx.user_id,
            requester_vpc_id=requester.id,
            accepter_vpc_id=accepter.id,
            pair_key=models.VPCPeering.make_pair_key(requester.id, accepter.id),
            status="PENDING",
        )
        peering = self.peering_repo.create(peering)
        safe_audit(self.audit, ctx, "vpc_peering.create", "vpc_peering", peering.id,
                   {"requester_vpc_id": requester.id, "accepter_vpc_id": accepter.id})
        return peering

    def get_peering(self, ctx: RequestContext, peering_id: str) -> models.VPCPeering:
        peering = self.peering_repo.find_by_id(ctx.tenant_id, peering_id)
        if not peering:
            raise NotFoundError(f"VPC peering '{peering_id}' not found.")
        return peering

    def list_peerings(self, ctx: RequestContext) -> List[models.VPCPeering]:
        return self.peering_repo.list_by_tenant(ctx.tenant_id)

    def accept_peering(self, ctx: RequestContext, peering_id: str) -> models.VPCPeering:
        """
        PENDING 피어링을 수락합니다.

        요청 측 브리지에 수락 측 CIDR 로 가는 플로우를, 수락 측 브리지에 요청 측 CIDR 로 가는 플로우를 차례로 설치합니다.
        두 번째 설치가 실패하면 첫 번째 플로우를 제거하고, 어떤 실패든 상태를 FAILED 로 남깁니다.
        """
        ctx.check_cancelled()
        peering = self.get_peering(ctx, peering_id)
        if peering.status != "PENDING":
            raise InvalidInputError("only pending peering connections can be accepted")

        try:
            requester = self.vpc_service.get_vpc(ctx, peering.requester_vpc_id)
            accepter = self.vpc_service.get_vpc(ctx, peering.accepter_vpc_id)
        except NotFoundError as e:
            self.peering_repo.update_status(peering, "FAILED")
            raise InternalError("failed to load peered VPCs", cause=e) from e

        rollback = RollbackStack("peering accept")
        try:
            self.network.add_flow_rule(requester.network_id, peering_rule(accepter.cidr_block))
            rollback.push("remove requester flow", self.network.delete_flow_rule,
                          requester.network_id, peering_match(accepter.cidr_block))
            self.network.add_flow_rule(accepter.network_id, peering_rule(requester.cidr_block))
        except Exception as e:
            logger.error("Failed to establish peering %s: %s", peering.id, e)
            rollback.run()
            self.peering_repo.update_status(peering, "FAILED")
            raise InternalError("failed to establish network peering", cause=e) from e

        peering = self.peering_repo.update_status(peering, "ACTIVE")
        safe_audit(self.audit, ctx, "vpc_peering.accept", "vpc_peering", peering.id)
        logger.info("Peering %s active between %s and %s", peering.id, requester.id, accepter.id)
        return peering

    def reject_peering(self, ctx: RequestContext, peering_id: str) -> models.VPCPeering:
        ctx.check_cancelled()
        peering = self.get_peering(ctx, peering_id)
        if peering.status != "PENDING":
            raise InvalidInputError("only pending peering connections can be rejected")
        peering = self.peering_repo.update_status(peering, "REJECTED")
        safe_audit(self.audit, ctx, "vpc_peering.reject", "vpc_peering", peering.id)
        return peering

    def delete_peering(self, ctx: RequestContext, peering_id: str) -> bool:
        """ACTIVE 피어링이면 양쪽 플로우를 제거한 뒤(개별 실패는 로그) 기록을 삭제합니다."""
        ctx.check_cancelled()
        peering = self.get_peering(ctx, peering_id)
        if peering.status == "ACTIVE":
            self._teardown_flows(ctx, peering)
        self.peering_repo.delete(peering)
        safe_audit(self.audit, ctx, "vpc_peering.delete", "vpc_peering", peering.id)
        return True

    def _teardown_flows(self, ctx: RequestContext, peering: models.VPCPeering):
        pairs = ((peering.requester_vpc_id, peering.accepter_vpc_id),
                 (peering.accepter_vpc_id, peering.requester_vpc_id))
        for local_id, remote_id in pairs:
            try:
                local = self.vpc_service.get_vpc(ctx, local_id)
                remote = self.vpc_service.get_vpc(ctx, remote_id)
                self.network.delete_flow_rule(local.network_id, peering_match(remote.cidr_block))
            except Exception as e:
                logger.warning("Failed to remove peering flow on VPC %s: %s", local_id, e)
