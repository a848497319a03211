# minicloud/services/vpc_service.py
import logging
from typing import List, Optional

from minicloud.backends.interfaces import NetworkBackend
from minicloud.database import models
from minicloud.database.models.base import new_id
from minicloud.repositories.interfaces import (
    IInstanceRepository,
    IPeeringRepository,
    ISubnetRepository,
    IVPCRepository,
)
from minicloud.services.audit_service import AuditService, safe_audit
from minicloud.services.context import RequestContext
from minicloud.services.exceptions import CloudError, ConflictError, InternalError, InvalidInputError
from minicloud.services.helpers import call_backend, find_by_id_or_name
from minicloud.services.tenant_service import QuotaService
from minicloud.utils.identifiers import short_id
from minicloud.utils.ip_math import parse_cidr

logger = logging.getLogger(__name__)

DEFAULT_VPC_CIDR = "10.0.0.0/16"


class VpcService:
    def __init__(self, vpc_repo: IVPCRepository, subnet_repo: ISubnetRepository,
                 instance_repo: IInstanceRepository, peering_repo: IPeeringRepository,
                 network: NetworkBackend, quota: Optional[QuotaService] = None,
                 audit: Optional[AuditService] = None):
        self.vpc_repo = vpc_repo
        self.subnet_repo = subnet_repo
        self.instance_repo = instance_repo
        self.peering_repo = peering_repo
        self.network = network
        self.quota = quota
        self.audit = audit

    @staticmethod
    def bridge_name(vpc_id: str) -> str:
        return f"br-vpc-{short_id(vpc_id)}"

    @staticmethod
    def vxlan_id(vpc_id: str) -> int:
        # id 의 첫 바이트로 VNI 를 만듭니다. (100..355)
        return int(vpc_id.replace("-", "")[:2], 16) + 100

    def create_vpc(self, ctx: RequestContext, name: str, cidr_block: str = "") -> models.VPC:
        """
        VPC 를 생성합니다.

        브리지를 먼저 만들고 DB 에 기록하며, 기록에 실패하면 브리지를 제거해 고아 브리지를 남기지 않습니다.

        Args:
            ctx: 요청 스코프.
            name: 테넌트 내에서 유일한 VPC 이름.
            cidr_block: IPv4 CIDR. 생략하면 10.0.0.0/16.

        Raises:
            InvalidInputError: 이름이 비었거나 CIDR 이 잘못되었을 때.
            ConflictError: 같은 이름의 VPC 가 이미 있을 때.
            QuotaExceededError: VPC 개수 한도를 넘을 때.
            InternalError: 브리지 생성 또는 DB 기록이 실패했을 때.
        """
        ctx.check_cancelled()
        if not name:
            raise InvalidInputError("VPC name is required")
        cidr = str(parse_cidr(cidr_block or DEFAULT_VPC_CIDR))

        if self.quota:
            self.quota.check_quota(ctx, "vpcs", 1)
        if self.vpc_repo.find_by_name(ctx.tenant_id, name):
            raise ConflictError(f"VPC name '{name}' already exists in this tenant.")

        vpc_id = new_id()
        bridge = self.bridge_name(vpc_id)
        vxlan_id = self.vxlan_id(vpc_id)

        call_backend("create OVS bridge", self.network.create_bridge, bridge, vxlan_id)

        vpc = models.VPC(
            id=vpc_id,
            tenant_id=ctx.tenant_id,
            user_id=ctx.user_id,
            name=name,
            cidr_block=cidr,
            network_id=bridge,
            vxlan_id=vxlan_id,
            status="ACTIVE",
        )
        try:
            vpc = self.vpc_repo.create(vpc)
        except Exception as e:
            logger.error("Failed to persist VPC '%s', rolling back bridge %s: %s", name, bridge, e)
            try:
                self.network.delete_bridge(bridge)
            except Exception as rb_err:
                logger.error("Failed to roll back bridge %s: %s", bridge, rb_err)
            if isinstance(e, CloudError):
                raise
            raise InternalError("failed to create VPC in database", cause=e) from e

        if self.quota:
            self.quota.consume(ctx, "vpcs", 1)
        safe_audit(self.audit, ctx, "vpc.create", "vpc", vpc.id, {"name": name, "cidr_block": cidr})
        logger.info("VPC %s (%s, %s) created on bridge %s", vpc.id, name, cidr, bridge)
        return vpc

    def get_vpc(self, ctx: RequestContext, id_or_name: str) -> models.VPC:
        return find_by_id_or_name(
            "VPC", id_or_name,
            lambda vpc_id: self.vpc_repo.find_by_id(ctx.tenant_id, vpc_id),
            lambda name: self.vpc_repo.find_by_name(ctx.tenant_id, name),
        )

    def list_vpcs(self, ctx: RequestContext) -> List[models.VPC]:
        return self.vpc_repo.list_by_tenant(ctx.tenant_id)

    def delete_vpc(self, ctx: RequestContext, id_or_name: str) -> bool:
        """
        VPC 를 삭제합니다. 서브넷, 인스턴스, ACTIVE 피어링이 참조 중이면 거부합니다.
        브리지를 먼저 제거하고 DB 기록을 삭제합니다.

        Raises:
            NotFoundError: VPC 가 없을 때.
            ConflictError: 참조 중인 리소스가 있을 때.
            InternalError: 브리지 제거가 실패했을 때. (기록은 남습니다)
        """
        ctx.check_cancelled()
        vpc = self.get_vpc(ctx, id_or_name)

        if self.subnet_repo.count_by_vpc(vpc.id) > 0:
            raise ConflictError(f"VPC '{vpc.name}' still has subnets.")
        if self.instance_repo.count_by_vpc(vpc.id) > 0:
            raise ConflictError(f"VPC '{vpc.name}' still has instances.")
        if self.peering_repo.count_active_by_vpc(vpc.id) > 0:
            raise ConflictError(f"VPC '{vpc.name}' has an active peering connection.")

        call_backend("remove OVS bridge", self.network.delete_bridge, vpc.network_id)
        logger.info("VPC bridge %s removed", vpc.network_id)

        self.vpc_repo.delete(vpc)
        if self.quota:
            self.quota.release(ctx, "vpcs", 1)
        safe_audit(self.audit, ctx, "vpc.delete", "vpc", vpc.id, {"name": vpc.name})
        return True
