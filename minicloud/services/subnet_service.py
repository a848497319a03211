# minicloud/services/subnet_service.py
import logging
from typing import List, Optional

from minicloud.database import models
from minicloud.repositories.interfaces import IInstanceRepository, ISubnetRepository
from minicloud.services.audit_service import AuditService, safe_audit
from minicloud.services.context import RequestContext
from minicloud.services.exceptions import ConflictError, InvalidInputError
from minicloud.services.helpers import find_by_id_or_name
from minicloud.services.vpc_service import VpcService
from minicloud.utils.ip_math import cidrs_overlap, gateway_ip, is_within, parse_cidr

logger = logging.getLogger(__name__)


class SubnetService:
    def __init__(self, subnet_repo: ISubnetRepository, instance_repo: IInstanceRepository,
                 vpc_service: VpcService, audit: Optional[AuditService] = None):
        self.subnet_repo = subnet_repo
        self.instance_repo = instance_repo
        self.vpc_service = vpc_service
        self.audit = audit

    def create_subnet(self, ctx: RequestContext, vpc_id: str, name: str, cidr_block: str,
                      availability_zone: str = "") -> models.Subnet:
        """
        VPC 안에 서브넷을 생성합니다.

        CIDR 은 VPC CIDR 안에 완전히 포함되어야 하고, 같은 VPC 의 다른 서브넷과 겹치면 안 됩니다.
        게이트웨이 IP 는 네트워크 주소 + 1 입니다.

        Raises:
            InvalidInputError: CIDR 이 잘못되었거나 VPC 범위를 벗어날 때.
            ConflictError: 기존 서브넷과 CIDR 이 겹칠 때.
        """
        ctx.check_cancelled()
        vpc = self.vpc_service.get_vpc(ctx, vpc_id)
        if not name:
            raise InvalidInputError("subnet name is required")
        cidr = str(parse_cidr(cidr_block))
        if not is_within(cidr, vpc.cidr_block):
            raise InvalidInputError(f"subnet CIDR {cidr} must be within VPC CIDR range {vpc.cidr_block}")

        for sibling in self.subnet_repo.list_by_vpc(ctx.tenant_id, vpc.id):
            if cidrs_overlap(cidr, sibling.cidr_block):
                raise ConflictError(f"subnet CIDR {cidr} overlaps subnet '{sibling.name}' ({sibling.cidr_block})")
            if sibling.name == name:
                raise ConflictError(f"subnet '{name}' already exists in VPC '{vpc.name}'")

        subnet = models.Subnet(
            tenant_id=ctx.tenant_id,
            user_id=ctx.user_id,
            vpc_id=vpc.id,
            name=name,
            cidr_block=cidr,
            gateway_ip=gateway_ip(cidr),
            availability_zone=availability_zone or "",
            status="AVAILABLE",
        )
        subnet = self.subnet_repo.create(subnet)
        safe_audit(self.audit, ctx, "subnet.create", "subnet", subnet.id,
                   {"vpc_id": vpc.id, "name": name, "cidr_block": cidr})
        logger.info("Subnet %s (%s) created in VPC %s, gateway %s", subnet.id, cidr, vpc.id, subnet.gateway_ip)
        return subnet

    def get_subnet(self, ctx: RequestContext, id_or_name: str, vpc_id: str = "") -> models.Subnet:
        vpc = self.vpc_service.get_vpc(ctx, vpc_id) if vpc_id else None
        return find_by_id_or_name(
            "Subnet", id_or_name,
            lambda subnet_id: self.subnet_repo.find_by_id(ctx.tenant_id, subnet_id),
            lambda name: self.subnet_repo.find_by_name(ctx.tenant_id, vpc.id, name) if vpc else None,
        )

    def list_subnets(self, ctx: RequestContext, vpc_id: str) -> List[models.Subnet]:
        vpc = self.vpc_service.get_vpc(ctx, vpc_id)
        return self.subnet_repo.list_by_vpc(ctx.tenant_id, vpc.id)

    def delete_subnet(self, ctx: RequestContext, subnet_id: str) -> bool:
        """서브넷을 삭제합니다. 인스턴스가 남아 있으면 ConflictError 를 발생시킵니다."""
        ctx.check_cancelled()
        subnet = self.get_subnet(ctx, subnet_id)
        if self.instance_repo.count_by_subnet(subnet.id) > 0:
            raise ConflictError(f"subnet '{subnet.name}' still has instances.")
        self.subnet_repo.delete(subnet)
        safe_audit(self.audit, ctx, "subnet.delete", "subnet", subnet.id)
        return True
