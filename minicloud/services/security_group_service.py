# minicloud/services/security_group_service.py
import logging
from typing import List, Optional

from minicloud.backends.interfaces import NetworkBackend
from minicloud.database import models
from minicloud.repositories.interfaces import IInstanceRepository, ISecurityGroupRepository
from minicloud.services.audit_service import AuditService, safe_audit
from minicloud.services.context import RequestContext
from minicloud.services.exceptions import (
    ConflictError,
    CrossVPCError,
    InternalError,
    InvalidInputError,
    NotFoundError,
)
from minicloud.services.helpers import find_by_id_or_name
from minicloud.services.vpc_service import VpcService
from minicloud.utils.flow_compiler import compile_rule
from minicloud.utils.ip_math import parse_cidr

logger = logging.getLogger(__name__)

PROTOCOLS = ("tcp", "udp", "icmp", "arp")
DIRECTIONS = ("ingress", "egress")
ARP_RULE_PRIORITY = 1000
DEFAULT_RULE_PRIORITY = 100


def validate_rule(protocol: str, direction: str, cidr: str = "", port_min: int = 0, port_max: int = 0,
                  priority: int = DEFAULT_RULE_PRIORITY) -> models.SecurityRule:
    """
    규칙 값을 검증하고 저장 전의 SecurityRule 을 만들어 반환합니다.

    Raises:
        InvalidInputError: 프로토콜/방향이 지원되지 않거나, 포트 범위나 CIDR, 우선순위가 잘못되었을 때.
    """
    protocol = (protocol or "").lower()
    direction = (direction or "").lower()
    if protocol not in PROTOCOLS:
        raise InvalidInputError(f"unsupported protocol '{protocol}', expected one of {', '.join(PROTOCOLS)}")
    if direction not in DIRECTIONS:
        raise InvalidInputError(f"invalid direction '{direction}', expected ingress or egress")

    port_min = port_min or 0
    port_max = port_max or 0
    if protocol in ("tcp", "udp"):
        if port_min < 1 or port_max > 65535:
            raise InvalidInputError(f"{protocol} rules require a port range within 1-65535")
        if port_min > port_max:
            raise InvalidInputError(f"port_min {port_min} is greater than port_max {port_max}")
    elif port_min or port_max:
        raise InvalidInputError(f"{protocol} rules do not take ports")

    if not 0 <= priority <= 65535:
        raise InvalidInputError(f"priority {priority} out of range 0-65535")

    cidr = (cidr or "").strip()
    if cidr:
        cidr = str(parse_cidr(cidr))

    return models.SecurityRule(
        protocol=protocol,
        direction=direction,
        cidr=cidr,
        port_min=port_min,
        port_max=port_max,
        priority=priority,
    )


class SecurityGroupService:
    def __init__(self, sg_repo: ISecurityGroupRepository, instance_repo: IInstanceRepository,
                 vpc_service: VpcService, network: NetworkBackend, audit: Optional[AuditService] = None):
        self.sg_repo = sg_repo
        self.instance_repo = instance_repo
        self.vpc_service = vpc_service
        self.network = network
        self.audit = audit

    def create_group(self, ctx: RequestContext, vpc_id: str, name: str, description: str = "") -> models.SecurityGroup:
        """
        보안 그룹을 생성합니다. ARP 허용 규칙 두 개(ingress, egress, 우선순위 1000)가 항상 포함되며
        VPC 브리지에 바로 설치됩니다. 설치에 실패하면 그룹 기록을 지우고 InternalError 를 발생시킵니다.
        """
        ctx.check_cancelled()
        vpc = self.vpc_service.get_vpc(ctx, vpc_id)
        if not name:
            raise InvalidInputError("security group name is required")
        if self.sg_repo.find_by_name(ctx.tenant_id, vpc.id, name):
            raise ConflictError(f"Security group '{name}' already exists in VPC '{vpc.name}'.")

        group = models.SecurityGroup(
            tenant_id=ctx.tenant_id,
            user_id=ctx.user_id,
            vpc_id=vpc.id,
            name=name,
            description=description or "",
        )
        for direction in DIRECTIONS:
            group.rules.append(models.SecurityRule(protocol="arp", direction=direction, cidr="",
                                                   port_min=0, port_max=0, priority=ARP_RULE_PRIORITY))
        group = self.sg_repo.create(group)

        try:
            self._install_flows(vpc.network_id, group.rules)
        except Exception as e:
            logger.error("Failed to install flows for security group %s: %s", group.id, e)
            self._remove_flows(vpc.network_id, group.rules)
            self.sg_repo.delete(group)
            raise InternalError("failed to install security group flows", cause=e) from e

        safe_audit(self.audit, ctx, "security_group.create", "security_group", group.id,
                   {"name": name, "vpc_id": vpc.id})
        return group

    def get_group(self, ctx: RequestContext, id_or_name: str, vpc_id: str = "") -> models.SecurityGroup:
        vpc = self.vpc_service.get_vpc(ctx, vpc_id) if vpc_id else None
        return find_by_id_or_name(
            "Security group", id_or_name,
            lambda group_id: self.sg_repo.find_by_id(ctx.tenant_id, group_id),
            lambda name: self.sg_repo.find_by_name(ctx.tenant_id, vpc.id, name) if vpc else None,
        )

    def list_groups(self, ctx: RequestContext, vpc_id: str) -> List[models.SecurityGroup]:
        vpc = self.vpc_service.get_vpc(ctx, vpc_id)
        return self.sg_repo.list_by_vpc(ctx.tenant_id, vpc.id)

    def delete_group(self, ctx: RequestContext, group_id: str) -> bool:
        """인스턴스에 연결된 그룹은 삭제할 수 없습니다. 플로우 제거 실패는 로그만 남깁니다."""
        ctx.check_cancelled()
        group = self.get_group(ctx, group_id)
        if self.sg_repo.list_instance_ids(group.id):
            raise ConflictError(f"Security group '{group.name}' is still attached to instances.")
        bridge = self._bridge_for(ctx, group)
        if bridge:
            self._remove_flows(bridge, group.rules)
        self.sg_repo.delete(group)
        safe_audit(self.audit, ctx, "security_group.delete", "security_group", group.id)
        return True

    def add_rule(self, ctx: RequestContext, group_id: str, protocol: str, direction: str, cidr: str = "",
                 port_min: int = 0, port_max: int = 0,
                 priority: int = DEFAULT_RULE_PRIORITY) -> models.SecurityRule:
        """
        규칙을 저장한 뒤 FlowRule 로 컴파일해 VPC 브리지에 설치합니다.
        설치에 실패하면 저장한 규칙을 지우고 InternalError 를 발생시킵니다.
        """
        ctx.check_cancelled()
        group = self.get_group(ctx, group_id)
        rule = validate_rule(protocol, direction, cidr, port_min, port_max, priority)
        vpc = self.vpc_service.get_vpc(ctx, group.vpc_id)

        rule = self.sg_repo.add_rule(group, rule)
        flow = compile_rule(rule)
        try:
            self.network.add_flow_rule(vpc.network_id, flow)
        except Exception as e:
            logger.error("Failed to install flow %s on %s: %s", flow.match, vpc.network_id, e)
            self.sg_repo.delete_rule(rule)
            raise InternalError("failed to install security rule flow", cause=e) from e

        safe_audit(self.audit, ctx, "security_group.add_rule", "security_group", group.id,
                   {"rule_id": rule.id, "match": flow.match})
        return rule

    def remove_rule(self, ctx: RequestContext, rule_id: str) -> bool:
        """
        플로우를 먼저 제거하고 규칙 기록을 삭제합니다.
        브리지에서의 제거가 실패해도 기록은 삭제합니다. (attach/detach 시 재동기화)
        """
        ctx.check_cancelled()
        rule = self.sg_repo.find_rule(rule_id)
        group = self.sg_repo.find_by_id(ctx.tenant_id, rule.group_id) if rule else None
        if rule is None or group is None:
            raise NotFoundError(f"Security rule '{rule_id}' not found.")

        bridge = self._bridge_for(ctx, group)
        match = compile_rule(rule).match
        # 같은 match 로 컴파일되는 규칙은 플로우 하나를 공유합니다. 남는 규칙이 있으면 플로우도 남깁니다.
        shared = any(other.id != rule.id and compile_rule(other).match == match for other in group.rules)
        if bridge and shared:
            logger.info("Flow %s on %s is still used by another rule of group %s", match, bridge, group.id)
        elif bridge:
            try:
                self.network.delete_flow_rule(bridge, match)
            except Exception as e:
                logger.error("Failed to delete flow %s on %s: %s", match, bridge, e)
        else:
            logger.warning("VPC %s not found while removing rule %s", group.vpc_id, rule_id)

        self.sg_repo.delete_rule(rule)
        safe_audit(self.audit, ctx, "security_group.remove_rule", "security_group", group.id, {"rule_id": rule_id})
        return True

    def attach_to_instance(self, ctx: RequestContext, instance_id: str, group_id: str) -> bool:
        """
        인스턴스를 그룹에 연결하고 그룹의 규칙 전체를 브리지에 다시 설치합니다.

        Raises:
            CrossVPCError: 인스턴스가 그룹과 다른 VPC 에 있을 때.
            InternalError: 플로우 설치에 실패했을 때. (연결은 되돌립니다)
        """
        ctx.check_cancelled()
        instance = self.instance_repo.find_by_id(ctx.tenant_id, instance_id)
        if not instance:
            raise NotFoundError(f"Instance '{instance_id}' not found.")
        group = self.get_group(ctx, group_id)
        if instance.vpc_id != group.vpc_id:
            raise CrossVPCError(f"instance {instance.id} is not in the VPC of security group '{group.name}'")

        self.sg_repo.add_instance(group.id, instance.id)
        try:
            self.sync_group_flows(ctx, group)
        except Exception as e:
            self.sg_repo.remove_instance(group.id, instance.id)
            raise InternalError("failed to sync security group flows", cause=e) from e

        safe_audit(self.audit, ctx, "security_group.attach", "instance", instance.id, {"group_id": group.id})
        return True

    def detach_from_instance(self, ctx: RequestContext, instance_id: str, group_id: str) -> bool:
        """연결을 끊고, 그룹에 남은 인스턴스가 없으면 그룹 플로우를 브리지에서 제거합니다."""
        ctx.check_cancelled()
        group = self.get_group(ctx, group_id)
        if not self.sg_repo.remove_instance(group.id, instance_id):
            raise NotFoundError(f"Instance '{instance_id}' is not attached to security group '{group.name}'.")
        if not self.sg_repo.list_instance_ids(group.id):
            self.remove_group_flows(ctx, group)
        safe_audit(self.audit, ctx, "security_group.detach", "instance", instance_id, {"group_id": group.id})
        return True

    def sync_group_flows(self, ctx: RequestContext, group: models.SecurityGroup):
        vpc = self.vpc_service.get_vpc(ctx, group.vpc_id)
        self._install_flows(vpc.network_id, group.rules)

    def remove_group_flows(self, ctx: RequestContext, group: models.SecurityGroup):
        bridge = self._bridge_for(ctx, group)
        if bridge:
            self._remove_flows(bridge, group.rules)

    def _bridge_for(self, ctx: RequestContext, group: models.SecurityGroup) -> Optional[str]:
        try:
            return self.vpc_service.get_vpc(ctx, group.vpc_id).network_id
        except NotFoundError:
            return None

    def _install_flows(self, bridge: str, rules):
        for rule in rules:
            self.network.add_flow_rule(bridge, compile_rule(rule))

    def _remove_flows(self, bridge: str, rules):
        for rule in rules:
            match = compile_rule(rule).match
            try:
                self.network.delete_flow_rule(bridge, match)
            except Exception as e:
                logger.error("Failed to delete flow %s on %s: %s", match, bridge, e)

    def list_group_ids_for_instance(self, ctx: RequestContext, instance_id: str) -> List[str]:
        return self.sg_repo.list_group_ids_by_instance(instance_id)
