# minicloud/services/loadbalancer_service.py
import logging
from typing import List, Optional

from minicloud.database import models
from minicloud.repositories.interfaces import IInstanceRepository, ILoadBalancerRepository
from minicloud.services.audit_service import AuditService, safe_audit
from minicloud.services.context import RequestContext
from minicloud.services.exceptions import ConflictError, CrossVPCError, InvalidInputError, NotFoundError
from minicloud.services.vpc_service import VpcService

logger = logging.getLogger(__name__)

ALGORITHMS = ("round-robin", "least-conn")
DEFAULT_ALGORITHM = "round-robin"


class LoadBalancerService:
    """
    로드밸런서의 원하는 상태만 기록합니다. 프록시 배포와 헬스 체크는 LBWorker 가 수렴시킵니다.
    """

    def __init__(self, lb_repo: ILoadBalancerRepository, instance_repo: IInstanceRepository,
                 vpc_service: VpcService, audit: Optional[AuditService] = None):
        self.lb_repo = lb_repo
        self.instance_repo = instance_repo
        self.vpc_service = vpc_service
        self.audit = audit

    def create_lb(self, ctx: RequestContext, name: str, vpc_id: str, port: int,
                  algorithm: str = "", idempotency_key: str = "") -> models.LoadBalancer:
        """
        CREATING 상태의 로드밸런서를 저장합니다.
        같은 idempotency_key 로 다시 호출하면 새로 만들지 않고 기존 로드밸런서를 반환합니다.

        Raises:
            InvalidInputError: 포트나 알고리즘이 잘못되었을 때.
            NotFoundError: VPC 가 없을 때.
        """
        ctx.check_cancelled()
        if idempotency_key:
            existing = self.lb_repo.find_by_idempotency_key(ctx.tenant_id, idempotency_key)
            if existing:
                return existing

        if not name:
            raise InvalidInputError("load balancer name is required")
        if not isinstance(port, int) or not 1 <= port <= 65535:
            raise InvalidInputError(f"port {port} out of range 1-65535")
        algorithm = algorithm or DEFAULT_ALGORITHM
        if algorithm not in ALGORITHMS:
            raise InvalidInputError(f"unsupported algorithm '{algorithm}', expected one of {', '.join(ALGORITHMS)}")
        vpc = self.vpc_service.get_vpc(ctx, vpc_id)

        lb = models.LoadBalancer(
            tenant_id=ctx.tenant_id,
            user_id=ctx.user_id,
            name=name,
            vpc_id=vpc.id,
            port=port,
            algorithm=algorithm,
            status="CREATING",
            idempotency_key=idempotency_key or None,
        )
        try:
            lb = self.lb_repo.create(lb)
        except ConflictError:
            # 같은 키로 동시에 들어온 요청이 먼저 저장된 경우
            existing = self.lb_repo.find_by_idempotency_key(ctx.tenant_id, idempotency_key) if idempotency_key else None
            if existing:
                return existing
            raise

        safe_audit(self.audit, ctx, "lb.create", "loadbalancer", lb.id, {"name": name, "vpc_id": vpc.id, "port": port})
        return lb

    def get_lb(self, ctx: RequestContext, lb_id: str) -> models.LoadBalancer:
        lb = self.lb_repo.find_by_id(ctx.tenant_id, lb_id)
        if not lb or lb.status == "DELETED":
            raise NotFoundError(f"Load balancer '{lb_id}' not found.")
        return lb

    def list_lbs(self, ctx: RequestContext) -> List[models.LoadBalancer]:
        return [lb for lb in self.lb_repo.list_by_tenant(ctx.tenant_id) if lb.status != "DELETED"]

    def add_target(self, ctx: RequestContext, lb_id: str, instance_id: str, port: int,
                   weight: int = 1) -> models.LBTarget:
        """
        인스턴스를 타겟으로 등록합니다. 인스턴스는 로드밸런서와 같은 VPC 에 있어야 합니다.

        Raises:
            CrossVPCError: 인스턴스의 VPC 가 로드밸런서의 VPC 와 다를 때. (타겟은 저장되지 않습니다)
            InvalidInputError: 포트가 범위를 벗어나거나 weight < 1 일 때.
            ConflictError: 이미 등록된 인스턴스일 때.
        """
        ctx.check_cancelled()
        lb = self.get_lb(ctx, lb_id)
        instance = self.instance_repo.find_by_id(ctx.tenant_id, instance_id)
        if not instance:
            raise NotFoundError(f"Instance '{instance_id}' not found.")
        if instance.vpc_id != lb.vpc_id:
            raise CrossVPCError(f"instance {instance.id} is not in the VPC of load balancer '{lb.name}'")
        if not isinstance(port, int) or not 1 <= port <= 65535:
            raise InvalidInputError(f"port {port} out of range 1-65535")
        weight = 1 if weight is None else weight
        if weight < 1:
            raise InvalidInputError("weight must be >= 1")
        if any(t.instance_id == instance.id for t in self.lb_repo.list_targets(lb.id)):
            raise ConflictError(f"instance {instance.id} is already a target of '{lb.name}'")

        target = self.lb_repo.add_target(models.LBTarget(
            lb_id=lb.id,
            instance_id=instance.id,
            port=port,
            weight=weight,
            health="unknown",
        ))
        safe_audit(self.audit, ctx, "lb.add_target", "loadbalancer", lb.id,
                   {"instance_id": instance.id, "port": port, "weight": weight})
        return target

    def remove_target(self, ctx: RequestContext, lb_id: str, instance_id: str) -> bool:
        ctx.check_cancelled()
        lb = self.get_lb(ctx, lb_id)
        if not self.lb_repo.remove_target(lb.id, instance_id):
            raise NotFoundError(f"Instance '{instance_id}' is not a target of '{lb.name}'.")
        safe_audit(self.audit, ctx, "lb.remove_target", "loadbalancer", lb.id, {"instance_id": instance_id})
        return True

    def list_targets(self, ctx: RequestContext, lb_id: str) -> List[models.LBTarget]:
        lb = self.get_lb(ctx, lb_id)
        return self.lb_repo.list_targets(lb.id)

    def delete_lb(self, ctx: RequestContext, lb_id: str) -> models.LoadBalancer:
        """DELETED 로 표시만 합니다. 프록시 제거와 행 삭제는 워커가 수행합니다."""
        ctx.check_cancelled()
        lb = self.get_lb(ctx, lb_id)
        lb.status = "DELETED"
        lb = self.lb_repo.update(lb)
        safe_audit(self.audit, ctx, "lb.delete", "loadbalancer", lb.id, {"name": lb.name})
        return lb
