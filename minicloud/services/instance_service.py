# minicloud/services/instance_service.py
import logging
import math
import shlex
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from minicloud.backends.interfaces import ComputeBackend, DNSService, NetworkBackend
from minicloud.database import models
from minicloud.database.models.base import new_id
from minicloud.repositories.interfaces import IInstanceRepository, IVolumeRepository
from minicloud.services.audit_service import AuditService, EventService, safe_audit, safe_event
from minicloud.services.context import RequestContext
from minicloud.services.exceptions import (
    CloudError,
    ConflictError,
    InstanceNotRunningError,
    InternalError,
    InvalidInputError,
)
from minicloud.services.helpers import call_backend, find_by_id_or_name
from minicloud.services.image_service import ImageService
from minicloud.services.security_group_service import SecurityGroupService
from minicloud.services.subnet_service import SubnetService
from minicloud.services.tenant_service import QuotaService
from minicloud.services.vpc_service import VpcService
from minicloud.utils.identifiers import short_id
from minicloud.utils.ip_math import allocate_ip, parse_cidr
from minicloud.utils.ports import parse_port_mappings
from minicloud.utils.rollback import RollbackStack

logger = logging.getLogger(__name__)


@dataclass
class VolumeAttachment:
    """인스턴스 생성 시 붙일 볼륨(id 또는 이름)과 컨테이너 안의 마운트 경로."""
    volume: str
    mount_path: str


class InstanceService:
    def __init__(self, instance_repo: IInstanceRepository, volume_repo: IVolumeRepository,
                 image_service: ImageService, vpc_service: VpcService, subnet_service: SubnetService,
                 compute: ComputeBackend, network: NetworkBackend,
                 security_groups: Optional[SecurityGroupService] = None,
                 quota: Optional[QuotaService] = None, events: Optional[EventService] = None,
                 audit: Optional[AuditService] = None, dns: Optional[DNSService] = None):
        self.instance_repo = instance_repo
        self.volume_repo = volume_repo
        self.image_service = image_service
        self.vpc_service = vpc_service
        self.subnet_service = subnet_service
        self.compute = compute
        self.network = network
        self.security_groups = security_groups
        self.quota = quota
        self.events = events
        self.audit = audit
        self.dns = dns

    @staticmethod
    def container_name(instance_id: str) -> str:
        return f"minicloud-{short_id(instance_id)}"

    def launch_instance(self, ctx: RequestContext, name: str, image: str, instance_type: str = "",
                        ports: str = "", vpc_id: str = "", subnet_id: str = "",
                        volumes: Optional[Sequence[VolumeAttachment]] = None,
                        security_groups: Optional[Sequence[str]] = None,
                        env: Optional[Dict[str, str]] = None, cmd: Optional[List[str]] = None) -> models.Instance:
        """
        새 인스턴스(컨테이너)를 생성하고 시작합니다.

        IP 예약(PENDING 행 저장) → 컨테이너 생성 → veth 연결 → 볼륨 IN_USE 전환 → RUNNING 순서로 진행하며,
        중간 단계가 실패하면 이미 수행한 백엔드 단계를 역순으로 정리하고 인스턴스를 ERROR 로 표시한 뒤
        예약한 IP 를 해제합니다.

        Args:
            ctx: 요청 스코프.
            name: 테넌트 내에서 유일한 인스턴스 이름.
            image: 등록된 이미지 이름.
            instance_type: 인스턴스 타입 이름. 생략하면 basic-2.
            ports: "host:container" 매핑을 쉼표로 이은 문자열. (최대 10개)
            vpc_id: 연결할 VPC (id 또는 이름).
            subnet_id: IP 를 할당받을 서브넷 id. 지정하면 VPC 는 서브넷의 VPC 로 정해집니다.
            volumes: 붙일 볼륨 목록. 모두 AVAILABLE 이어야 합니다.
            security_groups: 생성 후 연결할 보안 그룹 목록 (id 또는 이름).
            env: 컨테이너 환경 변수.
            cmd: 실행 명령. 생략하면 이미지의 기본 명령.

        Raises:
            InvalidInputError: 이미지, 타입, 포트, 네트워크 참조가 잘못되었을 때.
            ConflictError: 이름이 중복되었거나, 볼륨이 사용 중이거나, 서브넷에 남은 IP 가 없을 때.
            QuotaExceededError: 인스턴스 수, vCPU, 메모리 한도를 넘을 때.
            InternalError: 컴퓨트/네트워크 백엔드 호출이 실패했을 때.
        """
        # 1. 요청 유효성 검사
        ctx.check_cancelled()
        if not name:
            raise InvalidInputError("instance name is required")
        itype = self.image_service.validate_instance_type(instance_type)
        img = self.image_service.validate_image(image)
        port_list = [f"{h}:{c}" for h, c in parse_port_mappings(ports)]
        if self.instance_repo.find_by_name(ctx.tenant_id, name):
            raise ConflictError(f"Instance name '{name}' already exists in this tenant.")

        vpc = self.vpc_service.get_vpc(ctx, vpc_id) if vpc_id else None
        subnet = self.subnet_service.get_subnet(ctx, subnet_id, vpc.id if vpc else "") if subnet_id else None
        if subnet is not None:
            if vpc is None:
                vpc = self.vpc_service.get_vpc(ctx, subnet.vpc_id)
            elif subnet.vpc_id != vpc.id:
                raise InvalidInputError(f"subnet '{subnet.name}' does not belong to VPC '{vpc.name}'")

        groups = []
        if security_groups:
            if vpc is None or self.security_groups is None:
                raise InvalidInputError("security groups require a VPC")
            groups = [self.security_groups.get_group(ctx, g, vpc.id) for g in security_groups]

        attached = self._resolve_volumes(ctx, volumes or [])

        # 2. 쿼터
        memory_gb = math.ceil(itype.memory_mb / 1024)
        if self.quota:
            self.quota.check_quota(ctx, "instances", 1)
            self.quota.check_quota(ctx, "vcpus", itype.vcpus)
            self.quota.check_quota(ctx, "memory_gb", memory_gb)

        # 3. IP 예약
        instance_id = new_id()
        private_ip = None
        if subnet is not None:
            used = self.instance_repo.list_ips_by_subnet(subnet.id)
            private_ip = allocate_ip(subnet.cidr_block, subnet.gateway_ip, used)
            if private_ip is None:
                raise ConflictError(f"no free IP address left in subnet '{subnet.name}' ({subnet.cidr_block})")

        instance = self.instance_repo.create(models.Instance(
            id=instance_id,
            tenant_id=ctx.tenant_id,
            user_id=ctx.user_id,
            name=name,
            image=img.name,
            instance_type=itype.name,
            vpc_id=vpc.id if vpc else None,
            subnet_id=subnet.id if subnet else None,
            private_ip=private_ip,
            ports=",".join(port_list),
            status="PENDING",
        ))

        rollback = RollbackStack("instance launch")
        try:
            ctx.check_cancelled()
            instance.status = "STARTING"
            instance = self.instance_repo.update(instance)

            # 4. 볼륨 바인드 스펙
            mounts = [f"{vol.backend_path}:{mount_path}" for vol, mount_path in attached]

            # 5. 컨테이너 생성
            container_id = call_backend(
                "launch container", self.compute.create_container,
                self.container_name(instance.id), img.rootfs_path, port_list,
                vpc.network_id if vpc else "", mounts, dict(env or {}),
                list(cmd) if cmd else shlex.split(img.default_cmd or ""),
            )
            rollback.push("remove container", self.compute.remove_container, container_id)

            # 6. 네트워크 연결
            if subnet is not None:
                ctx.check_cancelled()
                host_end = f"veth-{uuid.uuid4().hex[:8]}"
                container_end = f"eth0-{short_id(instance.id)}"
                call_backend("create veth pair", self.network.create_veth_pair, host_end, container_end)
                rollback.push("delete veth pair", self.network.delete_veth_pair, host_end)
                call_backend("attach veth to bridge", self.network.attach_veth_to_bridge, vpc.network_id, host_end)
                prefixlen = str(parse_cidr(subnet.cidr_block).prefixlen)
                call_backend("configure veth IP", self.network.set_veth_ip, container_end, private_ip, prefixlen)
                instance.ovs_port = host_end

            # 7. 볼륨 IN_USE
            for vol, mount_path in attached:
                self._mark_in_use(vol, instance.id, mount_path)
                rollback.push(f"release volume {vol.id}", self._mark_available, vol)

            # 8. RUNNING
            instance.container_id = container_id
            instance.status = "RUNNING"
            instance = self.instance_repo.update(instance)
        except Exception as e:
            logger.error("Instance '%s' launch failed: %s. Starting rollback...", name, e)
            rollback.run()
            self._mark_failed(ctx.detached(), instance, e)
            if isinstance(e, CloudError):
                raise
            raise InternalError(f"failed to launch instance '{name}'", cause=e) from e

        # 9. 쿼터, 이벤트, 감사, DNS
        if self.quota:
            self.quota.consume(ctx, "instances", 1)
            self.quota.consume(ctx, "vcpus", itype.vcpus)
            self.quota.consume(ctx, "memory_gb", memory_gb)
        metadata = {"name": instance.name, "image": instance.image, "ip": instance.private_ip}
        safe_event(self.events, ctx, "INSTANCE_LAUNCH", instance.id, "INSTANCE", metadata)
        safe_audit(self.audit, ctx, "instance.launch", "instance", instance.id, metadata)
        if self.dns is not None and instance.private_ip:
            try:
                self.dns.register_instance(instance, instance.private_ip)
            except Exception as e:
                logger.warning("Failed to register DNS for instance %s: %s", instance.name, e)

        for group in groups:
            try:
                self.security_groups.attach_to_instance(ctx, instance.id, group.id)
            except CloudError as e:
                logger.error("Failed to attach security group %s to %s: %s", group.id, instance.id, e)

        logger.info("Instance %s (%s) running, container %s, ip %s",
                    instance.id, instance.name, instance.container_id, instance.private_ip)
        return instance

    def _resolve_volumes(self, ctx: RequestContext, volumes: Sequence[VolumeAttachment]):
        attached = []
        for attachment in volumes:
            vol = find_by_id_or_name(
                "Volume", attachment.volume,
                lambda volume_id: self.volume_repo.find_by_id(ctx.tenant_id, volume_id),
                lambda volume_name: self.volume_repo.find_by_name(ctx.tenant_id, volume_name),
            )
            if vol.status != "AVAILABLE":
                raise ConflictError(f"volume '{vol.name}' is not available (status {vol.status})")
            if not attachment.mount_path:
                raise InvalidInputError(f"mount path is required for volume '{vol.name}'")
            attached.append((vol, attachment.mount_path))
        return attached

    def _mark_in_use(self, vol: models.Volume, instance_id: str, mount_path: str):
        vol.status = "IN_USE"
        vol.instance_id = instance_id
        vol.mount_path = mount_path
        self.volume_repo.update(vol)

    def _mark_available(self, vol: models.Volume):
        vol.status = "AVAILABLE"
        vol.instance_id = None
        vol.mount_path = ""
        self.volume_repo.update(vol)

    def _mark_failed(self, ctx: RequestContext, instance: models.Instance, error: Exception):
        """
        실패한 인스턴스를 ERROR 로 표시하고 예약 행을 삭제해 IP 를 해제합니다.
        삭제마저 실패하면 ERROR 상태로 남기되 IP 와 백엔드 핸들은 비웁니다.
        """
        instance.status = "ERROR"
        safe_event(self.events, ctx, "INSTANCE_LAUNCH_FAILED", instance.id, "INSTANCE",
                   {"name": instance.name, "error": str(error)})
        try:
            self.instance_repo.delete(instance)
            return
        except Exception as e:
            logger.error("Failed to delete reservation of instance %s: %s", instance.id, e)
        instance.container_id = None
        instance.ovs_port = None
        instance.private_ip = None
        try:
            self.instance_repo.update(instance)
        except Exception as e:
            logger.error("Failed to mark instance %s as ERROR: %s", instance.id, e)

    def get_instance(self, ctx: RequestContext, id_or_name: str) -> models.Instance:
        return find_by_id_or_name(
            "Instance", id_or_name,
            lambda instance_id: self.instance_repo.find_by_id(ctx.tenant_id, instance_id),
            lambda name: self.instance_repo.find_by_name(ctx.tenant_id, name),
        )

    def list_instances(self, ctx: RequestContext) -> List[models.Instance]:
        return self.instance_repo.list_by_tenant(ctx.tenant_id)

    def terminate_instance(self, ctx: RequestContext, id_or_name: str) -> bool:
        """
        인스턴스를 종료하고 모든 관련 리소스를 정리합니다.

        컨테이너를 먼저 제거하고(백엔드 기준), 볼륨을 AVAILABLE 로 돌린 뒤 기록을 삭제합니다.
        컨테이너 제거가 실패하면 볼륨과 기록은 그대로 두고 InternalError 를 발생시킵니다.
        """
        ctx.check_cancelled()
        instance = self.get_instance(ctx, id_or_name)
        # 이후 정리 단계는 호출자가 취소해도 끝까지 진행합니다.
        cleanup_ctx = ctx.detached()
        launched = bool(instance.container_id)

        if instance.container_id:
            call_backend("remove container", self.compute.remove_container, instance.container_id)
            logger.info("Container %s of instance %s removed", instance.container_id, instance.id)

        if instance.ovs_port:
            try:
                self.network.delete_veth_pair(instance.ovs_port)
            except Exception as e:
                logger.warning("Failed to delete veth %s: %s", instance.ovs_port, e)

        if self.security_groups is not None:
            for group_id in self.security_groups.list_group_ids_for_instance(cleanup_ctx, instance.id):
                try:
                    self.security_groups.detach_from_instance(cleanup_ctx, instance.id, group_id)
                except CloudError as e:
                    logger.warning("Failed to detach security group %s: %s", group_id, e)

        for vol in self.volume_repo.list_by_instance(instance.tenant_id, instance.id):
            try:
                self._mark_available(vol)
                logger.info("Volume %s released from instance %s", vol.id, instance.id)
            except Exception as e:
                logger.warning("Failed to release volume %s: %s", vol.id, e)

        if self.dns is not None:
            try:
                self.dns.unregister_instance(instance.id)
            except Exception as e:
                logger.warning("Failed to unregister DNS for instance %s: %s", instance.id, e)

        self.instance_repo.delete(instance)

        if self.quota and launched:
            itype = self.image_service.validate_instance_type(instance.instance_type)
            self.quota.release(cleanup_ctx, "instances", 1)
            self.quota.release(cleanup_ctx, "vcpus", itype.vcpus)
            self.quota.release(cleanup_ctx, "memory_gb", math.ceil(itype.memory_mb / 1024))

        safe_event(self.events, cleanup_ctx, "INSTANCE_TERMINATE", instance.id, "INSTANCE", {})
        safe_audit(self.audit, cleanup_ctx, "instance.terminate", "instance", instance.id, {"name": instance.name})
        return True

    def stop_instance(self, ctx: RequestContext, id_or_name: str) -> models.Instance:
        ctx.check_cancelled()
        instance = self.get_instance(ctx, id_or_name)
        if instance.status == "STOPPED":
            return instance
        if instance.status != "RUNNING" or not instance.container_id:
            raise InstanceNotRunningError(f"instance '{instance.name}' is not running (status {instance.status})")
        call_backend("stop container", self.compute.stop_container, instance.container_id)
        instance.status = "STOPPED"
        instance = self.instance_repo.update(instance)
        safe_audit(self.audit, ctx, "instance.stop", "instance", instance.id, {"name": instance.name})
        return instance

    def start_instance(self, ctx: RequestContext, id_or_name: str) -> models.Instance:
        ctx.check_cancelled()
        instance = self.get_instance(ctx, id_or_name)
        if instance.status == "RUNNING":
            return instance
        if instance.status != "STOPPED" or not instance.container_id:
            raise InvalidInputError(f"instance '{instance.name}' cannot be started from status {instance.status}")
        call_backend("start container", self.compute.start_container, instance.container_id)
        instance.status = "RUNNING"
        instance = self.instance_repo.update(instance)
        safe_audit(self.audit, ctx, "instance.start", "instance", instance.id, {"name": instance.name})
        return instance

    def get_instance_logs(self, ctx: RequestContext, id_or_name: str, tail: int = 100) -> str:
        instance = self._with_container(ctx, id_or_name)
        return call_backend("read container logs", self.compute.get_logs, instance.container_id, tail)

    def get_instance_stats(self, ctx: RequestContext, id_or_name: str) -> dict:
        instance = self._with_container(ctx, id_or_name)
        return call_backend("read container stats", self.compute.get_container_stats, instance.container_id)

    def exec_command(self, ctx: RequestContext, id_or_name: str, cmd: List[str]) -> str:
        if not cmd:
            raise InvalidInputError("command is required")
        instance = self._with_container(ctx, id_or_name)
        if instance.status != "RUNNING":
            raise InstanceNotRunningError(f"instance '{instance.name}' is not running")
        output = call_backend("exec in container", self.compute.exec, instance.container_id, list(cmd))
        safe_audit(self.audit, ctx, "instance.exec", "instance", instance.id, {"cmd": " ".join(cmd)})
        return output

    def _with_container(self, ctx: RequestContext, id_or_name: str) -> models.Instance:
        ctx.check_cancelled()
        instance = self.get_instance(ctx, id_or_name)
        if not instance.container_id:
            raise InstanceNotRunningError(f"instance '{instance.name}' has no active container")
        return instance
