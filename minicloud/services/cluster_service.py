# minicloud/services/cluster_service.py
import logging
import re
from typing import List, Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from minicloud.database import models
from minicloud.repositories.interfaces import IClusterRepository
from minicloud.services.audit_service import AuditService, safe_audit
from minicloud.services.context import RequestContext
from minicloud.services.exceptions import ConflictError, InternalError, InvalidInputError, NotFoundError
from minicloud.services.secret_service import SecretService
from minicloud.services.task_queue import TaskQueue
from minicloud.services.vpc_service import VpcService

logger = logging.getLogger(__name__)

CLUSTER_QUEUE = "k8s_jobs"
DEFAULT_VERSION = "v1.29.0"
DEFAULT_WORKERS = 2
VERSION_PATTERN = re.compile(r"^v\d+\.\d+\.\d+$")


def generate_ssh_key() -> str:
    """OpenSSH 형식의 ed25519 개인 키를 만듭니다."""
    key = ed25519.Ed25519PrivateKey.generate()
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.OpenSSH,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


class ClusterService:
    """
    관리형 쿠버네티스 클러스터의 원하는 상태를 기록하고 프로비저닝 작업을 큐에 넣습니다.
    실제 노드 구성은 ClusterWorker 가 k8s_jobs 큐를 소비하며 수행합니다.
    """

    def __init__(self, cluster_repo: IClusterRepository, vpc_service: VpcService, secrets: SecretService,
                 task_queue: TaskQueue, audit: Optional[AuditService] = None):
        self.cluster_repo = cluster_repo
        self.vpc_service = vpc_service
        self.secrets = secrets
        self.task_queue = task_queue
        self.audit = audit

    def create_cluster(self, ctx: RequestContext, name: str, vpc_id: str, version: str = "",
                       workers: int = DEFAULT_WORKERS, ha_enabled: bool = False) -> models.Cluster:
        """
        클러스터를 PENDING 으로 저장하고 프로비저닝 작업을 큐에 넣습니다.
        SSH 키는 생성 직후 소유자 키로 암호화되어 저장됩니다. 큐 등록이 실패하면 FAILED 로 표시합니다.

        Raises:
            InvalidInputError: 이름, 버전, 워커 수가 잘못되었을 때.
            NotFoundError: VPC 가 없을 때.
            InternalError: 작업을 큐에 넣지 못했을 때.
        """
        ctx.check_cancelled()
        if not name:
            raise InvalidInputError("cluster name is required")
        version = version or DEFAULT_VERSION
        if not VERSION_PATTERN.match(version):
            raise InvalidInputError(f"invalid kubernetes version '{version}'")
        if workers is None or workers < 0:
            raise InvalidInputError("worker count must be >= 0")
        vpc = self.vpc_service.get_vpc(ctx, vpc_id)

        cluster = self.cluster_repo.create(models.Cluster(
            tenant_id=ctx.tenant_id,
            user_id=ctx.user_id,
            name=name,
            vpc_id=vpc.id,
            version=version,
            worker_count=workers,
            ha_enabled=bool(ha_enabled),
            status="PENDING",
            ssh_key=self.secrets.encrypt(ctx, ctx.user_id, generate_ssh_key()),
        ))

        try:
            self._enqueue(ctx, cluster, "provision")
        except Exception as e:
            logger.error("Failed to enqueue provisioning of cluster %s: %s", cluster.id, e)
            cluster.status = "FAILED"
            cluster.status_reason = "failed to enqueue provisioning job"
            self.cluster_repo.update(cluster)
            raise InternalError("failed to enqueue cluster provisioning", cause=e) from e

        safe_audit(self.audit, ctx, "cluster.create", "cluster", cluster.id,
                   {"name": name, "vpc_id": vpc.id, "version": version, "workers": workers})
        return cluster

    def get_cluster(self, ctx: RequestContext, cluster_id: str) -> models.Cluster:
        cluster = self.cluster_repo.find_by_id(ctx.tenant_id, cluster_id)
        if not cluster:
            raise NotFoundError(f"Cluster '{cluster_id}' not found.")
        return cluster

    def list_clusters(self, ctx: RequestContext) -> List[models.Cluster]:
        return self.cluster_repo.list_by_tenant(ctx.tenant_id)

    def delete_cluster(self, ctx: RequestContext, cluster_id: str) -> models.Cluster:
        """DELETING 으로 표시하고 해제 작업을 큐에 넣습니다."""
        ctx.check_cancelled()
        cluster = self.get_cluster(ctx, cluster_id)
        if cluster.status == "DELETING":
            return cluster
        cluster.status = "DELETING"
        cluster = self.cluster_repo.update(cluster)
        try:
            self._enqueue(ctx, cluster, "deprovision")
        except Exception as e:
            raise InternalError("failed to enqueue cluster deprovisioning", cause=e) from e
        safe_audit(self.audit, ctx, "cluster.delete", "cluster", cluster.id, {"name": cluster.name})
        return cluster

    def upgrade_cluster(self, ctx: RequestContext, cluster_id: str, version: str) -> models.Cluster:
        ctx.check_cancelled()
        cluster = self.get_cluster(ctx, cluster_id)
        if not VERSION_PATTERN.match(version or ""):
            raise InvalidInputError(f"invalid kubernetes version '{version}'")
        if cluster.status != "RUNNING":
            raise ConflictError(f"cluster '{cluster.name}' must be RUNNING to upgrade (status {cluster.status})")
        cluster.status = "UPGRADING"
        cluster = self.cluster_repo.update(cluster)
        try:
            self._enqueue(ctx, cluster, "upgrade", version=version)
        except Exception as e:
            cluster.status = "RUNNING"
            self.cluster_repo.update(cluster)
            raise InternalError("failed to enqueue cluster upgrade", cause=e) from e
        safe_audit(self.audit, ctx, "cluster.upgrade", "cluster", cluster.id, {"version": version})
        return cluster

    def get_kubeconfig(self, ctx: RequestContext, cluster_id: str) -> str:
        """
        RUNNING 클러스터의 관리자 kubeconfig 를 복호화해 반환합니다.

        Raises:
            InvalidInputError: 클러스터가 RUNNING 이 아닐 때.
            NotFoundError: 저장된 kubeconfig 가 없을 때.
        """
        cluster = self.get_cluster(ctx, cluster_id)
        if cluster.status != "RUNNING":
            raise InvalidInputError(f"cluster '{cluster.name}' is not running (status {cluster.status})")
        if not cluster.kubeconfig:
            raise NotFoundError(f"kubeconfig for cluster '{cluster.name}' not found")
        return self.secrets.decrypt(ctx, cluster.user_id, cluster.kubeconfig)

    def _enqueue(self, ctx: RequestContext, cluster: models.Cluster, job_type: str, **extra):
        payload = {"cluster_id": cluster.id, "user_id": ctx.user_id, "tenant_id": ctx.tenant_id, "type": job_type}
        payload.update(extra)
        self.task_queue.enqueue(CLUSTER_QUEUE, payload)
