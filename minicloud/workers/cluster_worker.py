# minicloud/workers/cluster_worker.py
import logging
import threading

from minicloud import config
from minicloud.backends.interfaces import ClusterProvisioner
from minicloud.database import models
from minicloud.repositories.interfaces import IClusterRepository
from minicloud.services.cluster_service import CLUSTER_QUEUE
from minicloud.services.context import RequestContext
from minicloud.services.secret_service import SecretService
from minicloud.services.task_queue import TaskQueue

logger = logging.getLogger(__name__)


class ClusterWorker:
    """
    k8s_jobs 큐를 소비해 클러스터를 프로비저닝/해제/업그레이드합니다.

    작업 페이로드의 user_id / tenant_id 로 새 컨텍스트를 만들어 실행하며,
    실패는 사용자에게 드러내지 않고 클러스터 상태(FAILED + status_reason)에 기록합니다.
    """

    def __init__(self, task_queue: TaskQueue, cluster_repo: IClusterRepository,
                 provisioner: ClusterProvisioner, secrets: SecretService, poll_seconds: float = None):
        self.task_queue = task_queue
        self.cluster_repo = cluster_repo
        self.provisioner = provisioner
        self.secrets = secrets
        self.poll_seconds = config.QUEUE_POLL_SECONDS if poll_seconds is None else poll_seconds

    def run(self, stop_event: threading.Event):
        logger.info("Cluster worker started on queue %s", CLUSTER_QUEUE)
        while not stop_event.is_set():
            try:
                handled = self.process_next()
            except Exception as e:
                logger.error("Cluster worker error: %s", e, exc_info=True)
                handled = False
            if not handled:
                stop_event.wait(self.poll_seconds)
        logger.info("Cluster worker stopped")

    def process_next(self) -> bool:
        """큐에서 작업 하나를 꺼내 처리합니다. 큐가 비어 있으면 False."""
        job = self.task_queue.dequeue(CLUSTER_QUEUE)
        if job is None:
            return False
        self.handle_job(job)
        return True

    def handle_job(self, job: dict):
        ctx = RequestContext(user_id=job.get("user_id", ""), tenant_id=job.get("tenant_id", ""))
        cluster = self.cluster_repo.find_by_id(ctx.tenant_id, job.get("cluster_id", ""))
        if cluster is None:
            logger.warning("Cluster %s for job %s no longer exists", job.get("cluster_id"), job.get("type"))
            return

        job_type = job.get("type")
        if job_type == "provision":
            self._provision(ctx, cluster)
        elif job_type == "deprovision":
            self._deprovision(ctx, cluster)
        elif job_type == "upgrade":
            self._upgrade(ctx, cluster, job.get("version", ""))
        else:
            logger.error("Unknown cluster job type '%s' for cluster %s", job_type, cluster.id)

    def _provision(self, ctx: RequestContext, cluster: models.Cluster):
        logger.info("Provisioning cluster %s (%s)", cluster.id, cluster.name)
        cluster.status = "PROVISIONING"
        cluster = self.cluster_repo.update(cluster)
        try:
            kubeconfig = self.provisioner.provision(ctx, cluster)
            cluster.kubeconfig = self.secrets.encrypt(ctx, cluster.user_id, kubeconfig)
        except Exception as e:
            self._fail(cluster, f"provisioning failed: {e}")
            return
        cluster.status = "RUNNING"
        cluster.status_reason = ""
        self.cluster_repo.update(cluster)
        logger.info("Cluster %s is RUNNING", cluster.id)

    def _deprovision(self, ctx: RequestContext, cluster: models.Cluster):
        logger.info("Deprovisioning cluster %s (%s)", cluster.id, cluster.name)
        try:
            self.provisioner.deprovision(ctx, cluster)
        except Exception as e:
            self._fail(cluster, f"deprovisioning failed: {e}")
            return
        self.cluster_repo.delete(cluster)
        logger.info("Cluster %s deleted", cluster.id)

    def _upgrade(self, ctx: RequestContext, cluster: models.Cluster, version: str):
        logger.info("Upgrading cluster %s to %s", cluster.id, version)
        try:
            self.provisioner.upgrade(ctx, cluster, version)
        except Exception as e:
            self._fail(cluster, f"upgrade to {version} failed: {e}")
            return
        cluster.version = version
        cluster.status = "RUNNING"
        cluster.status_reason = ""
        self.cluster_repo.update(cluster)

    def _fail(self, cluster: models.Cluster, reason: str):
        logger.error("Cluster %s: %s", cluster.id, reason)
        cluster.status = "FAILED"
        cluster.status_reason = reason
        self.cluster_repo.update(cluster)
