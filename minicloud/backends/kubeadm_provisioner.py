# minicloud/backends/kubeadm_provisioner.py
import logging
import shlex
from typing import List

from minicloud.backends.exceptions import BackendError
from minicloud.backends.interfaces import ClusterProvisioner
from minicloud.database import models
from minicloud.services.context import RequestContext
from minicloud.services.exceptions import CloudError, NotFoundError
from minicloud.services.instance_service import InstanceService

logger = logging.getLogger(__name__)

ADMIN_KUBECONFIG = "/etc/kubernetes/admin.conf"
POD_NETWORK_CIDR = "192.168.0.0/16"
HA_CONTROL_PLANES = 3


class KubeadmProvisioner(ClusterProvisioner):
    """
    클러스터 노드를 일반 인스턴스로 띄우고 kubeadm 으로 구성하는 프로비저너.
    노드 명령은 InstanceService.exec_command 로 실행합니다.
    """

    def __init__(self, instance_service: InstanceService, node_image: str = "ubuntu",
                 node_type: str = "standard-1"):
        self.instance_service = instance_service
        self.node_image = node_image
        self.node_type = node_type

    @staticmethod
    def control_plane_names(cluster: models.Cluster) -> List[str]:
        count = HA_CONTROL_PLANES if cluster.ha_enabled else 1
        return [f"{cluster.name}-cp-{i}" for i in range(count)]

    @staticmethod
    def worker_names(cluster: models.Cluster) -> List[str]:
        return [f"{cluster.name}-worker-{i}" for i in range(cluster.worker_count or 0)]

    def provision(self, ctx: RequestContext, cluster: models.Cluster) -> str:
        launched = []
        try:
            control_planes = self.control_plane_names(cluster)
            primary = self._launch_node(ctx, cluster, control_planes[0], launched)
            self._run(ctx, primary, [
                "kubeadm", "init",
                f"--kubernetes-version={cluster.version}",
                f"--pod-network-cidr={POD_NETWORK_CIDR}",
            ])
            join_cmd = shlex.split(self._run(ctx, primary, ["kubeadm", "token", "create", "--print-join-command"]))
            if not join_cmd:
                raise BackendError("kubeadm did not print a join command")

            if len(control_planes) > 1:
                output = self._run(ctx, primary, ["kubeadm", "init", "phase", "upload-certs", "--upload-certs"])
                certificate_key = output.strip().splitlines()[-1] if output.strip() else ""
                for name in control_planes[1:]:
                    node = self._launch_node(ctx, cluster, name, launched)
                    self._run(ctx, node, join_cmd + ["--control-plane", "--certificate-key", certificate_key])

            for name in self.worker_names(cluster):
                node = self._launch_node(ctx, cluster, name, launched)
                self._run(ctx, node, join_cmd)

            kubeconfig = self._run(ctx, primary, ["cat", ADMIN_KUBECONFIG])
            if not kubeconfig.strip():
                raise BackendError(f"{ADMIN_KUBECONFIG} is empty on {primary}")
            return kubeconfig
        except Exception:
            logger.error("Provisioning of cluster %s failed, removing %d node(s)", cluster.id, len(launched))
            for instance_id in reversed(launched):
                self._terminate(ctx, instance_id)
            raise

    def deprovision(self, ctx: RequestContext, cluster: models.Cluster) -> None:
        for name in self.worker_names(cluster) + self.control_plane_names(cluster):
            self._terminate(ctx, name, strict=True)

    def upgrade(self, ctx: RequestContext, cluster: models.Cluster, version: str) -> None:
        control_planes = self.control_plane_names(cluster)
        self._run(ctx, control_planes[0], ["kubeadm", "upgrade", "apply", version, "-y"])
        for name in control_planes[1:] + self.worker_names(cluster):
            self._run(ctx, name, ["kubeadm", "upgrade", "node"])

    def _launch_node(self, ctx: RequestContext, cluster: models.Cluster, name: str, launched: list) -> str:
        instance = self.instance_service.launch_instance(
            ctx, name, self.node_image, instance_type=self.node_type, vpc_id=cluster.vpc_id,
        )
        launched.append(instance.id)
        logger.info("Cluster %s node %s launched (%s)", cluster.id, name, instance.id)
        return instance.id

    def _run(self, ctx: RequestContext, node: str, cmd: List[str]) -> str:
        try:
            return self.instance_service.exec_command(ctx, node, cmd)
        except CloudError as e:
            raise BackendError(f"'{' '.join(cmd[:3])}' failed on {node}: {e}") from e

    def _terminate(self, ctx: RequestContext, node: str, strict: bool = False):
        try:
            self.instance_service.terminate_instance(ctx, node)
        except NotFoundError:
            pass
        except CloudError as e:
            if strict:
                raise BackendError(f"failed to remove node {node}: {e}") from e
            logger.warning("Failed to remove node %s: %s", node, e)
