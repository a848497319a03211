# tests/backends/test_kubeadm_provisioner.py
from types import SimpleNamespace
from unittest.mock import MagicMock, call

import pytest

from minicloud.backends.exceptions import BackendError
from minicloud.backends.kubeadm_provisioner import ADMIN_KUBECONFIG, KubeadmProvisioner
from minicloud.services.exceptions import InstanceNotRunningError, InternalError, NotFoundError
from minicloud.services.instance_service import InstanceService

JOIN_COMMAND = "kubeadm join 10.0.1.2:6443 --token abc.def --discovery-token-ca-cert-hash sha256:123"


def make_cluster(**overrides):
    values = {"id": "c-1", "name": "prod", "vpc_id": "vpc-1", "version": "v1.29.0",
              "worker_count": 2, "ha_enabled": False}
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def instances():
    """노드 이름을 id 로 돌려주고, 명령에 따라 kubeadm 출력을 흉내 내는 InstanceService 모의 객체."""
    service = MagicMock(spec=InstanceService)
    service.launch_instance.side_effect = lambda ctx, name, *args, **kwargs: SimpleNamespace(id=f"id-{name}")

    def exec_command(ctx, node, cmd):
        if cmd[:3] == ["kubeadm", "token", "create"]:
            return JOIN_COMMAND + "\n"
        if cmd[:3] == ["kubeadm", "init", "phase"]:
            return "[upload-certs] Using certificate key:\ncertkey123\n"
        if cmd == ["cat", ADMIN_KUBECONFIG]:
            return "apiVersion: v1\n"
        return ""

    service.exec_command.side_effect = exec_command
    return service


class TestProvision:
    def test_single_control_plane(self, ctx, instances):
        """컨트롤 플레인 하나를 init 하고 워커들을 join 시킨 뒤 admin kubeconfig 를 반환해야 합니다."""
        # === Act ===
        kubeconfig = KubeadmProvisioner(instances).provision(ctx, make_cluster())

        # === Assert ===
        assert kubeconfig == "apiVersion: v1\n"
        launched = [c.args[1] for c in instances.launch_instance.call_args_list]
        assert launched == ["prod-cp-0", "prod-worker-0", "prod-worker-1"]
        assert instances.launch_instance.call_args.kwargs == {"instance_type": "standard-1", "vpc_id": "vpc-1"}
        init = instances.exec_command.call_args_list[0].args
        assert init[1] == "id-prod-cp-0"
        assert init[2][:2] == ["kubeadm", "init"]
        assert "--kubernetes-version=v1.29.0" in init[2]
        assert call(ctx, "id-prod-worker-1", JOIN_COMMAND.split()) in instances.exec_command.call_args_list

    def test_ha_control_planes_join_with_certificate_key(self, ctx, instances):
        KubeadmProvisioner(instances).provision(ctx, make_cluster(ha_enabled=True, worker_count=0))

        launched = [c.args[1] for c in instances.launch_instance.call_args_list]
        assert launched == ["prod-cp-0", "prod-cp-1", "prod-cp-2"]
        expected = JOIN_COMMAND.split() + ["--control-plane", "--certificate-key", "certkey123"]
        assert call(ctx, "id-prod-cp-2", expected) in instances.exec_command.call_args_list

    def test_failure_removes_launched_nodes_in_reverse(self, ctx, instances):
        instances.launch_instance.side_effect = [
            SimpleNamespace(id="id-prod-cp-0"),
            SimpleNamespace(id="id-prod-worker-0"),
            InternalError("no capacity"),
        ]

        with pytest.raises(InternalError):
            KubeadmProvisioner(instances).provision(ctx, make_cluster())

        assert instances.terminate_instance.call_args_list == [
            call(ctx, "id-prod-worker-0"), call(ctx, "id-prod-cp-0"),
        ]

    def test_exec_failure_is_backend_error(self, ctx, instances):
        instances.exec_command.side_effect = InstanceNotRunningError("stopped")

        with pytest.raises(BackendError):
            KubeadmProvisioner(instances).provision(ctx, make_cluster(worker_count=0))
        instances.terminate_instance.assert_called_once_with(ctx, "id-prod-cp-0")


class TestDeprovisionAndUpgrade:
    def test_deprovision_tolerates_missing_nodes(self, ctx, instances):
        instances.terminate_instance.side_effect = [None, NotFoundError("gone"), None]

        KubeadmProvisioner(instances).deprovision(ctx, make_cluster())

        assert [c.args[1] for c in instances.terminate_instance.call_args_list] == [
            "prod-worker-0", "prod-worker-1", "prod-cp-0",
        ]

    def test_deprovision_failure_is_raised(self, ctx, instances):
        instances.terminate_instance.side_effect = InternalError("busy")

        with pytest.raises(BackendError):
            KubeadmProvisioner(instances).deprovision(ctx, make_cluster(worker_count=0))

    def test_upgrade(self, ctx, instances):
        KubeadmProvisioner(instances).upgrade(ctx, make_cluster(worker_count=1), "v1.30.0")

        assert instances.exec_command.call_args_list == [
            call(ctx, "prod-cp-0", ["kubeadm", "upgrade", "apply", "v1.30.0", "-y"]),
            call(ctx, "prod-worker-0", ["kubeadm", "upgrade", "node"]),
        ]
