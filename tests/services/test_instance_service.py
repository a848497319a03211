# tests/services/test_instance_service.py
import pytest

from minicloud.backends.exceptions import BackendError
from minicloud.services.exceptions import (
    ConflictError,
    InstanceNotRunningError,
    InternalError,
    InvalidInputError,
    NotFoundError,
    OperationCancelledError,
    QuotaExceededError,
)
from minicloud.services.context import RequestContext
from minicloud.services.instance_service import VolumeAttachment

# ===================================================================
#  테스트를 위한 Fixture 설정
# ===================================================================

@pytest.fixture
def subnet(services, ctx):
    """10.0.0.0/16 VPC 안의 10.0.1.0/24 서브넷."""
    vpc = services.vpcs.create_vpc(ctx, "app-vpc", "10.0.0.0/16")
    return services.subnets.create_subnet(ctx, vpc.id, "app-subnet", "10.0.1.0/24")


# ===================================================================
#  launch_instance 테스트 스위트
# ===================================================================
class TestLaunchInstance:
    def test_ip_allocation_skips_gateway(self, services, ctx, subnet):
        """게이트웨이(.1) 다음 주소부터 순서대로 할당되는지 테스트합니다."""
        # === Act ===
        first = services.instances.launch_instance(ctx, "web-1", "alpine", subnet_id=subnet.id)
        second = services.instances.launch_instance(ctx, "web-2", "alpine", subnet_id=subnet.id)

        # === Assert ===
        assert subnet.gateway_ip == "10.0.1.1"
        assert first.private_ip == "10.0.1.2"
        assert second.private_ip == "10.0.1.3"
        assert first.status == "RUNNING"
        assert first.vpc_id == subnet.vpc_id

    def test_network_wiring(self, services, backends, ctx, subnet):
        """컨테이너 생성 후 veth 생성, 브리지 연결, IP 설정이 차례로 호출되는지 테스트합니다."""
        instance = services.instances.launch_instance(ctx, "web-1", "alpine", ports="8080:80")

        backends.compute.create_container.assert_called_once()
        name, image, ports, network_id, mounts, env, cmd = backends.compute.create_container.call_args[0]
        assert name == f"minicloud-{instance.id[:8]}"
        assert image == "/rootfs/alpine"
        assert ports == ["8080:80"]
        assert cmd == ["/sbin/init"]
        # 서브넷 없이 띄운 인스턴스는 네트워크 연결을 하지 않습니다.
        backends.network.create_veth_pair.assert_not_called()

        wired = services.instances.launch_instance(ctx, "web-2", "alpine", subnet_id=subnet.id)
        host_end, container_end = backends.network.create_veth_pair.call_args[0]
        vpc = services.vpcs.get_vpc(ctx, subnet.vpc_id)
        backends.network.attach_veth_to_bridge.assert_called_once_with(vpc.network_id, host_end)
        backends.network.set_veth_ip.assert_called_once_with(container_end, "10.0.1.2", "24")
        assert wired.ovs_port == host_end

    def test_released_ip_is_reused(self, services, ctx, subnet):
        first = services.instances.launch_instance(ctx, "web-1", "alpine", subnet_id=subnet.id)
        services.instances.launch_instance(ctx, "web-2", "alpine", subnet_id=subnet.id)

        services.instances.terminate_instance(ctx, first.id)
        third = services.instances.launch_instance(ctx, "web-3", "alpine", subnet_id=subnet.id)

        assert third.private_ip == "10.0.1.2"

    def test_subnet_exhaustion(self, services, ctx):
        vpc = services.vpcs.create_vpc(ctx, "tiny", "10.9.0.0/16")
        tiny = services.subnets.create_subnet(ctx, vpc.id, "tiny", "10.9.0.0/30")
        # /30 에는 게이트웨이(.1)를 빼면 .2 하나만 남습니다.
        services.instances.launch_instance(ctx, "only", "alpine", subnet_id=tiny.id)

        with pytest.raises(ConflictError):
            services.instances.launch_instance(ctx, "overflow", "alpine", subnet_id=tiny.id)

    def test_duplicate_name(self, services, ctx):
        services.instances.launch_instance(ctx, "web", "alpine")
        with pytest.raises(ConflictError):
            services.instances.launch_instance(ctx, "web", "alpine")

    @pytest.mark.parametrize("ports", ["80", "0:80", "8080:70000", ",".join(f"{p}:{p}" for p in range(1, 12))])
    def test_invalid_port_mappings(self, services, backends, ctx, ports):
        with pytest.raises(InvalidInputError):
            services.instances.launch_instance(ctx, "web", "alpine", ports=ports)
        backends.compute.create_container.assert_not_called()

    def test_unknown_image(self, services, ctx):
        with pytest.raises(InvalidInputError):
            services.instances.launch_instance(ctx, "web", "no-such-image")

    def test_container_failure_frees_reservation(self, services, backends, ctx, subnet):
        """컨테이너 생성이 실패하면 InternalError 가 발생하고, 예약했던 IP 가 해제되어야 합니다."""
        # === Arrange ===
        backends.compute.create_container.side_effect = BackendError("lxc define failed")

        # === Act & Assert ===
        with pytest.raises(InternalError):
            services.instances.launch_instance(ctx, "doomed", "alpine", subnet_id=subnet.id)

        backends.compute.remove_container.assert_not_called()
        assert services.instances.list_instances(ctx) == []
        events = services.events.list_events(ctx)
        assert [e.action for e in events] == ["INSTANCE_LAUNCH_FAILED"]

        # 다음 인스턴스는 같은 IP 를 다시 받습니다.
        backends.compute.create_container.side_effect = None
        backends.compute.create_container.return_value = "ctr-ok"
        retry = services.instances.launch_instance(ctx, "retry", "alpine", subnet_id=subnet.id)
        assert retry.private_ip == "10.0.1.2"

    def test_network_failure_rolls_back_container_and_veth(self, services, backends, ctx, subnet):
        """브리지 연결이 실패하면 만든 veth 와 컨테이너를 역순으로 정리하는지 테스트합니다."""
        backends.network.attach_veth_to_bridge.side_effect = BackendError("no such bridge")

        with pytest.raises(InternalError):
            services.instances.launch_instance(ctx, "doomed", "alpine", subnet_id=subnet.id)

        host_end = backends.network.create_veth_pair.call_args[0][0]
        backends.network.delete_veth_pair.assert_called_once_with(host_end)
        backends.compute.remove_container.assert_called_once()
        assert services.instances.list_instances(ctx) == []

    def test_cancelled_request_does_nothing(self, services, backends, ctx):
        ctx.cancel()
        with pytest.raises(OperationCancelledError):
            services.instances.launch_instance(ctx, "web", "alpine")
        backends.compute.create_container.assert_not_called()

    def test_quota_is_consumed(self, services, ctx):
        tenant = services.tenants.create_tenant(ctx, "Acme", "acme")
        services.tenants.update_quota(ctx, tenant.id, {"instances": 1})
        tenant_ctx = RequestContext(user_id=ctx.user_id, tenant_id=tenant.id)

        services.instances.launch_instance(tenant_ctx, "web-1", "alpine")
        with pytest.raises(QuotaExceededError):
            services.instances.launch_instance(tenant_ctx, "web-2", "alpine")

        assert services.tenants.tenant_repo.get_quota(tenant.id).used_instances == 1


# ===================================================================
#  terminate_instance 테스트 스위트 (볼륨 해제)
# ===================================================================
class TestTerminateInstance:
    def test_terminate_releases_volume(self, services, backends, ctx):
        """인스턴스를 종료하면 연결된 볼륨이 AVAILABLE 로 돌아가야 합니다."""
        # === Arrange ===
        volume = services.volumes.create_volume(ctx, "data", 5)
        instance = services.instances.launch_instance(
            ctx, "db", "alpine", volumes=[VolumeAttachment(volume=volume.id, mount_path="/data")],
        )
        in_use = services.volumes.get_volume(ctx, volume.id)
        assert in_use.status == "IN_USE"
        assert in_use.instance_id == instance.id
        _, _, _, _, mounts, _, _ = backends.compute.create_container.call_args[0]
        assert mounts == [f"{volume.backend_path}:/data"]

        # === Act ===
        services.instances.terminate_instance(ctx, instance.id)

        # === Assert ===
        released = services.volumes.get_volume(ctx, volume.id)
        assert released.status == "AVAILABLE"
        assert released.instance_id is None
        assert released.mount_path == ""
        backends.compute.remove_container.assert_called_once_with(instance.container_id)
        with pytest.raises(NotFoundError):
            services.instances.get_instance(ctx, instance.id)

    def test_backend_failure_preserves_volume_and_record(self, services, backends, ctx):
        """컨테이너 제거가 실패하면 볼륨과 인스턴스 기록이 그대로 남아야 합니다."""
        volume = services.volumes.create_volume(ctx, "data", 5)
        instance = services.instances.launch_instance(
            ctx, "db", "alpine", volumes=[VolumeAttachment(volume=volume.id, mount_path="/data")],
        )
        backends.compute.remove_container.side_effect = BackendError("domain busy")

        with pytest.raises(InternalError):
            services.instances.terminate_instance(ctx, instance.id)

        assert services.volumes.get_volume(ctx, volume.id).status == "IN_USE"
        assert services.instances.get_instance(ctx, instance.id).status == "RUNNING"

    def test_volume_in_use_cannot_be_attached_again(self, services, ctx):
        volume = services.volumes.create_volume(ctx, "data", 5)
        services.instances.launch_instance(ctx, "a", "alpine", volumes=[VolumeAttachment(volume.id, "/data")])

        with pytest.raises(ConflictError):
            services.instances.launch_instance(ctx, "b", "alpine", volumes=[VolumeAttachment(volume.id, "/data")])

    def test_dns_unregistered(self, services, backends, ctx, subnet):
        instance = services.instances.launch_instance(ctx, "web", "alpine", subnet_id=subnet.id)
        backends.dns.register_instance.assert_called_once()

        services.instances.terminate_instance(ctx, instance.id)

        backends.dns.unregister_instance.assert_called_once_with(instance.id)


# ===================================================================
#  stop / start / logs 테스트 스위트
# ===================================================================
class TestLifecycle:
    def test_stop_and_start(self, services, backends, ctx):
        instance = services.instances.launch_instance(ctx, "web", "alpine")

        stopped = services.instances.stop_instance(ctx, "web")
        assert stopped.status == "STOPPED"
        backends.compute.stop_container.assert_called_once_with(instance.container_id)

        # 이미 정지된 인스턴스를 다시 정지해도 백엔드를 부르지 않습니다.
        services.instances.stop_instance(ctx, "web")
        assert backends.compute.stop_container.call_count == 1

        started = services.instances.start_instance(ctx, "web")
        assert started.status == "RUNNING"
        backends.compute.start_container.assert_called_once_with(instance.container_id)

    def test_exec_requires_running(self, services, ctx):
        services.instances.launch_instance(ctx, "web", "alpine")
        services.instances.stop_instance(ctx, "web")

        with pytest.raises(InstanceNotRunningError):
            services.instances.exec_command(ctx, "web", ["ls"])

    def test_logs(self, services, backends, ctx):
        instance = services.instances.launch_instance(ctx, "web", "alpine")
        backends.compute.get_logs.return_value = "booted\n"

        assert services.instances.get_instance_logs(ctx, "web", tail=10) == "booted\n"
        backends.compute.get_logs.assert_called_once_with(instance.container_id, 10)
