# tests/workers/test_lb_worker.py
import threading
from unittest.mock import patch

import pytest

from minicloud.app import build_workers
from minicloud.backends.exceptions import BackendError

# ===================================================================
#  테스트를 위한 Fixture 설정
# ===================================================================

@pytest.fixture
def lb_worker(db_session, services, backends):
    worker, _ = build_workers(db_session, services, backends)
    worker.interval = 0
    return worker


@pytest.fixture
def balanced(services, ctx):
    """VPC 하나, 포트 18080:8080 으로 띄운 인스턴스 하나, 그 인스턴스를 타겟으로 갖는 로드밸런서."""
    vpc = services.vpcs.create_vpc(ctx, "lb-vpc", "10.70.0.0/16")
    subnet = services.subnets.create_subnet(ctx, vpc.id, "lb-sub", "10.70.1.0/24")
    instance = services.instances.launch_instance(ctx, "web", "alpine", ports="18080:8080", subnet_id=subnet.id)
    lb = services.load_balancers.create_lb(ctx, "web-lb", vpc.id, 80)
    services.load_balancers.add_target(ctx, lb.id, instance.id, 8080, weight=2)
    return lb, instance


# ===================================================================
#  reconcile 테스트 스위트
# ===================================================================
class TestReconcile:
    def test_creating_lb_is_deployed(self, services, backends, ctx, lb_worker, balanced):
        """CREATING 로드밸런서는 프록시를 배포하고 ACTIVE 가 되어야 합니다. 타겟은 호스트 포트로 전달됩니다."""
        # === Arrange ===
        lb, instance = balanced
        backends.proxy.deploy_proxy.return_value = "http://localhost:80"

        # === Act ===
        with patch("minicloud.workers.lb_worker.is_port_open", return_value=True):
            lb_worker.reconcile_once()

        # === Assert ===
        active = services.load_balancers.get_lb(ctx, lb.id)
        assert active.status == "ACTIVE"
        assert active.url == "http://localhost:80"
        _, targets = backends.proxy.deploy_proxy.call_args[0]
        assert targets == [{"instance_id": instance.id, "host": "127.0.0.1", "port": 18080, "weight": 2}]
        # 같은 틱에서 ACTIVE 패스도 실행됩니다.
        backends.proxy.update_proxy_config.assert_called_once()

    def test_deploy_failure_is_retried_next_tick(self, services, backends, ctx, lb_worker, balanced):
        lb, _ = balanced
        backends.proxy.deploy_proxy.side_effect = [BackendError("nginx -t failed"), "http://localhost:80"]

        lb_worker.process_creating()
        assert services.load_balancers.get_lb(ctx, lb.id).status == "CREATING"

        lb_worker.process_creating()
        assert services.load_balancers.get_lb(ctx, lb.id).status == "ACTIVE"

    def test_deleted_lb_is_removed(self, services, backends, ctx, lb_worker, balanced):
        lb, _ = balanced
        services.load_balancers.delete_lb(ctx, lb.id)

        lb_worker.process_deleted()

        backends.proxy.remove_proxy.assert_called_once_with(lb.id)
        assert lb_worker.lb_repo.find_by_id(ctx.tenant_id, lb.id) is None

    def test_private_ip_is_used_without_host_port(self, services, backends, ctx, lb_worker):
        vpc = services.vpcs.create_vpc(ctx, "lb-vpc", "10.71.0.0/16")
        subnet = services.subnets.create_subnet(ctx, vpc.id, "lb-sub", "10.71.1.0/24")
        instance = services.instances.launch_instance(ctx, "api", "alpine", subnet_id=subnet.id)
        lb = services.load_balancers.create_lb(ctx, "api-lb", vpc.id, 80)
        services.load_balancers.add_target(ctx, lb.id, instance.id, 9000)
        backends.proxy.deploy_proxy.return_value = "http://localhost:80"

        lb_worker.process_creating()

        _, targets = backends.proxy.deploy_proxy.call_args[0]
        assert targets == [{"instance_id": instance.id, "host": "10.71.1.2", "port": 9000, "weight": 1}]


# ===================================================================
#  헬스 체크 테스트 스위트
# ===================================================================
class TestHealthChecks:
    def test_health_transitions(self, services, backends, ctx, lb_worker, balanced):
        """헬스는 포트가 열리면 healthy, 닫히면 unhealthy 로 바뀌고 변화가 없으면 갱신하지 않습니다."""
        lb, _ = balanced
        backends.proxy.deploy_proxy.return_value = "http://localhost:80"
        lb_worker.process_creating()

        with patch("minicloud.workers.lb_worker.is_port_open", return_value=True) as port_check:
            lb_worker.process_health_checks()
            port_check.assert_called_once_with("localhost", 18080, lb_worker.health_timeout)
        assert [t.health for t in services.load_balancers.list_targets(ctx, lb.id)] == ["healthy"]

        [target] = services.load_balancers.list_targets(ctx, lb.id)
        with patch("minicloud.workers.lb_worker.is_port_open", return_value=True):
            assert lb_worker.check_target(services.load_balancers.get_lb(ctx, lb.id), target) is False

        with patch("minicloud.workers.lb_worker.is_port_open", return_value=False):
            lb_worker.process_health_checks()
        assert [t.health for t in services.load_balancers.list_targets(ctx, lb.id)] == ["unhealthy"]

    def test_target_without_host_port_is_unhealthy(self, services, backends, ctx, lb_worker):
        """호스트 포트 매핑이 없는 타겟은 사설 IP 로 검사하지 않고 unhealthy 로 기록됩니다."""
        # === Arrange ===
        vpc = services.vpcs.create_vpc(ctx, "hc-vpc", "10.72.0.0/16")
        subnet = services.subnets.create_subnet(ctx, vpc.id, "hc-sub", "10.72.1.0/24")
        instance = services.instances.launch_instance(ctx, "api", "alpine", subnet_id=subnet.id)
        lb = services.load_balancers.create_lb(ctx, "hc-lb", vpc.id, 80)
        services.load_balancers.add_target(ctx, lb.id, instance.id, 9000)
        backends.proxy.deploy_proxy.return_value = "http://localhost:80"
        lb_worker.process_creating()

        # === Act ===
        with patch("minicloud.workers.lb_worker.is_port_open", return_value=True) as port_check:
            lb_worker.process_health_checks()

        # === Assert ===
        port_check.assert_not_called()
        assert [t.health for t in services.load_balancers.list_targets(ctx, lb.id)] == ["unhealthy"]


def test_run_stops_on_event(lb_worker):
    stop_event = threading.Event()
    with patch.object(lb_worker, "reconcile_once", side_effect=lambda: stop_event.set()) as reconcile:
        lb_worker.run(stop_event)
    reconcile.assert_called_once()
