# minicloud/workers/lb_worker.py
import logging
import socket
import threading
from typing import List, Optional

from minicloud import config
from minicloud.backends.interfaces import ProxyAdapter
from minicloud.database import models
from minicloud.repositories.interfaces import IInstanceRepository, ILoadBalancerRepository
from minicloud.utils.ports import find_host_port

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"


def is_port_open(host: str, port: int, timeout: float) -> bool:
    """TCP 핸드셰이크가 timeout 안에 끝나면 True. 프로토콜 수준 검사는 하지 않습니다."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


class LBWorker:
    """
    모든 로드밸런서의 프록시 배포와 타겟 헬스를 주기적으로 수렴시키는 단일 스레드 워커.

    한 틱 안에서 CREATING → DELETED → ACTIVE → 헬스 체크 순으로 패스를 실행하므로
    같은 로드밸런서가 한 틱에 두 번 처리되지 않습니다. 실패는 로그로 남기고 다음 틱에 다시 시도합니다.
    """

    def __init__(self, lb_repo: ILoadBalancerRepository, instance_repo: IInstanceRepository,
                 proxy: ProxyAdapter, interval_seconds: float = None, health_timeout: float = None):
        self.lb_repo = lb_repo
        self.instance_repo = instance_repo
        self.proxy = proxy
        self.interval = config.LB_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        self.health_timeout = config.HEALTH_TIMEOUT_SECONDS if health_timeout is None else health_timeout

    def run(self, stop_event: threading.Event):
        logger.info("Load balancer worker started (interval %ss)", self.interval)
        while not stop_event.is_set():
            try:
                self.reconcile_once()
            except Exception as e:
                logger.error("Load balancer reconcile error: %s", e, exc_info=True)
            stop_event.wait(self.interval)
        logger.info("Load balancer worker stopped")

    def reconcile_once(self):
        self.process_creating()
        self.process_deleted()
        self.process_active()
        self.process_health_checks()

    def process_creating(self):
        for lb in self.lb_repo.list_by_status("CREATING"):
            try:
                url = self.proxy.deploy_proxy(lb, self._proxy_targets(lb))
            except Exception as e:
                logger.error("Failed to deploy proxy for LB %s: %s", lb.id, e)
                continue
            lb.status = "ACTIVE"
            lb.url = url or ""
            self.lb_repo.update(lb)
            logger.info("LB %s is now ACTIVE at %s", lb.id, lb.url)

    def process_deleted(self):
        for lb in self.lb_repo.list_by_status("DELETED"):
            try:
                self.proxy.remove_proxy(lb.id)
            except Exception as e:
                logger.error("Failed to remove proxy for LB %s: %s", lb.id, e)
            self.lb_repo.delete(lb)
            logger.info("LB %s fully removed", lb.id)

    def process_active(self):
        for lb in self.lb_repo.list_by_status("ACTIVE"):
            try:
                self.proxy.update_proxy_config(lb, self._proxy_targets(lb))
            except Exception as e:
                logger.error("Failed to update proxy config for LB %s: %s", lb.id, e)

    def process_health_checks(self):
        for lb in self.lb_repo.list_by_status("ACTIVE"):
            changed = 0
            for target in self.lb_repo.list_targets(lb.id):
                if self.check_target(lb, target):
                    changed += 1
            if changed:
                logger.info("Health changed for %d target(s) of LB %s", changed, lb.id)

    def check_target(self, lb: models.LoadBalancer, target: models.LBTarget) -> bool:
        """타겟의 헬스를 검사하고, 저장된 값과 다르면 갱신한 뒤 True 를 반환합니다."""
        instance = self.instance_repo.find_by_id(lb.tenant_id, target.instance_id)
        if instance is None:
            return False
        host_port = find_host_port(instance.ports, target.port)
        status = UNHEALTHY
        if host_port and is_port_open("localhost", host_port, self.health_timeout):
            status = HEALTHY
        if target.health != status:
            self.lb_repo.update_target_health(target, status)
            return True
        return False

    def _proxy_targets(self, lb: models.LoadBalancer) -> List[dict]:
        targets = []
        for target in self.lb_repo.list_targets(lb.id):
            endpoint = self._endpoint(lb, target)
            if endpoint is None:
                continue
            host, port = endpoint
            targets.append({"instance_id": target.instance_id, "host": host, "port": port, "weight": target.weight})
        return targets

    def _endpoint(self, lb: models.LoadBalancer, target: models.LBTarget) -> Optional[tuple]:
        instance = self.instance_repo.find_by_id(lb.tenant_id, target.instance_id)
        if instance is None:
            return None
        host_port = find_host_port(instance.ports, target.port)
        if host_port:
            return "127.0.0.1", host_port
        if instance.private_ip:
            return instance.private_ip, target.port
        return None
