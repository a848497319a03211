# minicloud/app.py
"""
minicloud 조립 지점.

리포지토리 -> 서비스 -> 워커 순서로 의존성을 만들어 하나의 묶음(Services)으로 돌려주고,
`python -m minicloud.app` 으로 실행하면 LB 워커와 클러스터 워커를 띄웁니다.
"""
import argparse
import logging
import signal
import threading
from dataclasses import dataclass
from typing import Optional

from minicloud import config
from minicloud.backends.interfaces import ComputeBackend, DNSService, NetworkBackend, ProxyAdapter, StorageBackend
from minicloud.database.database import SessionLocal
from minicloud.logging_config import setup_logging
from minicloud.repositories.sqlalchemy import (
    SqlalchemyAuditRepository,
    SqlalchemyCacheRepository,
    SqlalchemyClusterRepository,
    SqlalchemyEventRepository,
    SqlalchemyFunctionRepository,
    SqlalchemyImageRepository,
    SqlalchemyInstanceRepository,
    SqlalchemyInstanceTypeRepository,
    SqlalchemyLoadBalancerRepository,
    SqlalchemyLogRepository,
    SqlalchemyManagedDatabaseRepository,
    SqlalchemyPeeringRepository,
    SqlalchemySecretRepository,
    SqlalchemySecurityGroupRepository,
    SqlalchemySnapshotRepository,
    SqlalchemyStackRepository,
    SqlalchemySubnetRepository,
    SqlalchemyTaskRepository,
    SqlalchemyTenantRepository,
    SqlalchemyVolumeRepository,
    SqlalchemyVPCRepository,
)
from minicloud.services.audit_service import AuditService, EventService
from minicloud.services.cluster_service import ClusterService
from minicloud.services.function_service import FunctionService
from minicloud.services.image_service import ImageService
from minicloud.services.instance_service import InstanceService
from minicloud.services.loadbalancer_service import LoadBalancerService
from minicloud.services.log_service import LogService
from minicloud.services.managed_service import CacheService, DatabaseService
from minicloud.services.peering_service import PeeringService
from minicloud.services.secret_service import SecretService
from minicloud.services.security_group_service import SecurityGroupService
from minicloud.services.snapshot_service import SnapshotService
from minicloud.services.stack_service import StackService
from minicloud.services.subnet_service import SubnetService
from minicloud.services.task_queue import TaskQueue
from minicloud.services.tenant_service import QuotaService, TenantService
from minicloud.services.volume_service import VolumeService
from minicloud.services.vpc_service import VpcService
from minicloud.workers.background import BackgroundRunner
from minicloud.workers.cluster_worker import ClusterWorker
from minicloud.workers.lb_worker import LBWorker

logger = logging.getLogger(__name__)


@dataclass
class Backends:
    compute: ComputeBackend
    network: NetworkBackend
    storage: StorageBackend
    proxy: ProxyAdapter
    dns: Optional[DNSService] = None


@dataclass
class Services:
    audit: AuditService
    events: EventService
    tenants: TenantService
    quota: QuotaService
    task_queue: TaskQueue
    images: ImageService
    vpcs: VpcService
    subnets: SubnetService
    security_groups: SecurityGroupService
    peerings: PeeringService
    instances: InstanceService
    volumes: VolumeService
    snapshots: SnapshotService
    stacks: StackService
    load_balancers: LoadBalancerService
    secrets: SecretService
    clusters: ClusterService
    functions: FunctionService
    logs: LogService
    databases: DatabaseService
    caches: CacheService
    runner: BackgroundRunner


def default_backends() -> Backends:
    """호스트의 libvirt(LXC), Open vSwitch, qemu-img, nginx 를 쓰는 실제 백엔드를 만듭니다."""
    from minicloud.backends.libvirt_compute_backend import LibvirtComputeBackend
    from minicloud.backends.nginx_proxy_adapter import NginxProxyAdapter
    from minicloud.backends.ovs_network_backend import OvsNetworkBackend
    from minicloud.backends.qcow_storage_backend import QcowStorageBackend

    return Backends(
        compute=LibvirtComputeBackend(),
        network=OvsNetworkBackend(),
        storage=QcowStorageBackend(),
        proxy=NginxProxyAdapter(),
    )


def build_services(db_session, backends: Backends, runner: Optional[BackgroundRunner] = None,
                   verify_rootfs: bool = True) -> Services:
    """
    세션과 백엔드로부터 모든 서비스를 조립합니다.

    Args:
        db_session: SQLAlchemy 세션. scoped_session 을 넘기면 백그라운드 스레드마다 별도 세션이 쓰입니다.
        backends: 컴퓨트/네트워크/스토리지/프록시 백엔드 묶음.
        runner: 스냅샷, 스택 처리를 실행할 러너. 생략하면 작업마다 세션을 정리하는 데몬 스레드 러너를 씁니다.
        verify_rootfs: 인스턴스 생성 시 이미지의 루트 파일시스템 존재 여부까지 확인할지 여부.
    """
    runner = runner or BackgroundRunner(cleanup=getattr(db_session, "remove", None))

    # 1. Repositories
    tenant_repo = SqlalchemyTenantRepository(db_session)
    vpc_repo = SqlalchemyVPCRepository(db_session)
    subnet_repo = SqlalchemySubnetRepository(db_session)
    peering_repo = SqlalchemyPeeringRepository(db_session)
    instance_repo = SqlalchemyInstanceRepository(db_session)
    volume_repo = SqlalchemyVolumeRepository(db_session)

    # 2. Collaborators
    audit = AuditService(SqlalchemyAuditRepository(db_session))
    events = EventService(SqlalchemyEventRepository(db_session))
    quota = QuotaService(tenant_repo)
    task_queue = TaskQueue(SqlalchemyTaskRepository(db_session))
    secrets = SecretService(SqlalchemySecretRepository(db_session), audit=audit)

    # 3. Core services
    images = ImageService(SqlalchemyImageRepository(db_session), SqlalchemyInstanceTypeRepository(db_session),
                          verify_rootfs=verify_rootfs)
    vpcs = VpcService(vpc_repo, subnet_repo, instance_repo, peering_repo, backends.network, quota, audit)
    subnets = SubnetService(subnet_repo, instance_repo, vpcs, audit)
    security_groups = SecurityGroupService(SqlalchemySecurityGroupRepository(db_session), instance_repo,
                                           vpcs, backends.network, audit)
    peerings = PeeringService(peering_repo, vpcs, backends.network, audit)
    instances = InstanceService(instance_repo, volume_repo, images, vpcs, subnets, backends.compute,
                                backends.network, security_groups=security_groups, quota=quota,
                                events=events, audit=audit, dns=backends.dns)
    volumes = VolumeService(volume_repo, instance_repo, backends.storage, quota, audit)
    snapshots = SnapshotService(SqlalchemySnapshotRepository(db_session), volumes, backends.storage,
                                runner, events, audit)
    stacks = StackService(SqlalchemyStackRepository(db_session), vpcs, subnets, volumes, instances,
                          snapshots, runner, audit)
    load_balancers = LoadBalancerService(SqlalchemyLoadBalancerRepository(db_session), instance_repo, vpcs, audit)
    clusters = ClusterService(SqlalchemyClusterRepository(db_session), vpcs, secrets, task_queue, audit)

    # 4. Peripheral services
    functions = FunctionService(SqlalchemyFunctionRepository(db_session), backends.compute, audit)
    logs = LogService(SqlalchemyLogRepository(db_session))
    databases = DatabaseService(SqlalchemyManagedDatabaseRepository(db_session), backends.compute, vpcs,
                                events, audit)
    caches = CacheService(SqlalchemyCacheRepository(db_session), backends.compute, vpcs, events, audit)

    return Services(
        audit=audit, events=events, tenants=TenantService(tenant_repo), quota=quota, task_queue=task_queue,
        images=images, vpcs=vpcs, subnets=subnets, security_groups=security_groups, peerings=peerings,
        instances=instances, volumes=volumes, snapshots=snapshots, stacks=stacks,
        load_balancers=load_balancers, secrets=secrets, clusters=clusters, functions=functions,
        logs=logs, databases=databases, caches=caches, runner=runner,
    )


def build_workers(db_session, services: Services, backends: Backends):
    """LB 워커와 클러스터 워커를 만듭니다. 클러스터 노드는 인스턴스 서비스로 띄웁니다."""
    from minicloud.backends.kubeadm_provisioner import KubeadmProvisioner

    lb_worker = LBWorker(SqlalchemyLoadBalancerRepository(db_session), SqlalchemyInstanceRepository(db_session),
                         backends.proxy)
    cluster_worker = ClusterWorker(services.task_queue, SqlalchemyClusterRepository(db_session),
                                   KubeadmProvisioner(services.instances), services.secrets)
    return lb_worker, cluster_worker


def run_workers(stop_event: threading.Event, db_session=None, backends: Optional[Backends] = None):
    """두 워커를 각자의 스레드에서 실행하고, stop_event 가 설정되면 종료될 때까지 기다립니다."""
    db_session = db_session or SessionLocal
    backends = backends or default_backends()
    services = build_services(db_session, backends)
    lb_worker, cluster_worker = build_workers(db_session, services, backends)

    threads = [
        threading.Thread(target=lb_worker.run, args=(stop_event,), name="lb-worker", daemon=True),
        threading.Thread(target=cluster_worker.run, args=(stop_event,), name="cluster-worker", daemon=True),
    ]
    for thread in threads:
        thread.start()
    logger.info("Workers started: %s", ", ".join(t.name for t in threads))

    stop_event.wait()
    for thread in threads:
        thread.join(timeout=config.LB_INTERVAL_SECONDS + 5)
    services.runner.join(timeout=5)
    logger.info("Workers stopped")


def main(argv=None):
    parser = argparse.ArgumentParser(prog="minicloud", description="minicloud background workers")
    parser.add_argument("--init-db", action="store_true", help="create tables and seed default catalog first")
    parser.add_argument("--log-level", default=None, help="override MINICLOUD_LOG_LEVEL")
    args = parser.parse_args(argv)

    level = logging.getLevelName(args.log_level.upper()) if args.log_level else None
    setup_logging("workers", level=level if isinstance(level, int) else None)

    if args.init_db:
        from minicloud.database.db_init import initialize_db
        initialize_db()

    stop_event = threading.Event()

    def _stop(signum, frame):
        logger.info("Received signal %s, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)
    run_workers(stop_event)


if __name__ == "__main__":
    main()
