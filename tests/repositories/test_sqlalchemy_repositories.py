# tests/repositories/test_sqlalchemy_repositories.py
import uuid
from datetime import timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from minicloud.database import models
from minicloud.database.models.base import utcnow
from minicloud.repositories.sqlalchemy import (
    SqlalchemyInstanceRepository,
    SqlalchemyLogRepository,
    SqlalchemyPeeringRepository,
    SqlalchemyTaskRepository,
    SqlalchemyVPCRepository,
)
from minicloud.services.exceptions import ConflictError

TENANT = str(uuid.uuid4())
USER = str(uuid.uuid4())


def make_instance(name="web", subnet_id="subnet-1", private_ip="10.0.1.2"):
    return models.Instance(tenant_id=TENANT, user_id=USER, name=name, image="nginx",
                           instance_type="standard-1", subnet_id=subnet_id, private_ip=private_ip)


# ===================================================================
#  인스턴스 리포지토리
# ===================================================================
class TestInstanceRepository:
    def test_name_and_ip_are_unique(self, db_session):
        repo = SqlalchemyInstanceRepository(db_session)
        repo.create(make_instance())

        with pytest.raises(ConflictError):
            repo.create(make_instance(name="web"))
        with pytest.raises(ConflictError):
            repo.create(make_instance(name="api", private_ip="10.0.1.2"))

        assert repo.list_ips_by_subnet("subnet-1") == ["10.0.1.2"]

    def test_version_increments_on_update(self, db_session):
        repo = SqlalchemyInstanceRepository(db_session)
        instance = repo.create(make_instance())
        assert instance.version == 1

        instance.status = "RUNNING"
        assert repo.update(instance).version == 2

    def test_concurrent_update_is_conflict(self, db_session):
        """같은 버전을 읽은 두 세션 중 늦게 쓰는 쪽은 ConflictError 를 받아야 합니다."""
        # === Arrange ===
        instance = SqlalchemyInstanceRepository(db_session).create(make_instance())
        other_session = sessionmaker(bind=db_session.get_bind())()
        other_repo = SqlalchemyInstanceRepository(other_session)
        stale = other_repo.find_by_id(TENANT, instance.id)

        # === Act ===
        instance.status = "RUNNING"
        SqlalchemyInstanceRepository(db_session).update(instance)
        stale.status = "STOPPED"

        # === Assert ===
        with pytest.raises(ConflictError):
            other_repo.update(stale)
        other_session.close()

    def test_lookup_is_tenant_scoped(self, db_session):
        repo = SqlalchemyInstanceRepository(db_session)
        instance = repo.create(make_instance())

        assert repo.find_by_id(str(uuid.uuid4()), instance.id) is None
        assert repo.find_by_name(TENANT, "web").id == instance.id


# ===================================================================
#  VPC / 피어링 리포지토리
# ===================================================================
class TestVPCAndPeeringRepository:
    def test_vpc_name_unique_per_tenant(self, db_session):
        repo = SqlalchemyVPCRepository(db_session)
        repo.create(models.VPC(tenant_id=TENANT, user_id=USER, name="main", cidr_block="10.0.0.0/16",
                               network_id="br-vpc-1", vxlan_id=100))

        with pytest.raises(ConflictError):
            repo.create(models.VPC(tenant_id=TENANT, user_id=USER, name="main", cidr_block="10.1.0.0/16",
                                   network_id="br-vpc-2", vxlan_id=101))

    def test_only_one_open_peering_per_pair(self, db_session):
        """같은 VPC 쌍에 열린 피어링은 하나뿐이고, 종료된 뒤에는 다시 만들 수 있어야 합니다."""
        repo = SqlalchemyPeeringRepository(db_session)

        first = repo.create(models.VPCPeering(tenant_id=TENANT, user_id=USER,
                                              requester_vpc_id="vpc-a", accepter_vpc_id="vpc-b"))
        assert first.pair_key == "vpc-a:vpc-b"
        with pytest.raises(ConflictError):
            repo.create(models.VPCPeering(tenant_id=TENANT, user_id=USER,
                                          requester_vpc_id="vpc-b", accepter_vpc_id="vpc-a"))

        repo.update_status(repo.find_by_id(TENANT, first.id), "REJECTED")
        assert repo.find_open_by_pair("vpc-b", "vpc-a") is None
        second = repo.create(models.VPCPeering(tenant_id=TENANT, user_id=USER,
                                               requester_vpc_id="vpc-b", accepter_vpc_id="vpc-a"))
        assert repo.find_open_by_pair("vpc-a", "vpc-b").id == second.id

    def test_count_active_by_vpc(self, db_session):
        repo = SqlalchemyPeeringRepository(db_session)
        peering = repo.create(models.VPCPeering(tenant_id=TENANT, user_id=USER,
                                                requester_vpc_id="vpc-a", accepter_vpc_id="vpc-b"))
        assert repo.count_active_by_vpc("vpc-b") == 0

        repo.update_status(peering, "ACTIVE")

        assert repo.count_active_by_vpc("vpc-b") == 1


# ===================================================================
#  작업 큐 / 로그 리포지토리
# ===================================================================
def test_task_queue_pops_in_fifo_order(db_session):
    repo = SqlalchemyTaskRepository(db_session)
    repo.push(models.TaskMessage(queue="jobs", payload='{"n": 1}'))
    repo.push(models.TaskMessage(queue="other", payload='{"n": 0}'))
    repo.push(models.TaskMessage(queue="jobs", payload='{"n": 2}'))

    assert repo.pop("jobs").payload == '{"n": 1}'
    assert repo.pop("jobs").payload == '{"n": 2}'
    assert repo.pop("jobs") is None


def test_log_retention_deletes_only_old_entries(db_session):
    repo = SqlalchemyLogRepository(db_session)
    now = utcnow()
    repo.create_many([
        models.LogEntry(tenant_id=TENANT, resource_id="i-1", message="old", timestamp=now - timedelta(days=10)),
        models.LogEntry(tenant_id=TENANT, resource_id="i-1", message="new", timestamp=now),
    ])

    assert repo.delete_older_than(now - timedelta(days=7)) == 1
    assert [e.message for e in repo.search(TENANT)] == ["new"]
