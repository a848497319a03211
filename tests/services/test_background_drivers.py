# tests/services/test_background_drivers.py
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker

from minicloud.app import build_services
from minicloud.database.database import Base
from minicloud.database.db_init import initialize_db
from minicloud.workers.background import BackgroundRunner

# ===================================================================
#  스레드 러너 + scoped_session 으로 백그라운드 드라이버를 실제로 돌립니다.
#  드라이버는 자기 스레드의 세션으로 엔티티를 다시 읽어야 합니다.
# ===================================================================

STACK_TEMPLATE = """
Resources:
  Net:
    Type: VPC
    Properties:
      CIDRBlock: 10.50.0.0/16
  Data:
    Type: Volume
    Properties:
      Size: 1
"""


@pytest.fixture
def threaded(tmp_path, backends):
    """파일 SQLite 위의 scoped_session 과 작업마다 세션을 정리하는 스레드 러너로 조립한 서비스."""
    engine = create_engine(f"sqlite:///{tmp_path / 'minicloud.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    Session = scoped_session(sessionmaker(autocommit=False, autoflush=False, bind=engine))
    initialize_db(bind=engine, session=Session(), rootfs_dir="/rootfs")
    runner = BackgroundRunner(cleanup=Session.remove)
    services = build_services(Session, backends, runner=runner, verify_rootfs=False)
    try:
        yield Session, services
    finally:
        runner.join(timeout=5)
        Session.remove()
        engine.dispose()


def test_snapshot_completes_on_worker_thread(threaded, ctx):
    # === Arrange ===
    Session, services = threaded
    volume = services.volumes.create_volume(ctx, "data", 1)

    # === Act ===
    snapshot = services.snapshots.create_snapshot(ctx, volume.id, "nightly")
    services.runner.join(timeout=5)
    Session.remove()

    # === Assert ===
    assert services.snapshots.get_snapshot(ctx, snapshot.id).status == "AVAILABLE"


def test_snapshot_failure_is_recorded_from_worker_thread(threaded, backends, ctx):
    Session, services = threaded
    backends.storage.create_snapshot.side_effect = RuntimeError("disk full")
    volume = services.volumes.create_volume(ctx, "data", 1)

    snapshot = services.snapshots.create_snapshot(ctx, volume.id)
    services.runner.join(timeout=5)
    Session.remove()

    snapshot = services.snapshots.get_snapshot(ctx, snapshot.id)
    assert snapshot.status == "ERROR"
    assert "disk full" in snapshot.status_reason


def test_stack_create_and_delete_on_worker_thread(threaded, backends, ctx):
    """스택 생성과 삭제 드라이버가 호출자 세션의 객체 없이 끝까지 진행되어야 합니다."""
    # === Arrange ===
    Session, services = threaded

    # === Act ===
    stack = services.stacks.create_stack(ctx, "threaded", STACK_TEMPLATE)
    services.runner.join(timeout=5)
    Session.remove()

    # === Assert ===
    stack = services.stacks.get_stack(ctx, stack.id)
    assert stack.status == "CREATE_COMPLETE"
    assert {r.logical_id for r in services.stacks.list_stack_resources(ctx, stack.id)} == {"Net", "Data"}

    # === Act ===
    services.stacks.delete_stack(ctx, stack.id)
    services.runner.join(timeout=5)
    Session.remove()

    # === Assert ===
    assert services.stacks.list_stacks(ctx) == []
    assert services.vpcs.list_vpcs(ctx) == []
    backends.network.delete_bridge.assert_called_once()
