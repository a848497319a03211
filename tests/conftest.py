# tests/conftest.py
import uuid
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from minicloud.app import Backends, build_services
from minicloud.backends.interfaces import ComputeBackend, DNSService, NetworkBackend, ProxyAdapter, StorageBackend
from minicloud.database.database import Base
from minicloud.database.db_init import initialize_db
from minicloud.services.context import RequestContext
from minicloud.workers.background import BackgroundRunner

# ===================================================================
#  공용 Fixture: 메모리 SQLite 세션, 모의 백엔드, 조립된 서비스
# ===================================================================


@pytest.fixture
def db_session():
    """테스트마다 새로 만드는 메모리 SQLite 세션. 기본 인스턴스 타입과 이미지가 들어 있습니다."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    initialize_db(bind=engine, session=session, rootfs_dir="/rootfs")
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def ctx() -> RequestContext:
    return RequestContext(user_id=str(uuid.uuid4()), tenant_id=str(uuid.uuid4()))


@pytest.fixture
def other_ctx() -> RequestContext:
    """다른 테넌트의 요청 스코프."""
    return RequestContext(user_id=str(uuid.uuid4()), tenant_id=str(uuid.uuid4()))


@pytest.fixture
def backends() -> Backends:
    compute = MagicMock(spec=ComputeBackend)
    compute.create_container.side_effect = lambda name, *args, **kwargs: f"ctr-{name}"
    storage = MagicMock(spec=StorageBackend)
    storage.create_volume.side_effect = lambda name, size_gb: f"/volumes/{name}.qcow2"
    return Backends(
        compute=compute,
        network=MagicMock(spec=NetworkBackend),
        storage=storage,
        proxy=MagicMock(spec=ProxyAdapter),
        dns=MagicMock(spec=DNSService),
    )


@pytest.fixture
def services(db_session, backends):
    """실제 SQLAlchemy 리포지토리와 모의 백엔드로 조립한 서비스 묶음. 백그라운드 작업은 동기로 실행됩니다."""
    return build_services(db_session, backends, runner=BackgroundRunner(synchronous=True), verify_rootfs=False)
