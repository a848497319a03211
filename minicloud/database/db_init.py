import logging

from .database import engine, SessionLocal, Base
from .models import Image, InstanceType

logger = logging.getLogger(__name__)

# 기본 인스턴스 타입 카탈로그 (이름, vCPU, 메모리 MB)
DEFAULT_INSTANCE_TYPES = [
    ("basic-1", 1, 512),
    ("basic-2", 1, 1024),
    ("standard-1", 2, 2048),
    ("standard-2", 4, 4096),
    ("memory-1", 2, 8192),
]

# 기본 루트 파일시스템 이미지 (이름, 상대 경로)
DEFAULT_IMAGES = [
    ("alpine", "alpine"),
    ("ubuntu", "ubuntu-22.04"),
    ("nginx", "nginx"),
    ("postgres", "postgres"),
    ("mysql", "mysql"),
    ("redis", "redis"),
]


def initialize_db(bind=None, session=None, rootfs_dir: str = None):
    """
    DB와 테이블을 생성하고, 기본 인스턴스 타입과 이미지를 삽입합니다.
    이미 기본 데이터가 있으면 삽입은 건너뜁니다.
    """
    from minicloud import config

    rootfs_dir = rootfs_dir or config.ROOTFS_DIR
    logger.info("Initializing database schema")
    Base.metadata.create_all(bind=bind or engine)

    db = session or SessionLocal()
    try:
        if db.query(InstanceType).first():
            logger.info("Seed data already present, skipping")
            return

        for name, vcpus, memory_mb in DEFAULT_INSTANCE_TYPES:
            db.add(InstanceType(name=name, vcpus=vcpus, memory_mb=memory_mb))
        for name, path in DEFAULT_IMAGES:
            db.add(Image(name=name, rootfs_path=f"{rootfs_dir}/{path}"))

        db.commit()
        logger.info("Seeded %d instance types and %d images", len(DEFAULT_INSTANCE_TYPES), len(DEFAULT_IMAGES))
    except Exception:
        db.rollback()
        raise
    finally:
        if session is None:
            db.close()


if __name__ == '__main__':
    from minicloud.logging_config import setup_logging
    setup_logging("db-init")
    initialize_db()
