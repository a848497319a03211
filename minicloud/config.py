# minicloud/config.py
import os
from pathlib import Path

# 모든 설정은 환경 변수에서 한 번만 읽어옵니다. (기본값은 로컬 개발 환경 기준)
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.getenv("MINICLOUD_DATA_DIR", str(PROJECT_ROOT / "minicloud-data")))

DATABASE_URL = os.getenv("MINICLOUD_DB_URL", f"sqlite:///{(DATA_DIR / 'minicloud.db').as_posix()}")
ENVIRONMENT = os.getenv("MINICLOUD_ENV", "development")
LOG_LEVEL = os.getenv("MINICLOUD_LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("MINICLOUD_LOG_FILE")

# Backends
LIBVIRT_URI = os.getenv("MINICLOUD_LIBVIRT_URI", "lxc:///")
ROOTFS_DIR = os.getenv("MINICLOUD_ROOTFS_DIR", "/var/lib/minicloud/rootfs")
STORAGE_DIR = os.getenv("MINICLOUD_STORAGE_DIR", str(DATA_DIR / "volumes"))
SNAPSHOT_DIR = os.getenv("MINICLOUD_SNAPSHOT_DIR", str(DATA_DIR / "snapshots"))
LB_CONFIG_DIR = os.getenv("MINICLOUD_LB_CONFIG_DIR", "/tmp/minicloud/lb")

# Secrets
SECRETS_KEY = os.getenv("MINICLOUD_SECRETS_KEY", "")
DEV_SECRETS_KEY = "default-minicloud-development-key-32chars"

# Workers
LB_INTERVAL_SECONDS = float(os.getenv("MINICLOUD_LB_INTERVAL_SECONDS", "5"))
HEALTH_TIMEOUT_SECONDS = float(os.getenv("MINICLOUD_HEALTH_TIMEOUT_SECONDS", "2"))
QUEUE_POLL_SECONDS = float(os.getenv("MINICLOUD_QUEUE_POLL_SECONDS", "1"))

# 테넌트에 별도 쿼터 행이 없을 때 적용되는 기본 한도
DEFAULT_QUOTA = {
    "instances": int(os.getenv("MINICLOUD_QUOTA_INSTANCES", "20")),
    "vpcs": int(os.getenv("MINICLOUD_QUOTA_VPCS", "5")),
    "storage_gb": int(os.getenv("MINICLOUD_QUOTA_STORAGE_GB", "500")),
    "memory_gb": int(os.getenv("MINICLOUD_QUOTA_MEMORY_GB", "64")),
    "vcpus": int(os.getenv("MINICLOUD_QUOTA_VCPUS", "32")),
}
