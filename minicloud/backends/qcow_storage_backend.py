# minicloud/backends/qcow_storage_backend.py
import logging
import os
import re
import shutil

from minicloud import config
from minicloud.backends.command import run_command
from minicloud.backends.exceptions import BackendError
from minicloud.backends.interfaces import StorageBackend

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.-]+$")


class QcowStorageBackend(StorageBackend):
    """
    qemu-img 로 관리하는 qcow2 파일 기반 블록 스토리지.

    볼륨은 storage_dir/<name>.qcow2, 스냅샷은 snapshot_dir/<name>.qcow2 에 저장됩니다.
    연결/분리는 컨테이너 생성 시 바인드 스펙으로 처리되므로 여기서는 파일 존재만 확인합니다.
    """

    def __init__(self, storage_dir: str = None, snapshot_dir: str = None, use_sudo: bool = False):
        self.storage_dir = storage_dir or config.STORAGE_DIR
        self.snapshot_dir = snapshot_dir or config.SNAPSHOT_DIR
        self.use_sudo = use_sudo
        os.makedirs(self.storage_dir, exist_ok=True)
        os.makedirs(self.snapshot_dir, exist_ok=True)

    @staticmethod
    def _check_name(name: str):
        if not name or not NAME_PATTERN.match(name):
            raise BackendError(f"invalid volume or snapshot name '{name}'")

    def volume_path(self, name: str) -> str:
        self._check_name(name)
        return os.path.join(self.storage_dir, f"{name}.qcow2")

    def snapshot_path(self, name: str) -> str:
        self._check_name(name)
        return os.path.join(self.snapshot_dir, f"{name}.qcow2")

    def create_volume(self, name: str, size_gb: int) -> str:
        path = self.volume_path(name)
        if os.path.exists(path):
            raise BackendError(f"volume file already exists: {path}")
        run_command(["qemu-img", "create", "-f", "qcow2", path, f"{size_gb}G"], use_sudo=self.use_sudo)
        logger.info("Created volume %s (%dG)", path, size_gb)
        return path

    def delete_volume(self, name: str) -> None:
        path = self.volume_path(name)
        try:
            os.remove(path)
            logger.info("Deleted volume %s", path)
        except FileNotFoundError:
            logger.warning("Volume file %s already removed", path)
        except OSError as e:
            raise BackendError(f"failed to delete volume {path}: {e}") from e

    def attach_volume(self, volume_name: str, instance_id: str) -> None:
        path = self.volume_path(volume_name)
        if not os.path.exists(path):
            raise BackendError(f"volume file not found: {path}")
        logger.info("Volume %s attached to instance %s", volume_name, instance_id)

    def detach_volume(self, volume_name: str, instance_id: str) -> None:
        logger.info("Volume %s detached from instance %s", volume_name, instance_id)

    def create_snapshot(self, volume_name: str, snapshot_name: str) -> None:
        source = self.volume_path(volume_name)
        target = self.snapshot_path(snapshot_name)
        run_command(["qemu-img", "convert", "-O", "qcow2", source, target], use_sudo=self.use_sudo)
        logger.info("Snapshot %s created from %s", target, source)

    def restore_snapshot(self, volume_name: str, snapshot_name: str) -> None:
        source = self.snapshot_path(snapshot_name)
        target = self.volume_path(volume_name)
        if not os.path.exists(source):
            raise BackendError(f"snapshot file not found: {source}")
        try:
            shutil.copyfile(source, target)
        except OSError as e:
            raise BackendError(f"failed to restore snapshot {source} into {target}: {e}") from e
        logger.info("Snapshot %s restored into %s", source, target)

    def delete_snapshot(self, snapshot_name: str) -> None:
        path = self.snapshot_path(snapshot_name)
        try:
            os.remove(path)
        except FileNotFoundError:
            logger.warning("Snapshot file %s already removed", path)
