# minicloud/services/volume_service.py
import logging
from typing import List, Optional

from minicloud.backends.interfaces import StorageBackend
from minicloud.database import models
from minicloud.database.models.base import new_id
from minicloud.repositories.interfaces import IInstanceRepository, IVolumeRepository
from minicloud.services.audit_service import AuditService, safe_audit
from minicloud.services.context import RequestContext
from minicloud.services.exceptions import CloudError, ConflictError, InternalError, InvalidInputError, NotFoundError
from minicloud.services.helpers import call_backend, find_by_id_or_name
from minicloud.services.tenant_service import QuotaService

logger = logging.getLogger(__name__)


def backend_volume_name(volume_id: str) -> str:
    """스토리지 백엔드에서 쓰는 볼륨 이름. 사용자 이름 대신 id 를 씁니다."""
    return f"vol-{volume_id}"


class VolumeService:
    def __init__(self, volume_repo: IVolumeRepository, instance_repo: IInstanceRepository,
                 storage: StorageBackend, quota: Optional[QuotaService] = None,
                 audit: Optional[AuditService] = None):
        self.volume_repo = volume_repo
        self.instance_repo = instance_repo
        self.storage = storage
        self.quota = quota
        self.audit = audit

    def create_volume(self, ctx: RequestContext, name: str, size_gb: int) -> models.Volume:
        """
        백엔드 블록 디바이스를 할당하고 AVAILABLE 상태의 볼륨을 저장합니다.
        저장에 실패하면 할당한 백엔드 볼륨을 삭제합니다.

        Raises:
            InvalidInputError: 이름이 비었거나 size_gb < 1 일 때.
            QuotaExceededError: storage_gb 한도를 넘을 때.
            InternalError: 백엔드 할당이 실패했을 때.
        """
        ctx.check_cancelled()
        if not name:
            raise InvalidInputError("volume name is required")
        if size_gb is None or int(size_gb) < 1:
            raise InvalidInputError(f"volume size must be at least 1 GB (got {size_gb})")
        size_gb = int(size_gb)
        if self.quota:
            self.quota.check_quota(ctx, "storage_gb", size_gb)

        volume_id = new_id()
        backend_name = backend_volume_name(volume_id)
        path = call_backend("allocate volume", self.storage.create_volume, backend_name, size_gb)

        try:
            volume = self.volume_repo.create(models.Volume(
                id=volume_id,
                tenant_id=ctx.tenant_id,
                user_id=ctx.user_id,
                name=name,
                size_gb=size_gb,
                backend_path=path,
                status="AVAILABLE",
                mount_path="",
            ))
        except Exception as e:
            logger.error("Failed to persist volume '%s', deleting backend volume: %s", name, e)
            try:
                self.storage.delete_volume(backend_name)
            except Exception as rb_err:
                logger.error("Failed to roll back backend volume %s: %s", backend_name, rb_err)
            if isinstance(e, CloudError):
                raise
            raise InternalError("failed to create volume in database", cause=e) from e

        if self.quota:
            self.quota.consume(ctx, "storage_gb", size_gb)
        safe_audit(self.audit, ctx, "volume.create", "volume", volume.id, {"name": name, "size_gb": size_gb})
        return volume

    def get_volume(self, ctx: RequestContext, id_or_name: str) -> models.Volume:
        return find_by_id_or_name(
            "Volume", id_or_name,
            lambda volume_id: self.volume_repo.find_by_id(ctx.tenant_id, volume_id),
            lambda name: self.volume_repo.find_by_name(ctx.tenant_id, name),
        )

    def list_volumes(self, ctx: RequestContext) -> List[models.Volume]:
        return self.volume_repo.list_by_tenant(ctx.tenant_id)

    def attach_volume(self, ctx: RequestContext, id_or_name: str, instance_id: str, mount_path: str) -> models.Volume:
        """AVAILABLE 볼륨을 인스턴스에 연결하고 IN_USE 로 전환합니다."""
        ctx.check_cancelled()
        volume = self.get_volume(ctx, id_or_name)
        if volume.status != "AVAILABLE":
            raise ConflictError(f"volume '{volume.name}' is not available (status {volume.status})")
        if not mount_path:
            raise InvalidInputError("mount path is required")
        instance = self.instance_repo.find_by_id(ctx.tenant_id, instance_id) \
            or self.instance_repo.find_by_name(ctx.tenant_id, instance_id)
        if not instance:
            raise NotFoundError(f"Instance '{instance_id}' not found.")

        call_backend("attach volume", self.storage.attach_volume, backend_volume_name(volume.id), instance.id)
        volume.status = "IN_USE"
        volume.instance_id = instance.id
        volume.mount_path = mount_path
        volume = self.volume_repo.update(volume)
        safe_audit(self.audit, ctx, "volume.attach", "volume", volume.id,
                   {"instance_id": instance.id, "mount_path": mount_path})
        return volume

    def detach_volume(self, ctx: RequestContext, id_or_name: str) -> models.Volume:
        ctx.check_cancelled()
        volume = self.get_volume(ctx, id_or_name)
        if volume.status != "IN_USE" or not volume.instance_id:
            raise InvalidInputError(f"volume '{volume.name}' is not attached")

        call_backend("detach volume", self.storage.detach_volume, backend_volume_name(volume.id), volume.instance_id)
        instance_id = volume.instance_id
        volume.status = "AVAILABLE"
        volume.instance_id = None
        volume.mount_path = ""
        volume = self.volume_repo.update(volume)
        safe_audit(self.audit, ctx, "volume.detach", "volume", volume.id, {"instance_id": instance_id})
        return volume

    def delete_volume(self, ctx: RequestContext, id_or_name: str) -> bool:
        """사용 중(IN_USE)인 볼륨은 삭제할 수 없습니다. 백엔드 볼륨을 먼저 지우고 기록을 삭제합니다."""
        ctx.check_cancelled()
        volume = self.get_volume(ctx, id_or_name)
        if volume.status == "IN_USE":
            raise ConflictError(f"volume '{volume.name}' is in use by instance {volume.instance_id}")

        call_backend("delete volume", self.storage.delete_volume, backend_volume_name(volume.id))
        self.volume_repo.delete(volume)
        if self.quota:
            self.quota.release(ctx, "storage_gb", volume.size_gb)
        safe_audit(self.audit, ctx, "volume.delete", "volume", volume.id, {"name": volume.name})
        return True
