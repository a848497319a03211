# minicloud/services/snapshot_service.py
import logging
from typing import List, Optional

from minicloud.backends.interfaces import StorageBackend
from minicloud.database import models
from minicloud.repositories.interfaces import ISnapshotRepository
from minicloud.services.audit_service import AuditService, EventService, safe_audit, safe_event
from minicloud.services.context import RequestContext
from minicloud.services.exceptions import InternalError, InvalidInputError, NotFoundError
from minicloud.services.helpers import call_backend
from minicloud.services.volume_service import VolumeService, backend_volume_name
from minicloud.workers.background import BackgroundRunner

logger = logging.getLogger(__name__)


def backend_snapshot_name(snapshot_id: str) -> str:
    return f"snap-{snapshot_id}"


class SnapshotService:
    def __init__(self, snapshot_repo: ISnapshotRepository, volume_service: VolumeService,
                 storage: StorageBackend, runner: BackgroundRunner,
                 events: Optional[EventService] = None, audit: Optional[AuditService] = None):
        self.snapshot_repo = snapshot_repo
        self.volume_service = volume_service
        self.storage = storage
        self.runner = runner
        self.events = events
        self.audit = audit

    def create_snapshot(self, ctx: RequestContext, volume_id: str, name: str = "") -> models.Snapshot:
        """
        CREATING 상태의 스냅샷을 저장하고, 실제 복사는 백그라운드 작업으로 넘깁니다.
        작업이 끝나면 AVAILABLE, 실패하면 ERROR 와 원인(status_reason)이 기록됩니다.
        """
        ctx.check_cancelled()
        volume = self.volume_service.get_volume(ctx, volume_id)
        snapshot = self.snapshot_repo.create(models.Snapshot(
            tenant_id=ctx.tenant_id,
            user_id=ctx.user_id,
            name=name or f"{volume.name}-snapshot",
            volume_id=volume.id,
            volume_name=volume.name,
            size_gb=volume.size_gb,
            status="CREATING",
        ))
        safe_audit(self.audit, ctx, "snapshot.create", "snapshot", snapshot.id, {"volume_id": volume.id})
        self.runner.submit(f"snapshot-{snapshot.id[:8]}", self._perform_snapshot, ctx.detached(), snapshot.id)
        return snapshot

    def _perform_snapshot(self, ctx: RequestContext, snapshot_id: str):
        # 작업 스레드의 세션으로 다시 읽습니다. 호출자 세션의 객체는 다른 스레드에서 쓰지 않습니다.
        snapshot = self.snapshot_repo.find_by_id(ctx.tenant_id, snapshot_id)
        if not snapshot:
            logger.warning("Snapshot %s disappeared before it could be taken", snapshot_id)
            return
        try:
            self.storage.create_snapshot(backend_volume_name(snapshot.volume_id), backend_snapshot_name(snapshot.id))
        except Exception as e:
            logger.error("Snapshot %s of volume %s failed: %s", snapshot.id, snapshot.volume_id, e)
            snapshot.status = "ERROR"
            snapshot.status_reason = str(e)
            self.snapshot_repo.update(snapshot)
            safe_event(self.events, ctx, "SNAPSHOT_FAILED", snapshot.id, "SNAPSHOT", {"error": str(e)})
            return
        snapshot.status = "AVAILABLE"
        snapshot.status_reason = ""
        self.snapshot_repo.update(snapshot)
        safe_event(self.events, ctx, "SNAPSHOT_CREATED", snapshot.id, "SNAPSHOT", {"volume_id": snapshot.volume_id})
        logger.info("Snapshot %s of volume %s available", snapshot.id, snapshot.volume_id)

    def get_snapshot(self, ctx: RequestContext, snapshot_id: str) -> models.Snapshot:
        snapshot = self.snapshot_repo.find_by_id(ctx.tenant_id, snapshot_id)
        if not snapshot:
            raise NotFoundError(f"Snapshot '{snapshot_id}' not found.")
        return snapshot

    def list_snapshots(self, ctx: RequestContext) -> List[models.Snapshot]:
        return self.snapshot_repo.list_by_tenant(ctx.tenant_id)

    def restore_snapshot(self, ctx: RequestContext, snapshot_id: str, new_volume_name: str) -> models.Volume:
        """
        AVAILABLE 스냅샷으로 새 볼륨을 만듭니다. 복원이 실패하면 새로 만든 볼륨을 삭제합니다.

        Raises:
            InvalidInputError: 스냅샷이 AVAILABLE 이 아닐 때.
            InternalError: 백엔드 복원이 실패했을 때.
        """
        ctx.check_cancelled()
        snapshot = self.get_snapshot(ctx, snapshot_id)
        if snapshot.status != "AVAILABLE":
            raise InvalidInputError(f"snapshot '{snapshot.name}' is not available (status {snapshot.status})")

        volume = self.volume_service.create_volume(ctx, new_volume_name, snapshot.size_gb)
        try:
            self.storage.restore_snapshot(backend_volume_name(volume.id), backend_snapshot_name(snapshot.id))
        except Exception as e:
            logger.error("Restore of snapshot %s into %s failed: %s", snapshot.id, volume.id, e)
            try:
                self.volume_service.delete_volume(ctx.detached(), volume.id)
            except Exception as cleanup_err:
                logger.error("Failed to clean up volume %s: %s", volume.id, cleanup_err)
            raise InternalError("failed to restore snapshot", cause=e) from e

        safe_audit(self.audit, ctx, "snapshot.restore", "snapshot", snapshot.id, {"volume_id": volume.id})
        return volume

    def delete_snapshot(self, ctx: RequestContext, snapshot_id: str) -> bool:
        ctx.check_cancelled()
        snapshot = self.get_snapshot(ctx, snapshot_id)
        if snapshot.status == "AVAILABLE":
            call_backend("delete snapshot", self.storage.delete_snapshot, backend_snapshot_name(snapshot.id))
        self.snapshot_repo.delete(snapshot)
        safe_audit(self.audit, ctx, "snapshot.delete", "snapshot", snapshot.id)
        return True
