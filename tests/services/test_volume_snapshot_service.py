# tests/services/test_volume_snapshot_service.py
from unittest.mock import MagicMock

import pytest

from minicloud.backends.exceptions import BackendError
from minicloud.services.context import RequestContext
from minicloud.services.exceptions import (
    ConflictError,
    InternalError,
    InvalidInputError,
    QuotaExceededError,
)

# ===================================================================
#  VolumeService 테스트 스위트
# ===================================================================
class TestVolume:
    def test_create_uses_id_based_backend_name(self, services, backends, ctx):
        volume = services.volumes.create_volume(ctx, "data", 5)

        backends.storage.create_volume.assert_called_once_with(f"vol-{volume.id}", 5)
        assert volume.status == "AVAILABLE"
        assert volume.backend_path == f"/volumes/vol-{volume.id}.qcow2"

    @pytest.mark.parametrize("name, size", [("", 1), ("data", 0), ("data", -5)])
    def test_invalid_input(self, services, backends, ctx, name, size):
        with pytest.raises(InvalidInputError):
            services.volumes.create_volume(ctx, name, size)
        backends.storage.create_volume.assert_not_called()

    def test_backend_failure(self, services, backends, ctx):
        backends.storage.create_volume.side_effect = BackendError("qemu-img failed")

        with pytest.raises(InternalError):
            services.volumes.create_volume(ctx, "data", 5)
        assert services.volumes.list_volumes(ctx) == []

    def test_storage_quota(self, services, ctx):
        tenant = services.tenants.create_tenant(ctx, "Acme", "acme")
        services.tenants.update_quota(ctx, tenant.id, {"storage_gb": 10})
        tenant_ctx = RequestContext(user_id=ctx.user_id, tenant_id=tenant.id)

        services.volumes.create_volume(tenant_ctx, "a", 6)
        with pytest.raises(QuotaExceededError):
            services.volumes.create_volume(tenant_ctx, "b", 6)

        services.volumes.delete_volume(tenant_ctx, "a")
        services.volumes.create_volume(tenant_ctx, "b", 6)

    def test_attach_detach(self, services, backends, ctx):
        """연결하면 IN_USE, 해제하면 AVAILABLE 로 돌아가야 합니다."""
        instance = services.instances.launch_instance(ctx, "web", "alpine")
        volume = services.volumes.create_volume(ctx, "data", 5)

        attached = services.volumes.attach_volume(ctx, "data", instance.id, "/data")
        assert (attached.status, attached.instance_id, attached.mount_path) == ("IN_USE", instance.id, "/data")
        backends.storage.attach_volume.assert_called_once_with(f"vol-{volume.id}", instance.id)

        with pytest.raises(ConflictError):
            services.volumes.delete_volume(ctx, "data")

        detached = services.volumes.detach_volume(ctx, "data")
        assert (detached.status, detached.instance_id) == ("AVAILABLE", None)
        with pytest.raises(InvalidInputError):
            services.volumes.detach_volume(ctx, "data")

    def test_delete(self, services, backends, ctx):
        volume = services.volumes.create_volume(ctx, "data", 5)

        assert services.volumes.delete_volume(ctx, volume.id) is True
        backends.storage.delete_volume.assert_called_once_with(f"vol-{volume.id}")
        assert services.volumes.list_volumes(ctx) == []


# ===================================================================
#  SnapshotService 테스트 스위트
# ===================================================================
class TestSnapshot:
    def test_snapshot_becomes_available(self, services, backends, ctx):
        volume = services.volumes.create_volume(ctx, "data", 5)

        snapshot = services.snapshots.create_snapshot(ctx, volume.id)

        snapshot = services.snapshots.get_snapshot(ctx, snapshot.id)
        assert snapshot.status == "AVAILABLE"
        assert snapshot.name == "data-snapshot"
        backends.storage.create_snapshot.assert_called_once_with(f"vol-{volume.id}", f"snap-{snapshot.id}")
        assert "SNAPSHOT_CREATED" in [e.action for e in services.events.list_events(ctx)]

    def test_snapshot_failure_is_recorded(self, services, backends, ctx):
        volume = services.volumes.create_volume(ctx, "data", 5)
        backends.storage.create_snapshot.side_effect = BackendError("disk full")

        snapshot = services.snapshots.create_snapshot(ctx, volume.id, "nightly")

        snapshot = services.snapshots.get_snapshot(ctx, snapshot.id)
        assert snapshot.status == "ERROR"
        assert "disk full" in snapshot.status_reason

    def test_snapshot_runs_in_background(self, services, ctx):
        """스냅샷 복사는 호출자와 분리된 스코프로 러너에 제출됩니다."""
        volume = services.volumes.create_volume(ctx, "data", 5)
        services.snapshots.runner = MagicMock()

        snapshot = services.snapshots.create_snapshot(ctx, volume.id)

        assert snapshot.status == "CREATING"
        _, func, owner_ctx, submitted = services.snapshots.runner.submit.call_args[0]
        assert func == services.snapshots._perform_snapshot
        assert owner_ctx is not ctx
        assert submitted == snapshot.id

    def test_restore(self, services, backends, ctx):
        volume = services.volumes.create_volume(ctx, "data", 5)
        snapshot = services.snapshots.create_snapshot(ctx, volume.id)

        restored = services.snapshots.restore_snapshot(ctx, snapshot.id, "data-copy")

        assert restored.size_gb == 5
        backends.storage.restore_snapshot.assert_called_once_with(f"vol-{restored.id}", f"snap-{snapshot.id}")

    def test_restore_failure_removes_new_volume(self, services, backends, ctx):
        volume = services.volumes.create_volume(ctx, "data", 5)
        snapshot = services.snapshots.create_snapshot(ctx, volume.id)
        backends.storage.restore_snapshot.side_effect = BackendError("corrupt")

        with pytest.raises(InternalError):
            services.snapshots.restore_snapshot(ctx, snapshot.id, "data-copy")

        assert [v.name for v in services.volumes.list_volumes(ctx)] == ["data"]

    def test_restore_requires_available(self, services, backends, ctx):
        volume = services.volumes.create_volume(ctx, "data", 5)
        backends.storage.create_snapshot.side_effect = BackendError("disk full")
        snapshot = services.snapshots.create_snapshot(ctx, volume.id)

        with pytest.raises(InvalidInputError):
            services.snapshots.restore_snapshot(ctx, snapshot.id, "data-copy")

    def test_delete_failed_snapshot_skips_backend(self, services, backends, ctx):
        volume = services.volumes.create_volume(ctx, "data", 5)
        backends.storage.create_snapshot.side_effect = BackendError("disk full")
        snapshot = services.snapshots.create_snapshot(ctx, volume.id)

        services.snapshots.delete_snapshot(ctx, snapshot.id)

        backends.storage.delete_snapshot.assert_not_called()
        assert services.snapshots.list_snapshots(ctx) == []
