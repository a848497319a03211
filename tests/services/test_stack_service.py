# tests/services/test_stack_service.py
import uuid
from unittest.mock import MagicMock, patch

import pytest

from minicloud.services.context import RequestContext
from minicloud.services.exceptions import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from minicloud.services.stack_service import StackService, parse_template, resolve_refs

FULL_TEMPLATE = """
Resources:
  Net:
    Type: VPC
    Properties:
      CIDRBlock: 10.30.0.0/16
  Web:
    Type: Instance
    Properties:
      Image: alpine
      Port: 8080
      SubnetID: {Ref: Front}
  Front:
    Type: Subnet
    Properties:
      VpcID: {Ref: Net}
      CIDRBlock: 10.30.1.0/24
  Data:
    Type: Volume
    Properties:
      Size: 2
  Backup:
    Type: Snapshot
    Properties:
      VolumeID: {Ref: Data}
  Bucket:
    Type: ObjectStore
"""

BROKEN_TEMPLATE = """
Resources:
  Net:
    Type: VPC
    Properties:
      Name: rollback-net
  Web:
    Type: Instance
    Properties:
      Image: image-that-does-not-exist
      VpcID: {Ref: Net}
"""


# ===================================================================
#  템플릿 파싱 / 검증
# ===================================================================
class TestTemplate:
    @pytest.mark.parametrize("template", ["", "- a\n- b\n", "Resources: {}\n", "Resources: [unclosed\n"])
    def test_parse_rejects_bad_documents(self, template):
        with pytest.raises(InvalidInputError):
            parse_template(template)

    def test_resolve_refs_nested(self):
        props = {"VpcID": {"Ref": "Net"}, "Tags": [{"Ref": "Net"}, "plain"]}
        assert resolve_refs(props, {"Net": "vpc-1"}) == {"VpcID": "vpc-1", "Tags": ["vpc-1", "plain"]}

    def test_resolve_unknown_ref(self):
        with pytest.raises(InvalidInputError):
            resolve_refs({"VpcID": {"Ref": "Missing"}}, {})

    def test_validate_reports_all_errors(self, services, ctx):
        template = """
Resources:
  A:
    Properties: {}
  B:
    Type: Instance
    Properties:
      VpcID: {Ref: Nowhere}
"""
        result = services.stacks.validate_template(ctx, template)
        assert result.valid is False
        assert len(result.errors) == 2

    def test_parameters_count_as_known_refs(self, services, ctx):
        template = "Resources:\n  Web:\n    Type: Instance\n    Properties:\n      VpcID: {Ref: VpcParam}\n"
        assert services.stacks.validate_template(ctx, template, {"VpcParam": "vpc-1"}).valid is True


# ===================================================================
#  스택 생성 / 롤백
# ===================================================================
class TestCreateStack:
    def test_create_complete(self, services, backends, ctx):
        """모든 리소스가 만들어지면 CREATE_COMPLETE 이고, 알 수 없는 타입은 건너뜁니다."""
        stack = services.stacks.create_stack(ctx, "full", FULL_TEMPLATE)

        stack = services.stacks.get_stack(ctx, stack.id)
        assert stack.status == "CREATE_COMPLETE"
        resources = {r.logical_id: r for r in services.stacks.list_stack_resources(ctx, stack.id)}
        assert set(resources) == {"Net", "Front", "Data", "Web", "Backup"}
        assert resources["Backup"].status == "CREATE_IN_PROGRESS"

        web = services.instances.get_instance(ctx, resources["Web"].physical_id)
        assert web.name == f"Web-{stack.id[:8]}"
        assert web.ports == "8080:8080"
        assert web.subnet_id == resources["Front"].physical_id
        assert web.private_ip == "10.30.1.2"

    def test_failure_rolls_back_in_reverse(self, services, backends, ctx):
        """인스턴스 생성이 실패하면 이미 만든 VPC 가 정확히 한 번 삭제되고 ROLLBACK_COMPLETE 가 되어야 합니다."""
        # === Arrange ===
        with patch.object(services.vpcs, "delete_vpc", wraps=services.vpcs.delete_vpc) as delete_vpc:
            # === Act ===
            stack = services.stacks.create_stack(ctx, "broken", BROKEN_TEMPLATE)

        # === Assert ===
        stack = services.stacks.get_stack(ctx, stack.id)
        assert stack.status == "ROLLBACK_COMPLETE"
        assert "Web" in stack.status_reason
        delete_vpc.assert_called_once()
        backends.network.delete_bridge.assert_called_once()
        assert services.stacks.list_stack_resources(ctx, stack.id) == []
        assert services.vpcs.list_vpcs(ctx) == []

    def test_rollback_failure_is_recorded(self, services, backends, ctx):
        backends.network.delete_bridge.side_effect = RuntimeError("bridge busy")

        stack = services.stacks.create_stack(ctx, "stuck", BROKEN_TEMPLATE)

        stack = services.stacks.get_stack(ctx, stack.id)
        assert stack.status == "ROLLBACK_FAILED"
        assert [r.logical_id for r in services.stacks.list_stack_resources(ctx, stack.id)] == ["Net"]

    def test_unrecorded_resource_is_rolled_back(self, services, backends, ctx):
        """리소스를 만든 뒤 기록에 실패해도 그 리소스까지 롤백되어야 합니다."""
        # === Arrange ===
        template = "Resources:\n  Net:\n    Type: VPC\n    Properties:\n      CIDRBlock: 10.40.0.0/16\n"

        # === Act ===
        with patch.object(services.stacks.stack_repo, "add_resource", side_effect=RuntimeError("db down")):
            stack = services.stacks.create_stack(ctx, "unrecorded", template)

        # === Assert ===
        stack = services.stacks.get_stack(ctx, stack.id)
        assert stack.status == "ROLLBACK_COMPLETE"
        assert "db down" in stack.status_reason
        backends.network.delete_bridge.assert_called_once()
        assert services.vpcs.list_vpcs(ctx) == []

    def test_driver_failure_never_leaves_stack_in_progress(self, services, backends, ctx):
        """마지막 상태 기록이 실패해도 스택은 롤백되어 종료 상태가 되어야 합니다."""
        # === Arrange ===
        template = "Resources:\n  Net:\n    Type: VPC\n    Properties:\n      CIDRBlock: 10.41.0.0/16\n"
        real_update_status = services.stacks.stack_repo.update_status

        def flaky_update_status(stack, status, reason=""):
            if status == "CREATE_COMPLETE":
                raise RuntimeError("lost connection")
            return real_update_status(stack, status, reason)

        # === Act ===
        with patch.object(services.stacks.stack_repo, "update_status", side_effect=flaky_update_status):
            stack = services.stacks.create_stack(ctx, "flaky", template)

        # === Assert ===
        stack = services.stacks.get_stack(ctx, stack.id)
        assert stack.status == "ROLLBACK_COMPLETE"
        assert "lost connection" in stack.status_reason
        assert services.vpcs.list_vpcs(ctx) == []

    def test_invalid_template_fails_without_resources(self, services, backends, ctx):
        stack = services.stacks.create_stack(ctx, "invalid", "Resources: [oops")

        assert services.stacks.get_stack(ctx, stack.id).status == "CREATE_FAILED"
        backends.network.create_bridge.assert_not_called()

    def test_duplicate_name(self, services, ctx):
        services.stacks.create_stack(ctx, "dup", FULL_TEMPLATE)
        with pytest.raises(ConflictError):
            services.stacks.create_stack(ctx, "dup", FULL_TEMPLATE)

    def test_driver_runs_detached_from_caller(self, ctx):
        """드라이버는 호출자 스코프가 아닌 소유자 스코프로 제출됩니다."""
        runner = MagicMock()
        stack_repo = MagicMock()
        stack_repo.find_by_name.return_value = None
        stack_repo.create.side_effect = lambda stack: stack
        service = StackService(stack_repo, MagicMock(), MagicMock(), MagicMock(), MagicMock(), MagicMock(), runner)

        stack = service.create_stack(ctx, "bg", FULL_TEMPLATE)
        ctx.cancel()

        _, func, owner_ctx, submitted = runner.submit.call_args[0]
        assert func == service.process_stack
        assert submitted == stack.id
        assert owner_ctx.user_id == ctx.user_id
        assert owner_ctx.tenant_id == ctx.tenant_id
        assert not owner_ctx.cancelled


# ===================================================================
#  스택 삭제
# ===================================================================
class TestDeleteStack:
    def test_delete_removes_everything(self, services, backends, ctx):
        stack = services.stacks.create_stack(ctx, "full", FULL_TEMPLATE)

        services.stacks.delete_stack(ctx, stack.id)

        with pytest.raises(NotFoundError):
            services.stacks.get_stack(ctx, stack.id)
        assert services.instances.list_instances(ctx) == []
        assert services.volumes.list_volumes(ctx) == []
        assert services.vpcs.list_vpcs(ctx) == []
        backends.storage.delete_snapshot.assert_called_once()

    def test_only_owner_can_delete(self, services, ctx):
        stack = services.stacks.create_stack(ctx, "mine", FULL_TEMPLATE)
        teammate = RequestContext(user_id=str(uuid.uuid4()), tenant_id=ctx.tenant_id)

        with pytest.raises(ForbiddenError):
            services.stacks.delete_stack(teammate, stack.id)

    def test_teardown_failure_is_recorded_as_rollback_failed(self, services, backends, ctx):
        """삭제 중 리소스 정리가 실패하면 스택은 ROLLBACK_FAILED 로 남고 리소스 목록이 유지됩니다."""
        # === Arrange ===
        template = "Resources:\n  Net:\n    Type: VPC\n    Properties:\n      CIDRBlock: 10.42.0.0/16\n"
        stack = services.stacks.create_stack(ctx, "sticky", template)
        backends.network.delete_bridge.side_effect = RuntimeError("bridge busy")

        # === Act ===
        services.stacks.delete_stack(ctx, stack.id)

        # === Assert ===
        stack = services.stacks.get_stack(ctx, stack.id)
        assert stack.status == "ROLLBACK_FAILED"
        assert "Net" in stack.status_reason
        assert [r.logical_id for r in services.stacks.list_stack_resources(ctx, stack.id)] == ["Net"]
