# minicloud/services/stack_service.py
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from minicloud.database import models
from minicloud.repositories.interfaces import IStackRepository
from minicloud.services.audit_service import AuditService, safe_audit
from minicloud.services.context import RequestContext
from minicloud.services.exceptions import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from minicloud.services.instance_service import InstanceService
from minicloud.services.snapshot_service import SnapshotService
from minicloud.services.subnet_service import SubnetService
from minicloud.services.volume_service import VolumeService
from minicloud.services.vpc_service import VpcService
from minicloud.utils.identifiers import short_id
from minicloud.workers.background import BackgroundRunner

logger = logging.getLogger(__name__)

# 이 순서로 처리하면 인식하는 타입들 사이의 참조가 항상 앞쪽 패스를 가리킵니다.
PASS_ORDER = ("VPC", "Subnet", "Volume", "Instance", "Snapshot")
DEFAULT_VOLUME_SIZE_GB = 10
BUSY_STATUSES = ("CREATE_IN_PROGRESS", "ROLLBACK_IN_PROGRESS")


@dataclass
class TemplateValidation:
    valid: bool
    errors: List[str] = field(default_factory=list)


def parse_template(template: str) -> Dict[str, dict]:
    """
    YAML 템플릿을 파싱해 Resources 매핑을 반환합니다.

    Raises:
        InvalidInputError: YAML 문법 오류, 매핑이 아닌 문서, 리소스가 없는 템플릿일 때.
    """
    try:
        document = yaml.safe_load(template or "")
    except yaml.YAMLError as e:
        raise InvalidInputError(f"YAML parse error: {e}", cause=e) from e
    if not isinstance(document, dict):
        raise InvalidInputError("template must be a mapping with a top-level 'Resources' key")
    resources = document.get("Resources")
    if not isinstance(resources, dict) or not resources:
        raise InvalidInputError("template must contain at least one resource")
    return resources


def _iter_refs(value):
    if isinstance(value, dict):
        if set(value) == {"Ref"}:
            yield value["Ref"]
        else:
            for item in value.values():
                yield from _iter_refs(item)
    elif isinstance(value, list):
        for item in value:
            yield from _iter_refs(item)


def resolve_refs(value, refs: Dict[str, str]):
    """{Ref: <logical-id>} 를 앞선 패스에서 만든 물리 id 로 치환합니다."""
    if isinstance(value, dict):
        if set(value) == {"Ref"}:
            target = value["Ref"]
            if target not in refs:
                raise InvalidInputError(f"unresolved Ref '{target}'")
            return refs[target]
        return {k: resolve_refs(v, refs) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_refs(v, refs) for v in value]
    return value


class StackService:
    def __init__(self, stack_repo: IStackRepository, vpc_service: VpcService, subnet_service: SubnetService,
                 volume_service: VolumeService, instance_service: InstanceService,
                 snapshot_service: SnapshotService, runner: BackgroundRunner,
                 audit: Optional[AuditService] = None):
        self.stack_repo = stack_repo
        self.vpc_service = vpc_service
        self.subnet_service = subnet_service
        self.volume_service = volume_service
        self.instance_service = instance_service
        self.snapshot_service = snapshot_service
        self.runner = runner
        self.audit = audit

    # ------------------------------------------------------------------
    # 공개 API
    # ------------------------------------------------------------------
    def validate_template(self, ctx: RequestContext, template: str,
                          parameters: Optional[Dict[str, str]] = None) -> TemplateValidation:
        """부수 효과 없이 템플릿을 검사하고 {valid, errors} 를 반환합니다."""
        try:
            resources = parse_template(template)
        except InvalidInputError as e:
            return TemplateValidation(valid=False, errors=[e.message])

        errors = []
        known = set(resources) | set(parameters or {})
        for logical_id, definition in resources.items():
            if not isinstance(definition, dict) or not definition.get("Type"):
                errors.append(f"resource '{logical_id}' is missing Type")
                continue
            properties = definition.get("Properties") or {}
            if not isinstance(properties, dict):
                errors.append(f"Properties of resource '{logical_id}' must be a mapping")
                continue
            for target in _iter_refs(properties):
                if target not in known:
                    errors.append(f"resource '{logical_id}' references unknown logical id '{target}'")
        return TemplateValidation(valid=not errors, errors=errors)

    def create_stack(self, ctx: RequestContext, name: str, template: str,
                     parameters: Optional[Dict[str, str]] = None) -> models.Stack:
        """
        스택을 CREATE_IN_PROGRESS 로 저장하고, 리소스 생성은 백그라운드 드라이버에 맡깁니다.
        드라이버는 호출자의 취소와 분리되지만 스택 소유자의 user_id / tenant_id 로 실행됩니다.

        Raises:
            InvalidInputError: 이름이 비었을 때.
            ConflictError: 같은 이름의 스택이 이미 있을 때.
        """
        ctx.check_cancelled()
        if not name:
            raise InvalidInputError("stack name is required")
        if self.stack_repo.find_by_name(ctx.tenant_id, name):
            raise ConflictError(f"Stack '{name}' already exists.")

        stack = self.stack_repo.create(models.Stack(
            tenant_id=ctx.tenant_id,
            user_id=ctx.user_id,
            name=name,
            template=template or "",
            parameters=json.dumps(parameters or {}),
            status="CREATE_IN_PROGRESS",
        ))
        safe_audit(self.audit, ctx, "stack.create", "stack", stack.id, {"name": name})
        owner_ctx = RequestContext(user_id=stack.user_id, tenant_id=stack.tenant_id)
        self.runner.submit(f"stack-{short_id(stack.id)}", self.process_stack, owner_ctx, stack.id)
        return stack

    def get_stack(self, ctx: RequestContext, stack_id: str) -> models.Stack:
        stack = self.stack_repo.find_by_id(ctx.tenant_id, stack_id)
        if not stack:
            raise NotFoundError(f"Stack '{stack_id}' not found.")
        return stack

    def list_stacks(self, ctx: RequestContext) -> List[models.Stack]:
        return self.stack_repo.list_by_tenant(ctx.tenant_id)

    def list_stack_resources(self, ctx: RequestContext, stack_id: str) -> List[models.StackResource]:
        stack = self.get_stack(ctx, stack_id)
        return self.stack_repo.list_resources(stack.id)

    def delete_stack(self, ctx: RequestContext, stack_id: str) -> bool:
        """
        스택과 그 스택이 만든 리소스를 삭제합니다. 스택 소유자만 삭제할 수 있으며,
        정리 작업은 백그라운드 스코프에서 진행되어 호출자가 취소해도 중단되지 않습니다.

        Raises:
            ForbiddenError: 소유자가 아닌 사용자가 요청했을 때.
            ConflictError: 생성 또는 롤백이 진행 중일 때.
        """
        ctx.check_cancelled()
        stack = self.get_stack(ctx, stack_id)
        if stack.user_id != ctx.user_id:
            raise ForbiddenError(f"only the owner of stack '{stack.name}' can delete it")
        if stack.status in BUSY_STATUSES:
            raise ConflictError(f"stack '{stack.name}' is busy ({stack.status})")

        safe_audit(self.audit, ctx, "stack.delete", "stack", stack.id, {"name": stack.name})
        self.runner.submit(f"stack-delete-{short_id(stack.id)}", self._teardown_stack, ctx.detached(), stack.id)
        return True

    # ------------------------------------------------------------------
    # 백그라운드 드라이버
    # ------------------------------------------------------------------
    def process_stack(self, ctx: RequestContext, stack_id: str):
        """
        템플릿을 타입별 패스 순서로 실행합니다. 실패하면 역순으로 롤백합니다.
        어떤 예외가 나더라도 스택은 CREATE_IN_PROGRESS 에 머무르지 않고 종료 상태로 기록됩니다.
        """
        stack = self.stack_repo.find_by_id(ctx.tenant_id, stack_id)
        if not stack:
            logger.warning("Stack %s disappeared before processing", stack_id)
            return
        try:
            self._run_passes(ctx, stack)
        except Exception as e:
            logger.error("Stack %s driver failed: %s", stack_id, e, exc_info=True)
            self._settle_failed(ctx, stack, f"stack driver failed: {e}")

    def _run_passes(self, ctx: RequestContext, stack: models.Stack):
        validation = self.validate_template(ctx, stack.template, self._parameters(stack))
        if not validation.valid:
            self.stack_repo.update_status(stack, "CREATE_FAILED", "; ".join(validation.errors))
            return

        resources = parse_template(stack.template)
        refs: Dict[str, str] = dict(self._parameters(stack))

        for resource_type in PASS_ORDER:
            for logical_id, definition in resources.items():
                if definition.get("Type") != resource_type:
                    continue
                physical_id = None
                try:
                    properties = resolve_refs(definition.get("Properties") or {}, refs)
                    physical_id, status = self._create_resource(ctx, stack, logical_id, resource_type, properties)
                    self.stack_repo.add_resource(stack, models.StackResource(
                        logical_id=logical_id,
                        physical_id=physical_id,
                        resource_type=resource_type,
                        status=status,
                    ))
                    refs[logical_id] = physical_id
                except Exception as e:
                    reason = f"Failed to create {resource_type} {logical_id}: {e}"
                    logger.error("Stack %s: %s, rolling back", stack.id, reason)
                    # 만들었지만 기록하지 못한 리소스도 롤백 대상입니다.
                    unrecorded = None
                    if physical_id:
                        unrecorded = models.StackResource(logical_id=logical_id, physical_id=physical_id,
                                                          resource_type=resource_type)
                    self._rollback(ctx, stack, reason, unrecorded)
                    return

        skipped = [lid for lid, d in resources.items() if d.get("Type") not in PASS_ORDER]
        if skipped:
            logger.warning("Stack %s skipped resources of unknown type: %s", stack.id, ", ".join(skipped))
        self.stack_repo.update_status(stack, "CREATE_COMPLETE")
        logger.info("Stack %s (%s) created", stack.id, stack.name)

    def _create_resource(self, ctx: RequestContext, stack: models.Stack, logical_id: str, resource_type: str,
                         props: Dict[str, Any]):
        name = props.get("Name") or f"{logical_id}-{short_id(stack.id)}"
        if resource_type == "VPC":
            vpc = self.vpc_service.create_vpc(ctx, name, props.get("CIDRBlock") or "")
            return vpc.id, "CREATE_COMPLETE"
        if resource_type == "Subnet":
            subnet = self.subnet_service.create_subnet(
                ctx, props.get("VpcID") or "", name, props.get("CIDRBlock") or "",
                props.get("AvailabilityZone") or "",
            )
            return subnet.id, "CREATE_COMPLETE"
        if resource_type == "Volume":
            size = int(props.get("Size") or DEFAULT_VOLUME_SIZE_GB)
            volume = self.volume_service.create_volume(ctx, name, size)
            return volume.id, "CREATE_COMPLETE"
        if resource_type == "Instance":
            port = props.get("Port")
            ports = f"{port}:{port}" if isinstance(port, int) else str(port or "")
            instance = self.instance_service.launch_instance(
                ctx, name, props.get("Image") or "",
                instance_type=props.get("InstanceType") or "",
                ports=ports,
                vpc_id=props.get("VpcID") or "",
                subnet_id=props.get("SubnetID") or "",
            )
            return instance.id, "CREATE_COMPLETE"
        if resource_type == "Snapshot":
            volume_id = props.get("VolumeID")
            if not volume_id:
                raise InvalidInputError("VolumeID is required for Snapshot")
            snapshot = self.snapshot_service.create_snapshot(ctx, volume_id, name)
            return snapshot.id, "CREATE_IN_PROGRESS"
        raise InvalidInputError(f"unknown resource type: {resource_type}")

    def _rollback(self, ctx: RequestContext, stack: models.Stack, reason: str,
                  unrecorded: Optional[models.StackResource] = None):
        self.stack_repo.update_status(stack, "ROLLBACK_IN_PROGRESS", reason)
        failed = []
        if unrecorded is not None:
            failed += self._destroy(ctx, stack, [unrecorded])
        failed += self._destroy_resources(ctx, stack)
        if failed:
            self.stack_repo.update_status(stack, "ROLLBACK_FAILED",
                                          f"Rollback failed for {', '.join(failed)}; {reason}")
            return
        self.stack_repo.delete_resources(stack.id)
        self.stack_repo.update_status(stack, "ROLLBACK_COMPLETE", reason)

    def _settle_failed(self, ctx: RequestContext, stack: models.Stack, reason: str):
        """드라이버가 예외로 끝났을 때 스택을 종료 상태로 옮깁니다. 롤백을 한 번 시도하고, 안 되면 ROLLBACK_FAILED."""
        try:
            if stack.status == "CREATE_IN_PROGRESS":
                self._rollback(ctx, stack, reason)
                return
        except Exception as e:
            logger.error("Stack %s rollback after driver failure failed: %s", stack.id, e)
        try:
            self.stack_repo.update_status(stack, "ROLLBACK_FAILED", reason)
        except Exception as e:
            logger.error("Stack %s could not record ROLLBACK_FAILED: %s", stack.id, e)

    def _destroy_resources(self, ctx: RequestContext, stack: models.Stack) -> List[str]:
        """StackResource 를 생성 역순으로 모두 삭제 시도하고, 실패한 logical id 목록을 반환합니다."""
        return self._destroy(ctx, stack, reversed(self.stack_repo.list_resources(stack.id)))

    def _destroy(self, ctx: RequestContext, stack: models.Stack, resources) -> List[str]:
        failed = []
        for resource in resources:
            try:
                self._delete_resource(ctx, resource.resource_type, resource.physical_id)
            except NotFoundError:
                logger.info("Stack %s resource %s already gone", stack.id, resource.logical_id)
            except Exception as e:
                logger.error("Stack %s failed to delete %s %s: %s",
                             stack.id, resource.resource_type, resource.physical_id, e)
                failed.append(resource.logical_id)
        return failed

    def _delete_resource(self, ctx: RequestContext, resource_type: str, physical_id: str):
        if resource_type == "Instance":
            self.instance_service.terminate_instance(ctx, physical_id)
        elif resource_type == "Snapshot":
            self.snapshot_service.delete_snapshot(ctx, physical_id)
        elif resource_type == "Volume":
            self.volume_service.delete_volume(ctx, physical_id)
        elif resource_type == "Subnet":
            self.subnet_service.delete_subnet(ctx, physical_id)
        elif resource_type == "VPC":
            self.vpc_service.delete_vpc(ctx, physical_id)

    def _teardown_stack(self, ctx: RequestContext, stack_id: str):
        # 삭제 중 실패는 별도 상태 없이 ROLLBACK_FAILED 로 기록하고 남은 리소스 목록을 유지합니다.
        stack = self.stack_repo.find_by_id(ctx.tenant_id, stack_id)
        if not stack:
            logger.warning("Stack %s disappeared before teardown", stack_id)
            return
        failed = self._destroy_resources(ctx, stack)
        if failed:
            self.stack_repo.update_status(stack, "ROLLBACK_FAILED", f"failed to delete {', '.join(failed)}")
            return
        self.stack_repo.delete_resources(stack.id)
        self.stack_repo.delete(stack)
        logger.info("Stack %s (%s) deleted", stack.id, stack.name)

    @staticmethod
    def _parameters(stack: models.Stack) -> Dict[str, str]:
        try:
            params = json.loads(stack.parameters or "{}")
        except ValueError:
            return {}
        return params if isinstance(params, dict) else {}
