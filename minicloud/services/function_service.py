# minicloud/services/function_service.py
import logging
import os
import re
import shutil
import tempfile
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from minicloud.backends.exceptions import BackendTimeoutError
from minicloud.backends.interfaces import ComputeBackend, RunTaskOptions
from minicloud.database import models
from minicloud.database.models.base import utcnow
from minicloud.repositories.interfaces import IFunctionRepository
from minicloud.services.audit_service import AuditService, safe_audit
from minicloud.services.context import RequestContext
from minicloud.services.exceptions import ConflictError, InvalidInputError, NotFoundError
from minicloud.services.helpers import call_backend

logger = logging.getLogger(__name__)

TASK_WORKDIR = "/var/task"
MAX_TIMEOUT_SECONDS = 900
TIMEOUT_NOTE = "\nError: Execution timed out"

# 로그에 섞인 제어 문자는 '?' 로 바꿉니다.
_UNPRINTABLE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


@dataclass(frozen=True)
class Runtime:
    image: str
    entrypoint: List[str]


RUNTIMES: Dict[str, Runtime] = {
    "nodejs20": Runtime("node:20-alpine", ["node"]),
    "python312": Runtime("python:3.12-alpine", ["python"]),
    "go122": Runtime("golang:1.22-alpine", ["go", "run"]),
    "ruby33": Runtime("ruby:3.3-alpine", ["ruby"]),
    "java21": Runtime("eclipse-temurin:21-alpine", ["java", "-jar"]),
}


class FunctionService:
    def __init__(self, function_repo: IFunctionRepository, compute: ComputeBackend,
                 audit: Optional[AuditService] = None):
        self.function_repo = function_repo
        self.compute = compute
        self.audit = audit

    def create_function(self, ctx: RequestContext, name: str, runtime: str, handler: str, code: str,
                        timeout: int = 30, memory_mb: int = 128) -> models.Function:
        """
        함수 정의를 저장합니다. 코드는 호출할 때마다 임시 디렉터리에 풀어 읽기 전용으로 마운트합니다.

        Raises:
            InvalidInputError: 지원하지 않는 런타임이거나 handler, timeout, memory_mb 값이 잘못되었을 때.
            ConflictError: 같은 이름의 함수가 이미 있을 때.
        """
        ctx.check_cancelled()
        if not name:
            raise InvalidInputError("function name is required")
        if runtime not in RUNTIMES:
            raise InvalidInputError(f"unsupported runtime '{runtime}' (supported: {', '.join(sorted(RUNTIMES))})")
        if not handler:
            raise InvalidInputError("handler is required")
        if "/" in handler or handler.startswith(".."):
            raise InvalidInputError(f"invalid handler '{handler}'")
        if timeout < 1 or timeout > MAX_TIMEOUT_SECONDS:
            raise InvalidInputError(f"timeout must be between 1 and {MAX_TIMEOUT_SECONDS} seconds")
        if memory_mb < 64:
            raise InvalidInputError("memory_mb must be at least 64")
        if any(f.name == name for f in self.function_repo.list_by_tenant(ctx.tenant_id)):
            raise ConflictError(f"function '{name}' already exists")

        function = self.function_repo.create(models.Function(
            tenant_id=ctx.tenant_id,
            user_id=ctx.user_id,
            name=name,
            runtime=runtime,
            handler=handler,
            code=code or "",
            timeout=timeout,
            memory_mb=memory_mb,
            status="ACTIVE",
        ))
        safe_audit(self.audit, ctx, "function.create", "function", function.id, {"name": name, "runtime": runtime})
        return function

    def get_function(self, ctx: RequestContext, function_id: str) -> models.Function:
        function = self.function_repo.find_by_id(ctx.tenant_id, function_id)
        if not function:
            function = next((f for f in self.function_repo.list_by_tenant(ctx.tenant_id) if f.name == function_id), None)
        if not function:
            raise NotFoundError(f"Function '{function_id}' not found.")
        return function

    def list_functions(self, ctx: RequestContext) -> List[models.Function]:
        return self.function_repo.list_by_tenant(ctx.tenant_id)

    def delete_function(self, ctx: RequestContext, function_id: str) -> bool:
        ctx.check_cancelled()
        function = self.get_function(ctx, function_id)
        self.function_repo.delete(function)
        safe_audit(self.audit, ctx, "function.delete", "function", function.id, {"name": function.name})
        return True

    def list_invocations(self, ctx: RequestContext, function_id: str, limit: int = 100) -> List[models.Invocation]:
        function = self.get_function(ctx, function_id)
        return self.function_repo.list_invocations(function.id, limit)

    def invoke_function(self, ctx: RequestContext, function_id: str, payload: str = "") -> models.Invocation:
        """
        일회성 작업 컨테이너에서 함수를 실행하고 호출 기록을 반환합니다.

        제한 시간(function.timeout)을 넘기면 FAILED 와 함께 로그 끝에 시간 초과 안내가 붙고,
        0이 아닌 종료 코드도 FAILED 입니다. 작업 컨테이너는 결과와 관계없이 항상 제거합니다.

        Raises:
            InternalError: 작업 컨테이너를 실행하지 못했을 때. 이때도 호출 기록은 FAILED 로 남습니다.
        """
        ctx.check_cancelled()
        function = self.get_function(ctx, function_id)
        runtime = RUNTIMES[function.runtime]
        invocation = self.function_repo.create_invocation(models.Invocation(
            function_id=function.id, status="RUNNING", started_at=utcnow(),
        ))
        safe_audit(self.audit, ctx, "function.invoke", "function", function.id, {"invocation_id": invocation.id})

        code_dir = tempfile.mkdtemp(prefix=f"fn-{function.id[:8]}-")
        container_id = None
        try:
            with open(os.path.join(code_dir, function.handler), "w") as f:
                f.write(function.code)

            options = RunTaskOptions(
                image=runtime.image,
                command=list(runtime.entrypoint) + [function.handler],
                name=f"fn-{invocation.id[:8]}",
                env={"PAYLOAD": payload or ""},
                memory_mb=function.memory_mb,
                cpus=0.5,
                network_disabled=True,
                read_only_rootfs=True,
                working_dir=TASK_WORKDIR,
                binds=[f"{code_dir}:{TASK_WORKDIR}:ro"],
            )
            try:
                container_id = call_backend("run function task", self.compute.run_task, options)
            except Exception as e:
                self._finish(invocation, "FAILED", 0, f"Error running task: {e}")
                raise

            try:
                exit_code = self.compute.wait_container(container_id, timeout=function.timeout)
                wait_error = None
            except Exception as e:
                exit_code, wait_error = -1, e

            logs = self._collect_logs(container_id)
            if isinstance(wait_error, BackendTimeoutError):
                self._finish(invocation, "FAILED", exit_code, logs + TIMEOUT_NOTE)
            elif wait_error is not None:
                self._finish(invocation, "FAILED", exit_code, logs + f"\nError: {wait_error}")
            elif exit_code != 0:
                self._finish(invocation, "FAILED", exit_code, logs)
            else:
                self._finish(invocation, "SUCCESS", exit_code, logs)
        finally:
            if container_id:
                try:
                    self.compute.remove_container(container_id)
                except Exception as e:
                    logger.error("Failed to remove function task container %s: %s", container_id, e)
            shutil.rmtree(code_dir, ignore_errors=True)

        logger.info("Function %s invocation %s finished with %s", function.name, invocation.id, invocation.status)
        return invocation

    def _collect_logs(self, container_id: str) -> str:
        try:
            return _UNPRINTABLE.sub("?", self.compute.get_logs(container_id) or "")
        except Exception as e:
            logger.warning("Failed to read logs of task %s: %s", container_id, e)
            return ""

    def _finish(self, invocation: models.Invocation, status: str, status_code: int, logs: str):
        ended_at = utcnow()
        invocation.status = status
        invocation.status_code = status_code
        invocation.logs = logs
        invocation.ended_at = ended_at
        started_at: datetime = invocation.started_at or ended_at
        invocation.duration_ms = int((ended_at - started_at).total_seconds() * 1000)
        try:
            self.function_repo.update_invocation(invocation)
        except Exception as e:
            logger.error("Failed to record invocation %s: %s", invocation.id, e)
