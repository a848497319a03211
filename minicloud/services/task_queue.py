# minicloud/services/task_queue.py
import json
import logging
from typing import Optional

from minicloud.database import models
from minicloud.repositories.interfaces import ITaskRepository
from minicloud.services.exceptions import InternalError

logger = logging.getLogger(__name__)


class TaskQueue:
    """장시간 작업(클러스터 프로비저닝 등)을 위한 내구성 있는 FIFO 큐. 페이로드는 JSON 으로 저장됩니다."""

    def __init__(self, task_repo: ITaskRepository):
        self.task_repo = task_repo

    def enqueue(self, queue: str, payload: dict) -> int:
        try:
            body = json.dumps(payload, default=str)
        except (TypeError, ValueError) as e:
            raise InternalError(f"payload for queue '{queue}' is not serializable", cause=e) from e
        message = self.task_repo.push(models.TaskMessage(queue=queue, payload=body))
        logger.debug("Enqueued message %s on %s", message.id, queue)
        return message.id

    def dequeue(self, queue: str) -> Optional[dict]:
        message = self.task_repo.pop(queue)
        if message is None:
            return None
        try:
            return json.loads(message.payload)
        except ValueError:
            logger.error("Dropping malformed message %s on %s", message.id, queue)
            return None
