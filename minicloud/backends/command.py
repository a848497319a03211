# minicloud/backends/command.py
import logging
import subprocess
from typing import List, Optional

from minicloud.backends.exceptions import BackendError, BackendTimeoutError

logger = logging.getLogger(__name__)


def run_command(command: List[str], use_sudo: bool = False, timeout: Optional[float] = None) -> str:
    """
    외부 명령을 실행하고 표준 출력을 반환합니다.

    Raises:
        BackendError: 명령이 0이 아닌 코드로 끝났거나, 실행 파일을 찾을 수 없을 때.
        BackendTimeoutError: timeout 안에 끝나지 않았을 때.
    """
    if use_sudo:
        command = ["sudo"] + list(command)
    logger.debug("Running command: %s", " ".join(command))
    try:
        result = subprocess.run(command, check=True, capture_output=True, text=True, timeout=timeout)
    except subprocess.CalledProcessError as e:
        raise BackendError(f"'{' '.join(command)}' failed: {(e.stderr or '').strip()}") from e
    except subprocess.TimeoutExpired as e:
        raise BackendTimeoutError(f"'{' '.join(command)}' timed out after {timeout}s") from e
    except FileNotFoundError as e:
        raise BackendError(f"{command[0]} command not found.") from e
    return result.stdout
