"""
minicloud 컴포넌트 공통 로깅 설정.

API 프로세스, LB 워커, 클러스터 워커가 같은 포맷으로 로그를 남기도록 합니다.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from minicloud import config


def setup_logging(
    component_name: str,
    level=None,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None
):
    """
    컴포넌트 로깅을 구성합니다.

    Args:
        component_name: 컴포넌트 식별자 (예: 'api', 'lb-worker').
        level: 로그 레벨. 생략하면 MINICLOUD_LOG_LEVEL 설정을 따릅니다.
        log_file: 추가로 기록할 로그 파일 경로 (선택).
        format_string: 사용자 정의 포맷 문자열 (선택).

    Returns:
        컴포넌트 이름의 Logger 객체.
    """
    if level is None:
        level = logging.getLevelName(config.LOG_LEVEL.upper())
        if not isinstance(level, int):
            level = logging.INFO
    if log_file is None:
        log_file = config.LOG_FILE
    if format_string is None:
        format_string = f'[%(asctime)s] [{component_name.upper()}] %(levelname)s %(name)s - %(message)s'

    logging.basicConfig(
        level=level,
        format=format_string,
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(format_string, datefmt='%Y-%m-%d %H:%M:%S'))
        logging.getLogger().addHandler(file_handler)

    logger = logging.getLogger(component_name)
    logger.info("%s logging initialized (level=%s)", component_name.upper(), logging.getLevelName(level))
    return logger
