"""
공통 유틸리티 함수 모듈

식별자 생성, 시각 계산, JSON 문서 입출력 헬퍼를 제공합니다.
"""

import json
import os
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Union

from .logging import get_logger

logger = get_logger(__name__)


def generate_script_id() -> str:
    """
    스크립트 고유 ID 생성

    Returns:
        str: UUID4 문자열
    """
    return str(uuid.uuid4())


def generate_correlation_id(prefix: str = "req") -> str:
    """
    브리지 요청 상관관계 ID 생성

    Args:
        prefix: ID 접두사

    Returns:
        str: 요청마다 고유한 상관관계 ID
    """
    return f"{prefix}_{uuid.uuid4().hex}"


def utc_now() -> datetime:
    """현재 UTC 시각 (timezone-aware)"""
    return datetime.now(timezone.utc)


def age_in_hours(moment: datetime, now: datetime) -> float:
    """
    기준 시각으로부터 경과 시간 계산

    Args:
        moment: 과거 시각
        now: 현재 시각

    Returns:
        float: 경과 시간 (시간 단위)
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (now - moment).total_seconds() / 3600


def read_json_document(path: Union[str, Path], default: Any) -> Any:
    """
    JSON 문서 읽기

    파일이 없거나 형식이 잘못되었으면 기본값을 반환합니다 (시작 실패 없음).

    Args:
        path: 문서 경로
        default: 기본값

    Returns:
        Any: 파싱된 문서 또는 기본값
    """
    path = Path(path)
    if not path.exists():
        return default

    try:
        with open(path, encoding='utf-8') as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"JSON 문서 읽기 실패, 빈 문서로 대체: {path} - {e}")
        return default


def write_json_document(path: Union[str, Path], document: Any) -> None:
    """
    JSON 문서 원자적 쓰기

    같은 디렉토리의 임시 파일에 쓴 뒤 교체하므로 문서 전체가 한 번에 바뀝니다.

    Args:
        path: 문서 경로
        document: 직렬화할 문서
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(document, f, indent=2, ensure_ascii=False)
        os.replace(temp_name, path)
    except BaseException:
        if os.path.exists(temp_name):
            os.unlink(temp_name)
        raise
