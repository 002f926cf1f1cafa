"""
유틸리티 패키지

공통으로 사용되는 유틸리티 함수들을 포함합니다.
"""

from .helpers import (
    generate_correlation_id,
    generate_script_id,
    read_json_document,
    utc_now,
    write_json_document,
)
from .logging import get_logger, setup_logging

__all__ = [
    "setup_logging",
    "get_logger",
    "generate_script_id",
    "generate_correlation_id",
    "utc_now",
    "read_json_document",
    "write_json_document",
]
