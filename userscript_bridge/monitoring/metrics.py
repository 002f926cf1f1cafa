"""
Prometheus 메트릭 모듈

원격 가져오기, 브리지 요청, 자동 업데이트 결과 메트릭을 수집합니다.
"""

import platform
import sys
import time
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, Info

from ..utils.logging import get_logger

# 메트릭 레지스트리
REGISTRY = CollectorRegistry()

logger = get_logger(__name__)

# 가져오기 관련 메트릭
FETCH_COUNT = Counter(
    'userscript_fetch_total',
    '원격 스크립트/의존성 가져오기 수',
    ['kind', 'status'],
    registry=REGISTRY
)

# 브리지 관련 메트릭
BRIDGE_REQUEST_COUNT = Counter(
    'userscript_bridge_requests_total',
    '브리지 요청 수',
    ['operation', 'status'],
    registry=REGISTRY
)

BRIDGE_REQUEST_DURATION = Histogram(
    'userscript_bridge_request_duration_seconds',
    '브리지 요청 처리 시간 (초)',
    ['operation'],
    registry=REGISTRY
)

# 자동 업데이트 관련 메트릭
AUTO_UPDATE_COUNT = Counter(
    'userscript_auto_update_total',
    '자동 업데이트 결과 수',
    ['result'],
    registry=REGISTRY
)

# 레지스트리 상태
REGISTRY_SCRIPTS = Gauge(
    'userscript_registry_scripts',
    '등록된 스크립트 수',
    registry=REGISTRY
)

SYSTEM_INFO = Info(
    'userscript_bridge_info',
    '유저스크립트 브리지 정보',
    registry=REGISTRY
)

SYSTEM_INFO.info({
    'version': '1.0.0',
    'python_version': f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
    'platform': platform.system()
})


def record_bridge_request(operation: str, status: str, duration: float) -> None:
    """
    브리지 요청 처리 결과 기록

    Args:
        operation: 작업 이름
        status: success 또는 error
        duration: 처리 시간 (초)
    """
    BRIDGE_REQUEST_COUNT.labels(operation=operation, status=status).inc()
    BRIDGE_REQUEST_DURATION.labels(operation=operation).observe(duration)


def record_fetch(kind: str, status: str) -> None:
    """
    가져오기 결과 기록

    Args:
        kind: script 또는 dependency
        status: success 또는 오류 코드
    """
    FETCH_COUNT.labels(kind=kind, status=status).inc()


def record_auto_update(result: str) -> None:
    """
    자동 업데이트 결과 기록

    Args:
        result: updated, failed, skipped
    """
    AUTO_UPDATE_COUNT.labels(result=result).inc()


def update_registry_metrics(script_count: int) -> None:
    """등록된 스크립트 수 갱신"""
    REGISTRY_SCRIPTS.set(script_count)


def get_metrics_summary() -> dict[str, Any]:
    """
    메트릭 요약 정보 반환

    Returns:
        메트릭 요약 딕셔너리
    """
    summary: dict[str, Any] = {"timestamp": time.time()}
    for metric in REGISTRY.collect():
        for sample in metric.samples:
            if sample.name.endswith("_created"):
                continue
            key = sample.name
            if sample.labels:
                label_text = ",".join(f"{k}={v}" for k, v in sorted(sample.labels.items()))
                key = f"{sample.name}{{{label_text}}}"
            summary[key] = sample.value
    return summary
