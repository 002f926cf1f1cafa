"""
모니터링 시스템

Prometheus 메트릭을 제공합니다.
"""

from .metrics import (
    AUTO_UPDATE_COUNT,
    BRIDGE_REQUEST_COUNT,
    FETCH_COUNT,
    REGISTRY,
    REGISTRY_SCRIPTS,
    get_metrics_summary,
    record_auto_update,
    record_bridge_request,
    record_fetch,
    update_registry_metrics,
)

__all__ = [
    "REGISTRY",
    "FETCH_COUNT",
    "BRIDGE_REQUEST_COUNT",
    "AUTO_UPDATE_COUNT",
    "REGISTRY_SCRIPTS",
    "record_bridge_request",
    "record_fetch",
    "record_auto_update",
    "update_registry_metrics",
    "get_metrics_summary",
]
