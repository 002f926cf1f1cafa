"""
데이터 모델 패키지

레지스트리와 브리지 프로토콜의 핵심 데이터 모델들을 정의합니다.
"""

from .base import (
    Dependency,
    HttpProxyRequest,
    HttpProxyResponse,
    InvokeRequest,
    InvokeResponse,
    Script,
    WindowControlRequest,
)
from .enums import BridgeMessageKind, WindowAction

__all__ = [
    "Script",
    "Dependency",
    "InvokeRequest",
    "InvokeResponse",
    "WindowControlRequest",
    "HttpProxyRequest",
    "HttpProxyResponse",
    "BridgeMessageKind",
    "WindowAction",
]
