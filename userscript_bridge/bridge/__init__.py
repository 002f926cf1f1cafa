"""
크로스 컨텍스트 브리지 패키지

상관관계 ID 기반 요청/응답 프로토콜과 권한 작업을 제공합니다.
"""

from .client import BridgeClient
from .proxy import HttpProxy, open_external
from .server import BridgeServer
from .transport import HostShell, LocalTransport

__all__ = [
    "BridgeClient",
    "BridgeServer",
    "HttpProxy",
    "open_external",
    "HostShell",
    "LocalTransport",
]
