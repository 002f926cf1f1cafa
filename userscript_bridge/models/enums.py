"""
열거형 정의 모듈

브리지 프로토콜에서 사용되는 상수 값들을 열거형으로 정의합니다.
"""

from enum import Enum


class BridgeMessageKind(Enum):
    """브리지 메시지 종류 열거형"""
    INVOKE = "invoke"
    WINDOW_CONTROL = "window-control"
    INVOKE_RESPONSE = "invoke-response"


class WindowAction(Enum):
    """창 제어 동작 열거형"""
    MINIMIZE = "minimize"
    MAXIMIZE = "maximize"  # 최대화 토글
    CLOSE = "close"
