"""
브리지 전송 계층 모듈

호스트 셸 인터페이스와 같은 프로세스 안에서 동작하는 전송 구현을 제공합니다.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Optional

from ..injection.assembler import InjectionPayload
from ..utils.logging import get_logger
from .client import BridgeClient

logger = get_logger(__name__)


class HostShell(ABC):
    """두 컨텍스트를 호스팅하는 셸 인터페이스"""

    @abstractmethod
    async def minimize(self) -> None:
        pass

    @abstractmethod
    async def toggle_maximize(self) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def reload(self, payload: InjectionPayload) -> None:
        """새 페이로드로 페이지 다시 로드"""

    async def report_presence(self, event: str, detail: Optional[dict[str, Any]]) -> None:
        """프레즌스 이벤트 수신 (연동이 없는 셸은 무시)"""
        logger.debug(f"프레즌스 이벤트 무시: {event}")


class LocalTransport:
    """
    같은 프로세스 안의 전송 계층

    메시지를 JSON으로 직렬화해 전달하므로 실제 컨텍스트 경계와 같은 형태만 오갑니다.
    요청은 작업(task)으로 전달되어 응답 순서가 요청 순서와 다를 수 있습니다.
    """

    def __init__(self, server):
        """
        전송 계층 초기화

        Args:
            server: 메시지를 처리할 BridgeServer
        """
        self.server = server
        self.client = BridgeClient(self.send)
        self._tasks: set[asyncio.Task] = set()

    def send(self, message: dict[str, Any]) -> None:
        """비신뢰 측 -> 신뢰 측 전달 (전송만 하고 기다리지 않음)"""
        wire = json.dumps(message)
        task = asyncio.get_running_loop().create_task(self._deliver(wire))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, wire: str) -> None:
        reply = await self.server.handle_message(json.loads(wire))
        if reply is not None:
            self.client.receive(json.loads(json.dumps(reply)))

    async def drain(self) -> None:
        """전달 중인 메시지 처리 완료 대기"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
