"""
브리지 클라이언트 모듈

비신뢰 측에서 권한 작업을 요청하고 상관관계 ID로 응답을 매칭합니다.
"""

import asyncio
import inspect
from typing import Any, Callable, Optional

from pydantic import ValidationError

from ..exceptions import BridgeException, BridgeTimeoutException
from ..models.base import InvokeRequest, InvokeResponse, WindowControlRequest
from ..models.enums import BridgeMessageKind, WindowAction
from ..utils.logging import get_logger

logger = get_logger(__name__)

SendFunc = Callable[[dict[str, Any]], Any]


class BridgeClient:
    """상관관계 ID 기반 요청/응답 클라이언트"""

    def __init__(self, send: SendFunc):
        """
        클라이언트 초기화

        Args:
            send: 전송용 딕셔너리를 넘기는 함수 (동기 또는 코루틴)
        """
        self.send = send
        self.futures: dict[str, asyncio.Future[InvokeResponse]] = {}
        self.logger = logger

    @property
    def pending_count(self) -> int:
        """응답 대기 중인 요청 수"""
        return len(self.futures)

    async def _send(self, message: dict[str, Any]) -> None:
        result = self.send(message)
        if inspect.isawaitable(result):
            await result

    async def call(
        self,
        operation: str,
        args: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        권한 작업 호출

        Args:
            operation: 작업 이름
            args: 작업별 인자
            timeout: 응답 대기 시간 (초, 없으면 무제한)

        Returns:
            작업 결과

        Raises:
            BridgeException: 응답이 오류를 담고 있을 때
            BridgeTimeoutException: 대기 시간 초과
        """
        request = InvokeRequest(operation=operation, args=args or {})
        correlation_id = request.correlation_id
        future = asyncio.get_running_loop().create_future()
        self.futures[correlation_id] = future

        try:
            await self._send(request.to_wire())
            self.logger.debug(f"브리지 요청 발송: {correlation_id} -> {operation}")

            if timeout is None:
                response = await future
            else:
                try:
                    response = await asyncio.wait_for(future, timeout=timeout)
                except asyncio.TimeoutError:
                    self.logger.error(f"브리지 요청 타임아웃: {correlation_id}")
                    raise BridgeTimeoutException(correlation_id, timeout)
        finally:
            # 응답/타임아웃/취소 모두 리스너 제거
            self.futures.pop(correlation_id, None)

        if response.is_error:
            raise BridgeException(response.error, operation)
        return response.result

    def receive(self, message: dict[str, Any]) -> bool:
        """
        응답 메시지 처리

        대기 중인 상관관계 ID와 일치하지 않는 메시지는 조용히 버립니다.

        Args:
            message: 수신한 메시지

        Returns:
            대기 중인 요청에 전달되었으면 True
        """
        if not isinstance(message, dict) or message.get("kind") != BridgeMessageKind.INVOKE_RESPONSE.value:
            return False

        correlation_id = message.get("correlationId")
        future = self.futures.pop(correlation_id, None) if isinstance(correlation_id, str) else None
        if future is None:
            self.logger.debug(f"일치하는 요청 없음, 응답 무시: {correlation_id}")
            return False
        if future.done():
            return False

        try:
            response = InvokeResponse.model_validate(message)
        except ValidationError as e:
            self.logger.warning(f"잘못된 응답 수신: {correlation_id}")
            future.set_exception(BridgeException(f"잘못된 응답: {e.error_count()}개 오류"))
            return True

        future.set_result(response)
        self.logger.debug(f"브리지 응답 수신: {response.correlation_id}")
        return True

    async def window_control(self, action: WindowAction) -> None:
        """창 제어 요청 (응답 없음)"""
        request = WindowControlRequest(action=WindowAction(action))
        await self._send(request.to_wire())
        self.logger.debug(f"창 제어 요청 발송: {request.action.value}")
