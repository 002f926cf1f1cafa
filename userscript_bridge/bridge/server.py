"""
브리지 서버 모듈

신뢰 측에서 비신뢰 측 요청을 받아 레지스트리/자동 업데이트/프록시 작업으로
연결하고, 결과 또는 오류 문자열을 같은 상관관계 ID로 응답합니다.
"""

import time
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ValidationError

from ..config.settings import Settings
from ..exceptions import BridgeException, UserscriptBridgeException
from ..injection.assembler import InjectionPayload, PayloadAssembler
from ..models.base import HttpProxyRequest, InvokeRequest, InvokeResponse, WindowControlRequest
from ..models.enums import BridgeMessageKind, WindowAction
from ..monitoring.metrics import get_metrics_summary, record_bridge_request
from ..scripts.registry import ScriptRegistry
from ..scripts.updater import AutoUpdater
from ..utils.logging import get_logger
from .proxy import HttpProxy, open_external
from .transport import HostShell

logger = get_logger(__name__)

OperationHandler = Callable[[dict[str, Any]], Awaitable[Any]]

UNKNOWN_OPERATION_LABEL = "unknown"


def to_jsonable(value: Any) -> Any:
    """모델이 포함된 결과를 JSON 호환 값으로 변환"""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    return value


def payload_summary(payload: InjectionPayload, include_code: bool = False) -> dict[str, Any]:
    summary = {
        "scriptIds": payload.script_ids,
        "dependencyUrls": payload.dependency_urls,
        "missingDependencies": payload.missing_dependencies,
    }
    if include_code:
        summary["code"] = payload.code
    return summary


def _require(args: dict[str, Any], *names: str) -> Any:
    """인자 이름 후보 중 처음 존재하는 값 반환"""
    for name in names:
        if args.get(name) is not None:
            return args[name]
    raise BridgeException(f"필수 인자가 없습니다: {names[0]}")


def _require_str(args: dict[str, Any], *names: str) -> str:
    value = _require(args, *names)
    if not isinstance(value, str) or not value:
        raise BridgeException(f"문자열 인자가 필요합니다: {names[0]}")
    return value


class BridgeServer:
    """신뢰 측 브리지 디스패처"""

    def __init__(
        self,
        settings: Settings,
        registry: ScriptRegistry,
        updater: Optional[AutoUpdater] = None,
        proxy: Optional[HttpProxy] = None,
        shell: Optional[HostShell] = None,
        assembler: Optional[PayloadAssembler] = None,
    ):
        """
        브리지 서버 초기화

        Args:
            settings: 시스템 설정
            registry: 스크립트 레지스트리
            updater: 자동 업데이트 (없으면 생성)
            proxy: HTTP 프록시 (없으면 생성)
            shell: 호스트 셸 (없으면 창 제어/다시 로드는 오류 응답)
            assembler: 페이로드 조립기 (없으면 생성)
        """
        self.settings = settings
        self.registry = registry
        self.updater = updater or AutoUpdater(settings, registry)
        self.proxy = proxy or HttpProxy(settings)
        self.shell = shell
        self.assembler = assembler or PayloadAssembler(settings)
        self.logger = logger

        self.operations: dict[str, OperationHandler] = {
            "get_scripts": self._get_scripts,
            "add_script_from_url": self._add_script_from_url,
            "add_script": self._add_script,
            "toggle_script": self._toggle_script,
            "reorder_script": self._reorder_script,
            "move_script_up": self._move_script_up,
            "move_script_down": self._move_script_down,
            "delete_script": self._delete_script,
            "refresh_script": self._refresh_script,
            "auto_update_scripts": self._auto_update_scripts,
            "get_data_dir": self._get_data_dir,
            "gm_xhr": self._gm_xhr,
            "open_external_url": self._open_external_url,
            "reload_scripts": self._reload_scripts,
            "build_payload": self._build_payload,
            "report_presence": self._report_presence,
            "get_metrics": self._get_metrics,
        }

    def register_operation(self, name: str, handler: OperationHandler) -> None:
        """작업 핸들러 등록 (같은 이름이면 교체)"""
        self.operations[name] = handler
        self.logger.debug(f"브리지 작업 등록: {name}")

    async def invoke(self, operation: str, args: Optional[dict[str, Any]] = None) -> Any:
        """
        이름으로 작업 실행

        호스트 셸의 invoke 기본 기능이 이 메서드로 연결됩니다.

        Args:
            operation: 작업 이름
            args: 작업별 인자

        Returns:
            JSON 호환 결과

        Raises:
            BridgeException: 알 수 없는 작업 또는 잘못된 인자
            UserscriptBridgeException: 작업 실패
        """
        handler = self.operations.get(operation)
        if handler is None:
            raise BridgeException(f"알 수 없는 작업입니다: {operation}", operation)
        result = await handler(args or {})
        return to_jsonable(result)

    async def dispatch(self, request: InvokeRequest) -> InvokeResponse:
        """
        호출 요청 처리

        어떤 실패도 전파하지 않고 오류 응답으로 변환합니다.

        Args:
            request: 호출 요청

        Returns:
            같은 상관관계 ID의 응답
        """
        start_time = time.time()
        # 등록되지 않은 작업 이름은 모두 하나의 레이블로 기록
        metric_label = request.operation if request.operation in self.operations else UNKNOWN_OPERATION_LABEL
        self.logger.info(f"브리지 요청 처리 시작: {request.correlation_id} -> {request.operation}")

        try:
            result = await self.invoke(request.operation, request.args)
        except Exception as e:
            record_bridge_request(metric_label, "error", time.time() - start_time)
            if isinstance(e, UserscriptBridgeException):
                self.logger.warning(f"브리지 요청 실패: {request.operation} - {e.message}")
            else:
                self.logger.error(f"브리지 요청 처리 오류: {request.operation} - {e}", exc_info=True)
            return InvokeResponse(
                correlation_id=request.correlation_id,
                error=str(e) or type(e).__name__,
            )

        record_bridge_request(metric_label, "success", time.time() - start_time)
        self.logger.info(f"브리지 요청 처리 완료: {request.correlation_id}")
        return InvokeResponse(correlation_id=request.correlation_id, result=result)

    async def handle_message(self, message: dict[str, Any]) -> Optional[dict[str, Any]]:
        """
        전송 계층에서 받은 메시지 처리

        Args:
            message: 수신한 메시지

        Returns:
            응답 메시지 (창 제어나 알 수 없는 메시지는 None)
        """
        kind = message.get("kind") if isinstance(message, dict) else None

        if kind == BridgeMessageKind.INVOKE.value:
            try:
                request = InvokeRequest.model_validate(message)
            except ValidationError as e:
                correlation_id = message.get("correlationId")
                self.logger.warning(f"잘못된 브리지 요청: {correlation_id} ({e.error_count()}개 오류)")
                if isinstance(correlation_id, str) and correlation_id:
                    return InvokeResponse(
                        correlation_id=correlation_id,
                        error=f"잘못된 요청입니다: {e.error_count()}개 오류",
                    ).to_wire()
                return None
            response = await self.dispatch(request)
            return response.to_wire()

        if kind == BridgeMessageKind.WINDOW_CONTROL.value:
            try:
                request = WindowControlRequest.model_validate(message)
                await self.window_control(request.action)
            except ValidationError as e:
                self.logger.warning(f"잘못된 창 제어 요청: {e.error_count()}개 오류")
            except UserscriptBridgeException as e:
                self.logger.error(f"창 제어 실패: {e.message}")
            return None

        self.logger.debug(f"처리 대상이 아닌 메시지 무시: {kind}")
        return None

    async def window_control(self, action: WindowAction) -> None:
        """
        창 제어를 호스트 셸로 전달

        Raises:
            BridgeException: 호스트 셸이 없을 때
        """
        shell = self._require_shell("window-control")
        if action == WindowAction.MINIMIZE:
            await shell.minimize()
        elif action == WindowAction.MAXIMIZE:
            await shell.toggle_maximize()
        elif action == WindowAction.CLOSE:
            await shell.close()
        self.logger.info(f"창 제어: {action.value}")

    def _require_shell(self, operation: str) -> HostShell:
        if self.shell is None:
            raise BridgeException("호스트 셸이 연결되어 있지 않습니다", operation)
        return self.shell

    # ------------------------------------------------------------------
    # 작업 핸들러
    # ------------------------------------------------------------------

    async def _get_scripts(self, args: dict[str, Any]):
        return await self.registry.list_scripts()

    async def _add_script_from_url(self, args: dict[str, Any]):
        return await self.registry.add_from_url(_require_str(args, "url"))

    async def _add_script(self, args: dict[str, Any]):
        name = args.get("name")
        return await self.registry.add_manual(
            _require_str(args, "code"),
            name=name if isinstance(name, str) and name else None,
            enabled=bool(args.get("enabled", True)),
        )

    async def _toggle_script(self, args: dict[str, Any]):
        enabled = _require(args, "enabled")
        if not isinstance(enabled, bool):
            raise BridgeException("enabled 인자는 true/false여야 합니다", "toggle_script")
        return await self.registry.toggle(_require_str(args, "id"), enabled)

    async def _reorder_script(self, args: dict[str, Any]):
        new_order = _require(args, "newOrder", "new_order")
        if isinstance(new_order, bool) or not isinstance(new_order, int):
            raise BridgeException("newOrder 인자는 정수여야 합니다", "reorder_script")
        return await self.registry.reorder(_require_str(args, "id"), new_order)

    async def _move_script_up(self, args: dict[str, Any]):
        return await self.registry.move_up(_require_str(args, "id"))

    async def _move_script_down(self, args: dict[str, Any]):
        return await self.registry.move_down(_require_str(args, "id"))

    async def _delete_script(self, args: dict[str, Any]):
        return await self.registry.delete(_require_str(args, "id"))

    async def _refresh_script(self, args: dict[str, Any]):
        return await self.registry.refresh(_require_str(args, "id"))

    async def _auto_update_scripts(self, args: dict[str, Any]):
        return await self.updater.run_once()

    async def _get_data_dir(self, args: dict[str, Any]):
        return self.registry.get_data_dir()

    async def _gm_xhr(self, args: dict[str, Any]):
        raw_request = args.get("request", args)
        if not isinstance(raw_request, dict):
            raise BridgeException("request 인자는 객체여야 합니다", "gm_xhr")
        response = await self.proxy.request(HttpProxyRequest.model_validate(raw_request))
        return response.to_wire()

    async def _open_external_url(self, args: dict[str, Any]):
        await open_external(_require_str(args, "url"))
        return None

    async def _reload_scripts(self, args: dict[str, Any]):
        shell = self._require_shell("reload_scripts")
        payload = await self.assembler.build_from_registry(self.registry)
        await shell.reload(payload)
        self.logger.info(f"스크립트 다시 로드 요청: {len(payload.script_ids)}개")
        return payload_summary(payload)

    async def _build_payload(self, args: dict[str, Any]):
        payload = await self.assembler.build_from_registry(self.registry)
        return payload_summary(payload, include_code=True)

    async def _report_presence(self, args: dict[str, Any]):
        event = _require_str(args, "event")
        detail = args.get("detail")
        if self.shell is not None:
            await self.shell.report_presence(event, detail if isinstance(detail, dict) else None)
        self.logger.debug(f"프레즌스 이벤트: {event}")
        return None

    async def _get_metrics(self, args: dict[str, Any]):
        return get_metrics_summary()

    async def close(self) -> None:
        """리소스 정리"""
        await self.proxy.close()
        await self.registry.close()
