"""
주입 페이로드 조립 모듈

레지스트리 상태로부터 페이지 로드마다 한 번 실행되는 JavaScript 페이로드를 만듭니다.
조립은 레지스트리를 변경하지 않으며 실패하지 않습니다.
"""

import base64
import json
from dataclasses import dataclass, field
from typing import Mapping, Optional

from ..config.settings import Settings
from ..models.base import Dependency, Script, dedupe_urls
from ..scripts.registry import ScriptRegistry, sort_scripts
from ..utils.logging import get_logger
from . import templates

logger = get_logger(__name__)


@dataclass
class InjectionPayload:
    """조립된 페이로드와 구성 요약"""

    code: str
    # 실행 순서대로 주입되는 스크립트 ID
    script_ids: list[str] = field(default_factory=list)
    # 주입된 의존성 URL (첫 등장 순서)
    dependency_urls: list[str] = field(default_factory=list)
    # 캐시에 없어 건너뛴 의존성 URL
    missing_dependencies: list[str] = field(default_factory=list)


def encode_base64(text: str) -> str:
    """UTF-8 텍스트를 base64 ASCII 문자열로 인코딩"""
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def js_string(value: str) -> str:
    """JavaScript 문자열 리터럴로 변환"""
    return json.dumps(value)


class PayloadAssembler:
    """주입 페이로드 조립기"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.logger = logger
        self.label = f"[{self.settings.app_name}]"

    def build(self, scripts: list[Script], dependencies: Mapping[str, Dependency]) -> InjectionPayload:
        """
        스크립트와 의존성 캐시로 페이로드 조립

        순서: 호환 API -> 타이틀바/설정 패널 -> 프레즌스 훅 -> 의존성 -> 스크립트,
        그리고 마지막으로 신뢰 측 브리지 리스너.

        Args:
            scripts: 레지스트리의 스크립트 목록 (컬렉션 순서)
            dependencies: URL -> 의존성 캐시

        Returns:
            조립된 페이로드
        """
        enabled = sort_scripts([script for script in scripts if script.enabled])
        payload = InjectionPayload(code="", script_ids=[script.id for script in enabled])

        units = [
            self._inject_unit(self._render_shim(), "gm-api"),
            self._inject_unit(self._render_chrome_ui(), "chrome-ui"),
            self._inject_unit(self._render_presence_hook(), "presence-hook"),
        ]

        required = dedupe_urls([url for script in enabled for url in script.requires])
        for index, url in enumerate(required):
            dependency = dependencies.get(url)
            if dependency is None:
                payload.missing_dependencies.append(url)
                units.append(
                    f"    console.warn(LABEL + ' missing dependency: ' + {js_string(url)});"
                )
                self.logger.warning(f"캐시에 없는 의존성 건너뜀: {url}")
                continue
            payload.dependency_urls.append(url)
            units.append(self._inject_unit(dependency.code, f"dependency-{index}"))

        for script in enabled:
            units.append(self._inject_unit(self._wrap_script(script), script.name))

        payload.code = templates.render(
            templates.PAYLOAD_WRAPPER,
            label=js_string(self.label),
            units="\n".join(units),
            bridge_listener=templates.render(
                templates.BRIDGE_LISTENER,
                host_global=js_string(self.settings.host_global),
                target_host=js_string(self.settings.target_host),
            ),
        )

        self.logger.info(
            f"페이로드 조립 완료: 스크립트 {len(payload.script_ids)}개, "
            f"의존성 {len(payload.dependency_urls)}개, 누락 {len(payload.missing_dependencies)}개"
        )
        return payload

    async def build_from_registry(self, registry: ScriptRegistry) -> InjectionPayload:
        """레지스트리 스냅샷으로 페이로드 조립"""
        scripts, dependencies = await registry.snapshot()
        return self.build(scripts, dependencies)

    def _inject_unit(self, code: str, name: str) -> str:
        return f"    injectIntoPage(decodeBase64('{encode_base64(code)}'), {js_string(name)});"

    def _wrap_script(self, script: Script) -> str:
        return templates.render(
            templates.SCRIPT_WRAPPER,
            name=js_string(script.name),
            label=js_string(self.label),
            code=script.code,
        )

    def _render_shim(self) -> str:
        return templates.render(
            templates.GM_API_SHIM,
            label=js_string(self.label),
            app_name=js_string(self.settings.app_name),
        )

    def _render_chrome_ui(self) -> str:
        return templates.render(templates.CHROME_UI, app_name=js_string(self.settings.app_name))

    def _render_presence_hook(self) -> str:
        return templates.render(
            templates.PRESENCE_HOOK,
            presence_global=js_string(self.settings.presence_global),
            max_attempts=str(self.settings.presence_poll_attempts),
            interval_ms=str(self.settings.presence_poll_interval_ms),
        )
