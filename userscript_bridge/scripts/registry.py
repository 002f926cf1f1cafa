"""
스크립트 레지스트리 모듈

설치된 유저스크립트 목록과 의존성 캐시를 소유하고,
추가/토글/순서 변경/삭제/새로고침을 조율합니다.

네트워크 요청은 잠금 밖에서 수행하고, 결과를 반영할 때만 잠금을 잡아
중복/미존재 조건을 다시 검증합니다. 두 잠금을 함께 잡을 때는 항상
스크립트 -> 의존성 순서를 따릅니다.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..config.settings import Settings
from ..exceptions import (
    DependencyFetchException,
    DuplicateSourceException,
    FetchException,
    ScriptNotFoundException,
    UnrefreshableScriptException,
)
from ..models.base import Dependency, Script
from ..monitoring.metrics import update_registry_metrics
from ..utils.helpers import utc_now
from ..utils.logging import get_logger
from .fetcher import ScriptFetcher
from .metadata import MetadataParser, ScriptMetadata
from .store import JsonScriptStore

logger = get_logger(__name__)


@dataclass
class FetchedScript:
    """가져오기 + 메타데이터 + 의존성 파이프라인 결과"""

    url: str
    code: str
    metadata: ScriptMetadata


def sort_scripts(scripts: list[Script]) -> list[Script]:
    """order 오름차순 안정 정렬 (동률은 컬렉션 순서 유지)"""
    return sorted(scripts, key=lambda script: script.order)


class ScriptRegistry:
    """유저스크립트 레지스트리"""

    def __init__(
        self,
        settings: Settings,
        store: Optional[JsonScriptStore] = None,
        fetcher: Optional[ScriptFetcher] = None,
        parser: Optional[MetadataParser] = None,
    ):
        """
        레지스트리 초기화

        Args:
            settings: 시스템 설정
            store: JSON 저장소 (없으면 설정 경로로 생성)
            fetcher: 원격 다운로더 (없으면 생성)
            parser: 메타데이터 파서 (없으면 생성)
        """
        self.settings = settings
        self.logger = logger
        self.store = store or JsonScriptStore(settings)
        self.fetcher = fetcher or ScriptFetcher(settings)
        self.parser = parser or MetadataParser(settings)

        self._scripts: list[Script] = self.store.load_scripts()
        self._dependencies: dict[str, Dependency] = self.store.load_dependencies()
        self._scripts_lock = asyncio.Lock()
        self._dependencies_lock = asyncio.Lock()
        self._scripts_generation = 0
        self._dependencies_generation = 0

        update_registry_metrics(len(self._scripts))
        self.logger.info(
            f"레지스트리 초기화 완료: 스크립트 {len(self._scripts)}개, 의존성 {len(self._dependencies)}개"
        )

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    async def list_scripts(self) -> list[Script]:
        """로드 순서로 정렬된 스크립트 사본 목록"""
        async with self._scripts_lock:
            return [script.model_copy(deep=True) for script in sort_scripts(self._scripts)]

    async def get_script(self, script_id: str) -> Script:
        """
        ID로 스크립트 조회

        Raises:
            ScriptNotFoundException: 스크립트가 없을 때
        """
        async with self._scripts_lock:
            return self._find_locked(script_id).model_copy(deep=True)

    async def get_dependencies(self) -> dict[str, Dependency]:
        """의존성 캐시 사본"""
        async with self._dependencies_lock:
            return {url: dep.model_copy() for url, dep in self._dependencies.items()}

    async def snapshot(self) -> tuple[list[Script], dict[str, Dependency]]:
        """
        스크립트(컬렉션 순서)와 의존성 캐시의 일관된 스냅샷

        Returns:
            (스크립트 목록, 의존성 매핑) 튜플
        """
        async with self._scripts_lock:
            async with self._dependencies_lock:
                scripts = [script.model_copy(deep=True) for script in self._scripts]
                dependencies = {url: dep.model_copy() for url, dep in self._dependencies.items()}
        return scripts, dependencies

    def get_data_dir(self) -> str:
        """저장소 디렉토리 경로"""
        return str(self.store.data_dir.resolve())

    # ------------------------------------------------------------------
    # 가져오기 파이프라인
    # ------------------------------------------------------------------

    async def fetch_with_dependencies(self, url: str) -> FetchedScript:
        """
        스크립트 본문을 가져오고 메타데이터를 파싱한 뒤 캐시에 없는 의존성을 가져옵니다

        의존성은 가져오는 즉시 캐시에 들어가며, 첫 번째 의존성 실패에서 중단합니다.
        이미 캐시된 의존성은 되돌리지 않습니다.

        Args:
            url: 스크립트 URL

        Returns:
            파이프라인 결과

        Raises:
            FetchException: 스크립트 본문 가져오기 실패
            DependencyFetchException: 의존성 가져오기 실패
        """
        code = await self.fetcher.fetch(url, kind="script")
        metadata = self.parser.parse(code)
        await self.ensure_dependencies(metadata.requires)
        return FetchedScript(url=url, code=code, metadata=metadata)

    async def ensure_dependencies(self, urls: list[str]) -> None:
        """
        캐시에 없는 의존성 URL을 가져와 캐시에 추가

        Raises:
            DependencyFetchException: 첫 번째 실패한 의존성
        """
        for dep_url in urls:
            async with self._dependencies_lock:
                if dep_url in self._dependencies:
                    self.logger.debug(f"캐시된 의존성 사용: {dep_url}")
                    continue

            try:
                dep_code = await self.fetcher.fetch(dep_url, kind="dependency")
            except FetchException as e:
                raise DependencyFetchException(dep_url, e) from e

            async with self._dependencies_lock:
                self._dependencies[dep_url] = Dependency(url=dep_url, code=dep_code, last_updated=utc_now())
                self._dependencies_generation += 1
            self.logger.info(f"의존성 캐시 추가: {dep_url}")

    # ------------------------------------------------------------------
    # 변경 작업
    # ------------------------------------------------------------------

    async def add_from_url(self, url: str) -> Script:
        """
        URL에서 스크립트를 가져와 등록

        Args:
            url: 스크립트 URL

        Returns:
            새로 생성된 스크립트

        Raises:
            DuplicateSourceException: 같은 URL의 스크립트가 이미 있을 때
            FetchException: 가져오기 실패
            DependencyFetchException: 의존성 가져오기 실패
        """
        async with self._scripts_lock:
            self._ensure_unique_url_locked(url)

        self.logger.info(f"스크립트 추가 요청: {url}")
        fetched = await self.fetch_with_dependencies(url)

        async with self._scripts_lock:
            # 가져오는 동안 같은 URL이 추가되었을 수 있음
            self._ensure_unique_url_locked(url)

            script = Script(
                name=fetched.metadata.display_name,
                code=fetched.code,
                enabled=True,
                order=self._next_order_locked(),
                url=url,
                version=fetched.metadata.version,
                description=fetched.metadata.description,
                author=fetched.metadata.author,
                requires=fetched.metadata.requires,
                last_updated=utc_now(),
                last_fetch_error=None,
            )
            self._scripts.append(script)
            result = script.model_copy(deep=True)

        await self.save()
        self.logger.info(f"스크립트 추가 완료: {result.name} ({result.id}, 순서 {result.order})")
        return result

    async def add_manual(
        self,
        code: str,
        name: Optional[str] = None,
        enabled: bool = True,
    ) -> Script:
        """
        URL 없이 직접 작성한 스크립트 등록

        헤더 블록의 메타데이터를 채우고 선언된 의존성은 캐시에 확보합니다.
        수동 스크립트는 새로고침/자동 업데이트 대상이 아닙니다.

        Args:
            code: 스크립트 본문
            name: 표시 이름 (없으면 메타데이터 이름)
            enabled: 활성화 여부

        Returns:
            새로 생성된 스크립트
        """
        metadata = self.parser.parse(code)
        await self.ensure_dependencies(metadata.requires)

        async with self._scripts_lock:
            script = Script(
                name=name or metadata.display_name,
                code=code,
                enabled=enabled,
                order=self._next_order_locked(),
                version=metadata.version,
                description=metadata.description,
                author=metadata.author,
                requires=metadata.requires,
            )
            self._scripts.append(script)
            result = script.model_copy(deep=True)

        await self.save()
        self.logger.info(f"수동 스크립트 추가 완료: {result.name} ({result.id})")
        return result

    async def toggle(self, script_id: str, enabled: bool) -> Script:
        """
        스크립트 활성화 상태 변경

        Raises:
            ScriptNotFoundException: 스크립트가 없을 때
        """
        async with self._scripts_lock:
            script = self._find_locked(script_id)
            script.enabled = bool(enabled)
            result = script.model_copy(deep=True)

        await self.save_scripts()
        self.logger.info(f"스크립트 {'활성화' if result.enabled else '비활성화'}: {result.name}")
        return result

    async def reorder(self, script_id: str, new_order: int) -> Script:
        """
        스크립트 로드 순서 변경

        다른 스크립트의 순서 값은 재정렬하지 않으므로 같은 값이 생길 수 있습니다.

        Raises:
            ScriptNotFoundException: 스크립트가 없을 때
        """
        async with self._scripts_lock:
            script = self._find_locked(script_id)
            script.order = int(new_order)
            result = script.model_copy(deep=True)

        await self.save_scripts()
        self.logger.info(f"스크립트 순서 변경: {result.name} -> {result.order}")
        return result

    async def move_up(self, script_id: str) -> Script:
        """정렬 순서상 앞 스크립트와 순서 값 교환"""
        return await self._swap_with_neighbour(script_id, -1)

    async def move_down(self, script_id: str) -> Script:
        """정렬 순서상 뒤 스크립트와 순서 값 교환"""
        return await self._swap_with_neighbour(script_id, 1)

    async def _swap_with_neighbour(self, script_id: str, step: int) -> Script:
        async with self._scripts_lock:
            script = self._find_locked(script_id)
            ordered = sort_scripts(self._scripts)
            index = next(i for i, s in enumerate(ordered) if s.id == script_id)
            neighbour_index = index + step
            if 0 <= neighbour_index < len(ordered):
                neighbour = ordered[neighbour_index]
                if neighbour.order == script.order:
                    # 동률은 컬렉션 순서로 정해지므로 두 항목의 컬렉션 위치만 교환
                    i, j = self._scripts.index(script), self._scripts.index(neighbour)
                    self._scripts[i], self._scripts[j] = self._scripts[j], self._scripts[i]
                else:
                    script.order, neighbour.order = neighbour.order, script.order
                changed = True
            else:
                changed = False
            result = script.model_copy(deep=True)

        if changed:
            await self.save_scripts()
            self.logger.info(f"스크립트 위치 이동: {result.name} -> {result.order}")
        return result

    async def delete(self, script_id: str) -> Script:
        """
        스크립트 삭제 (의존성 캐시는 유지)

        Raises:
            ScriptNotFoundException: 스크립트가 없을 때
        """
        async with self._scripts_lock:
            script = self._find_locked(script_id)
            self._scripts.remove(script)

        await self.save_scripts()
        self.logger.info(f"스크립트 삭제: {script.name} ({script.id})")
        return script

    async def refresh(self, script_id: str) -> Script:
        """
        원본 URL에서 스크립트를 다시 가져와 덮어쓰기

        id, 활성화 상태, 순서는 유지합니다. 실패하면 기존 스크립트는 변경되지 않고
        저장된 오류 필드도 건드리지 않습니다.

        Raises:
            ScriptNotFoundException: 스크립트가 없을 때
            UnrefreshableScriptException: 원본 URL이 없을 때
            FetchException: 가져오기 실패
            DependencyFetchException: 의존성 가져오기 실패
        """
        async with self._scripts_lock:
            script = self._find_locked(script_id)
            if not script.is_refreshable:
                raise UnrefreshableScriptException(script_id)
            url = script.url

        self.logger.info(f"스크립트 새로고침 요청: {url}")
        fetched = await self.fetch_with_dependencies(url)

        async with self._scripts_lock:
            # 가져오는 동안 삭제되었을 수 있음
            script = self._find_locked(script_id)
            self._apply_fetched(script, fetched, utc_now())
            result = script.model_copy(deep=True)

        await self.save()
        self.logger.info(f"스크립트 새로고침 완료: {result.name} v{result.version or '-'}")
        return result

    # ------------------------------------------------------------------
    # 자동 업데이트 반영 (저장은 호출자가 한 번에 수행)
    # ------------------------------------------------------------------

    async def apply_update(self, script_id: str, fetched: FetchedScript, now: datetime) -> bool:
        """
        자동 업데이트 성공 결과 반영

        Returns:
            반영 여부 (가져오는 동안 삭제되었거나 URL이 바뀌었으면 False)
        """
        async with self._scripts_lock:
            script = self._find_or_none_locked(script_id)
            if script is None or script.url != fetched.url:
                self.logger.debug(f"업데이트 대상 사라짐: {script_id}")
                return False
            self._apply_fetched(script, fetched, now)
            return True

    async def record_update_failure(self, script_id: str, message: str, now: datetime) -> bool:
        """
        자동 업데이트 실패 기록 (오류 메시지와 시도 시각 저장)

        Returns:
            기록 여부
        """
        async with self._scripts_lock:
            script = self._find_or_none_locked(script_id)
            if script is None:
                return False
            script.last_fetch_error = message
            script.last_updated = now
            self._scripts_generation += 1
            return True

    # ------------------------------------------------------------------
    # 저장
    # ------------------------------------------------------------------

    async def save(self) -> None:
        """스크립트 문서와 의존성 문서 저장"""
        async with self._scripts_lock:
            scripts_snapshot = self._snapshot_scripts_locked()
            async with self._dependencies_lock:
                dependencies_snapshot = self._snapshot_dependencies_locked()

        await self.store.save_scripts(*scripts_snapshot)
        await self.store.save_dependencies(*dependencies_snapshot)

    async def save_scripts(self) -> None:
        """스크립트 문서만 저장"""
        async with self._scripts_lock:
            scripts_snapshot = self._snapshot_scripts_locked()

        await self.store.save_scripts(*scripts_snapshot)

    def _snapshot_scripts_locked(self) -> tuple[list[Script], int]:
        self._scripts_generation += 1
        update_registry_metrics(len(self._scripts))
        return [script.model_copy(deep=True) for script in self._scripts], self._scripts_generation

    def _snapshot_dependencies_locked(self) -> tuple[dict[str, Dependency], int]:
        self._dependencies_generation += 1
        return (
            {url: dep.model_copy() for url, dep in self._dependencies.items()},
            self._dependencies_generation,
        )

    # ------------------------------------------------------------------
    # 내부 헬퍼 (호출자가 스크립트 잠금을 보유)
    # ------------------------------------------------------------------

    def _find_or_none_locked(self, script_id: str) -> Optional[Script]:
        for script in self._scripts:
            if script.id == script_id:
                return script
        return None

    def _find_locked(self, script_id: str) -> Script:
        script = self._find_or_none_locked(script_id)
        if script is None:
            raise ScriptNotFoundException(script_id)
        return script

    def _ensure_unique_url_locked(self, url: str) -> None:
        if any(script.url == url for script in self._scripts):
            raise DuplicateSourceException(url)

    def _next_order_locked(self) -> int:
        return max((script.order for script in self._scripts), default=-1) + 1

    @staticmethod
    def _apply_fetched(script: Script, fetched: FetchedScript, now: datetime) -> None:
        script.code = fetched.code
        script.name = fetched.metadata.display_name
        script.version = fetched.metadata.version
        script.description = fetched.metadata.description
        script.author = fetched.metadata.author
        script.requires = list(fetched.metadata.requires)
        script.last_updated = now
        script.last_fetch_error = None

    async def close(self) -> None:
        """리소스 정리"""
        await self.fetcher.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
