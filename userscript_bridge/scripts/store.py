"""
스크립트 저장소 모듈

스크립트 목록과 의존성 캐시를 두 개의 독립적인 JSON 문서로 저장합니다.
"""

import asyncio
from pathlib import Path

from pydantic import ValidationError

from ..config.settings import Settings
from ..exceptions import PersistenceException
from ..models.base import Dependency, Script
from ..utils.helpers import read_json_document, write_json_document
from ..utils.logging import get_logger

logger = get_logger(__name__)


class JsonScriptStore:
    """JSON 문서 기반 스크립트/의존성 저장소"""

    def __init__(self, settings: Settings):
        """
        저장소 초기화

        Args:
            settings: 시스템 설정
        """
        self.settings = settings
        self.logger = logger
        self.scripts_path = Path(settings.scripts_path)
        self.dependencies_path = Path(settings.dependencies_path)

        # 문서별 쓰기 직렬화와 마지막으로 기록된 스냅샷 세대
        self._write_locks = {"scripts": asyncio.Lock(), "dependencies": asyncio.Lock()}
        self._written_generation = {"scripts": -1, "dependencies": -1}

    @property
    def data_dir(self) -> Path:
        return self.scripts_path.parent

    def load_scripts(self) -> list[Script]:
        """
        스크립트 문서 로드

        파일이 없거나 형식이 잘못되면 빈 목록을 반환합니다.

        Returns:
            스크립트 목록 (문서 순서 유지)
        """
        document = read_json_document(self.scripts_path, [])
        if not isinstance(document, list):
            self.logger.warning(f"스크립트 문서 형식 오류, 빈 목록 사용: {self.scripts_path}")
            return []

        scripts = []
        seen_ids = set()
        for record in document:
            try:
                script = Script.model_validate(record)
            except ValidationError as e:
                self.logger.warning(f"잘못된 스크립트 레코드 무시: {e.error_count()}개 오류")
                continue
            if script.id in seen_ids:
                self.logger.warning(f"중복 스크립트 ID 무시: {script.id}")
                continue
            seen_ids.add(script.id)
            scripts.append(script)

        self.logger.info(f"스크립트 {len(scripts)}개 로드: {self.scripts_path}")
        return scripts

    def load_dependencies(self) -> dict[str, Dependency]:
        """
        의존성 캐시 문서 로드

        Returns:
            URL -> 의존성 매핑
        """
        document = read_json_document(self.dependencies_path, {})
        if not isinstance(document, dict):
            self.logger.warning(f"의존성 문서 형식 오류, 빈 캐시 사용: {self.dependencies_path}")
            return {}

        dependencies = {}
        for url, record in document.items():
            try:
                dependency = Dependency.model_validate(record)
            except ValidationError as e:
                self.logger.warning(f"잘못된 의존성 레코드 무시: {url} ({e.error_count()}개 오류)")
                continue
            dependencies[dependency.url] = dependency

        self.logger.info(f"의존성 {len(dependencies)}개 로드: {self.dependencies_path}")
        return dependencies

    async def save_scripts(self, scripts: list[Script], generation: int) -> bool:
        """
        스크립트 문서 전체 교체

        Args:
            scripts: 스크립트 스냅샷
            generation: 스냅샷 세대 (이미 더 새로운 세대가 기록되었으면 건너뜀)

        Returns:
            실제로 기록했는지 여부
        """
        document = [script.model_dump(mode="json") for script in scripts]
        return await self._write("scripts", self.scripts_path, document, generation)

    async def save_dependencies(self, dependencies: dict[str, Dependency], generation: int) -> bool:
        """
        의존성 캐시 문서 전체 교체

        Args:
            dependencies: 의존성 스냅샷
            generation: 스냅샷 세대

        Returns:
            실제로 기록했는지 여부
        """
        document = {url: dep.model_dump(mode="json") for url, dep in dependencies.items()}
        return await self._write("dependencies", self.dependencies_path, document, generation)

    async def _write(self, key: str, path: Path, document, generation: int) -> bool:
        async with self._write_locks[key]:
            if generation <= self._written_generation[key]:
                self.logger.debug(f"오래된 스냅샷 기록 건너뜀: {path.name} (세대 {generation})")
                return False

            try:
                await asyncio.to_thread(write_json_document, path, document)
            except (OSError, TypeError, ValueError) as e:
                self.logger.error(f"문서 저장 실패: {path} - {e}")
                raise PersistenceException(str(path), str(e)) from e

            self._written_generation[key] = generation
            self.logger.debug(f"문서 저장 완료: {path.name} (세대 {generation})")
            return True
