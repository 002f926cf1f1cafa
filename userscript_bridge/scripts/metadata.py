"""
스크립트 메타데이터 관리 모듈

유저스크립트 헤더 블록(// ==UserScript== ... // ==/UserScript==)의
메타데이터 모델과 파싱 기능을 제공합니다.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from ..models.base import dedupe_urls
from ..utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SCRIPT_NAME = "Unnamed Script"

# 첫 번째 여는 마커부터 가장 가까운 닫는 마커까지 (non-greedy)
METADATA_BLOCK_PATTERN = re.compile(r"//\s*==UserScript==(.*?)//\s*==/UserScript==", re.DOTALL)
REQUIRE_PATTERN = re.compile(r"@require[ \t]+(https?://\S+)")
SINGLE_VALUE_DIRECTIVES = ("name", "version", "description", "author")
_DIRECTIVE_PATTERNS = {
    directive: re.compile(rf"@{directive}[ \t]+(.+)")
    for directive in SINGLE_VALUE_DIRECTIVES
}


@dataclass
class ScriptMetadata:
    """스크립트 메타데이터 모델"""

    name: Optional[str] = None
    version: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None

    # 의존성 정보
    requires: list[str] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        """이름이 없으면 기본 이름 사용"""
        return self.name or DEFAULT_SCRIPT_NAME

    def is_empty(self) -> bool:
        """모든 필드가 비어 있는지 여부"""
        return not any([self.name, self.version, self.description, self.author, self.requires])


class MetadataParser:
    """유저스크립트 메타데이터 파서"""

    def __init__(self, settings=None):
        """
        메타데이터 파서 초기화

        Args:
            settings: 시스템 설정 객체 (선택사항)
        """
        self.settings = settings
        self.logger = logger

    def extract_block(self, code: str) -> Optional[str]:
        """
        헤더 블록 추출

        Args:
            code: 스크립트 원문

        Returns:
            블록 내용 (닫는 마커가 없으면 None)
        """
        match = METADATA_BLOCK_PATTERN.search(code)
        return match.group(1) if match else None

    def parse(self, code: str) -> ScriptMetadata:
        """
        스크립트 원문에서 메타데이터 파싱

        헤더 블록이 없거나 지시어가 빠져 있어도 오류 없이 빈 값을 반환합니다.

        Args:
            code: 스크립트 원문

        Returns:
            파싱된 메타데이터 객체
        """
        metadata = ScriptMetadata()
        block = self.extract_block(code)
        if block is None:
            self.logger.debug("메타데이터 블록 없음")
            return metadata

        for directive, pattern in _DIRECTIVE_PATTERNS.items():
            match = pattern.search(block)
            if match:
                value = match.group(1).strip()
                setattr(metadata, directive, value or None)

        metadata.requires = dedupe_urls(
            [m.group(1).strip() for m in REQUIRE_PATTERN.finditer(block)]
        )

        self.logger.debug(
            f"메타데이터 파싱 완료: {metadata.display_name} "
            f"v{metadata.version or '-'} (의존성 {len(metadata.requires)}개)"
        )
        return metadata


def parse_metadata(code: str) -> ScriptMetadata:
    """
    편의 함수: 스크립트 원문에서 메타데이터 파싱

    Args:
        code: 스크립트 원문

    Returns:
        파싱된 메타데이터 객체
    """
    return MetadataParser().parse(code)
