"""
스크립트 관리 패키지

메타데이터 파싱, 원격 가져오기, 저장소, 레지스트리, 자동 업데이트를 제공합니다.
"""

from .fetcher import ScriptFetcher
from .metadata import MetadataParser, ScriptMetadata, parse_metadata
from .registry import FetchedScript, ScriptRegistry
from .store import JsonScriptStore
from .updater import AutoUpdater

__all__ = [
    "ScriptMetadata",
    "MetadataParser",
    "parse_metadata",
    "ScriptFetcher",
    "JsonScriptStore",
    "FetchedScript",
    "ScriptRegistry",
    "AutoUpdater",
]
