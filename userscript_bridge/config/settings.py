"""
설정 관리 모듈

환경 변수를 통한 시스템 설정을 관리합니다.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..exceptions import ConfigurationException


class Settings(BaseSettings):
    """시스템 설정 관리 클래스"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        # 환경 변수 이름 대소문자 구분 안 함
        case_sensitive=False,
        extra="ignore",
    )

    # 애플리케이션 정보
    app_name: str = Field(
        default="GeoGuessr Desktop",
        description="페이로드 진단 로그와 GM_info에 표시되는 이름"
    )
    target_host: str = Field(
        default="geoguessr.com",
        description="대상 웹 애플리케이션 호스트 (외부 링크 판별용)"
    )

    # 저장소 설정
    data_dir: str = Field(
        default="./data",
        description="스크립트/의존성 JSON 문서 디렉토리"
    )
    scripts_file_name: str = Field(
        default="scripts.json",
        description="스크립트 목록 문서 파일명"
    )
    dependencies_file_name: str = Field(
        default="dependencies.json",
        description="의존성 캐시 문서 파일명"
    )

    # 원격 가져오기 설정
    fetch_timeout: float = Field(
        default=30.0,
        description="스크립트 요청 타임아웃 (초)"
    )
    max_script_size: int = Field(
        default=10 * 1024 * 1024,
        description="스크립트 최대 크기 (바이트)"
    )
    user_agent: str = Field(
        default="UserscriptBridge/1.0",
        description="요청 식별용 User-Agent"
    )

    # 자동 업데이트 설정
    update_interval_hours: float = Field(
        default=24,
        description="정상 스크립트 재확인 간격 (시간)"
    )
    error_retry_interval_hours: float = Field(
        default=1,
        description="가져오기 실패 스크립트 재시도 간격 (시간)"
    )

    # 브리지 설정
    proxy_timeout: float = Field(
        default=30.0,
        description="교차 출처 HTTP 프록시 요청 타임아웃 (초)"
    )
    host_global: str = Field(
        default="__USERSCRIPT_HOST__",
        description="호스트 셸이 노출하는 invoke/windowControl 객체의 전역 이름"
    )
    presence_global: str = Field(
        default="GeoGuessrEventFramework",
        description="프레즌스 훅이 기다리는 서드파티 이벤트 객체의 전역 이름"
    )
    presence_poll_interval_ms: int = Field(
        default=500,
        description="프레즌스 훅 폴링 간격 (밀리초)"
    )
    presence_poll_attempts: int = Field(
        default=20,
        description="프레즌스 훅 최대 폴링 횟수"
    )

    # 로깅 설정
    log_level: str = Field(
        default="INFO",
        description="로그 레벨"
    )
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="로그 포맷"
    )
    log_file: Optional[str] = Field(
        default=None,
        description="로그 파일 경로"
    )

    @property
    def scripts_path(self) -> Path:
        """스크립트 문서 경로"""
        return Path(self.data_dir) / self.scripts_file_name

    @property
    def dependencies_path(self) -> Path:
        """의존성 문서 경로"""
        return Path(self.data_dir) / self.dependencies_file_name

    def validate_configuration(self) -> None:
        """설정 유효성 검증"""
        if self.fetch_timeout <= 0:
            raise ConfigurationException("FETCH_TIMEOUT", "0보다 커야 합니다")
        if self.proxy_timeout <= 0:
            raise ConfigurationException("PROXY_TIMEOUT", "0보다 커야 합니다")
        if self.max_script_size <= 0:
            raise ConfigurationException("MAX_SCRIPT_SIZE", "0보다 커야 합니다")
        if self.update_interval_hours <= 0 or self.error_retry_interval_hours <= 0:
            raise ConfigurationException(
                "UPDATE_INTERVAL_HOURS/ERROR_RETRY_INTERVAL_HOURS", "0보다 커야 합니다"
            )
        if self.presence_poll_attempts < 1:
            raise ConfigurationException("PRESENCE_POLL_ATTEMPTS", "1 이상이어야 합니다")

        # 데이터 디렉토리 생성
        os.makedirs(self.data_dir, exist_ok=True)


@lru_cache()
def get_settings() -> Settings:
    """
    설정 인스턴스를 반환합니다 (싱글톤 패턴)

    Returns:
        Settings: 설정 인스턴스
    """
    settings = Settings()
    settings.validate_configuration()
    return settings
