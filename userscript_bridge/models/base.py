"""
기본 데이터 모델 모듈

스크립트 레지스트리와 브리지 프로토콜의 핵심 데이터 구조들을 정의합니다.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from ..utils.helpers import generate_correlation_id, generate_script_id, utc_now
from .enums import BridgeMessageKind, WindowAction


def dedupe_urls(urls: List[str]) -> List[str]:
    """선언 순서를 유지하며 중복 URL 제거"""
    seen = set()
    unique = []
    for url in urls:
        if url not in seen:
            seen.add(url)
            unique.append(url)
    return unique


class Script(BaseModel):
    """설치된 유저스크립트 데이터 모델"""

    id: str = Field(
        default_factory=generate_script_id,
        description="스크립트 고유 식별자 (생성 후 불변)"
    )
    name: str = Field(
        ...,
        description="표시 이름"
    )
    code: str = Field(
        default="",
        description="스크립트 본문"
    )
    enabled: bool = Field(
        default=True,
        description="활성화 여부"
    )
    order: int = Field(
        default=0,
        description="로드 순서 (낮을수록 먼저)"
    )
    url: Optional[str] = Field(
        default=None,
        description="원본 URL (원격에서 가져온 경우에만 존재)"
    )
    version: Optional[str] = Field(
        default=None,
        description="메타데이터 버전"
    )
    description: Optional[str] = Field(
        default=None,
        description="메타데이터 설명"
    )
    author: Optional[str] = Field(
        default=None,
        description="메타데이터 작성자"
    )
    requires: List[str] = Field(
        default_factory=list,
        description="선언된 의존성 URL 목록 (선언 순서)"
    )
    last_updated: Optional[datetime] = Field(
        default=None,
        description="마지막 업데이트 시각"
    )
    last_fetch_error: Optional[str] = Field(
        default=None,
        description="마지막 가져오기 오류 메시지"
    )

    @field_validator("requires")
    @classmethod
    def _dedupe_requires(cls, value: List[str]) -> List[str]:
        return dedupe_urls(value)

    @property
    def is_refreshable(self) -> bool:
        """원본 URL이 있어야만 새로고침/자동 업데이트 가능"""
        return bool(self.url)


class Dependency(BaseModel):
    """캐시된 의존성 데이터 모델"""

    url: str = Field(
        ...,
        description="의존성 URL (식별자)"
    )
    code: str = Field(
        ...,
        description="의존성 본문"
    )
    last_updated: datetime = Field(
        default_factory=utc_now,
        description="마지막으로 가져온 시각"
    )


# ---------------------------------------------------------------------------
# 브리지 메시지
# ---------------------------------------------------------------------------

class BridgeMessage(BaseModel):
    """브리지 메시지 공통 설정"""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """전송용 딕셔너리 (camelCase 키)"""
        return self.model_dump(mode="json", by_alias=True)


class InvokeRequest(BridgeMessage):
    """권한 작업 호출 요청"""

    kind: BridgeMessageKind = Field(default=BridgeMessageKind.INVOKE)
    correlation_id: str = Field(
        default_factory=generate_correlation_id,
        alias="correlationId",
        min_length=1,
        description="요청 상관관계 ID"
    )
    operation: str = Field(
        ...,
        min_length=1,
        description="작업 이름"
    )
    args: Dict[str, Any] = Field(
        default_factory=dict,
        description="작업별 인자"
    )


class WindowControlRequest(BridgeMessage):
    """창 제어 요청 (응답 없음)"""

    kind: BridgeMessageKind = Field(default=BridgeMessageKind.WINDOW_CONTROL)
    action: WindowAction = Field(
        ...,
        description="창 제어 동작"
    )


class InvokeResponse(BridgeMessage):
    """권한 작업 호출 응답"""

    kind: BridgeMessageKind = Field(default=BridgeMessageKind.INVOKE_RESPONSE)
    correlation_id: str = Field(
        ...,
        alias="correlationId",
        description="요청 상관관계 ID"
    )
    result: Any = Field(
        default=None,
        description="작업 결과"
    )
    error: Optional[str] = Field(
        default=None,
        description="오류 메시지"
    )

    @model_validator(mode="after")
    def _result_xor_error(self) -> "InvokeResponse":
        if self.error is not None and self.result is not None:
            raise ValueError("응답은 result와 error를 동시에 가질 수 없습니다")
        return self

    @property
    def is_error(self) -> bool:
        return self.error is not None


class HttpProxyRequest(BridgeMessage):
    """교차 출처 HTTP 프록시 요청"""

    url: str = Field(
        ...,
        min_length=1,
        description="요청 URL"
    )
    method: str = Field(
        default="GET",
        description="HTTP 메서드"
    )
    headers: Optional[Dict[str, str]] = Field(
        default=None,
        description="요청 헤더"
    )
    body: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("body", "data"),
        description="요청 본문"
    )

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, value: Optional[str]) -> str:
        return (value or "GET").upper()


class HttpProxyResponse(BridgeMessage):
    """교차 출처 HTTP 프록시 응답"""

    status_code: int = Field(
        ...,
        alias="statusCode",
        description="HTTP 상태 코드"
    )
    status_text: str = Field(
        default="",
        alias="statusText",
        description="상태 설명 문구"
    )
    body_text: str = Field(
        default="",
        alias="bodyText",
        description="응답 본문"
    )
    headers: str = Field(
        default="",
        description="줄바꿈으로 연결된 'key: value' 헤더 블록"
    )
