"""
권한 작업 모듈

신뢰 측에서만 수행할 수 있는 교차 출처 HTTP 요청과 외부 URL 열기를 제공합니다.
"""

import asyncio
import webbrowser
from typing import Optional
from urllib.parse import urlparse

import aiohttp

from ..config.settings import Settings
from ..exceptions import BridgeException
from ..models.base import HttpProxyRequest, HttpProxyResponse
from ..utils.logging import get_logger

logger = get_logger(__name__)

PROXY_SCHEMES = ("http", "https")
EXTERNAL_SCHEMES = ("http", "https", "mailto")


def join_headers(headers) -> str:
    """응답 헤더를 'key: value' 줄 블록으로 직렬화"""
    return "\r\n".join(f"{key}: {value}" for key, value in headers.items())


class HttpProxy:
    """출처 제한 없는 HTTP 프록시"""

    def __init__(self, settings: Settings, session: Optional[aiohttp.ClientSession] = None):
        """
        프록시 초기화

        Args:
            settings: 시스템 설정
            session: 외부에서 주입한 HTTP 세션 (없으면 필요할 때 생성)
        """
        self.settings = settings
        self.logger = logger
        self.session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """HTTP 세션 생성"""
        if not self.session:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.settings.proxy_timeout),
                headers={
                    'User-Agent': self.settings.user_agent
                }
            )
        return self.session

    async def request(self, request: HttpProxyRequest) -> HttpProxyResponse:
        """
        HTTP 요청 실행

        2xx가 아닌 응답도 그대로 결과로 반환하며, 전송 실패만 오류로 처리합니다.

        Args:
            request: 프록시 요청

        Returns:
            상태 코드, 상태 문구, 본문, 헤더 블록

        Raises:
            BridgeException: 지원하지 않는 URL 또는 네트워크 실패
        """
        if urlparse(request.url).scheme not in PROXY_SCHEMES:
            raise BridgeException(f"지원하지 않는 URL입니다: {request.url}", "gm_xhr")

        session = await self._get_session()
        self.logger.debug(f"프록시 요청: {request.method} {request.url}")

        try:
            async with session.request(
                request.method,
                request.url,
                headers=request.headers,
                data=request.body,
            ) as response:
                body_text = await response.text(errors="replace")
                result = HttpProxyResponse(
                    status_code=response.status,
                    status_text=response.reason or "",
                    body_text=body_text,
                    headers=join_headers(response.headers),
                )
        except asyncio.TimeoutError as e:
            self.logger.warning(f"프록시 요청 시간 초과: {request.url}")
            raise BridgeException(
                f"요청 시간 초과 ({self.settings.proxy_timeout:g}초): {request.url}", "gm_xhr"
            ) from e
        except aiohttp.ClientError as e:
            self.logger.warning(f"프록시 요청 실패: {request.url} - {e}")
            raise BridgeException(f"요청 실패: {e}", "gm_xhr") from e

        self.logger.info(f"프록시 응답: {request.method} {request.url} -> {result.status_code}")
        return result

    async def close(self) -> None:
        """세션 정리"""
        if self.session and self._owns_session:
            await self.session.close()
            self.session = None


async def open_external(url: str) -> None:
    """
    플랫폼 기본 핸들러로 URL 열기

    Raises:
        BridgeException: 지원하지 않는 URL이거나 브라우저를 열 수 없을 때
    """
    if urlparse(url or "").scheme not in EXTERNAL_SCHEMES:
        raise BridgeException(f"외부에서 열 수 없는 URL입니다: {url}", "open_external_url")

    opened = await asyncio.to_thread(webbrowser.open, url)
    if not opened:
        raise BridgeException(f"URL을 열 수 없습니다: {url}", "open_external_url")
    logger.info(f"외부 URL 열기: {url}")
