"""
원격 스크립트 가져오기 모듈

HTTPS URL에서 유저스크립트와 의존성 본문을 검증 제한과 함께 다운로드합니다.
"""

import asyncio
import codecs
from typing import Optional

import aiohttp

from ..config.settings import Settings
from ..exceptions import (
    ContentTypeException,
    FetchConnectException,
    FetchException,
    FetchNetworkException,
    FetchTimeoutException,
    HttpStatusException,
    InsecureUrlException,
    ScriptTooLargeException,
)
from ..monitoring.metrics import record_fetch
from ..utils.logging import get_logger

logger = get_logger(__name__)

ACCEPTED_CONTENT_TYPES = ("javascript", "text/plain")
CHUNK_SIZE = 64 * 1024


def resolve_encoding(charset: Optional[str]) -> str:
    """응답 charset을 코덱 이름으로 변환 (없거나 알 수 없으면 utf-8)"""
    if charset:
        try:
            return codecs.lookup(charset).name
        except LookupError:
            logger.warning(f"알 수 없는 charset, utf-8로 디코딩: {charset}")
    return "utf-8"


class ScriptFetcher:
    """원격 스크립트 다운로더"""

    def __init__(self, settings: Settings, session: Optional[aiohttp.ClientSession] = None):
        """
        다운로더 초기화

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
                timeout=aiohttp.ClientTimeout(total=self.settings.fetch_timeout),
                headers={
                    'User-Agent': self.settings.user_agent
                }
            )
        return self.session

    async def fetch(self, url: str, kind: str = "script") -> str:
        """
        URL에서 스크립트 본문 가져오기

        Args:
            url: HTTPS URL
            kind: 메트릭 분류용 (script 또는 dependency)

        Returns:
            디코딩된 본문 (수정 없음)

        Raises:
            InsecureUrlException: HTTPS가 아닌 URL
            FetchTimeoutException: 요청 시간 초과
            FetchConnectException: 연결 실패
            FetchNetworkException: 기타 전송 오류
            HttpStatusException: 2xx가 아닌 응답
            ContentTypeException: 스크립트가 아닌 콘텐츠 타입
            ScriptTooLargeException: 크기 제한 초과
        """
        try:
            text = await self._fetch(url)
        except FetchException as e:
            record_fetch(kind, e.error_code or "error")
            self.logger.warning(f"가져오기 실패: {url} - {e.message}")
            raise

        record_fetch(kind, "success")
        self.logger.info(f"가져오기 완료: {url} ({len(text)}자)")
        return text

    async def _fetch(self, url: str) -> str:
        if not url.startswith("https://"):
            raise InsecureUrlException(url)

        session = await self._get_session()
        self.logger.debug(f"가져오기 시작: {url}")

        try:
            async with session.get(url) as response:
                if not 200 <= response.status < 300:
                    raise HttpStatusException(url, response.status, response.reason)

                content_type = response.headers.get('Content-Type')
                if content_type is not None and not any(
                    accepted in content_type for accepted in ACCEPTED_CONTENT_TYPES
                ):
                    raise ContentTypeException(url, content_type)

                body = await self._read_limited(url, response)
                return body.decode(resolve_encoding(response.charset), errors='replace')

        except FetchException:
            raise
        except asyncio.TimeoutError as e:
            raise FetchTimeoutException(url, self.settings.fetch_timeout) from e
        except aiohttp.ClientConnectorError as e:
            raise FetchConnectException(url) from e
        except aiohttp.ClientError as e:
            raise FetchNetworkException(url, str(e) or type(e).__name__) from e

    async def _read_limited(self, url: str, response) -> bytes:
        """크기 제한을 넘으면 버퍼링을 중단하고 거부"""
        limit = self.settings.max_script_size

        if response.content_length is not None and response.content_length > limit:
            raise ScriptTooLargeException(url, limit)

        buffer = bytearray()
        async for chunk in response.content.iter_chunked(CHUNK_SIZE):
            buffer.extend(chunk)
            if len(buffer) > limit:
                raise ScriptTooLargeException(url, limit)
        return bytes(buffer)

    async def close(self) -> None:
        """세션 정리"""
        if self.session and self._owns_session:
            await self.session.close()
            self.session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
