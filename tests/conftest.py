"""
공통 테스트 픽스처

네트워크 없이 aiohttp 세션을 흉내 내는 가짜 객체와 임시 설정을 제공합니다.
"""

from typing import Optional, Union

import pytest

from userscript_bridge.config.settings import Settings


class FakeContent:
    """aiohttp StreamReader 대체 (읽은 바이트 수 기록)"""

    def __init__(self, body: bytes):
        self.body = body
        self.bytes_read = 0

    async def iter_chunked(self, size: int):
        for start in range(0, len(self.body), size):
            chunk = self.body[start:start + size]
            self.bytes_read += len(chunk)
            yield chunk


class FakeResponse:
    """aiohttp ClientResponse 대체"""

    def __init__(
        self,
        status: int = 200,
        body: Union[bytes, str] = b"",
        headers: Optional[dict] = None,
        reason: Optional[str] = "OK",
        charset: Optional[str] = None,
        content_length: Optional[int] = None,
    ):
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.status = status
        self.reason = reason
        self.charset = charset
        self.content_length = content_length
        self.headers = {"Content-Type": "application/javascript"} if headers is None else headers
        self.content = FakeContent(body)
        self._body = body

    async def text(self, errors: str = "strict") -> str:
        return self._body.decode(self.charset or "utf-8", errors=errors)


class _RequestContext:
    def __init__(self, outcome):
        self.outcome = outcome

    async def __aenter__(self):
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeSession:
    """
    aiohttp ClientSession 대체

    routes: URL -> FakeResponse 또는 발생시킬 예외
    """

    def __init__(self, routes: Optional[dict] = None):
        self.routes = dict(routes or {})
        self.calls: list[tuple[str, str, dict]] = []
        self.closed = False

    def _outcome(self, url: str):
        if url not in self.routes:
            return FakeResponse(status=404, reason="Not Found", headers={})
        return self.routes[url]

    def get(self, url: str, **kwargs):
        self.calls.append(("GET", url, kwargs))
        return _RequestContext(self._outcome(url))

    def request(self, method: str, url: str, **kwargs):
        self.calls.append((method, url, kwargs))
        return _RequestContext(self._outcome(url))

    def urls_requested(self) -> list[str]:
        return [url for _, url, _ in self.calls]

    async def close(self) -> None:
        self.closed = True


def userscript(
    name: Optional[str] = "Test Script",
    version: Optional[str] = "1.0.0",
    requires: Optional[list] = None,
    body: str = "console.log('hello');",
) -> str:
    """헤더 블록이 있는 유저스크립트 원문 생성"""
    lines = ["// ==UserScript=="]
    if name:
        lines.append(f"// @name         {name}")
    if version:
        lines.append(f"// @version      {version}")
    lines.append("// @description  테스트용 스크립트")
    lines.append("// @author       tester")
    for url in requires or []:
        lines.append(f"// @require      {url}")
    lines.append("// ==/UserScript==")
    lines.append(body)
    return "\n".join(lines)


@pytest.fixture
def settings(tmp_path):
    """임시 데이터 디렉토리를 사용하는 설정"""
    return Settings(data_dir=str(tmp_path / "data"))


@pytest.fixture
def fake_session():
    return FakeSession()
