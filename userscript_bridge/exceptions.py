"""
예외 클래스 정의 모듈

유저스크립트 브리지에서 사용되는 커스텀 예외들을 정의합니다.
"""

from typing import Optional


class UserscriptBridgeException(Exception):
    """유저스크립트 브리지 기본 예외 클래스"""

    def __init__(self, message: str, error_code: Optional[str] = None):
        """
        예외 초기화

        Args:
            message: 오류 메시지
            error_code: 오류 코드 (선택사항)
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code


# ---------------------------------------------------------------------------
# 가져오기(fetch) 계층
# ---------------------------------------------------------------------------

class FetchException(UserscriptBridgeException):
    """원격 스크립트 가져오기 실패 기본 예외"""

    def __init__(self, url: str, message: str, error_code: str = "FETCH_ERROR"):
        super().__init__(message, error_code)
        self.url = url


class InsecureUrlException(FetchException):
    """HTTPS가 아닌 URL을 요청했을 때 발생하는 예외"""

    def __init__(self, url: str):
        super().__init__(url, f"보안상 HTTPS URL만 지원합니다: {url}", "INSECURE_URL")


class FetchTimeoutException(FetchException):
    """요청 타임아웃 예외"""

    def __init__(self, url: str, timeout_seconds: float):
        """
        타임아웃 예외 초기화

        Args:
            url: 요청 URL
            timeout_seconds: 타임아웃 시간(초)
        """
        super().__init__(url, f"요청 시간 초과 ({timeout_seconds:g}초): {url}", "FETCH_TIMEOUT")
        self.timeout_seconds = timeout_seconds


class FetchConnectException(FetchException):
    """호스트 연결 실패 예외"""

    def __init__(self, url: str):
        super().__init__(url, f"연결 실패: {url}", "FETCH_CONNECT_ERROR")


class FetchNetworkException(FetchException):
    """기타 전송 계층 오류 예외"""

    def __init__(self, url: str, error_detail: str):
        super().__init__(url, f"네트워크 오류: {error_detail}", "FETCH_NETWORK_ERROR")
        self.error_detail = error_detail


class HttpStatusException(FetchException):
    """2xx가 아닌 응답 상태 예외"""

    def __init__(self, url: str, status: int, reason: Optional[str] = None):
        """
        HTTP 상태 예외 초기화

        Args:
            url: 요청 URL
            status: HTTP 상태 코드
            reason: 상태 설명 문구
        """
        super().__init__(url, f"HTTP {status}: {reason or 'Unknown error'}", "HTTP_STATUS_ERROR")
        self.status = status
        self.reason = reason


class ContentTypeException(FetchException):
    """스크립트가 아닌 콘텐츠 타입 예외"""

    def __init__(self, url: str, content_type: str):
        super().__init__(
            url,
            f"JavaScript 콘텐츠가 아닙니다 (content-type: {content_type})",
            "CONTENT_TYPE_ERROR"
        )
        self.content_type = content_type


class ScriptTooLargeException(FetchException):
    """크기 제한 초과 예외"""

    def __init__(self, url: str, limit_bytes: int):
        super().__init__(
            url,
            f"스크립트 크기 제한 초과 (>{limit_bytes // (1024 * 1024)}MB): {url}",
            "SCRIPT_TOO_LARGE"
        )
        self.limit_bytes = limit_bytes


# ---------------------------------------------------------------------------
# 레지스트리 계층
# ---------------------------------------------------------------------------

class DuplicateSourceException(UserscriptBridgeException):
    """같은 URL의 스크립트가 이미 등록되어 있을 때 발생하는 예외"""

    def __init__(self, url: str):
        super().__init__(f"이 URL의 스크립트가 이미 존재합니다: {url}", "DUPLICATE_SOURCE")
        self.url = url


class DependencyFetchException(UserscriptBridgeException):
    """의존성 스크립트 가져오기 실패 예외"""

    def __init__(self, url: str, cause: UserscriptBridgeException):
        """
        의존성 가져오기 예외 초기화

        Args:
            url: 실패한 의존성 URL
            cause: 원인 예외
        """
        super().__init__(f"의존성 가져오기 실패 {url}: {cause.message}", "DEPENDENCY_FETCH_ERROR")
        self.url = url
        self.cause = cause


class ScriptNotFoundException(UserscriptBridgeException):
    """스크립트를 찾을 수 없을 때 발생하는 예외"""

    def __init__(self, script_id: str):
        super().__init__(f"스크립트를 찾을 수 없습니다: {script_id}", "SCRIPT_NOT_FOUND")
        self.script_id = script_id


class UnrefreshableScriptException(UserscriptBridgeException):
    """원본 URL이 없는 스크립트를 새로고침하려 할 때 발생하는 예외"""

    def __init__(self, script_id: str):
        super().__init__(f"수동으로 추가된 스크립트는 새로고침할 수 없습니다: {script_id}", "UNREFRESHABLE")
        self.script_id = script_id


class PersistenceException(UserscriptBridgeException):
    """저장소 파일 쓰기 실패 예외"""

    def __init__(self, path: str, error_detail: str):
        super().__init__(f"저장 실패 ({path}): {error_detail}", "PERSISTENCE_ERROR")
        self.path = path
        self.error_detail = error_detail


# ---------------------------------------------------------------------------
# 브리지 계층
# ---------------------------------------------------------------------------

class BridgeException(UserscriptBridgeException):
    """브리지 전송 또는 디스패치 오류 예외"""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message, "BRIDGE_ERROR")
        self.operation = operation


class BridgeTimeoutException(BridgeException):
    """호출자 측 응답 대기 타임아웃 예외"""

    def __init__(self, correlation_id: str, timeout_seconds: float):
        super().__init__(f"브리지 응답 시간 초과 ({timeout_seconds:g}초): {correlation_id}")
        self.error_code = "BRIDGE_TIMEOUT"
        self.correlation_id = correlation_id
        self.timeout_seconds = timeout_seconds


class ConfigurationException(UserscriptBridgeException):
    """설정 오류 시 발생하는 예외"""

    def __init__(self, config_key: str, error_detail: str):
        """
        설정 예외 초기화

        Args:
            config_key: 설정 키
            error_detail: 오류 상세 정보
        """
        message = f"설정 오류: {config_key} - {error_detail}"
        super().__init__(message, "CONFIGURATION_ERROR")
        self.config_key = config_key
        self.error_detail = error_detail
