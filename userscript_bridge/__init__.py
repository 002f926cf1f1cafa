"""
유저스크립트 레지스트리 & 크로스 컨텍스트 브리지

원격 유저스크립트와 의존성을 관리하고, 페이지에 주입할 페이로드와
권한 작업 요청/응답 프로토콜을 제공합니다.
"""

__version__ = "1.0.0"
