"""
페이로드 주입 패키지

페이지 로드마다 실행되는 JavaScript 페이로드 조립 기능을 제공합니다.
"""

from .assembler import InjectionPayload, PayloadAssembler, encode_base64

__all__ = ["InjectionPayload", "PayloadAssembler", "encode_base64"]
