"""
클라이언트 IP 추출 유틸리티 (rate limit 키, 요청 로그용).
"""
from typing import Optional

from fastapi import Request

# 단일 IP를 담는 프록시 헤더 (우선순위 순)
_SINGLE_IP_HEADERS = ("X-Real-IP", "CF-Connecting-IP", "True-Client-IP")


def get_client_ip(request: Request) -> Optional[str]:
    """
    프록시/로드밸런서 뒤의 실제 클라이언트 IP.

    X-Forwarded-For의 첫 번째 값 -> X-Real-IP -> CF-Connecting-IP ->
    True-Client-IP -> 직접 연결 주소 순으로 확인합니다.
    헤더는 위조 가능하므로 신뢰할 수 있는 프록시 뒤에서만 의미가 있습니다.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    for header in _SINGLE_IP_HEADERS:
        value = request.headers.get(header)
        if value and value.strip():
            return value.strip()

    return request.client.host if request.client else None
