"""Elasticsearch 연결 및 동기화 설정 관리.

환경변수로 설정을 관리합니다. `.env` 파일이 있으면 import 시점에 로드합니다.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

DEFAULT_RETRY_ON_CONFLICT = 5


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_refresh() -> bool | str:
    """ES_BULK_REFRESH: "true" / "false" / "wait_for"."""
    raw = os.getenv("ES_BULK_REFRESH", "false").lower()
    if raw == "wait_for":
        return "wait_for"
    return raw == "true"


@dataclass(frozen=True)
class ESConfig:
    """Elasticsearch 연결 및 동기화 설정.

    Attributes:
        es_hosts: 콤마로 구분된 host[:port] 목록 (예: "es1,es2:9201")
        default_port: 포트가 없는 host에 붙일 기본 포트
        es_username: HTTP Basic Auth 사용자명 (선택)
        es_password: HTTP Basic Auth 비밀번호 (선택)
        verify_certs: SSL 인증서 검증 여부
        request_timeout_s: 요청 타임아웃 (초)
        max_retries: 전송 계층 재시도 횟수 (노드 장애 시)
        retry_on_timeout: 타임아웃도 전송 계층에서 재시도할지 여부
        retry_on_conflict: bulk upsert item별 서버측 충돌 재시도 횟수
        bulk_refresh: bulk 요청의 refresh 옵션 (False / True / "wait_for")
        include_type_name: bulk 메타데이터에 `_type`을 포함할지 여부 (타입을 지원하는 구버전 클러스터용)
        hydration_parameter: Delegated hydration 시 id 목록을 바인딩할 파라미터명
        default_search_size: find_by 등에서 limit이 없을 때의 검색 크기
    """

    # Connection
    es_hosts: str = field(default_factory=lambda: os.getenv("ES_HOSTS", "localhost"))
    default_port: int = field(default_factory=lambda: int(os.getenv("ES_DEFAULT_PORT", "9200")))
    es_username: str | None = field(default_factory=lambda: os.getenv("ES_USERNAME"))
    es_password: str | None = field(default_factory=lambda: os.getenv("ES_PASSWORD"))

    verify_certs: bool = field(default_factory=lambda: _env_bool("ES_VERIFY_CERTS", "true"))
    request_timeout_s: int = field(
        default_factory=lambda: int(os.getenv("ES_REQUEST_TIMEOUT_S", "30"))
    )
    max_retries: int = field(default_factory=lambda: int(os.getenv("ES_MAX_RETRIES", "3")))
    retry_on_timeout: bool = field(
        default_factory=lambda: _env_bool("ES_RETRY_ON_TIMEOUT", "false")
    )

    # Bulk
    retry_on_conflict: int = field(
        default_factory=lambda: int(
            os.getenv("ES_RETRY_ON_CONFLICT", str(DEFAULT_RETRY_ON_CONFLICT))
        )
    )
    bulk_refresh: bool | str = field(default_factory=_env_refresh)
    include_type_name: bool = field(
        default_factory=lambda: _env_bool("ES_INCLUDE_TYPE_NAME", "false")
    )

    # Query
    hydration_parameter: str = field(
        default_factory=lambda: os.getenv("ES_HYDRATION_PARAMETER", "ids")
    )
    default_search_size: int = field(
        default_factory=lambda: int(os.getenv("ES_DEFAULT_SEARCH_SIZE", "10"))
    )

    def hosts(self) -> list[str]:
        """포트가 없는 host에 default_port를 붙인 host 목록.

        scheme이 포함된 URL(http://...)은 그대로 사용합니다.
        """
        out = []
        for raw in self.es_hosts.split(","):
            host = raw.strip()
            if not host:
                continue
            if "://" in host:
                out.append(host)
                continue
            name, _, port = host.partition(":")
            out.append(f"http://{name}:{port or self.default_port}")
        return out
