"""Elasticsearch 클라이언트 팩토리.

전송 계층의 재시도(max_retries, retry_on_timeout)가 모두 소진된 뒤에야
BulkOperationQueue가 ConnectionError/ConnectionTimeout을 받아 ReschedulableError로 분류합니다.
"""

from __future__ import annotations

import logging
from typing import Any

from elasticsearch import Elasticsearch

from .config import ESConfig

logger = logging.getLogger(__name__)


def client_options(cfg: ESConfig) -> dict[str, Any]:
    """ESConfig -> Elasticsearch 생성자 인자.

    Raises:
        ValueError: ES_HOSTS가 비어 있는 경우.
    """
    hosts = cfg.hosts()
    if not hosts:
        raise ValueError("ES_HOSTS 환경변수를 설정하세요.")

    options: dict[str, Any] = {
        "hosts": hosts,
        "verify_certs": cfg.verify_certs,
        "request_timeout": cfg.request_timeout_s,
        "max_retries": cfg.max_retries,
        "retry_on_timeout": cfg.retry_on_timeout,
    }
    # Basic Auth는 계정 정보가 모두 있을 때만 (로컬 개발은 No Auth)
    if cfg.es_username and cfg.es_password:
        options["basic_auth"] = (cfg.es_username, cfg.es_password)
    return options


def create_es_client(cfg: ESConfig | None = None) -> Elasticsearch:
    """Elasticsearch 클라이언트 생성.

    Args:
        cfg: ES 설정. None이면 기본 설정 사용.

    Returns:
        Elasticsearch 클라이언트 인스턴스.
    """
    if cfg is None:
        cfg = ESConfig()
    return Elasticsearch(**client_options(cfg))


def check_connection(es: Elasticsearch) -> bool:
    """ES 연결 상태 확인.

    Returns:
        연결 성공 여부.
    """
    try:
        return bool(es.ping())
    except Exception as e:
        logger.warning(f"Elasticsearch ping failed: {e}")
        return False
