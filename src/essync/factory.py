"""
essync 팩토리.

Elasticsearch 클라이언트부터 SearchManager까지 컴포넌트를 조립하는 팩토리 함수.
"""

from __future__ import annotations

from elasticsearch import Elasticsearch

from essync.client import create_es_client
from essync.config import ESConfig
from essync.core.protocols import MetadataResolverProtocol
from essync.gateway import IndexGateway
from essync.manager import SearchManager


def create_search_manager(
    resolver: MetadataResolverProtocol,
    config: ESConfig | None = None,
    es: Elasticsearch | None = None,
) -> SearchManager:
    """
    SearchManager를 생성합니다.

    Args:
        resolver: 엔티티 메타데이터 resolver (예: MetadataRegistry)
        config: ES 설정 (None이면 기본값 사용)
        es: 기존 클라이언트 (None이면 config로 새로 생성)

    Returns:
        새 세션의 SearchManager
    """
    cfg = config or ESConfig()
    client = es if es is not None else create_es_client(cfg)
    gateway = IndexGateway(client, cfg)
    return SearchManager(cfg, gateway, resolver)
