"""Elasticsearch 객체 동기화 및 hydration 엔진.

도메인 객체의 변경을 추적해 bulk 요청으로 인덱스에 반영하고,
검색 결과를 다시 도메인 객체로 만들어 돌려줍니다.

주요 컴포넌트:
    - EntityDescriptor / MetadataRegistry: 엔티티 매핑 메타데이터
    - IndexGateway: 문서/검색/bulk/인덱스 관리 API 경계
    - BulkOperationQueue: bulk 쓰기 누적 및 응답 분류
    - UnitOfWork: 객체 생명주기 추적 (NEW / MANAGED / REMOVED)
    - Query: 검색 + hydration (BYPASS / INTERNAL / DELEGATED)
    - SearchManager, EntityRepository: 세션 단위 facade

Usage:
    >>> from essync import EntityDescriptor, MetadataRegistry, create_search_manager
    >>>
    >>> registry = MetadataRegistry([
    ...     EntityDescriptor.from_mapping(User, {"index": "users", "type": "user", "fields": [...]}),
    ... ])
    >>> sm = create_search_manager(registry)
    >>>
    >>> # 쓰기
    >>> sm.persist(User(id="1", name="kim"))
    >>> sm.flush()
    >>>
    >>> # 읽기
    >>> users = sm.get_repository("user").find_by({"name": "kim"})
"""

from essync.bulk import BulkOperationQueue, BulkResult, DeleteOperation, UpsertOperation
from essync.client import check_connection, create_es_client
from essync.config import ESConfig
from essync.core import (
    AmbiguousWriteError,
    BulkPartialFailureError,
    ConfigurationError,
    Hit,
    HydrationMode,
    HydrationQueryProtocol,
    IndexGatewayProtocol,
    InvalidArgumentError,
    MetadataResolverProtocol,
    NoResultError,
    ObjectState,
    ReschedulableError,
    ResultSet,
    SearchSyncError,
    UnexpectedResultTypeError,
    UnknownFieldError,
)
from essync.factory import create_search_manager
from essync.gateway import IndexGateway
from essync.manager import SearchManager
from essync.mapping import EntityDescriptor, FieldMapping, MetadataRegistry, RootMapping
from essync.repository import EntityRepository, RepositoryCollection
from essync.search import Query
from essync.unit_of_work import UnitOfWork

__all__ = [
    # Config
    "ESConfig",
    # Client
    "create_es_client",
    "check_connection",
    "create_search_manager",
    # Mapping
    "EntityDescriptor",
    "FieldMapping",
    "RootMapping",
    "MetadataRegistry",
    # Types
    "Hit",
    "ResultSet",
    "HydrationMode",
    "ObjectState",
    # Protocols
    "MetadataResolverProtocol",
    "HydrationQueryProtocol",
    "IndexGatewayProtocol",
    # Gateway / Bulk
    "IndexGateway",
    "BulkOperationQueue",
    "BulkResult",
    "UpsertOperation",
    "DeleteOperation",
    # Session
    "UnitOfWork",
    "Query",
    "SearchManager",
    "EntityRepository",
    "RepositoryCollection",
    # Errors
    "SearchSyncError",
    "ConfigurationError",
    "InvalidArgumentError",
    "AmbiguousWriteError",
    "NoResultError",
    "UnknownFieldError",
    "UnexpectedResultTypeError",
    "BulkPartialFailureError",
    "ReschedulableError",
]
