"""SearchManager: 한 세션의 진입점.

UnitOfWork, IndexGateway, 메타데이터 resolver를 묶고 세션 단위 리포지토리 캐시를 가집니다.
전역 캐시는 없으며, 세션(요청, 배치 작업 등)마다 SearchManager를 새로 만드는 것을 권장합니다.

Usage:
    >>> sm = create_search_manager(registry)
    >>> user = sm.find("user", "1")
    >>> user.name = "lee"
    >>> sm.persist(user)
    >>> sm.flush()
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from essync.bulk import BulkOperationQueue, BulkResult
from essync.config import ESConfig
from essync.core.errors import ConfigurationError, InvalidArgumentError
from essync.core.protocols import IndexGatewayProtocol, MetadataResolverProtocol
from essync.mapping.metadata import EntityDescriptor
from essync.repository import EntityRepository, RepositoryCollection
from essync.search import Query
from essync.unit_of_work import UnitOfWork

EntityRef = str | type | EntityDescriptor

_SCALAR_TYPES = (str, bytes, int, float, bool, Mapping)


class SearchManager:
    def __init__(
        self,
        config: ESConfig,
        gateway: IndexGatewayProtocol,
        resolver: MetadataResolverProtocol,
        unit_of_work: UnitOfWork | None = None,
    ):
        self.config = config
        self.gateway = gateway
        self.resolver = resolver
        if unit_of_work is None:
            queue = BulkOperationQueue(
                gateway,
                retry_on_conflict=config.retry_on_conflict,
                include_type_name=config.include_type_name,
                refresh=config.bulk_refresh,
            )
            unit_of_work = UnitOfWork(gateway, resolver, queue)
        self.unit_of_work = unit_of_work
        self._repositories: dict[str, EntityRepository] = {}

    # =========================================================================
    # Metadata
    # =========================================================================

    def get_descriptor(self, entity: EntityRef) -> EntityDescriptor:
        """타입명, 클래스, descriptor 중 무엇이든 descriptor로 변환.

        Raises:
            ConfigurationError: 매핑되지 않은 타입/클래스
        """
        if isinstance(entity, EntityDescriptor):
            return entity
        if isinstance(entity, type):
            descriptor = self.resolver.for_class(entity)
            if descriptor is None:
                raise ConfigurationError(f"Class '{entity.__name__}' is not a mapped entity")
            return descriptor
        return self.resolver.for_type(entity)

    # =========================================================================
    # Reads
    # =========================================================================

    def find(self, entity: EntityRef, doc_id: Any) -> Any:
        """식별자로 단일 객체 조회.

        doc_id가 dict면 식별자 필드 값을 꺼내 사용합니다.

        Raises:
            InvalidArgumentError: dict에 식별자 필드가 없는 경우
            NoResultError: 문서가 없는 경우
        """
        descriptor = self.get_descriptor(entity)
        if isinstance(doc_id, Mapping):
            if descriptor.identifier_field not in doc_id:
                raise InvalidArgumentError(
                    f"An '{descriptor.identifier_field}' field is required to find '{descriptor.type_name}'"
                )
            doc_id = doc_id[descriptor.identifier_field]
        return self.unit_of_work.load(descriptor, doc_id)

    def create_query(self) -> Query:
        return Query(self.unit_of_work, hydration_parameter=self.config.hydration_parameter)

    def get_repository(self, entity: EntityRef) -> EntityRepository:
        """엔티티 타입별 리포지토리 (세션 내에서 재사용)."""
        descriptor = self.get_descriptor(entity)
        repository = self._repositories.get(descriptor.type_name)
        if repository is None:
            repository = EntityRepository(self, descriptor)
            self._repositories[descriptor.type_name] = repository
        return repository

    def get_repositories(self, entities: Iterable[EntityRef]) -> RepositoryCollection:
        return RepositoryCollection(self, [self.get_repository(e) for e in entities])

    # =========================================================================
    # Writes
    # =========================================================================

    def persist(self, objects: Any) -> None:
        """객체(또는 객체 목록)를 다음 flush()에 저장되도록 등록."""
        for obj in self._objects(objects):
            self.unit_of_work.persist(obj)

    def remove(self, objects: Any) -> None:
        """객체(또는 객체 목록)를 다음 flush()에 삭제되도록 등록."""
        for obj in self._objects(objects):
            self.unit_of_work.remove(obj)

    def flush(self, obj: object | None = None) -> BulkResult:
        """대기 중인 변경을 인덱스에 반영. 세부 동작은 UnitOfWork.commit 참고."""
        return self.unit_of_work.commit(obj)

    def clear(self, type_name: str | None = None) -> None:
        self.unit_of_work.clear(type_name)

    def contains(self, obj: object) -> bool:
        return self.unit_of_work.contains(obj)

    def detach(self, obj: object) -> None:
        self.unit_of_work.detach(obj)

    def refresh(self, entity: EntityRef) -> None:
        """해당 엔티티 인덱스의 최근 쓰기를 검색 가능하게 만듦."""
        self.gateway.refresh_index(self.get_descriptor(entity).index_name)

    def _objects(self, value: Any) -> list[Any]:
        if value is None or isinstance(value, _SCALAR_TYPES):
            raise InvalidArgumentError(f"Expected a domain object, got '{type(value).__name__}'")
        if self.resolver.for_object(value) is None and isinstance(value, Iterable):
            objects = list(value)
            for obj in objects:
                if obj is None or isinstance(obj, _SCALAR_TYPES):
                    raise InvalidArgumentError(f"Expected a domain object, got '{type(obj).__name__}'")
            return objects
        return [value]
