"""외부 협력자 Protocol(인터페이스) 정의.

이 모듈은 Elasticsearch에 의존하지 않습니다.

Protocol은 구조적 서브타이핑(Structural Subtyping)을 지원합니다.
구현체가 이 Protocol을 상속하지 않아도, 시그니처만 맞으면 호환됩니다.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Protocol

from typing_extensions import Self

from essync.core.types import Hit, ResultSet

if TYPE_CHECKING:
    from essync.mapping.metadata import EntityDescriptor


class MetadataResolverProtocol(Protocol):
    """EntityDescriptor 공급자.

    매핑 소스(annotation, YAML 등) 파싱은 이 인터페이스 바깥의 책임입니다.
    core는 이미 해석된 descriptor만 사용합니다.
    """

    def for_type(self, type_name: str) -> EntityDescriptor: ...

    def for_class(self, cls: type) -> EntityDescriptor | None: ...

    def for_object(self, obj: object) -> EntityDescriptor | None: ...

    def for_index(self, index_name: str) -> EntityDescriptor | None: ...


class HydrationQueryProtocol(Protocol):
    """Delegated hydration에 사용하는 primary store 쿼리 핸들.

    Example:
        >>> class SqlAlchemyIdQuery:
        ...     def set_parameter(self, name: str, value: list[str]) -> Self:
        ...         ...  # WHERE id IN :ids 바인딩
        ...     def use_result_cache(self, enabled: bool, ttl: int | None = None) -> Self:
        ...         ...
        ...     def get_result(self) -> list[User]:
        ...         ...
    """

    def set_parameter(self, name: str, value: Sequence[str]) -> Self: ...

    def use_result_cache(self, enabled: bool, ttl: int | None = None) -> Self: ...

    def get_result(self) -> Sequence[Any]: ...


class IndexGatewayProtocol(Protocol):
    """원격 인덱스와 통신하는 유일한 경계.

    IndexGateway가 기본 구현이며, 테스트에서는 fake로 대체할 수 있습니다.
    """

    def get_document(self, descriptor: EntityDescriptor, doc_id: str) -> dict[str, Any]: ...

    def search(
        self,
        descriptor: EntityDescriptor,
        body: Mapping[str, Any],
        *,
        size: int | None = None,
    ) -> ResultSet: ...

    def search_many(
        self,
        descriptors: Sequence[EntityDescriptor],
        body: Mapping[str, Any],
        *,
        size: int | None = None,
    ) -> ResultSet: ...

    def scroll(
        self,
        descriptor: EntityDescriptor,
        body: Mapping[str, Any] | None = None,
        *,
        batch_size: int = 1000,
    ) -> Iterator[Hit]: ...

    def count(self, descriptor: EntityDescriptor, query: Mapping[str, Any] | None = None) -> int: ...

    def bulk(self, operations: list[dict[str, Any]], *, refresh: bool | str = False) -> dict[str, Any]: ...

    def create_index(self, name: str, config: Mapping[str, Any] | None = None) -> dict[str, Any]: ...

    def index_exists(self, name: str) -> bool: ...

    def delete_index(self, name: str) -> dict[str, Any]: ...

    def refresh_index(self, name: str) -> dict[str, Any]: ...

    def put_mapping(self, descriptor: EntityDescriptor) -> dict[str, Any]: ...

    def delete_by_query(
        self, descriptor: EntityDescriptor, query: Mapping[str, Any]
    ) -> dict[str, Any]: ...

    def update_by_query(
        self,
        descriptor: EntityDescriptor,
        query: Mapping[str, Any],
        data: Mapping[str, Any],
    ) -> dict[str, Any]: ...
