"""엔티티 타입별 조회/삭제 facade."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from essync.core.errors import InvalidArgumentError
from essync.gateway.builders import build_query, criteria_query
from essync.mapping.metadata import EntityDescriptor

if TYPE_CHECKING:
    from essync.manager import SearchManager

_SORT_ORDERS = frozenset({"asc", "desc"})


class EntityRepository:
    """하나의 EntityDescriptor에 묶인 리포지토리.

    모든 조회는 SearchManager의 UnitOfWork를 거치므로 결과 객체는 MANAGED로 추적됩니다.
    """

    def __init__(self, manager: SearchManager, descriptor: EntityDescriptor):
        self._manager = manager
        self._descriptor = descriptor

    @property
    def descriptor(self) -> EntityDescriptor:
        return self._descriptor

    @property
    def class_name(self) -> str:
        return self._descriptor.class_name

    @property
    def manager(self) -> SearchManager:
        return self._manager

    def find(self, doc_id: Any) -> Any:
        """ID로 단일 객체 조회.

        Raises:
            NoResultError: 문서가 없는 경우
        """
        return self._manager.unit_of_work.load(self._descriptor, doc_id)

    def find_all(self, batch_size: int = 1000) -> list[Any]:
        """인덱스 내 모든 문서를 스크롤하며 hydration."""
        hits = self._manager.gateway.scroll(self._descriptor, batch_size=batch_size)
        return self._manager.unit_of_work.hydrate_hits(hits, lambda _hit: self._descriptor)

    def find_by(
        self,
        criteria: Mapping[str, Any],
        order_by: Mapping[str, str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Any]:
        """{필드: 값} 조건(AND)으로 여러 객체 조회.

        Args:
            criteria: 필드별 일치 조건. 비어 있으면 전체
            order_by: {필드: "asc" | "desc"}
            limit: 최대 결과 수 (None이면 설정의 기본 검색 크기)
            offset: 건너뛸 결과 수

        Raises:
            UnknownFieldError: 조건/정렬 필드가 매핑에 없는 경우
            InvalidArgumentError: 정렬 방향이 잘못된 경우
        """
        uow = self._manager.unit_of_work
        uow.validate_criteria(self._descriptor, criteria)

        body = build_query(criteria_query(criteria))
        if order_by:
            uow.validate_criteria(self._descriptor, order_by)
            body["sort"] = [{name: {"order": self._sort_order(d)}} for name, d in order_by.items()]
        if offset:
            body["from"] = offset

        size = limit if limit is not None else self._manager.config.default_search_size
        return uow.load_collection(self._descriptor, body, size=size)

    def find_one_by(self, criteria: Mapping[str, Any]) -> Any:
        """조건에 매칭되는 첫 번째 객체.

        Raises:
            UnknownFieldError: 조건 필드가 매핑에 없는 경우
            NoResultError: 매칭 결과가 없는 경우
        """
        return self._manager.unit_of_work.load(self._descriptor, dict(criteria))

    def search(self, body: Mapping[str, Any], size: int | None = None) -> list[Any]:
        """검색 요청 본문을 그대로 실행하고 결과를 hydration."""
        return self._manager.unit_of_work.load_collection(self._descriptor, body, size=size)

    def count(self, criteria: Mapping[str, Any] | None = None) -> int:
        if not criteria:
            return self._manager.gateway.count(self._descriptor)
        self._manager.unit_of_work.validate_criteria(self._descriptor, criteria)
        return self._manager.gateway.count(self._descriptor, criteria_query(criteria))

    def delete(self, query: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """query(없으면 전체)에 매칭되는 문서를 인덱스에서 바로 삭제.

        UnitOfWork를 거치지 않으므로 추적 중인 객체 상태는 바뀌지 않습니다.
        """
        return self._manager.gateway.remove_all(self._descriptor, query)

    @staticmethod
    def _sort_order(direction: str) -> str:
        order = str(direction).lower()
        if order not in _SORT_ORDERS:
            raise InvalidArgumentError(f"Invalid sort direction '{direction}', expected 'asc' or 'desc'")
        return order

    def __repr__(self) -> str:
        return f"EntityRepository({self.class_name}, index={self._descriptor.index_name!r})"
