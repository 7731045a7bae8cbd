"""검색 실행 및 결과 hydration 파이프라인.

criteria는 opaque payload로 그대로 Gateway에 전달됩니다. 결과는 hydration 모드에 따라
ResultSet 그대로(BYPASS), 인덱스 문서로 만든 객체(INTERNAL), 또는 외부 저장소
쿼리로 다시 조회한 객체(DELEGATED, 기본값)로 반환됩니다.

Usage:
    >>> users = (
    ...     sm.create_query()
    ...     .from_("user")
    ...     .search_with({"query": {"match": {"name": "kim"}}})
    ...     .hydrate_with(orm_query, "ids")
    ...     .use_result_cache(True, 60)
    ...     .get_result()
    ... )
    >>> query.total  # 검색 엔진 기준 전체 매칭 수

Delegated 모드에서 외부 저장소가 id 목록 순서를 보장하지 않는 경우가 많으므로,
relevance 순서가 필요하면 preserve_order()를 명시적으로 켜야 합니다.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from typing_extensions import Self

from essync.core.errors import ConfigurationError, NoResultError, UnexpectedResultTypeError
from essync.core.protocols import HydrationQueryProtocol
from essync.core.types import HydrationMode, ResultSet
from essync.mapping.metadata import EntityDescriptor
from essync.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

HYDRATION_PARAMETER = "ids"


class Query:
    """한 번 실행되는 검색 쿼리.

    실행 후에는 rearm()을 호출해야 다시 실행할 수 있습니다.
    """

    def __init__(self, unit_of_work: UnitOfWork, *, hydration_parameter: str = HYDRATION_PARAMETER):
        self._uow = unit_of_work
        self._descriptor: EntityDescriptor | None = None
        self._criteria: Mapping[str, Any] | None = None
        self._hydration_mode = HydrationMode.DELEGATED
        self._hydration_query: HydrationQueryProtocol | None = None
        self._hydration_parameter = hydration_parameter
        self._use_result_cache = False
        self._cache_ttl: int | None = None
        self._preserve_order = False
        self._count: int | None = None
        self._total: int | None = None
        self._consumed = False

    # =========================================================================
    # Builder
    # =========================================================================

    def from_(self, entity: str | EntityDescriptor) -> Self:
        """검색 대상 엔티티 지정 (타입명 또는 descriptor)."""
        if isinstance(entity, EntityDescriptor):
            self._descriptor = entity
        else:
            self._descriptor = self._uow.resolver.for_type(entity)
        return self

    def search_with(self, criteria: Mapping[str, Any]) -> Self:
        """검색 엔진에 보낼 요청 본문 지정. 내용은 해석하지 않습니다."""
        self._criteria = criteria
        return self

    def set_hydration_mode(self, mode: HydrationMode) -> Self:
        self._hydration_mode = mode
        return self

    def hydrate_with(self, hydration_query: HydrationQueryProtocol, parameter: str | None = None) -> Self:
        """Delegated hydration에 사용할 외부 저장소 쿼리 지정.

        검색 결과 id가 외부 엔티티 id와 대응한다고 가정합니다.

        Args:
            hydration_query: HydrationQueryProtocol 구현체
            parameter: id 목록을 바인딩할 파라미터명 override
        """
        self._hydration_query = hydration_query
        if parameter:
            self._hydration_parameter = parameter
        return self

    def use_result_cache(self, enabled: bool, ttl: int | None = None) -> Self:
        """Delegated hydration 쿼리의 result cache 사용 여부."""
        self._use_result_cache = enabled
        self._cache_ttl = ttl
        return self

    def preserve_order(self, enabled: bool = True) -> Self:
        """Delegated 결과를 검색 relevance 순서로 재정렬할지 여부."""
        self._preserve_order = enabled
        return self

    def rearm(self) -> Self:
        """실행된 쿼리를 다시 실행 가능 상태로 되돌림."""
        self._consumed = False
        return self

    # =========================================================================
    # Side information
    # =========================================================================

    @property
    def descriptor(self) -> EntityDescriptor | None:
        return self._descriptor

    @property
    def hydration_mode(self) -> HydrationMode:
        return self._hydration_mode

    @property
    def hydration_parameter(self) -> str:
        return self._hydration_parameter

    @property
    def count(self) -> int | None:
        """마지막 실행에서 반환된 히트 수."""
        return self._count

    @property
    def total(self) -> int | None:
        """마지막 실행에서 검색 엔진이 보고한 전체 매칭 수."""
        return self._total

    # =========================================================================
    # Execution
    # =========================================================================

    def get_result(self, hydration_mode: HydrationMode | None = None) -> Any:
        """검색 실행 후 hydration 모드에 따라 결과 반환.

        Raises:
            ConfigurationError: from_/search_with/hydrate_with 설정이 부족한 경우
            UnexpectedResultTypeError: Gateway가 ResultSet이 아닌 값을 반환한 경우
        """
        return self._execute(hydration_mode, size=None)

    def get_single_result(self, hydration_mode: HydrationMode | None = None) -> Any:
        """최대 1건만 요청하고 첫 번째 결과 반환.

        Raises:
            NoResultError: hydration 후 결과가 없는 경우
        """
        results = self._execute(hydration_mode, size=1)
        if len(results) < 1:
            raise NoResultError()
        return results[0]

    def _execute(self, hydration_mode: HydrationMode | None, size: int | None) -> Any:
        if hydration_mode is not None:
            self._hydration_mode = hydration_mode
        mode = self._hydration_mode

        if self._descriptor is None:
            raise ConfigurationError("No target entity has been provided using Query.from_().")
        if self._criteria is None:
            raise ConfigurationError("No client query has been provided using Query.search_with().")
        if mode is HydrationMode.DELEGATED and self._hydration_query is None:
            raise ConfigurationError("A hydration query is required for hydrating results to entities.")
        if self._consumed:
            raise ConfigurationError("Query has already been executed; call rearm() to run it again.")

        descriptor = self._descriptor
        result_set = self._uow.gateway.search(descriptor, self._criteria, size=size)
        if not isinstance(result_set, ResultSet):
            raise UnexpectedResultTypeError(result_set)

        self._consumed = True
        self._count = result_set.count
        self._total = result_set.total
        logger.debug(
            f"Query on {descriptor.index_name} returned {self._count}/{self._total} hit(s), mode={mode.value}"
        )

        if mode is HydrationMode.BYPASS:
            return result_set
        if mode is HydrationMode.INTERNAL:
            return self._uow.hydrate_collection(descriptor, result_set)

        # 빈 결과도 None이 아닌 빈 목록으로 전달 ("필터 없음"과 구분)
        ids = result_set.ids
        hydration_query: HydrationQueryProtocol = self._hydration_query  # type: ignore[assignment]
        results = (
            hydration_query.set_parameter(self._hydration_parameter, ids)
            .use_result_cache(self._use_result_cache, self._cache_ttl)
            .get_result()
        )
        if self._preserve_order:
            results = self._order_by_ids(descriptor, results, ids)
        return results

    @staticmethod
    def _order_by_ids(descriptor: EntityDescriptor, results: Sequence[Any], ids: list[str]) -> list[Any]:
        """외부 저장소 결과를 검색 hit 순서로 정렬. 목록에 없는 객체는 뒤로."""
        rank = {id_: i for i, id_ in enumerate(ids)}
        return sorted(results, key=lambda obj: rank.get(descriptor.identifier_of(obj) or "", len(rank)))
