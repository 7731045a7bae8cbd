"""여러 엔티티 타입을 한 번에 검색하는 리포지토리 묶음."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import TYPE_CHECKING, Any

from essync.core.errors import UnexpectedResultTypeError
from essync.core.types import Hit, ResultSet
from essync.mapping.metadata import EntityDescriptor

from .base import EntityRepository

if TYPE_CHECKING:
    from essync.manager import SearchManager


class RepositoryCollection:
    """EntityRepository 묶음.

    search()는 포함된 모든 인덱스에 한 번의 요청을 보내고,
    각 hit을 출처 (인덱스, 타입)의 descriptor로 hydration합니다.
    여러 타입이 한 인덱스를 공유하는 경우 hit에 `_type`이 있어야 합니다.

    Usage:
        >>> repos = sm.get_repositories(["user", "post"])
        >>> results = repos.search({"query": {"match": {"_all": "kim"}}})
    """

    def __init__(self, manager: SearchManager, repositories: Iterable[EntityRepository] = ()):
        self._manager = manager
        self._repositories: list[EntityRepository] = []
        for repo in repositories:
            self.add_repository(repo)

    def add_repository(self, repository: EntityRepository) -> None:
        if repository not in self._repositories:
            self._repositories.append(repository)

    @property
    def descriptors(self) -> list[EntityDescriptor]:
        return [r.descriptor for r in self._repositories]

    def search(self, body: Mapping[str, Any], size: int | None = None) -> list[Any]:
        """모든 인덱스를 검색하고 결과를 hit 순서대로 hydration.

        Raises:
            UnexpectedResultTypeError: 묶음에 없는 인덱스의 hit이 섞여 있거나,
                공유 인덱스의 hit 타입을 판별할 수 없는 경우
        """
        descriptors = self.descriptors
        if not descriptors:
            return []

        result_set = self._manager.gateway.search_many(descriptors, body, size=size)
        if not isinstance(result_set, ResultSet):
            raise UnexpectedResultTypeError(result_set)

        by_identity = {(d.index_name, d.type_name): d for d in descriptors}
        by_index: dict[str, list[EntityDescriptor]] = {}
        for d in descriptors:
            by_index.setdefault(d.index_name, []).append(d)

        def descriptor_for(hit: Hit) -> EntityDescriptor:
            if len(descriptors) == 1:
                return descriptors[0]
            if hit.type is not None and (hit.index, hit.type) in by_identity:
                return by_identity[(hit.index, hit.type)]
            candidates = by_index.get(hit.index or "", [])
            if not candidates:
                raise UnexpectedResultTypeError(hit, f"Hit '{hit.id}' comes from unmapped index '{hit.index}'")
            if len(candidates) > 1:
                # 한 인덱스를 여러 타입이 공유하면 _type 없이는 구분 불가
                raise UnexpectedResultTypeError(
                    hit,
                    f"Hit '{hit.id}' from shared index '{hit.index}' has no matching type "
                    f"(got '{hit.type}', expected one of {[d.type_name for d in candidates]})",
                )
            return candidates[0]

        return self._manager.unit_of_work.hydrate_hits(result_set.hits, descriptor_for)

    def __iter__(self) -> Iterator[EntityRepository]:
        return iter(self._repositories)

    def __len__(self) -> int:
        return len(self._repositories)
