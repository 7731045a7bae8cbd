"""검색/동기화 관련 공용 타입 정의.

이 모듈은 인프라에 의존하지 않습니다.
gateway, unit_of_work, search 등 어디서든 import할 수 있습니다.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, overload


class HydrationMode(Enum):
    """검색 결과를 어떤 형태로 돌려줄지 결정하는 모드.

    Attributes:
        BYPASS: ResultSet을 그대로 반환
        INTERNAL: 인덱스 문서(_source)로 도메인 객체를 직접 생성
        DELEGATED: hit id 목록을 외부 저장소 쿼리에 넘겨 객체를 조회 (기본값)
    """

    BYPASS = "bypass"
    INTERNAL = "internal"
    DELEGATED = "delegated"


class ObjectState(Enum):
    """Unit of Work가 추적하는 객체 상태."""

    NEW = "new"
    MANAGED = "managed"
    REMOVED = "removed"


@dataclass(frozen=True)
class Hit:
    """검색 결과 히트."""

    id: str
    source: dict[str, Any]
    score: float | None = None
    index: str | None = None
    type: str | None = None


@dataclass(frozen=True)
class ResultSet:
    """한 번의 검색 요청 결과.

    hits 순서는 검색 엔진의 relevance 순서를 그대로 유지합니다.

    Attributes:
        hits: 반환된 히트 목록
        total: 쿼리에 매칭된 전체 문서 수 (반환 개수와 다를 수 있음)
        raw: ES raw 응답
    """

    hits: tuple[Hit, ...] = ()
    total: int = 0
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_response(cls, resp: dict[str, Any]) -> ResultSet:
        hits_obj = resp.get("hits", {})
        total = hits_obj.get("total", 0)
        # ES 7+ 는 {"value": n, "relation": "eq"}, 이전 버전은 정수
        if isinstance(total, dict):
            total = total.get("value", 0)
        hits = tuple(
            Hit(
                id=str(h["_id"]),
                source=h.get("_source") or {},
                score=h.get("_score"),
                index=h.get("_index"),
                type=h.get("_type"),
            )
            for h in hits_obj.get("hits", [])
        )
        return cls(hits=hits, total=int(total), raw=dict(resp))

    @property
    def count(self) -> int:
        """이번 응답에 포함된 히트 수."""
        return len(self.hits)

    @property
    def ids(self) -> list[str]:
        return [h.id for h in self.hits]

    def __len__(self) -> int:
        return len(self.hits)

    def __iter__(self) -> Iterator[Hit]:
        return iter(self.hits)

    @overload
    def __getitem__(self, i: int) -> Hit: ...

    @overload
    def __getitem__(self, i: slice) -> tuple[Hit, ...]: ...

    def __getitem__(self, i: int | slice) -> Hit | tuple[Hit, ...]:
        return self.hits[i]
