"""자주 쓰는 ES 쿼리 DSL 조각.

criteria 자체는 opaque payload로 취급되며, 여기 함수들은 편의용 생성기일 뿐입니다.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def build_query(query: Mapping[str, Any]) -> dict[str, Any]:
    """검색 요청 본문 {"query": ...}."""
    return {"query": dict(query)}


def match_all_query() -> dict[str, Any]:
    return {"match_all": {}}


def and_query(*queries: Mapping[str, Any]) -> dict[str, Any]:
    """bool/must 결합.

    Raises:
        ValueError: 결합할 쿼리가 하나도 없는 경우.
    """
    if not queries:
        raise ValueError("No arguments given to and_query")
    return {"bool": {"must": [dict(q) for q in queries]}}


def equals_query(field: str, value: Any, boost: float | None = None) -> dict[str, Any]:
    """match 쿼리. boost가 있으면 {"query": value, "boost": boost} 형태."""
    if boost is not None:
        value = {"query": value, "boost": boost}
    return {"match": {field: value}}


def criteria_query(criteria: Mapping[str, Any]) -> dict[str, Any]:
    """{필드: 값} 조건을 bool/must match 쿼리로 변환."""
    if not criteria:
        return match_all_query()
    return and_query(*(equals_query(field, value) for field, value in criteria.items()))


def update_script(data: Mapping[str, Any]) -> dict[str, Any]:
    """update-by-query painless 스크립트. 각 필드를 params 값으로 대입.

    필드명은 문자열 리터럴로 들어가므로 `first-name`, `a.b` 같은 이름도 쓸 수 있습니다.

    Raises:
        ValueError: 필드명에 따옴표나 역슬래시가 있는 경우.
    """
    for prop in data:
        if any(ch in prop for ch in "'\"\\"):
            raise ValueError(f"Invalid field name for update script: {prop!r}")
    source = "".join(f"ctx._source['{prop}'] = params['{prop}'];" for prop in data)
    return {"source": source, "params": dict(data)}
