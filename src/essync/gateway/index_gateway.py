"""원격 인덱스와 통신하는 유일한 컴포넌트.

문서 조회/검색, bulk 전송, 인덱스 관리(create/exists/delete/refresh/put-mapping),
delete-by-query / update-by-query를 Elasticsearch 클라이언트 위에 얇게 감쌉니다.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from elasticsearch import Elasticsearch, NotFoundError

from essync.config import ESConfig
from essync.core.errors import NoResultError
from essync.core.types import Hit, ResultSet
from essync.mapping.metadata import EntityDescriptor
from essync.mapping.schema import build_index_body, build_type_mapping

from .builders import build_query, match_all_query, update_script

logger = logging.getLogger(__name__)


def _body(resp: Any) -> Any:
    """ApiResponse에서 본문 추출. 이미 dict면 그대로 반환."""
    return getattr(resp, "body", resp)


class IndexGateway:
    """Elasticsearch 기반 IndexGatewayProtocol 구현체."""

    def __init__(self, es: Elasticsearch, cfg: ESConfig | None = None):
        self.es = es
        self.cfg = cfg or ESConfig()

    # =========================================================================
    # Documents / Search
    # =========================================================================

    def get_document(self, descriptor: EntityDescriptor, doc_id: str) -> dict[str, Any]:
        """ID로 단일 문서 조회.

        Raises:
            NoResultError: 문서가 없는 경우 (404)
        """
        try:
            resp = self.es.get(index=descriptor.index_name, id=doc_id)
        except NotFoundError:
            raise NoResultError(
                f"Document '{doc_id}' not found in index '{descriptor.index_name}'"
            ) from None
        return dict(_body(resp))

    def search(
        self,
        descriptor: EntityDescriptor,
        body: Mapping[str, Any],
        *,
        size: int | None = None,
    ) -> ResultSet:
        """단일 인덱스 검색.

        Args:
            descriptor: 대상 엔티티
            body: 검색 요청 본문 (opaque, 그대로 전달)
            size: 반환 결과 수 override (body는 변경하지 않음)
        """
        return self._search(descriptor.index_name, body, size)

    def search_many(
        self,
        descriptors: Sequence[EntityDescriptor],
        body: Mapping[str, Any],
        *,
        size: int | None = None,
    ) -> ResultSet:
        """여러 인덱스를 한 번에 검색. 각 Hit.index로 출처를 구분합니다."""
        indices = list(dict.fromkeys(d.index_name for d in descriptors))
        return self._search(",".join(indices), body, size)

    def scroll(
        self,
        descriptor: EntityDescriptor,
        body: Mapping[str, Any] | None = None,
        *,
        batch_size: int = 1000,
    ) -> Iterator[Hit]:
        """인덱스 내 문서를 스크롤하며 hit 단위로 반환."""
        request = dict(body or build_query(match_all_query()))
        request["size"] = batch_size
        resp = _body(self.es.search(index=descriptor.index_name, body=request, scroll="2m"))
        scroll_id = resp["_scroll_id"]
        hits = ResultSet.from_response(dict(resp)).hits

        try:
            while hits:
                yield from hits
                resp = _body(self.es.scroll(scroll_id=scroll_id, scroll="2m"))
                scroll_id = resp["_scroll_id"]
                hits = ResultSet.from_response(dict(resp)).hits
        finally:
            self.es.clear_scroll(scroll_id=scroll_id)

    def count(self, descriptor: EntityDescriptor, query: Mapping[str, Any] | None = None) -> int:
        """인덱스 내 문서 수. query가 주어지면 매칭 수."""
        if query is None:
            resp = self.es.count(index=descriptor.index_name)
        else:
            resp = self.es.count(index=descriptor.index_name, body=build_query(query))
        return int(_body(resp)["count"])

    def _search(self, index: str, body: Mapping[str, Any], size: int | None) -> ResultSet:
        request = dict(body)
        if size is not None:
            request["size"] = size
        logger.debug(f"search index={index} body={json.dumps(request, default=str)}")
        resp = self.es.search(index=index, body=request)
        return ResultSet.from_response(dict(_body(resp)))

    # =========================================================================
    # Bulk / By-query
    # =========================================================================

    def bulk(
        self, operations: list[dict[str, Any]], *, refresh: bool | str = False
    ) -> dict[str, Any]:
        """bulk 요청 전송. action/document 라인 쌍의 배열을 그대로 보냅니다."""
        resp = self.es.bulk(operations=operations, refresh=refresh)
        return dict(_body(resp))

    def delete_by_query(
        self, descriptor: EntityDescriptor, query: Mapping[str, Any]
    ) -> dict[str, Any]:
        resp = self.es.delete_by_query(
            index=descriptor.index_name,
            body=build_query(query),
            conflicts="proceed",
        )
        return dict(_body(resp))

    def update_by_query(
        self,
        descriptor: EntityDescriptor,
        query: Mapping[str, Any],
        data: Mapping[str, Any],
    ) -> dict[str, Any]:
        """query에 매칭되는 문서들의 필드를 data 값으로 갱신."""
        body = build_query(query)
        if data:
            body["script"] = update_script(data)
        resp = self.es.update_by_query(
            index=descriptor.index_name,
            body=body,
            conflicts="proceed",
        )
        return dict(_body(resp))

    def remove_all(
        self, descriptor: EntityDescriptor, query: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        """query(없으면 match_all)에 매칭되는 문서 전체 삭제."""
        return self.delete_by_query(descriptor, query or match_all_query())

    # =========================================================================
    # Index administration
    # =========================================================================

    def create_index(self, name: str, config: Mapping[str, Any] | None = None) -> dict[str, Any]:
        logger.info(f"Creating index: {name}")
        resp = self.es.indices.create(index=name, body=dict(config or {}))
        return dict(_body(resp))

    def index_exists(self, name: str) -> bool:
        return bool(self.es.indices.exists(index=name))

    def delete_index(self, name: str) -> dict[str, Any]:
        logger.info(f"Deleting index: {name}")
        resp = self.es.indices.delete(index=name)
        return dict(_body(resp))

    def refresh_index(self, name: str) -> dict[str, Any]:
        resp = self.es.indices.refresh(index=name)
        return dict(_body(resp))

    def put_mapping(self, descriptor: EntityDescriptor) -> dict[str, Any]:
        """descriptor의 필드 매핑을 인덱스에 반영."""
        mapping = build_type_mapping(descriptor)
        logger.info(f"Putting mapping for {descriptor.index_name}/{descriptor.type_name}")
        resp = self.es.indices.put_mapping(index=descriptor.index_name, body=mapping)
        return dict(_body(resp))

    def ensure_index(
        self,
        descriptor: EntityDescriptor,
        settings: Mapping[str, Any] | None = None,
        *,
        recreate: bool = False,
    ) -> bool:
        """인덱스가 없으면 매핑과 함께 생성.

        Args:
            descriptor: 대상 엔티티
            settings: 인덱스 settings (analysis, shards 등)
            recreate: True면 기존 인덱스를 삭제 후 재생성

        Returns:
            새로 생성했으면 True
        """
        name = descriptor.index_name
        exists = self.index_exists(name)
        if recreate and exists:
            self.delete_index(name)
            exists = False
        if exists:
            return False
        self.create_index(name, build_index_body(descriptor, settings))
        return True
