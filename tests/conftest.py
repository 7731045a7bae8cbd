"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages,
and provides shared domain classes, descriptors and fake collaborators.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

from elastic_transport import ApiResponseMeta, HttpHeaders, NodeConfig  # noqa: E402

from essync.bulk import BulkOperationQueue  # noqa: E402
from essync.config import ESConfig  # noqa: E402
from essync.gateway import IndexGateway  # noqa: E402
from essync.manager import SearchManager  # noqa: E402
from essync.mapping import EntityDescriptor, MetadataRegistry  # noqa: E402
from essync.unit_of_work import UnitOfWork  # noqa: E402


# =============================================================================
# Domain classes
# =============================================================================


@dataclass
class User:
    id: str | None = None
    name: str | None = None
    email: str | None = None


@dataclass
class Post:
    id: str | None = None
    title: str | None = None
    tags: list[str] = field(default_factory=list)


class Unmapped:
    id = "x"


# =============================================================================
# Helpers
# =============================================================================


def api_meta(status: int) -> ApiResponseMeta:
    return ApiResponseMeta(
        status=status,
        http_version="1.1",
        headers=HttpHeaders(),
        duration=0.0,
        node=NodeConfig("http", "localhost", 9200),
    )


def bulk_ok(operations: list[dict[str, Any]], refresh: Any = False) -> dict[str, Any]:
    """모든 action이 성공한 bulk 응답."""
    items = []
    for line in operations:
        if "update" in line:
            items.append({"update": {"_id": line["update"]["_id"], "status": 200, "result": "updated"}})
        elif "delete" in line:
            items.append({"delete": {"_id": line["delete"]["_id"], "status": 200, "result": "deleted"}})
    return {"took": 1, "errors": False, "items": items}


def bulk_failing(*failed_ids: str):
    """지정한 id의 item만 실패시키는 bulk side_effect."""

    def _bulk(operations: list[dict[str, Any]], refresh: Any = False) -> dict[str, Any]:
        resp = bulk_ok(operations, refresh)
        for item in resp["items"]:
            (info,) = item.values()
            if info["_id"] in failed_ids:
                info["status"] = 409
                info["error"] = {"type": "version_conflict_engine_exception"}
                info.pop("result")
        resp["errors"] = bool(failed_ids)
        return resp

    return _bulk


def search_response(*docs: tuple[str, dict[str, Any]], total: int | None = None, index: str = "users") -> dict:
    hits = [{"_index": index, "_id": doc_id, "_score": 1.0, "_source": source} for doc_id, source in docs]
    return {
        "took": 1,
        "hits": {"total": {"value": len(hits) if total is None else total, "relation": "eq"}, "hits": hits},
    }


def bulk_actions(gateway: MagicMock, call: int = -1) -> list[tuple[str, str]]:
    """gateway.bulk 호출에서 (action, id) 목록 추출."""
    lines = gateway.bulk.call_args_list[call].args[0]
    out = []
    for line in lines:
        for action in ("update", "delete"):
            if action in line:
                out.append((action, line[action]["_id"]))
    return out


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def config() -> ESConfig:
    return ESConfig(
        es_hosts="localhost",
        es_username=None,
        es_password=None,
        retry_on_conflict=5,
        bulk_refresh=False,
        include_type_name=False,
        hydration_parameter="ids",
        default_search_size=10,
    )


@pytest.fixture
def user_descriptor() -> EntityDescriptor:
    return EntityDescriptor.from_mapping(
        User,
        {
            "index": "users",
            "type": "user",
            "id": "id",
            "fields": {
                "name": {"type": "string", "analyzer": "standard"},
                "email": {"type": "string", "fieldName": "email_address", "index": "not_analyzed"},
            },
            "parameters": {"tenant": {}},
        },
    )


@pytest.fixture
def post_descriptor() -> EntityDescriptor:
    return EntityDescriptor.from_mapping(
        Post,
        {
            "index": "posts",
            "type": "post",
            "fields": {"title": {"type": "string"}, "tags": {"type": "string"}},
        },
    )


@pytest.fixture
def registry(user_descriptor: EntityDescriptor, post_descriptor: EntityDescriptor) -> MetadataRegistry:
    return MetadataRegistry([user_descriptor, post_descriptor])


@pytest.fixture
def gateway() -> MagicMock:
    """IndexGateway 대역. bulk는 기본적으로 전부 성공."""
    gw = MagicMock(spec=IndexGateway)
    gw.bulk.side_effect = bulk_ok
    return gw


@pytest.fixture
def uow(gateway: MagicMock, registry: MetadataRegistry) -> UnitOfWork:
    return UnitOfWork(gateway, registry, BulkOperationQueue(gateway))


@pytest.fixture
def manager(config: ESConfig, gateway: MagicMock, registry: MetadataRegistry) -> SearchManager:
    return SearchManager(config, gateway, registry)


@pytest.fixture
def es() -> MagicMock:
    """Elasticsearch 클라이언트 대역."""
    return MagicMock()
