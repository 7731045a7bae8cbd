"""원격 인덱스 경계 (Index Gateway)."""

from .builders import (
    and_query,
    build_query,
    criteria_query,
    equals_query,
    match_all_query,
    update_script,
)
from .index_gateway import IndexGateway

__all__ = [
    "IndexGateway",
    "build_query",
    "match_all_query",
    "and_query",
    "equals_query",
    "criteria_query",
    "update_script",
]
