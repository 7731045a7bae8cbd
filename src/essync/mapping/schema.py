"""EntityDescriptor -> Elasticsearch 매핑 스키마 변환.

상태 없는 순수 변환입니다. put-mapping / create-index 요청 본문을 만들 때 사용합니다.

지원 어휘:
    - 필드: type (attachment, multi_field, nested, object 포함), path, includeInAll,
      nullValue, store, index, boost, analyzer, indexName, geohash,
      geohash_precision, geohash_prefix
    - 루트: dynamic templates (match, pathMatch, unmatch, pathUnmatch, matchPattern,
      matchMappingType, mapping) 및 임의의 name/value 설정
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from essync.mapping.metadata import EntityDescriptor, FieldMapping, RootMapping

# FieldMapping 속성명 -> ES 매핑 키 (선언 순서대로 출력)
_FIELD_OPTIONS: tuple[tuple[str, str], ...] = (
    ("path", "path"),
    ("include_in_all", "include_in_all"),
    ("null_value", "null_value"),
    ("store", "store"),
    ("index", "index"),
    ("boost", "boost"),
    ("analyzer", "analyzer"),
    ("index_name", "index_name"),
    ("geohash", "geohash"),
    ("geohash_precision", "geohash_precision"),
    ("geohash_prefix", "geohash_prefix"),
)

_TEMPLATE_OPTIONS: tuple[tuple[str, str], ...] = (
    ("match", "match"),
    ("path_match", "path_match"),
    ("unmatch", "unmatch"),
    ("path_unmatch", "path_unmatch"),
    ("match_pattern", "match_pattern"),
    ("match_mapping_type", "match_mapping_type"),
)


def field_node(fm: FieldMapping) -> dict[str, Any]:
    """필드 하나의 매핑 노드."""
    node: dict[str, Any] = {}

    if fm.type is not None:
        node["type"] = fm.type

        if fm.type == "attachment" and fm.fields:
            # attachment 하위 필드는 타입을 갖지 않음
            node["fields"] = {
                name: {k: v for k, v in sub.items() if k != "type"}
                for name, sub in build_properties(fm.fields).items()
            }
        elif fm.type == "multi_field" and fm.fields:
            node["fields"] = build_properties(fm.fields)

        if fm.type in ("nested", "object") and fm.properties:
            node["properties"] = build_properties(fm.properties)

    for attr, key in _FIELD_OPTIONS:
        value = getattr(fm, attr)
        if value is not None:
            node[key] = value

    return node


def build_properties(fields: Iterable[FieldMapping] | Mapping[str, FieldMapping]) -> dict[str, Any]:
    """필드 목록을 ES `properties` dict로 변환.

    Args:
        fields: FieldMapping 목록 또는 {속성명: FieldMapping}

    Returns:
        {인덱스 필드명: 매핑 노드}
    """
    items = fields.values() if isinstance(fields, Mapping) else fields
    return {fm.target_name: field_node(fm) for fm in items}


def build_root_mapping(root_mappings: Iterable[RootMapping]) -> dict[str, Any]:
    """루트 레벨 설정을 ES 매핑 dict로 변환.

    id가 있는 항목(dynamic template)은 `{name: [{id: template}, ...]}` 형태로 누적되고,
    나머지는 `{name: value}`로 기록됩니다.
    """
    out: dict[str, Any] = {}

    for rm in root_mappings:
        if rm.value is not None and not isinstance(rm.value, Mapping):
            out[rm.name] = rm.value
            continue

        mapping: dict[str, Any] = dict(rm.value or {})
        for attr, key in _TEMPLATE_OPTIONS:
            value = getattr(rm, attr)
            if value is not None:
                mapping[key] = value
        if rm.mapping is not None:
            mapping["mapping"] = field_node(rm.mapping)

        if rm.id is not None:
            out.setdefault(rm.name, []).append({rm.id: mapping})
        else:
            out[rm.name] = mapping

    return out


def build_type_mapping(descriptor: EntityDescriptor) -> dict[str, Any]:
    """put-mapping 요청 본문 생성.

    Returns:
        root 설정 + properties (+ _source, _boost, _parent)
    """
    mapping = build_root_mapping(descriptor.root_mappings)

    if "properties" not in mapping:
        mapping["properties"] = build_properties(descriptor.field_mappings)

    if not descriptor.source_enabled:
        mapping["_source"] = {"enabled": False}

    if descriptor.boost is not None:
        mapping["_boost"] = {"name": "_boost", "null_value": descriptor.boost}

    if descriptor.parent_type is not None:
        mapping["_parent"] = {"type": descriptor.parent_type.type_name}

    return mapping


def build_index_body(
    descriptor: EntityDescriptor, settings: Mapping[str, Any] | None = None
) -> dict[str, Any]:
    """create-index 요청 본문 (settings + mappings)."""
    body: dict[str, Any] = {"mappings": build_type_mapping(descriptor)}
    if settings:
        body["settings"] = dict(settings)
    return body
