"""해석이 끝난(resolved) 엔티티 매핑 메타데이터.

annotation/YAML 파싱은 이 모듈의 책임이 아닙니다. 여기서는 파싱 결과의 모양
(dict)을 불변 dataclass로 옮기고, 객체 <-> 문서 변환에 쓰이는 accessor
테이블을 descriptor 생성 시점에 한 번만 구성합니다.

Usage:
    >>> users = EntityDescriptor.from_mapping(
    ...     User,
    ...     {
    ...         "index": "users",
    ...         "type": "user",
    ...         "id": "id",
    ...         "fields": {"name": {"type": "string"}, "emails": {"type": "nested", ...}},
    ...     },
    ... )
    >>> users.document_for(user)
    {'name': 'kim', 'emails': [...]}
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

# resolved dict 키 -> FieldMapping 속성명
_FIELD_KEYS: dict[str, str] = {
    "type": "type",
    "fieldName": "field_name",
    "path": "path",
    "includeInAll": "include_in_all",
    "nullValue": "null_value",
    "store": "store",
    "index": "index",
    "boost": "boost",
    "analyzer": "analyzer",
    "indexName": "index_name",
    "geohash": "geohash",
    "geohash_precision": "geohash_precision",
    "geohash_prefix": "geohash_prefix",
}

_ROOT_KEYS: dict[str, str] = {
    "id": "id",
    "value": "value",
    "match": "match",
    "pathMatch": "path_match",
    "unmatch": "unmatch",
    "pathUnmatch": "path_unmatch",
    "matchPattern": "match_pattern",
    "matchMappingType": "match_mapping_type",
}


@dataclass(frozen=True)
class FieldMapping:
    """단일 필드의 매핑 정의.

    Attributes:
        name: 도메인 객체의 속성명 (sub-field의 경우 sub-field 이름)
        type: 필드 타입 (string, date, nested, object, multi_field, attachment 등)
        field_name: 인덱스 쪽 필드명 override (None이면 name 사용)
        fields: multi_field / attachment의 하위 필드
        properties: nested / object의 하위 속성
    """

    name: str
    type: str | None = None
    field_name: str | None = None
    fields: tuple[FieldMapping, ...] = ()
    properties: tuple[FieldMapping, ...] = ()
    path: str | None = None
    include_in_all: bool | None = None
    null_value: Any = None
    store: bool | None = None
    index: Any = None
    boost: float | None = None
    analyzer: str | None = None
    index_name: str | None = None
    geohash: bool | None = None
    geohash_precision: Any = None
    geohash_prefix: bool | None = None

    @property
    def target_name(self) -> str:
        """인덱스에 기록되는 필드명."""
        return self.field_name or self.name

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any]) -> FieldMapping:
        kwargs: dict[str, Any] = {
            attr: data[key] for key, attr in _FIELD_KEYS.items() if key in data
        }
        if "fields" in data:
            kwargs["fields"] = _field_list(data["fields"])
        if "properties" in data:
            kwargs["properties"] = _field_list(data["properties"])
        return cls(name=data.get("name", name), **kwargs)


def _field_list(raw: Iterable[Any] | Mapping[str, Any]) -> tuple[FieldMapping, ...]:
    """하위 필드 정의를 FieldMapping 튜플로 변환.

    list[{"name": ..., ...}] 와 {name: {...}} 두 형태를 모두 받습니다.
    """
    if isinstance(raw, Mapping):
        return tuple(FieldMapping.from_mapping(name, entry) for name, entry in raw.items())
    return tuple(FieldMapping.from_mapping(entry["name"], entry) for entry in raw)


@dataclass(frozen=True)
class RootMapping:
    """인덱스 레벨 설정 (dynamic_templates, date_detection 등)."""

    name: str
    id: str | None = None
    value: Any = None
    match: str | None = None
    path_match: str | None = None
    unmatch: str | None = None
    path_unmatch: str | None = None
    match_pattern: str | None = None
    match_mapping_type: str | None = None
    mapping: FieldMapping | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> RootMapping:
        kwargs: dict[str, Any] = {
            attr: data[key] for key, attr in _ROOT_KEYS.items() if key in data
        }
        if "mapping" in data:
            kwargs["mapping"] = FieldMapping.from_mapping(data["name"], data["mapping"])
        return cls(name=data["name"], **kwargs)


@dataclass(frozen=True)
class FieldAccessor:
    """도메인 속성 <-> 인덱스 필드 매핑 한 줄."""

    property_name: str
    field_name: str


@dataclass(frozen=True, eq=False)
class EntityDescriptor:
    """엔티티 타입 하나의 인덱스 매핑 정보.

    생성 후 변경되지 않으며 프로세스 전체에서 참조로 공유됩니다.
    비교/해시는 identity 기준입니다.

    Attributes:
        entity_class: 도메인 클래스. hydration 시 keyword 인자로 생성됨
        index_name: 대상 인덱스명
        type_name: 인덱스 내 타입(카테고리)명
        identifier_field: 식별자 속성명
        field_mappings: 속성명 -> FieldMapping (읽기 전용, 선언 순서 유지)
        root_mappings: 인덱스 레벨 설정 목록
        routing_parameters: routing/parameter 키로 쓸 수 있는 필드명
        boost: 문서 boost 기본값
        parent_type: 부모 타입 descriptor
        source_enabled: _source 저장 여부
    """

    entity_class: type
    index_name: str
    type_name: str
    identifier_field: str = "id"
    field_mappings: Mapping[str, FieldMapping] = field(default_factory=dict)
    root_mappings: tuple[RootMapping, ...] = ()
    routing_parameters: frozenset[str] = frozenset()
    boost: float | None = None
    parent_type: EntityDescriptor | None = None
    source_enabled: bool = True
    accessors: tuple[FieldAccessor, ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "field_mappings", MappingProxyType(dict(self.field_mappings)))
        object.__setattr__(self, "routing_parameters", frozenset(self.routing_parameters))
        object.__setattr__(
            self,
            "accessors",
            tuple(
                FieldAccessor(property_name=prop, field_name=fm.target_name)
                for prop, fm in self.field_mappings.items()
            ),
        )

    @classmethod
    def from_mapping(
        cls,
        entity_class: type,
        data: Mapping[str, Any],
        parent_type: EntityDescriptor | None = None,
    ) -> EntityDescriptor:
        """Resolved dict로부터 descriptor 생성.

        Args:
            entity_class: 도메인 클래스
            data: index, type, id, fields, root, parameters, boost, source 키를 가진 dict
            parent_type: 부모 타입 descriptor (선택)

        Returns:
            EntityDescriptor
        """
        fields_raw = data.get("fields") or {}
        if isinstance(fields_raw, Mapping):
            field_mappings = {
                name: FieldMapping.from_mapping(name, entry) for name, entry in fields_raw.items()
            }
        else:
            field_mappings = {entry["name"]: FieldMapping.from_mapping(entry["name"], entry) for entry in fields_raw}

        parameters = data.get("parameters") or {}
        if isinstance(parameters, Mapping):
            routing = frozenset(
                (entry or {}).get("fieldName", name) for name, entry in parameters.items()
            )
        else:
            routing = frozenset(parameters)

        return cls(
            entity_class=entity_class,
            index_name=data["index"],
            type_name=data["type"],
            identifier_field=data.get("id", "id"),
            field_mappings=field_mappings,
            root_mappings=tuple(RootMapping.from_mapping(r) for r in data.get("root") or ()),
            routing_parameters=routing,
            boost=data.get("boost"),
            parent_type=parent_type,
            source_enabled=bool(data.get("source", True)),
        )

    @property
    def class_name(self) -> str:
        return f"{self.entity_class.__module__}.{self.entity_class.__qualname__}"

    @property
    def parameter_names(self) -> frozenset[str]:
        """조회 조건에 사용할 수 있는 필드명 집합."""
        names = {acc.field_name for acc in self.accessors}
        names.add(self.identifier_field)
        return frozenset(names) | self.routing_parameters

    def identifier_of(self, obj: object) -> str | None:
        value = getattr(obj, self.identifier_field, None)
        return None if value is None else str(value)

    def document_for(self, obj: object) -> dict[str, Any]:
        """도메인 객체를 인덱스 문서로 변환."""
        return {acc.field_name: getattr(obj, acc.property_name, None) for acc in self.accessors}

    def hydrate(self, source: Mapping[str, Any], identifier: str | None = None) -> Any:
        """인덱스 문서(_source)로 도메인 객체 생성.

        문서에 식별자 필드가 없으면 hit id를 사용합니다.
        """
        kwargs = {
            acc.property_name: source[acc.field_name]
            for acc in self.accessors
            if acc.field_name in source
        }
        if self.identifier_field not in kwargs and identifier is not None:
            kwargs[self.identifier_field] = identifier
        return self.entity_class(**kwargs)
