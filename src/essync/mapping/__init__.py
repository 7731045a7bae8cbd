"""엔티티 매핑 메타데이터와 ES 스키마 변환."""

from .metadata import EntityDescriptor, FieldAccessor, FieldMapping, RootMapping
from .registry import MetadataRegistry
from .schema import (
    build_index_body,
    build_properties,
    build_root_mapping,
    build_type_mapping,
    field_node,
)

__all__ = [
    "EntityDescriptor",
    "FieldAccessor",
    "FieldMapping",
    "RootMapping",
    "MetadataRegistry",
    "build_properties",
    "build_root_mapping",
    "build_type_mapping",
    "build_index_body",
    "field_node",
]
