"""EntityDescriptor 레지스트리 (MetadataResolverProtocol 기본 구현)."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from essync.core.errors import ConfigurationError
from essync.mapping.metadata import EntityDescriptor


class MetadataRegistry:
    """타입명/클래스/인덱스명으로 descriptor를 찾는 레지스트리.

    세션(SearchManager)이 생성 시 참조로 받아 사용합니다.
    """

    def __init__(self, descriptors: Iterable[EntityDescriptor] = ()):
        self._by_type: dict[str, EntityDescriptor] = {}
        self._by_class: dict[type, EntityDescriptor] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: EntityDescriptor) -> EntityDescriptor:
        if descriptor.type_name in self._by_type:
            raise ConfigurationError(f"Type '{descriptor.type_name}' is already registered.")
        self._by_type[descriptor.type_name] = descriptor
        self._by_class[descriptor.entity_class] = descriptor
        return descriptor

    def for_type(self, type_name: str) -> EntityDescriptor:
        try:
            return self._by_type[type_name]
        except KeyError:
            raise ConfigurationError(f"No mapping metadata for type '{type_name}'.") from None

    def for_class(self, cls: type) -> EntityDescriptor | None:
        for klass in cls.__mro__:
            if klass in self._by_class:
                return self._by_class[klass]
        return None

    def for_object(self, obj: object) -> EntityDescriptor | None:
        return self.for_class(type(obj))

    def for_index(self, index_name: str) -> EntityDescriptor | None:
        for descriptor in self._by_type.values():
            if descriptor.index_name == index_name:
                return descriptor
        return None

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._by_type

    def __iter__(self) -> Iterator[EntityDescriptor]:
        return iter(self._by_type.values())

    def __len__(self) -> int:
        return len(self._by_type)
