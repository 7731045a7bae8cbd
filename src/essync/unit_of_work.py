"""Unit of Work: 객체 생명주기 추적과 commit 시 쓰기 집합 계산.

인덱스로 향하는 모든 쓰기는 이 클래스를 통해 BulkOperationQueue로 전달됩니다.

상태 전이:
    persist(미추적)        -> NEW
    persist(MANAGED)       -> MANAGED (dirty)
    remove(any / 미추적)   -> REMOVED
    commit 성공: NEW/dirty -> MANAGED (snapshot 갱신), REMOVED -> registry에서 제거
    commit 부분 실패: 실패한 identity는 기존 상태 유지 (다음 commit에서 재시도)

한 세션(요청, 배치 작업 등) 전용이며 스레드 안전하지 않습니다.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from essync.bulk import BulkOperationQueue, BulkResult
from essync.core.errors import (
    AmbiguousWriteError,
    BulkPartialFailureError,
    InvalidArgumentError,
    NoResultError,
    UnexpectedResultTypeError,
    UnknownFieldError,
)
from essync.core.protocols import IndexGatewayProtocol, MetadataResolverProtocol
from essync.core.types import Hit, ObjectState, ResultSet
from essync.gateway.builders import build_query, criteria_query
from essync.mapping.metadata import EntityDescriptor

logger = logging.getLogger(__name__)

Identity = tuple[str, str, str]


@dataclass
class TrackedObject:
    """registry 항목. snapshot은 마지막으로 flush된 문서."""

    descriptor: EntityDescriptor
    identifier: str
    obj: Any
    state: ObjectState
    snapshot: dict[str, Any] | None = None
    dirty: bool = False

    @property
    def identity(self) -> Identity:
        return (self.descriptor.index_name, self.descriptor.type_name, self.identifier)


class UnitOfWork:
    """세션 단위 객체 추적기."""

    def __init__(
        self,
        gateway: IndexGatewayProtocol,
        resolver: MetadataResolverProtocol,
        queue: BulkOperationQueue | None = None,
    ):
        self.gateway = gateway
        self.resolver = resolver
        self.queue = queue if queue is not None else BulkOperationQueue(gateway)
        self._registry: dict[Identity, TrackedObject] = {}

    # =========================================================================
    # Registration
    # =========================================================================

    def _describe(self, obj: object) -> tuple[EntityDescriptor, str]:
        descriptor = self.resolver.for_object(obj)
        if descriptor is None:
            raise InvalidArgumentError(
                f"Expected a mapped domain object, got '{type(obj).__name__}'"
            )
        identifier = descriptor.identifier_of(obj)
        if identifier is None:
            raise InvalidArgumentError(
                f"'{type(obj).__name__}' has no value for identifier '{descriptor.identifier_field}'"
            )
        return descriptor, identifier

    def _identity(self, obj: object) -> Identity:
        descriptor, identifier = self._describe(obj)
        return (descriptor.index_name, descriptor.type_name, identifier)

    def persist(self, obj: object) -> None:
        """객체를 NEW로 등록하거나, 이미 MANAGED면 dirty로 표시.

        Raises:
            InvalidArgumentError: 매핑되지 않은 객체이거나 식별자가 없는 경우
            AmbiguousWriteError: 삭제 대기 중인 identity를 다시 저장하려는 경우
        """
        descriptor, identifier = self._describe(obj)
        identity = (descriptor.index_name, descriptor.type_name, identifier)
        entry = self._registry.get(identity)

        if entry is None:
            self._registry[identity] = TrackedObject(
                descriptor=descriptor,
                identifier=identifier,
                obj=obj,
                state=ObjectState.NEW,
            )
            return

        if entry.state is ObjectState.REMOVED:
            raise AmbiguousWriteError(
                f"'{descriptor.type_name}#{identifier}' is scheduled for removal; "
                "commit the removal before persisting it again"
            )

        entry.obj = obj
        if entry.state is ObjectState.MANAGED:
            entry.dirty = True

    def remove(self, obj: object) -> None:
        """객체를 REMOVED로 표시. 추적 중이 아니어도 id 기준 삭제가 예약됩니다."""
        descriptor, identifier = self._describe(obj)
        identity = (descriptor.index_name, descriptor.type_name, identifier)
        entry = self._registry.get(identity)

        if entry is None:
            self._registry[identity] = TrackedObject(
                descriptor=descriptor,
                identifier=identifier,
                obj=obj,
                state=ObjectState.REMOVED,
            )
            return

        entry.obj = obj
        entry.state = ObjectState.REMOVED
        entry.dirty = False

    # =========================================================================
    # Commit
    # =========================================================================

    def _change_set(self, obj: object | None) -> list[tuple[TrackedObject, dict[str, Any] | None]]:
        """(항목, 문서) 목록. 문서가 None이면 삭제."""
        if obj is None:
            entries = list(self._registry.values())
        else:
            entry = self._registry.get(self._identity(obj))
            entries = [entry] if entry is not None else []

        changes: list[tuple[TrackedObject, dict[str, Any] | None]] = []
        for entry in entries:
            if entry.state is ObjectState.REMOVED:
                changes.append((entry, None))
            elif entry.state is ObjectState.NEW:
                changes.append((entry, entry.descriptor.document_for(entry.obj)))
            elif entry.dirty:
                document = entry.descriptor.document_for(entry.obj)
                if document == entry.snapshot:
                    entry.dirty = False
                    continue
                changes.append((entry, document))
        return changes

    def commit(self, obj: object | None = None) -> BulkResult:
        """대기 중인 변경을 하나의 bulk 요청으로 반영.

        Args:
            obj: 주어지면 해당 identity의 변경만 반영

        Returns:
            BulkResult (변경이 없으면 네트워크 호출 없이 빈 결과)

        Raises:
            BulkPartialFailureError: 일부 실패. 성공한 identity는 반영되고
                실패한 identity는 대기 상태로 남음
            ReschedulableError: 재시도 가능한 전송 오류. 아무 것도 반영되지 않음
        """
        changes = self._change_set(obj)

        # registry가 기준이므로 이전 commit에서 남은 batch는 버림
        self.queue.clear()
        for entry, document in changes:
            d = entry.descriptor
            if document is None:
                self.queue.enqueue_delete(d.index_name, d.type_name, entry.identifier)
            else:
                self.queue.enqueue_upsert(d.index_name, d.type_name, entry.identifier, document)

        try:
            result = self.queue.flush()
        except BulkPartialFailureError as e:
            failed = set(e.failed_identities)
            for entry, document in changes:
                if entry.identity not in failed:
                    self._apply(entry, document)
            logger.warning(f"Commit left {len(failed)} identity(ies) pending: {sorted(failed)}")
            raise

        for entry, document in changes:
            self._apply(entry, document)
        if changes:
            logger.debug(f"Committed {len(changes)} change(s)")
        return result

    def _apply(self, entry: TrackedObject, document: dict[str, Any] | None) -> None:
        if document is None:
            self._registry.pop(entry.identity, None)
            return
        entry.state = ObjectState.MANAGED
        entry.snapshot = copy.deepcopy(document)
        entry.dirty = False

    # =========================================================================
    # Loading / Hydration
    # =========================================================================

    def validate_criteria(self, descriptor: EntityDescriptor, criteria: Mapping[str, Any]) -> None:
        """조건 필드가 descriptor의 파라미터 어휘에 있는지 확인 (네트워크 호출 전)."""
        allowed = descriptor.parameter_names
        for field_name in criteria:
            if field_name not in allowed:
                raise UnknownFieldError(descriptor.index_name, descriptor.type_name, field_name)

    def load(self, descriptor: EntityDescriptor, id_or_criteria: Any) -> Any:
        """식별자 또는 {필드: 값} 조건으로 단일 객체 조회.

        Raises:
            UnknownFieldError: 조건에 알 수 없는 필드가 있는 경우
            NoResultError: 매칭되는 문서가 없는 경우
        """
        if isinstance(id_or_criteria, Mapping):
            self.validate_criteria(descriptor, id_or_criteria)
            result_set = self.gateway.search(
                descriptor, build_query(criteria_query(id_or_criteria)), size=1
            )
            if not isinstance(result_set, ResultSet):
                raise UnexpectedResultTypeError(result_set)
            if not result_set.hits:
                raise NoResultError()
            hit = result_set[0]
            identifier, source = hit.id, hit.source
        else:
            identifier = str(id_or_criteria)
            resp = self.gateway.get_document(descriptor, identifier)
            source = resp.get("_source") or {}

        obj = self.hydrate_entity(descriptor, identifier, source)
        if obj is None:
            raise NoResultError(f"'{descriptor.type_name}#{identifier}' is scheduled for removal")
        return obj

    def load_collection(
        self,
        descriptor: EntityDescriptor,
        body: Mapping[str, Any],
        *,
        size: int | None = None,
    ) -> list[Any]:
        """검색 후 모든 hit을 MANAGED 객체로 hydration."""
        result_set = self.gateway.search(descriptor, body, size=size)
        if not isinstance(result_set, ResultSet):
            raise UnexpectedResultTypeError(result_set)
        return self.hydrate_collection(descriptor, result_set)

    def hydrate_collection(self, descriptor: EntityDescriptor, result_set: ResultSet) -> list[Any]:
        """인덱스 문서로 직접 객체 생성 (외부 저장소 왕복 없음)."""
        return self.hydrate_hits(result_set.hits, lambda _hit: descriptor)

    def hydrate_hits(
        self, hits: Iterable[Hit], descriptor_for: Callable[[Hit], EntityDescriptor]
    ) -> list[Any]:
        """hit마다 descriptor_for(hit)로 타입을 정해 hydration. 삭제 대기 중인 identity는 제외."""
        out = []
        for hit in hits:
            obj = self.hydrate_entity(descriptor_for(hit), hit.id, hit.source)
            if obj is not None:
                out.append(obj)
        return out

    def hydrate_entity(
        self, descriptor: EntityDescriptor, identifier: str, source: Mapping[str, Any]
    ) -> Any | None:
        """문서 하나를 MANAGED 객체로 등록.

        이미 추적 중인 identity면 기존 인스턴스를 반환하고(identity map),
        삭제 대기 중이면 None을 반환합니다.
        """
        identity = (descriptor.index_name, descriptor.type_name, identifier)
        entry = self._registry.get(identity)
        if entry is not None:
            return None if entry.state is ObjectState.REMOVED else entry.obj

        obj = descriptor.hydrate(source, identifier)
        self._registry[identity] = TrackedObject(
            descriptor=descriptor,
            identifier=identifier,
            obj=obj,
            state=ObjectState.MANAGED,
            snapshot=copy.deepcopy(descriptor.document_for(obj)),
        )
        return obj

    # =========================================================================
    # Registry inspection / detaching
    # =========================================================================

    def clear(self, type_name: str | None = None) -> None:
        """쓰기 없이 추적 중인 객체를 분리 (대기 중인 변경은 버려짐)."""
        if type_name is None:
            self._registry.clear()
            self.queue.clear()
            return
        for identity in [i for i, e in self._registry.items() if e.descriptor.type_name == type_name]:
            del self._registry[identity]

    def detach(self, obj: object) -> None:
        self._registry.pop(self._identity(obj), None)

    def contains(self, obj: object) -> bool:
        descriptor = self.resolver.for_object(obj)
        if descriptor is None:
            return False
        identifier = descriptor.identifier_of(obj)
        return (descriptor.index_name, descriptor.type_name, identifier) in self._registry

    def state_of(self, obj: object) -> ObjectState | None:
        entry = self._registry.get(self._identity(obj))
        return entry.state if entry is not None else None

    def tracked(self, type_name: str | None = None) -> Iterator[TrackedObject]:
        for entry in self._registry.values():
            if type_name is None or entry.descriptor.type_name == type_name:
                yield entry

    def __len__(self) -> int:
        return len(self._registry)
