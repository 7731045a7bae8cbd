"""Bulk 쓰기 큐.

upsert/delete 작업을 모았다가 한 번의 bulk 요청으로 전송하고, 응답을 분류합니다.

분류 규칙:
    - 전송 자체가 실패하고 재시도 가능한 오류(timeout, 연결 불가/재시도 소진,
      408, no_shard_available)면 ReschedulableError
    - 그 외 전송 오류는 그대로 전파
    - 전송은 성공했지만 item 단위 오류가 있으면 BulkPartialFailureError

Usage:
    >>> queue = BulkOperationQueue(gateway)
    >>> queue.enqueue_upsert("users", "user", "1", {"name": "kim"})
    >>> queue.enqueue_delete("users", "user", "2")
    >>> result = queue.flush()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from elasticsearch import ApiError, ConnectionTimeout, TransportError
from elasticsearch import ConnectionError as ESConnectionError

from essync.config import DEFAULT_RETRY_ON_CONFLICT
from essync.core.errors import (
    BulkPartialFailureError,
    ReschedulableError,
    UnexpectedResultTypeError,
)
from essync.core.protocols import IndexGatewayProtocol

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408})
RETRYABLE_ERROR_TYPES = frozenset({"no_shard_available_action_exception"})


@dataclass(frozen=True)
class UpsertOperation:
    """update + doc_as_upsert 작업.

    retry_on_conflict는 서버측 optimistic concurrency 충돌 재시도 힌트입니다.
    """

    index: str
    type_name: str
    id: str
    document: dict[str, Any]
    retry_on_conflict: int = DEFAULT_RETRY_ON_CONFLICT

    def to_lines(self, include_type_name: bool = False) -> list[dict[str, Any]]:
        meta: dict[str, Any] = {"_index": self.index, "_id": self.id}
        if include_type_name:
            meta["_type"] = self.type_name
        meta["retry_on_conflict"] = self.retry_on_conflict
        return [{"update": meta}, {"doc": self.document, "doc_as_upsert": True}]


@dataclass(frozen=True)
class DeleteOperation:
    index: str
    type_name: str
    id: str

    def to_lines(self, include_type_name: bool = False) -> list[dict[str, Any]]:
        meta: dict[str, Any] = {"_index": self.index, "_id": self.id}
        if include_type_name:
            meta["_type"] = self.type_name
        return [{"delete": meta}]


BulkOperation = UpsertOperation | DeleteOperation


@dataclass(frozen=True)
class ItemOutcome:
    """bulk 응답 item 하나. 제출한 operation과 위치가 정렬되어 있음."""

    operation: BulkOperation
    status: int | None
    result: str | None = None
    error: Any = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class BulkResult:
    outcomes: tuple[ItemOutcome, ...] = ()
    has_errors: bool = False
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def failed(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if not o.ok]


def is_retryable(exc: BaseException) -> bool:
    """전송 오류가 재시도 가능한 종류인지 판단."""
    if isinstance(exc, (ConnectionTimeout, ESConnectionError)):
        return True
    if isinstance(exc, ApiError):
        if getattr(exc.meta, "status", None) in RETRYABLE_STATUS_CODES:
            return True
        body = exc.body if isinstance(exc.body, dict) else {}
        error = body.get("error")
        if isinstance(error, dict) and error.get("type") in RETRYABLE_ERROR_TYPES:
            return True
    return False


class BulkOperationQueue:
    """BulkOperation 누적 및 전송.

    한 세션(UnitOfWork)이 독점 소유하며 스레드 안전하지 않습니다.
    """

    def __init__(
        self,
        gateway: IndexGatewayProtocol,
        *,
        retry_on_conflict: int = DEFAULT_RETRY_ON_CONFLICT,
        include_type_name: bool = False,
        refresh: bool | str = False,
    ):
        self.gateway = gateway
        self.retry_on_conflict = retry_on_conflict
        self.include_type_name = include_type_name
        self.refresh = refresh
        self._ops: list[BulkOperation] = []

    @property
    def pending(self) -> tuple[BulkOperation, ...]:
        return tuple(self._ops)

    def __len__(self) -> int:
        return len(self._ops)

    def enqueue_upsert(
        self, index: str, type_name: str, id: str, document: dict[str, Any]
    ) -> UpsertOperation:
        op = UpsertOperation(
            index=index,
            type_name=type_name,
            id=id,
            document=document,
            retry_on_conflict=self.retry_on_conflict,
        )
        self._ops.append(op)
        return op

    def enqueue_delete(self, index: str, type_name: str, id: str) -> DeleteOperation:
        op = DeleteOperation(index=index, type_name=type_name, id=id)
        self._ops.append(op)
        return op

    def clear(self) -> None:
        self._ops.clear()

    def flush(self, *, refresh: bool | str | None = None) -> BulkResult:
        """대기 중인 작업을 하나의 bulk 요청으로 전송.

        큐가 비어 있으면 네트워크 호출 없이 빈 BulkResult를 반환합니다.
        큐는 응답 분류가 끝난 뒤에만 비워지므로, ReschedulableError 이후
        같은 flush()를 다시 호출하면 동일한 batch가 재전송됩니다.

        Raises:
            ReschedulableError: 재시도 가능한 전송 오류
            BulkPartialFailureError: 일부 item 실패 (성공 item은 이미 반영됨)
        """
        if not self._ops:
            return BulkResult()

        ops = list(self._ops)
        lines = [line for op in ops for line in op.to_lines(self.include_type_name)]
        logger.debug(f"Sending bulk request with {len(ops)} operation(s)")

        try:
            resp = self.gateway.bulk(lines, refresh=self.refresh if refresh is None else refresh)
        except (ApiError, TransportError) as e:
            if is_retryable(e):
                logger.warning(f"Reschedulable bulk failure ({type(e).__name__}): {e}")
                raise ReschedulableError(
                    f"An elastic search reschedulable exception occurs: {type(e).__name__}"
                ) from e
            raise

        result = self._classify(ops, resp)
        self._ops.clear()

        if result.has_errors:
            failed = result.failed
            logger.warning(f"Bulk request finished with {len(failed)}/{len(ops)} failed item(s)")
            raise BulkPartialFailureError(resp, [o.operation for o in failed])

        return result

    @staticmethod
    def _classify(ops: list[BulkOperation], resp: Any) -> BulkResult:
        """응답 item을 제출 순서대로 operation과 짝지음."""
        if not isinstance(resp, dict):
            raise UnexpectedResultTypeError(resp)

        items = resp.get("items") or []
        if len(items) != len(ops):
            raise UnexpectedResultTypeError(
                items, f"Bulk response has {len(items)} item(s) for {len(ops)} operation(s)"
            )

        outcomes = []
        for op, item in zip(ops, items, strict=True):
            (info,) = item.values()
            outcomes.append(
                ItemOutcome(
                    operation=op,
                    status=info.get("status"),
                    result=info.get("result"),
                    error=info.get("error"),
                )
            )

        has_errors = any(not o.ok for o in outcomes)
        if resp.get("errors") and not has_errors:
            logger.warning("Bulk response flagged errors but no item carries an error; treating as success")
        return BulkResult(outcomes=tuple(outcomes), has_errors=has_errors, raw=resp)
